"""Shared fixtures for pm_synth tests."""

import random

import pytest
from faker import Faker

from pm_synth.models import Column, ForeignKey, GenerationContext, TableSchema, freeze_schema
from pm_synth.output import MemorySnapshotStore


def make_table(columns, foreign_keys=()):
    """
    Build a TableSchema from ``(name, data_type, nullable)`` tuples and
    ``(column, target_table, target_column)`` foreign keys.
    """
    return TableSchema(
        columns=[Column(name=n, data_type=t, is_nullable=nullable) for n, t, nullable in columns],
        foreign_keys=[
            ForeignKey(f"fk_{col}_{table}", col, table, target)
            for col, table, target in foreign_keys
        ],
    )


@pytest.fixture
def plane_schema():
    """workspaces <- projects <- issues, with a nullable self reference on issues."""
    return freeze_schema({
        "users": make_table([("id", "uuid", False), ("email", "text", False)]),
        "workspaces": make_table(
            [("id", "uuid", False), ("name", "text", False), ("owner_id", "uuid", True)],
            [("owner_id", "users", "id")],
        ),
        "projects": make_table(
            [
                ("id", "uuid", False),
                ("workspace_id", "uuid", False),
                ("name", "text", False),
                ("created_at", "timestamp with time zone", False),
            ],
            [("workspace_id", "workspaces", "id")],
        ),
        "issues": make_table(
            [
                ("id", "uuid", False),
                ("project_id", "uuid", False),
                ("parent_id", "uuid", True),
                ("name", "text", False),
            ],
            [("project_id", "projects", "id"), ("parent_id", "issues", "id")],
        ),
    })


@pytest.fixture
def store():
    return MemorySnapshotStore()


@pytest.fixture
def make_ctx(plane_schema, store):
    """Factory for a GenerationContext on one column of a table."""
    def factory(table="projects", column="name", row=None, rows=None, foreign_row=None,
                provider=None, seed=7):
        table_schema = plane_schema[table]
        return GenerationContext(
            table_name=table,
            current_row=row if row is not None else {},
            table_schema=table_schema,
            table_rows=rows if rows is not None else [],
            snapshots=store,
            rng=random.Random(seed),
            faker=Faker(),
            column=table_schema.get_column(column),
            foreign_row=foreign_row,
            content_provider=provider,
        )
    return factory


class RecordingProvider:
    """Content provider that echoes the prompt and records every call."""

    def __init__(self, text="Generated text"):
        self.text = text
        self.calls = []

    async def generate(self, prompt, context):
        self.calls.append((prompt, context))
        return self.text


@pytest.fixture
def recording_provider():
    return RecordingProvider()
