"""Tests for snapshot import and database reset."""

import json
from datetime import date, datetime
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from pm_synth.exceptions import ResetError
from pm_synth.generator import RowGenerationEngine
from pm_synth.generator.generators import (
    constant,
    identifier,
    random_foreign_value,
    random_parent_reference,
    timestamp_between,
)
from pm_synth.graph import build_dependency_graph, resolve_insertion_order
from pm_synth.loader import DataImporter, DatabaseResetter, ResetState, adapt_value, build_insert
from pm_synth.models import Column, CountRange, ForeignTableRows, SeedConfig, StaticRows, TableStatus
from pm_synth.output import MemorySnapshotStore


def executed(conn):
    """SQL strings passed to conn.execute, in call order."""
    return [call.args[0] for call in conn.execute.await_args_list]


@pytest.fixture
def conn():
    mock = AsyncMock()
    mock.execute = AsyncMock(return_value="OK")
    return mock


@pytest.fixture
def seed_configs():
    return [
        SeedConfig.passive("users"),
        SeedConfig(table_name="workspaces", row_generation=StaticRows(1)),
        SeedConfig(table_name="projects", row_generation=StaticRows(1)),
        SeedConfig.passive("sessions", skip_import=True),
    ]


class TestAdaptValue:
    """Tests for converting snapshot values to driver values."""

    def test_timestamps(self):
        column = Column("created_at", "timestamp with time zone")
        value = adapt_value("2024-05-01T12:30:00Z", column)
        assert isinstance(value, datetime)
        assert value.tzinfo is not None

    def test_date(self):
        assert adapt_value("2024-05-01T00:00:00", Column("start_date", "date")) == date(2024, 5, 1)

    def test_json_and_text(self):
        assert adapt_value({"a": 1}, Column("props", "jsonb")) == '{"a": 1}'
        assert adapt_value('{"a": 1}', Column("props", "jsonb")) == '{"a": 1}'
        assert adapt_value(["x"], Column("name", "text")) == '["x"]'
        assert adapt_value(42, Column("name", "character varying")) == "42"

    def test_numbers(self):
        assert adapt_value(1.5, Column("cost", "numeric")) == Decimal("1.5")
        assert adapt_value("12", Column("sequence", "integer")) == 12
        assert adapt_value(True, Column("sequence", "integer")) is True

    def test_array_columns_keep_lists(self):
        assert adapt_value(["bug", "ui"], Column("tags", "ARRAY")) == ["bug", "ui"]
        assert adapt_value(["bug", "ui"], Column("tags", "jsonb")) == '["bug", "ui"]'

    def test_passthrough(self):
        assert adapt_value(None, Column("x", "uuid")) is None
        assert adapt_value("w1", Column("x", "uuid")) == "w1"
        assert adapt_value(False, None) is False
        assert adapt_value({"a": 1}, None) == json.dumps({"a": 1})

    def test_build_insert(self):
        query, values = build_insert("issues", {"id": "i1", "group": "started"})
        assert query == 'INSERT INTO "issues" ("id", "group") VALUES ($1, $2);'
        assert values == ["i1", "started"]


class TestDataImporter:
    """Tests for DataImporter."""

    @pytest.mark.asyncio
    async def test_imports_eligible_tables_in_order(self, conn, seed_configs):
        store = MemorySnapshotStore({
            "users": [{"id": "u1"}],
            "workspaces": [{"id": "w1"}, {"id": "w2"}],
            "sessions": [{"id": "s1"}],
            "transaction_log": [{"id": 1}],
        })
        importer = DataImporter(conn, seed_configs, store)
        summary = await importer.import_tables(["users", "sessions", "workspaces", "transaction_log"])

        tables = [q.split('"')[1] for q in executed(conn)]
        assert tables == ["users", "workspaces", "workspaces"]
        assert summary.get("workspaces").rows == 2
        assert summary.with_status(TableStatus.SKIPPED) == ["sessions", "transaction_log"]

    @pytest.mark.asyncio
    async def test_failing_rows_do_not_stop_import(self, conn, seed_configs):
        async def execute(query, *values):
            if "bad" in values:
                raise ValueError("duplicate key value violates unique constraint")
            return "INSERT 0 1"

        conn.execute.side_effect = execute
        store = MemorySnapshotStore({
            "workspaces": [{"id": "w1"}, {"id": "bad"}, {"id": "w3"}],
            "projects": [{"id": "p1"}],
        })
        summary = await DataImporter(conn, seed_configs, store).import_tables(["workspaces", "projects"])

        workspaces = summary.get("workspaces")
        assert (workspaces.rows, workspaces.failed_rows) == (2, 1)
        assert summary.get("projects").rows == 1

    @pytest.mark.asyncio
    async def test_missing_snapshot_fails_only_that_table(self, conn, seed_configs):
        store = MemorySnapshotStore({"projects": [{"id": "p1"}]})
        summary = await DataImporter(conn, seed_configs, store).import_tables(["workspaces", "projects"])

        assert summary.failed == ["workspaces"]
        assert summary.get("projects").status == TableStatus.IMPORTED

    @pytest.mark.asyncio
    async def test_values_adapted_with_schema(self, conn, seed_configs, plane_schema):
        store = MemorySnapshotStore({
            "projects": [{"id": "p1", "created_at": "2024-05-01T12:30:00+00:00"}],
        })
        importer = DataImporter(conn, seed_configs, store, schema=plane_schema)
        await importer.import_tables(["projects"])

        args = conn.execute.await_args.args
        assert isinstance(args[2], datetime)


class TestDatabaseResetter:
    """Tests for DatabaseResetter."""

    @pytest.mark.asyncio
    async def test_reset_reverse_order(self, conn, seed_configs):
        resetter = DatabaseResetter(conn, seed_configs)
        summary = await resetter.reset(["users", "sessions", "workspaces", "projects", "transaction_log"])

        assert executed(conn) == [
            "SET session_replication_role = replica;",
            'TRUNCATE TABLE "transaction_log" CASCADE;',
            'TRUNCATE TABLE "projects" CASCADE;',
            'TRUNCATE TABLE "workspaces" CASCADE;',
            'TRUNCATE TABLE "users" CASCADE;',
            "SET session_replication_role = DEFAULT;",
        ]
        assert summary.with_status(TableStatus.SKIPPED) == ["sessions"]
        assert resetter.state == ResetState.DONE
        assert resetter.history == [
            ResetState.IDLE,
            ResetState.CONSTRAINTS_SUSPENDED,
            ResetState.TRUNCATING,
            ResetState.CONSTRAINTS_RESTORED,
            ResetState.DONE,
        ]

    @pytest.mark.asyncio
    async def test_truncate_failure_restores_constraints(self, conn, seed_configs):
        async def execute(query, *args):
            if "projects" in query:
                raise RuntimeError("permission denied")
            return "OK"

        conn.execute.side_effect = execute
        resetter = DatabaseResetter(conn, seed_configs)

        with pytest.raises(ResetError, match="permission denied") as exc_info:
            await resetter.reset(["workspaces", "projects"])

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert executed(conn)[-1] == "SET session_replication_role = DEFAULT;"
        assert resetter.state == ResetState.CONSTRAINTS_RESTORED
        assert 'TRUNCATE TABLE "workspaces" CASCADE;' not in executed(conn)

    @pytest.mark.asyncio
    async def test_lenient_reset_continues(self, conn, seed_configs):
        async def execute(query, *args):
            if "projects" in query:
                raise RuntimeError("permission denied")
            return "OK"

        conn.execute.side_effect = execute
        resetter = DatabaseResetter(conn, seed_configs, strict=False)
        summary = await resetter.reset(["workspaces", "projects"])

        assert summary.get("projects").status == TableStatus.FAILED
        assert summary.get("workspaces").status == TableStatus.RESET
        assert resetter.state == ResetState.DONE

    @pytest.mark.asyncio
    async def test_suspend_failure_still_restores(self, conn, seed_configs):
        async def execute(query, *args):
            if "replica" in query:
                raise RuntimeError("must be superuser")
            return "OK"

        conn.execute.side_effect = execute
        resetter = DatabaseResetter(conn, seed_configs)

        with pytest.raises(ResetError):
            await resetter.reset(["workspaces"])
        assert executed(conn) == [
            "SET session_replication_role = replica;",
            "SET session_replication_role = DEFAULT;",
        ]

    @pytest.mark.asyncio
    async def test_restore_failure_is_fatal(self, conn, seed_configs):
        async def execute(query, *args):
            if "DEFAULT" in query:
                raise RuntimeError("connection lost")
            return "OK"

        conn.execute.side_effect = execute
        with pytest.raises(ResetError, match="restore constraint enforcement"):
            await DatabaseResetter(conn, seed_configs).reset(["workspaces"])


class RecordingConnection:
    """Connection stand-in that records every statement with its values."""

    def __init__(self):
        self.statements = []

    async def execute(self, query, *values):
        self.statements.append((query, values))
        return "OK"


def inserted_rows(statements):
    """(table, row) for every INSERT, in execution order."""
    rows = []
    for query, values in statements:
        if not query.startswith("INSERT"):
            continue
        table = query.split('"')[1]
        columns = [c.strip('"') for c in query.split("(", 1)[1].split(")", 1)[0].split(", ")]
        rows.append((table, dict(zip(columns, values))))
    return rows


class TestResetThenImport:
    """Reset followed by import over one connection."""

    @pytest.fixture
    def configs(self):
        return [
            SeedConfig.passive("users"),
            SeedConfig(
                table_name="workspaces",
                row_generation=StaticRows(2),
                columns={"id": identifier(), "name": constant("Acme"),
                         "owner_id": random_foreign_value("users", "id")},
            ),
            SeedConfig(
                table_name="projects",
                row_generation=ForeignTableRows("workspaces", "id", "workspace_id", CountRange(1, 3)),
                concurrent_generation=True,
                columns={"id": identifier(), "name": constant("Site"),
                         "created_at": timestamp_between(datetime(2024, 1, 1))},
            ),
            SeedConfig(
                table_name="issues",
                row_generation=ForeignTableRows("projects", "id", "project_id", 2),
                columns={"id": identifier(),
                         "parent_id": random_parent_reference("issues", 0.5, scope_column="project_id"),
                         "name": constant("Fix login")},
            ),
        ]

    @pytest.mark.asyncio
    async def test_parents_are_loaded_before_children(self, plane_schema, configs):
        store = MemorySnapshotStore({"users": [{"id": "u1", "email": "a@example.com"}]})
        graph = build_dependency_graph(plane_schema)
        order = resolve_insertion_order(graph) + ["transaction_log"]

        summary = await RowGenerationEngine(plane_schema, configs, store, seed=5, progress=False).generate(order)
        assert summary.failed == []

        conn = RecordingConnection()
        await DatabaseResetter(conn, configs).reset(order)
        result = await DataImporter(conn, configs, store, schema=plane_schema).import_tables(order)
        assert result.failed == []

        queries = [query for query, _ in conn.statements]
        truncates = [i for i, q in enumerate(queries) if q.startswith("TRUNCATE")]
        inserts = [i for i, q in enumerate(queries) if q.startswith("INSERT")]
        assert truncates and inserts
        assert max(truncates) < min(inserts)

        rows = inserted_rows(conn.statements)
        tables = [table for table, _ in rows]
        for table in set(tables):
            first = tables.index(table)
            for parent in graph[table].dependencies:
                assert parent in tables[:first]

        loaded = {}
        for table, row in rows:
            for fk in plane_schema[table].foreign_keys:
                if plane_schema[table].get_column(fk.column_name).is_nullable:
                    continue
                assert row[fk.column_name] in loaded.get(fk.target_table, set())
            loaded.setdefault(table, set()).add(row["id"])
