"""
Exception hierarchy for pm_synth.

Errors are contained at the smallest meaningful unit: a row for import and a
table for generation. Only introspection and reset failures abort a run.
"""

from __future__ import annotations

from typing import List, Optional


class PmSynthError(Exception):
    """Base class for all pm_synth errors."""


class IntrospectionError(PmSynthError):
    """Catalog metadata could not be read; no partial schema is usable."""


class DependencyCycleError(PmSynthError):
    """The non-nullable foreign-key graph contains a cycle."""

    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        super().__init__(
            "Cycle detected in dependency graph: " + " -> ".join(cycle)
            + ". Consider inserting with NULL foreign keys and updating after initial seeding."
        )


class GeneratorError(PmSynthError):
    """A column generator could not produce a value."""


class MissingSnapshotError(GeneratorError):
    """A non-nullable column referenced a table with no generated rows."""

    def __init__(self, table_name: str, reason: str = "not found"):
        self.table_name = table_name
        super().__init__(f"Snapshot for table {table_name} {reason}")


class ContentGenerationError(GeneratorError):
    """The content-generation provider returned no usable text."""


class SnapshotError(PmSynthError):
    """A snapshot could not be read or written."""

    def __init__(self, table_name: str, message: Optional[str] = None):
        self.table_name = table_name
        super().__init__(message or f"Snapshot error for table {table_name}")


class ResetError(PmSynthError):
    """Resetting the database failed; constraint enforcement was restored."""
