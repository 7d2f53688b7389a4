"""
PM Synth - Synthetic Data Seeder for Project Management Databases

Introspects a PostgreSQL schema, generates per-table JSON snapshots in
foreign-key dependency order and loads them back into the database.

Features:
- Dependency ordering from non-nullable foreign keys, with cycle detection
- Static and fan-out row generation, sequential or bounded-concurrent
- Context-aware text from OpenAI (or Faker, offline)
- Composite primary key deduplication
- Reset with constraint suspension that is always restored
"""

__version__ = "0.1.0"
__author__ = "DDG Team"

from pm_synth.models import (
    Column,
    CountRange,
    ForeignKey,
    ForeignTableRows,
    GenerationContext,
    RunConfig,
    RunSummary,
    SeedConfig,
    StaticRows,
    TableSchema,
)

from pm_synth.graph import build_dependency_graph, resolve_insertion_order

from pm_synth.generator import RowGenerationEngine

from pm_synth.output import JsonSnapshotStore, MemorySnapshotStore

from pm_synth.loader import DataImporter, DatabaseResetter

__all__ = [
    # Core models
    "Column",
    "CountRange",
    "ForeignKey",
    "ForeignTableRows",
    "GenerationContext",
    "RunConfig",
    "RunSummary",
    "SeedConfig",
    "StaticRows",
    "TableSchema",
    # Ordering
    "build_dependency_graph",
    "resolve_insertion_order",
    # Generation
    "RowGenerationEngine",
    "JsonSnapshotStore",
    "MemorySnapshotStore",
    # Loading
    "DataImporter",
    "DatabaseResetter",
]
