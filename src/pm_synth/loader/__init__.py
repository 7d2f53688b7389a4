"""
Loader module for moving snapshots into the database and wiping them out.

Supports:
- Best-effort, row-at-a-time import in insertion order
- Reverse-order truncation with constraints suspended and always restored
"""

from pm_synth.loader.importer import DataImporter, adapt_value, build_insert
from pm_synth.loader.reset import DatabaseResetter, ResetState

__all__ = [
    "DataImporter",
    "DatabaseResetter",
    "ResetState",
    "adapt_value",
    "build_insert",
]
