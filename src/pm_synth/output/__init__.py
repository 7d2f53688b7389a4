"""
Output module for staging generated rows as per-table snapshots.

Supports:
- JSON file snapshots (one file per table)
- In-memory snapshots for tests and dry runs
"""

from pm_synth.output.snapshot import JsonSnapshotStore, MemorySnapshotStore, SnapshotStore

__all__ = [
    "SnapshotStore",
    "JsonSnapshotStore",
    "MemorySnapshotStore",
]
