"""
Snapshot storage - durable per-table staging of generated rows.

Each generated table is materialized as one snapshot that later generation
steps read for fan-out and foreign references, and that the import step
loads into the database unmodified.

Output Structure:
    data/<database>/
    ├── workspaces.json     # JSON array of row objects, nulls explicit
    ├── projects.json
    ├── ...
    └── manifest.json       # Row counts of the last generation run
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, time
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from pm_synth.exceptions import SnapshotError
from pm_synth.models import Row

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    """Serialize values the json module does not know about."""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def encode_rows(rows: List[Row]) -> str:
    """Render rows in the snapshot file format."""
    return json.dumps(rows, indent=2, default=_json_default)


class SnapshotStore:
    """
    Base snapshot store: write-table / read-table with a read cache.

    Tables are parsed once and kept in memory; column values are indexed on
    first lookup so foreign-reference generators do not rescan a table per
    generated value. Subclasses implement ``_load``, ``_save`` and ``_exists``.
    """

    def __init__(self):
        self._cache: Dict[str, List[Row]] = {}
        self._indexes: Dict[Tuple[str, str], Dict[Any, List[Row]]] = {}

    def _load(self, table_name: str) -> List[Row]:
        raise NotImplementedError

    def _save(self, table_name: str, payload: str) -> None:
        raise NotImplementedError

    def _exists(self, table_name: str) -> bool:
        raise NotImplementedError

    def exists(self, table_name: str) -> bool:
        """Return True if a snapshot has been written for the table."""
        return table_name in self._cache or self._exists(table_name)

    def read(self, table_name: str) -> List[Row]:
        """
        Return the rows of a table's snapshot.

        Raises:
            SnapshotError: If no snapshot exists or it cannot be parsed
        """
        if table_name not in self._cache:
            if not self._exists(table_name):
                raise SnapshotError(table_name, f"No snapshot found for table {table_name}")
            self._cache[table_name] = self._load(table_name)
            logger.debug(f"Loaded {len(self._cache[table_name])} rows for {table_name}")
        return self._cache[table_name]

    def write(self, table_name: str, rows: List[Row]) -> None:
        """
        Replace a table's snapshot with the given rows.

        The cached copy is the decoded form of what was written, so later
        readers see exactly what the import step will see.
        """
        payload = encode_rows(rows)
        self._save(table_name, payload)
        self._cache[table_name] = json.loads(payload)
        for key in [k for k in self._indexes if k[0] == table_name]:
            del self._indexes[key]
        logger.info(f"Wrote {len(rows)} rows to snapshot {table_name}")

    def index(self, table_name: str, column: str) -> Dict[Any, List[Row]]:
        """Return rows of a table grouped by the value of one column."""
        key = (table_name, column)
        if key not in self._indexes:
            grouped: Dict[Any, List[Row]] = {}
            for row in self.read(table_name):
                grouped.setdefault(hashable_value(row.get(column)), []).append(row)
            self._indexes[key] = grouped
        return self._indexes[key]

    def clear_cache(self) -> None:
        self._cache.clear()
        self._indexes.clear()


def hashable_value(value: Any) -> Any:
    """Return a dict-key-safe form of a JSON value."""
    if isinstance(value, (dict, list)):
        return json.dumps(value, sort_keys=True, default=_json_default)
    return value


class JsonSnapshotStore(SnapshotStore):
    """Snapshot store backed by one ``<table>.json`` file per table."""

    def __init__(self, output_dir: Path):
        super().__init__()
        self.output_dir = Path(output_dir)

    def ensure_dir(self) -> Path:
        """Create the output directory if needed."""
        if not self.output_dir.exists():
            self.output_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created directory: {self.output_dir}")
        return self.output_dir

    def path_for(self, table_name: str) -> Path:
        return self.output_dir / f"{table_name}.json"

    def _exists(self, table_name: str) -> bool:
        return self.path_for(table_name).is_file()

    def _load(self, table_name: str) -> List[Row]:
        path = self.path_for(table_name)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SnapshotError(table_name, f"Could not read snapshot {path}: {e}") from e
        if not isinstance(data, list):
            raise SnapshotError(table_name, f"Snapshot {path} is not a JSON array")
        return data

    def _save(self, table_name: str, payload: str) -> None:
        self.ensure_dir()
        path = self.path_for(table_name)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(path)
        except OSError as e:
            raise SnapshotError(table_name, f"Could not write snapshot {path}: {e}") from e

    def list_tables(self) -> List[str]:
        """Names of all tables with a snapshot on disk."""
        if not self.output_dir.exists():
            return []
        return sorted(p.stem for p in self.output_dir.glob("*.json") if p.stem != "manifest")

    def write_manifest(self, summary: Dict[str, Any]) -> Path:
        """Write the generation manifest next to the snapshots."""
        manifest_path = self.ensure_dir() / "manifest.json"
        with open(manifest_path, "w", encoding="utf-8") as f:
            json.dump(
                {"generated_at": datetime.now().isoformat(), **summary},
                f,
                indent=2,
                default=str,
            )
        logger.info(f"Wrote manifest to {manifest_path}")
        return manifest_path


class MemorySnapshotStore(SnapshotStore):
    """In-memory snapshot store used by tests and dry runs."""

    def __init__(self, tables: Optional[Dict[str, List[Row]]] = None):
        super().__init__()
        self._payloads: Dict[str, str] = {}
        for name, rows in (tables or {}).items():
            self.write(name, rows)

    def _exists(self, table_name: str) -> bool:
        return table_name in self._payloads

    def _load(self, table_name: str) -> List[Row]:
        return json.loads(self._payloads[table_name])

    def _save(self, table_name: str, payload: str) -> None:
        self._payloads[table_name] = payload
