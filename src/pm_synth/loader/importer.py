"""
Import generated snapshots into PostgreSQL.

Tables are loaded in insertion order, one row per INSERT. Loading is best
effort: a failing row is logged and counted, and the remaining rows and
tables are still processed.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from pm_synth.exceptions import SnapshotError
from pm_synth.models import (
    Column,
    DatabaseSchema,
    Row,
    RunSummary,
    SeedConfig,
    TableResult,
    TableStatus,
    seed_config_map,
)
from pm_synth.output.snapshot import SnapshotStore

logger = logging.getLogger(__name__)


TIMESTAMP_TYPES = {"timestamp with time zone", "timestamp without time zone"}
INTEGER_TYPES = {"smallint", "integer", "bigint"}
JSON_TYPES = {"json", "jsonb"}
TEXT_TYPES = {"text", "character varying", "character"}


def quote_ident(name: str) -> str:
    """Quote a SQL identifier."""
    return '"' + name.replace('"', '""') + '"'


def adapt_value(value: Any, column: Optional[Column]) -> Any:
    """
    Convert a JSON snapshot value to what asyncpg expects for the column.

    Snapshots store timestamps as ISO strings and structured values as JSON;
    asyncpg wants datetime/date objects and JSON text; ARRAY columns take
    the list as is.
    """
    if value is None:
        return None
    data_type = column.data_type.lower() if column else ""

    if data_type in TIMESTAMP_TYPES and isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    if data_type == "date" and isinstance(value, str):
        return date.fromisoformat(value[:10])
    if data_type in INTEGER_TYPES and isinstance(value, (str, float)) and not isinstance(value, bool):
        return int(value)
    if data_type == "numeric" and isinstance(value, (int, float, str)) and not isinstance(value, bool):
        return Decimal(str(value))
    if data_type == "array" and isinstance(value, list):
        return value
    if data_type in JSON_TYPES and not isinstance(value, str):
        return json.dumps(value)
    if data_type in TEXT_TYPES and not isinstance(value, str):
        return json.dumps(value) if isinstance(value, (dict, list)) else str(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return value


def build_insert(table_name: str, row: Row, columns: Optional[Mapping[str, Column]] = None) -> Tuple[str, List[Any]]:
    """Build a parameterized single-row INSERT statement."""
    keys = list(row.keys())
    column_list = ", ".join(quote_ident(k) for k in keys)
    placeholders = ", ".join(f"${i + 1}" for i in range(len(keys)))
    values = [adapt_value(row[k], (columns or {}).get(k)) for k in keys]
    query = f"INSERT INTO {quote_ident(table_name)} ({column_list}) VALUES ({placeholders});"
    return query, values


class DataImporter:
    """
    Loads table snapshots into the database in insertion order.

    Only tables with a seed config that does not set ``skip_import`` are
    loaded; passive configs are loaded from whatever snapshot exists.
    """

    def __init__(
        self,
        conn: Any,
        seed_configs: Union[Mapping[str, SeedConfig], List[SeedConfig]],
        store: SnapshotStore,
        schema: Optional[DatabaseSchema] = None,
    ):
        """
        Initialize importer.

        Args:
            conn: Open asyncpg connection (or compatible object with ``execute``)
            seed_configs: Seed configs, as a list or keyed by table name
            store: Snapshot store to read rows from
            schema: Introspected schema used to adapt values to column types
        """
        self.conn = conn
        self.seed_configs = seed_config_map(seed_configs)
        self.store = store
        self.schema = schema

    def is_importable(self, table_name: str) -> bool:
        config = self.seed_configs.get(table_name)
        return config is not None and config.importable

    async def import_tables(self, insert_order: Sequence[str]) -> RunSummary:
        """
        Import every eligible table in insertion order.

        Returns:
            RunSummary with inserted and failed row counts per table
        """
        summary = RunSummary(operation="import")

        for table_name in insert_order:
            if not self.is_importable(table_name):
                summary.add(TableResult(table_name, TableStatus.SKIPPED))
                continue

            try:
                rows = self.store.read(table_name)
            except SnapshotError as e:
                logger.error(f"Error inserting records for {table_name}: {e}")
                summary.add(TableResult(table_name, TableStatus.FAILED, error=str(e)))
                continue

            summary.add(await self.import_table(table_name, rows))

        return summary

    async def import_table(self, table_name: str, rows: List[Row]) -> TableResult:
        """Insert rows one at a time, counting failures."""
        if not rows:
            logger.info(f"No records to insert into {table_name}")
            return TableResult(table_name, TableStatus.IMPORTED)

        table_schema = self.schema.get(table_name) if self.schema else None
        columns = {c.name: c for c in table_schema.columns} if table_schema else None

        inserted = 0
        failed = 0
        for row in rows:
            try:
                query, values = build_insert(table_name, row, columns)
                await self.conn.execute(query, *values)
                inserted += 1
            except Exception as e:
                failed += 1
                logger.error(f"Error inserting record into {table_name}: {e}")

        logger.info(f"Inserted {inserted} record(s) into {table_name}")
        if failed:
            logger.warning(f"{failed} record(s) failed for {table_name}")

        return TableResult(table_name, TableStatus.IMPORTED, rows=inserted, failed_rows=failed)
