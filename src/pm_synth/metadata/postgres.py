"""
PostgreSQL metadata extractor using asyncpg.

Extracts table metadata, column definitions and foreign-key constraints
from the information_schema views.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List

from pm_synth.exceptions import IntrospectionError
from pm_synth.models import Column, DatabaseSchema, ForeignKey, TableSchema, freeze_schema

logger = logging.getLogger(__name__)


TABLES_QUERY = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = $1
        AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""

COLUMNS_QUERY = """
    SELECT
        column_name,
        data_type,
        is_nullable,
        column_default,
        character_maximum_length
    FROM information_schema.columns
    WHERE table_schema = $1 AND table_name = $2
    ORDER BY ordinal_position
"""

FOREIGN_KEYS_QUERY = """
    SELECT
        tc.constraint_name,
        kcu.column_name,
        ccu.table_name AS foreign_table_name,
        ccu.column_name AS foreign_column_name
    FROM information_schema.table_constraints AS tc
    JOIN information_schema.key_column_usage AS kcu
        ON tc.constraint_name = kcu.constraint_name
        AND tc.table_schema = kcu.table_schema
    JOIN information_schema.constraint_column_usage AS ccu
        ON ccu.constraint_name = tc.constraint_name
        AND ccu.table_schema = tc.table_schema
    WHERE tc.constraint_type = 'FOREIGN KEY'
        AND tc.table_schema = $1
        AND tc.table_name = $2
    ORDER BY tc.constraint_name, kcu.ordinal_position
"""


@asynccontextmanager
async def connect(connection_url: str) -> AsyncIterator[Any]:
    """Open an asyncpg connection and close it on exit."""
    import asyncpg

    conn = await asyncpg.connect(connection_url)
    logger.info("Connected to PostgreSQL database")
    try:
        yield conn
    finally:
        await conn.close()


class PostgresSchemaIntrospector:
    """
    Extracts a DatabaseSchema from a live PostgreSQL connection.

    Uses information_schema views:
    - tables (base tables of the working schema)
    - columns
    - table_constraints / key_column_usage / constraint_column_usage
    """

    def __init__(self, conn: Any, schema: str = "public"):
        """
        Initialize introspector.

        Args:
            conn: Open asyncpg connection (or compatible object with ``fetch``)
            schema: Working schema name
        """
        self.conn = conn
        self.schema = schema

    async def list_tables(self) -> List[str]:
        """Get all base table names in the working schema."""
        rows = await self.conn.fetch(TABLES_QUERY, self.schema)
        return [row["table_name"] for row in rows]

    async def get_table_schema(self, table_name: str) -> TableSchema:
        """Get columns and foreign keys for one table."""
        col_rows = await self.conn.fetch(COLUMNS_QUERY, self.schema, table_name)
        columns = [
            Column(
                name=row["column_name"],
                data_type=row["data_type"],
                is_nullable=row["is_nullable"] == "YES",
                default=row["column_default"],
                max_length=row["character_maximum_length"],
            )
            for row in col_rows
        ]

        fk_rows = await self.conn.fetch(FOREIGN_KEYS_QUERY, self.schema, table_name)
        foreign_keys = [
            ForeignKey(
                constraint_name=row["constraint_name"],
                column_name=row["column_name"],
                target_table=row["foreign_table_name"],
                target_column=row["foreign_column_name"],
            )
            for row in fk_rows
        ]

        return TableSchema(columns=columns, foreign_keys=foreign_keys)

    async def introspect(self) -> DatabaseSchema:
        """
        Build the DatabaseSchema for every base table.

        Returns:
            Read-only mapping of table name to TableSchema

        Raises:
            IntrospectionError: On any connectivity or query failure
        """
        try:
            tables: Dict[str, TableSchema] = {}
            for table_name in await self.list_tables():
                tables[table_name] = await self.get_table_schema(table_name)
        except Exception as e:
            raise IntrospectionError(
                f"Failed to introspect schema {self.schema}: {e}"
            ) from e

        fk_count = sum(len(t.foreign_keys) for t in tables.values())
        logger.info(f"Introspected {len(tables)} tables, {fk_count} foreign keys in {self.schema}")
        return freeze_schema(tables)


async def introspect_database(conn: Any, schema: str = "public") -> DatabaseSchema:
    """Convenience wrapper returning the schema of ``conn``."""
    return await PostgresSchemaIntrospector(conn, schema).introspect()
