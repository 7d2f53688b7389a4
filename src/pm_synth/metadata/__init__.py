"""
Metadata introspection module for PostgreSQL databases.

Provides the table, column and foreign-key metadata the dependency graph and
row generation engine are built from.
"""

from pm_synth.metadata.postgres import PostgresSchemaIntrospector, connect, introspect_database

__all__ = [
    "PostgresSchemaIntrospector",
    "connect",
    "introspect_database",
]
