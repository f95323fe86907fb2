"""
Schema Introspector.

Reads what the sync core needs to know about a database's tables:
the table list with storage engines, primary keys, and CREATE TABLE
statements guarded with IF NOT EXISTS so they can be replayed safely.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from mysql_sync.connectors.base import SQLConnector


_CREATE_TABLE_RE = re.compile(
    r"^\s*CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?",
    re.IGNORECASE,
)


class NoPrimaryKey(Exception):
    """Raised when a table has no primary key and cannot be synced incrementally."""

    def __init__(self, table: str) -> None:
        super().__init__(f"Table {table} has no primary key")
        self.table = table


@dataclass
class TableDescriptor:
    """A source table as seen at the start of a run."""

    name: str
    engine: str | None = None
    primary_key: str | None = None

    @property
    def has_engine(self) -> bool:
        return bool(self.engine)


class SchemaIntrospector:
    """
    Schema reader for one database.

    Example:
        introspector = SchemaIntrospector(source, exclude=["mysql_sync_runtime"])
        for table in introspector.list_tables():
            pk = introspector.primary_key_of(table.name)
    """

    def __init__(self, db: SQLConnector, exclude: list[str] | None = None) -> None:
        self.db = db
        self.exclude = set(exclude or [])

    def list_tables(self) -> list[TableDescriptor]:
        """All tables and views; views come back with engine=None."""
        return [
            TableDescriptor(name=name, engine=engine)
            for name, engine in self.db.table_status()
            if name not in self.exclude
        ]

    def primary_key_of(self, table: str) -> str:
        """
        First column of the table's primary key.

        Composite keys are reduced to their first component.

        Raises:
            NoPrimaryKey: if the table has no primary key
        """
        columns = self.db.primary_key_columns(table)
        if not columns:
            raise NoPrimaryKey(table)
        return columns[0]

    def cursor_is_unique(self, table: str, cursor_column: str) -> bool:
        """Whether cursor_column alone is the table's primary key."""
        return self.db.primary_key_columns(table) == [cursor_column]

    def table_definition(self, table: str) -> str:
        """CREATE TABLE IF NOT EXISTS statement for the table."""
        create_sql = self.db.create_statement(table)
        if not create_sql:
            raise ValueError(f"No CREATE TABLE statement for {table}")
        return _CREATE_TABLE_RE.sub("CREATE TABLE IF NOT EXISTS ", create_sql, count=1)

    def table_exists(self, table: str) -> bool:
        return self.db.has_table(table)
