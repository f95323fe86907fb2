"""
SQLite Database Connector.

Provides read/write access to SQLite databases with:
- Schema introspection (tables, views, primary keys, CREATE statements)
- Predicate-based selects for cursor windows
- INSERT OR IGNORE bulk inserts
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator, Sequence

from mysql_sync.config import DatabaseDSN
from mysql_sync.connectors.base import (
    ConnectivityError,
    DatabaseError,
    Row,
    SQLConnector,
    TransientDatabaseError,
)


class SQLiteConnector(SQLConnector):
    """
    Connector for SQLite database files.

    Example:
        with SQLiteConnector(Path("database.db"), readonly=True) as conn:
            for name, engine in conn.table_status():
                print(name, engine)
    """

    dialect = "sqlite"
    placeholder = "?"
    insert_ignore_verb = "INSERT OR IGNORE"

    #: Pseudo engine name reported for base tables (views have none)
    ENGINE = "sqlite"

    def __init__(
        self,
        path: Path | str,
        readonly: bool = False,
        timeout: float = 30.0,
    ) -> None:
        """
        Initialize SQLite connector.

        Args:
            path: Path to the database file
            readonly: Open in read-only mode (file must exist)
            timeout: Seconds to wait on a locked database
        """
        self.path = Path(path)
        self.readonly = readonly
        self.timeout = timeout
        self._connection: sqlite3.Connection | None = None

    @classmethod
    def from_dsn(
        cls, dsn: DatabaseDSN, readonly: bool = False, timeout: float = 30.0
    ) -> "SQLiteConnector":
        return cls(dsn.database, readonly=readonly, timeout=timeout)

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection with proper cleanup."""
        if self._connection is None:
            self._connection = self._create_connection()

        try:
            yield self._connection
        except sqlite3.OperationalError as e:
            self._connection.rollback()
            # "database is locked" / "database table is locked"
            if "locked" in str(e) or "busy" in str(e):
                raise TransientDatabaseError(str(e)) from e
            raise DatabaseError(str(e)) from e
        except sqlite3.Error as e:
            self._connection.rollback()
            raise DatabaseError(str(e)) from e

    def _create_connection(self) -> sqlite3.Connection:
        """Create a new database connection."""
        if self.readonly and not self.path.exists():
            raise ConnectivityError(f"Database not found: {self.path}")

        uri = f"file:{self.path}?mode={'ro' if self.readonly else 'rwc'}"
        try:
            conn = sqlite3.connect(
                uri,
                uri=True,
                check_same_thread=False,
                timeout=self.timeout,
            )
        except sqlite3.Error as e:
            raise ConnectivityError(f"Cannot open {self.path}: {e}") from e

        conn.row_factory = sqlite3.Row
        if not self.readonly:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")

        return conn

    def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None

    def __enter__(self) -> "SQLiteConnector":
        return self

    def quote(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        with self.connection() as conn:
            cursor = conn.execute(sql, tuple(params))
            return [dict(row) for row in cursor.fetchall()]

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """
        Execute a SQL statement and return affected row count.

        Raises:
            RuntimeError: if the connector is read-only
        """
        if self.readonly:
            raise RuntimeError("Cannot execute write operations in read-only mode")

        with self.connection() as conn:
            cursor = conn.execute(sql, tuple(params))
            conn.commit()
            return cursor.rowcount

    def execute_many(
        self,
        sql: str,
        params_list: list[Sequence[Any]],
    ) -> int:
        if self.readonly:
            raise RuntimeError("Cannot execute write operations in read-only mode")

        with self.connection() as conn:
            cursor = conn.executemany(sql, params_list)
            conn.commit()
            return cursor.rowcount

    def table_status(self) -> list[tuple[str, str | None]]:
        rows = self.query(
            """
            SELECT name, type FROM sqlite_master
            WHERE type IN ('table', 'view')
            AND name NOT LIKE 'sqlite_%'
            ORDER BY name
            """
        )
        return [
            (row["name"], self.ENGINE if row["type"] == "table" else None)
            for row in rows
        ]

    def primary_key_columns(self, table: str) -> list[str]:
        rows = self.query(f"PRAGMA table_info({self.quote(table)})")
        keyed = sorted((row["pk"], row["name"]) for row in rows if row["pk"])
        return [name for _, name in keyed]

    def create_statement(self, table: str) -> str:
        rows = self.query(
            "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table,),
        )
        return rows[0]["sql"] if rows and rows[0]["sql"] else ""

    def has_table(self, table: str) -> bool:
        rows = self.query(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table,),
        )
        return bool(rows)
