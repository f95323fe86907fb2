"""
Database collaborator interface.

Every connector exposes the same small surface the sync core relies on:
raw query/execute, predicate-based select/find/update, idempotent bulk
insert, MAX() lookups and a handful of introspection primitives. The SQL
for the generic operations is built here; subclasses only provide the
driver, identifier quoting and placeholder style.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence


Row = dict[str, Any]

# column -> value (equality) or column -> (operator, value)
Predicate = Mapping[str, Any]

OPERATORS = ("=", "!=", ">", ">=", "<", "<=")


class DatabaseError(Exception):
    """Base exception for connector errors."""


class ConnectivityError(DatabaseError):
    """Raised when a database cannot be reached at all."""


class TransientDatabaseError(DatabaseError):
    """Raised for errors that may succeed on retry (timeouts, locks, lost connections)."""


class SQLConnector(ABC):
    """
    Base class for database connectors.

    Subclasses implement the driver-specific pieces; the generic
    operations below are expressed in terms of them.
    """

    #: Short dialect name ("mysql", "sqlite")
    dialect: str = ""
    #: Parameter placeholder for the driver's paramstyle
    placeholder: str = "?"
    #: Statement prefix for insert-or-ignore semantics
    insert_ignore_verb: str = "INSERT OR IGNORE"

    # ------------------------------------------------------------------
    # Driver-specific
    # ------------------------------------------------------------------
    @abstractmethod
    def query(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        """Run a statement and return all rows as dicts."""

    @abstractmethod
    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Run a DDL/DML statement, commit, and return the affected row count."""

    @abstractmethod
    def execute_many(self, sql: str, params_list: list[Sequence[Any]]) -> int:
        """Run a statement for each parameter set in one transaction."""

    @abstractmethod
    def quote(self, identifier: str) -> str:
        """Quote a table or column name."""

    @abstractmethod
    def table_status(self) -> list[tuple[str, str | None]]:
        """List (table name, storage engine) pairs; engine is None for views."""

    @abstractmethod
    def primary_key_columns(self, table: str) -> list[str]:
        """Primary key columns in key order (empty if none)."""

    @abstractmethod
    def create_statement(self, table: str) -> str:
        """The CREATE TABLE statement for a table."""

    @abstractmethod
    def has_table(self, table: str) -> bool:
        """Whether a base table with this name exists."""

    @abstractmethod
    def close(self) -> None:
        """Close the underlying connection."""

    def __enter__(self) -> "SQLConnector":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Generic operations
    # ------------------------------------------------------------------
    def check_connection(self) -> int:
        """Touch the database and return its table count."""
        return len(self.table_status())

    def build_where(self, predicate: Predicate | None) -> tuple[str, list[Any]]:
        """Turn a predicate mapping into a WHERE clause and its parameters."""
        if not predicate:
            return "", []

        clauses: list[str] = []
        params: list[Any] = []
        for column, condition in predicate.items():
            if isinstance(condition, tuple):
                op, value = condition
                if op not in OPERATORS:
                    raise ValueError(f"Unsupported operator: {op!r}")
            else:
                op, value = "=", condition
            clauses.append(f"{self.quote(column)} {op} {self.placeholder}")
            params.append(value)

        return " WHERE " + " AND ".join(clauses), params

    def select_where(
        self,
        table: str,
        predicate: Predicate | None = None,
        order_by: str | None = None,
        limit: int | None = None,
    ) -> list[Row]:
        """SELECT * with an optional predicate, ascending order and limit."""
        where, params = self.build_where(predicate)
        sql = f"SELECT * FROM {self.quote(table)}{where}"
        if order_by:
            sql += f" ORDER BY {self.quote(order_by)} ASC"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"
        return self.query(sql, params)

    def find_one(self, table: str, predicate: Predicate) -> Row | None:
        rows = self.select_where(table, predicate, limit=1)
        return rows[0] if rows else None

    def max_value(self, table: str, column: str) -> Any:
        """MAX(column), or None for an empty table."""
        rows = self.query(
            f"SELECT MAX({self.quote(column)}) AS max_value FROM {self.quote(table)}"
        )
        return rows[0]["max_value"] if rows else None

    def insert_many(self, table: str, rows: Sequence[Row]) -> int:
        """
        Insert rows, ignoring those whose key already exists.

        Returns:
            Number of rows actually inserted
        """
        if not rows:
            return 0

        columns = list(rows[0].keys())
        col_str = ", ".join(self.quote(c) for c in columns)
        placeholders = ", ".join(self.placeholder for _ in columns)
        sql = (
            f"{self.insert_ignore_verb} INTO {self.quote(table)} "
            f"({col_str}) VALUES ({placeholders})"
        )
        return self.execute_many(sql, [tuple(row[c] for c in columns) for row in rows])

    def insert(self, table: str, fields: Mapping[str, Any]) -> int:
        """Plain INSERT of a single row (fails on key collision)."""
        columns = list(fields.keys())
        col_str = ", ".join(self.quote(c) for c in columns)
        placeholders = ", ".join(self.placeholder for _ in columns)
        sql = f"INSERT INTO {self.quote(table)} ({col_str}) VALUES ({placeholders})"
        return self.execute(sql, [fields[c] for c in columns])

    def update_where(
        self,
        table: str,
        predicate: Predicate,
        fields: Mapping[str, Any],
    ) -> int:
        if not fields:
            return 0
        assignments = ", ".join(
            f"{self.quote(c)} = {self.placeholder}" for c in fields
        )
        where, params = self.build_where(predicate)
        sql = f"UPDATE {self.quote(table)} SET {assignments}{where}"
        return self.execute(sql, [*fields.values(), *params])
