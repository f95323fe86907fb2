"""
MySQL Database Connector.

Thin wrapper around mysql-connector-python exposing the collaborator
interface used by the sync core. Driver errors are translated into the
connector exception hierarchy so the engine can tell retryable failures
apart from fatal ones.
"""

from __future__ import annotations

from contextlib import contextmanager
from logging import getLogger
from typing import Any, Generator, Sequence

import mysql.connector
from mysql.connector import errors as mysql_errors

from mysql_sync.config import DatabaseDSN
from mysql_sync.connectors.base import (
    ConnectivityError,
    DatabaseError,
    Row,
    SQLConnector,
    TransientDatabaseError,
)

logger = getLogger(__name__)


class MySQLConnector(SQLConnector):
    """
    Connector for a single MySQL database.

    Example:
        with MySQLConnector(host="db1", port=3306, user="repl",
                            password="secret", database="shop") as conn:
            print(conn.check_connection(), "tables")
    """

    dialect = "mysql"
    placeholder = "%s"
    insert_ignore_verb = "INSERT IGNORE"

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        database: str,
        charset: str = "utf8",
        timeout: float = 30.0,
        **params: Any,
    ) -> None:
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.database = database
        self.charset = charset
        self.timeout = timeout
        self.params = params
        self._connection: Any = None

    @classmethod
    def from_dsn(cls, dsn: DatabaseDSN, timeout: float = 30.0) -> "MySQLConnector":
        return cls(
            host=dsn.host,
            port=dsn.port or 3306,
            user=dsn.username,
            password=dsn.password.get_secret_value(),
            database=dsn.database,
            charset=dsn.charset,
            timeout=timeout,
            **dsn.params,
        )

    def _create_connection(self) -> Any:
        try:
            conn = mysql.connector.connect(
                host=self.host,
                port=self.port,
                user=self.user,
                password=self.password,
                database=self.database,
                charset=self.charset,
                connection_timeout=int(self.timeout),
                autocommit=False,
                **self.params,
            )
        except mysql_errors.Error as e:
            raise ConnectivityError(
                f"Cannot connect to {self.user}@{self.host}:{self.port}/{self.database}: {e}"
            ) from e
        logger.debug(f"Connected to MySQL {self.host}:{self.port}/{self.database}")
        self._bound_statement_time(conn)
        return conn

    def _bound_statement_time(self, conn: Any) -> None:
        """Cap SELECT run time for the session at the connector timeout."""
        cursor = conn.cursor()
        try:
            cursor.execute(
                "SET SESSION max_execution_time = %s", (int(self.timeout * 1000),)
            )
        except mysql_errors.Error as e:
            # MariaDB and MySQL < 5.7.8 have no max_execution_time
            logger.warning(f"Statement time not bounded on {self.host}: {e}")
        finally:
            cursor.close()

    @contextmanager
    def cursor(self) -> Generator[Any, None, None]:
        """Dictionary cursor on the (lazily opened) connection."""
        if self._connection is None:
            self._connection = self._create_connection()

        cursor = self._connection.cursor(dictionary=True)
        try:
            yield cursor
        except (mysql_errors.OperationalError, mysql_errors.InterfaceError) as e:
            self._rollback()
            raise TransientDatabaseError(str(e)) from e
        except mysql_errors.Error as e:
            self._rollback()
            raise DatabaseError(str(e)) from e
        finally:
            cursor.close()

    def _rollback(self) -> None:
        try:
            self._connection.rollback()
        except mysql_errors.Error:
            # Connection is gone; reconnect on next use
            self._connection = None

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def quote(self, identifier: str) -> str:
        return "`" + identifier.replace("`", "``") + "`"

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[Row]:
        with self.cursor() as cursor:
            cursor.execute(sql, tuple(params))
            return list(cursor.fetchall())

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        with self.cursor() as cursor:
            cursor.execute(sql, tuple(params))
            self._connection.commit()
            return cursor.rowcount

    def execute_many(self, sql: str, params_list: list[Sequence[Any]]) -> int:
        with self.cursor() as cursor:
            cursor.executemany(sql, params_list)
            self._connection.commit()
            return cursor.rowcount

    def table_status(self) -> list[tuple[str, str | None]]:
        rows = self.query("SHOW TABLE STATUS")
        return [(row["Name"], row["Engine"] or None) for row in rows]

    def primary_key_columns(self, table: str) -> list[str]:
        rows = self.query(
            f"SHOW KEYS FROM {self.quote(table)} WHERE Key_name = 'PRIMARY'"
        )
        rows.sort(key=lambda row: row["Seq_in_index"])
        return [row["Column_name"] for row in rows]

    def create_statement(self, table: str) -> str:
        rows = self.query(f"SHOW CREATE TABLE {self.quote(table)}")
        return rows[0].get("Create Table", "") if rows else ""

    def has_table(self, table: str) -> bool:
        pattern = table.replace("\\", "\\\\").replace("_", "\\_").replace("%", "\\%")
        rows = self.query("SHOW TABLES LIKE %s", (pattern,))
        return len(rows) > 0
