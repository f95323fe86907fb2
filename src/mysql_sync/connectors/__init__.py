"""Database connectors for MySQL Sync."""

from mysql_sync.config import ConfigurationError, DatabaseDSN
from mysql_sync.connectors.base import (
    ConnectivityError,
    DatabaseError,
    SQLConnector,
    TransientDatabaseError,
)
from mysql_sync.connectors.mysql import MySQLConnector
from mysql_sync.connectors.sqlite import SQLiteConnector


def connect(dsn: DatabaseDSN, readonly: bool = False, timeout: float = 30.0) -> SQLConnector:
    """Build a connector for a parsed DSN."""
    if dsn.scheme == "mysql":
        return MySQLConnector.from_dsn(dsn, timeout=timeout)
    if dsn.scheme == "sqlite":
        return SQLiteConnector.from_dsn(dsn, readonly=readonly, timeout=timeout)
    raise ConfigurationError(f"Unsupported database scheme: {dsn.scheme!r}")


__all__ = [
    "ConnectivityError",
    "DatabaseError",
    "MySQLConnector",
    "SQLConnector",
    "SQLiteConnector",
    "TransientDatabaseError",
    "connect",
]
