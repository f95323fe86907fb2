"""
Checkpoint Store - per-table sync progress kept in the slave database.

One row per synced table records the cursor column pinned at bootstrap
time, the last cursor value applied and a running row count. The store
creates its own table on first use.

Progress only ever moves forward: advance() never lowers the stored
cursor value. Rows re-applied after a lost checkpoint update are absorbed
by the insert-or-ignore apply path.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from mysql_sync.connectors.base import Row, SQLConnector
from mysql_sync.utils.logger import get_logger

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_DDL = {
    "mysql": """CREATE TABLE IF NOT EXISTS {table} (
  `id` int(11) unsigned NOT NULL AUTO_INCREMENT,
  `tableName` varchar(64) NOT NULL DEFAULT '',
  `addDate` datetime NOT NULL,
  `lastTime` datetime NOT NULL,
  `pkId` varchar(64) NOT NULL DEFAULT '',
  `lastPkId` bigint NOT NULL DEFAULT 0,
  `rows` bigint NOT NULL DEFAULT 0,
  PRIMARY KEY (`id`),
  UNIQUE KEY `tableName` (`tableName`)
) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4""",
    "sqlite": """CREATE TABLE IF NOT EXISTS {table} (
  "id" INTEGER PRIMARY KEY AUTOINCREMENT,
  "tableName" TEXT NOT NULL UNIQUE,
  "addDate" TEXT NOT NULL,
  "lastTime" TEXT NOT NULL,
  "pkId" TEXT NOT NULL DEFAULT '',
  "lastPkId" INTEGER NOT NULL DEFAULT 0,
  "rows" INTEGER NOT NULL DEFAULT 0
)""",
}


class DuplicateCheckpoint(Exception):
    """Raised when creating a checkpoint for a table that already has one."""

    def __init__(self, table: str) -> None:
        super().__init__(f"Checkpoint already exists for table {table}")
        self.table = table


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0, tzinfo=None)


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.strptime(str(value), TIMESTAMP_FORMAT)


@dataclass
class SyncCheckpoint:
    """Sync progress for one table."""

    table_name: str
    cursor_column: str
    last_cursor_value: int = 0
    total_rows_synced: int = 0
    added_at: datetime | None = None
    last_synced_at: datetime | None = None

    def to_row(self) -> dict[str, Any]:
        """Column mapping for the checkpoint table."""
        return {
            "tableName": self.table_name,
            "addDate": self.added_at.strftime(TIMESTAMP_FORMAT),
            "lastTime": self.last_synced_at.strftime(TIMESTAMP_FORMAT),
            "pkId": self.cursor_column,
            "lastPkId": self.last_cursor_value,
            "rows": self.total_rows_synced,
        }

    @classmethod
    def from_row(cls, row: Row) -> "SyncCheckpoint":
        return cls(
            table_name=row["tableName"],
            cursor_column=row["pkId"] or "",
            last_cursor_value=int(row["lastPkId"] or 0),
            total_rows_synced=int(row["rows"] or 0),
            added_at=_to_datetime(row["addDate"]),
            last_synced_at=_to_datetime(row["lastTime"]),
        )


class CheckpointStore:
    """
    Checkpoint persistence in the slave database.

    Example:
        store = CheckpointStore(slave)
        store.ensure_table()

        checkpoint = store.get("orders")
        if checkpoint is None:
            store.create(SyncCheckpoint("orders", cursor_column="id"))

        store.advance("orders", new_cursor_value=5000, rows_added=5000)
    """

    def __init__(self, db: SQLConnector, table: str = "mysql_sync_runtime") -> None:
        self.db = db
        self.table = table
        self._ready = False

    def ensure_table(self) -> None:
        """Create the checkpoint table if it does not exist yet."""
        if self._ready:
            return
        if self.db.has_table(self.table):
            self._ready = True
            return
        ddl = _DDL.get(self.db.dialect)
        if ddl is None:
            raise ValueError(f"No checkpoint table layout for dialect {self.db.dialect!r}")
        self.db.execute(ddl.format(table=self.db.quote(self.table)))
        self._ready = True
        logger.debug(f"Checkpoint table {self.table} ready")

    def get(self, table_name: str) -> SyncCheckpoint | None:
        self.ensure_table()
        row = self.db.find_one(self.table, {"tableName": table_name})
        return SyncCheckpoint.from_row(row) if row else None

    def all(self) -> list[SyncCheckpoint]:
        """Every checkpoint, ordered by table name."""
        self.ensure_table()
        rows = self.db.select_where(self.table, order_by="tableName")
        return [SyncCheckpoint.from_row(row) for row in rows]

    def create(self, checkpoint: SyncCheckpoint) -> SyncCheckpoint:
        """
        Insert a new checkpoint.

        Raises:
            DuplicateCheckpoint: if the table already has one
        """
        self.ensure_table()
        if self.get(checkpoint.table_name) is not None:
            raise DuplicateCheckpoint(checkpoint.table_name)

        now = utcnow()
        checkpoint.added_at = checkpoint.added_at or now
        checkpoint.last_synced_at = checkpoint.last_synced_at or now
        self.db.insert(self.table, checkpoint.to_row())
        logger.debug(
            f"Created checkpoint for {checkpoint.table_name} "
            f"(cursor {checkpoint.cursor_column})"
        )
        return checkpoint

    def advance(
        self,
        table_name: str,
        new_cursor_value: int,
        rows_added: int,
        timestamp: datetime | None = None,
    ) -> SyncCheckpoint:
        """
        Move a table's cursor forward and add to its row count.

        The stored cursor is never lowered.

        Raises:
            KeyError: if the table has no checkpoint
        """
        current = self.get(table_name)
        if current is None:
            raise KeyError(f"No checkpoint for table {table_name}")

        current.last_cursor_value = max(current.last_cursor_value, int(new_cursor_value))
        current.total_rows_synced += rows_added
        current.last_synced_at = timestamp or utcnow()

        self.db.update_where(
            self.table,
            {"tableName": table_name},
            {
                "lastPkId": current.last_cursor_value,
                "rows": current.total_rows_synced,
                "lastTime": current.last_synced_at.strftime(TIMESTAMP_FORMAT),
            },
        )
        return current
