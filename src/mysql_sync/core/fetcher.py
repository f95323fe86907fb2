"""
Incremental Fetcher and Applier.

A batch is the rows of a master table whose cursor column is strictly
greater than the checkpoint value, in ascending cursor order, capped at
the configured limit. Applying a batch uses insert-or-ignore, so a batch
that overlaps rows already on the slave (a replay after a lost
checkpoint update) does not create duplicates.

Transient database errors are retried with the same cursor; fetches are
read-only and applies are idempotent.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from mysql_sync.connectors.base import Row, SQLConnector, TransientDatabaseError
from mysql_sync.core.checkpoint import CheckpointStore, SyncCheckpoint
from mysql_sync.utils.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class RowBatch:
    """Rows fetched from the master, ascending by cursor column."""

    table: str
    cursor_column: str
    rows: list[Row] = field(default_factory=list)
    #: The fetch hit its limit, so more rows may be waiting
    full: bool = False

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def max_cursor_value(self) -> Any:
        """Cursor value of the last row, or None for an empty batch."""
        if not self.rows:
            return None
        return self.rows[-1][self.cursor_column]


def with_retries(
    operation: Callable[[], T],
    description: str,
    max_retries: int = 3,
    retry_delay: float = 1.0,
) -> T:
    """
    Run an operation, retrying on TransientDatabaseError.

    The delay grows linearly with the attempt number.
    """
    for attempt in range(max_retries + 1):
        try:
            return operation()
        except TransientDatabaseError as e:
            if attempt >= max_retries:
                raise
            logger.warning(
                f"{description} failed ({e}), retry {attempt + 1}/{max_retries}"
            )
            time.sleep(retry_delay * (attempt + 1))
    raise AssertionError("unreachable")


class IncrementalFetcher:
    """Read bounded cursor windows from the master."""

    def __init__(
        self,
        source: SQLConnector,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self.source = source
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def max_cursor_value(self, table: str, cursor_column: str) -> Any:
        return with_retries(
            lambda: self.source.max_value(table, cursor_column),
            f"MAX({cursor_column}) on {table}",
            self.max_retries,
            self.retry_delay,
        )

    def fetch_batch(
        self,
        table: str,
        cursor_column: str,
        after_value: Any,
        limit: int,
        unique: bool = True,
    ) -> RowBatch:
        """
        Rows with cursor_column > after_value, ascending, at most limit of them.

        When the cursor column is not unique (first column of a composite
        key) a batch always ends on a whole cursor value: a full batch
        drops its trailing value, which is fetched whole by the next call.
        If the batch holds a single value, that value's rows are all
        returned even beyond limit.

        Returns an empty batch when there is nothing new.
        """
        rows = with_retries(
            lambda: self.source.select_where(
                table,
                {cursor_column: (">", after_value)},
                order_by=cursor_column,
                limit=limit,
            ),
            f"Fetch {table} after {after_value}",
            self.max_retries,
            self.retry_delay,
        )
        rows = rows[:limit]
        full = len(rows) == limit

        if full and not unique:
            last_value = rows[-1][cursor_column]
            head = [row for row in rows if row[cursor_column] != last_value]
            if head:
                rows = head
            else:
                rows = with_retries(
                    lambda: self.source.select_where(
                        table, {cursor_column: last_value}, order_by=cursor_column
                    ),
                    f"Fetch {table} at {last_value}",
                    self.max_retries,
                    self.retry_delay,
                )
                logger.debug(
                    f"{table}: {len(rows)} rows share {cursor_column}={last_value}, "
                    "fetched as one batch"
                )

        return RowBatch(table=table, cursor_column=cursor_column, rows=rows, full=full)


class BatchApplier:
    """Write batches to the slave and advance their checkpoints."""

    def __init__(
        self,
        target: SQLConnector,
        checkpoints: CheckpointStore,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ) -> None:
        self.target = target
        self.checkpoints = checkpoints
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def apply(self, table: str, batch: RowBatch) -> int:
        """
        Insert a batch, skipping rows whose key is already present.

        Returns:
            Number of rows actually written
        """
        if not batch:
            return 0
        return with_retries(
            lambda: self.target.insert_many(table, batch.rows),
            f"Insert into {table}",
            self.max_retries,
            self.retry_delay,
        )

    def apply_and_advance(self, batch: RowBatch) -> tuple[int, SyncCheckpoint | None]:
        """
        Apply a batch and move the table's checkpoint to its last cursor value.

        The checkpoint moves whenever the batch is non-empty, even if every
        row was already present, so a replayed window is not fetched again.
        """
        if not batch:
            return 0, None

        written = self.apply(batch.table, batch)
        checkpoint = with_retries(
            lambda: self.checkpoints.advance(
                batch.table, batch.max_cursor_value, written
            ),
            f"Advance checkpoint of {batch.table}",
            self.max_retries,
            self.retry_delay,
        )
        return written, checkpoint
