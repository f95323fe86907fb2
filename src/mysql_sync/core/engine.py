"""
Sync Engine - Main orchestration for a sync run.

Coordinates all components to bring every master table up to date on
the slave:
- Schema introspector for the master table list and definitions
- Checkpoint store for per-table progress on the slave
- Bootstrapper for tables seen for the first time
- Fetcher/applier for the incremental catch-up loop

Each table goes through:

    Discover -> Bootstrap | Skip | CatchUp -> Done

Tables are processed one after another and independently: a failure is
recorded against that table and the run moves on. Only connectivity
errors abort the run.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from mysql_sync.config import SyncOptions
from mysql_sync.connectors.base import ConnectivityError, SQLConnector
from mysql_sync.core.bootstrap import TableBootstrapper
from mysql_sync.core.checkpoint import CheckpointStore, SyncCheckpoint
from mysql_sync.core.fetcher import BatchApplier, IncrementalFetcher
from mysql_sync.core.schema import NoPrimaryKey, SchemaIntrospector, TableDescriptor
from mysql_sync.utils.logger import get_logger

logger = get_logger(__name__)


class TableStatus(str, Enum):
    """Outcome of one table in a run."""

    BOOTSTRAPPED = "bootstrapped"
    CAUGHT_UP = "caught_up"
    UP_TO_DATE = "up_to_date"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class TableResult:
    """What happened to one table."""

    table: str
    status: TableStatus
    rows_synced: int = 0
    batches: int = 0
    cursor_value: Any = None
    message: str = ""


@dataclass
class SyncStats:
    """Statistics for a sync run."""

    tables_total: int = 0
    tables_processed: int = 0
    rows_synced: int = 0
    current_table: str = ""
    start_time: float = 0.0
    end_time: float = 0.0
    results: list[TableResult] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        """Duration in seconds."""
        if self.end_time and self.start_time:
            return self.end_time - self.start_time
        if self.start_time:
            return time.time() - self.start_time
        return 0.0

    @property
    def rows_per_second(self) -> float:
        """Processing rate."""
        duration = self.duration_seconds
        if duration > 0:
            return self.rows_synced / duration
        return 0.0

    @property
    def failed(self) -> bool:
        """True if at least one table failed."""
        return any(r.status == TableStatus.FAILED for r in self.results)

    @property
    def errors(self) -> list[str]:
        return [
            f"{r.table}: {r.message}"
            for r in self.results
            if r.status == TableStatus.FAILED
        ]

    def count(self, status: TableStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    def result_for(self, table: str) -> TableResult | None:
        for result in self.results:
            if result.table == table:
                return result
        return None


# Progress callback type
ProgressCallback = Callable[[SyncStats], None]


class SyncEngine:
    """
    Orchestrates one sync run between a master and a slave.

    Example:
        with SQLiteConnector("master.db", readonly=True) as master, \\
                SQLiteConnector("slave.db") as slave:
            engine = SyncEngine(master, slave, SyncOptions(limit=1000))
            stats = engine.run(on_progress=lambda s: print(s.rows_synced))
            if stats.failed:
                ...
    """

    def __init__(
        self,
        source: SQLConnector,
        target: SQLConnector,
        options: SyncOptions | None = None,
    ) -> None:
        """
        Initialize sync engine.

        Args:
            source: Master database connector
            target: Slave database connector
            options: Sync options (limit, retries, table filters)
        """
        self.source = source
        self.target = target
        self.options = options or SyncOptions()

        self.introspector = SchemaIntrospector(
            source, exclude=[self.options.runtime_table]
        )
        self.checkpoints = CheckpointStore(target, self.options.runtime_table)
        self.bootstrapper = TableBootstrapper(
            self.introspector, target, self.checkpoints
        )
        self.fetcher = IncrementalFetcher(
            source,
            max_retries=self.options.max_retries,
            retry_delay=self.options.retry_delay_seconds,
        )
        self.applier = BatchApplier(
            target,
            self.checkpoints,
            max_retries=self.options.max_retries,
            retry_delay=self.options.retry_delay_seconds,
        )

    def check_connections(self) -> tuple[int, int]:
        """
        Touch both databases and make sure the checkpoint table exists.

        Returns:
            (master table count, slave table count)

        Raises:
            ConnectivityError: if either side cannot be reached
        """
        master_tables = self.source.check_connection()
        logger.info(f"Master database: {master_tables} tables")
        slave_tables = self.target.check_connection()
        logger.info(f"Slave database: {slave_tables} tables")
        self.checkpoints.ensure_table()
        return master_tables, slave_tables

    def run(self, on_progress: ProgressCallback | None = None) -> SyncStats:
        """
        Sync every master table once.

        Args:
            on_progress: Optional progress callback

        Returns:
            SyncStats with one TableResult per master table
        """
        stats = SyncStats()
        stats.start_time = time.time()

        self.check_connections()

        tables = self.introspector.list_tables()
        stats.tables_total = len(tables)
        if on_progress:
            on_progress(stats)

        for table in tables:
            stats.current_table = table.name
            try:
                result = self.sync_table(table, stats, on_progress)
            except ConnectivityError:
                raise
            except Exception as e:
                logger.error(f"Table {table.name} failed: {e}", exc_info=True)
                result = TableResult(table.name, TableStatus.FAILED, message=str(e))

            stats.results.append(result)
            stats.tables_processed += 1
            if on_progress:
                on_progress(stats)

        stats.current_table = ""
        stats.end_time = time.time()
        logger.info(
            f"Run finished: {stats.count(TableStatus.BOOTSTRAPPED)} bootstrapped, "
            f"{stats.count(TableStatus.CAUGHT_UP)} caught up, "
            f"{stats.count(TableStatus.UP_TO_DATE)} up to date, "
            f"{stats.count(TableStatus.SKIPPED)} skipped, "
            f"{stats.count(TableStatus.FAILED)} failed"
        )
        return stats

    def sync_table(
        self,
        table: TableDescriptor,
        stats: SyncStats | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TableResult:
        """Run one table through discover/bootstrap/catch-up."""
        if not table.has_engine:
            logger.info(f"{table.name} has no engine, skipping")
            return TableResult(table.name, TableStatus.SKIPPED, message="no engine")

        if not self._selected(table.name):
            logger.info(f"{table.name} excluded, skipping")
            return TableResult(table.name, TableStatus.SKIPPED, message="excluded")

        checkpoint = self.checkpoints.get(table.name)
        if checkpoint is None:
            try:
                table.primary_key = self.introspector.primary_key_of(table.name)
            except NoPrimaryKey as e:
                logger.warning(f"{e}, skipping")
                return TableResult(table.name, TableStatus.SKIPPED, message="no primary key")

            checkpoint = self.bootstrapper.bootstrap(
                table, target_exists=self.target.has_table(table.name)
            )
            return TableResult(
                table.name,
                TableStatus.BOOTSTRAPPED,
                cursor_value=checkpoint.last_cursor_value,
            )

        return self.catch_up(table, checkpoint, stats, on_progress)

    def catch_up(
        self,
        table: TableDescriptor,
        checkpoint: SyncCheckpoint,
        stats: SyncStats | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> TableResult:
        """
        Fetch and apply batches until the master has nothing newer.

        Skips the table without fetching when the master's maximum cursor
        value is not beyond the checkpoint.
        """
        cursor_column = checkpoint.cursor_column
        if not cursor_column:
            try:
                cursor_column = self.introspector.primary_key_of(table.name)
            except NoPrimaryKey as e:
                logger.warning(f"{e}, skipping")
                return TableResult(table.name, TableStatus.SKIPPED, message="no primary key")
            checkpoint.cursor_column = cursor_column

        logger.info(f"Run table {table.name} (cursor column {cursor_column})")
        unique = self.introspector.cursor_is_unique(table.name, cursor_column)
        max_value = self.fetcher.max_cursor_value(table.name, cursor_column)
        if max_value is None or max_value <= checkpoint.last_cursor_value:
            logger.info(f"Skip table {table.name}: up to date at {checkpoint.last_cursor_value}")
            return TableResult(
                table.name,
                TableStatus.UP_TO_DATE,
                cursor_value=checkpoint.last_cursor_value,
            )

        result = TableResult(
            table.name, TableStatus.CAUGHT_UP, cursor_value=checkpoint.last_cursor_value
        )
        budget = self.options.max_batches_per_table

        while budget is None or result.batches < budget:
            batch = self.fetcher.fetch_batch(
                table.name,
                cursor_column,
                result.cursor_value,
                self.options.limit,
                unique=unique,
            )
            if not batch:
                break

            written, advanced = self.applier.apply_and_advance(batch)
            result.batches += 1
            result.rows_synced += written
            result.cursor_value = advanced.last_cursor_value
            logger.info(
                f"Table {table.name}: batch {result.batches}, "
                f"{written}/{len(batch)} rows written, cursor at {result.cursor_value}"
            )

            if stats is not None:
                stats.rows_synced += written
                if on_progress:
                    on_progress(stats)
        else:
            if batch.full:
                logger.warning(
                    f"Table {table.name}: batch budget of {budget} reached, "
                    "remaining rows left for the next run"
                )

        logger.info(f"Table {table.name} added {result.rows_synced} rows")
        return result

    def _selected(self, name: str) -> bool:
        if self.options.tables and name not in self.options.tables:
            return False
        return name not in self.options.exclude_tables
