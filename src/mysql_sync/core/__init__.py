"""Core sync engine components for MySQL Sync."""

from mysql_sync.core.bootstrap import BootstrapFailed, TableBootstrapper
from mysql_sync.core.checkpoint import CheckpointStore, DuplicateCheckpoint, SyncCheckpoint
from mysql_sync.core.engine import SyncEngine, SyncStats, TableResult, TableStatus
from mysql_sync.core.fetcher import BatchApplier, IncrementalFetcher, RowBatch
from mysql_sync.core.schema import NoPrimaryKey, SchemaIntrospector, TableDescriptor

__all__ = [
    "BatchApplier",
    "BootstrapFailed",
    "CheckpointStore",
    "DuplicateCheckpoint",
    "IncrementalFetcher",
    "NoPrimaryKey",
    "RowBatch",
    "SchemaIntrospector",
    "SyncCheckpoint",
    "SyncEngine",
    "SyncStats",
    "TableBootstrapper",
    "TableDescriptor",
    "TableResult",
    "TableStatus",
]
