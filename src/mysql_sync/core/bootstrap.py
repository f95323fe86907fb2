"""
Table Bootstrapper - first-time setup of a table on the slave.

Creates the slave table from the master's definition when it is missing,
then records a checkpoint starting at cursor 0. A table that already
exists on the slave without a checkpoint (created by hand, or left over
from a lost checkpoint table) only gets the checkpoint.
"""

from __future__ import annotations

from mysql_sync.connectors.base import ConnectivityError, SQLConnector
from mysql_sync.core.checkpoint import CheckpointStore, SyncCheckpoint
from mysql_sync.core.schema import SchemaIntrospector, TableDescriptor
from mysql_sync.utils.logger import get_logger

logger = get_logger(__name__)


class BootstrapFailed(Exception):
    """Raised when a table could not be created or its checkpoint recorded."""

    def __init__(self, table: str, reason: str) -> None:
        super().__init__(f"Bootstrap of {table} failed: {reason}")
        self.table = table


class TableBootstrapper:
    """Bring master tables into a sync-ready state on the slave."""

    def __init__(
        self,
        source: SchemaIntrospector,
        target: SQLConnector,
        checkpoints: CheckpointStore,
    ) -> None:
        self.source = source
        self.target = target
        self.checkpoints = checkpoints

    def bootstrap(self, table: TableDescriptor, target_exists: bool) -> SyncCheckpoint:
        """
        Create the slave table (unless it exists) and its checkpoint.

        Args:
            table: Master table; primary_key is resolved if not yet set
            target_exists: Whether the slave already has the table

        Returns:
            The new checkpoint

        Raises:
            BootstrapFailed: on any error creating the table or checkpoint
            ConnectivityError: if a database became unreachable (not wrapped)
        """
        try:
            cursor_column = table.primary_key or self.source.primary_key_of(table.name)

            if target_exists:
                logger.info(f"Table {table.name} already exists on slave, adding checkpoint")
            else:
                logger.info(f"Create table {table.name}")
                self.target.execute(self.source.table_definition(table.name))

            checkpoint = self.checkpoints.create(
                SyncCheckpoint(table_name=table.name, cursor_column=cursor_column)
            )
        except ConnectivityError:
            raise
        except Exception as e:
            raise BootstrapFailed(table.name, str(e)) from e

        logger.info(f"Added table {table.name} (cursor column {cursor_column})")
        return checkpoint
