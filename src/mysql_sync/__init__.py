"""MySQL Sync - incremental one-way table replication between databases."""

__version__ = "1.0.0"
__author__ = "MySQL Sync Contributors"

from mysql_sync.config import ConfigurationError, Settings, SyncOptions

__all__ = ["ConfigurationError", "Settings", "SyncOptions", "__version__"]
