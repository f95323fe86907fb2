"""Utility modules for MySQL Sync."""

from mysql_sync.utils.logger import setup_logging, get_logger

__all__ = ["setup_logging", "get_logger"]
