"""Shared fixtures: real SQLite master/slave databases on disk."""

import sqlite3
from pathlib import Path
from typing import Iterator

import pytest

from mysql_sync.config import SyncOptions
from mysql_sync.connectors.sqlite import SQLiteConnector


def create_orders(path: Path, rows: int = 0, start: int = 1, name: str = "orders") -> None:
    """Create an orders-like table (if needed) and append rows start..start+rows-1."""
    conn = sqlite3.connect(path)
    conn.execute(
        f"""
        CREATE TABLE IF NOT EXISTS "{name}" (
            id INTEGER PRIMARY KEY,
            customer TEXT NOT NULL,
            amount REAL
        )
        """
    )
    conn.executemany(
        f'INSERT INTO "{name}" (id, customer, amount) VALUES (?, ?, ?)',
        [(i, f"customer-{i}", i * 1.5) for i in range(start, start + rows)],
    )
    conn.commit()
    conn.close()


def run_sql(path: Path, *statements: str) -> None:
    conn = sqlite3.connect(path)
    for sql in statements:
        conn.execute(sql)
    conn.commit()
    conn.close()


def table_ids(path: Path, name: str = "orders") -> list[int]:
    conn = sqlite3.connect(path)
    try:
        return [row[0] for row in conn.execute(f'SELECT id FROM "{name}" ORDER BY id')]
    finally:
        conn.close()


def table_rows(path: Path, name: str = "orders") -> list[tuple]:
    conn = sqlite3.connect(path)
    try:
        return conn.execute(f'SELECT * FROM "{name}" ORDER BY id').fetchall()
    finally:
        conn.close()


@pytest.fixture
def master_path(tmp_path: Path) -> Path:
    path = tmp_path / "master.db"
    sqlite3.connect(path).close()
    return path


@pytest.fixture
def slave_path(tmp_path: Path) -> Path:
    path = tmp_path / "slave.db"
    sqlite3.connect(path).close()
    return path


@pytest.fixture
def master(master_path: Path) -> Iterator[SQLiteConnector]:
    conn = SQLiteConnector(master_path, readonly=True)
    yield conn
    conn.close()


@pytest.fixture
def slave(slave_path: Path) -> Iterator[SQLiteConnector]:
    conn = SQLiteConnector(slave_path)
    yield conn
    conn.close()


@pytest.fixture
def options() -> SyncOptions:
    return SyncOptions(limit=5000, retry_delay_seconds=0.0)
