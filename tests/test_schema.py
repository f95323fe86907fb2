"""Tests for the schema introspector."""

from pathlib import Path

import pytest

from mysql_sync.connectors.sqlite import SQLiteConnector
from mysql_sync.core.schema import NoPrimaryKey, SchemaIntrospector, TableDescriptor

from conftest import create_orders, run_sql


@pytest.fixture
def introspector(master_path: Path, master: SQLiteConnector) -> SchemaIntrospector:
    create_orders(master_path, rows=3)
    run_sql(
        master_path,
        "CREATE TABLE pairs (a INTEGER, b INTEGER, PRIMARY KEY (b, a))",
        "CREATE TABLE notes (body TEXT)",
        "CREATE VIEW recent AS SELECT * FROM orders",
        "CREATE TABLE mysql_sync_runtime (id INTEGER PRIMARY KEY)",
    )
    return SchemaIntrospector(master, exclude=["mysql_sync_runtime"])


class TestSchemaIntrospector:
    """Tests for SchemaIntrospector."""

    def test_list_tables(self, introspector: SchemaIntrospector) -> None:
        """Views are listed without an engine; excluded tables are not listed."""
        tables = {t.name: t for t in introspector.list_tables()}
        assert set(tables) == {"orders", "pairs", "notes", "recent"}
        assert tables["orders"].has_engine
        assert not tables["recent"].has_engine

    def test_primary_key_of(self, introspector: SchemaIntrospector) -> None:
        assert introspector.primary_key_of("orders") == "id"

    def test_composite_key_takes_first_component(self, introspector: SchemaIntrospector) -> None:
        assert introspector.primary_key_of("pairs") == "b"

    def test_cursor_is_unique(self, introspector: SchemaIntrospector) -> None:
        assert introspector.cursor_is_unique("orders", "id")
        assert not introspector.cursor_is_unique("pairs", "b")
        assert not introspector.cursor_is_unique("notes", "rowid")

    def test_no_primary_key(self, introspector: SchemaIntrospector) -> None:
        with pytest.raises(NoPrimaryKey) as exc_info:
            introspector.primary_key_of("notes")
        assert exc_info.value.table == "notes"

    def test_table_definition_is_guarded(
        self, introspector: SchemaIntrospector, slave: SQLiteConnector
    ) -> None:
        """The DDL can be applied to the slave any number of times."""
        ddl = introspector.table_definition("orders")
        assert ddl.startswith("CREATE TABLE IF NOT EXISTS ")
        assert ddl.count("IF NOT EXISTS") == 1

        slave.execute(ddl)
        slave.execute(ddl)
        assert slave.has_table("orders")

    def test_table_definition_missing(self, introspector: SchemaIntrospector) -> None:
        with pytest.raises(ValueError):
            introspector.table_definition("recent")

    def test_table_exists(self, introspector: SchemaIntrospector) -> None:
        assert introspector.table_exists("orders")
        assert not introspector.table_exists("missing")


class TestTableDescriptor:
    """Tests for TableDescriptor dataclass."""

    def test_descriptor_defaults(self) -> None:
        table = TableDescriptor(name="orders")
        assert table.engine is None
        assert table.primary_key is None
        assert not table.has_engine
