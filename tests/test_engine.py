"""Tests for the sync engine (per-table state machine and catch-up loop)."""

import logging
from pathlib import Path

import pytest

from mysql_sync.config import SyncOptions
from mysql_sync.connectors.base import ConnectivityError, DatabaseError
from mysql_sync.connectors.sqlite import SQLiteConnector
from mysql_sync.core.checkpoint import CheckpointStore
from mysql_sync.core.engine import SyncEngine, SyncStats, TableStatus

from conftest import create_orders, run_sql, table_ids, table_rows


def count_fetches(engine: SyncEngine, monkeypatch: pytest.MonkeyPatch) -> list[tuple]:
    """Record every fetch_batch call made by the engine."""
    calls: list[tuple] = []
    real_fetch = engine.fetcher.fetch_batch

    def spy(table, cursor_column, after_value, limit, **kwargs):
        calls.append((table, after_value))
        return real_fetch(table, cursor_column, after_value, limit, **kwargs)

    monkeypatch.setattr(engine.fetcher, "fetch_batch", spy)
    return calls


class TestBootstrap:
    """First sight of a table."""

    def test_new_table_is_created_not_copied(
        self, master_path: Path, slave_path: Path, master, slave, options
    ) -> None:
        """The first run creates the table and checkpoint; rows follow next run."""
        create_orders(master_path, rows=3)

        stats = SyncEngine(master, slave, options).run()

        result = stats.result_for("orders")
        assert result.status == TableStatus.BOOTSTRAPPED
        assert slave.has_table("orders")
        assert table_ids(slave_path) == []

        checkpoint = CheckpointStore(slave).get("orders")
        assert checkpoint.cursor_column == "id"
        assert checkpoint.last_cursor_value == 0

    def test_existing_slave_table_gets_checkpoint_only(
        self, master_path: Path, slave_path: Path, master, slave, options
    ) -> None:
        """A table created on the slave by hand is adopted, not recreated."""
        create_orders(master_path, rows=5)
        create_orders(slave_path, rows=2)

        stats = SyncEngine(master, slave, options).run()
        assert stats.result_for("orders").status == TableStatus.BOOTSTRAPPED
        assert table_ids(slave_path) == [1, 2]

        stats = SyncEngine(master, slave, options).run()
        assert stats.result_for("orders").status == TableStatus.CAUGHT_UP
        assert table_ids(slave_path) == [1, 2, 3, 4, 5]
        assert stats.rows_synced == 3

    def test_bootstrap_is_idempotent(
        self, master_path: Path, master, slave, options
    ) -> None:
        """A second run never bootstraps the same table again."""
        create_orders(master_path, rows=0)
        SyncEngine(master, slave, options).run()
        stats = SyncEngine(master, slave, options).run()

        assert stats.result_for("orders").status == TableStatus.UP_TO_DATE
        assert len(CheckpointStore(slave).all()) == 1


class TestCatchUp:
    """Incremental copy after bootstrap."""

    @pytest.mark.parametrize("rows", [0, 1, 5000, 5001])
    def test_bootstrap_then_catch_up_copies_everything(
        self,
        rows: int,
        master_path: Path,
        slave_path: Path,
        master,
        slave,
        options,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """After bootstrap plus one catch-up run the slave equals the master."""
        create_orders(master_path, rows=rows)
        SyncEngine(master, slave, options).run()

        engine = SyncEngine(master, slave, options)
        fetches = count_fetches(engine, monkeypatch)
        stats = engine.run()

        assert table_rows(slave_path) == table_rows(master_path)
        assert stats.rows_synced == rows
        checkpoint = CheckpointStore(slave).get("orders")
        assert checkpoint.last_cursor_value == rows
        assert checkpoint.total_rows_synced == rows

        # one fetch per batch plus the final empty one; none for an empty table
        expected_fetches = 0 if rows == 0 else -(-rows // options.limit) + 1
        assert len(fetches) == expected_fetches

    def test_up_to_date_table_is_not_fetched(
        self, master_path: Path, master, slave, options, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Max cursor equal to the checkpoint means zero fetches."""
        create_orders(master_path, rows=4)
        SyncEngine(master, slave, options).run()
        SyncEngine(master, slave, options).run()

        engine = SyncEngine(master, slave, options)
        fetches = count_fetches(engine, monkeypatch)
        stats = engine.run()

        assert fetches == []
        result = stats.result_for("orders")
        assert result.status == TableStatus.UP_TO_DATE
        assert result.cursor_value == 4

    def test_new_rows_are_picked_up(
        self, master_path: Path, slave_path: Path, master, slave, options
    ) -> None:
        create_orders(master_path, rows=3)
        SyncEngine(master, slave, options).run()
        SyncEngine(master, slave, options).run()

        create_orders(master_path, rows=2, start=4)
        stats = SyncEngine(master, slave, options).run()

        assert stats.result_for("orders").rows_synced == 2
        assert table_ids(slave_path) == [1, 2, 3, 4, 5]

    def test_cursor_is_monotonic(
        self, master_path: Path, master, slave, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Each batch moves the checkpoint forward to the highest applied key."""
        create_orders(master_path, rows=7)
        options = SyncOptions(limit=2, retry_delay_seconds=0.0)
        SyncEngine(master, slave, options).run()

        engine = SyncEngine(master, slave, options)
        seen: list[int] = []
        real_apply = engine.applier.apply_and_advance

        def recording_apply(batch):
            written, checkpoint = real_apply(batch)
            seen.append(checkpoint.last_cursor_value)
            assert checkpoint.last_cursor_value == max(r["id"] for r in batch.rows)
            return written, checkpoint

        monkeypatch.setattr(engine.applier, "apply_and_advance", recording_apply)
        stats = engine.run()

        assert seen == [2, 4, 6, 7]
        assert seen == sorted(seen)
        assert stats.result_for("orders").batches == 4

    def test_batch_budget(self, master_path: Path, slave_path: Path, master, slave) -> None:
        """A run stops after max_batches_per_table and the next run resumes."""
        create_orders(master_path, rows=5)
        options = SyncOptions(limit=2, max_batches_per_table=1, retry_delay_seconds=0.0)
        SyncEngine(master, slave, options).run()

        stats = SyncEngine(master, slave, options).run()
        assert stats.result_for("orders").batches == 1
        assert table_ids(slave_path) == [1, 2]

        SyncEngine(master, slave, options).run()
        assert table_ids(slave_path) == [1, 2, 3, 4]

    @pytest.mark.parametrize(
        "rows, limit",
        [
            ([(1, 1), (1, 2), (1, 3), (2, 1), (2, 2)], 2),
            ([(1, 1), (2, 1), (2, 2), (3, 1)], 2),
            ([(1, 1), (1, 2), (2, 1)], 1),
            ([(1, n) for n in range(1, 8)] + [(2, 1)], 3),
        ],
    )
    def test_composite_key_groups_are_not_split(
        self, rows: list[tuple[int, int]], limit: int, master_path: Path, master, slave
    ) -> None:
        """Rows sharing a cursor value are copied together even across batch limits."""
        run_sql(
            master_path,
            "CREATE TABLE lines (order_id INTEGER, line_no INTEGER, "
            "PRIMARY KEY (order_id, line_no))",
            *(f"INSERT INTO lines VALUES ({a}, {b})" for a, b in rows),
        )
        options = SyncOptions(limit=limit, retry_delay_seconds=0.0)
        SyncEngine(master, slave, options).run()

        stats = SyncEngine(master, slave, options).run()

        copied = slave.query("SELECT order_id, line_no FROM lines ORDER BY order_id, line_no")
        assert [(r["order_id"], r["line_no"]) for r in copied] == rows
        assert stats.result_for("lines").rows_synced == len(rows)
        assert CheckpointStore(slave).get("lines").last_cursor_value == rows[-1][0]

    def test_budget_warning_only_when_rows_remain(
        self, master_path: Path, master, slave, caplog: pytest.LogCaptureFixture
    ) -> None:
        create_orders(master_path, rows=3)
        options = SyncOptions(limit=2, max_batches_per_table=2, retry_delay_seconds=0.0)
        SyncEngine(master, slave, options).run()

        with caplog.at_level(logging.WARNING, logger="mysql_sync"):
            SyncEngine(master, slave, options).run()
        assert "batch budget" not in caplog.text

        create_orders(master_path, rows=5, start=4)
        with caplog.at_level(logging.WARNING, logger="mysql_sync"):
            SyncEngine(master, slave, options).run()
        assert "batch budget of 2 reached" in caplog.text


class TestSkipsAndFailures:
    """Per-table isolation."""

    def test_views_and_keyless_tables_are_skipped(
        self, master_path: Path, slave_path: Path, master, slave, options
    ) -> None:
        """A table without a primary key does not stop the others."""
        create_orders(master_path, rows=2)
        run_sql(
            master_path,
            "CREATE TABLE event_log (message TEXT)",
            "INSERT INTO event_log VALUES ('hello')",
            "CREATE VIEW big_orders AS SELECT * FROM orders WHERE amount > 2",
        )

        stats = SyncEngine(master, slave, options).run()

        assert stats.result_for("event_log").status == TableStatus.SKIPPED
        assert stats.result_for("event_log").message == "no primary key"
        assert stats.result_for("big_orders").status == TableStatus.SKIPPED
        assert stats.result_for("big_orders").message == "no engine"
        assert stats.result_for("orders").status == TableStatus.BOOTSTRAPPED
        assert not slave.has_table("event_log")
        assert not stats.failed

        SyncEngine(master, slave, options).run()
        assert table_ids(slave_path) == [1, 2]

    def test_excluded_tables(self, master_path: Path, master, slave) -> None:
        create_orders(master_path, rows=1)
        create_orders(master_path, rows=1, name="audit")
        options = SyncOptions(exclude_tables=["audit"], retry_delay_seconds=0.0)

        stats = SyncEngine(master, slave, options).run()

        assert stats.result_for("audit").status == TableStatus.SKIPPED
        assert stats.result_for("audit").message == "excluded"
        assert not slave.has_table("audit")

    def test_table_filter(self, master_path: Path, master, slave) -> None:
        create_orders(master_path, rows=1)
        create_orders(master_path, rows=1, name="audit")
        options = SyncOptions(tables=["audit"], retry_delay_seconds=0.0)

        stats = SyncEngine(master, slave, options).run()

        assert stats.result_for("audit").status == TableStatus.BOOTSTRAPPED
        assert stats.result_for("orders").status == TableStatus.SKIPPED

    def test_failed_table_does_not_stop_run(
        self, master_path: Path, slave_path: Path, master, slave, options
    ) -> None:
        """A table whose slave copy vanished fails alone; the run reports failure."""
        create_orders(master_path, rows=2, name="a_orders")
        create_orders(master_path, rows=2)
        SyncEngine(master, slave, options).run()
        slave.execute('DROP TABLE "a_orders"')

        stats = SyncEngine(master, slave, options).run()

        assert stats.result_for("a_orders").status == TableStatus.FAILED
        assert "a_orders" in stats.errors[0]
        assert stats.result_for("orders").status == TableStatus.CAUGHT_UP
        assert table_ids(slave_path) == [1, 2]
        assert stats.failed
        assert stats.tables_processed == stats.tables_total == 2

    def test_resume_after_lost_checkpoint_update(
        self,
        master_path: Path,
        slave_path: Path,
        master,
        slave,
        options,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Rows written before a failed checkpoint update are not duplicated on rerun."""
        create_orders(master_path, rows=10)
        SyncEngine(master, slave, options).run()

        def broken_advance(self, *args, **kwargs):
            raise DatabaseError("disk I/O error")

        with monkeypatch.context() as m:
            m.setattr(CheckpointStore, "advance", broken_advance)
            stats = SyncEngine(master, slave, options).run()

        assert stats.result_for("orders").status == TableStatus.FAILED
        assert table_ids(slave_path) == list(range(1, 11))
        assert CheckpointStore(slave).get("orders").last_cursor_value == 0

        stats = SyncEngine(master, slave, options).run()

        assert stats.result_for("orders").status == TableStatus.CAUGHT_UP
        assert table_rows(slave_path) == table_rows(master_path)
        assert CheckpointStore(slave).get("orders").last_cursor_value == 10

    def test_slave_lost_during_bootstrap_aborts_run(
        self, master_path: Path, master, slave, options, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Connectivity loss while creating a table stops the run instead of failing each table."""
        create_orders(master_path, rows=1, name="a_orders")
        create_orders(master_path, rows=1)
        engine = SyncEngine(master, slave, options)
        engine.checkpoints.ensure_table()

        def unreachable(sql, params=()):
            raise ConnectivityError("Cannot connect to slave")

        monkeypatch.setattr(slave, "execute", unreachable)

        with pytest.raises(ConnectivityError, match="Cannot connect to slave"):
            engine.run()

    def test_unreachable_master_aborts_run(self, tmp_path: Path, slave, options) -> None:
        master = SQLiteConnector(tmp_path / "missing.db", readonly=True)
        with pytest.raises(ConnectivityError):
            SyncEngine(master, slave, options).run()


class TestProgress:
    """Progress callback and stats."""

    def test_progress_callback(self, master_path: Path, master, slave, options) -> None:
        create_orders(master_path, rows=3)
        create_orders(master_path, rows=3, name="invoices")
        SyncEngine(master, slave, options).run()

        snapshots: list[tuple[int, int]] = []

        def on_progress(stats: SyncStats) -> None:
            snapshots.append((stats.tables_processed, stats.rows_synced))

        stats = SyncEngine(master, slave, options).run(on_progress=on_progress)

        assert snapshots[0] == (0, 0)
        assert snapshots[-1] == (2, 6)
        assert stats.count(TableStatus.CAUGHT_UP) == 2
        assert stats.duration_seconds >= 0
        assert stats.current_table == ""

    def test_checkpoint_table_is_never_synced(self, tmp_path: Path, options) -> None:
        """Master and slave may be the same database."""
        path = tmp_path / "same.db"
        create_orders(path, rows=1)
        with SQLiteConnector(path) as db:
            SyncEngine(db, db, options).run()
            stats = SyncEngine(db, db, options).run()
        assert [r.table for r in stats.results] == ["orders"]
