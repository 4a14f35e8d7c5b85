import logging
import sqlite3

import pytest

from ironledger.adapters import (
    AdapterConnectionError,
    AdapterExecutionError,
    ConnectionConfig,
    SQLiteAdapter,
)


@pytest.fixture
def adapter(tmp_path):
    adapter = SQLiteAdapter()
    config = ConnectionConfig(url=f"sqlite:///{tmp_path / 'test.db'}")
    adapter.connect(config)
    yield adapter
    adapter.close()


def test_connect_creates_database(tmp_path):
    adapter = SQLiteAdapter()
    config = ConnectionConfig(url=f"sqlite:///{tmp_path / 'connect.db'}")
    connection = adapter.connect(config)
    assert isinstance(connection, sqlite3.Connection)
    assert (tmp_path / "connect.db").exists()
    adapter.close()


def test_execute_and_last_insert_id(adapter):
    adapter.execute("CREATE TABLE example (id INTEGER PRIMARY KEY, name TEXT NOT NULL)")
    cursor = adapter.execute("INSERT INTO example (name) VALUES (?)", ("Alice",))
    inserted_id = adapter.last_insert_id(cursor, "example", "id")
    assert inserted_id == 1
    rows = adapter.execute("SELECT name FROM example WHERE id = ?", (inserted_id,)).fetchall()
    assert rows[0]["name"] == "Alice"


def test_explicit_transaction_commit_and_rollback(adapter):
    adapter.execute("CREATE TABLE item (id INTEGER PRIMARY KEY, value INTEGER)")

    adapter.begin()
    assert adapter.in_transaction
    adapter.execute("INSERT INTO item (value) VALUES (?)", (10,))
    adapter.commit()
    assert not adapter.in_transaction
    assert adapter.execute("SELECT COUNT(*) FROM item").fetchone()[0] == 1

    adapter.begin()
    adapter.execute("INSERT INTO item (value) VALUES (?)", (20,))
    adapter.rollback()
    assert adapter.execute("SELECT COUNT(*) FROM item").fetchone()[0] == 1


def test_statement_errors_are_wrapped(adapter):
    with pytest.raises(AdapterExecutionError) as exc_info:
        adapter.execute("SELECT * FROM missing_table")
    assert isinstance(exc_info.value.__cause__, sqlite3.Error)


def test_foreign_keys_are_enforced(adapter):
    adapter.execute("CREATE TABLE parent (id INTEGER PRIMARY KEY)")
    adapter.execute("CREATE TABLE child (id INTEGER PRIMARY KEY, parent_id INTEGER REFERENCES parent (id))")
    with pytest.raises(AdapterExecutionError):
        adapter.execute("INSERT INTO child (parent_id) VALUES (?)", (5,))


def test_unsupported_isolation_level_is_rejected(tmp_path):
    adapter = SQLiteAdapter()
    with pytest.raises(AdapterConnectionError):
        adapter.connect(ConnectionConfig(url=":memory:", isolation_level="serializable"))


def test_immediate_begin_mode_from_dsn():
    adapter = SQLiteAdapter()
    adapter.connect(ConnectionConfig.from_dsn("sqlite:///:memory:?isolation_level=immediate"))
    adapter.begin()
    assert adapter.in_transaction
    adapter.rollback()
    adapter.close()


def test_use_after_close_raises():
    adapter = SQLiteAdapter()
    adapter.connect(ConnectionConfig(url="sqlite:///:memory:"))
    adapter.close()
    with pytest.raises(AdapterConnectionError):
        adapter.execute("SELECT 1")


def test_slow_statements_are_logged_with_redacted_params(adapter, caplog):
    adapter.slow_query_ms = 0
    caplog.set_level(logging.WARNING, logger="ironledger.adapters.sqlite")
    adapter.execute("SELECT ? AS secret_value", ("password123",))
    timing = [r for r in caplog.records if r.name == "ironledger.adapters.sqlite"]
    assert timing
    assert timing[-1].params == ["***"]
