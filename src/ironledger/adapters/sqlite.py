"""
SQLite database adapter implementation.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any, Sequence

from ..dialects.sqlite import SQLiteDialect
from ..security.redaction import redact_params
from ..utils import get_logger, resolve_slow_call_ms, time_call
from .base import (
    AdapterConnectionError,
    AdapterExecutionError,
    AdapterTransactionError,
    ConnectionConfig,
    DatabaseAdapter,
)

_BEGIN_MODES = {"DEFERRED", "IMMEDIATE", "EXCLUSIVE"}


@dataclass(slots=True)
class SQLiteConnectionState:
    connection: sqlite3.Connection
    begin_mode: str


class SQLiteAdapter(DatabaseAdapter):
    """
    Adapter wrapping the Python stdlib sqlite3 module.

    The connection runs in autocommit mode; transactions are delimited
    explicitly by :meth:`begin`, :meth:`commit` and :meth:`rollback`.
    """

    def __init__(self, slow_query_ms: int | None = None) -> None:
        self.dialect = SQLiteDialect()
        self._state: SQLiteConnectionState | None = None
        self.logger = get_logger("adapters.sqlite")
        self.slow_query_ms = resolve_slow_call_ms(default=100, override=slow_query_ms)

    # ------------------------------------------------------------------ #
    # Connection management
    # ------------------------------------------------------------------ #
    def connect(self, config: ConnectionConfig) -> sqlite3.Connection:
        path = self._normalize_path(config.url)
        begin_mode = (config.isolation_level or "DEFERRED").upper()
        if begin_mode not in _BEGIN_MODES:
            raise AdapterConnectionError(
                f"Unsupported SQLite isolation level {config.isolation_level!r}; "
                f"expected one of {', '.join(sorted(_BEGIN_MODES))}."
            )
        try:
            connection = sqlite3.connect(
                path,
                isolation_level=None,
                timeout=config.timeout if config.timeout is not None else 5.0,
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            raise AdapterConnectionError(f"Failed to open SQLite database {path!r}.") from exc
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        self._state = SQLiteConnectionState(connection, begin_mode)
        self.logger.debug("Connected to %s", config.descriptive_label())
        return connection

    def close(self) -> None:
        if self._state:
            self._state.connection.close()
            self._state = None

    def _ensure_connection(self) -> sqlite3.Connection:
        if not self._state:
            raise AdapterConnectionError("SQLiteAdapter is not connected.")
        return self._state.connection

    # ------------------------------------------------------------------ #
    # Execution
    # ------------------------------------------------------------------ #
    def execute(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Cursor:
        connection = self._ensure_connection()
        cursor = connection.cursor()
        params = tuple(params or ())
        with time_call(
            "sqlite.execute",
            self.logger,
            threshold_ms=self.slow_query_ms,
            extra={"sql": sql, "params": redact_params(params)},
        ):
            try:
                cursor.execute(sql, params)
            except sqlite3.Error as exc:
                raise AdapterExecutionError(f"SQLite statement failed: {exc}") from exc
        return cursor

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    @property
    def in_transaction(self) -> bool:
        return self._ensure_connection().in_transaction

    def begin(self) -> None:
        connection = self._ensure_connection()
        assert self._state is not None
        try:
            connection.execute(f"BEGIN {self._state.begin_mode}")
        except sqlite3.Error as exc:
            raise AdapterTransactionError("Failed to begin SQLite transaction.") from exc

    def commit(self) -> None:
        try:
            self._ensure_connection().commit()
        except sqlite3.Error as exc:
            raise AdapterTransactionError("Failed to commit SQLite transaction.") from exc

    def rollback(self) -> None:
        try:
            self._ensure_connection().rollback()
        except sqlite3.Error as exc:
            raise AdapterTransactionError("Failed to roll back SQLite transaction.") from exc

    # ------------------------------------------------------------------ #
    def last_insert_id(self, cursor: sqlite3.Cursor, table: str, key_column: str) -> Any:
        return cursor.lastrowid

    @staticmethod
    def _normalize_path(url: str) -> str:
        # Query options were already consumed by ConnectionConfig.from_dsn.
        url = url.split("?", 1)[0]
        if url in ("sqlite://", "sqlite:///:memory:", ":memory:"):
            return ":memory:"
        prefix = "sqlite:///"
        if url.startswith(prefix):
            return url[len(prefix) :]
        return url
