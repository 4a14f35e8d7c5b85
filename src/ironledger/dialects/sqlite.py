"""
SQLite dialect implementation.
"""

from __future__ import annotations

from typing import Final

from .base import DialectCapabilities, quote_double


class SQLiteDialect:
    """
    qmark placeholders; generated keys are read from ``cursor.lastrowid``.
    """

    name: Final[str] = "sqlite"
    capabilities: Final[DialectCapabilities] = DialectCapabilities(supports_returning=False)

    def quote_identifier(self, identifier: str) -> str:
        return quote_double(identifier)

    def format_table(self, table_name: str) -> str:
        return quote_double(table_name)

    def parameter_placeholder(self) -> str:
        return "?"
