"""
PostgreSQL dialect implementation.
"""

from __future__ import annotations

from typing import Final

from .base import DialectCapabilities, quote_double


class PostgresDialect:
    """
    ``%s`` placeholders, schema-qualified tables and ``RETURNING`` for keys.
    """

    name: Final[str] = "postgresql"
    capabilities: Final[DialectCapabilities] = DialectCapabilities(supports_returning=True)

    def quote_identifier(self, identifier: str) -> str:
        return quote_double(identifier)

    def format_table(self, table_name: str) -> str:
        if "." in table_name:
            schema, table = table_name.split(".", 1)
            return f"{quote_double(schema)}.{quote_double(table)}"
        return quote_double(table_name)

    def parameter_placeholder(self) -> str:
        return "%s"
