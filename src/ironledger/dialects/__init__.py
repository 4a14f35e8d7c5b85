"""
SQL dialect strategies used by adapters and the SQL data mapper.
"""

from .base import Dialect, DialectCapabilities
from .postgres import PostgresDialect
from .sqlite import SQLiteDialect

__all__ = ["Dialect", "DialectCapabilities", "PostgresDialect", "SQLiteDialect"]
