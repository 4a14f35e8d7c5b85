"""
Data mapper contract and reference implementations.
"""

from .base import DataMapper, Record, storage_values
from .memory import InMemoryDataMapper, InMemoryStore
from .sql import SQLDataMapper

__all__ = [
    "DataMapper",
    "InMemoryDataMapper",
    "InMemoryStore",
    "Record",
    "SQLDataMapper",
    "storage_values",
]
