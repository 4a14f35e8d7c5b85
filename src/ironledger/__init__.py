"""
IronLedger public package initialization.

Unit of Work change tracking with an identity map, repositories and
pluggable data mappers.
"""

from .core import (
    Aggregate,
    AggregateConfigurationError,
    BooleanField,
    DependencyGraph,
    FloatField,
    IntegerField,
    KeyField,
    ReferenceField,
    StringField,
    relation_registry,
)
from .errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    RelationshipError,
    TransactionAbortedError,
)
from .hooks import hooks
from .mappers import DataMapper, InMemoryDataMapper, InMemoryStore, Record, SQLDataMapper
from .persistence import (
    EntityState,
    IdentityMap,
    Repository,
    TransactionManager,
    UnitOfWork,
    UnitOfWorkState,
)

__all__ = [
    "Aggregate",
    "AggregateConfigurationError",
    "BooleanField",
    "ConflictError",
    "DataMapper",
    "DependencyGraph",
    "EntityState",
    "FloatField",
    "IdentityMap",
    "InMemoryDataMapper",
    "InMemoryStore",
    "IntegerField",
    "InvalidStateError",
    "KeyField",
    "NotFoundError",
    "PersistenceError",
    "Record",
    "ReferenceField",
    "RelationshipError",
    "Repository",
    "SQLDataMapper",
    "StringField",
    "TransactionAbortedError",
    "TransactionManager",
    "UnitOfWork",
    "UnitOfWorkState",
    "hooks",
    "relation_registry",
]
