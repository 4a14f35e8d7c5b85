"""
Persistence layer components: unit of work, change tracking, identity map.
"""

from .identity_map import IdentityMap
from .query import QueryExecutor
from .repository import Repository
from .tracking import ChangeTracker, EntityState, TrackingRecord
from .transaction import TransactionBoundary, TransactionManager
from .unit_of_work import CommitPlan, UnitOfWork, UnitOfWorkState

__all__ = [
    "ChangeTracker",
    "CommitPlan",
    "EntityState",
    "IdentityMap",
    "QueryExecutor",
    "Repository",
    "TrackingRecord",
    "TransactionBoundary",
    "TransactionManager",
    "UnitOfWork",
    "UnitOfWorkState",
]
