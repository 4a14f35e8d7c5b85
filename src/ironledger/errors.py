"""
Error hierarchy shared by the IronLedger persistence layer.
"""

from __future__ import annotations

from typing import Any, Optional, Type


class PersistenceError(RuntimeError):
    """Base error for every failure raised by IronLedger."""


class InvalidStateError(PersistenceError):
    """
    Raised when a registration or mutation is not allowed for the entity's
    current tracking state, or when the unit of work scope is already closed.
    """


class NotFoundError(PersistenceError):
    """Raised when storage has no row for the requested key."""

    def __init__(self, aggregate_type: Optional[Type[Any]], key: Any, message: str | None = None) -> None:
        self.aggregate_type = aggregate_type
        self.key = key
        label = aggregate_type.__name__ if aggregate_type is not None else "entity"
        super().__init__(message or f"{label} with key {key!r} was not found.")


class ConflictError(PersistenceError):
    """
    Raised by data mappers when the stored version no longer matches the
    version tracked by the unit of work.
    """

    def __init__(
        self,
        aggregate_type: Optional[Type[Any]],
        key: Any,
        expected_version: Any,
        message: str | None = None,
    ) -> None:
        self.aggregate_type = aggregate_type
        self.key = key
        self.expected_version = expected_version
        label = aggregate_type.__name__ if aggregate_type is not None else "entity"
        super().__init__(
            message
            or f"{label} with key {key!r} was modified concurrently (expected version {expected_version!r})."
        )


class TransactionAbortedError(PersistenceError):
    """
    Raised when the transaction boundary fails or a mapper call fails for a
    reason other than a version conflict. The original error is chained.
    """


class RelationshipError(PersistenceError):
    """Raised for invalid aggregate dependency declarations."""
