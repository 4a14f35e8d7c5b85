"""
Transaction boundary contract and a manager enforcing single-level scopes.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator, Protocol

from ..errors import TransactionAbortedError
from ..utils import get_logger


class TransactionBoundary(Protocol):
    """
    begin/commit/rollback primitive supplied by the storage layer. One
    boundary per unit of work scope; nesting is not supported.
    """

    def begin(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class TransactionManager:
    """
    Wraps anything exposing ``begin/commit/rollback`` (a database adapter or
    an in-memory store) as a :class:`TransactionBoundary`.

    Failures of the underlying resource surface as
    :class:`TransactionAbortedError` with the original error chained.
    """

    def __init__(self, resource: TransactionBoundary) -> None:
        self.resource = resource
        self._active = False
        self.logger = get_logger("persistence.transaction")

    @property
    def active(self) -> bool:
        return self._active

    def begin(self) -> None:
        if self._active:
            raise TransactionAbortedError("Nested transactions are not supported.")
        try:
            self.resource.begin()
        except Exception as exc:
            raise TransactionAbortedError("Failed to begin transaction.") from exc
        self._active = True
        self.logger.debug("Transaction started")

    def commit(self) -> None:
        if not self._active:
            raise TransactionAbortedError("No active transaction to commit.")
        try:
            self.resource.commit()
        except Exception as exc:
            # Left active so the caller can still roll back.
            raise TransactionAbortedError("Failed to commit transaction.") from exc
        self._active = False
        self.logger.debug("Transaction committed")

    def rollback(self) -> None:
        if not self._active:
            raise TransactionAbortedError("No active transaction to roll back.")
        try:
            self.resource.rollback()
        except Exception as exc:
            raise TransactionAbortedError("Failed to roll back transaction.") from exc
        finally:
            self._active = False
        self.logger.debug("Transaction rolled back")

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        self.begin()
        try:
            yield
        except BaseException:
            self.rollback()
            raise
        else:
            self.commit()
