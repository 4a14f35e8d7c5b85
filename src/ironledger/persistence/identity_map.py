"""
Identity map ensuring a single tracked instance per (aggregate type, key).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple, Type

from ..errors import InvalidStateError, NotFoundError
from ..utils import entity_label
from .tracking import TrackingRecord

if TYPE_CHECKING:
    from ..core.aggregate import Aggregate
    from ..mappers.base import Record


Loader = Callable[[], Optional["Record"]]


class IdentityMap:
    """
    Stores tracking records keyed by (aggregate type, key).

    Records of new entities whose key is still unknown are kept as well, so
    ``records()`` covers everything the scope tracks, in registration order.
    """

    def __init__(self) -> None:
        self._store: Dict[Tuple[type, Any], TrackingRecord] = {}
        self._records: Dict[int, TrackingRecord] = {}
        self.on_track: Optional[Callable[[TrackingRecord], None]] = None

    @staticmethod
    def _make_key(aggregate_type: type, key: Any) -> Tuple[type, Any]:
        return (aggregate_type, key)

    def resolve(self, aggregate_type: Type["Aggregate"], key: Any, loader: Loader) -> TrackingRecord:
        """
        Return the tracked record for ``key``, calling ``loader`` only on a
        miss. A loader returning ``None`` means the row does not exist.
        """
        existing = self._store.get(self._make_key(aggregate_type, key))
        if existing is not None:
            return existing
        row = loader()
        if row is None:
            raise NotFoundError(aggregate_type, key)
        record = TrackingRecord.loaded(aggregate_type, row, key=key)
        self._insert(record)
        return record

    def register(self, record: TrackingRecord) -> None:
        if id(record.entity) in self._records:
            raise InvalidStateError(f"{record.label} is already tracked.")
        if record.key is not None and self._make_key(record.aggregate_type, record.key) in self._store:
            raise InvalidStateError(
                f"{record.label} is already tracked by another instance in this unit of work."
            )
        self._insert(record)

    def get(self, aggregate_type: type, key: Any) -> TrackingRecord | None:
        return self._store.get(self._make_key(aggregate_type, key))

    def record_for(self, entity: "Aggregate") -> TrackingRecord | None:
        return self._records.get(id(entity))

    def adopt_key(self, record: TrackingRecord, key: Any) -> None:
        """Re-index ``record`` under the key storage assigned to it."""
        new_key = self._make_key(record.aggregate_type, key)
        holder = self._store.get(new_key)
        if holder is not None and holder is not record:
            raise InvalidStateError(f"{entity_label(record.aggregate_type, key)} is already tracked.")
        if record.key is not None:
            old_key = self._make_key(record.aggregate_type, record.key)
            if self._store.get(old_key) is record:
                del self._store[old_key]
        record.entity._assign_key(key)
        self._store[new_key] = record

    def forget(self, aggregate_type: type, key: Any) -> TrackingRecord | None:
        record = self._store.pop(self._make_key(aggregate_type, key), None)
        if record is not None:
            self._records.pop(id(record.entity), None)
            record.entity._tracker = None
        return record

    def discard(self, record: TrackingRecord) -> None:
        if record.key is not None:
            store_key = self._make_key(record.aggregate_type, record.key)
            if self._store.get(store_key) is record:
                del self._store[store_key]
        self._records.pop(id(record.entity), None)

    def records(self) -> List[TrackingRecord]:
        return list(self._records.values())

    def clear(self) -> None:
        self._store.clear()
        self._records.clear()

    def __contains__(self, entity: "Aggregate") -> bool:
        return id(entity) in self._records

    def __len__(self) -> int:
        return len(self._records)

    def _insert(self, record: TrackingRecord) -> None:
        if record.key is not None:
            self._store[self._make_key(record.aggregate_type, record.key)] = record
        self._records[id(record.entity)] = record
        if self.on_track is not None:
            self.on_track(record)
