"""
Change tracking: per-entity lifecycle states and snapshot based dirty checks.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Set, Tuple, Type

from ..errors import InvalidStateError
from ..utils import entity_label, get_logger

if TYPE_CHECKING:
    from ..core.aggregate import Aggregate
    from ..core.fields import Field
    from ..mappers.base import Record
    from .identity_map import IdentityMap


class EntityState(str, Enum):
    CLEAN = "clean"
    NEW = "new"
    DIRTY = "dirty"
    DELETED = "deleted"


@dataclass(eq=False)
class TrackingRecord:
    """
    Bookkeeping entry for one tracked entity.

    ``snapshot`` holds the last persisted storage values; ``version`` is the
    storage concurrency token, compared but never interpreted.
    """

    entity: "Aggregate"
    state: EntityState
    snapshot: Dict[str, Any] = field(default_factory=dict)
    version: Any = None
    sequence: int = 0
    marked_fields: Set[str] = field(default_factory=set)
    mark_all: bool = False

    @classmethod
    def loaded(cls, aggregate_type: Type["Aggregate"], row: "Record", *, key: Any = None) -> "TrackingRecord":
        row_key = row.key if row.key is not None else key
        entity = aggregate_type.from_storage(row_key, row.values)
        return cls(entity=entity, state=EntityState.CLEAN, snapshot=entity.snapshot_values(), version=row.version)

    @property
    def aggregate_type(self) -> Type["Aggregate"]:
        return self.entity.__class__

    @property
    def key(self) -> Any:
        return self.entity.key

    @property
    def label(self) -> str:
        return entity_label(self.aggregate_type, self.key)

    def changed_fields(self) -> Dict[str, Any]:
        changes = self.entity.diff(self.snapshot)
        if self.mark_all:
            marked: Iterable[str] = [f.name for f in self.entity._meta.value_fields()]
        else:
            marked = self.marked_fields
        current = self.entity.to_dict()
        for name in marked:
            changes.setdefault(name, current[name])
        return changes

    def has_changes(self) -> bool:
        return bool(self.mark_all or self.marked_fields or self.entity.diff(self.snapshot))

    def reset_snapshot(self) -> None:
        self.snapshot = self.entity.snapshot_values()
        self.marked_fields.clear()
        self.mark_all = False

    def restore_snapshot(self) -> None:
        meta = self.entity._meta
        restored = {
            f.name: f.snapshot(self.snapshot.get(f.name)) for f in meta.value_fields()
        }
        self.entity.apply_values(restored)
        self.marked_fields.clear()
        self.mark_all = False

    def refresh(self, row: "Record") -> None:
        values = {name: value for name, value in row.values.items() if name != self.entity._meta.key_field.name}
        self.entity.apply_values(values)
        self.version = row.version
        self.reset_snapshot()


class ChangeTracker:
    """
    State machine over the records held by an :class:`IdentityMap`.

    Entities learn about their tracker when they are attached, so field
    assignments are checked here before they are stored.
    """

    def __init__(self, identity_map: "IdentityMap") -> None:
        self.identity_map = identity_map
        self.identity_map.on_track = self._attach
        self._sequence = itertools.count(1)
        self.logger = get_logger("persistence.tracker")

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #
    def register_new(self, entity: "Aggregate") -> TrackingRecord:
        self._ensure_attachable(entity)
        record = TrackingRecord(entity=entity, state=EntityState.NEW)
        self.identity_map.register(record)
        self.logger.debug("Registered %s as new", record.label)
        return record

    def register_deleted(self, entity: "Aggregate") -> TrackingRecord | None:
        """
        Mark ``entity`` for deletion. A new entity is dropped outright and
        ``None`` is returned, since nothing was ever written for it.
        """
        record = self._require(entity)
        if record.state is EntityState.DELETED:
            raise InvalidStateError(f"{record.label} is already deleted.")
        if record.state is EntityState.NEW:
            self._drop(record)
            self.logger.debug("Cancelled pending insert of %s", record.label)
            return None
        record.state = EntityState.DELETED
        self.logger.debug("Registered %s as deleted", record.label)
        return record

    def register_dirty(self, entity: "Aggregate", *field_names: str) -> TrackingRecord:
        """
        Explicitly flag changes the snapshot diff cannot see. Without field
        names every non-key field is sent with the update.
        """
        record = self._require(entity)
        if record.state is EntityState.DELETED:
            raise InvalidStateError(f"{record.label} is deleted and cannot be modified.")
        for name in field_names:
            field_obj = entity._meta.fields.get(name)
            if field_obj is None:
                raise InvalidStateError(f"{record.label} has no field '{name}' to mark dirty.")
            if field_obj.key:
                raise InvalidStateError(f"Key of {record.label} cannot be marked dirty.")
        if record.state is EntityState.NEW:
            return record
        if field_names:
            record.marked_fields.update(field_names)
        else:
            record.mark_all = True
        record.state = EntityState.DIRTY
        return record

    def state_of(self, entity: "Aggregate") -> Optional[EntityState]:
        record = self.identity_map.record_for(entity)
        return record.state if record is not None else None

    # ------------------------------------------------------------------ #
    # Field observation
    # ------------------------------------------------------------------ #
    def before_mutation(self, entity: "Aggregate", field_obj: "Field") -> None:
        record = self.identity_map.record_for(entity)
        if record is None:
            return
        if record.state is EntityState.DELETED:
            raise InvalidStateError(f"{record.label} is deleted and cannot be modified.")
        if field_obj.key:
            raise InvalidStateError(f"Key of tracked entity {record.label} cannot change.")

    def after_mutation(self, entity: "Aggregate", field_obj: "Field") -> None:
        record = self.identity_map.record_for(entity)
        if record is not None:
            self._refresh_state(record)

    def detect_changes(self) -> None:
        for record in self.identity_map.records():
            self._refresh_state(record)

    def partition(self) -> Tuple[List[TrackingRecord], List[TrackingRecord], List[TrackingRecord]]:
        inserts: List[TrackingRecord] = []
        updates: List[TrackingRecord] = []
        deletes: List[TrackingRecord] = []
        for record in sorted(self.identity_map.records(), key=lambda r: r.sequence):
            if record.state is EntityState.NEW:
                inserts.append(record)
            elif record.state is EntityState.DIRTY:
                updates.append(record)
            elif record.state is EntityState.DELETED:
                deletes.append(record)
        return inserts, updates, deletes

    # ------------------------------------------------------------------ #
    # Post-commit transitions
    # ------------------------------------------------------------------ #
    def mark_inserted(self, record: TrackingRecord, key: Any, version: Any) -> None:
        final_key = key if key is not None else record.key
        if final_key is not None:
            self.identity_map.adopt_key(record, final_key)
        record.version = version
        record.state = EntityState.CLEAN
        record.entity.resolve_references()
        record.reset_snapshot()

    def mark_updated(self, record: TrackingRecord, version: Any) -> None:
        record.version = version
        record.state = EntityState.CLEAN
        record.entity.resolve_references()
        record.reset_snapshot()

    def mark_deleted(self, record: TrackingRecord) -> None:
        self._drop(record)

    # ------------------------------------------------------------------ #
    # Rollback transitions
    # ------------------------------------------------------------------ #
    def revert(self, record: TrackingRecord) -> None:
        if record.state is EntityState.NEW:
            self._drop(record)
        elif record.state in (EntityState.DIRTY, EntityState.DELETED):
            record.restore_snapshot()
            record.state = EntityState.CLEAN

    def revert_all(self) -> None:
        for record in self.identity_map.records():
            self.revert(record)

    def detach_all(self) -> None:
        for record in self.identity_map.records():
            if record.entity._tracker is self:
                record.entity._tracker = None

    # ------------------------------------------------------------------ #
    def _refresh_state(self, record: TrackingRecord) -> None:
        if record.state not in (EntityState.CLEAN, EntityState.DIRTY):
            return
        record.state = EntityState.DIRTY if record.has_changes() else EntityState.CLEAN

    def _require(self, entity: "Aggregate") -> TrackingRecord:
        record = self.identity_map.record_for(entity)
        if record is None:
            raise InvalidStateError(
                f"{entity_label(entity.__class__, entity.key)} is not tracked by this unit of work."
            )
        return record

    def _ensure_attachable(self, entity: "Aggregate") -> None:
        if entity._tracker is self or entity in self.identity_map:
            state = self.state_of(entity)
            raise InvalidStateError(
                f"{entity_label(entity.__class__, entity.key)} is already tracked"
                + (f" ({state.value})." if state else ".")
            )
        if entity._tracker is not None:
            raise InvalidStateError(
                f"{entity_label(entity.__class__, entity.key)} is tracked by another unit of work."
            )

    def _attach(self, record: TrackingRecord) -> None:
        record.sequence = next(self._sequence)
        record.entity._tracker = self

    def _drop(self, record: TrackingRecord) -> None:
        self.identity_map.discard(record)
        if record.entity._tracker is self:
            record.entity._tracker = None
