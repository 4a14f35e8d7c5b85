"""
Unit of Work coordinating change tracking with one storage transaction.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Set, Tuple, Type

from ..core.aggregate import Aggregate
from ..core.relations import DependencyGraph, relation_registry
from ..errors import ConflictError, InvalidStateError, TransactionAbortedError
from ..hooks import HookDispatcher, hooks as default_hooks
from ..security.redaction import redact_fields
from ..utils import entity_label, get_logger, resolve_slow_call_ms, time_call
from .identity_map import IdentityMap
from .query import QueryExecutor
from .repository import Repository
from .tracking import ChangeTracker, EntityState, TrackingRecord
from .transaction import TransactionBoundary

if TYPE_CHECKING:
    from ..core.fields import ReferenceField
    from ..mappers.base import DataMapper


class UnitOfWorkState(str, Enum):
    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class CommitPlan:
    """
    Ordered storage operations derived from tracking states at commit time.
    """

    inserts: List[TrackingRecord] = field(default_factory=list)
    updates: List[TrackingRecord] = field(default_factory=list)
    deletes: List[TrackingRecord] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.inserts or self.updates or self.deletes)

    def __len__(self) -> int:
        return len(self.inserts) + len(self.updates) + len(self.deletes)

    def summary(self) -> Dict[str, int]:
        return {"inserts": len(self.inserts), "updates": len(self.updates), "deletes": len(self.deletes)}


class UnitOfWork:
    """
    Owns the identity map and change tracker of one transactional scope.

    The scope is single-use: once committed or rolled back it rejects
    further registrations until :meth:`reopen` starts a new scope. Use it as
    a context manager to commit on success and roll back on error::

        with UnitOfWork(TransactionManager(store), {Customer: mapper}) as uow:
            customers = uow.repository(Customer)
            customers.get(1).name = "Alicia"
    """

    def __init__(
        self,
        transaction: TransactionBoundary,
        mappers: Optional[Mapping[type, "DataMapper"]] = None,
        *,
        graph: Optional[DependencyGraph] = None,
        hooks: Optional[HookDispatcher] = None,
        slow_commit_ms: int | None = None,
    ) -> None:
        self.transaction = transaction
        self._mappers: Dict[type, "DataMapper"] = dict(mappers or {})
        self.graph = graph if graph is not None else relation_registry
        self.hooks = hooks or default_hooks
        self.slow_commit_ms = resolve_slow_call_ms(default=500, override=slow_commit_ms)
        self.logger = get_logger("persistence.unit_of_work")
        self._open_scope()

    def __repr__(self) -> str:
        return f"<UnitOfWork {self.scope_id} {self.state.value} tracking={len(self.identity_map)}>"

    def _open_scope(self) -> None:
        self.identity_map = IdentityMap()
        self.tracker = ChangeTracker(self.identity_map)
        self.query_executor = QueryExecutor(self.identity_map)
        self._repositories: Dict[type, Repository[Any]] = {}
        self.scope_id = uuid.uuid4().hex[:12]
        self.state = UnitOfWorkState.OPEN
        self.logger.debug("Opened unit of work %s", self.scope_id, extra={"scope_id": self.scope_id})

    # ------------------------------------------------------------------ #
    # Context management
    # ------------------------------------------------------------------ #
    def __enter__(self) -> "UnitOfWork":
        if self.state is not UnitOfWorkState.OPEN:
            self.reopen()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.state is not UnitOfWorkState.OPEN:
            return
        if exc_type:
            self.rollback()
        else:
            self.commit()

    # ------------------------------------------------------------------ #
    # Scope lifecycle
    # ------------------------------------------------------------------ #
    @property
    def is_open(self) -> bool:
        return self.state is UnitOfWorkState.OPEN

    def ensure_open(self, action: str = "modify") -> None:
        if self.state is not UnitOfWorkState.OPEN:
            raise InvalidStateError(
                f"Cannot {action}: unit of work {self.scope_id} is {self.state.value}; reopen it first."
            )

    def reopen(self) -> None:
        """Start a fresh scope after a commit or rollback."""
        if self.state is UnitOfWorkState.OPEN:
            raise InvalidStateError(f"Unit of work {self.scope_id} is still open.")
        self._open_scope()

    # ------------------------------------------------------------------ #
    # Collaborators
    # ------------------------------------------------------------------ #
    def register_mapper(self, aggregate_type: type, mapper: "DataMapper") -> None:
        self._mappers[aggregate_type] = mapper

    def mapper_for(self, aggregate_type: type) -> "DataMapper":
        try:
            return self._mappers[aggregate_type]
        except KeyError as exc:
            raise KeyError(f"No data mapper registered for {aggregate_type.__name__}.") from exc

    def repository(self, aggregate_type: Type["Aggregate"]) -> Repository[Any]:
        self.mapper_for(aggregate_type)
        repo = self._repositories.get(aggregate_type)
        if repo is None:
            repo = Repository(aggregate_type, self)
            self._repositories[aggregate_type] = repo
        return repo

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #
    def register_new(self, entity: "Aggregate") -> None:
        self.ensure_open("add")
        self.tracker.register_new(entity)

    def register_deleted(self, entity: "Aggregate") -> None:
        self.ensure_open("remove")
        self.tracker.register_deleted(entity)

    def register_dirty(self, entity: "Aggregate", *field_names: str) -> None:
        self.ensure_open("modify")
        self.tracker.register_dirty(entity, *field_names)

    def state_of(self, entity: "Aggregate") -> Optional[EntityState]:
        return self.tracker.state_of(entity)

    def version_of(self, entity: "Aggregate") -> Any:
        record = self.identity_map.record_for(entity)
        return record.version if record is not None else None

    # ------------------------------------------------------------------ #
    # Commit / rollback
    # ------------------------------------------------------------------ #
    def plan(self) -> CommitPlan:
        """
        Compute the commit plan from the current tracking states. Inserts run
        parents first and deletes children first, following the dependency
        graph; otherwise registration order is kept. A new entity is never
        inserted before a new entity it references.

        Raises ``InvalidStateError`` when an entity references an unsaved
        entity this unit of work will not insert.
        """
        self.tracker.detect_changes()
        inserts, updates, deletes = self.tracker.partition()
        if not self.graph.is_empty():
            inserts = sorted(inserts, key=lambda r: (self.graph.insert_rank(r.aggregate_type), r.sequence))
            deletes = sorted(deletes, key=lambda r: (-self.graph.insert_rank(r.aggregate_type), r.sequence))
        for record in [*inserts, *updates]:
            self._check_references(record)
        inserts = self._order_by_references(inserts)
        return CommitPlan(inserts=inserts, updates=updates, deletes=deletes)

    def _referenced_record(self, field_obj: "ReferenceField", value: Any) -> Optional[TrackingRecord]:
        if isinstance(value, Aggregate):
            return self.identity_map.record_for(value)
        if field_obj.remote_aggregate is not None:
            return self.identity_map.get(field_obj.remote_aggregate, value)
        return None

    def _check_references(self, record: TrackingRecord) -> None:
        for field_obj, value in record.entity.held_references():
            if not isinstance(value, Aggregate) or value.key is not None:
                continue
            target = self._referenced_record(field_obj, value)
            if target is None or target.state is not EntityState.NEW:
                raise InvalidStateError(
                    f"{record.label}.{field_obj.name} references unsaved "
                    f"{entity_label(value.__class__, None)} that is not added to unit of work {self.scope_id}."
                )

    def _order_by_references(self, inserts: List[TrackingRecord]) -> List[TrackingRecord]:
        """
        Stable ordering of ``inserts`` so that referenced new entities come
        first. Reference cycles among new entities cannot be inserted.
        """
        pending_ids = {id(record) for record in inserts}
        depends_on: Dict[int, Set[int]] = {}
        for record in inserts:
            targets = (self._referenced_record(f, v) for f, v in record.entity.held_references())
            depends_on[id(record)] = {id(t) for t in targets if t is not None and id(t) in pending_ids}

        ordered: List[TrackingRecord] = []
        placed: Set[int] = set()
        remaining = list(inserts)
        while remaining:
            for index, record in enumerate(remaining):
                if depends_on[id(record)] <= placed:
                    break
            else:
                labels = ", ".join(record.label for record in remaining)
                raise InvalidStateError(f"New entities reference each other and cannot be inserted: {labels}")
            remaining.pop(index)
            ordered.append(record)
            placed.add(id(record))
        return ordered

    def commit(self) -> None:
        self.ensure_open("commit")
        self.hooks.fire("before_commit", None, unit_of_work=self)
        plan = self.plan()
        for record in [*plan.inserts, *plan.updates, *plan.deletes]:
            self.mapper_for(record.aggregate_type)

        if plan.is_empty():
            self._finish(UnitOfWorkState.COMMITTED)
            self.logger.info("Unit of work %s committed with no changes", self.scope_id)
            self.hooks.fire("after_commit", None, unit_of_work=self, plan=plan)
            return

        self.logger.info(
            "Committing unit of work %s: %d insert(s), %d update(s), %d delete(s)",
            self.scope_id,
            len(plan.inserts),
            len(plan.updates),
            len(plan.deletes),
            extra={"scope_id": self.scope_id, **plan.summary()},
        )
        inserted: List[Tuple[TrackingRecord, Any, Any]] = []
        updated: List[Tuple[TrackingRecord, Any]] = []
        assigned: List[TrackingRecord] = []
        began = False
        try:
            with time_call("unit_of_work.commit", self.logger, threshold_ms=self.slow_commit_ms):
                self.transaction.begin()
                began = True
                for record in plan.inserts:
                    inserted.append(self._insert(record, assigned))
                for record in plan.updates:
                    updated.append(self._update(record))
                for record in plan.deletes:
                    self._delete(record)
                self.transaction.commit()
        except BaseException as exc:
            self._abort(exc, began=began, assigned=assigned)
            if isinstance(exc, (ConflictError, TransactionAbortedError)):
                raise
            if isinstance(exc, Exception):
                raise TransactionAbortedError(f"Commit of unit of work {self.scope_id} failed: {exc}") from exc
            raise

        for record, key, version in inserted:
            self.tracker.mark_inserted(record, key, version)
        for record, version in updated:
            self.tracker.mark_updated(record, version)
        for record in plan.deletes:
            self.tracker.mark_deleted(record)
        self._finish(UnitOfWorkState.COMMITTED)
        self.logger.info("Unit of work %s committed", self.scope_id, extra={"scope_id": self.scope_id})
        self.hooks.fire("after_commit", None, unit_of_work=self, plan=plan)

    def rollback(self) -> None:
        """
        Discard every pending change without contacting storage: new
        entities are dropped, dirty and deleted ones get their snapshot back.
        """
        self.ensure_open("roll back")
        self.tracker.revert_all()
        self._finish(UnitOfWorkState.ROLLED_BACK)
        self.logger.info("Unit of work %s rolled back", self.scope_id, extra={"scope_id": self.scope_id})
        self.hooks.fire("after_rollback", None, unit_of_work=self, error=None)

    # ------------------------------------------------------------------ #
    # Storage calls
    # ------------------------------------------------------------------ #
    def _insert(self, record: TrackingRecord, assigned: List[TrackingRecord]) -> Tuple[TrackingRecord, Any, Any]:
        entity = record.entity
        self.hooks.fire("before_insert", entity, unit_of_work=self)
        key, version = self.mapper_for(record.aggregate_type).insert(entity)
        # Later inserts in this plan may reference the key.
        if record.key is None and key is not None:
            entity._assign_key(key)
            assigned.append(record)
        self.logger.debug("Inserted %s at version %r", record.label, version)
        self.hooks.fire("after_insert", entity, unit_of_work=self, key=key, version=version)
        return record, key, version

    def _update(self, record: TrackingRecord) -> Tuple[TrackingRecord, Any]:
        entity = record.entity
        self.hooks.fire("before_update", entity, unit_of_work=self)
        changes = record.changed_fields()
        version = self.mapper_for(record.aggregate_type).update(record.key, record.version, changes)
        self.logger.debug(
            "Updated %s fields %s to version %r",
            record.label,
            sorted(changes),
            version,
            extra={"changes": redact_fields(changes)},
        )
        self.hooks.fire("after_update", entity, unit_of_work=self, changes=changes, version=version)
        return record, version

    def _delete(self, record: TrackingRecord) -> None:
        entity = record.entity
        self.hooks.fire("before_delete", entity, unit_of_work=self)
        self.mapper_for(record.aggregate_type).delete(record.key, record.version)
        self.logger.debug("Deleted %s", record.label)
        self.hooks.fire("after_delete", entity, unit_of_work=self)

    def _abort(self, error: BaseException, *, began: bool, assigned: List[TrackingRecord]) -> None:
        for record in assigned:
            record.entity._assign_key(None)
        if began:
            try:
                self.transaction.rollback()
            except Exception as rollback_error:
                self.logger.error(
                    "Rolling back storage for unit of work %s failed: %s",
                    self.scope_id,
                    rollback_error,
                    exc_info=rollback_error,
                )
        self._finish(UnitOfWorkState.ROLLED_BACK)
        self.logger.warning(
            "Commit of unit of work %s rolled back: %s",
            self.scope_id,
            error,
            extra={"scope_id": self.scope_id, "error": type(error).__name__},
        )
        try:
            self.hooks.fire("after_rollback", None, unit_of_work=self, error=error)
        except Exception:
            self.logger.exception("after_rollback hook failed for unit of work %s", self.scope_id)

    def _finish(self, state: UnitOfWorkState) -> None:
        self.state = state
        self.tracker.detach_all()
