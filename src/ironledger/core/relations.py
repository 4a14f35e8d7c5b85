"""
Aggregate dependency graph used to order inserts and deletes.
"""

from __future__ import annotations

from collections import defaultdict
from graphlib import CycleError, TopologicalSorter
from typing import TYPE_CHECKING, Dict, List, Optional, Set, Tuple, Type

from ..errors import RelationshipError

if TYPE_CHECKING:
    from .aggregate import Aggregate
    from .fields import ReferenceField


class DependencyGraph:
    """
    Records which aggregate types reference which.

    ``declare(child, parent)`` means rows of ``child`` point at rows of
    ``parent``: parents are inserted first and deleted last.
    """

    def __init__(self) -> None:
        self._parents: Dict[type, Set[type]] = defaultdict(set)
        self._ranks: Dict[type, int] | None = None

    def declare(self, child: type, parent: type) -> None:
        if child is parent:
            raise RelationshipError(
                f"{child.__name__} cannot depend on itself; self references are not ordered."
            )
        self._parents[child].add(parent)
        try:
            self._compute_ranks()
        except CycleError as exc:
            self._parents[child].discard(parent)
            self._ranks = None
            cycle = " -> ".join(node.__name__ for node in exc.args[1])
            raise RelationshipError(f"Cyclic aggregate dependency: {cycle}") from exc

    def parents_of(self, aggregate_type: type) -> Set[type]:
        return set(self._parents.get(aggregate_type, ()))

    def is_empty(self) -> bool:
        return not any(self._parents.values())

    def insert_rank(self, aggregate_type: type) -> int:
        """
        0 for types with no declared parents, otherwise one more than the
        highest-ranked parent.
        """
        if self._ranks is None:
            self._compute_ranks()
        assert self._ranks is not None
        return self._ranks.get(aggregate_type, 0)

    def clear(self) -> None:
        self._parents.clear()
        self._ranks = None

    def _compute_ranks(self) -> None:
        sorter = TopologicalSorter({child: parents for child, parents in self._parents.items()})
        ranks: Dict[type, int] = {}
        for node in sorter.static_order():
            parents = self._parents.get(node, ())
            ranks[node] = max((ranks[parent] + 1 for parent in parents), default=0)
        self._ranks = ranks


class RelationRegistry(DependencyGraph):
    """
    Global graph fed by ``ReferenceField`` declarations. String targets are
    resolved once an aggregate with that class name is defined.
    """

    def __init__(self) -> None:
        super().__init__()
        self.aggregates: Dict[str, Type["Aggregate"]] = {}
        self.pending: List[Tuple[Type["Aggregate"], "ReferenceField"]] = []

    def register_aggregate(self, aggregate: Type["Aggregate"]) -> None:
        self.aggregates[aggregate.__name__] = aggregate
        self._resolve_pending()

    def register_reference(self, aggregate: Type["Aggregate"], field: "ReferenceField") -> None:
        target = self._resolve_target(field.to)
        if target is None:
            self.pending.append((aggregate, field))
            return
        self._link(aggregate, field, target)

    def clear(self) -> None:
        super().clear()
        self.aggregates.clear()
        self.pending.clear()

    def _resolve_pending(self) -> None:
        unresolved = []
        for aggregate, field in self.pending:
            target = self._resolve_target(field.to)
            if target is None:
                unresolved.append((aggregate, field))
                continue
            self._link(aggregate, field, target)
        self.pending = unresolved

    def _link(self, aggregate: Type["Aggregate"], field: "ReferenceField", target: type) -> None:
        field.resolve_aggregate(target)
        # Self references resolve but do not take part in ordering.
        if target is not aggregate:
            self.declare(aggregate, target)

    def _resolve_target(self, target: type | str) -> Optional[type]:
        if isinstance(target, type):
            return target
        return self.aggregates.get(target.split(".")[-1])


relation_registry = RelationRegistry()
