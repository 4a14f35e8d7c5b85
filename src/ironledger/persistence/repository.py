"""
Collection-like facade over one aggregate type within a unit of work.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, List, Optional, Type, TypeVar

from ..errors import NotFoundError
from .tracking import EntityState

if TYPE_CHECKING:
    from ..core.aggregate import Aggregate
    from ..mappers.base import DataMapper, Record
    from .unit_of_work import UnitOfWork


TAggregate = TypeVar("TAggregate", bound="Aggregate")


class Repository(Generic[TAggregate]):
    """
    Presents the aggregates of one type as a collection.

    Reads resolve through the identity map, so repeated reads return the same
    instance; writes only register intent with the change tracker and reach
    storage when the unit of work commits.
    """

    def __init__(self, aggregate_type: Type[TAggregate], unit_of_work: "UnitOfWork") -> None:
        self.aggregate_type = aggregate_type
        self.unit_of_work = unit_of_work

    def __repr__(self) -> str:
        return f"Repository[{self.aggregate_type.__name__}]"

    @property
    def mapper(self) -> "DataMapper":
        return self.unit_of_work.mapper_for(self.aggregate_type)

    # Reads ---------------------------------------------------------------
    def get(self, key: Any) -> TAggregate:
        self.unit_of_work.ensure_open("load")
        record = self.unit_of_work.identity_map.resolve(
            self.aggregate_type, key, lambda: self._load(key)
        )
        if record.state is EntityState.DELETED:
            raise NotFoundError(
                self.aggregate_type,
                key,
                f"{record.label} was removed in this unit of work.",
            )
        return record.entity  # type: ignore[return-value]

    def get_all(self) -> List[TAggregate]:
        return self.query(None)

    def query(self, criteria: Any) -> List[TAggregate]:
        self.unit_of_work.ensure_open("query")
        return self.unit_of_work.query_executor.execute(  # type: ignore[return-value]
            self.aggregate_type, self.mapper, criteria
        )

    # Writes --------------------------------------------------------------
    def add(self, entity: TAggregate) -> TAggregate:
        self._check_type(entity)
        self.unit_of_work.register_new(entity)
        return entity

    def remove(self, entity: TAggregate) -> None:
        self._check_type(entity)
        self.unit_of_work.register_deleted(entity)

    def mark_dirty(self, entity: TAggregate, *field_names: str) -> None:
        self._check_type(entity)
        self.unit_of_work.register_dirty(entity, *field_names)

    def __contains__(self, entity: object) -> bool:
        if not isinstance(entity, self.aggregate_type):
            return False
        state = self.unit_of_work.state_of(entity)
        return state is not None and state is not EntityState.DELETED

    # ------------------------------------------------------------------ #
    def _load(self, key: Any) -> Optional["Record"]:
        return self.mapper.find(key)

    def _check_type(self, entity: object) -> None:
        if not isinstance(entity, self.aggregate_type):
            raise TypeError(
                f"{self!r} cannot manage {entity.__class__.__name__} instances."
            )
