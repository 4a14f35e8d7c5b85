"""
Dictionary backed storage and data mapper, useful for tests and prototypes.
"""

from __future__ import annotations

import copy
from threading import RLock
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Tuple, Type

from ..errors import ConflictError, NotFoundError
from ..utils import get_logger
from .base import Record, storage_values

if TYPE_CHECKING:
    from ..core.aggregate import Aggregate


_Row = Tuple[Dict[str, Any], int]


class InMemoryStore:
    """
    Tables of ``key -> (values, version)`` with single-level transactions.

    ``begin`` takes an undo copy of every table; ``rollback`` restores it.
    Versions are integers starting at 1 and incremented on every update.
    """

    def __init__(self) -> None:
        self._tables: Dict[str, Dict[Any, _Row]] = {}
        self._counters: Dict[str, int] = {}
        self._undo: Optional[Tuple[Dict[str, Dict[Any, _Row]], Dict[str, int]]] = None
        self._lock = RLock()
        self.logger = get_logger("mappers.memory")

    # Transactions --------------------------------------------------------
    @property
    def in_transaction(self) -> bool:
        return self._undo is not None

    def begin(self) -> None:
        with self._lock:
            if self._undo is not None:
                raise RuntimeError("InMemoryStore transaction already open.")
            self._undo = (copy.deepcopy(self._tables), dict(self._counters))

    def commit(self) -> None:
        with self._lock:
            if self._undo is None:
                raise RuntimeError("InMemoryStore has no open transaction.")
            self._undo = None

    def rollback(self) -> None:
        with self._lock:
            if self._undo is None:
                raise RuntimeError("InMemoryStore has no open transaction.")
            self._tables, self._counters = self._undo
            self._undo = None
            self.logger.debug("In-memory transaction rolled back")

    # Table access --------------------------------------------------------
    def table(self, name: str) -> Dict[Any, _Row]:
        with self._lock:
            return self._tables.setdefault(name, {})

    def next_key(self, name: str) -> int:
        with self._lock:
            value = self._counters.get(name, 0) + 1
            self._counters[name] = value
            return value

    def observe_key(self, name: str, key: Any) -> None:
        if isinstance(key, int) and not isinstance(key, bool):
            with self._lock:
                self._counters[name] = max(self._counters.get(name, 0), key)

    def seed(self, name: str, key: Any, values: Mapping[str, Any], version: int = 1) -> Record:
        """Write a row directly, outside any unit of work."""
        with self._lock:
            self.table(name)[key] = (dict(values), version)
            self.observe_key(name, key)
        return Record(key=key, values=dict(values), version=version)

    def rows(self, name: str) -> List[Record]:
        with self._lock:
            return [
                Record(key=key, values=dict(values), version=version)
                for key, (values, version) in self.table(name).items()
            ]


class InMemoryDataMapper:
    """
    Data mapper storing one aggregate type in an :class:`InMemoryStore`.

    Criteria for ``find_many`` are ``None`` (all rows), a mapping of
    equality lookups, or a callable receiving each :class:`Record`.
    """

    def __init__(self, aggregate_type: Type["Aggregate"], store: InMemoryStore, *, table: str | None = None) -> None:
        self.aggregate_type = aggregate_type
        self.store = store
        self.table_name = table or aggregate_type._meta.name

    def __repr__(self) -> str:
        return f"InMemoryDataMapper[{self.aggregate_type.__name__}]"

    def insert(self, entity: "Aggregate") -> Tuple[Any, int]:
        table = self.store.table(self.table_name)
        key = entity.key
        if key is None:
            key = self.store.next_key(self.table_name)
            while key in table:
                key = self.store.next_key(self.table_name)
        elif key in table:
            raise ValueError(f"Duplicate key {key!r} for {self.aggregate_type.__name__}.")
        else:
            self.store.observe_key(self.table_name, key)
        table[key] = (copy.deepcopy(storage_values(entity)), 1)
        return key, 1

    def update(self, key: Any, version: Any, changed_fields: Mapping[str, Any]) -> int:
        values, stored_version = self._checked_row(key, version)
        values = dict(values)
        values.update(copy.deepcopy(dict(changed_fields)))
        new_version = stored_version + 1
        self.store.table(self.table_name)[key] = (values, new_version)
        return new_version

    def delete(self, key: Any, version: Any) -> None:
        self._checked_row(key, version)
        del self.store.table(self.table_name)[key]

    def find(self, key: Any) -> Record:
        row = self.store.table(self.table_name).get(key)
        if row is None:
            raise NotFoundError(self.aggregate_type, key)
        values, version = row
        return Record(key=key, values=copy.deepcopy(values), version=version)

    def find_many(self, criteria: Any) -> List[Record]:
        rows = self.store.rows(self.table_name)
        if criteria is None:
            return rows
        if isinstance(criteria, Mapping):
            key_field = self.aggregate_type._meta.key_field
            key_name = key_field.name if key_field is not None else None

            def matches(row: Record) -> bool:
                return all(
                    (row.key if name == key_name else row.values.get(name)) == expected
                    for name, expected in criteria.items()
                )

            return [row for row in rows if matches(row)]
        if callable(criteria):
            predicate: Callable[[Record], bool] = criteria
            return [row for row in rows if predicate(row)]
        raise TypeError(f"Unsupported criteria for {self!r}: {criteria!r}")

    def _checked_row(self, key: Any, version: Any) -> _Row:
        row = self.store.table(self.table_name).get(key)
        if row is None or row[1] != version:
            raise ConflictError(self.aggregate_type, key, version)
        return row
