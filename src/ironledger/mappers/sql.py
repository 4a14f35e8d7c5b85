"""
Data mapper issuing parameterized SQL through a database adapter.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Sequence, Tuple, Type

from ..errors import ConflictError, NotFoundError
from ..utils import get_logger
from .base import Record, storage_values

if TYPE_CHECKING:
    from ..adapters.base import DatabaseAdapter
    from ..core.aggregate import Aggregate


class SQLDataMapper:
    """
    Maps one aggregate type onto one table.

    The table holds a column per field plus an integer version column.
    Updates and deletes carry ``version = ?`` in their WHERE clause; when no
    row matches, the stored version moved on and ``ConflictError`` is raised.
    Criteria for ``find_many`` are ``None`` or a mapping of equality lookups.
    """

    def __init__(
        self,
        aggregate_type: Type["Aggregate"],
        adapter: "DatabaseAdapter",
        *,
        table: str | None = None,
        version_column: str = "version",
    ) -> None:
        key_field = aggregate_type._meta.key_field
        if key_field is None:
            raise ValueError(f"{aggregate_type.__name__} has no key field to map.")
        self.aggregate_type = aggregate_type
        self.adapter = adapter
        self.dialect = adapter.dialect
        self.table_name = table or aggregate_type._meta.name
        self.key_column = key_field.name
        self.version_column = version_column
        self.value_columns = [f.name for f in aggregate_type._meta.value_fields()]
        self.logger = get_logger("mappers.sql")

    def __repr__(self) -> str:
        return f"SQLDataMapper[{self.aggregate_type.__name__} -> {self.table_name}]"

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #
    def insert(self, entity: "Aggregate") -> Tuple[Any, int]:
        values = storage_values(entity)
        columns = list(values)
        params: List[Any] = [values[name] for name in columns]
        key = entity.key
        if key is not None:
            columns.insert(0, self.key_column)
            params.insert(0, key)
        columns.append(self.version_column)
        params.append(1)

        column_sql = ", ".join(self._q(name) for name in columns)
        placeholders = ", ".join(self._ph() for _ in columns)
        sql = f"INSERT INTO {self._table()} ({column_sql}) VALUES ({placeholders})"
        if key is None and self.dialect.capabilities.supports_returning:
            sql += f" RETURNING {self._q(self.key_column)}"
        cursor = self.adapter.execute(sql, params)
        if key is None:
            key = self.adapter.last_insert_id(cursor, self.table_name, self.key_column)
        return key, 1

    def update(self, key: Any, version: Any, changed_fields: Mapping[str, Any]) -> int:
        assignments = [f"{self._q(self._column(name))} = {self._ph()}" for name in changed_fields]
        assignments.append(f"{self._q(self.version_column)} = {self._ph()}")
        new_version = int(version) + 1
        params: List[Any] = [*changed_fields.values(), new_version, key, version]
        sql = (
            f"UPDATE {self._table()} SET {', '.join(assignments)} "
            f"WHERE {self._q(self.key_column)} = {self._ph()} AND {self._q(self.version_column)} = {self._ph()}"
        )
        cursor = self.adapter.execute(sql, params)
        if cursor.rowcount == 0:
            raise ConflictError(self.aggregate_type, key, version)
        return new_version

    def delete(self, key: Any, version: Any) -> None:
        sql = (
            f"DELETE FROM {self._table()} "
            f"WHERE {self._q(self.key_column)} = {self._ph()} AND {self._q(self.version_column)} = {self._ph()}"
        )
        cursor = self.adapter.execute(sql, [key, version])
        if cursor.rowcount == 0:
            raise ConflictError(self.aggregate_type, key, version)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #
    def find(self, key: Any) -> Record:
        sql = f"{self._select()} WHERE {self._q(self.key_column)} = {self._ph()}"
        rows = self._fetch(sql, [key])
        if not rows:
            raise NotFoundError(self.aggregate_type, key)
        return rows[0]

    def find_many(self, criteria: Any) -> List[Record]:
        if criteria is None:
            criteria = {}
        if not isinstance(criteria, Mapping):
            raise TypeError(f"{self!r} only accepts None or a mapping of equality lookups.")
        conditions = [f"{self._q(self._column(name))} = {self._ph()}" for name in criteria]
        sql = self._select()
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += f" ORDER BY {self._q(self.key_column)}"
        return self._fetch(sql, list(criteria.values()))

    # ------------------------------------------------------------------ #
    def _fetch(self, sql: str, params: Sequence[Any]) -> List[Record]:
        cursor = self.adapter.execute(sql, params)
        names = [description[0] for description in cursor.description]
        records = []
        for row in cursor.fetchall():
            data: Dict[str, Any] = dict(zip(names, tuple(row)))
            key = data.pop(self.key_column)
            version = data.pop(self.version_column)
            records.append(Record(key=key, values=data, version=version))
        self.logger.debug("%s fetched %d row(s)", self.table_name, len(records))
        return records

    def _select(self) -> str:
        columns = [self.key_column, *self.value_columns, self.version_column]
        return f"SELECT {', '.join(self._q(c) for c in columns)} FROM {self._table()}"

    def _column(self, name: str) -> str:
        # Only declared fields become identifiers in generated SQL.
        return self.aggregate_type._meta.get_field(name).require_name()

    def _table(self) -> str:
        return self.dialect.format_table(self.table_name)

    def _q(self, identifier: str) -> str:
        return self.dialect.quote_identifier(identifier)

    def _ph(self) -> str:
        return self.dialect.parameter_placeholder()
