"""
Data mapper contract consumed by the unit of work.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Protocol, Sequence, Tuple

if TYPE_CHECKING:
    from ..core.aggregate import Aggregate


@dataclass(frozen=True)
class Record:
    """
    A row as exchanged with storage: key, field values and the concurrency
    token storage currently holds for it.
    """

    key: Any
    values: Mapping[str, Any] = field(default_factory=dict)
    version: Any = None


class DataMapper(Protocol):
    """
    Moves records for one aggregate type to and from storage.

    Every call is expected to take part in the transaction opened by the
    unit of work's transaction boundary, when one is open.
    """

    def insert(self, entity: "Aggregate") -> Tuple[Any, Any]:
        """
        Persist a new entity, returning ``(key, version)``.
        """

    def update(self, key: Any, version: Any, changed_fields: Mapping[str, Any]) -> Any:
        """
        Write ``changed_fields`` and return the new version. Raises
        ``ConflictError`` if the stored version is not ``version``.
        """

    def delete(self, key: Any, version: Any) -> None:
        """
        Remove the row. Raises ``ConflictError`` if the stored version is not
        ``version``.
        """

    def find(self, key: Any) -> Optional[Record]:
        """
        Fetch a single row. Raises ``NotFoundError`` (or returns ``None``)
        when no row exists.
        """

    def find_many(self, criteria: Any) -> Sequence[Record]:
        """
        Fetch every row matching the opaque ``criteria``; ``None`` means all.
        """


def storage_values(entity: "Aggregate") -> Dict[str, Any]:
    """Field values of ``entity`` without its key, as mappers insert them."""
    key_field = entity._meta.key_field
    return {
        name: value
        for name, value in entity.to_dict().items()
        if key_field is None or name != key_field.name
    }
