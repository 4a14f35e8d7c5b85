"""
Query execution routed through the identity map.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Set, Type

from ..utils import get_logger
from .tracking import EntityState, TrackingRecord

if TYPE_CHECKING:
    from ..core.aggregate import Aggregate
    from ..mappers.base import DataMapper, Record
    from .identity_map import IdentityMap


class QueryExecutor:
    """
    Runs opaque criteria through a data mapper and reconciles every fetched
    row with the identity map.

    Rows for keys the scope already tracks never replace the tracked
    instance. Clean records are refreshed when storage reports a different
    version; new, dirty and deleted records are left untouched.
    """

    def __init__(self, identity_map: "IdentityMap") -> None:
        self.identity_map = identity_map
        self.logger = get_logger("persistence.query")

    def execute(self, aggregate_type: Type["Aggregate"], mapper: "DataMapper", criteria: Any) -> List["Aggregate"]:
        rows = mapper.find_many(criteria)
        results: List["Aggregate"] = []
        seen: Set[int] = set()
        for row in rows:
            record = self.reconcile(aggregate_type, row)
            if record.state is EntityState.DELETED or id(record) in seen:
                continue
            seen.add(id(record))
            results.append(record.entity)
        self.logger.debug(
            "Query on %s returned %d row(s), %d entit(ies)",
            aggregate_type.__name__,
            len(rows),
            len(results),
        )
        return results

    def reconcile(self, aggregate_type: Type["Aggregate"], row: "Record") -> TrackingRecord:
        record = self.identity_map.get(aggregate_type, row.key)
        if record is None:
            return self.identity_map.resolve(aggregate_type, row.key, lambda: row)
        if record.state is EntityState.CLEAN and record.has_changes():
            # Undetected in-place edits win over the newer row.
            record.state = EntityState.DIRTY
            self.logger.debug("Kept pending changes of %s over version %r", record.label, row.version)
        elif record.state is EntityState.CLEAN and row.version != record.version:
            record.refresh(row)
            self.logger.debug("Refreshed %s to version %r", record.label, row.version)
        return record
