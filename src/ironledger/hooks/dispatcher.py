"""
Hook dispatcher coordinating unit of work lifecycle events.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Type

if TYPE_CHECKING:
    from ..core.aggregate import Aggregate


HookHandler = Callable[..., None]

COMMIT_EVENTS = (
    "before_commit",
    "before_insert",
    "after_insert",
    "before_update",
    "after_update",
    "before_delete",
    "after_delete",
    "after_commit",
    "after_rollback",
)


class HookDispatcher:
    """
    Maintains global and per-aggregate hook handlers.

    Handlers are called as ``handler(entity, **context)``; scope-level events
    such as ``after_commit`` pass ``None`` as the entity.
    """

    def __init__(self) -> None:
        self._global_handlers: Dict[str, List[HookHandler]] = defaultdict(list)
        self._aggregate_handlers: Dict[type, Dict[str, List[HookHandler]]] = defaultdict(
            lambda: defaultdict(list)
        )

    def register(
        self, event: str, handler: HookHandler, *, aggregate: Optional[Type["Aggregate"]] = None
    ) -> None:
        if event not in COMMIT_EVENTS:
            raise ValueError(f"Unknown hook event '{event}'. Expected one of {', '.join(COMMIT_EVENTS)}.")
        if aggregate:
            self._aggregate_handlers[aggregate][event].append(handler)
        else:
            self._global_handlers[event].append(handler)

    def fire(self, event: str, entity: Optional["Aggregate"], **context: Any) -> None:
        handlers = list(self._global_handlers.get(event, []))
        if entity is not None:
            handlers.extend(self._aggregate_handlers.get(entity.__class__, {}).get(event, []))
        for handler in handlers:
            handler(entity, **context)

    def clear(self) -> None:
        self._global_handlers.clear()
        self._aggregate_handlers.clear()


hooks = HookDispatcher()
