"""
Lifecycle hooks fired by the unit of work.
"""

from .dispatcher import COMMIT_EVENTS, HookDispatcher, hooks

__all__ = ["COMMIT_EVENTS", "HookDispatcher", "hooks"]
