"""
Naming utilities for IronLedger.
"""

from __future__ import annotations

import re
from typing import Any

_WORD_BOUNDARY_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def camel_to_snake(name: str) -> str:
    """
    Convert ``CamelCase`` names to ``snake_case`` for aggregate and table names.
    """
    return _WORD_BOUNDARY_RE.sub("_", name).lower()


def entity_label(aggregate_type: type, key: Any) -> str:
    """Short ``Type#key`` label used in log messages and errors."""
    shown = "<new>" if key is None else repr(key)
    return f"{aggregate_type.__name__}#{shown}"
