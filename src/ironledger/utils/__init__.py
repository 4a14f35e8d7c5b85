"""
Utility helpers shared across IronLedger packages.
"""

from .logging import configure_logging, get_correlation_id, get_logger, set_correlation_id, time_call
from .naming import camel_to_snake, entity_label
from .performance import resolve_slow_call_ms

__all__ = [
    "camel_to_snake",
    "configure_logging",
    "entity_label",
    "get_correlation_id",
    "get_logger",
    "resolve_slow_call_ms",
    "set_correlation_id",
    "time_call",
]
