"""
Slow call threshold configuration.
"""

from __future__ import annotations

import os

SLOW_CALL_ENV = "IRONLEDGER_SLOW_CALL_MS"


def resolve_slow_call_ms(*, default: int, override: int | None = None) -> int:
    """
    Pick the threshold used by ``time_call`` for adapters and commits.

    An explicit ``override`` wins, then the ``IRONLEDGER_SLOW_CALL_MS``
    environment variable, then ``default``.
    """
    if override is not None:
        if override < 0:
            raise ValueError("Slow call threshold must be non-negative.")
        return override
    raw = os.getenv(SLOW_CALL_ENV)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"Invalid integer value for {SLOW_CALL_ENV}: {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{SLOW_CALL_ENV} must be non-negative.")
    return value
