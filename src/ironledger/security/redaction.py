"""Redaction of credentials and secrets before they reach the logs."""

from __future__ import annotations

from typing import Any, Iterable, Mapping

REDACTED_VALUE = "***"

_SENSITIVE_TOKENS = (
    "password",
    "passwd",
    "pwd",
    "secret",
    "token",
    "apikey",
    "api_key",
    "access_key",
    "private_key",
    "authorization",
    "bearer",
)


def is_sensitive(text: str) -> bool:
    lowered = text.lower()
    return any(token in lowered for token in _SENSITIVE_TOKENS)


def redact_value(value: Any) -> Any:
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
        return REDACTED_VALUE if is_sensitive(value) else value
    if isinstance(value, str) and is_sensitive(value):
        return REDACTED_VALUE
    return value


def redact_params(params: Iterable[Any]) -> list[Any]:
    """Positional SQL parameters with sensitive-looking strings masked."""
    return [redact_value(value) for value in params]


def redact_fields(values: Mapping[str, Any]) -> dict[str, Any]:
    """Field mapping with values masked when either the name or value looks sensitive."""
    return {
        name: REDACTED_VALUE if is_sensitive(name) else redact_value(value)
        for name, value in values.items()
    }
