"""DSN parsing and redaction utilities."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit

from .redaction import REDACTED_VALUE, is_sensitive


@dataclass
class DSNConfig:
    driver: str
    username: Optional[str] = None
    password: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    path: str = ""
    query: dict[str, str] = field(default_factory=dict)

    def redacted(self) -> str:
        """
        Return the DSN with the password and sensitive query values masked.
        """
        netloc = ""
        if self.username:
            netloc = self.username + (f":{REDACTED_VALUE}" if self.password else "") + "@"
        netloc += self.host or ""
        if self.port:
            netloc += f":{self.port}"
        result = f"{self.driver}://{netloc}{self.path}"
        if self.query:
            masked = {k: REDACTED_VALUE if is_sensitive(k) else v for k, v in self.query.items()}
            result += "?" + urlencode(masked)
        return result


def parse_dsn(dsn: str) -> DSNConfig:
    parsed = urlsplit(dsn)
    if not parsed.scheme:
        raise ValueError(f"DSN is missing a driver scheme: {dsn!r}")
    return DSNConfig(
        driver=parsed.scheme,
        username=parsed.username,
        password=parsed.password,
        host=parsed.hostname,
        port=parsed.port,
        database=parsed.path.lstrip("/") or None,
        path=parsed.path or "",
        query=dict(parse_qsl(parsed.query)),
    )
