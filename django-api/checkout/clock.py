"""Wall clock used by services; injected so tests can freeze time."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
