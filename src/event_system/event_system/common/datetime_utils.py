from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current UTC time as a naive datetime (matches MySQL DATETIME columns).

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
