from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current UTC datetime with timezone info."""
    return datetime.now(tz=timezone.utc)


def isoformat(dt: datetime | None) -> str | None:
    return dt.astimezone(timezone.utc).isoformat() if dt else None


def from_epoch_millis(value: int | float) -> datetime:
    """Browser-style ``Date.now()`` timestamps, as stored by older overlay records."""
    return datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
