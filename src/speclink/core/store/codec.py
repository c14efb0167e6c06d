"""Row <-> value conversions shared by the store repositories."""

from __future__ import annotations

from datetime import datetime

from speclink.core.specs.models import to_utc_seconds


def dump_datetime(value: datetime | None) -> str | None:
    """Serialize a datetime as an ISO 8601 UTC string."""
    if value is None:
        return None
    return to_utc_seconds(value).isoformat()


def load_datetime(value: str | None) -> datetime | None:
    """Parse an ISO 8601 string written by dump_datetime."""
    if value is None:
        return None
    return to_utc_seconds(datetime.fromisoformat(value))
