from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """UTC wall clock as a naive datetime (the store keeps naive UTC)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(value: Optional[datetime]) -> Optional[str]:
    """Second-precision ISO-8601 with a trailing 'Z'; naive values are read as UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.replace(microsecond=0).isoformat() + "Z"
