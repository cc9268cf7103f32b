# services/api/models/timestamps.py
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    """Current UTC time truncated to milliseconds (the stored precision)."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def to_epoch_ms(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(ms: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=ms)


def decode_timestamp(value: Any, *, default: Optional[datetime] = None) -> datetime:
    """
    Decode a stored timestamp.

    Accepts epoch milliseconds (int) or an already-typed datetime (naive values
    are taken as UTC). Anything else falls back to `default` or now.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        # stored precision is milliseconds
        return value.replace(microsecond=value.microsecond // 1000 * 1000)
    if isinstance(value, int) and not isinstance(value, bool):
        try:
            return from_epoch_ms(value)
        except OverflowError:
            logger.debug("Timestamp out of range: %r", value)
    elif value is not None:
        logger.debug("Unsupported timestamp value %r, using now", value)
    return default if default is not None else utcnow()


def format_day(value: datetime) -> str:
    """d/m/yyyy, no zero padding."""
    return f"{value.day}/{value.month}/{value.year}"


def time_since(value: datetime, *, now: Optional[datetime] = None) -> str:
    delta = (now or utcnow()) - value
    if delta.days > 0:
        return f"{delta.days} days ago"
    hours = delta.seconds // 3600
    if delta.days == 0 and hours > 0:
        return f"{hours} hours ago"
    minutes = delta.seconds // 60
    if delta.days == 0 and minutes > 0:
        return f"{minutes} minutes ago"
    return "Just now"


def is_recent(value: datetime, *, hours: int = 24, now: Optional[datetime] = None) -> bool:
    return (now or utcnow()) - value < timedelta(hours=hours)
