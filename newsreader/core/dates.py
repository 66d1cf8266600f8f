"""Lenient date parsing for the many date formats found in stored records."""

import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Literal, Optional

logger = logging.getLogger(__name__)

Fallback = Literal["current-date", "null", "raise"]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return iso_format(utc_now())


def iso_format(value: datetime) -> str:
    """Format as ISO 8601 in UTC with millisecond precision and a ``Z``."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _parse(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return _as_utc(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # Epoch milliseconds, as produced by Date.now()-style ids
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)

    text = str(value).strip()
    if not text:
        return None
    if text.isdigit():
        return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)

    try:
        return _as_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass

    # RFC 2822, as found in email Date headers
    try:
        return _as_utc(parsedate_to_datetime(text))
    except (TypeError, ValueError, IndexError):
        return None


def parse_date(value: Any, fallback: Fallback = "current-date") -> Optional[datetime]:
    """Parse a stored date value into an aware UTC datetime.

    Args:
        value: ISO 8601 string, RFC 2822 string, epoch millis or datetime
        fallback: What to return when parsing fails

    Returns:
        Parsed datetime, the current time, or None depending on ``fallback``
    """
    parsed = None
    if value is not None:
        try:
            parsed = _parse(value)
        except (OverflowError, OSError, ValueError) as e:
            logger.warning(f"Error parsing date {value!r}: {e}")

    if parsed is not None:
        return parsed

    if value:
        logger.warning(f"Invalid date string: {value!r}")

    if fallback == "null":
        return None
    if fallback == "raise":
        raise ValueError(f"Date parsing failed: {value!r}")
    return utc_now()


def to_iso(value: Any) -> str:
    """Normalize any supported date value to an ISO string, defaulting to now."""
    return iso_format(parse_date(value))


def is_valid_date(value: Any) -> bool:
    return parse_date(value, fallback="null") is not None


def sort_key(value: Any) -> datetime:
    """Date used for newest-first ordering; invalid dates sort as the epoch."""
    return parse_date(value, fallback="null") or EPOCH


def is_today(value: Any) -> bool:
    parsed = parse_date(value, fallback="null")
    if parsed is None:
        return False
    return parsed.date() == utc_now().date()
