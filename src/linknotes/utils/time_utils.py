"""Timestamp helpers.

Bookmarks and notes carry ISO-8601 strings rather than datetime objects so the
persisted and remote documents stay byte-compatible with older exports.
"""

from datetime import datetime, timedelta, timezone
from typing import Union

_MIN_TIMESTAMP = datetime.min.replace(tzinfo=timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as an ISO-8601 UTC string with a trailing Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="microseconds").replace("+00:00", "Z")


def utc_now_iso() -> str:
    """Current time as an ISO-8601 UTC string."""
    return format_timestamp(datetime.now(timezone.utc))


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 string into an aware datetime.

    Unparseable values sort as the oldest possible timestamp instead of
    raising, so one malformed record never breaks ordering of a partition.

    Args:
        value: ISO-8601 timestamp (``Z`` suffix accepted)

    Returns:
        Timezone-aware datetime in UTC
    """
    if not value:
        return _MIN_TIMESTAMP

    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return _MIN_TIMESTAMP

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc)


def bump_timestamp(value: str) -> str:
    """Return the timestamp one microsecond later."""
    return format_timestamp(parse_timestamp(value) + timedelta(microseconds=1))


def from_epoch_seconds(value: Union[str, int, float, None]) -> str:
    """Convert Unix epoch seconds to an ISO-8601 string.

    Empty or invalid input falls back to the current time.

    Example:
        "1700000000" -> "2023-11-14T22:13:20.000000Z"
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return utc_now_iso()

    try:
        seconds = float(value)
        return format_timestamp(datetime.fromtimestamp(seconds, tz=timezone.utc))
    except (TypeError, ValueError, OverflowError, OSError):
        return utc_now_iso()


def is_valid_timestamp(value: str) -> bool:
    """Whether ``value`` parses as an ISO-8601 timestamp."""
    return bool(value and value.strip()) and parse_timestamp(value) != _MIN_TIMESTAMP
