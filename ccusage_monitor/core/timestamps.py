"""
Timestamp parsing helpers shared by the log parsers.
"""

from datetime import datetime, timezone
from typing import Any, Optional

# Epoch values above this are milliseconds (1e12 ms is September 2001,
# 1e12 s is tens of thousands of years away).
MILLISECONDS_THRESHOLD = 1e12


def epoch_to_datetime(value: float) -> datetime:
    """Convert an epoch value in seconds or milliseconds to an aware UTC datetime."""
    seconds = value / 1000.0 if value > MILLISECONDS_THRESHOLD else value
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a log timestamp.

    Accepts ISO-8601 strings (a trailing ``Z`` or explicit offset; naive
    values are taken as UTC) and epoch numbers in seconds or milliseconds.

    Returns:
        Aware UTC datetime, or None when the value cannot be parsed
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            return epoch_to_datetime(float(value))
        except (OverflowError, OSError, ValueError):
            return None

    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
