"""
Rate-limit window telemetry.

Codex token-count entries carry the provider's quota windows (a rolling
5-hour window and a weekly one). Readings are captured raw by the parser
and turned into countdowns relative to "now" at aggregation time.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

from .timestamps import epoch_to_datetime

# Window lengths drift by a minute between releases (299/300/301 etc.)
WINDOW_JITTER_MINUTES = 1
FIVE_HOUR_MINUTES = 300
ONE_WEEK_MINUTES = 10080


@dataclass(frozen=True)
class RateLimitReading:
    """One window exactly as logged."""
    used_percent: float
    window_minutes: Optional[float] = None
    resets_in_seconds: Optional[float] = None
    resets_at: Optional[float] = None


@dataclass(frozen=True)
class RateLimitSnapshot:
    """Rate-limit readings from a single log entry."""
    observed_at: datetime
    primary: Optional[RateLimitReading] = None
    secondary: Optional[RateLimitReading] = None


@dataclass(frozen=True)
class RateLimitWindow:
    """Derived state of one quota window."""
    id: str
    label: str
    used_percent: float
    remaining_percent: float
    resets_in_seconds: Optional[float]
    window_minutes: Optional[float] = None


@dataclass(frozen=True)
class RateLimits:
    """Primary and secondary windows (either may be missing)."""
    primary: Optional[RateLimitWindow] = None
    secondary: Optional[RateLimitWindow] = None


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _clamp_percent(value: float) -> float:
    return min(100.0, max(0.0, value))


def parse_reading(raw: Any) -> Optional[RateLimitReading]:
    """Parse one `primary`/`secondary` object; None when it has no usage figure."""
    if not isinstance(raw, Mapping):
        return None

    used = _number(raw.get("used_percent"))
    if used is None:
        return None

    return RateLimitReading(
        used_percent=used,
        window_minutes=_number(raw.get("window_minutes")),
        resets_in_seconds=_number(raw.get("resets_in_seconds")),
        resets_at=_number(raw.get("resets_at")),
    )


def parse_snapshot(raw: Any, observed_at: datetime) -> Optional[RateLimitSnapshot]:
    """Parse a `rate_limits` payload; None when neither window is usable."""
    if not isinstance(raw, Mapping):
        return None

    primary = parse_reading(raw.get("primary"))
    secondary = parse_reading(raw.get("secondary"))
    if primary is None and secondary is None:
        return None

    return RateLimitSnapshot(observed_at=observed_at, primary=primary, secondary=secondary)


def latest_snapshot(snapshots: Iterable[Optional[RateLimitSnapshot]]) -> Optional[RateLimitSnapshot]:
    """Pick the chronologically latest snapshot (later entries win ties)."""
    latest = None
    for snapshot in snapshots:
        if snapshot is None:
            continue
        if latest is None or snapshot.observed_at >= latest.observed_at:
            latest = snapshot
    return latest


def label_for_window(window_minutes: Optional[float]) -> str:
    """Human label for a window length.

    Known windows are matched with a one-minute tolerance either side:
    299-301 is "5h" and 10079-10081 is "1 week".
    """
    if window_minutes is None:
        return "window"
    if abs(window_minutes - FIVE_HOUR_MINUTES) <= WINDOW_JITTER_MINUTES:
        return "5h"
    if abs(window_minutes - ONE_WEEK_MINUTES) <= WINDOW_JITTER_MINUTES:
        return "1 week"

    minutes = int(round(window_minutes))
    if minutes > 0 and minutes % 1440 == 0:
        return f"{minutes // 1440}d"
    if minutes > 0 and minutes % 60 == 0:
        return f"{minutes // 60}h"
    return f"{minutes}m"


def seconds_until_reset(
    reading: RateLimitReading,
    observed_at: datetime,
    now: datetime,
) -> Optional[float]:
    """Seconds from now until the window resets, floored at zero.

    `resets_in_seconds` counts from the moment the entry was logged;
    `resets_at` is an absolute epoch in seconds or milliseconds.
    """
    if reading.resets_in_seconds is not None:
        remaining = (observed_at - now).total_seconds() + reading.resets_in_seconds
        return max(0.0, remaining)

    if reading.resets_at is not None:
        try:
            resets_at = epoch_to_datetime(reading.resets_at)
        except (OverflowError, OSError, ValueError):
            return None
        return max(0.0, (resets_at - now).total_seconds())

    return None


def resolve_window(
    window_id: str,
    reading: RateLimitReading,
    observed_at: datetime,
    now: datetime,
) -> RateLimitWindow:
    """Derive the current state of one window."""
    used = _clamp_percent(reading.used_percent)
    return RateLimitWindow(
        id=window_id,
        label=label_for_window(reading.window_minutes),
        used_percent=used,
        remaining_percent=_clamp_percent(100.0 - used),
        resets_in_seconds=seconds_until_reset(reading, observed_at, now),
        window_minutes=reading.window_minutes,
    )


def resolve_rate_limits(snapshot: Optional[RateLimitSnapshot], now: datetime) -> RateLimits:
    """Turn the latest snapshot into windows relative to `now`."""
    if snapshot is None:
        return RateLimits()

    primary = None
    if snapshot.primary is not None:
        primary = resolve_window("primary", snapshot.primary, snapshot.observed_at, now)

    secondary = None
    if snapshot.secondary is not None:
        secondary = resolve_window("secondary", snapshot.secondary, snapshot.observed_at, now)

    return RateLimits(primary=primary, secondary=secondary)
