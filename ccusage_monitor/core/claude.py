"""
Claude transcript parsing.

Claude writes one JSON object per line; lines carrying a `usage` object
describe the tokens billed for one assistant message.
"""

import json
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional

import structlog

from .collector import collect_log_files
from .timestamps import parse_timestamp
from .token_counter import as_count

logger = structlog.get_logger()

SESSION_DURATION = timedelta(hours=5)
CLAUDE_FILE_LIMIT = 100


@dataclass(frozen=True)
class UsageEvent:
    """Tokens and cost of one Claude message."""
    timestamp: datetime
    input_tokens: int
    output_tokens: int
    cache_creation_tokens: int
    cache_read_tokens: int
    cost_usd: Optional[float] = None

    @property
    def total_tokens(self) -> int:
        """All four counters combined."""
        return (
            self.input_tokens
            + self.output_tokens
            + self.cache_creation_tokens
            + self.cache_read_tokens
        )


def _extract_usage(record: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    message = record.get("message")
    if isinstance(message, Mapping) and isinstance(message.get("usage"), Mapping):
        return message["usage"]
    if isinstance(record.get("usage"), Mapping):
        return record["usage"]
    return None


def _extract_timestamp(record: Mapping[str, Any]) -> Optional[datetime]:
    message = record.get("message")
    nested = message.get("timestamp") if isinstance(message, Mapping) else None

    for value in (record.get("timestamp"), nested, record.get("created_at"), record.get("createdAt")):
        parsed = parse_timestamp(value)
        if parsed is not None:
            return parsed
    return None


def _extract_cost(record: Mapping[str, Any], usage: Mapping[str, Any]) -> Optional[float]:
    for source, key in (
        (record, "costUSD"),
        (record, "cost_usd"),
        (usage, "total_cost_usd"),
        (usage, "cost_usd"),
    ):
        value = source.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
            return float(value)
    return None


def parse_record(record: Any) -> Optional[UsageEvent]:
    """Build a usage event from one decoded line.

    Returns None for records without usage or a parseable timestamp, and
    for empty records (all counters zero and no cost).
    """
    if not isinstance(record, Mapping):
        return None

    usage = _extract_usage(record)
    if usage is None:
        return None

    timestamp = _extract_timestamp(record)
    if timestamp is None:
        return None

    event = UsageEvent(
        timestamp=timestamp,
        input_tokens=as_count(usage.get("input_tokens")),
        output_tokens=as_count(usage.get("output_tokens")),
        cache_creation_tokens=as_count(usage.get("cache_creation_input_tokens")),
        cache_read_tokens=as_count(usage.get("cache_read_input_tokens")),
        cost_usd=_extract_cost(record, usage),
    )

    # Keep-alive and placeholder entries
    if event.total_tokens == 0 and not event.cost_usd:
        return None
    return event


def parse_transcript(path: Path, window_start: datetime) -> List[UsageEvent]:
    """Parse one transcript, keeping events at or after `window_start`.

    Malformed lines are skipped with a warning. An unreadable file yields
    no events.

    Args:
        path: Transcript file (.jsonl)
        window_start: Aware datetime; events strictly before it are dropped

    Returns:
        Usage events in file order
    """
    events = []
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            for line_number, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    record = json.loads(line)
                except json.JSONDecodeError as e:
                    logger.warning(
                        "Skipping malformed Claude log line",
                        path=str(path),
                        line=line_number,
                        error=str(e),
                    )
                    continue

                event = parse_record(record)
                if event is None or event.timestamp < window_start:
                    continue
                events.append(event)
    except OSError as e:
        logger.warning("Failed to read Claude transcript", path=str(path), error=str(e))
        return []

    return events


def load_claude_events(
    roots: Iterable[Path],
    now: datetime,
    limit: Optional[int] = CLAUDE_FILE_LIMIT,
) -> List[UsageEvent]:
    """Collect and parse every transcript under the roots for the current window."""
    window_start = now - SESSION_DURATION
    files = collect_log_files(roots, limit=limit)
    logger.debug("Collected Claude transcripts", files=len(files))

    events = []
    for path in files:
        events.extend(parse_transcript(path, window_start))

    events.sort(key=lambda e: e.timestamp)
    return events
