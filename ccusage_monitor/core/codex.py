"""
Codex session log parsing.

A Codex session file is a stateful event stream: `turn_context` entries
announce the model in use and `event_msg` token-count entries report usage,
either as a per-turn delta (`last_token_usage`) or only as a running total
since the session started (`total_token_usage`). Lines must be processed in
order because totals are converted to deltas against the previous total
seen in the same file.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional

import structlog

from .rate_limits import RateLimitSnapshot, latest_snapshot, parse_snapshot
from .timestamps import parse_timestamp
from .token_counter import ZERO_USAGE, TokenUsage

logger = structlog.get_logger()

# Legacy sessions never logged a turn_context; they all ran on this model.
FALLBACK_MODEL = "gpt-5"

TURN_CONTEXT = "turn_context"
EVENT_MSG = "event_msg"
TOKEN_COUNT = "token_count"


@dataclass(frozen=True)
class TokenUsageEvent:
    """Codex usage delta attributed to a model."""
    timestamp: datetime
    model: Optional[str]
    usage: TokenUsage
    is_fallback_model: bool = False


@dataclass(frozen=True)
class SessionParseResult:
    """Everything extracted from one session file."""
    events: List[TokenUsageEvent] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    rate_limits: Optional[RateLimitSnapshot] = None


@dataclass
class _SessionState:
    """State carried from line to line within a single file."""
    current_model: Optional[str] = None
    current_model_is_fallback: bool = False
    previous_totals: Optional[TokenUsage] = None
    used_fallback: bool = False
    rate_limits: Optional[RateLimitSnapshot] = None


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _model_name(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _explicit_model(record: Mapping[str, Any], payload: Mapping[str, Any]) -> Optional[str]:
    """Model attached directly to a token-count entry, if any."""
    info = _mapping(payload.get("info"))
    candidates = (
        payload.get("model"),
        payload.get("model_name"),
        info.get("model"),
        _mapping(payload.get("metadata")).get("model"),
        _mapping(record.get("metadata")).get("model"),
    )
    for candidate in candidates:
        model = _model_name(candidate)
        if model is not None:
            return model
    return None


def _resolve_model(state: _SessionState) -> str:
    if state.current_model is None:
        state.current_model = FALLBACK_MODEL
        state.current_model_is_fallback = True

    if state.current_model_is_fallback:
        state.used_fallback = True
    return state.current_model


def _usage_delta(state: _SessionState, info: Mapping[str, Any]) -> Optional[TokenUsage]:
    """Delta for a token-count entry; updates the cumulative snapshot."""
    last = info.get("last_token_usage")
    total = info.get("total_token_usage")

    totals = TokenUsage.from_dict(total) if isinstance(total, Mapping) else None

    delta = None
    if isinstance(last, Mapping):
        delta = TokenUsage.from_dict(last)
    elif totals is not None:
        delta = totals.delta_since(state.previous_totals or ZERO_USAGE)

    if totals is not None:
        state.previous_totals = totals
    return delta


def _handle_token_count(
    state: _SessionState,
    record: Mapping[str, Any],
    payload: Mapping[str, Any],
    events: List[TokenUsageEvent],
) -> None:
    timestamp = parse_timestamp(record.get("timestamp"))

    if timestamp is not None:
        snapshot = parse_snapshot(payload.get("rate_limits"), timestamp)
        state.rate_limits = latest_snapshot([state.rate_limits, snapshot])

    delta = _usage_delta(state, _mapping(payload.get("info")))
    if delta is None or timestamp is None:
        return

    explicit = _explicit_model(record, payload)
    if explicit is not None:
        state.current_model = explicit
        state.current_model_is_fallback = False

    if delta.is_zero():
        return

    model = _resolve_model(state)

    events.append(TokenUsageEvent(
        timestamp=timestamp,
        model=model,
        usage=delta,
        is_fallback_model=state.current_model_is_fallback,
    ))


def parse_session_lines(lines: Iterable[str], source: str = "<session>") -> SessionParseResult:
    """Parse session log lines in order.

    Args:
        lines: Raw JSON lines of one session file
        source: Name used in issue messages

    Returns:
        Usage events, diagnostic issues, and the latest rate-limit reading
    """
    state = _SessionState()
    events: List[TokenUsageEvent] = []
    issues: List[str] = []

    for line_number, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            issues.append(f"{source}:{line_number}: failed to parse JSON line ({e.msg})")
            continue
        if not isinstance(record, Mapping):
            continue

        entry_type = record.get("type")
        payload = _mapping(record.get("payload"))

        if entry_type == TURN_CONTEXT:
            model = _model_name(payload.get("model"))
            if model is not None:
                state.current_model = model
                state.current_model_is_fallback = False
        elif entry_type == EVENT_MSG and payload.get("type") == TOKEN_COUNT:
            _handle_token_count(state, record, payload, events)

    if state.used_fallback:
        issues.append(
            f"{source}: no model metadata found; using fallback model {FALLBACK_MODEL}"
        )

    return SessionParseResult(events=events, issues=issues, rate_limits=state.rate_limits)


def parse_session_file(path: Path) -> SessionParseResult:
    """Parse one Codex session file.

    A file that cannot be read produces a single issue and no events.
    """
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            lines = f.readlines()
    except OSError as e:
        logger.warning("Failed to read Codex session file", path=str(path), error=str(e))
        return SessionParseResult(issues=[f"Failed to read Codex session file {path}: {e}"])

    result = parse_session_lines(lines, source=str(path))
    if result.issues:
        logger.warning("Codex session file has issues", path=str(path), issues=len(result.issues))
    return result
