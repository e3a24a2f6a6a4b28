"""
Usage aggregation.

Combines parsed events into the per-provider results: the Claude 5-hour
session block and the Codex daily total.
"""

from datetime import date, datetime, tzinfo
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .claude import SESSION_DURATION, UsageEvent
from .codex import TokenUsageEvent
from .models import ClaudeUsageData, CodexModelUsage, CodexUsageData
from .pricing import PRICING_TABLE, PricingTable, cost_for_usage
from .rate_limits import RateLimitSnapshot, resolve_rate_limits
from .token_counter import ZERO_USAGE, TokenUsage

_DISPLAY_DATE_FORMATS = {
    "en": "%b %d, %Y",
    "en-us": "%b %d, %Y",
    "en-ca": "%b %d, %Y",
    "en-gb": "%d %b %Y",
    "en-au": "%d %b %Y",
    "en-ie": "%d %b %Y",
    "en-nz": "%d %b %Y",
}


def format_remaining_time(seconds: float) -> str:
    """Format a countdown as "Xh Ym" (minutes rounded down)."""
    total_minutes = int(max(0.0, seconds) // 60)
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}h {minutes}m"


def format_display_date(day: date, locale: Optional[str] = None) -> str:
    """Human-readable date for a locale.

    Only English month names are produced; locales without an entry fall
    back to ISO format.
    """
    if not locale:
        return day.strftime(_DISPLAY_DATE_FORMATS["en-us"])

    key = locale.replace("_", "-").lower()
    fmt = _DISPLAY_DATE_FORMATS.get(key)
    if fmt is None and key.startswith("en-"):
        fmt = _DISPLAY_DATE_FORMATS["en"]
    if fmt is None:
        return day.isoformat()
    return day.strftime(fmt)


def aggregate_claude(
    events: Sequence[UsageEvent],
    roots: Sequence[Path],
    now: datetime,
) -> ClaudeUsageData:
    """Summarize Claude events from the current window.

    All surviving events form one active block that ends one session
    duration after the latest event.

    Args:
        events: Events already filtered to the trailing window
        roots: Claude data directories that were found
        now: Aware reference time

    Returns:
        ClaudeUsageData (available but without data when events is empty)
    """
    if not events:
        return ClaudeUsageData(
            available=bool(roots),
            has_data=False,
            remaining_time=format_remaining_time(SESSION_DURATION.total_seconds()),
            remaining_seconds=SESSION_DURATION.total_seconds(),
            cost_usd=0.0,
            total_tokens=0,
            roots=list(roots),
        )

    latest = max(event.timestamp for event in events)
    block_end = latest + SESSION_DURATION
    remaining = max(0.0, (block_end - now).total_seconds())

    input_tokens = sum(e.input_tokens for e in events)
    output_tokens = sum(e.output_tokens for e in events)
    cache_creation = sum(e.cache_creation_tokens for e in events)
    cache_read = sum(e.cache_read_tokens for e in events)

    return ClaudeUsageData(
        available=True,
        has_data=True,
        remaining_time=format_remaining_time(remaining),
        remaining_seconds=remaining,
        cost_usd=sum(e.cost_usd or 0.0 for e in events),
        total_tokens=input_tokens + output_tokens + cache_creation + cache_read,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_creation_tokens=cache_creation,
        cache_read_tokens=cache_read,
        block_count=1,
        active_block_end=block_end,
        roots=list(roots),
    )


def _summarize_models(
    events: Sequence[TokenUsageEvent],
    pricing_table: PricingTable,
    issues: List[str],
) -> List[CodexModelUsage]:
    usage_by_model: Dict[str, TokenUsage] = {}
    fallback_by_model: Dict[str, bool] = {}
    for event in events:
        model = event.model or "unknown"
        usage_by_model[model] = usage_by_model.get(model, ZERO_USAGE) + event.usage
        fallback_by_model[model] = fallback_by_model.get(model, False) or event.is_fallback_model

    models = []
    for model, usage in usage_by_model.items():
        pricing = pricing_table.find_pricing(model)
        cost = None
        if pricing is None:
            issues.append(f"Pricing not available for model {model}; cost omitted")
        else:
            cost = cost_for_usage(pricing, usage)
        models.append(CodexModelUsage(
            model=model,
            usage=usage,
            cost_usd=cost,
            is_fallback_model=fallback_by_model[model],
        ))

    models.sort(key=lambda m: (-m.usage.total_tokens, m.model))
    return models


def aggregate_codex(
    events: Sequence[TokenUsageEvent],
    issues: Sequence[str],
    rate_limits: Optional[RateLimitSnapshot],
    *,
    session_dirs: Sequence[Path],
    missing_directories: Sequence[Path],
    tz: tzinfo,
    tz_name: str,
    now: datetime,
    locale: Optional[str] = None,
    pricing_table: PricingTable = PRICING_TABLE,
) -> CodexUsageData:
    """Summarize today's Codex usage in the given time zone.

    The overall cost is only reported when every model could be priced;
    a partial figure would under-report spend.

    Args:
        events: Events from every session file (any order)
        issues: Issues collected while parsing
        rate_limits: Latest rate-limit snapshot across files
        session_dirs: Session directories that exist
        missing_directories: Candidate directories that do not exist
        tz: Zone defining "today"
        tz_name: Display name of the zone
        now: Aware reference time
        locale: Locale for the display date
        pricing_table: Prices to apply

    Returns:
        CodexUsageData for the current local day
    """
    today = now.astimezone(tz).date()
    all_issues = list(issues)
    limits = resolve_rate_limits(rate_limits, now)

    todays_events = [e for e in events if e.timestamp.astimezone(tz).date() == today]
    todays_events.sort(key=lambda e: e.timestamp)

    if not todays_events:
        return CodexUsageData(
            available=bool(session_dirs),
            has_data=False,
            date_key=today.isoformat(),
            display_date=format_display_date(today, locale),
            timezone=tz_name,
            total_tokens=0,
            cost_usd=0.0,
            issues=all_issues,
            missing_directories=list(missing_directories),
            rate_limits=limits,
        )

    total = ZERO_USAGE
    for event in todays_events:
        total = total + event.usage

    models = _summarize_models(todays_events, pricing_table, all_issues)

    cost = None
    if all(m.cost_usd is not None for m in models):
        cost = sum(m.cost_usd for m in models)

    return CodexUsageData(
        available=True,
        has_data=True,
        date_key=today.isoformat(),
        display_date=format_display_date(today, locale),
        timezone=tz_name,
        total_tokens=total.total_tokens,
        cost_usd=cost,
        usage=total,
        models=models,
        issues=all_issues,
        missing_directories=list(missing_directories),
        rate_limits=limits,
    )
