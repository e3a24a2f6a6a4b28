"""
Usage summary service.

Runs the Claude and Codex pipelines concurrently and merges their results.
A failure in one provider is reported next to the other provider's result
instead of failing the whole query.

Failure policy:
1. No provider selected - fails before any I/O
2. A specifically requested provider failed - fails with every error listed
3. Both/auto with no result at all - fails with every error listed
4. Anything else - partial results plus an error list
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone, tzinfo
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from .aggregation import aggregate_claude, aggregate_codex
from .claude import load_claude_events
from .codex import SessionParseResult, parse_session_file
from .collector import collect_log_files
from .models import ClaudeUsageData, CodexUsageData, ProviderError, UsageSummary
from .paths import codex_session_candidates, resolve_claude_roots
from .rate_limits import latest_snapshot

logger = structlog.get_logger()

CLAUDE = "claude"
CODEX = "codex"

MAX_PARSE_WORKERS = 8


class ProviderMode(str, Enum):
    """Which providers a query covers."""
    CLAUDE = "claude"
    CODEX = "codex"
    BOTH = "both"
    AUTO = "auto"

    @property
    def providers(self) -> Tuple[str, ...]:
        if self is ProviderMode.CLAUDE:
            return (CLAUDE,)
        if self is ProviderMode.CODEX:
            return (CODEX,)
        return (CLAUDE, CODEX)


class UsageError(Exception):
    """Raised when a usage query cannot produce any requested result."""

    def __init__(self, message: str, errors: Optional[List[ProviderError]] = None):
        super().__init__(message)
        self.errors = list(errors or [])


class ProviderSelectionError(UsageError):
    """Raised when the requested mode selects no provider."""


@dataclass(frozen=True)
class _Outcome:
    """Result or failure of one provider pipeline."""
    provider: str
    result: Optional[Union[ClaudeUsageData, CodexUsageData]] = None
    error: Optional[Exception] = None


def parse_mode(mode: Union[ProviderMode, str, None]) -> ProviderMode:
    """Validate a provider mode.

    Raises:
        ProviderSelectionError: If mode is missing or unknown
    """
    if isinstance(mode, ProviderMode):
        return mode
    if not mode or not isinstance(mode, str):
        raise ProviderSelectionError("No usage provider selected")
    try:
        return ProviderMode(mode.strip().lower())
    except ValueError:
        valid = [m.value for m in ProviderMode]
        raise ProviderSelectionError(
            f"Unknown provider mode '{mode}'; expected one of: {valid}"
        )


def resolve_timezone(name: Optional[str]) -> Tuple[tzinfo, str]:
    """Resolve an IANA zone name, or the host's local zone when None.

    Returns the zone and its display name: the IANA name as given, or
    "local (<abbreviation>)" for the host zone.

    Raises:
        ValueError: If the zone name is unknown
    """
    if name:
        try:
            return ZoneInfo(name), name
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone '{name}'") from e

    local = datetime.now().astimezone().tzinfo or dt_timezone.utc
    abbreviation = datetime.now(local).tzname()
    return local, f"local ({abbreviation})" if abbreviation else "local"


def compose_error_message(errors: List[ProviderError]) -> str:
    """Single message listing every provider failure."""
    details = "; ".join(f"{e.provider}: {e.message}" for e in errors)
    return f"Failed to fetch usage data: {details or 'no provider returned data'}"


class CcusageService:
    """Entry point for usage queries.

    Holds no state between calls; every query rescans the log directories.
    """

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        home: Optional[Path] = None,
    ):
        """Initialize the service.

        Args:
            environ: Environment used for directory overrides (defaults to os.environ)
            home: Home directory used for default locations (defaults to Path.home())
        """
        self.environ = environ
        self.home = home

    def get_usage(
        self,
        mode: Union[ProviderMode, str] = ProviderMode.AUTO,
        timezone: Optional[str] = None,
        locale: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> UsageSummary:
        """Query usage for the selected providers.

        Args:
            mode: claude, codex, both, or auto (same as both)
            timezone: IANA zone that defines "today" for Codex (host zone if None)
            locale: Locale for display dates only
            now: Reference time (defaults to the current time)

        Returns:
            UsageSummary with per-provider results and recoverable errors

        Raises:
            ProviderSelectionError: If no provider is selected
            UsageError: If no requested provider produced a result
        """
        selected = parse_mode(mode)
        reference = now or datetime.now(dt_timezone.utc)
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=dt_timezone.utc)

        pipelines: Dict[str, Callable[[], Union[ClaudeUsageData, CodexUsageData]]] = {
            CLAUDE: lambda: self._claude_usage(reference),
            CODEX: lambda: self._codex_usage(reference, timezone, locale),
        }
        providers = selected.providers

        with ThreadPoolExecutor(max_workers=len(providers)) as executor:
            futures = {p: executor.submit(pipelines[p]) for p in providers}
            outcomes = [self._collect(p, futures[p]) for p in providers]

        results = {o.provider: o.result for o in outcomes if o.result is not None}
        errors = [ProviderError(o.provider, o.error) for o in outcomes if o.error is not None]

        if selected in (ProviderMode.CLAUDE, ProviderMode.CODEX):
            if selected.value not in results:
                raise UsageError(compose_error_message(errors), errors)
        elif not results and errors:
            raise UsageError(compose_error_message(errors), errors)

        return UsageSummary(
            claude=results.get(CLAUDE),
            codex=results.get(CODEX),
            errors=errors,
        )

    def dispose(self) -> None:
        """Release held resources. The service holds none, so this is a no-op."""

    @staticmethod
    def _collect(provider: str, future) -> _Outcome:
        try:
            return _Outcome(provider=provider, result=future.result())
        except Exception as e:
            logger.error("Usage pipeline failed", provider=provider, error=str(e))
            return _Outcome(provider=provider, error=e)

    def _claude_usage(self, now: datetime) -> ClaudeUsageData:
        roots = resolve_claude_roots(self.environ, self.home)
        logger.debug("Resolved Claude roots", roots=[str(r) for r in roots])
        events = load_claude_events(roots, now)
        return aggregate_claude(events, roots, now)

    def _codex_usage(
        self,
        now: datetime,
        timezone: Optional[str],
        locale: Optional[str],
    ) -> CodexUsageData:
        tz, tz_name = resolve_timezone(timezone)

        candidates = codex_session_candidates(self.environ, self.home)
        session_dirs = [d for d in candidates if d.is_dir()]
        missing = [d for d in candidates if not d.is_dir()]
        logger.debug("Resolved Codex session directories", found=len(session_dirs), missing=len(missing))

        files = collect_log_files(session_dirs)
        parsed: List[SessionParseResult] = []
        if files:
            with ThreadPoolExecutor(max_workers=min(MAX_PARSE_WORKERS, len(files))) as executor:
                parsed = list(executor.map(parse_session_file, files))

        events = [event for result in parsed for event in result.events]
        issues = [issue for result in parsed for issue in result.issues]
        snapshot = latest_snapshot(result.rate_limits for result in parsed)

        return aggregate_codex(
            events,
            issues,
            snapshot,
            session_dirs=session_dirs,
            missing_directories=missing,
            tz=tz,
            tz_name=tz_name,
            now=now,
            locale=locale,
        )


def get_usage(
    mode: Union[ProviderMode, str] = ProviderMode.AUTO,
    timezone: Optional[str] = None,
    locale: Optional[str] = None,
) -> UsageSummary:
    """Query usage with the process environment. See CcusageService.get_usage."""
    return CcusageService().get_usage(mode, timezone=timezone, locale=locale)
