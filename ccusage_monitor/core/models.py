"""
Result models returned by the usage engine.

Every object is created fresh per query and never mutated afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .rate_limits import RateLimits
from .token_counter import ZERO_USAGE, TokenUsage


@dataclass(frozen=True)
class ClaudeUsageData:
    """Claude usage for the current 5-hour session block.

    `available` is True when at least one Claude data directory exists,
    `has_data` when that directory had usage inside the window.
    """
    available: bool
    has_data: bool
    remaining_time: str
    remaining_seconds: float
    cost_usd: float
    total_tokens: int
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_tokens: int = 0
    cache_read_tokens: int = 0
    block_count: int = 0
    active_block_end: Optional[datetime] = None
    roots: List[Path] = field(default_factory=list)


@dataclass(frozen=True)
class CodexModelUsage:
    """Today's Codex usage attributed to one model."""
    model: str
    usage: TokenUsage
    cost_usd: Optional[float]
    is_fallback_model: bool = False


@dataclass(frozen=True)
class CodexUsageData:
    """Codex usage for the current calendar day in the resolved time zone.

    `cost_usd` is None when any model could not be priced.
    """
    available: bool
    has_data: bool
    date_key: str
    display_date: str
    timezone: str
    total_tokens: int
    cost_usd: Optional[float]
    usage: TokenUsage = ZERO_USAGE
    models: List[CodexModelUsage] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    missing_directories: List[Path] = field(default_factory=list)
    rate_limits: RateLimits = field(default_factory=RateLimits)


@dataclass(frozen=True)
class ProviderError:
    """Failure of one provider pipeline."""
    provider: str
    error: Exception

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__


@dataclass(frozen=True)
class UsageSummary:
    """Combined result of a usage query."""
    claude: Optional[ClaudeUsageData] = None
    codex: Optional[CodexUsageData] = None
    errors: List[ProviderError] = field(default_factory=list)
