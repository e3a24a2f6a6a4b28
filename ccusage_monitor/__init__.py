"""
CCUsage Monitor.

Reads Claude and Codex session logs from disk and summarizes token usage,
cost, and rate-limit state.
"""

from .core.models import UsageSummary
from .core.service import CcusageService, ProviderMode, UsageError, get_usage

__all__ = ["CcusageService", "ProviderMode", "UsageError", "UsageSummary", "get_usage"]
