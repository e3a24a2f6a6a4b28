"""
Token counting and usage tracking.

Holds the token delta value type shared by the Codex parser, the pricing
module, and the aggregator.
"""

import math
from dataclasses import dataclass
from typing import Any, Mapping


def as_count(value: Any) -> int:
    """Coerce a raw log value to a non-negative integer count.

    NaN, infinities and unparseable strings count as zero.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        try:
            value = float(value)
        except ValueError:
            return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    if isinstance(value, (int, float)):
        return max(0, int(value))
    return 0


@dataclass(frozen=True)
class TokenUsage:
    """Token usage delta for a single report.

    Always a delta (usage since the previous report), never a running
    total, by the time it leaves the parser.
    """
    input_tokens: int = 0
    cached_input_tokens: int = 0
    output_tokens: int = 0
    reasoning_output_tokens: int = 0
    total_tokens: int = 0

    def __post_init__(self):
        """Validate counters are non-negative."""
        for name in (
            "input_tokens",
            "cached_input_tokens",
            "output_tokens",
            "reasoning_output_tokens",
            "total_tokens",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")
        if self.cached_input_tokens > self.input_tokens:
            raise ValueError("cached_input_tokens cannot exceed input_tokens")

    @classmethod
    def build(
        cls,
        input_tokens: int,
        cached_input_tokens: int,
        output_tokens: int,
        reasoning_output_tokens: int,
        total_tokens: int,
    ) -> "TokenUsage":
        """Create a usage value, clamping cached input to the input count."""
        return cls(
            input_tokens=input_tokens,
            cached_input_tokens=min(cached_input_tokens, input_tokens),
            output_tokens=output_tokens,
            reasoning_output_tokens=reasoning_output_tokens,
            total_tokens=total_tokens,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TokenUsage":
        """Parse a raw `*_token_usage` object from a session log.

        Missing or malformed counters count as zero. A missing total falls
        back to input + output (reasoning is already part of output).
        """
        input_tokens = as_count(data.get("input_tokens"))
        output_tokens = as_count(data.get("output_tokens"))
        if data.get("total_tokens") is None:
            total_tokens = input_tokens + output_tokens
        else:
            total_tokens = as_count(data.get("total_tokens"))

        return cls.build(
            input_tokens=input_tokens,
            cached_input_tokens=as_count(
                data.get("cached_input_tokens", data.get("cache_read_input_tokens"))
            ),
            output_tokens=output_tokens,
            reasoning_output_tokens=as_count(data.get("reasoning_output_tokens")),
            total_tokens=total_tokens,
        )

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        if not isinstance(other, TokenUsage):
            return NotImplemented
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            cached_input_tokens=self.cached_input_tokens + other.cached_input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            reasoning_output_tokens=self.reasoning_output_tokens + other.reasoning_output_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    def delta_since(self, previous: "TokenUsage") -> "TokenUsage":
        """Convert a cumulative snapshot into a delta against the previous one.

        Each counter is floored at zero so a counter reset never produces
        negative usage.
        """
        # build() clamps cached to input, so cached growth beyond input is dropped
        return TokenUsage.build(
            input_tokens=max(0, self.input_tokens - previous.input_tokens),
            cached_input_tokens=max(0, self.cached_input_tokens - previous.cached_input_tokens),
            output_tokens=max(0, self.output_tokens - previous.output_tokens),
            reasoning_output_tokens=max(
                0, self.reasoning_output_tokens - previous.reasoning_output_tokens
            ),
            total_tokens=max(0, self.total_tokens - previous.total_tokens),
        )

    def is_zero(self) -> bool:
        """True when every counter is zero."""
        return not (
            self.input_tokens
            or self.cached_input_tokens
            or self.output_tokens
            or self.reasoning_output_tokens
            or self.total_tokens
        )


ZERO_USAGE = TokenUsage()
