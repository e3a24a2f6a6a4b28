"""
Pricing calculations and rate management.

Maps Codex model identifiers to per-million-token prices and computes the
cost of a usage delta.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Optional

from .token_counter import TokenUsage

ONE_MILLION = Decimal("1000000")


@dataclass(frozen=True)
class ModelPricing:
    """Per-token pricing for a specific model (USD per 1M tokens)."""
    input_cost_per_mtok: Decimal
    cached_input_cost_per_mtok: Decimal
    output_cost_per_mtok: Decimal


@dataclass(frozen=True)
class PricingTable:
    """Fixed pricing table keyed by canonical model id."""
    prices: Dict[str, ModelPricing]
    aliases: Dict[str, str] = field(default_factory=dict)

    def find_pricing(self, model: str) -> Optional[ModelPricing]:
        """Resolve pricing for a model, or None when it is unknown.

        Lookup order: alias table (case-insensitive), canonical id
        (case-insensitive), then the raw id exactly as given.
        """
        if not model:
            return None

        lowered = model.strip().lower()
        canonical = self.aliases.get(lowered, lowered)
        if canonical in self.prices:
            return self.prices[canonical]
        return self.prices.get(model)

    def get_pricing(self, model: str) -> ModelPricing:
        """Get pricing for a specific model.

        Args:
            model: Model identifier

        Returns:
            ModelPricing for the model

        Raises:
            ValueError: If model is not supported
        """
        pricing = self.find_pricing(model)
        if pricing is None:
            raise ValueError(f"Unsupported model: {model}")
        return pricing


# Fixed pricing table - no dynamic fetching, no defaults
PRICING_TABLE = PricingTable(
    prices={
        "gpt-5": ModelPricing(
            input_cost_per_mtok=Decimal("1.25"),
            cached_input_cost_per_mtok=Decimal("0.125"),
            output_cost_per_mtok=Decimal("10.00"),
        ),
        "gpt-5-mini": ModelPricing(
            input_cost_per_mtok=Decimal("0.60"),
            cached_input_cost_per_mtok=Decimal("0.06"),
            output_cost_per_mtok=Decimal("2.00"),
        ),
        "gpt-5-nano": ModelPricing(
            input_cost_per_mtok=Decimal("0.05"),
            cached_input_cost_per_mtok=Decimal("0.005"),
            output_cost_per_mtok=Decimal("0.40"),
        ),
        "gpt-4.1": ModelPricing(
            input_cost_per_mtok=Decimal("2.00"),
            cached_input_cost_per_mtok=Decimal("0.50"),
            output_cost_per_mtok=Decimal("8.00"),
        ),
        "gpt-4.1-mini": ModelPricing(
            input_cost_per_mtok=Decimal("0.40"),
            cached_input_cost_per_mtok=Decimal("0.10"),
            output_cost_per_mtok=Decimal("1.60"),
        ),
        "gpt-4o": ModelPricing(
            input_cost_per_mtok=Decimal("2.50"),
            cached_input_cost_per_mtok=Decimal("1.25"),
            output_cost_per_mtok=Decimal("10.00"),
        ),
        "o3": ModelPricing(
            input_cost_per_mtok=Decimal("2.00"),
            cached_input_cost_per_mtok=Decimal("0.50"),
            output_cost_per_mtok=Decimal("8.00"),
        ),
        "o4-mini": ModelPricing(
            input_cost_per_mtok=Decimal("1.10"),
            cached_input_cost_per_mtok=Decimal("0.275"),
            output_cost_per_mtok=Decimal("4.40"),
        ),
        "codex-mini-latest": ModelPricing(
            input_cost_per_mtok=Decimal("1.50"),
            cached_input_cost_per_mtok=Decimal("0.375"),
            output_cost_per_mtok=Decimal("6.00"),
        ),
    },
    aliases={
        "gpt-5-codex": "gpt-5",
        "gpt-5-preview": "gpt-5",
        "gpt-5-chat-latest": "gpt-5",
        "gpt-5-codex-preview": "gpt-5",
        "gpt-5-mini-preview": "gpt-5-mini",
        "gpt-5-nano-preview": "gpt-5-nano",
        "o4-mini-high": "o4-mini",
    },
)


def cost_for_usage(pricing: ModelPricing, usage: TokenUsage) -> float:
    """Cost of a usage delta under the given pricing.

    Cached input tokens are billed at the cached rate and excluded from the
    regular input charge. Reasoning tokens are already part of output.
    No rounding is applied.
    """
    uncached_input = usage.input_tokens - usage.cached_input_tokens

    input_cost = (Decimal(uncached_input) / ONE_MILLION) * pricing.input_cost_per_mtok
    cached_cost = (Decimal(usage.cached_input_tokens) / ONE_MILLION) * pricing.cached_input_cost_per_mtok
    output_cost = (Decimal(usage.output_tokens) / ONE_MILLION) * pricing.output_cost_per_mtok

    return float(input_cost + cached_cost + output_cost)


def calculate_cost(model: str, usage: TokenUsage) -> float:
    """Calculate total cost for model usage.

    Args:
        model: Model identifier (aliases accepted)
        usage: Token usage delta

    Returns:
        Total cost in USD

    Raises:
        ValueError: If model is not supported
    """
    return cost_for_usage(PRICING_TABLE.get_pricing(model), usage)
