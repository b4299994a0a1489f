# src/tracking/cost_calculator.py — v2
"""Cost calculation for provider usage.

Resolution order for a call's cost:
  1. Costs reported by the provider on the usage itself
  2. Per-1M prices on the agent's model binding
  3. DEFAULT_PRICING table keyed by model id
  4. Zero (unknown model)
"""

from __future__ import annotations

from decimal import Decimal

from teamrun.core.models import LLMModelRef
from teamrun.llm.models import Usage
from teamrun.tracking.models import ModelPricing, UsageRecord, UsageSummary

_PER_MILLION = Decimal(1_000_000)
_ZERO = Decimal("0")

DEFAULT_PRICING: dict[str, ModelPricing] = {
    "claude-sonnet-4-20250514": ModelPricing(
        model="claude-sonnet-4-20250514",
        input_price_per_1m=Decimal("3.0"), output_price_per_1m=Decimal("15.0"),
        cache_read_per_1m=Decimal("0.3"),
    ),
    "claude-haiku-4-5-20251001": ModelPricing(
        model="claude-haiku-4-5-20251001",
        input_price_per_1m=Decimal("0.80"), output_price_per_1m=Decimal("4.0"),
        cache_read_per_1m=Decimal("0.08"),
    ),
    "gpt-4o": ModelPricing(
        model="gpt-4o",
        input_price_per_1m=Decimal("2.50"), output_price_per_1m=Decimal("10.0"),
    ),
    "gpt-4o-mini": ModelPricing(
        model="gpt-4o-mini",
        input_price_per_1m=Decimal("0.15"), output_price_per_1m=Decimal("0.60"),
    ),
}


def resolve_costs(
    usage: Usage,
    model: LLMModelRef | None,
    pricing: dict[str, ModelPricing] | None = None,
) -> tuple[Decimal, Decimal, Decimal]:
    """Return (input_cost, output_cost, total_cost) for one call."""
    if usage.total_cost is not None:
        input_cost = usage.input_cost or _ZERO
        output_cost = usage.output_cost or _ZERO
        return input_cost, output_cost, usage.total_cost

    if model is not None and (model.input_cost_per_1m is not None or model.output_cost_per_1m is not None):
        input_cost = usage.input_tokens * (model.input_cost_per_1m or _ZERO) / _PER_MILLION
        output_cost = usage.output_tokens * (model.output_cost_per_1m or _ZERO) / _PER_MILLION
        return input_cost, output_cost, input_cost + output_cost

    pricing = pricing or DEFAULT_PRICING
    p = pricing.get(model.model) if model is not None else None
    if p is None:
        return _ZERO, _ZERO, _ZERO

    input_cost = (
        usage.input_tokens * p.input_price_per_1m / _PER_MILLION
        + usage.cached_tokens * p.cache_read_per_1m / _PER_MILLION
    )
    output_cost = usage.output_tokens * p.output_price_per_1m / _PER_MILLION
    return input_cost, output_cost, input_cost + output_cost


def summarize(records: list[UsageRecord]) -> UsageSummary:
    """Aggregate usage records."""
    return UsageSummary(
        input_tokens=sum(r.input_tokens for r in records),
        output_tokens=sum(r.output_tokens for r in records),
        cached_tokens=sum(r.cached_tokens for r in records),
        total_tokens=sum(r.total_tokens for r in records),
        total_cost=sum((r.total_cost for r in records), _ZERO),
        call_count=len(records),
    )
