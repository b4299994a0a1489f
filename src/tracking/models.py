# src/tracking/models.py — v2
"""Tracking domain models: UsageRecord, UsageSummary, CostCheck, ModelPricing."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from teamrun.core.models import new_id, utcnow


class UsageRecord(BaseModel):
    """One provider call, as recorded by the usage ledger."""

    id: str = Field(default_factory=new_id)
    run_id: str | None = None
    user_id: str | None = None
    agent: str | None = None
    provider: str = ""
    model_id: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    cached_tokens: int = 0
    total_tokens: int = 0
    input_cost: Decimal = Decimal("0")
    output_cost: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")
    latency_ms: int = 0
    call_type: str = "complete"
    tool_round: int | None = None
    inserted_at: datetime = Field(default_factory=utcnow)


class UsageSummary(BaseModel):
    """Aggregated usage over a set of records."""

    input_tokens: int = 0
    output_tokens: int = 0
    cached_tokens: int = 0
    total_tokens: int = 0
    total_cost: Decimal = Decimal("0")
    call_count: int = 0

    def as_log_metadata(self) -> dict[str, object]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cached_tokens": self.cached_tokens,
            "total_cost": str(self.total_cost),
            "call_count": self.call_count,
        }


class CostCheck(BaseModel):
    """Result of a cost-limit check. ``ok`` is False once usage exceeds the limit."""

    ok: bool
    current_total: Decimal = Decimal("0")


class ModelPricing(BaseModel):
    """LLM model pricing configuration (USD per 1M tokens)."""

    model: str
    input_price_per_1m: Decimal
    output_price_per_1m: Decimal
    cache_read_per_1m: Decimal = Decimal("0")
