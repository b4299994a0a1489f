# src/tracking/usage_ledger.py — v1
"""Usage ledger — records every provider call for cost tracking.

Records are persisted through the run store so the cumulative cost of
a run survives process restarts and resumed invocations see the spend
of earlier ones.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from teamrun.core.models import LLMModelRef
from teamrun.llm.models import Usage
from teamrun.storage.base_run_store import BaseRunStore
from teamrun.tracking.cost_calculator import resolve_costs, summarize
from teamrun.tracking.models import CostCheck, ModelPricing, UsageRecord, UsageSummary

logger = logging.getLogger(__name__)


class UsageLedger:
    """Cost ledger scoped by run id."""

    def __init__(
        self,
        store: BaseRunStore,
        pricing: dict[str, ModelPricing] | None = None,
    ) -> None:
        self._store = store
        self._pricing = pricing

    async def record(
        self,
        usage: Usage,
        *,
        run_id: str | None,
        agent: str,
        model: LLMModelRef | None,
        provider: str = "",
        user_id: str | None = None,
        latency_ms: int = 0,
        call_type: str = "complete",
        tool_round: int | None = None,
    ) -> UsageRecord:
        """Record one provider call.

        Args:
            usage: Token counts (and optional costs) reported by the provider.
            run_id: Run the call belongs to.
            agent: Agent name.
            model: Model binding used for pricing.
            provider: Provider name (defaults to the model's provider).
            user_id: Owner of the run, if any.
            latency_ms: Wall-clock duration of the call.
            call_type: "complete" for plain turns, "tool_round" otherwise.
            tool_round: Round index within the generation loop.

        Returns:
            The persisted UsageRecord.
        """
        input_cost, output_cost, total_cost = resolve_costs(usage, model, self._pricing)
        record = UsageRecord(
            run_id=run_id,
            user_id=user_id,
            agent=agent,
            provider=provider or (model.provider if model else ""),
            model_id=model.model if model else "",
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            cached_tokens=usage.cached_tokens,
            total_tokens=usage.total_tokens,
            input_cost=input_cost,
            output_cost=output_cost,
            total_cost=total_cost,
            latency_ms=latency_ms,
            call_type=call_type,
            tool_round=tool_round,
        )
        await self._store.add_usage(record)
        logger.debug(
            "Recorded usage for %s: %d in / %d out, $%s",
            agent, record.input_tokens, record.output_tokens, record.total_cost,
        )
        return record

    async def usage_by_run(self, run_id: str) -> UsageSummary:
        return summarize(await self._store.list_usage(run_id))

    async def usage_by_run_since(self, run_id: str, since: datetime) -> UsageSummary:
        """Usage recorded for a run at or after ``since`` (one stage's share)."""
        records = await self._store.list_usage(run_id)
        return summarize([r for r in records if r.inserted_at >= since])

    async def check_cost_limit(
        self,
        scope: str,
        entity_id: str,
        limit: Decimal | None,
    ) -> CostCheck:
        """Compare cumulative spend against a limit.

        ``ok`` turns False as soon as the total reaches the limit. A
        missing limit is always ok.

        Raises:
            ValueError: If the scope is not supported.
        """
        if scope != "run":
            raise ValueError(f"Unsupported cost scope: {scope!r}")
        summary = await self.usage_by_run(entity_id)
        if limit is None:
            return CostCheck(ok=True, current_total=summary.total_cost)
        return CostCheck(ok=summary.total_cost < limit, current_total=summary.total_cost)
