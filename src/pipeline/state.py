# src/pipeline/state.py — v2
"""Handoff state threaded from stage to stage, and the stage fold result.

HandoffContext is rebuilt from persisted handoff summaries when a run
resumes, then grows by one PriorOutput per completed stage.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field


class PriorOutput(BaseModel):
    """Handoff summary of one completed stage."""

    agent_name: str
    role: str
    summary: str = ""


class HandoffContext(BaseModel):
    """Transient context carried through one orchestrator invocation."""

    prompt: str
    report_id: str | None = None
    prior_outputs: list[PriorOutput] = Field(default_factory=list)

    def with_output(self, prior: PriorOutput) -> HandoffContext:
        return self.model_copy(update={"prior_outputs": [*self.prior_outputs, prior]})

    def prior_context(self) -> str:
        return format_prior_context(self.prior_outputs)


def format_prior_context(prior_outputs: list[PriorOutput]) -> str:
    """Render handoffs as ``--- name (role) ---`` blocks separated by blank lines."""
    return "\n\n".join(
        f"--- {p.agent_name} ({p.role}) ---\n{p.summary}" for p in prior_outputs
    )


@dataclass(frozen=True)
class StageOutcome:
    """Result of the stage fold: success, or the first failure reason."""

    ok: bool
    reason: str | None = None

    @classmethod
    def success(cls) -> StageOutcome:
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> StageOutcome:
        return cls(ok=False, reason=reason)
