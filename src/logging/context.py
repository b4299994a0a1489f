# src/logging/context.py — v2
"""Contextual logging support — attach run_id, agent, stage to log records.

Context variables are task-local under asyncio, so concurrent runs
never see each other's context.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "run_id", default=None
)
_agent: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "agent", default=None
)
_stage: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "stage", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    agent: str | None = None
    stage: int | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        run_id=_run_id.get(),
        agent=_agent.get(),
        stage=_stage.get(),
    )


def set_run_context(run_id: str) -> None:
    """Set run-level context (called once per orchestrator invocation)."""
    _run_id.set(run_id)
    _agent.set(None)
    _stage.set(None)


def set_agent_context(agent: str, stage: int | None = None) -> None:
    """Set agent-level context (called per stage)."""
    _agent.set(agent)
    _stage.set(stage)


def clear_agent_context() -> None:
    _agent.set(None)
    _stage.set(None)


def clear_context() -> None:
    """Reset all context variables."""
    _run_id.set(None)
    _agent.set(None)
    _stage.set(None)
