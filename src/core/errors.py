# src/core/errors.py — v1
"""Exception hierarchy shared across the engine.

Stage-level failures travel as values (StageOutcome, GenerationFailure);
these exceptions cover the seams where a collaborator cannot answer.
"""

from __future__ import annotations


class TeamrunError(Exception):
    """Base class for all teamrun errors."""


class ConfigurationError(TeamrunError):
    """Raised when settings or an agent definition are unusable."""


class RunNotFoundError(TeamrunError):
    """Raised when a run id does not resolve to a stored run."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Run not found: {run_id}")


class ReportWriteError(TeamrunError):
    """Raised by a report sink when a create or write cannot be applied."""


class ToolExecutionError(TeamrunError):
    """Raised by a tool backend when a call cannot be completed."""


class ProviderError(TeamrunError):
    """Error returned by an LLM provider.

    ``retryable`` marks rate-limit / unavailable responses that the
    generation loop may retry with backoff.
    """

    def __init__(
        self,
        reason: str,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        self.reason = reason
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(reason)

    def __repr__(self) -> str:
        return (
            f"ProviderError(reason={self.reason!r}, status_code={self.status_code!r}, "
            f"retryable={self.retryable!r})"
        )
