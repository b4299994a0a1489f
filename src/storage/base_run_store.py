# src/storage/base_run_store.py — v1
"""Abstract run store interface.

Holds runs, stage records, the append-only run log and usage records,
all queryable by run id. Log entries and usage records are never
mutated or compacted: resume correctness depends on the full history.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from teamrun.core.models import LogEntry, Run, StageRecord
from teamrun.tracking.models import UsageRecord


class BaseRunStore(ABC):
    """Unified interface for run persistence backends."""

    # --- Runs ---

    @abstractmethod
    async def create_run(self, run: Run) -> Run:
        """Persist a new run."""

    @abstractmethod
    async def get_run(self, run_id: str) -> Run | None:
        """Load a run, or None if unknown."""

    @abstractmethod
    async def update_run(self, run_id: str, **changes: Any) -> Run:
        """Apply field changes to a run and return the updated run.

        Raises:
            RunNotFoundError: If the run does not exist.
        """

    @abstractmethod
    async def list_runs(self) -> list[Run]:
        """All runs, oldest first."""

    # --- Stage records ---

    @abstractmethod
    async def add_stage(self, stage: StageRecord) -> StageRecord:
        """Persist a new stage record."""

    @abstractmethod
    async def update_stage(self, stage_id: str, **changes: Any) -> StageRecord:
        """Apply field changes to a stage record."""

    @abstractmethod
    async def list_stages(self, run_id: str) -> list[StageRecord]:
        """Stage records of a run ordered by position, then creation."""

    # --- Append-only log ---

    @abstractmethod
    async def add_log(self, entry: LogEntry) -> LogEntry:
        """Append a log entry."""

    @abstractmethod
    async def list_logs(
        self,
        run_id: str,
        step: str | None = None,
        agent: str | None = None,
    ) -> list[LogEntry]:
        """Log entries of a run in insertion order, optionally filtered."""

    # --- Usage records ---

    @abstractmethod
    async def add_usage(self, record: UsageRecord) -> UsageRecord:
        """Append a usage record."""

    @abstractmethod
    async def list_usage(self, run_id: str) -> list[UsageRecord]:
        """Usage records of a run in insertion order."""

    def close(self) -> None:
        """Release backend resources (no-op by default)."""
