# src/storage/memory_store.py — v1
"""In-process run store (STORE_BACKEND=memory).

State lives for the life of the process; used by tests and one-shot
CLI invocations.
"""

from __future__ import annotations

from typing import Any

from teamrun.core.errors import RunNotFoundError
from teamrun.core.models import LogEntry, Run, StageRecord
from teamrun.storage.base_run_store import BaseRunStore
from teamrun.tracking.models import UsageRecord


class MemoryRunStore(BaseRunStore):
    """Dict-backed run store. Returned models are copies."""

    def __init__(self) -> None:
        self._runs: dict[str, Run] = {}
        self._stages: dict[str, StageRecord] = {}
        self._logs: list[LogEntry] = []
        self._usage: list[UsageRecord] = []

    async def create_run(self, run: Run) -> Run:
        self._runs[run.id] = run.model_copy(deep=True)
        return run

    async def get_run(self, run_id: str) -> Run | None:
        run = self._runs.get(run_id)
        return run.model_copy(deep=True) if run is not None else None

    async def update_run(self, run_id: str, **changes: Any) -> Run:
        run = self._runs.get(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        updated = run.model_copy(update=changes, deep=True)
        self._runs[run_id] = updated
        return updated.model_copy(deep=True)

    async def list_runs(self) -> list[Run]:
        return sorted(
            (r.model_copy(deep=True) for r in self._runs.values()),
            key=lambda r: r.created_at,
        )

    async def add_stage(self, stage: StageRecord) -> StageRecord:
        self._stages[stage.id] = stage.model_copy(deep=True)
        return stage

    async def update_stage(self, stage_id: str, **changes: Any) -> StageRecord:
        stage = self._stages.get(stage_id)
        if stage is None:
            raise KeyError(f"Stage not found: {stage_id}")
        updated = stage.model_copy(update=changes, deep=True)
        self._stages[stage_id] = updated
        return updated.model_copy(deep=True)

    async def list_stages(self, run_id: str) -> list[StageRecord]:
        stages = [s for s in self._stages.values() if s.run_id == run_id]
        return [s.model_copy(deep=True) for s in sorted(stages, key=lambda s: s.position)]

    async def add_log(self, entry: LogEntry) -> LogEntry:
        self._logs.append(entry.model_copy(deep=True))
        return entry

    async def list_logs(
        self,
        run_id: str,
        step: str | None = None,
        agent: str | None = None,
    ) -> list[LogEntry]:
        return [
            e.model_copy(deep=True)
            for e in self._logs
            if e.run_id == run_id
            and (step is None or e.step == step)
            and (agent is None or e.agent == agent)
        ]

    async def add_usage(self, record: UsageRecord) -> UsageRecord:
        self._usage.append(record.model_copy())
        return record

    async def list_usage(self, run_id: str) -> list[UsageRecord]:
        return [r.model_copy() for r in self._usage if r.run_id == run_id]
