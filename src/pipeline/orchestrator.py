# src/pipeline/orchestrator.py — v2
"""Run orchestrator — lifecycle, timeout and finalization of one run.

    pending ──► running ──► completed
                       └──► failed      (stage failure, crash, timeout)

The pipeline body runs as its own asyncio task raced against the run's
``timeout_ms``. On expiry the task is cancelled and left behind: any
provider or tool call in flight is abandoned at its current await
point, with no cleanup. Finalization never raises; persistence errors
while recording the outcome are logged and swallowed.

Runs already ``completed`` or ``cancelled`` are skipped. ``pending``,
``failed`` and interrupted ``running`` runs are (re-)executed, resuming
from their first incomplete stage.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from teamrun.config.agents import IMPLEMENTED_TOPOLOGIES
from teamrun.config.settings import Settings
from teamrun.core.errors import ReportWriteError
from teamrun.core.models import DEFAULT_ROLE, Run, utcnow
from teamrun.llm.client_factory import ProviderRegistry
from teamrun.logging.context import clear_context, set_run_context
from teamrun.pipeline.generation import GenerationLoop
from teamrun.pipeline.run_log import RunLog
from teamrun.pipeline.stage_executor import NO_AGENTS_REASON, PipelineStageExecutor
from teamrun.pipeline.state import StageOutcome
from teamrun.reports.base_report_sink import BaseReportSink
from teamrun.reports.report_builder import AgentSlot, ReportBuilder
from teamrun.storage.base_run_store import BaseRunStore
from teamrun.teams.directory import BaseTeamDirectory
from teamrun.tools.builtin import BuiltinRegistry, ReportTools
from teamrun.tools.executor import ToolExecutionService
from teamrun.tools.mcp_client import McpToolClient
from teamrun.tracking.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)

LogFn = Callable[..., Awaitable[Any]]

SKIPPED_STATUSES = frozenset({"completed", "cancelled"})


@dataclass
class PipelineResult:
    """What the pipeline body hands back to finalization."""

    outcome: StageOutcome
    report_id: str | None = None


class RunOrchestrator:
    """Top-level driver for runs.

    Args:
        store: Run store.
        directory: Team and agent definitions.
        executor: Stage executor.
        reports: Report builder.
        log: Run log callback.
    """

    def __init__(
        self,
        store: BaseRunStore,
        directory: BaseTeamDirectory,
        executor: PipelineStageExecutor,
        reports: ReportBuilder,
        log: LogFn,
    ) -> None:
        self._store = store
        self._directory = directory
        self._executor = executor
        self._reports = reports
        self._log = log
        self._background: set[asyncio.Task[None]] = set()

    @classmethod
    def create(
        cls,
        store: BaseRunStore,
        directory: BaseTeamDirectory,
        sink: BaseReportSink,
        settings: Settings | None = None,
        providers: ProviderRegistry | None = None,
        mcp_client: McpToolClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> RunOrchestrator:
        """Wire the engine from its collaborators."""
        settings = settings or Settings()
        providers = providers or ProviderRegistry(settings)
        mcp_client = mcp_client or McpToolClient(timeout_s=settings.mcp_request_timeout_s)

        log = RunLog(store)
        ledger = UsageLedger(store)
        reports = ReportBuilder(sink, log)
        generation = GenerationLoop(
            providers=providers,
            tool_service=ToolExecutionService(mcp_client),
            ledger=ledger,
            log=log,
            settings=settings,
            sleep=sleep,
        )
        executor = PipelineStageExecutor(
            store=store,
            generation=generation,
            reports=reports,
            ledger=ledger,
            log=log,
            builtins=BuiltinRegistry([ReportTools(sink)]),
            mcp_client=mcp_client,
        )
        return cls(store, directory, executor, reports, log)

    # --- Entry points ---

    def start_run(self, run_id: str) -> asyncio.Task[None]:
        """Schedule ``run(run_id)`` in the background and return immediately."""
        task = asyncio.create_task(self.run(run_id), name=f"run-{run_id}")
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def run(self, run_id: str) -> None:
        """Execute a run to a terminal state. Never raises for run or store failures."""
        try:
            run = await self._store.get_run(run_id)
        except Exception:
            logger.exception("Failed to load run %s", run_id)
            return
        if run is None:
            logger.error("Run %s not found", run_id)
            return
        if run.status in SKIPPED_STATUSES:
            logger.warning("Run %s is already %s, skipping", run_id, run.status)
            return

        set_run_context(run.id)
        try:
            try:
                run = await self._mark_running(run)
                await self._log(run.id, "info", "init", f"Run started (timeout: {run.timeout_ms}ms)")
            except Exception:
                logger.exception("Failed to start run %s", run_id)
                return
            await self._supervise(run)
        finally:
            clear_context()

    async def _mark_running(self, run: Run) -> Run:
        return await self._store.update_run(
            run.id,
            status="running",
            started_at=utcnow(),
            error=None,
            completed_at=None,
        )

    async def _supervise(self, run: Run) -> None:
        task = asyncio.create_task(self._execute(run), name=f"pipeline-{run.id}")
        try:
            done, _ = await asyncio.wait({task}, timeout=run.timeout_ms / 1000)
        except asyncio.CancelledError:
            task.cancel()
            raise

        if task not in done:
            task.cancel()
            task.add_done_callback(_discard_result)
            logger.warning("Run %s timed out after %dms", run.id, run.timeout_ms)
            await self._safe_fail(run.id, "timeout", f"Timed out after {run.timeout_ms}ms")
            return

        if task.cancelled():
            await self._safe_fail(run.id, "crash", "Pipeline task was cancelled")
            return

        exc = task.exception()
        if exc is not None:
            logger.error("Run %s crashed", run.id, exc_info=exc)
            await self._safe_fail(run.id, "crash", str(exc) or type(exc).__name__)
            return

        await self._finalize(run.id, task.result())

    # --- Pipeline body ---

    async def _execute(self, run: Run) -> PipelineResult:
        agents = await self.resolve_agents(run)
        await self._log(run.id, "info", "resolve_agents", f"Resolved {len(agents)} agent(s)", {
            "agents": [
                {"name": agent.name, "role": member.role or DEFAULT_ROLE}
                for agent, member in agents
            ],
        })

        if run.topology not in IMPLEMENTED_TOPOLOGIES:
            logger.warning("Topology %r is not implemented; running as pipeline", run.topology)
            await self._log(
                run.id, "warning", "pipeline",
                f"Topology '{run.topology}' is not implemented; "
                "executing as a sequential pipeline",
                {"topology": run.topology},
            )

        if not agents:
            await self._log(run.id, "error", "pipeline", f"Pipeline failed: {NO_AGENTS_REASON}")
            return PipelineResult(StageOutcome.failure(NO_AGENTS_REASON))

        logs = await self._store.list_logs(run.id)
        try:
            report_id = await self._reports.get_or_create_report(run, agents, logs)
        except ReportWriteError as e:
            reason = f"Failed to create report: {e}"
            await self._log(run.id, "error", "create_report", reason)
            return PipelineResult(StageOutcome.failure(reason))

        outcome = await self._executor.execute(run, agents, report_id)
        if outcome.ok:
            await self._log(run.id, "info", "complete", "Run completed successfully")
        else:
            await self._log(run.id, "error", "pipeline", f"Pipeline failed: {outcome.reason}")
        return PipelineResult(outcome, report_id)

    async def resolve_agents(self, run: Run) -> list[AgentSlot]:
        """Team members sorted by position; members whose agent is unknown are dropped."""
        if run.team_id is None:
            return []
        team = await self._directory.get_team(run.team_id)
        if team is None:
            logger.warning("Team %s for run %s not found", run.team_id, run.id)
            return []

        agents: list[AgentSlot] = []
        for member in sorted(team.members, key=lambda m: m.position):
            agent = await self._directory.get_agent(member.agent_id)
            if agent is None:
                logger.warning("Agent %s of team %s not found, skipping", member.agent_id, team.id)
                continue
            agents.append((agent, member))
        return agents

    # --- Finalization ---

    async def _finalize(self, run_id: str, result: PipelineResult) -> None:
        try:
            if result.outcome.ok:
                await self._store.update_run(
                    run_id,
                    status="completed",
                    deliverables={"report_id": result.report_id},
                    completed_at=utcnow(),
                )
            else:
                await self._store.update_run(
                    run_id,
                    status="failed",
                    error=result.outcome.reason,
                    completed_at=utcnow(),
                )
        except Exception:
            logger.exception("Failed to finalize run %s", run_id)

    async def _safe_fail(self, run_id: str, step: str, message: str) -> None:
        try:
            await self._log(run_id, "error", step, message)
            await self._store.update_run(
                run_id, status="failed", error=message, completed_at=utcnow()
            )
        except Exception:
            logger.exception("Failed to update run %s after %s", run_id, step)


def _discard_result(task: asyncio.Task[Any]) -> None:
    """Retrieve the outcome of an abandoned task so asyncio does not warn."""
    if not task.cancelled():
        task.exception()
