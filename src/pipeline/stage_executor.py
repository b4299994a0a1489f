# src/pipeline/stage_executor.py — v2
"""Pipeline stage executor — run a team's agents in order over one report.

Walks the ordered agent list from the first position without a
completed StageRecord, threading a HandoffContext from stage to stage.
Completed positions are never re-run: their contribution is rebuilt
from the handoff summaries in the run log.

Halts on the first failure and returns it as a StageOutcome:
  - cost limit reached before a stage
  - agent without a model, provider failure, unexpected exception
  - report section write failure
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from teamrun.core.models import (
    DEFAULT_ROLE,
    AgentDefinition,
    Run,
    StageRecord,
    TeamMember,
    utcnow,
)
from teamrun.logging.context import clear_agent_context, set_agent_context
from teamrun.pipeline.generation import (
    GenerationFailure,
    GenerationLoop,
    GenerationRequest,
    GenerationResult,
)
from teamrun.pipeline.resume import ResumeReader, extract_handoff_summary
from teamrun.pipeline.state import HandoffContext, PriorOutput, StageOutcome
from teamrun.reports.report_builder import (
    AgentSlot,
    ReportBuilder,
    agent_config_content,
    conclusion_content,
    overview_content,
    section,
    synthesis_content,
)
from teamrun.storage.base_run_store import BaseRunStore
from teamrun.tools.builtin import BuiltinRegistry
from teamrun.tools.mcp_client import McpToolClient
from teamrun.tools.resolver import resolve_tools
from teamrun.tracking.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)

LogFn = Callable[..., Awaitable[Any]]

NO_AGENTS_REASON = "No agents assigned — cannot run without at least one agent"
SECTION_WRITE_FAILED = "Failed to write report sections"


def compute_resume_from(stages: list[StageRecord], agent_count: int) -> int:
    """Smallest position without a completed stage record, or ``agent_count``."""
    completed = {s.position for s in stages if s.status == "completed"}
    for position in range(agent_count):
        if position not in completed:
            return position
    return agent_count


class PipelineStageExecutor:
    """Execute the unexecuted stages of a run.

    Args:
        store: Run store (stage records, run log).
        generation: Per-stage LLM generation loop.
        reports: Report builder for section writes.
        ledger: Usage ledger for cost checks and stage usage.
        log: Run log callback.
        builtins: Builtin tool sets agents may bind.
        mcp_client: Client for remote tool discovery.
    """

    def __init__(
        self,
        store: BaseRunStore,
        generation: GenerationLoop,
        reports: ReportBuilder,
        ledger: UsageLedger,
        log: LogFn,
        builtins: BuiltinRegistry | None = None,
        mcp_client: McpToolClient | None = None,
    ) -> None:
        self._store = store
        self._generation = generation
        self._reports = reports
        self._ledger = ledger
        self._log = log
        self._builtins = builtins or BuiltinRegistry()
        self._mcp = mcp_client

    async def execute(self, run: Run, agents: list[AgentSlot], report_id: str) -> StageOutcome:
        """Run every stage from the resume point; stop at the first failure."""
        if not agents:
            return StageOutcome.failure(NO_AGENTS_REASON)

        stages = await self._store.list_stages(run.id)
        resume_from = compute_resume_from(stages, len(agents))

        reader = ResumeReader(self._store, run.id)
        await reader.load()

        if resume_from == 0:
            overview = section("Overview", overview_content(run, agents))
            if not await self._reports.write_sections(report_id, [overview]):
                return StageOutcome.failure(SECTION_WRITE_FAILED)
        else:
            await self._log(
                run.id, "info", "resume",
                f"Resuming from Stage {resume_from + 1}, "
                f"skipping {resume_from} completed stage(s)",
            )

        handoff = HandoffContext(
            prompt=run.prompt,
            report_id=report_id,
            prior_outputs=[
                PriorOutput(
                    agent_name=agent.name,
                    role=member.role or DEFAULT_ROLE,
                    summary=reader.handoff_summary(agent.name) or "",
                )
                for agent, member in agents[:resume_from]
            ],
        )

        for position in range(resume_from, len(agents)):
            if run.cost_limit is not None:
                check = await self._ledger.check_cost_limit("run", run.id, run.cost_limit)
                if not check.ok:
                    reason = f"Cost limit of ${run.cost_limit} exceeded"
                    await self._log(
                        run.id, "error", "cost_limit", reason,
                        {"current_total": str(check.current_total), "position": position},
                    )
                    return StageOutcome.failure(reason)

            agent, member = agents[position]
            outcome, handoff = await self._run_stage(run, agent, member, position, handoff, reader)
            if not outcome.ok:
                return outcome

        closing = [
            section("Pipeline Summary", synthesis_content(run, agents, handoff.prior_outputs)),
            section("Conclusion", conclusion_content(run, agents)),
        ]
        if not await self._reports.write_sections(report_id, closing):
            logger.warning("Closing sections for run %s were not written", run.id)
        return StageOutcome.success()

    async def _run_stage(
        self,
        run: Run,
        agent: AgentDefinition,
        member: TeamMember,
        position: int,
        handoff: HandoffContext,
        reader: ResumeReader,
    ) -> tuple[StageOutcome, HandoffContext]:
        set_agent_context(agent.name, position)
        try:
            return await self._stage_body(run, agent, member, position, handoff, reader)
        finally:
            clear_agent_context()

    async def _stage_body(
        self,
        run: Run,
        agent: AgentDefinition,
        member: TeamMember,
        position: int,
        handoff: HandoffContext,
        reader: ResumeReader,
    ) -> tuple[StageOutcome, HandoffContext]:
        role = member.role or DEFAULT_ROLE
        stage_name = f"Stage {position + 1}: {agent.name} ({role})"

        await self._log(run.id, "info", "agent_start", f"Starting {stage_name}", {
            "agent": agent.name,
            "role": role,
            "strategy": agent.strategy,
            "model": agent.llm_model.name if agent.llm_model else None,
            "position": position,
        })

        stage_started_at = utcnow()
        stage = await self._store.add_stage(StageRecord(
            run_id=run.id,
            name=stage_name,
            description=member.description or f"{role} stage using {agent.strategy} strategy",
            position=position,
            status="running",
            agent_id=agent.id,
            started_at=stage_started_at,
        ))
        start = time.monotonic()

        resume_messages = reader.crash_messages(agent.name)
        if resume_messages:
            await self._log(
                run.id, "info", "agent_resume", f"Resuming {stage_name} from saved context",
                {"agent": agent.name, "message_count": len(resume_messages)},
            )

        try:
            result = await self._generate(run, agent, role, handoff, resume_messages)
        except Exception as e:
            logger.exception("Agent %s raised during execution", agent.name)
            result = GenerationFailure(str(e) or type(e).__name__, resume_messages or [])

        duration_ms = int((time.monotonic() - start) * 1000)

        if isinstance(result, GenerationFailure):
            await self._fail_stage(run, stage, stage_name, agent.name, result, duration_ms)
            return StageOutcome.failure(result.reason), handoff

        sections = [
            section(f"{stage_name}/Configuration", agent_config_content(agent)),
            section(f"{stage_name}/Analysis", result.analysis),
            section(f"{stage_name}/Output", result.output),
        ]
        if not await self._reports.write_sections(handoff.report_id or "", sections):
            await self._fail_stage(
                run, stage, stage_name, agent.name,
                GenerationFailure(SECTION_WRITE_FAILED), duration_ms,
            )
            return StageOutcome.failure(SECTION_WRITE_FAILED), handoff

        await self._store.update_stage(
            stage.id,
            status="completed",
            output_summary=f"{agent.name} ({role}) completed",
            duration_ms=duration_ms,
            completed_at=utcnow(),
        )

        handoff_summary = extract_handoff_summary(result.output, self._generation.handoff_max_chars)
        stage_usage = await self._ledger.usage_by_run_since(run.id, stage_started_at)

        await self._log(
            run.id, "info", "agent_complete", f"Completed {stage_name} in {duration_ms}ms",
            {
                "agent": agent.name,
                "duration_ms": duration_ms,
                "output_length": len(result.output),
                "output": result.output,
                "handoff_summary": handoff_summary,
                "messages": result.messages,
                "usage": stage_usage.as_log_metadata(),
            },
        )

        return StageOutcome.success(), handoff.with_output(
            PriorOutput(agent_name=agent.name, role=role, summary=handoff_summary)
        )

    async def _generate(
        self,
        run: Run,
        agent: AgentDefinition,
        role: str,
        handoff: HandoffContext,
        resume_messages: list[dict[str, Any]] | None,
    ) -> GenerationResult | GenerationFailure:
        if agent.llm_model is None:
            return GenerationFailure(f"Agent '{agent.name}' has no LLM model configured")

        tools = await resolve_tools(agent, self._builtins, self._mcp)
        await self._log(
            run.id, "warning" if tools.errors else "info", "tool_resolve",
            f"Resolved {len(tools.specs)} tool(s) for {agent.name}",
            {
                "agent": agent.name,
                "tool_count": len(tools.specs),
                "tool_names": [s.name for s in tools.specs],
                "errors": tools.errors,
            },
        )

        await self._log(run.id, "info", "llm_call", f"Calling LLM for {agent.name}", {
            "agent": agent.name,
            "model": agent.llm_model.name,
        })

        return await self._generation.generate(GenerationRequest(
            agent_name=agent.name,
            role=role,
            prompt=handoff.prompt,
            model=agent.llm_model,
            strategy=agent.strategy,
            system_prompt=agent.system_prompt,
            backstory=agent.backstory,
            opinions=agent.opinions,
            tools=tools.specs,
            tool_targets=tools.targets,
            config=agent.config,
            prior_context=handoff.prior_context(),
            report_id=handoff.report_id,
            run_id=run.id,
            user_id=run.user_id,
            cost_limit=run.cost_limit,
            resume_messages=resume_messages,
        ))

    async def _fail_stage(
        self,
        run: Run,
        stage: StageRecord,
        stage_name: str,
        agent_name: str,
        failure: GenerationFailure,
        duration_ms: int,
    ) -> None:
        await self._store.update_stage(
            stage.id,
            status="failed",
            error=failure.reason,
            duration_ms=duration_ms,
            completed_at=utcnow(),
        )
        await self._log(
            run.id, "error", "agent_crash", f"{stage_name} crashed: {failure.reason}",
            {"agent": agent_name, "duration_ms": duration_ms, "messages": failure.messages},
        )
