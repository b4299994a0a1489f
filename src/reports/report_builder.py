# src/reports/report_builder.py — v1
"""Report creation, section writes and section content for pipeline runs.

Content builders are pure functions of the run and its resolved agents;
ReportBuilder owns the sink calls and the ``create_report`` / ``resume``
log entries.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from teamrun.core.errors import ReportWriteError
from teamrun.core.models import (
    DEFAULT_ROLE,
    AgentDefinition,
    LogEntry,
    ReportSection,
    Run,
    TeamMember,
)
from teamrun.pipeline.resume import find_existing_report
from teamrun.pipeline.state import PriorOutput
from teamrun.reports.base_report_sink import BaseReportSink

logger = logging.getLogger(__name__)

AgentSlot = tuple[AgentDefinition, TeamMember]
LogFn = Callable[..., Awaitable[Any]]


class ReportBuilder:
    """Thin adapter between the engine and a report sink."""

    def __init__(self, sink: BaseReportSink, log: LogFn) -> None:
        self._sink = sink
        self._log = log

    async def get_or_create_report(
        self,
        run: Run,
        agents: list[AgentSlot],
        logs: list[LogEntry],
    ) -> str:
        """Reuse the run's report if one exists, else create it.

        Raises:
            ReportWriteError: If the sink cannot create the report.
        """
        report_id = find_existing_report(run, logs)
        if report_id is not None:
            await self._log(
                run.id, "info", "resume", "Resuming with existing report",
                {"report_id": report_id},
            )
            return report_id

        report_id = await self._sink.create(build_report_title(run, agents))
        await self._log(
            run.id, "info", "create_report", "Created report", {"report_id": report_id}
        )
        return report_id

    async def write_sections(self, report_id: str, sections: list[ReportSection]) -> bool:
        """Write sections; sink failures are logged and reported as False."""
        try:
            await self._sink.write_sections(report_id, sections)
        except ReportWriteError as e:
            logger.error("Failed to write %d section(s) to report %s: %s", len(sections), report_id, e)
            return False
        return True


def section(path: str, content: str) -> ReportSection:
    return ReportSection(path=path, content=content)


def build_report_title(run: Run, agents: list[AgentSlot]) -> str:
    agent_names = ", ".join(agent.name for agent, _ in agents)
    return f"{run.name} — {agent_names}"


def overview_content(run: Run, agents: list[AgentSlot]) -> str:
    agent_list = "\n".join(
        f"{idx}. **{agent.name}** — {member.role or DEFAULT_ROLE} ({agent.strategy})"
        for idx, (agent, member) in enumerate(agents, start=1)
    )
    return (
        f"**Prompt:** {run.prompt}\n\n"
        f"**Topology:** {run.topology}\n\n"
        f"**Pipeline Stages:**\n{agent_list}\n\n"
        "**Execution:** Sequential pipeline — each agent processes in order, "
        "passing context forward to the next stage."
    )


def synthesis_content(run: Run, agents: list[AgentSlot], prior_outputs: list[PriorOutput]) -> str:
    stage_summary = "\n".join(
        f"{idx}. **{prior.agent_name}** ({prior.role}) — completed successfully"
        for idx, prior in enumerate(prior_outputs, start=1)
    )
    return (
        "## Pipeline Execution Summary\n\n"
        f"The run **{run.name}** was executed through a "
        f"**{len(agents)}-stage pipeline**.\n\n"
        f"**Stages completed:**\n{stage_summary}\n\n"
        f"All {len(agents)} agents processed the prompt sequentially, "
        "each building on the outputs of prior stages."
    )


def conclusion_content(run: Run, agents: list[AgentSlot]) -> str:
    return (
        f"Run **{run.name}** completed successfully through a "
        f"**{len(agents)}-agent pipeline**. "
        "Each agent contributed their specialized analysis, "
        "producing a comprehensive deliverable. "
        "This report was generated automatically by the teamrun engine."
    )


def agent_config_content(agent: AgentDefinition) -> str:
    model_name = agent.llm_model.name if agent.llm_model else "(none)"
    lines = [
        f"- **Name:** {agent.name}",
        f"- **Strategy:** {agent.strategy}",
        f"- **Status:** {agent.status}",
        f"- **Model:** {model_name}",
    ]
    if agent.system_prompt:
        lines.append(f"\n**System Prompt:**\n```\n{agent.system_prompt}\n```")
    if agent.backstory:
        lines.append(f"\n**Backstory:** {agent.backstory}")
    return "\n".join(lines)
