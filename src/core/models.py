# src/core/models.py — v2
"""Core domain models: Run, StageRecord, LogEntry, agent and team definitions.

Runs, stage records and log entries are persisted by a BaseRunStore.
Agent and team definitions are read-only inputs resolved through a
BaseTeamDirectory.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field

from teamrun.llm.models import ToolSpec

RunStatus = Literal["pending", "running", "completed", "failed", "cancelled"]
StageStatus = Literal["pending", "running", "completed", "failed"]
LogLevel = Literal["debug", "info", "warning", "error"]

TERMINAL_RUN_STATUSES: frozenset[str] = frozenset({"completed", "failed", "cancelled"})

DEFAULT_ROLE = "worker"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


# === RUNS ===

class Run(BaseModel):
    """One execution of a prompt through a team of agents."""

    id: str = Field(default_factory=new_id)
    name: str = ""
    prompt: str
    topology: str = "pipeline"
    status: RunStatus = "pending"
    cost_limit: Decimal | None = None
    timeout_ms: int = 1_800_000
    team_id: str | None = None
    user_id: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    deliverables: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RUN_STATUSES


class StageRecord(BaseModel):
    """One agent position within a run's pipeline."""

    id: str = Field(default_factory=new_id)
    run_id: str
    name: str
    description: str = ""
    position: int
    status: StageStatus = "pending"
    agent_id: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None
    output_summary: str | None = None
    error: str | None = None


class LogEntry(BaseModel):
    """Append-only run log entry.

    Doubles as the resume substrate: ``agent_complete`` entries carry
    handoff summaries, ``agent_crash`` entries carry serialized messages.
    """

    id: str = Field(default_factory=new_id)
    run_id: str
    level: LogLevel = "info"
    step: str
    message: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    inserted_at: datetime = Field(default_factory=utcnow)

    @property
    def agent(self) -> str | None:
        return self.metadata.get("agent")


# === AGENTS & TEAMS ===

class LLMModelRef(BaseModel):
    """LLM model bound to an agent."""

    id: str | None = None
    name: str
    provider: str = "anthropic"
    model: str
    use_converse: bool | None = None
    input_cost_per_1m: Decimal | None = None
    output_cost_per_1m: Decimal | None = None


class AgentToolBinding(BaseModel):
    """A tool source assigned to an agent.

    ``builtin`` bindings name a registered builtin tool set; ``remote``
    bindings point at an MCP server over HTTP. ``allowed`` restricts the
    exposed tools by name (empty = all). Remote ``tools`` may be declared
    inline; when empty they are discovered from the server.
    """

    kind: Literal["builtin", "remote"]
    name: str
    url: str | None = None
    api_key: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    allowed: list[str] = Field(default_factory=list)
    tools: list[ToolSpec] = Field(default_factory=list)


class AgentDefinition(BaseModel):
    """The character sheet of an agent."""

    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    system_prompt: str = ""
    backstory: str = ""
    opinions: dict[str, Any] = Field(default_factory=dict)
    strategy: str = "react"
    status: str = "active"
    llm_model: LLMModelRef | None = None
    tools: list[AgentToolBinding] = Field(default_factory=list)
    config: dict[str, Any] = Field(default_factory=dict)


class TeamMember(BaseModel):
    """Agent slot in a team."""

    agent_id: str
    role: str | None = DEFAULT_ROLE
    position: int = 0
    description: str | None = None


class Team(BaseModel):
    """Ordered list of team members."""

    id: str = Field(default_factory=new_id)
    name: str = ""
    topology: str = "pipeline"
    members: list[TeamMember] = Field(default_factory=list)


# === REPORTS ===

class ReportSection(BaseModel):
    """Change to one report section, addressed by slash-separated path."""

    path: str
    action: Literal["upsert", "delete"] = "upsert"
    content: str = ""


class Report(BaseModel):
    """Report as held by a sink. Sections keep first-write order."""

    id: str = Field(default_factory=new_id)
    title: str
    sections: dict[str, str] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
