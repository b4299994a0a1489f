# src/teams/directory.py — v1
"""Team and agent directory: the read-only inputs of a run.

Definition file format (JSON)::

    {
      "agents": [{"name": "researcher", "llm_model": {...}, ...}],
      "team": {"name": "...", "members": [{"agent": "researcher", "role": "analyst"}]},
      "run": {"name": "...", "prompt": "...", "cost_limit": "0.50"}
    }

Members reference agents by name or id; positions default to list order.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from teamrun.config.agents import DECLARED_TOPOLOGIES
from teamrun.core.errors import ConfigurationError
from teamrun.core.models import AgentDefinition, Run, Team, TeamMember

logger = logging.getLogger(__name__)


class BaseTeamDirectory(ABC):
    """Lookup of team and agent definitions."""

    @abstractmethod
    async def get_team(self, team_id: str) -> Team | None:
        """Team by id, or None."""

    @abstractmethod
    async def get_agent(self, agent_id: str) -> AgentDefinition | None:
        """Agent definition by id, or None."""


class MemoryTeamDirectory(BaseTeamDirectory):
    """Dict-backed directory."""

    def __init__(
        self,
        teams: list[Team] | None = None,
        agents: list[AgentDefinition] | None = None,
    ) -> None:
        self._teams = {t.id: t for t in teams or []}
        self._agents = {a.id: a for a in agents or []}

    def add_team(self, team: Team) -> Team:
        self._teams[team.id] = team
        return team

    def add_agent(self, agent: AgentDefinition) -> AgentDefinition:
        self._agents[agent.id] = agent
        return agent

    async def get_team(self, team_id: str) -> Team | None:
        return self._teams.get(team_id)

    async def get_agent(self, agent_id: str) -> AgentDefinition | None:
        return self._agents.get(agent_id)

    def list_agents(self) -> list[AgentDefinition]:
        return list(self._agents.values())

    def list_teams(self) -> list[Team]:
        return list(self._teams.values())

    def dump(self) -> dict[str, Any]:
        return {
            "agents": [a.model_dump(mode="json") for a in self.list_agents()],
            "teams": [t.model_dump(mode="json") for t in self.list_teams()],
        }

    @classmethod
    def from_dump(cls, data: dict[str, Any]) -> MemoryTeamDirectory:
        try:
            return cls(
                teams=[Team.model_validate(t) for t in data.get("teams") or []],
                agents=[AgentDefinition.model_validate(a) for a in data.get("agents") or []],
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid team directory: {e}") from e


def load_definition_file(path: Path) -> tuple[MemoryTeamDirectory, Run]:
    """Parse a run definition file into a directory and a pending Run.

    Raises:
        ConfigurationError: If the file is unreadable or invalid.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read definition file {path}: {e}") from e

    try:
        agents = [AgentDefinition.model_validate(a) for a in data.get("agents") or []]
    except ValidationError as e:
        raise ConfigurationError(f"Invalid agent definition: {e}") from e

    by_ref: dict[str, AgentDefinition] = {}
    for agent in agents:
        by_ref[agent.id] = agent
        by_ref[agent.name] = agent

    team_data = data.get("team") or {}
    members: list[TeamMember] = []
    for idx, raw in enumerate(team_data.get("members") or []):
        ref = raw.get("agent") or raw.get("agent_id")
        agent = by_ref.get(ref or "")
        if agent is None:
            raise ConfigurationError(f"Team member references unknown agent: {ref!r}")
        members.append(TeamMember(
            agent_id=agent.id,
            role=raw.get("role"),
            position=raw.get("position", idx),
            description=raw.get("description"),
        ))

    run_data = data.get("run") or {}
    topology = run_data.get("topology") or team_data.get("topology", "pipeline")
    if topology not in DECLARED_TOPOLOGIES:
        raise ConfigurationError(
            f"Unknown topology {topology!r}. "
            f"Expected one of: {', '.join(sorted(DECLARED_TOPOLOGIES))}"
        )
    team = Team(
        name=team_data.get("name", ""),
        topology=team_data.get("topology", "pipeline"),
        members=members,
    )
    try:
        run = Run.model_validate({
            "topology": team.topology,
            **run_data,
            "team_id": team.id,
        })
    except ValidationError as e:
        raise ConfigurationError(f"Invalid run definition: {e}") from e

    logger.info("Loaded definition %s: %d agent(s), %d member(s)", path, len(agents), len(members))
    return MemoryTeamDirectory(teams=[team], agents=agents), run


def load_directory(path: Path) -> MemoryTeamDirectory:
    """Load a saved directory file; a missing file yields an empty directory."""
    if not path.exists():
        return MemoryTeamDirectory()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read team directory {path}: {e}") from e
    return MemoryTeamDirectory.from_dump(data)


def save_directory(directory: MemoryTeamDirectory, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(directory.dump(), indent=2), encoding="utf-8")


def merge_directories(base: MemoryTeamDirectory, extra: MemoryTeamDirectory) -> MemoryTeamDirectory:
    """Directory holding the definitions of both; ``extra`` wins on id clashes."""
    merged = MemoryTeamDirectory.from_dump(base.dump())
    for agent in extra.list_agents():
        merged.add_agent(agent)
    for team in extra.list_teams():
        merged.add_team(team)
    return merged
