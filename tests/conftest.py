# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides a scripted LLM provider, in-memory store / sink / directory,
and an orchestrator factory wired with a no-op backoff sleep.
No external dependencies — all provider and network I/O is faked.
"""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any

import pytest

from teamrun.config.settings import Settings
from teamrun.core.models import AgentDefinition, LLMModelRef, Run, Team, TeamMember
from teamrun.llm.base_client import BaseLLMProvider
from teamrun.llm.client_factory import ProviderRegistry
from teamrun.llm.models import GenerateOptions, GenerateResponse, Message, ToolCall, Usage
from teamrun.pipeline.orchestrator import RunOrchestrator
from teamrun.reports.memory_sink import MemoryReportSink
from teamrun.storage.memory_store import MemoryRunStore
from teamrun.teams.directory import MemoryTeamDirectory


# === FAKE PROVIDER ===


def _text_response(text: str, cost: str | None = None) -> GenerateResponse:
    return GenerateResponse(
        text=text,
        usage=Usage(
            input_tokens=100,
            output_tokens=50,
            total_cost=Decimal(cost) if cost is not None else None,
        ),
        provider="scripted",
    )


def _tool_response(*calls: ToolCall, text: str = "", cost: str | None = None) -> GenerateResponse:
    return GenerateResponse(
        text=text,
        tool_calls=list(calls),
        usage=Usage(
            input_tokens=100,
            output_tokens=20,
            total_cost=Decimal(cost) if cost is not None else None,
        ),
        provider="scripted",
    )


class ScriptedProvider(BaseLLMProvider):
    """Provider that replays a queue of responses or exceptions.

    A callable entry is invoked with the conversation and its result
    (awaited if needed) is used as the response. Once the queue is empty
    the ``default`` response is returned.
    """

    def __init__(
        self,
        script: list[Any] | None = None,
        default: GenerateResponse | None = None,
    ) -> None:
        self.script: list[Any] = list(script or [])
        self.default = default or _text_response("Done.\n\n## Handoff Summary\n- nothing more")
        self.calls: list[tuple[LLMModelRef, list[Message], GenerateOptions]] = []

    @property
    def provider_name(self) -> str:
        return "scripted"

    async def generate(
        self,
        model: LLMModelRef,
        conversation: list[Message],
        options: GenerateOptions,
    ) -> GenerateResponse:
        self.calls.append((model, list(conversation), options))
        item = self.script.pop(0) if self.script else self.default
        if isinstance(item, BaseException):
            raise item
        if callable(item):
            item = item(conversation)
            if asyncio.iscoroutine(item):
                item = await item
        return item


async def _no_sleep(_: float) -> None:
    return None


# === FIXTURES: Fakes ===


@pytest.fixture
def scripted():
    """ScriptedProvider class: ``scripted([resp, exc, ...])``."""
    return ScriptedProvider


@pytest.fixture
def text_response():
    """Build a final (no tools) GenerateResponse."""
    return _text_response


@pytest.fixture
def tool_response():
    """Build a GenerateResponse requesting tool calls."""
    return _tool_response


@pytest.fixture
def no_sleep():
    return _no_sleep


# === FIXTURES: Domain objects ===


@pytest.fixture
def model_ref() -> LLMModelRef:
    return LLMModelRef(name="Scripted", provider="scripted", model="scripted-1")


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, llm_backoff_ms=1)  # type: ignore[call-arg]


@pytest.fixture
def store() -> MemoryRunStore:
    return MemoryRunStore()


@pytest.fixture
def sink() -> MemoryReportSink:
    return MemoryReportSink()


@pytest.fixture
def make_team(model_ref):
    """Build (directory, team, agents) for a list of agent names."""

    def _make(
        names: list[str],
        roles: list[str] | None = None,
        with_model: bool = True,
        **agent_kwargs: Any,
    ) -> tuple[MemoryTeamDirectory, Team, list[AgentDefinition]]:
        agents = [
            AgentDefinition(name=name, llm_model=model_ref if with_model else None, **agent_kwargs)
            for name in names
        ]
        roles = roles or ["worker"] * len(names)
        team = Team(
            name="team",
            members=[
                TeamMember(agent_id=agent.id, role=role, position=idx)
                for idx, (agent, role) in enumerate(zip(agents, roles))
            ],
        )
        return MemoryTeamDirectory(teams=[team], agents=agents), team, agents

    return _make


@pytest.fixture
def make_orchestrator(store, sink, settings):
    """Orchestrator over the shared store and sink with a scripted provider."""

    def _make(
        directory: MemoryTeamDirectory,
        provider: BaseLLMProvider,
        settings_override: Settings | None = None,
    ) -> RunOrchestrator:
        return RunOrchestrator.create(
            store=store,
            directory=directory,
            sink=sink,
            settings=settings_override or settings,
            providers=ProviderRegistry(overrides={"scripted": provider}),
            sleep=_no_sleep,
        )

    return _make


@pytest.fixture
def submit_run(store):
    """Persist a pending run for a team."""

    async def _submit(team: Team, **kwargs: Any) -> Run:
        kwargs.setdefault("name", "Test run")
        kwargs.setdefault("prompt", "Analyze the market")
        return await store.create_run(Run(team_id=team.id, **kwargs))

    return _submit
