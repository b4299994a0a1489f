# src/tools/resolver.py — v1
"""Resolve an agent's tool bindings into tool specs and dispatch targets.

Resolution happens once per stage. Each exposed tool name maps to
exactly one ToolTarget; a later binding exposing the same name wins,
with a warning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from teamrun.core.errors import ToolExecutionError
from teamrun.core.models import AgentDefinition, AgentToolBinding
from teamrun.llm.models import ToolSpec
from teamrun.tools.builtin import BuiltinRegistry
from teamrun.tools.mcp_client import McpToolClient
from teamrun.tools.models import RemoteTarget, ToolTarget

logger = logging.getLogger(__name__)


@dataclass
class ResolvedTools:
    """Tool declarations for the model plus the per-agent server map."""

    specs: list[ToolSpec] = field(default_factory=list)
    targets: dict[str, ToolTarget] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)

    def add(self, spec: ToolSpec, target: ToolTarget) -> None:
        if spec.name in self.targets:
            logger.warning("Tool %s declared by more than one binding; last one wins", spec.name)
            self.specs = [s for s in self.specs if s.name != spec.name]
        self.specs.append(spec)
        self.targets[spec.name] = target


async def resolve_tools(
    agent: AgentDefinition,
    builtins: BuiltinRegistry,
    mcp_client: McpToolClient | None = None,
) -> ResolvedTools:
    """Build the tool list and server map for one agent.

    Bindings that cannot be resolved (unknown builtin set, unreachable
    server) are skipped and listed in ``errors``; the stage still runs
    with the remaining tools.
    """
    resolved = ResolvedTools()

    for binding in agent.tools:
        if binding.kind == "builtin":
            toolset = builtins.get(binding.name)
            if toolset is None:
                resolved.errors.append(f"Unknown builtin tool set: {binding.name}")
                continue
            target = toolset.target()
            for spec in _allowed(toolset.list_tools(), binding):
                resolved.add(spec, target)
            continue

        if not binding.url:
            resolved.errors.append(f"Remote tool binding {binding.name} has no url")
            continue

        target = RemoteTarget(
            url=binding.url,
            server_name=binding.name,
            api_key=binding.api_key,
            headers=dict(binding.headers),
        )
        specs = binding.tools
        if not specs:
            if mcp_client is None:
                resolved.errors.append(f"No MCP client to discover tools on {binding.name}")
                continue
            try:
                specs = await mcp_client.list_tools(target)
            except ToolExecutionError as e:
                resolved.errors.append(f"Tool discovery failed for {binding.name}: {e}")
                continue
        for spec in _allowed(specs, binding):
            resolved.add(spec, target)

    return resolved


def _allowed(specs: list[ToolSpec], binding: AgentToolBinding) -> list[ToolSpec]:
    if not binding.allowed:
        return list(specs)
    allowed = set(binding.allowed)
    return [s for s in specs if s.name in allowed]
