# src/tools/models.py — v1
"""Tool dispatch types.

ToolTarget is a closed variant resolved once per agent when its tool
list is built: a builtin handler or a remote MCP endpoint. Execution
never looks a backend up by string at call time.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class ToolContext:
    """Caller identity passed to every tool execution."""

    user_id: str | None = None
    run_id: str | None = None
    agent: str | None = None


BuiltinHandler = Callable[[str, dict[str, Any], ToolContext], Awaitable[Any]]


@dataclass(frozen=True)
class BuiltinTarget:
    """In-process tool handler: ``await handler(tool_name, input, context)``."""

    handler: BuiltinHandler
    toolset: str = ""


@dataclass(frozen=True)
class RemoteTarget:
    """MCP server reachable over streamable HTTP."""

    url: str
    server_name: str = ""
    api_key: str | None = None
    headers: dict[str, str] = field(default_factory=dict)


ToolTarget = Union[BuiltinTarget, RemoteTarget]


@dataclass(frozen=True)
class ToolOutcome:
    """Result of one tool execution. ``reason`` is set when ``ok`` is False."""

    ok: bool
    result: Any = None
    reason: str | None = None

    @classmethod
    def success(cls, result: Any) -> ToolOutcome:
        return cls(ok=True, result=result)

    @classmethod
    def error(cls, reason: str) -> ToolOutcome:
        return cls(ok=False, reason=reason)
