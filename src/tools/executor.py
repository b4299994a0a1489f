# src/tools/executor.py — v1
"""Tool Execution Service: run one tool call against its resolved target.

Backend failures never escape as exceptions; they come back as
``ToolOutcome(ok=False, reason=...)`` and reach the model as
``"Error: <reason>"`` so the generation loop can keep going.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from teamrun.core.errors import ToolExecutionError
from teamrun.tools.mcp_client import McpToolClient
from teamrun.tools.models import BuiltinTarget, RemoteTarget, ToolContext, ToolOutcome, ToolTarget

logger = logging.getLogger(__name__)


class ToolExecutionService:
    """Dispatch tool calls to builtin handlers or remote MCP servers."""

    def __init__(self, mcp_client: McpToolClient | None = None) -> None:
        self._mcp = mcp_client or McpToolClient()

    async def execute(
        self,
        target: ToolTarget | None,
        tool_name: str,
        tool_input: dict[str, Any],
        context: ToolContext,
    ) -> ToolOutcome:
        """Execute ``tool_name`` with ``tool_input``.

        Args:
            target: Resolved backend for the tool; None when the model
                asked for a tool the agent was never given.
            tool_name: Tool name as declared to the model.
            tool_input: Decoded arguments.
            context: Caller identity.

        Returns:
            ToolOutcome with the raw result or an error reason.
        """
        if target is None:
            logger.warning("Agent %s called unknown tool %s", context.agent, tool_name)
            return ToolOutcome.error(f"Unknown tool: {tool_name}")

        try:
            if isinstance(target, BuiltinTarget):
                result = await target.handler(tool_name, tool_input, context)
            elif isinstance(target, RemoteTarget):
                result = await self._mcp.call_tool(target, tool_name, tool_input)
            else:
                return ToolOutcome.error(f"Unsupported tool target for {tool_name}")
        except ToolExecutionError as e:
            logger.warning("Tool %s failed for %s: %s", tool_name, context.agent, e)
            return ToolOutcome.error(str(e))

        if isinstance(result, dict) and result.get("isError"):
            return ToolOutcome.error(format_tool_output(result))
        return ToolOutcome.success(result)


def format_tool_output(result: Any) -> str:
    """Flatten a tool result to the text handed back to the model.

    ``{"content": [...]}`` joins its text blocks with newlines (other
    blocks as JSON); other dicts and lists become JSON; None becomes ''.
    """
    if result is None:
        return ""
    if isinstance(result, dict) and isinstance(result.get("content"), list):
        return "\n".join(
            block["text"] if isinstance(block, dict) and "text" in block else json.dumps(block)
            for block in result["content"]
        )
    if isinstance(result, (dict, list)):
        return json.dumps(result)
    return str(result)


def outcome_text(outcome: ToolOutcome) -> str:
    """Text for the tool-result message of one outcome."""
    if outcome.ok:
        return format_tool_output(outcome.result)
    return f"Error: {outcome.reason}"
