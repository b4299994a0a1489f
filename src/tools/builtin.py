# src/tools/builtin.py — v1
"""Builtin tool sets exposed to agents without a remote server.

A tool set declares its tools (``<set>__<action>`` names) and answers
calls in MCP result shape: ``{"content": [{"type": "text", "text": ...}]}``.
The report tools let an agent read the run's report and add sections
to it during generation.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import ValidationError

from teamrun.core.errors import ReportWriteError, ToolExecutionError
from teamrun.core.models import ReportSection
from teamrun.llm.models import ToolSpec
from teamrun.reports.base_report_sink import BaseReportSink
from teamrun.reports.render import render_markdown
from teamrun.tools.models import BuiltinTarget, ToolContext

logger = logging.getLogger(__name__)


def text_result(text: str) -> dict[str, Any]:
    return {"content": [{"type": "text", "text": text}]}


class BuiltinToolset(ABC):
    """A named group of in-process tools."""

    id: str = ""

    @abstractmethod
    def list_tools(self) -> list[ToolSpec]:
        """Tools this set provides."""

    @abstractmethod
    async def call_tool(self, name: str, arguments: dict[str, Any], context: ToolContext) -> Any:
        """Run one tool.

        Raises:
            ToolExecutionError: If the call cannot be completed.
        """

    def target(self) -> BuiltinTarget:
        return BuiltinTarget(handler=self.call_tool, toolset=self.id)


class ReportTools(BuiltinToolset):
    """reports__create, reports__get and reports__modify_sections over a sink."""

    id = "reports"

    def __init__(self, sink: BaseReportSink) -> None:
        self._sink = sink

    def list_tools(self) -> list[ToolSpec]:
        return [
            ToolSpec(
                name="reports__create",
                description="Create a new empty report. Returns its id.",
                input_schema={
                    "type": "object",
                    "properties": {"title": {"type": "string", "description": "Report title"}},
                    "required": ["title"],
                },
            ),
            ToolSpec(
                name="reports__get",
                description="Read a report rendered as markdown.",
                input_schema={
                    "type": "object",
                    "properties": {"report_id": {"type": "string"}},
                    "required": ["report_id"],
                },
            ),
            ToolSpec(
                name="reports__modify_sections",
                description=(
                    "Apply section actions to a report in order. Each action is "
                    "\"upsert\" (requires path and content) or \"delete\" (requires path). "
                    "Paths are slash-separated, e.g. \"Findings/Risks\"."
                ),
                input_schema={
                    "type": "object",
                    "properties": {
                        "report_id": {"type": "string"},
                        "actions": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "action": {"type": "string", "enum": ["upsert", "delete"]},
                                    "path": {"type": "string"},
                                    "content": {"type": "string"},
                                },
                                "required": ["path"],
                            },
                        },
                    },
                    "required": ["report_id", "actions"],
                },
            ),
        ]

    async def call_tool(self, name: str, arguments: dict[str, Any], context: ToolContext) -> Any:
        try:
            if name == "reports__create":
                title = _require(arguments, "title")
                report_id = await self._sink.create(title)
                return text_result(json.dumps({"id": report_id, "title": title}))

            if name == "reports__get":
                report_id = _require(arguments, "report_id")
                report = await self._sink.get(report_id)
                if report is None:
                    raise ToolExecutionError(f"Report not found: {report_id}")
                return text_result(render_markdown(report))

            if name == "reports__modify_sections":
                report_id = _require(arguments, "report_id")
                sections = [ReportSection.model_validate(a) for a in arguments.get("actions") or []]
                await self._sink.write_sections(report_id, sections)
                return text_result(
                    json.dumps({"report_id": report_id, "applied": len(sections)})
                )
        except ReportWriteError as e:
            raise ToolExecutionError(str(e)) from e
        except ValidationError as e:
            raise ToolExecutionError(f"Invalid section action: {e.errors()[0]['msg']}") from e

        raise ToolExecutionError(f"Unknown tool: {name}")


def _require(arguments: dict[str, Any], key: str) -> str:
    value = arguments.get(key)
    if not isinstance(value, str) or not value:
        raise ToolExecutionError(f"Missing required argument: {key}")
    return value


class BuiltinRegistry:
    """Builtin tool sets by id."""

    def __init__(self, toolsets: list[BuiltinToolset] | None = None) -> None:
        self._toolsets: dict[str, BuiltinToolset] = {}
        for toolset in toolsets or []:
            self.register(toolset)

    def register(self, toolset: BuiltinToolset) -> None:
        self._toolsets[toolset.id] = toolset
        logger.debug("Registered builtin tool set: %s", toolset.id)

    def get(self, toolset_id: str) -> BuiltinToolset | None:
        return self._toolsets.get(toolset_id)
