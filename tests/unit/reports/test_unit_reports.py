# tests/unit/reports/test_unit_reports.py — v2
"""Tests for reports/ — section application, rendering, sinks, builder."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest

from teamrun.config.settings import Settings
from teamrun.core.errors import ReportWriteError, ToolExecutionError
from teamrun.core.models import AgentDefinition, Report, ReportSection, Run, TeamMember
from teamrun.pipeline.state import PriorOutput
from teamrun.reports.base_report_sink import apply_sections
from teamrun.reports.markdown_sink import MarkdownReportSink
from teamrun.reports.memory_sink import MemoryReportSink
from teamrun.reports.render import render_markdown
from teamrun.reports.report_builder import (
    ReportBuilder,
    agent_config_content,
    build_report_title,
    conclusion_content,
    overview_content,
    section,
    synthesis_content,
)
from teamrun.reports.sink_factory import create_report_sink
from teamrun.storage.local_writer import LocalWriter
from teamrun.tools.builtin import ReportTools
from teamrun.tools.models import ToolContext


def _agents() -> list[tuple[AgentDefinition, TeamMember]]:
    a = AgentDefinition(name="alice", strategy="react")
    b = AgentDefinition(name="bob", strategy="direct")
    return [
        (a, TeamMember(agent_id=a.id, role="researcher", position=0)),
        (b, TeamMember(agent_id=b.id, role=None, position=1)),
    ]


class TestApplySections:
    def test_upsert_replaces_in_place(self):
        report = Report(title="t", sections={"A": "1", "B": "2"})
        updated = apply_sections(report, [section("A", "new"), section("C", "3")])
        assert list(updated.sections.items()) == [("A", "new"), ("B", "2"), ("C", "3")]

    def test_delete_removes_children(self):
        report = Report(title="t", sections={"A": "1", "A/x": "2", "AB": "3"})
        updated = apply_sections(report, [ReportSection(path="A", action="delete")])
        assert updated.sections == {"AB": "3"}

    def test_original_untouched(self):
        report = Report(title="t")
        apply_sections(report, [section("A", "1")])
        assert report.sections == {}


class TestRender:
    def test_nested_headings_emitted_once(self):
        report = Report(title="Run", sections={
            "Overview": "intro",
            "Stage 1/Analysis": "a",
            "Stage 1/Output": "o",
        })
        assert render_markdown(report) == (
            "# Run\n\n## Overview\n\nintro\n\n## Stage 1\n\n### Analysis\n\na\n\n"
            "### Output\n\no\n"
        )


class TestSinks:
    @pytest.mark.asyncio
    async def test_memory_sink(self):
        sink = MemoryReportSink()
        report_id = await sink.create("T")
        await sink.write_sections(report_id, [section("A", "1")])
        report = await sink.get(report_id)
        assert report.title == "T" and report.sections == {"A": "1"}

    @pytest.mark.asyncio
    async def test_memory_sink_unknown_report(self):
        with pytest.raises(ReportWriteError):
            await MemoryReportSink().write_sections("nope", [])

    @pytest.mark.asyncio
    async def test_markdown_sink_writes_files(self, tmp_path):
        sink = MarkdownReportSink(LocalWriter(tmp_path))
        report_id = await sink.create("T")
        await sink.write_sections(report_id, [section("Overview", "hello")])

        data = json.loads((tmp_path / report_id / "sections.json").read_text())
        assert data["sections"] == {"Overview": "hello"}
        assert "## Overview" in (tmp_path / report_id / "report.md").read_text()
        assert (await sink.get(report_id)).sections == {"Overview": "hello"}

    @pytest.mark.asyncio
    async def test_markdown_sink_corrupt_file(self, tmp_path):
        (tmp_path / "bad").mkdir()
        (tmp_path / "bad" / "sections.json").write_text("{nope")
        with pytest.raises(ReportWriteError):
            await MarkdownReportSink(LocalWriter(tmp_path)).get("bad")

    @pytest.mark.asyncio
    async def test_markdown_sink_unknown_report(self, tmp_path):
        sink = MarkdownReportSink(LocalWriter(tmp_path))
        assert await sink.get("missing") is None
        with pytest.raises(ReportWriteError):
            await sink.write_sections("missing", [section("A", "1")])

    @pytest.mark.asyncio
    async def test_markdown_sink_rejects_ids_outside_root(self, tmp_path):
        secret = tmp_path / "secret"
        secret.mkdir()
        (secret / "sections.json").write_text(
            Report(title="private", sections={"A": "leaked"}).model_dump_json()
        )
        sink = MarkdownReportSink(LocalWriter(tmp_path / "reports"))

        with pytest.raises(ReportWriteError, match="Invalid report id"):
            await sink.get("../secret")
        with pytest.raises(ReportWriteError, match="Invalid report id"):
            await sink.write_sections("../secret", [section("A", "overwritten")])
        assert "leaked" in (secret / "sections.json").read_text()

    @pytest.mark.asyncio
    async def test_report_tool_cannot_read_outside_root(self, tmp_path):

        (tmp_path / "secret").mkdir()
        (tmp_path / "secret" / "sections.json").write_text(
            Report(title="private", sections={"A": "leaked"}).model_dump_json()
        )
        tools = ReportTools(MarkdownReportSink(LocalWriter(tmp_path / "reports")))

        with pytest.raises(ToolExecutionError, match="Invalid report id"):
            await tools.call_tool("reports__get", {"report_id": "../secret"}, ToolContext())

    def test_factory(self, tmp_path):
        assert isinstance(create_report_sink(), MemoryReportSink)
        settings = Settings(_env_file=None, report_backend="markdown", report_root=tmp_path)
        assert isinstance(create_report_sink(settings), MarkdownReportSink)


class TestContent:
    def test_title(self):
        assert build_report_title(Run(name="Q3", prompt="p"), _agents()) == "Q3 — alice, bob"

    def test_overview_lists_stages(self):
        content = overview_content(Run(prompt="Study X", topology="pipeline"), _agents())
        assert "**Prompt:** Study X" in content
        assert "1. **alice** — researcher (react)" in content
        assert "2. **bob** — worker (direct)" in content

    def test_synthesis_counts_stages(self):
        prior = [PriorOutput(agent_name="alice", role="researcher"),
                 PriorOutput(agent_name="bob", role="worker")]
        content = synthesis_content(Run(name="Q3", prompt="p"), _agents(), prior)
        assert "**2-stage pipeline**" in content
        assert "2. **bob** (worker) — completed successfully" in content

    def test_conclusion(self):
        assert "**2-agent pipeline**" in conclusion_content(Run(name="Q3", prompt="p"), _agents())

    def test_agent_config(self):
        content = agent_config_content(AgentDefinition(name="a", system_prompt="Be brief"))
        assert "- **Model:** (none)" in content
        assert "```\nBe brief\n```" in content


class TestReportBuilder:
    @pytest.mark.asyncio
    async def test_creates_then_reuses(self):
        sink, log = MemoryReportSink(), AsyncMock()
        builder = ReportBuilder(sink, log)
        run = Run(name="Q3", prompt="p")

        report_id = await builder.get_or_create_report(run, _agents(), [])
        assert (await sink.get(report_id)).title == "Q3 — alice, bob"
        assert log.await_args.args[2] == "create_report"
        assert log.await_args.args[4] == {"report_id": report_id}

        reused = await builder.get_or_create_report(
            run.model_copy(update={"deliverables": {"report_id": report_id}}), _agents(), []
        )
        assert reused == report_id
        assert log.await_args.args[2] == "resume"

    @pytest.mark.asyncio
    async def test_write_failure_returns_false(self):
        builder = ReportBuilder(MemoryReportSink(), AsyncMock())
        assert await builder.write_sections("missing", [section("A", "1")]) is False
