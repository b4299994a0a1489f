# tests/unit/pipeline/test_unit_resume.py — v1
"""Tests for pipeline/resume.py — handoff extraction and checkpoint lookups."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from teamrun.core.models import LogEntry, Run
from teamrun.pipeline.resume import (
    CheckpointIndex,
    ResumeReader,
    extract_handoff_summary,
    find_crash_messages,
    find_existing_report,
    find_handoff_summary,
)

T0 = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _entry(step: str, agent: str | None, offset_s: int = 0, **metadata) -> LogEntry:
    if agent is not None:
        metadata["agent"] = agent
    return LogEntry(
        run_id="r1", step=step, message=step, metadata=metadata,
        inserted_at=T0 + timedelta(seconds=offset_s),
    )


class TestExtractHandoffSummary:
    def test_section_found(self):
        output = "Body text\n\n## Handoff Summary\n- found X\n- next: Y\n"
        assert extract_handoff_summary(output) == "- found X\n- next: Y"

    def test_section_stops_at_next_heading(self):
        output = "## Handoff Summary\n- a\n## Appendix\nmore"
        assert extract_handoff_summary(output) == "- a"

    def test_single_hash_and_case(self):
        assert extract_handoff_summary("# handoff summary\nshort") == "short"

    def test_truncated(self):
        output = "## Handoff Summary\n" + "x" * 800
        assert len(extract_handoff_summary(output)) == 500
        assert len(extract_handoff_summary(output, max_chars=10)) == 10

    def test_fallback_prefix(self):
        output = "y" * 900
        assert extract_handoff_summary(output) == "y" * 500

    def test_non_string(self):
        assert extract_handoff_summary(None) == ""
        assert extract_handoff_summary({"a": 1}) == ""


class TestFindHelpers:
    def test_latest_completion_wins(self):
        logs = [
            _entry("agent_complete", "a", 0, handoff_summary="old"),
            _entry("agent_complete", "a", 10, handoff_summary="new"),
            _entry("agent_complete", "b", 20, handoff_summary="other"),
        ]
        assert find_handoff_summary(logs, "a") == "new"

    def test_tie_goes_to_later_entry(self):
        logs = [
            _entry("agent_complete", "a", 5, handoff_summary="first"),
            _entry("agent_complete", "a", 5, handoff_summary="second"),
        ]
        assert find_handoff_summary(logs, "a") == "second"

    def test_summary_from_output_when_missing(self):
        logs = [_entry("agent_complete", "a", output="## Handoff Summary\nderived")]
        assert find_handoff_summary(logs, "a") == "derived"

    def test_no_completion(self):
        assert find_handoff_summary([_entry("agent_start", "a")], "a") is None

    def test_crash_messages(self):
        messages = [{"role": "system", "content": "s"}]
        logs = [
            _entry("agent_crash", "a", 0, messages=[]),
            _entry("agent_crash", "a", 1, messages=messages),
        ]
        assert find_crash_messages(logs, "a") == messages
        assert find_crash_messages(logs, "b") is None

    def test_existing_report_from_deliverables(self):
        run = Run(prompt="p", deliverables={"report_id": "rep-1"})
        assert find_existing_report(run, []) == "rep-1"

    def test_existing_report_from_log(self):
        run = Run(prompt="p")
        logs = [_entry("init", None), _entry("create_report", None, report_id="rep-2")]
        assert find_existing_report(run, logs) == "rep-2"
        assert find_existing_report(run, logs[:1]) is None


class TestCheckpointIndex:
    def test_matches_scan_lookups(self):
        logs = [
            _entry("agent_complete", "a", 0, handoff_summary="a1"),
            _entry("agent_crash", "b", 1, messages=[{"role": "user", "content": "x"}]),
            _entry("agent_complete", "a", 2, handoff_summary="a2"),
            _entry("llm_call", "a", 3),
        ]
        index = CheckpointIndex(logs)
        for agent in ("a", "b", "c"):
            assert index.handoff_summary(agent) == find_handoff_summary(logs, agent)
            assert index.crash_messages(agent) == find_crash_messages(logs, agent)

    def test_entries_without_agent_ignored(self):
        index = CheckpointIndex([_entry("agent_complete", None, handoff_summary="x")])
        assert index.handoff_summary("None") is None


class TestResumeReader:
    @pytest.mark.asyncio
    async def test_loads_from_store(self, store):
        await store.add_log(_entry("agent_complete", "a", handoff_summary="done"))
        reader = ResumeReader(store, "r1")
        await reader.load()
        assert reader.handoff_summary("a") == "done"
        assert reader.crash_messages("a") is None

    def test_requires_load(self, store):
        with pytest.raises(RuntimeError):
            ResumeReader(store, "r1").handoff_summary("a")
