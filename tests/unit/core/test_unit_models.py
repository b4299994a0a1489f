# tests/unit/core/test_unit_models.py — v1
"""Tests for core/models.py and core/errors.py."""

from __future__ import annotations

from decimal import Decimal

from teamrun.core.errors import ProviderError, RunNotFoundError
from teamrun.core.models import LogEntry, ReportSection, Run, StageRecord, TeamMember


class TestRun:
    def test_defaults(self):
        run = Run(prompt="p")
        assert run.status == "pending"
        assert run.topology == "pipeline"
        assert run.cost_limit is None
        assert run.deliverables == {}
        assert len(run.id) == 32

    def test_terminal(self):
        assert Run(prompt="p", status="completed").is_terminal
        assert Run(prompt="p", status="cancelled").is_terminal
        assert not Run(prompt="p", status="running").is_terminal

    def test_cost_limit_from_string(self):
        assert Run(prompt="p", cost_limit="0.25").cost_limit == Decimal("0.25")


class TestOtherModels:
    def test_log_entry_agent(self):
        assert LogEntry(run_id="r", step="s", message="m", metadata={"agent": "a"}).agent == "a"
        assert LogEntry(run_id="r", step="s", message="m").agent is None

    def test_stage_defaults(self):
        stage = StageRecord(run_id="r", name="n", position=0)
        assert stage.status == "pending" and stage.error is None

    def test_member_default_role(self):
        assert TeamMember(agent_id="a").role == "worker"

    def test_section_default_action(self):
        assert ReportSection(path="A").action == "upsert"


class TestErrors:
    def test_provider_error(self):
        err = ProviderError("busy", status_code=429, retryable=True)
        assert str(err) == "busy"
        assert "retryable=True" in repr(err)

    def test_run_not_found(self):
        err = RunNotFoundError("r9")
        assert err.run_id == "r9" and "r9" in str(err)
