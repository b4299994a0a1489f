# tests/unit/logging/test_unit_logging.py — v1
"""Tests for logging/ — context variables, formatters, rotation, RunLog mirroring."""

from __future__ import annotations

import asyncio
import json
import logging
from logging.handlers import RotatingFileHandler

import pytest

from teamrun.logging.context import (
    clear_agent_context,
    clear_context,
    get_context,
    set_agent_context,
    set_run_context,
)
from teamrun.logging.handlers import create_rotating_handler, parse_size
from teamrun.logging.logger import ROOT_LOGGER, JsonFormatter, TextFormatter, setup_logging
from teamrun.pipeline.run_log import RunLog


def _record(msg: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("teamrun.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def _reset_context():
    clear_context()
    yield
    clear_context()


class TestContext:
    def test_run_then_agent(self):
        set_run_context("run-1")
        set_agent_context("alice", 2)
        assert get_context().as_dict() == {"run_id": "run-1", "agent": "alice", "stage": 2}
        clear_agent_context()
        assert get_context().as_dict() == {"run_id": "run-1"}

    @pytest.mark.asyncio
    async def test_task_isolation(self):
        async def worker(run_id: str) -> str | None:
            set_run_context(run_id)
            await asyncio.sleep(0)
            return get_context().run_id

        results = await asyncio.gather(worker("a"), worker("b"))
        assert results == ["a", "b"]
        assert get_context().run_id is None


class TestFormatters:
    def test_json_includes_context_and_data(self):
        set_run_context("run-1")
        line = json.loads(JsonFormatter().format(_record(data={"k": 1})))
        assert line["message"] == "hello"
        assert line["context"] == {"run_id": "run-1"}
        assert line["data"] == {"k": 1}

    def test_text_format(self):
        set_run_context("abcdef123456")
        set_agent_context("alice", 0)
        line = TextFormatter().format(_record())
        assert "<abcdef12>" in line
        assert "[alice]" in line
        assert "(stage 1)" in line
        assert line.endswith("hello")


class TestHandlers:
    @pytest.mark.parametrize("text,expected", [
        ("10MB", 10 * 1024**2), ("512kb", 512 * 1024), ("1 GB", 1024**3),
    ])
    def test_parse_size(self, text, expected):
        assert parse_size(text) == expected

    def test_parse_size_invalid(self):
        with pytest.raises(ValueError):
            parse_size("lots")

    def test_rotating_handler(self, tmp_path):
        handler = create_rotating_handler(tmp_path / "logs" / "app.log", rotation="1KB", retention=2)
        try:
            assert isinstance(handler, RotatingFileHandler)
            assert handler.maxBytes == 1024
            assert handler.backupCount == 2
            assert (tmp_path / "logs").is_dir()
        finally:
            handler.close()

    def test_setup_logging_replaces_handlers(self, tmp_path):
        root = logging.getLogger(ROOT_LOGGER)
        try:
            setup_logging("DEBUG", "text")
            setup_logging("WARNING", "json", log_file=tmp_path / "t.log")
            assert root.level == logging.WARNING
            assert len(root.handlers) == 2
            assert isinstance(root.handlers[0].formatter, JsonFormatter)
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers.clear()
            root.setLevel(logging.NOTSET)


class TestRunLog:
    @pytest.mark.asyncio
    async def test_appends_and_mirrors(self, store, caplog):
        log = RunLog(store)
        with caplog.at_level(logging.DEBUG, logger="teamrun.pipeline.run_log"):
            entry = await log("r1", "warning", "tool_resolve", "Resolved 0 tool(s)", {
                "agent": "alice", "output": "x" * 1000, "messages": [],
            })

        assert entry.level == "warning"
        stored = await store.list_logs("r1")
        assert [e.id for e in stored] == [entry.id]
        assert stored[0].metadata["output"] == "x" * 1000
        mirrored = [r for r in caplog.records if r.name == "teamrun.pipeline.run_log"]
        assert mirrored[0].levelno == logging.WARNING
        assert "[tool_resolve] Resolved 0 tool(s)" in mirrored[0].getMessage()
        assert "xxxx" not in mirrored[0].getMessage()
