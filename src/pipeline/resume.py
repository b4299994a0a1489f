# src/pipeline/resume.py — v1
"""Crash recovery and resume lookups over a run's append-only log.

Two checkpoints are read back from the log:
  - ``agent_complete`` entries carry the handoff summary of a stage
  - ``agent_crash`` entries carry the serialized conversation of a
    failed stage, used to continue it where it stopped

Both lookups take the most recent entry for the agent by
``inserted_at``; among equal timestamps the later-inserted entry wins.
CheckpointIndex answers the same queries from a single pass over the
log instead of a scan per lookup.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from teamrun.core.models import LogEntry, Run
from teamrun.storage.base_run_store import BaseRunStore

logger = logging.getLogger(__name__)

HANDOFF_SUMMARY_MAX_CHARS = 500

_HANDOFF_RE = re.compile(r"##?\s*Handoff Summary\s*\n(.*?)(?:\n##|\Z)", re.IGNORECASE | re.DOTALL)


def extract_handoff_summary(output: Any, max_chars: int = HANDOFF_SUMMARY_MAX_CHARS) -> str:
    """Pull the ``## Handoff Summary`` section out of a stage output.

    Falls back to the first ``max_chars`` characters of the output when
    the section is missing. Non-string input yields ''.
    """
    if not isinstance(output, str):
        return ""
    match = _HANDOFF_RE.search(output)
    if match:
        return match.group(1).strip()[:max_chars]
    return output[:max_chars]


def _latest(logs: list[LogEntry], step: str, agent: str) -> LogEntry | None:
    latest: LogEntry | None = None
    for entry in logs:
        if entry.step != step or entry.agent != agent:
            continue
        if latest is None or entry.inserted_at >= latest.inserted_at:
            latest = entry
    return latest


def find_handoff_summary(logs: list[LogEntry], agent: str) -> str | None:
    """Handoff summary of the agent's latest completion, or None."""
    entry = _latest(logs, "agent_complete", agent)
    if entry is None:
        return None
    return _summary_from(entry)


def find_crash_messages(logs: list[LogEntry], agent: str) -> list[dict[str, Any]] | None:
    """Serialized conversation of the agent's latest crash, or None."""
    entry = _latest(logs, "agent_crash", agent)
    if entry is None:
        return None
    return entry.metadata.get("messages")


def find_existing_report(run: Run, logs: list[LogEntry]) -> str | None:
    """Report id already produced for this run, if any."""
    report_id = run.deliverables.get("report_id")
    if report_id:
        return report_id
    for entry in logs:
        if entry.step == "create_report":
            return entry.metadata.get("report_id")
    return None


def _summary_from(entry: LogEntry) -> str:
    summary = entry.metadata.get("handoff_summary")
    if summary:
        return summary
    return extract_handoff_summary(entry.metadata.get("output"))


class CheckpointIndex:
    """Latest ``agent_complete`` / ``agent_crash`` entry per agent.

    Built in one pass over the log; every lookup after that is a dict hit.
    """

    def __init__(self, logs: list[LogEntry] | None = None) -> None:
        self._complete: dict[str, LogEntry] = {}
        self._crash: dict[str, LogEntry] = {}
        for entry in logs or []:
            self.observe(entry)

    def observe(self, entry: LogEntry) -> None:
        if entry.step == "agent_complete":
            slot = self._complete
        elif entry.step == "agent_crash":
            slot = self._crash
        else:
            return

        agent = entry.agent
        if agent is None:
            return
        current = slot.get(agent)
        if current is None or entry.inserted_at >= current.inserted_at:
            slot[agent] = entry

    def handoff_summary(self, agent: str) -> str | None:
        entry = self._complete.get(agent)
        return _summary_from(entry) if entry is not None else None

    def crash_messages(self, agent: str) -> list[dict[str, Any]] | None:
        entry = self._crash.get(agent)
        return entry.metadata.get("messages") if entry is not None else None


class ResumeReader:
    """Store-backed resume lookups for one run.

    Loads the run log once and serves every lookup from a CheckpointIndex.
    """

    def __init__(self, store: BaseRunStore, run_id: str) -> None:
        self._store = store
        self._run_id = run_id
        self._index: CheckpointIndex | None = None

    async def load(self) -> CheckpointIndex:
        logs = await self._store.list_logs(self._run_id)
        self._index = CheckpointIndex(logs)
        logger.debug("Indexed %d log entries for run %s", len(logs), self._run_id)
        return self._index

    @property
    def index(self) -> CheckpointIndex:
        if self._index is None:
            raise RuntimeError("ResumeReader.load() must be awaited first")
        return self._index

    def handoff_summary(self, agent: str) -> str | None:
        return self.index.handoff_summary(agent)

    def crash_messages(self, agent: str) -> list[dict[str, Any]] | None:
        return self.index.crash_messages(agent)
