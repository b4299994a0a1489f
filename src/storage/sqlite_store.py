# src/storage/sqlite_store.py — v1
"""SQLite-based run store (STORE_BACKEND=sqlite).

Uses stdlib sqlite3 — no external dependency. Each model is stored as
its JSON dump next to the few indexed columns the queries need, so the
schema stays stable when models gain fields. Log and usage rows carry
an autoincrement ``seq`` that fixes insertion order.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any

from teamrun.core.errors import RunNotFoundError
from teamrun.core.models import LogEntry, Run, StageRecord
from teamrun.storage.base_run_store import BaseRunStore
from teamrun.tracking.models import UsageRecord

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS runs (
    id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS stages (
    id TEXT PRIMARY KEY,
    run_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    seq INTEGER NOT NULL,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_stages_run ON stages(run_id);
CREATE TABLE IF NOT EXISTS logs (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id TEXT NOT NULL,
    step TEXT NOT NULL,
    agent TEXT,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_logs_run ON logs(run_id);
CREATE TABLE IF NOT EXISTS usage (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id TEXT,
    data TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_usage_run ON usage(run_id);
"""


class SqliteRunStore(BaseRunStore):
    """SQLite-backed run store; survives process restarts."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    # --- Runs ---

    async def create_run(self, run: Run) -> Run:
        self._conn.execute(
            "INSERT INTO runs (id, data, created_at) VALUES (?, ?, ?)",
            (run.id, run.model_dump_json(), run.created_at.isoformat()),
        )
        self._conn.commit()
        return run

    async def get_run(self, run_id: str) -> Run | None:
        row = self._conn.execute("SELECT data FROM runs WHERE id = ?", (run_id,)).fetchone()
        if row is None:
            return None
        return Run.model_validate_json(row[0])

    async def update_run(self, run_id: str, **changes: Any) -> Run:
        run = await self.get_run(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        updated = Run.model_validate({**run.model_dump(), **changes})
        self._conn.execute(
            "UPDATE runs SET data = ? WHERE id = ?", (updated.model_dump_json(), run_id)
        )
        self._conn.commit()
        return updated

    async def list_runs(self) -> list[Run]:
        rows = self._conn.execute("SELECT data FROM runs ORDER BY created_at, rowid").fetchall()
        return [Run.model_validate_json(r[0]) for r in rows]

    # --- Stage records ---

    async def add_stage(self, stage: StageRecord) -> StageRecord:
        seq = self._conn.execute("SELECT COUNT(*) FROM stages").fetchone()[0]
        self._conn.execute(
            "INSERT INTO stages (id, run_id, position, seq, data) VALUES (?, ?, ?, ?, ?)",
            (stage.id, stage.run_id, stage.position, seq, stage.model_dump_json()),
        )
        self._conn.commit()
        return stage

    async def update_stage(self, stage_id: str, **changes: Any) -> StageRecord:
        row = self._conn.execute("SELECT data FROM stages WHERE id = ?", (stage_id,)).fetchone()
        if row is None:
            raise KeyError(f"Stage not found: {stage_id}")
        stage = StageRecord.model_validate_json(row[0])
        updated = StageRecord.model_validate({**stage.model_dump(), **changes})
        self._conn.execute(
            "UPDATE stages SET data = ? WHERE id = ?", (updated.model_dump_json(), stage_id)
        )
        self._conn.commit()
        return updated

    async def list_stages(self, run_id: str) -> list[StageRecord]:
        rows = self._conn.execute(
            "SELECT data FROM stages WHERE run_id = ? ORDER BY position, seq", (run_id,)
        ).fetchall()
        return [StageRecord.model_validate_json(r[0]) for r in rows]

    # --- Append-only log ---

    async def add_log(self, entry: LogEntry) -> LogEntry:
        self._conn.execute(
            "INSERT INTO logs (run_id, step, agent, data) VALUES (?, ?, ?, ?)",
            (entry.run_id, entry.step, entry.agent, entry.model_dump_json()),
        )
        self._conn.commit()
        return entry

    async def list_logs(
        self,
        run_id: str,
        step: str | None = None,
        agent: str | None = None,
    ) -> list[LogEntry]:
        query = "SELECT data FROM logs WHERE run_id = ?"
        params: list[Any] = [run_id]
        if step is not None:
            query += " AND step = ?"
            params.append(step)
        if agent is not None:
            query += " AND agent = ?"
            params.append(agent)
        query += " ORDER BY seq"

        entries: list[LogEntry] = []
        for (data,) in self._conn.execute(query, params).fetchall():
            try:
                entries.append(LogEntry.model_validate_json(data))
            except ValueError as e:
                logger.warning("Skipping unreadable log row for run %s: %s", run_id, e)
        return entries

    # --- Usage records ---

    async def add_usage(self, record: UsageRecord) -> UsageRecord:
        self._conn.execute(
            "INSERT INTO usage (run_id, data) VALUES (?, ?)",
            (record.run_id, record.model_dump_json()),
        )
        self._conn.commit()
        return record

    async def list_usage(self, run_id: str) -> list[UsageRecord]:
        rows = self._conn.execute(
            "SELECT data FROM usage WHERE run_id = ? ORDER BY seq", (run_id,)
        ).fetchall()
        return [UsageRecord.model_validate_json(r[0]) for r in rows]

    def close(self) -> None:
        self._conn.close()
