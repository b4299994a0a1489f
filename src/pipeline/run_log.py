# src/pipeline/run_log.py — v1
"""Run log writer: append to the store and mirror to Python logging.

Entries are the durable checkpoint substrate for resume as well as the
progress stream outside observers poll.
"""

from __future__ import annotations

import logging
from typing import Any

from teamrun.core.models import LogEntry, LogLevel
from teamrun.storage.base_run_store import BaseRunStore

logger = logging.getLogger(__name__)

_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

# Metadata keys too large to mirror into process logs.
_BULKY_KEYS = frozenset({"messages", "output"})


class RunLog:
    """Callable log sink: ``await log(run_id, level, step, message, metadata)``."""

    def __init__(self, store: BaseRunStore) -> None:
        self._store = store

    async def __call__(
        self,
        run_id: str,
        level: LogLevel,
        step: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> LogEntry:
        entry = LogEntry(
            run_id=run_id,
            level=level,
            step=step,
            message=message,
            metadata=metadata or {},
        )
        await self._store.add_log(entry)

        extra = {k: v for k, v in entry.metadata.items() if k not in _BULKY_KEYS}
        logger.log(_LEVELS.get(level, logging.INFO), "[%s] %s %s", step, message, extra or "")

        return entry
