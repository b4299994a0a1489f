# src/storage/store_factory.py — v1
"""Factory for run store instantiation."""

from __future__ import annotations

from teamrun.config.settings import Settings
from teamrun.core.errors import ConfigurationError
from teamrun.storage.base_run_store import BaseRunStore


def create_run_store(settings: Settings | None = None) -> BaseRunStore:
    """Instantiate the configured run store backend.

    Args:
        settings: Application settings. Defaults to the in-memory backend.

    Returns:
        Configured BaseRunStore implementation.
    """
    backend = "memory" if settings is None else settings.store_backend

    if backend == "memory":
        from teamrun.storage.memory_store import MemoryRunStore
        return MemoryRunStore()

    if backend == "sqlite":
        from teamrun.storage.sqlite_store import SqliteRunStore
        assert settings is not None
        return SqliteRunStore(db_path=settings.store_path)

    raise ConfigurationError(f"Unsupported store backend: {backend!r}")
