# src/reports/sink_factory.py — v1
"""Factory for report sink instantiation."""

from __future__ import annotations

from teamrun.config.settings import Settings
from teamrun.core.errors import ConfigurationError
from teamrun.reports.base_report_sink import BaseReportSink


def create_report_sink(settings: Settings | None = None) -> BaseReportSink:
    """Instantiate the configured report backend.

    Args:
        settings: Application settings. Defaults to the in-memory backend.
    """
    backend = "memory" if settings is None else settings.report_backend

    if backend == "memory":
        from teamrun.reports.memory_sink import MemoryReportSink
        return MemoryReportSink()

    if backend == "markdown":
        from teamrun.reports.markdown_sink import MarkdownReportSink
        from teamrun.storage.local_writer import LocalWriter
        assert settings is not None
        return MarkdownReportSink(LocalWriter(settings.report_root))

    raise ConfigurationError(f"Unsupported report backend: {backend!r}")
