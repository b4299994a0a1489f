# src/reports/memory_sink.py — v1
"""In-process report sink (REPORT_BACKEND=memory)."""

from __future__ import annotations

import logging

from teamrun.core.errors import ReportWriteError
from teamrun.core.models import Report, ReportSection, utcnow
from teamrun.reports.base_report_sink import BaseReportSink, apply_sections

logger = logging.getLogger(__name__)


class MemoryReportSink(BaseReportSink):
    """Dict-backed report sink."""

    def __init__(self) -> None:
        self._reports: dict[str, Report] = {}

    async def create(self, title: str) -> str:
        report = Report(title=title)
        self._reports[report.id] = report
        logger.debug("Created report %s: %s", report.id, title)
        return report.id

    async def write_sections(self, report_id: str, sections: list[ReportSection]) -> None:
        report = self._reports.get(report_id)
        if report is None:
            raise ReportWriteError(f"Report not found: {report_id}")
        updated = apply_sections(report, sections)
        self._reports[report_id] = updated.model_copy(update={"updated_at": utcnow()})

    async def get(self, report_id: str) -> Report | None:
        report = self._reports.get(report_id)
        return report.model_copy(deep=True) if report is not None else None
