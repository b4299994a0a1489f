# src/reports/markdown_sink.py — v2
"""File-backed report sink (REPORT_BACKEND=markdown).

Layout per report::

    {report_root}/{report_id}/
    ├── sections.json   # Report model (source of truth)
    └── report.md       # rendered view, rewritten on every write
"""

from __future__ import annotations

import logging
import re

from pydantic import ValidationError

from teamrun.core.errors import ReportWriteError
from teamrun.core.models import Report, ReportSection, utcnow
from teamrun.reports.base_report_sink import BaseReportSink, apply_sections
from teamrun.reports.render import render_markdown
from teamrun.storage.base_output_writer import BaseOutputWriter

logger = logging.getLogger(__name__)

SECTIONS_FILE = "sections.json"
REPORT_FILE = "report.md"

# Report ids become directory names under the report root.
_REPORT_ID_RE = re.compile(r"[A-Za-z0-9_-]+")


class MarkdownReportSink(BaseReportSink):
    """Persist reports as JSON + rendered markdown through an output writer."""

    def __init__(self, writer: BaseOutputWriter) -> None:
        self._writer = writer

    async def create(self, title: str) -> str:
        report = Report(title=title)
        await self._save(report)
        logger.info("Created report %s", report.id)
        return report.id

    async def write_sections(self, report_id: str, sections: list[ReportSection]) -> None:
        report = await self.get(report_id)
        if report is None:
            raise ReportWriteError(f"Report not found: {report_id}")
        updated = apply_sections(report, sections)
        await self._save(updated.model_copy(update={"updated_at": utcnow()}))

    async def get(self, report_id: str) -> Report | None:
        path = f"{_report_dir(report_id)}/{SECTIONS_FILE}"
        if not await self._writer.exists(path):
            return None
        raw = await self._writer.read(path)
        try:
            return Report.model_validate_json(raw)
        except ValidationError as e:
            raise ReportWriteError(f"Corrupt report {report_id}: {e}") from e

    async def _save(self, report: Report) -> None:
        folder = _report_dir(report.id)
        try:
            await self._writer.write(f"{folder}/{SECTIONS_FILE}", report.model_dump_json(indent=2))
            await self._writer.write(f"{folder}/{REPORT_FILE}", render_markdown(report))
        except OSError as e:
            raise ReportWriteError(f"Failed to write report {report.id}: {e}") from e


def _report_dir(report_id: str) -> str:
    """Return the directory name for a report, rejecting anything but a plain id."""
    if not _REPORT_ID_RE.fullmatch(report_id):
        raise ReportWriteError(f"Invalid report id: {report_id!r}")
    return report_id
