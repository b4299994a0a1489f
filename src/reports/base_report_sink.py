# src/reports/base_report_sink.py — v1
"""Abstract report sink interface.

The engine only ever creates a report and writes sections to it; how
the report is stored or rendered is the sink's business.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from teamrun.core.models import Report, ReportSection


class BaseReportSink(ABC):
    """Destination for run reports."""

    @abstractmethod
    async def create(self, title: str) -> str:
        """Create an empty report and return its id.

        Raises:
            ReportWriteError: If the report cannot be created.
        """

    @abstractmethod
    async def write_sections(self, report_id: str, sections: list[ReportSection]) -> None:
        """Apply section changes in order.

        Upserts replace the content of an existing path in place and
        append new paths at the end; deletes drop the path and every
        path nested under it.

        Raises:
            ReportWriteError: If the report is unknown or cannot be written.
        """

    @abstractmethod
    async def get(self, report_id: str) -> Report | None:
        """Load a report, or None if unknown."""


def apply_sections(report: Report, sections: list[ReportSection]) -> Report:
    """Return ``report`` with ``sections`` applied (shared by all sinks)."""
    updated = dict(report.sections)
    for section in sections:
        if section.action == "delete":
            prefix = section.path + "/"
            updated = {
                path: content
                for path, content in updated.items()
                if path != section.path and not path.startswith(prefix)
            }
        else:
            updated[section.path] = section.content
    return report.model_copy(update={"sections": updated})
