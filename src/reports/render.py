# src/reports/render.py — v1
"""Markdown rendering of a report's section tree.

A section path ``"Stage 1: a (worker)/Analysis"`` renders as a level-2
heading for the first segment and a level-3 heading for the second.
Parent headings are emitted once, the first time a path needs them.
"""

from __future__ import annotations

from teamrun.core.models import Report


def render_markdown(report: Report) -> str:
    lines: list[str] = [f"# {report.title}", ""]
    emitted: set[tuple[str, ...]] = set()

    for path, content in report.sections.items():
        parts = tuple(p for p in path.split("/") if p)
        for depth in range(1, len(parts) + 1):
            key = parts[:depth]
            if key in emitted:
                continue
            emitted.add(key)
            lines.append(f"{'#' * min(depth + 1, 6)} {key[-1]}")
            lines.append("")
        if content:
            lines.append(content.rstrip())
            lines.append("")

    return "\n".join(lines).rstrip() + "\n"
