# src/pipeline/prompts.py — v1
"""Prompt assembly for one pipeline stage.

System prompt parts, joined by blank lines:
  1. agent system prompt (if any)
  2. role line (always)
  3. backstory, opinions (if any)
  4. strategy hint
  5. tool batching hint (agents with tools)
  6. report instructions (when the run's report id is known)
"""

from __future__ import annotations

from typing import Any

from teamrun.config.agents import strategy_hint

TOOL_BATCHING_HINT = (
    "When using tools, prefer batching multiple operations into a single tool call "
    "where the tool supports batch operations (e.g. multiple actions in "
    "reports__modify_sections). This reduces round-trips and improves efficiency."
)


def build_system_prompt(
    *,
    role: str,
    strategy: str,
    system_prompt: str = "",
    backstory: str = "",
    opinions: dict[str, Any] | None = None,
    has_tools: bool = False,
    report_id: str | None = None,
    handoff_max_chars: int = 500,
) -> str:
    parts: list[str] = []

    if system_prompt:
        parts.append(system_prompt)

    parts.append(f"You are acting as a {role} in a multi-agent pipeline.")

    if backstory:
        parts.append(f"Background: {backstory}")

    if opinions:
        opinion_lines = "\n".join(f"- {k}: {v}" for k, v in opinions.items())
        parts.append(f"Your perspectives:\n{opinion_lines}")

    parts.append(strategy_hint(strategy))

    if has_tools:
        parts.append(TOOL_BATCHING_HINT)

    if report_id:
        parts.extend(report_instructions(report_id, handoff_max_chars))

    return "\n\n".join(parts)


def report_instructions(report_id: str, handoff_max_chars: int = 500) -> list[str]:
    """Handoff-summary request plus read/append directions for the shared report."""
    return [
        "IMPORTANT: End your response with a '## Handoff Summary' section: "
        f"3-5 bullet points (max {handoff_max_chars} chars) summarizing what you did, "
        "key findings, and what the next agent needs to know.",
        "Prior stage full outputs are in the pipeline report. "
        f"Use the reports__get tool with report_id '{report_id}' "
        "to read details if needed.",
        f"IMPORTANT: A pipeline report already exists with id '{report_id}'. "
        "Do NOT create a new report with reports__create. Instead, use "
        "reports__modify_sections with this report_id to add your sections directly.",
    ]


def build_user_message(prompt: str, prior_context: str = "") -> str:
    if prior_context:
        return f"Previous stage handoffs:\n{prior_context}\n\nTask: {prompt}"
    return prompt


def build_analysis_header(agent_name: str, role: str, strategy: str) -> str:
    return f"**Agent:** {agent_name}\n**Role:** {role}\n**Strategy:** {strategy}\n"
