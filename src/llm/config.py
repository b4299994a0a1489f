# src/llm/config.py — v2
"""Per-model provider options and prompt-cache eligibility.

Prompt caching is only enabled when the model is configured for the
provider's native (non-aggregated) request mode, i.e. ``use_converse``
is explicitly False, and the tool count fits the cacheable-block budget:
one block goes to the system prompt, one per tool, capped by the
provider at four.
"""

from __future__ import annotations

from typing import Any

from teamrun.core.models import LLMModelRef

DEFAULT_MAX_CACHED_TOOL_BLOCKS = 3


def build_provider_options(model: LLMModelRef) -> dict[str, Any]:
    """Provider options derived from the model binding."""
    options: dict[str, Any] = {}
    if model.use_converse is not None:
        options["use_converse"] = model.use_converse
    return options


def maybe_enable_prompt_cache(
    provider_options: dict[str, Any],
    tool_count: int,
    max_cached_tool_blocks: int = DEFAULT_MAX_CACHED_TOOL_BLOCKS,
) -> dict[str, Any]:
    """Return provider options with caching switched on when eligible."""
    if provider_options.get("use_converse") is False and tool_count <= max_cached_tool_blocks:
        return {**provider_options, "prompt_cache": True, "cache_messages": -1}
    return provider_options
