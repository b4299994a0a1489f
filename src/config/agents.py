# src/config/agents.py — v2
"""Declarative agent configuration: reasoning strategies and topologies.

Strategy hints are appended to every agent's system prompt. Unknown
strategy tags fall back to a generic hint built from the tag itself.
"""

from __future__ import annotations

STRATEGY_HINTS: dict[str, str] = {
    "react": "Use a Reason-Act approach: think step by step, observe, then act.",
    "chain_of_thought": "Use chain-of-thought reasoning: work through the problem step by step.",
    "tree_of_thoughts": "Explore multiple approaches before selecting the best one.",
    "direct": "Provide a direct, focused response.",
}

# Only "pipeline" has execution semantics. The rest are accepted on runs
# and teams but execute as a sequential pipeline.
IMPLEMENTED_TOPOLOGIES: frozenset[str] = frozenset({"pipeline"})
DECLARED_TOPOLOGIES: frozenset[str] = frozenset(
    {"pipeline", "parallel", "debate", "hierarchical", "round_robin"}
)


def strategy_hint(strategy: str | None) -> str:
    """Return the system-prompt hint for a strategy tag."""
    if strategy in STRATEGY_HINTS:
        return STRATEGY_HINTS[strategy]
    return f"Use the {strategy} approach."
