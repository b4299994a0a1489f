# src/llm/conversation.py — v1
"""Conversation helpers: serialization for crash snapshots, tool-result
threading, sliding-window pruning.

Serialized form (one dict per message, system message first)::

    {"role": "system", "content": "..."}
    {"role": "user", "content": "..."}
    {"role": "assistant", "content": "...",
     "tool_calls": [{"id": "...", "type": "function",
                     "function": {"name": "...", "arguments": "{...}"}}]}
    {"role": "tool", "tool_call_id": "...", "name": "...", "content": "..."}

``content`` may also be read back as a list of ``{"type": "text", ...}``
parts, and ``arguments`` as an already-decoded dict.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from teamrun.llm.models import Message, ToolCall

logger = logging.getLogger(__name__)

TRUNCATED_PLACEHOLDER = "[Result from earlier round — truncated to save context]"


# ------------------------------------------------------------------
# Serialization
# ------------------------------------------------------------------


def serialize_conversation(system_prompt: str, messages: list[Message]) -> list[dict[str, Any]]:
    """Serialize a conversation to JSON-safe dicts, system prompt first."""
    out: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    for msg in messages:
        if msg.role == "system":
            continue
        out.append(_serialize_message(msg))
    return out


def _serialize_message(msg: Message) -> dict[str, Any]:
    data: dict[str, Any] = {"role": msg.role, "content": msg.content}
    if msg.tool_calls:
        data["tool_calls"] = [
            {
                "id": tc.id,
                "type": "function",
                "function": {
                    "name": tc.name,
                    "arguments": tc.arguments
                    if isinstance(tc.arguments, str)
                    else json.dumps(tc.arguments),
                },
            }
            for tc in msg.tool_calls
        ]
    if msg.tool_call_id is not None:
        data["tool_call_id"] = msg.tool_call_id
    if msg.name is not None:
        data["name"] = msg.name
    return data


def deserialize_conversation(data: list[dict[str, Any]]) -> tuple[str, list[Message]]:
    """Rebuild (system_prompt, messages) from a serialized conversation.

    System messages collapse into one system prompt. Tool calls keep
    their ids so tool results stay linked.
    """
    system_parts: list[str] = []
    messages: list[Message] = []

    for raw in data:
        role = raw.get("role")
        text = _extract_text(raw.get("content"))

        if role == "system":
            system_parts.append(text)
        elif role == "user":
            messages.append(Message.user(text))
        elif role == "assistant":
            calls = [_deserialize_tool_call(tc) for tc in raw.get("tool_calls") or []]
            messages.append(Message.assistant(text, tool_calls=calls))
        elif role == "tool":
            messages.append(
                Message.tool_result(raw.get("tool_call_id") or "", raw.get("name") or "", text)
            )
        else:
            logger.warning("Skipping message with unknown role %r during deserialization", role)

    return "\n\n".join(system_parts), messages


def _extract_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(
            part.get("text") or ""
            for part in content
            if isinstance(part, dict) and part.get("type") == "text"
        )
    return ""


def _deserialize_tool_call(raw: dict[str, Any]) -> ToolCall:
    function = raw.get("function") or {}
    name = function.get("name") or raw.get("name") or ""
    args = function.get("arguments", raw.get("arguments"))

    if isinstance(args, str):
        try:
            decoded = json.loads(args)
        except json.JSONDecodeError as exc:
            logger.warning(
                "Failed to decode tool call arguments during deserialization: %s, raw: %r",
                exc, args,
            )
            decoded = {}
        arguments = decoded if isinstance(decoded, dict) else {}
    elif isinstance(args, dict):
        arguments = args
    else:
        arguments = {}

    return ToolCall(id=raw.get("id") or "", name=name, arguments=arguments)


# ------------------------------------------------------------------
# Threading & inspection
# ------------------------------------------------------------------


def append_tool_results(
    messages: list[Message],
    results: list[tuple[str, str, str]],
) -> list[Message]:
    """Return messages with one tool message per (tool_call_id, name, text)."""
    return messages + [Message.tool_result(call_id, name, text) for call_id, name, text in results]


def last_assistant_text(messages: list[Message]) -> str:
    """Text of the most recent assistant message, or ''."""
    for msg in reversed(messages):
        if msg.role == "assistant":
            return msg.content
    return ""


def count_tool_rounds(messages: list[Message]) -> int:
    """Number of assistant messages that requested tools."""
    return sum(1 for msg in messages if msg.has_tool_calls)


# ------------------------------------------------------------------
# Sliding-window pruning
# ------------------------------------------------------------------


def maybe_prune_context(messages: list[Message], round_: int, keep_rounds: int) -> list[Message]:
    """Prune once the loop has run at least ``keep_rounds`` rounds."""
    if round_ < keep_rounds:
        return messages
    return prune_old_tool_results(messages, keep_rounds)


def prune_old_tool_results(messages: list[Message], keep_rounds: int) -> list[Message]:
    """Replace tool-result content of all but the last ``keep_rounds`` rounds.

    A round starts at each assistant message carrying tool calls; the
    tool messages after it belong to that round. Role, tool_call_id and
    name are never touched.
    """
    cutoff_round = count_tool_rounds(messages) - keep_rounds
    if cutoff_round <= 0:
        return messages

    pruned: list[Message] = []
    current_round = 0
    for msg in messages:
        if msg.has_tool_calls:
            current_round += 1
            pruned.append(msg)
        elif msg.role == "tool" and 0 < current_round <= cutoff_round:
            pruned.append(msg.model_copy(update={"content": TRUNCATED_PLACEHOLDER}))
        else:
            pruned.append(msg)
    return pruned
