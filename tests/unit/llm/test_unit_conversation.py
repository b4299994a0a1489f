# tests/unit/llm/test_unit_conversation.py — v1
"""Tests for llm/conversation.py — serialization, threading, pruning."""

from __future__ import annotations

from teamrun.llm.conversation import (
    TRUNCATED_PLACEHOLDER,
    append_tool_results,
    count_tool_rounds,
    deserialize_conversation,
    last_assistant_text,
    maybe_prune_context,
    prune_old_tool_results,
    serialize_conversation,
)
from teamrun.llm.models import Message, ToolCall


def _round(idx: int) -> list[Message]:
    call = ToolCall(id=f"c{idx}", name="reports__get", arguments={"report_id": "r"})
    return [
        Message.assistant(f"round {idx}", tool_calls=[call]),
        Message.tool_result(f"c{idx}", "reports__get", f"result {idx}"),
    ]


def _conversation(rounds: int) -> list[Message]:
    messages = [Message.user("task")]
    for idx in range(rounds):
        messages.extend(_round(idx))
    return messages


class TestSerialization:
    def test_system_prompt_first(self):
        data = serialize_conversation("sys", [Message.user("hi")])
        assert data[0] == {"role": "system", "content": "sys"}
        assert data[1] == {"role": "user", "content": "hi"}

    def test_tool_call_arguments_encoded_as_json(self):
        data = serialize_conversation("", _round(0))
        call = data[1]["tool_calls"][0]
        assert call["id"] == "c0"
        assert call["type"] == "function"
        assert call["function"]["name"] == "reports__get"
        assert call["function"]["arguments"] == '{"report_id": "r"}'
        assert data[2]["tool_call_id"] == "c0"
        assert data[2]["name"] == "reports__get"

    def test_restores_ids_and_roles(self):
        original = _conversation(2)
        system, messages = deserialize_conversation(serialize_conversation("sys", original))
        assert system == "sys"
        assert [m.role for m in messages] == [m.role for m in original]
        assert messages[1].tool_calls[0].id == "c0"
        assert messages[1].tool_calls[0].arguments == {"report_id": "r"}
        assert messages[2].tool_call_id == "c0"

    def test_content_parts_are_joined(self):
        _, messages = deserialize_conversation([
            {"role": "user", "content": [
                {"type": "text", "text": "a"},
                {"type": "image", "url": "x"},
                {"type": "text", "text": "b"},
            ]},
        ])
        assert messages[0].content == "ab"

    def test_bad_arguments_become_empty_dict(self):
        _, messages = deserialize_conversation([
            {"role": "assistant", "content": "", "tool_calls": [
                {"id": "1", "function": {"name": "t", "arguments": "{not json"}},
            ]},
        ])
        assert messages[0].tool_calls[0].arguments == {}

    def test_unknown_roles_skipped(self):
        _, messages = deserialize_conversation([{"role": "narrator", "content": "x"}])
        assert messages == []

    def test_multiple_system_messages_collapse(self):
        system, _ = deserialize_conversation([
            {"role": "system", "content": "one"},
            {"role": "system", "content": "two"},
        ])
        assert system == "one\n\ntwo"


class TestThreading:
    def test_append_tool_results(self):
        out = append_tool_results([Message.user("x")], [("c1", "t", "ok"), ("c2", "t", "no")])
        assert [m.tool_call_id for m in out[1:]] == ["c1", "c2"]
        assert out[2].content == "no"

    def test_last_assistant_text(self):
        assert last_assistant_text(_conversation(2)) == "round 1"
        assert last_assistant_text([Message.user("x")]) == ""

    def test_count_tool_rounds(self):
        assert count_tool_rounds(_conversation(3)) == 3


class TestPruning:
    def test_keeps_recent_rounds(self):
        pruned = prune_old_tool_results(_conversation(5), keep_rounds=2)
        tool_texts = [m.content for m in pruned if m.role == "tool"]
        assert tool_texts == [TRUNCATED_PLACEHOLDER] * 3 + ["result 3", "result 4"]

    def test_structure_preserved(self):
        original = _conversation(5)
        pruned = prune_old_tool_results(original, keep_rounds=1)
        assert len(pruned) == len(original)
        for before, after in zip(original, pruned):
            assert before.role == after.role
            assert before.tool_call_id == after.tool_call_id
            assert before.name == after.name

    def test_noop_when_few_rounds(self):
        original = _conversation(2)
        assert prune_old_tool_results(original, keep_rounds=4) == original

    def test_maybe_prune_waits_for_round(self):
        original = _conversation(5)
        assert maybe_prune_context(original, round_=1, keep_rounds=2) == original
        pruned = maybe_prune_context(original, round_=2, keep_rounds=2)
        assert pruned[2].content == TRUNCATED_PLACEHOLDER
