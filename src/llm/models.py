# src/llm/models.py — v2
"""LLM-specific types: Message, ToolCall, ToolSpec, Usage, GenerateResponse.

The conversation is a plain list of Message objects. Tool results are
linked to the assistant tool call that produced them by ``tool_call_id``.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal

from pydantic import BaseModel, Field


class ToolSpec(BaseModel):
    """Tool declaration passed to the provider."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


class ToolCall(BaseModel):
    """Tool invocation requested by the model.

    ``arguments`` is whatever the provider returned: a decoded dict, or a
    raw JSON string for providers that stream arguments as text.
    """

    id: str
    name: str
    arguments: dict[str, Any] | str = Field(default_factory=dict)


class Message(BaseModel):
    """Single message in a conversation."""

    role: Literal["system", "user", "assistant", "tool"]
    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_call_id: str | None = None
    name: str | None = None

    @classmethod
    def user(cls, text: str) -> Message:
        return cls(role="user", content=text)

    @classmethod
    def assistant(cls, text: str, tool_calls: list[ToolCall] | None = None) -> Message:
        return cls(role="assistant", content=text, tool_calls=tool_calls or [])

    @classmethod
    def tool_result(cls, tool_call_id: str, name: str, text: str) -> Message:
        return cls(role="tool", content=text, tool_call_id=tool_call_id, name=name)

    @property
    def has_tool_calls(self) -> bool:
        return self.role == "assistant" and bool(self.tool_calls)


class Usage(BaseModel):
    """Token and cost usage reported for one provider call."""

    input_tokens: int = 0
    output_tokens: int = 0
    cached_tokens: int = 0
    cache_write_tokens: int = 0
    input_cost: Decimal | None = None
    output_cost: Decimal | None = None
    total_cost: Decimal | None = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class GenerateOptions(BaseModel):
    """Per-call options for BaseLLMProvider.generate()."""

    system_prompt: str = ""
    tools: list[ToolSpec] = Field(default_factory=list)
    max_tokens: int = 4096
    temperature: float = 0.2
    prompt_cache: bool = False
    provider_options: dict[str, Any] = Field(default_factory=dict)


class GenerateResponse(BaseModel):
    """Normalized response from any provider.

    ``conversation`` is the input conversation with the assistant turn
    appended, ready for tool results to follow.
    """

    text: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)
    conversation: list[Message] = Field(default_factory=list)
    model: str = ""
    provider: str = ""
    latency_ms: int = 0
