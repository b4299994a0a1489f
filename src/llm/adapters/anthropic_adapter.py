# src/llm/adapters/anthropic_adapter.py — v3
"""Anthropic Claude provider implementing BaseLLMProvider.

Uses the official anthropic SDK (Messages API) with tool use. Tool
results are sent back as ``tool_result`` blocks inside a user turn;
consecutive tool messages are merged into one turn.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from teamrun.core.errors import ProviderError
from teamrun.core.models import LLMModelRef
from teamrun.llm.base_client import BaseLLMProvider
from teamrun.llm.models import (
    GenerateOptions,
    GenerateResponse,
    Message,
    ToolCall,
    ToolSpec,
    Usage,
)
from teamrun.llm.retry import RETRYABLE_STATUS_CODES

logger = logging.getLogger(__name__)

_CACHE_CONTROL = {"type": "ephemeral"}


class AnthropicProvider(BaseLLMProvider):
    """Provider for Anthropic Claude models."""

    def __init__(
        self,
        api_key: str | None = None,
        timeout_s: float = 120.0,
    ) -> None:
        self._api_key = api_key
        self._timeout_s = timeout_s
        self.__client = None  # Lazy initialization

    @property
    def _client(self):
        """Lazy-init Anthropic client (only on first API call)."""
        if self.__client is None:
            import anthropic

            self.__client = anthropic.AsyncAnthropic(
                api_key=self._api_key or None,
                timeout=self._timeout_s,
                max_retries=0,
            )
        return self.__client

    @property
    def provider_name(self) -> str:
        return "anthropic"

    async def generate(
        self,
        model: LLMModelRef,
        conversation: list[Message],
        options: GenerateOptions,
    ) -> GenerateResponse:
        """Completion via the Messages API, with tools when provided."""
        import anthropic

        kwargs = self._build_kwargs(model, conversation, options)

        start = time.monotonic()
        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIStatusError as exc:
            raise ProviderError(
                _error_message(exc),
                status_code=exc.status_code,
                retryable=exc.status_code in RETRYABLE_STATUS_CODES,
            ) from exc
        except anthropic.APIConnectionError as exc:
            raise ProviderError(f"connection error: {exc}") from exc
        latency_ms = int((time.monotonic() - start) * 1000)

        text, tool_calls = self._extract_content(response)
        usage = Usage(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            cached_tokens=getattr(response.usage, "cache_read_input_tokens", 0) or 0,
            cache_write_tokens=getattr(response.usage, "cache_creation_input_tokens", 0) or 0,
        )

        return GenerateResponse(
            text=text,
            tool_calls=tool_calls,
            usage=usage,
            conversation=[*conversation, Message.assistant(text, tool_calls=tool_calls)],
            model=response.model,
            provider="anthropic",
            latency_ms=latency_ms,
        )

    # --- Internal helpers ---

    def _build_kwargs(
        self,
        model: LLMModelRef,
        conversation: list[Message],
        options: GenerateOptions,
    ) -> dict[str, Any]:
        cache = options.prompt_cache or bool(options.provider_options.get("prompt_cache"))
        kwargs: dict[str, Any] = {
            "model": model.model,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
            "messages": self._to_api_messages(conversation),
        }
        if options.system_prompt:
            if cache:
                kwargs["system"] = [
                    {"type": "text", "text": options.system_prompt, "cache_control": _CACHE_CONTROL}
                ]
            else:
                kwargs["system"] = options.system_prompt
        if options.tools:
            kwargs["tools"] = [self._to_api_tool(t, cache) for t in options.tools]
        return kwargs

    @staticmethod
    def _to_api_tool(tool: ToolSpec, cache: bool) -> dict[str, Any]:
        spec: dict[str, Any] = {
            "name": tool.name,
            "description": tool.description,
            "input_schema": tool.input_schema,
        }
        if cache:
            spec["cache_control"] = _CACHE_CONTROL
        return spec

    @staticmethod
    def _to_api_messages(conversation: list[Message]) -> list[dict[str, Any]]:
        api_messages: list[dict[str, Any]] = []
        for msg in conversation:
            if msg.role == "system":
                continue
            if msg.role == "tool":
                block = {
                    "type": "tool_result",
                    "tool_use_id": msg.tool_call_id,
                    "content": msg.content,
                }
                last = api_messages[-1] if api_messages else None
                if last and last["role"] == "user" and isinstance(last["content"], list):
                    last["content"].append(block)
                else:
                    api_messages.append({"role": "user", "content": [block]})
            elif msg.role == "assistant" and msg.tool_calls:
                blocks: list[dict[str, Any]] = []
                if msg.content:
                    blocks.append({"type": "text", "text": msg.content})
                for tc in msg.tool_calls:
                    blocks.append(
                        {"type": "tool_use", "id": tc.id, "name": tc.name, "input": _as_input(tc.arguments)}
                    )
                api_messages.append({"role": "assistant", "content": blocks})
            else:
                api_messages.append({"role": msg.role, "content": msg.content})
        return api_messages

    @staticmethod
    def _extract_content(response: Any) -> tuple[str, list[ToolCall]]:
        """Collect text and tool_use blocks from the response."""
        texts: list[str] = []
        calls: list[ToolCall] = []
        for block in response.content:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                texts.append(block.text)
            elif block_type == "tool_use":
                calls.append(ToolCall(id=block.id, name=block.name, arguments=block.input or {}))
        return "".join(texts), calls


def _as_input(arguments: dict[str, Any] | str) -> dict[str, Any]:
    if isinstance(arguments, dict):
        return arguments
    try:
        decoded = json.loads(arguments)
    except json.JSONDecodeError:
        return {"_raw": arguments}
    return decoded if isinstance(decoded, dict) else {"_raw": arguments}


def _error_message(exc: Any) -> str:
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return getattr(exc, "message", None) or str(exc)
