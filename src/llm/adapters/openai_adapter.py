# src/llm/adapters/openai_adapter.py — v2
"""OpenAI chat-completions provider implementing BaseLLMProvider.

Tool call arguments come back as raw JSON strings and are passed
through untouched; the generation loop normalizes them.
"""

from __future__ import annotations

import json
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
    Usage,
)
from teamrun.llm.retry import RETRYABLE_STATUS_CODES


class OpenAIProvider(BaseLLMProvider):
    """OpenAI GPT provider."""

    def __init__(
        self,
        api_key: str = "",
        base_url: str | None = None,
        timeout_s: float = 120.0,
        **kwargs: Any,
    ):
        self._api_key = api_key
        self._base_url = base_url or None
        self._timeout_s = timeout_s
        self._client = None

    @property
    def provider_name(self) -> str:
        return "openai"

    def _get_client(self):
        if self._client is None:
            import openai

            self._client = openai.AsyncOpenAI(
                api_key=self._api_key or None,
                base_url=self._base_url,
                timeout=self._timeout_s,
                max_retries=0,
            )
        return self._client

    async def generate(
        self,
        model: LLMModelRef,
        conversation: list[Message],
        options: GenerateOptions,
    ) -> GenerateResponse:
        import openai

        oai_messages: list[dict[str, Any]] = []
        if options.system_prompt:
            oai_messages.append({"role": "system", "content": options.system_prompt})
        oai_messages.extend(self._to_api_message(m) for m in conversation if m.role != "system")

        kwargs: dict[str, Any] = {
            "model": model.model,
            "messages": oai_messages,
            "max_tokens": options.max_tokens,
            "temperature": options.temperature,
        }
        if options.tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": t.name,
                        "description": t.description,
                        "parameters": t.input_schema,
                    },
                }
                for t in options.tools
            ]

        t0 = time.monotonic()
        try:
            resp = await self._get_client().chat.completions.create(**kwargs)
        except openai.APIStatusError as exc:
            raise ProviderError(
                str(exc.message),
                status_code=exc.status_code,
                retryable=exc.status_code in RETRYABLE_STATUS_CODES,
            ) from exc
        except openai.APIConnectionError as exc:
            raise ProviderError(f"connection error: {exc}") from exc
        latency = int((time.monotonic() - t0) * 1000)

        choice = resp.choices[0]
        text = choice.message.content or ""
        calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "")
            for tc in (choice.message.tool_calls or [])
        ]

        usage = resp.usage
        cached = 0
        if usage is not None and getattr(usage, "prompt_tokens_details", None) is not None:
            cached = usage.prompt_tokens_details.cached_tokens or 0

        return GenerateResponse(
            text=text,
            tool_calls=calls,
            usage=Usage(
                input_tokens=usage.prompt_tokens if usage else 0,
                output_tokens=usage.completion_tokens if usage else 0,
                cached_tokens=cached,
            ),
            conversation=[*conversation, Message.assistant(text, tool_calls=calls)],
            model=resp.model or model.model,
            provider="openai",
            latency_ms=latency,
        )

    @staticmethod
    def _to_api_message(m: Message) -> dict[str, Any]:
        if m.role == "tool":
            return {"role": "tool", "tool_call_id": m.tool_call_id, "content": m.content}
        if m.role == "assistant" and m.tool_calls:
            return {
                "role": "assistant",
                "content": m.content or None,
                "tool_calls": [
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
                    for tc in m.tool_calls
                ],
            }
        return {"role": m.role, "content": m.content}
