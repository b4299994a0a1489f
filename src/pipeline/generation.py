# src/pipeline/generation.py — v2
"""LLM generation loop for one pipeline stage.

Drives the provider through tool-calling rounds until the model answers
without tools or a soft stop triggers:
  - round >= max_iterations → partial output + "[Max iterations (N) reached]"
  - run cost >= cost_limit  → partial output + "[Cost limit of $X reached]"

Soft stops are successes. Provider failures (after retry, for transient
errors) come back as GenerationFailure carrying the conversation as it
stood before the failed call, so a later invocation can resume it.

The conversation and round counter are plain locals threaded through
the loop; nothing is kept on the instance between calls.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from teamrun.config.settings import Settings
from teamrun.core.models import LLMModelRef
from teamrun.llm.base_client import BaseLLMProvider
from teamrun.llm.client_factory import ProviderRegistry
from teamrun.llm.config import build_provider_options, maybe_enable_prompt_cache
from teamrun.llm.conversation import (
    append_tool_results,
    deserialize_conversation,
    last_assistant_text,
    maybe_prune_context,
    serialize_conversation,
)
from teamrun.llm.models import (
    GenerateOptions,
    GenerateResponse,
    Message,
    ToolCall,
    ToolSpec,
)
from teamrun.llm.retry import LLMCallError, RetryPolicy, with_retry
from teamrun.pipeline.prompts import (
    build_analysis_header,
    build_system_prompt,
    build_user_message,
)
from teamrun.tools.executor import ToolExecutionService, outcome_text
from teamrun.tools.models import ToolContext, ToolTarget
from teamrun.tracking.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)

LogFn = Callable[..., Awaitable[Any]]


@dataclass
class GenerationRequest:
    """Everything one stage needs to run its generation loop."""

    agent_name: str
    role: str
    prompt: str
    model: LLMModelRef | None
    strategy: str = "react"
    system_prompt: str = ""
    backstory: str = ""
    opinions: dict[str, Any] = field(default_factory=dict)
    tools: list[ToolSpec] = field(default_factory=list)
    tool_targets: dict[str, ToolTarget] = field(default_factory=dict)
    config: dict[str, Any] = field(default_factory=dict)
    prior_context: str = ""
    report_id: str | None = None
    run_id: str | None = None
    user_id: str | None = None
    cost_limit: Decimal | None = None
    resume_messages: list[dict[str, Any]] | None = None


@dataclass
class GenerationResult:
    """Successful (possibly soft-stopped) stage output."""

    analysis: str
    output: str
    messages: list[dict[str, Any]]


@dataclass
class GenerationFailure:
    """Stage failure with the best conversation snapshot available."""

    reason: str
    messages: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class NormalizedToolCall:
    id: str
    name: str
    input: dict[str, Any]


class GenerationLoop:
    """Per-stage LLM tool-calling loop.

    Args:
        providers: Resolves the provider for an agent's model.
        tool_service: Executes tool calls against resolved targets.
        ledger: Usage ledger (one record per successful call, cost checks).
        log: Run log callback for progress entries.
        settings: Loop limits; defaults apply when None.
        sleep: Backoff sleep, injectable for tests.
    """

    def __init__(
        self,
        providers: ProviderRegistry,
        tool_service: ToolExecutionService,
        ledger: UsageLedger,
        log: LogFn | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._providers = providers
        self._tools = tool_service
        self._ledger = ledger
        self._log = log
        self._settings = settings or Settings()
        self._sleep = sleep
        self._policy = RetryPolicy(
            max_retries=self._settings.llm_max_retries,
            backoff_ms=self._settings.llm_backoff_ms,
        )

    @property
    def handoff_max_chars(self) -> int:
        return self._settings.handoff_summary_max_chars

    async def generate(self, request: GenerationRequest) -> GenerationResult | GenerationFailure:
        """Run the loop for one stage."""
        if request.model is None:
            return GenerationFailure(f"Agent '{request.agent_name}' has no LLM model configured")

        system_prompt, conversation = self._initial_conversation(request)
        provider = self._providers.for_model(request.model)
        max_iterations = int(
            request.config.get("max_iterations") or self._settings.default_max_iterations
        )

        round_ = 0
        try:
            while True:
                if round_ >= max_iterations:
                    logger.warning(
                        "%s hit max iterations (%d)", request.agent_name, max_iterations
                    )
                    text = last_assistant_text(conversation)
                    return self._result(
                        request, system_prompt, conversation,
                        f"{text}\n\n[Max iterations ({max_iterations}) reached]",
                    )

                if await self._cost_limit_reached(request):
                    logger.warning(
                        "%s hit cost limit ($%s)", request.agent_name, request.cost_limit
                    )
                    text = last_assistant_text(conversation)
                    return self._result(
                        request, system_prompt, conversation,
                        f"{text}\n\n[Cost limit of ${request.cost_limit} reached]",
                    )

                options = self._options(request, request.model, system_prompt)
                started = time.monotonic()
                try:
                    response: GenerateResponse = await with_retry(
                        self._call_provider, provider, request.model, conversation, options,
                        agent=request.agent_name, policy=self._policy, sleep=self._sleep,
                    )
                except LLMCallError as e:
                    logger.error("LLM call failed for %s: %s", request.agent_name, e)
                    return GenerationFailure(
                        f"LLM call failed for agent '{request.agent_name}': {e}",
                        serialize_conversation(system_prompt, conversation),
                    )
                latency_ms = response.latency_ms or int((time.monotonic() - started) * 1000)

                await self._ledger.record(
                    response.usage,
                    run_id=request.run_id,
                    user_id=request.user_id,
                    agent=request.agent_name,
                    model=request.model,
                    provider=response.provider or provider.provider_name,
                    latency_ms=latency_ms,
                    call_type="complete",
                    tool_round=round_,
                )
                await self._progress(request, round_, bool(response.tool_calls))

                conversation = _next_conversation(conversation, response)

                if not response.tool_calls:
                    return self._result(request, system_prompt, conversation, response.text)

                calls = [normalize_tool_call(tc) for tc in response.tool_calls]
                results = await self._execute_tools(request, calls)
                conversation = append_tool_results(conversation, results)
                conversation = maybe_prune_context(
                    conversation, round_, self._settings.context_keep_rounds
                )
                round_ += 1
        except Exception as e:
            logger.exception("Generation loop crashed for %s", request.agent_name)
            return GenerationFailure(
                f"Generation failed for agent '{request.agent_name}': {e}",
                serialize_conversation(system_prompt, conversation),
            )

    # --- Setup ---

    def _initial_conversation(self, request: GenerationRequest) -> tuple[str, list[Message]]:
        if request.resume_messages:
            system_prompt, messages = deserialize_conversation(request.resume_messages)
            logger.info(
                "Resuming %s from %d saved messages",
                request.agent_name, len(request.resume_messages),
            )
            if messages:
                return system_prompt or self._system_prompt(request), messages

        user_message = build_user_message(request.prompt, request.prior_context)
        return self._system_prompt(request), [Message.user(user_message)]

    def _system_prompt(self, request: GenerationRequest) -> str:
        return build_system_prompt(
            role=request.role,
            strategy=request.strategy,
            system_prompt=request.system_prompt,
            backstory=request.backstory,
            opinions=request.opinions,
            has_tools=bool(request.tools),
            report_id=request.report_id,
            handoff_max_chars=self._settings.handoff_summary_max_chars,
        )

    def _options(
        self, request: GenerationRequest, model: LLMModelRef, system_prompt: str
    ) -> GenerateOptions:
        provider_options = maybe_enable_prompt_cache(
            build_provider_options(model),
            len(request.tools),
            self._settings.max_cached_tool_blocks,
        )
        return GenerateOptions(
            system_prompt=system_prompt,
            tools=request.tools,
            max_tokens=self._settings.llm_max_tokens,
            temperature=self._settings.llm_temperature,
            prompt_cache=bool(provider_options.get("prompt_cache")),
            provider_options=provider_options,
        )

    # --- Per-round steps ---

    async def _call_provider(
        self,
        provider: BaseLLMProvider,
        model: LLMModelRef,
        conversation: list[Message],
        options: GenerateOptions,
    ) -> GenerateResponse:
        return await asyncio.wait_for(
            provider.generate(model, conversation, options),
            timeout=self._settings.llm_receive_timeout_s,
        )

    async def _cost_limit_reached(self, request: GenerationRequest) -> bool:
        if request.cost_limit is None or request.run_id is None:
            return False
        check = await self._ledger.check_cost_limit("run", request.run_id, request.cost_limit)
        return not check.ok

    async def _progress(self, request: GenerationRequest, round_: int, has_tool_calls: bool) -> None:
        if self._log is None or request.run_id is None:
            return
        status = "tool_calling" if has_tool_calls else "generating"
        await self._log(
            request.run_id,
            "debug",
            "llm_round",
            f"{request.agent_name} round {round_ + 1} ({status})",
            {"agent": request.agent_name, "round": round_ + 1, "status": status},
        )

    async def _execute_tools(
        self,
        request: GenerationRequest,
        calls: list[NormalizedToolCall],
    ) -> list[tuple[str, str, str]]:
        context = ToolContext(
            user_id=request.user_id, run_id=request.run_id, agent=request.agent_name
        )
        results: list[tuple[str, str, str]] = []
        for call in calls:
            outcome = await self._tools.execute(
                request.tool_targets.get(call.name), call.name, call.input, context
            )
            results.append((call.id, call.name, outcome_text(outcome)))
        return results

    def _result(
        self,
        request: GenerationRequest,
        system_prompt: str,
        conversation: list[Message],
        output: str,
    ) -> GenerationResult:
        return GenerationResult(
            analysis=build_analysis_header(request.agent_name, request.role, request.strategy),
            output=output,
            messages=serialize_conversation(system_prompt, conversation),
        )


def normalize_tool_call(call: ToolCall) -> NormalizedToolCall:
    """Decode tool call arguments; undecodable text becomes ``{"_raw": text}``."""
    args = call.arguments
    if isinstance(args, dict):
        tool_input = args
    elif not args.strip():
        tool_input = {}
    else:
        try:
            decoded = json.loads(args)
        except json.JSONDecodeError:
            logger.warning("Undecodable arguments for tool %s: %r", call.name, args)
            decoded = None
        tool_input = decoded if isinstance(decoded, dict) else {"_raw": args}
    return NormalizedToolCall(id=call.id, name=call.name, input=tool_input)


def _next_conversation(conversation: list[Message], response: GenerateResponse) -> list[Message]:
    """Provider conversation with the assistant turn, or ours plus that turn."""
    if response.conversation and len(response.conversation) > len(conversation):
        return list(response.conversation)
    return conversation + [Message.assistant(response.text, tool_calls=response.tool_calls)]
