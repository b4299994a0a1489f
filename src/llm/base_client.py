# src/llm/base_client.py — v2
"""Abstract LLM provider interface."""

from __future__ import annotations

from abc import ABC, abstractmethod

from teamrun.core.models import LLMModelRef
from teamrun.llm.models import GenerateOptions, GenerateResponse, Message


class BaseLLMProvider(ABC):
    """Unified interface for all LLM providers.

    Implementations raise ProviderError on failure, with ``retryable``
    set for rate-limit and unavailable responses.
    """

    @abstractmethod
    async def generate(
        self,
        model: LLMModelRef,
        conversation: list[Message],
        options: GenerateOptions,
    ) -> GenerateResponse:
        """Run one non-streaming completion over the conversation."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (anthropic, openai, ...)."""
