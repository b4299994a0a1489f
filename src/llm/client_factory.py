# src/llm/client_factory.py — v3
"""Factory: instantiate LLM providers from provider name.

The generation loop asks a ProviderRegistry for the provider bound to an
agent's model; providers are created lazily and reused per name.
"""

from __future__ import annotations

import importlib
import logging

from teamrun.config.settings import Settings
from teamrun.core.errors import ConfigurationError
from teamrun.core.models import LLMModelRef
from teamrun.llm.base_client import BaseLLMProvider

logger = logging.getLogger(__name__)

# Registry of provider name → adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "anthropic": "teamrun.llm.adapters.anthropic_adapter.AnthropicProvider",
    "openai": "teamrun.llm.adapters.openai_adapter.OpenAIProvider",
}


class UnsupportedProviderError(ConfigurationError):
    """Raised when a provider is not registered."""


def create_provider(provider: str, settings: Settings | None = None) -> BaseLLMProvider:
    """Instantiate the correct adapter from provider name.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])

    init_kwargs: dict[str, object] = {}
    if settings is not None:
        init_kwargs["timeout_s"] = settings.llm_receive_timeout_s
        if provider == "anthropic":
            init_kwargs["api_key"] = settings.anthropic_api_key
        elif provider == "openai":
            init_kwargs["api_key"] = settings.openai_api_key
            init_kwargs["base_url"] = settings.openai_base_url

    logger.debug("Creating LLM provider: %s", provider)
    return adapter_cls(**init_kwargs)


def register_provider(name: str, class_path: str) -> None:
    """Register a custom provider adapter.

    Args:
        name: Provider identifier.
        class_path: Fully qualified class path implementing BaseLLMProvider.
    """
    _PROVIDER_REGISTRY[name] = class_path
    logger.info("Registered LLM provider: %s → %s", name, class_path)


class ProviderRegistry:
    """Resolve and cache one provider instance per provider name."""

    def __init__(
        self,
        settings: Settings | None = None,
        overrides: dict[str, BaseLLMProvider] | None = None,
    ) -> None:
        self._settings = settings
        self._providers: dict[str, BaseLLMProvider] = dict(overrides or {})

    def for_model(self, model: LLMModelRef) -> BaseLLMProvider:
        provider = self._providers.get(model.provider)
        if provider is None:
            provider = create_provider(model.provider, self._settings)
            self._providers[model.provider] = provider
        return provider


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
