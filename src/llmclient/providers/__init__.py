"""Provider adapters for the supported LLM vendors."""

from __future__ import annotations

from typing import Dict, Optional, Type

from ..config import ProviderConfig, resolve_vendor
from ..transport import Transport
from .anthropic_provider import AnthropicProvider
from .base import HttpProvider, Provider
from .gemini_provider import GeminiProvider
from .mistral_provider import MistralProvider
from .openai_provider import DeepSeekProvider, GroqProvider, OpenAIProvider

PROVIDERS: Dict[str, Type[HttpProvider]] = {
    "gemini": GeminiProvider,
    "gpt": OpenAIProvider,
    "claude": AnthropicProvider,
    "mistral": MistralProvider,
    "deepseek": DeepSeekProvider,
    "groq": GroqProvider,
}


def build_provider(
    vendor: str,
    model: Optional[str] = None,
    transport: Optional[Transport] = None,
    config: Optional[ProviderConfig] = None,
    **overrides,
) -> HttpProvider:
    """
    Create the adapter for ``vendor``.

    Configuration comes from ``config`` when given, otherwise from the
    environment via ``ProviderConfig.from_env``.

    Raises:
        ProviderConfigurationError: Unknown vendor or missing credential.
    """
    name = resolve_vendor(vendor)
    if config is None:
        config = ProviderConfig.from_env(name, model=model, **overrides)
    elif model:
        config = config.with_model(model)
    return PROVIDERS[name](config, transport=transport)


__all__ = [
    "Provider",
    "HttpProvider",
    "GeminiProvider",
    "OpenAIProvider",
    "AnthropicProvider",
    "MistralProvider",
    "GroqProvider",
    "DeepSeekProvider",
    "PROVIDERS",
    "build_provider",
]
