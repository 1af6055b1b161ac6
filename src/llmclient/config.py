"""
Per-vendor credential, model and endpoint configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Dict, Optional

from .env import load_default_env
from .exceptions import ProviderConfigurationError


@dataclass(frozen=True)
class VendorDefaults:
    """Environment variable names and fallbacks for one vendor."""

    key_env: str
    model_env: str
    url_env: str
    default_model: str
    default_url: str
    alt_key_env: str = ""


VENDORS: Dict[str, VendorDefaults] = {
    "gemini": VendorDefaults(
        key_env="GEMINI_API_KEY",
        alt_key_env="GOOGLE_API_KEY",
        model_env="GEMINI_MODEL",
        url_env="GEMINI_URL",
        default_model="gemini-2.0-flash",
        default_url="https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent",
    ),
    "gpt": VendorDefaults(
        key_env="OPENAI_API_KEY",
        model_env="GPT_MODEL",
        url_env="GPT_CHAT_URL",
        default_model="gpt-4o",
        default_url="https://api.openai.com/v1/chat/completions",
    ),
    "claude": VendorDefaults(
        key_env="ANTHROPIC_API_KEY",
        model_env="CLAUDE_MODEL",
        url_env="CLAUDE_URL",
        default_model="claude-3-5-sonnet-20241022",
        default_url="https://api.anthropic.com/v1/messages",
    ),
    "mistral": VendorDefaults(
        key_env="MISTRAL_API_KEY",
        model_env="MISTRAL_MODEL",
        url_env="MISTRAL_CHAT_URL",
        default_model="mistral-large-latest",
        default_url="https://api.mistral.ai/v1/chat/completions",
    ),
    "deepseek": VendorDefaults(
        key_env="DEEPSEEK_API_KEY",
        model_env="DEEPSEEK_MODEL",
        url_env="DEEPSEEK_CHAT_URL",
        default_model="deepseek-chat",
        default_url="https://api.deepseek.com/chat/completions",
    ),
    "groq": VendorDefaults(
        key_env="GROQ_API_KEY",
        model_env="GROQ_MODEL",
        url_env="GROQ_CHAT_URL",
        default_model="llama-3.3-70b-versatile",
        default_url="https://api.groq.com/openai/v1/chat/completions",
    ),
}

# Numeric shortcuts accepted on the command line.
VENDOR_ALIASES: Dict[str, str] = {
    "0": "gemini",
    "1": "gpt",
    "openai": "gpt",
    "2": "claude",
    "anthropic": "claude",
    "3": "mistral",
    "4": "deepseek",
    "5": "groq",
}

DEFAULT_ANTHROPIC_VERSION = "2023-06-01"


def resolve_vendor(name: str) -> str:
    """Map a vendor name or numeric alias onto its canonical name."""
    key = name.strip().lower()
    key = VENDOR_ALIASES.get(key, key)
    if key not in VENDORS:
        raise ProviderConfigurationError(
            provider_name=name,
            missing_config=f"a known vendor (one of {', '.join(VENDORS)})",
        )
    return key


@dataclass(frozen=True)
class ProviderConfig:
    """
    Explicit configuration handed to a provider adapter.

    Attributes:
        vendor: Canonical vendor name (gemini, gpt, claude, mistral, deepseek, groq).
        api_key: Credential used verbatim in the vendor's auth header.
        model: Model identifier sent with every request.
        url: Endpoint; ``{model}`` is substituted for vendors that put it in the path.
        timeout: Transport timeout in seconds. Default: 120.0.
        temperature: Sampling temperature. Default: 0.2.
        max_tokens: Maximum tokens to generate. Default: 4096.
        version: API version header value (Claude only).
        extra_headers: Additional headers merged into every request.
    """

    vendor: str
    api_key: str
    model: str
    url: str
    timeout: float = 120.0
    temperature: float = 0.2
    max_tokens: int = 4096
    version: str = ""
    extra_headers: Dict[str, str] = field(default_factory=dict, hash=False)

    def endpoint(self, model: Optional[str] = None) -> str:
        return self.url.replace("{model}", model or self.model)

    def with_model(self, model: str) -> "ProviderConfig":
        return replace(self, model=model)

    def __repr__(self) -> str:
        # Never echo the credential.
        return (
            f"ProviderConfig(vendor={self.vendor!r}, model={self.model!r}, url={self.url!r}, "
            f"timeout={self.timeout}, temperature={self.temperature}, max_tokens={self.max_tokens})"
        )

    @classmethod
    def from_env(cls, vendor: str, model: Optional[str] = None, **overrides) -> "ProviderConfig":
        """
        Build a config from environment variables (after loading ``.env``).

        Args:
            vendor: Vendor name or alias.
            model: Optional model override; otherwise ``<VENDOR>_MODEL`` or the default.
            **overrides: Any other ProviderConfig field.

        Raises:
            ProviderConfigurationError: If the vendor is unknown or its API key is missing.
        """
        load_default_env()
        name = resolve_vendor(vendor)
        defaults = VENDORS[name]

        api_key = os.getenv(defaults.key_env) or (
            os.getenv(defaults.alt_key_env) if defaults.alt_key_env else None
        )
        if not api_key:
            raise ProviderConfigurationError(
                provider_name=name, missing_config="API key", env_var=defaults.key_env
            )

        values = {
            "vendor": name,
            "api_key": api_key,
            "model": model or os.getenv(defaults.model_env) or defaults.default_model,
            "url": os.getenv(defaults.url_env) or defaults.default_url,
        }
        if name == "claude":
            values["version"] = os.getenv("CLAUDE_VERSION") or DEFAULT_ANTHROPIC_VERSION
        values.update(overrides)
        return cls(**values)


__all__ = [
    "ProviderConfig",
    "VendorDefaults",
    "VENDORS",
    "VENDOR_ALIASES",
    "DEFAULT_ANTHROPIC_VERSION",
    "resolve_vendor",
]
