"""
reviewlm.adapters — Provider adapter registry.

Provides a ``create_adapter()`` factory that returns the adapter for a
provider.  Credentials and options are always passed in explicitly;
``adapter_from_config()`` is the one place that maps a ``RuntimeConfig``
onto those arguments.

Supported providers:
    - ``anthropic``  — Claude via the Messages API
    - ``openai``     — GPT-5 / o-series via the Responses API
"""

from __future__ import annotations

from typing import Any

import httpx

from reviewlm.adapters.base import BaseAdapter
from reviewlm.core.config import (
    DEFAULT_ANTHROPIC_BASE_URL,
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_OPENAI_BASE_URL,
    DEFAULT_OPENAI_MODEL,
    RuntimeConfig,
)
from reviewlm.core.models import Provider


PROVIDER_DEFAULTS: dict[str, dict[str, str]] = {
    "anthropic": {
        "model": DEFAULT_ANTHROPIC_MODEL,
        "base_url": DEFAULT_ANTHROPIC_BASE_URL,
    },
    "openai": {
        "model": DEFAULT_OPENAI_MODEL,
        "base_url": DEFAULT_OPENAI_BASE_URL,
    },
}


def create_adapter(
    provider: str | Provider,
    api_key: str = "",
    model: str = "",
    base_url: str = "",
    **options: Any,
) -> BaseAdapter:
    """
    Factory function that returns the correct adapter for the given provider.

    Parameters
    ----------
    provider :
        ``"anthropic"`` or ``"openai"``.
    api_key :
        API key for the provider.  An empty key is accepted here and
        reported as ``MissingCredential`` when the first payload is built.
    model :
        Model identifier. Falls back to the provider's default.
    base_url :
        Optional base URL override (proxies, test servers).
    options :
        Adapter-specific keyword arguments (``extended_context``,
        ``structured_output``, ``http_transport`` …).
    """
    name = provider.value if isinstance(provider, Provider) else provider.lower().strip()
    defaults = PROVIDER_DEFAULTS.get(name)
    if defaults is None:
        raise ValueError(
            f"Unknown provider: '{name}'. "
            f"Supported: {', '.join(PROVIDER_DEFAULTS)}"
        )

    model = model or defaults["model"]
    base_url = base_url or defaults["base_url"]

    if name == "anthropic":
        from reviewlm.adapters.anthropic import AnthropicAdapter

        return AnthropicAdapter(api_key=api_key, model=model, base_url=base_url, **options)

    from reviewlm.adapters.openai import OpenAIAdapter

    return OpenAIAdapter(api_key=api_key, model=model, base_url=base_url, **options)


def adapter_from_config(
    config: RuntimeConfig,
    provider: Provider | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> BaseAdapter:
    """Build the adapter for *provider* (default: the configured one)."""
    provider = provider or config.provider
    options: dict[str, Any] = {
        "max_attempts": config.transport_max_attempts,
        "http_transport": http_transport,
    }
    if provider is Provider.ANTHROPIC:
        options["extended_context"] = config.anthropic_extended_context
        options["prompt_cache"] = config.prompt_cache_enabled
    else:
        options["structured_output"] = config.openai_structured_output
        options["max_prompt_chars"] = config.openai_max_prompt_chars

    return create_adapter(
        provider,
        api_key=config.api_key_for(provider),
        model=config.model_for(provider),
        base_url=config.base_url_for(provider),
        **options,
    )


__all__ = ["BaseAdapter", "PROVIDER_DEFAULTS", "adapter_from_config", "create_adapter"]
