"""
reviewlm.core.config — Runtime configuration read from the environment.

The engine never reads ``os.environ`` itself: callers either pass a
``RuntimeConfig`` explicitly or use :func:`get_runtime_config`, which builds
one from the environment once and caches it until
:func:`reset_runtime_config_cache` is called.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Mapping

from pydantic import BaseModel

from reviewlm.core.models import Provider

logger = logging.getLogger("reviewlm.core.config")

DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_OPENAI_MODEL = "gpt-5"
DEFAULT_ANTHROPIC_BASE_URL = "https://api.anthropic.com"
DEFAULT_OPENAI_BASE_URL = "https://api.openai.com"
DEFAULT_OPENAI_MAX_PROMPT_CHARS = 120_000
DEFAULT_TRANSPORT_ATTEMPTS = 3

STRUCTURED_OUTPUT_TOOL = "tool"
STRUCTURED_OUTPUT_SCHEMA = "schema"


class RuntimeConfig(BaseModel):
    """Everything the engine consumes from its surroundings."""

    provider: Provider = Provider.ANTHROPIC
    thinking_enabled: bool = False

    # Anthropic
    anthropic_api_key: str = ""
    anthropic_model: str = DEFAULT_ANTHROPIC_MODEL
    anthropic_extended_context: bool = True
    anthropic_base_url: str = DEFAULT_ANTHROPIC_BASE_URL

    # OpenAI
    openai_api_key: str = ""
    openai_model: str = DEFAULT_OPENAI_MODEL
    openai_max_prompt_chars: int = DEFAULT_OPENAI_MAX_PROMPT_CHARS
    openai_structured_output: str = STRUCTURED_OUTPUT_TOOL
    openai_base_url: str = DEFAULT_OPENAI_BASE_URL

    # Prompt cache / observability
    prompt_cache_enabled: bool = True
    prompt_cache_debug: bool = False
    raw_reply_debug: bool = False

    # Transport
    transport_max_attempts: int = DEFAULT_TRANSPORT_ATTEMPTS

    def api_key_for(self, provider: Provider) -> str:
        if provider is Provider.OPENAI:
            return self.openai_api_key
        return self.anthropic_api_key

    def model_for(self, provider: Provider) -> str:
        if provider is Provider.OPENAI:
            return self.openai_model
        return self.anthropic_model

    def base_url_for(self, provider: Provider) -> str:
        if provider is Provider.OPENAI:
            return self.openai_base_url
        return self.anthropic_base_url

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, **overrides: Any) -> "RuntimeConfig":
        """
        Build a config from environment variables.

        Resolution order (highest priority first):
          1. Explicit ``overrides`` keyword arguments
          2. Environment variables (LLM_PROVIDER, ANTHROPIC_MODEL, …)
          3. Built-in defaults
        """
        env = os.environ if env is None else env

        provider_name = env.get("LLM_PROVIDER", Provider.ANTHROPIC.value).lower().strip()
        try:
            provider = Provider(provider_name or Provider.ANTHROPIC.value)
        except ValueError:
            logger.warning(
                "Invalid LLM_PROVIDER '%s', defaulting to %s",
                provider_name, Provider.ANTHROPIC.value,
            )
            provider = Provider.ANTHROPIC

        structured = env.get("OPENAI_STRUCTURED_OUTPUT", STRUCTURED_OUTPUT_TOOL).lower().strip()
        if structured not in (STRUCTURED_OUTPUT_TOOL, STRUCTURED_OUTPUT_SCHEMA):
            logger.warning(
                "Invalid OPENAI_STRUCTURED_OUTPUT '%s', defaulting to %s",
                structured, STRUCTURED_OUTPUT_TOOL,
            )
            structured = STRUCTURED_OUTPUT_TOOL

        values: dict[str, Any] = {
            "provider": provider,
            "thinking_enabled": parse_bool(env.get("THINKING_ENABLED"), False, "THINKING_ENABLED"),
            "anthropic_api_key": env.get("ANTHROPIC_API_KEY", ""),
            "anthropic_model": env.get("ANTHROPIC_MODEL") or DEFAULT_ANTHROPIC_MODEL,
            "anthropic_extended_context": parse_bool(
                env.get("ANTHROPIC_EXTENDED_CONTEXT"), True, "ANTHROPIC_EXTENDED_CONTEXT"
            ),
            "anthropic_base_url": env.get("ANTHROPIC_BASE_URL") or DEFAULT_ANTHROPIC_BASE_URL,
            "openai_api_key": env.get("OPENAI_API_KEY", ""),
            "openai_model": env.get("OPENAI_MODEL") or DEFAULT_OPENAI_MODEL,
            "openai_max_prompt_chars": parse_int(
                env.get("OPENAI_MAX_PROMPT_CHARS"), DEFAULT_OPENAI_MAX_PROMPT_CHARS
            ),
            "openai_structured_output": structured,
            "openai_base_url": env.get("OPENAI_BASE_URL") or DEFAULT_OPENAI_BASE_URL,
            "prompt_cache_enabled": parse_bool(
                env.get("ENABLE_PROMPT_CACHE"), True, "ENABLE_PROMPT_CACHE"
            ),
            "prompt_cache_debug": parse_bool(
                env.get("PROMPT_CACHE_DEBUG"), False, "PROMPT_CACHE_DEBUG"
            ),
            "raw_reply_debug": parse_bool(
                env.get("DISCUSSION_LLM_DEBUG"), False, "DISCUSSION_LLM_DEBUG"
            ),
            "transport_max_attempts": max(
                1, parse_int(env.get("LLM_TRANSPORT_ATTEMPTS"), DEFAULT_TRANSPORT_ATTEMPTS)
            ),
        }
        values.update(overrides)
        return cls(**values)


def parse_bool(raw: str | None, fallback: bool, name: str = "") -> bool:
    """Accept only ``true``/``false``; anything else logs and falls back."""
    if raw is None:
        return fallback
    value = raw.strip().lower()
    if value == "true":
        return True
    if value == "false":
        return False
    logger.warning("Invalid boolean for %s: '%s' (expected true/false)", name or "env var", raw)
    return fallback


def parse_int(raw: str | None, fallback: int) -> int:
    if raw is None:
        return fallback
    try:
        value = int(raw)
    except ValueError:
        return fallback
    return value if value >= 0 else fallback


_cached_config: RuntimeConfig | None = None


def get_runtime_config() -> RuntimeConfig:
    global _cached_config
    if _cached_config is None:
        _cached_config = RuntimeConfig.from_env()
    return _cached_config


def reset_runtime_config_cache() -> None:
    """Drop the cached config so the next call re-reads the environment."""
    global _cached_config
    _cached_config = None
