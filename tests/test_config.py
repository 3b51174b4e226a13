"""
Tests for runtime configuration parsing.
"""

import logging

from reviewlm.core.config import (
    RuntimeConfig,
    get_runtime_config,
    parse_bool,
    reset_runtime_config_cache,
)
from reviewlm.core.models import Provider


def test_defaults_from_empty_environment():
    config = RuntimeConfig.from_env({})
    assert config.provider is Provider.ANTHROPIC
    assert config.anthropic_model == "claude-sonnet-4-5-20250929"
    assert config.openai_model == "gpt-5"
    assert config.anthropic_extended_context is True
    assert config.thinking_enabled is False
    assert config.openai_structured_output == "tool"


def test_values_from_environment():
    config = RuntimeConfig.from_env({
        "LLM_PROVIDER": "OpenAI",
        "OPENAI_API_KEY": "sk-x",
        "OPENAI_MODEL": "o3",
        "THINKING_ENABLED": "true",
        "OPENAI_MAX_PROMPT_CHARS": "5000",
        "OPENAI_STRUCTURED_OUTPUT": "schema",
        "ANTHROPIC_EXTENDED_CONTEXT": "false",
        "LLM_TRANSPORT_ATTEMPTS": "5",
    })
    assert config.provider is Provider.OPENAI
    assert config.api_key_for(Provider.OPENAI) == "sk-x"
    assert config.model_for(Provider.OPENAI) == "o3"
    assert config.thinking_enabled is True
    assert config.openai_max_prompt_chars == 5000
    assert config.openai_structured_output == "schema"
    assert config.anthropic_extended_context is False
    assert config.transport_max_attempts == 5


def test_invalid_provider_falls_back_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="reviewlm.core.config"):
        config = RuntimeConfig.from_env({"LLM_PROVIDER": "gemini"})
    assert config.provider is Provider.ANTHROPIC
    assert "Invalid LLM_PROVIDER" in caplog.text


def test_invalid_boolean_logs_and_uses_fallback(caplog):
    with caplog.at_level(logging.WARNING, logger="reviewlm.core.config"):
        assert parse_bool("yes", True, "ENABLE_PROMPT_CACHE") is True
        assert parse_bool("1", False, "THINKING_ENABLED") is False
    assert "ENABLE_PROMPT_CACHE" in caplog.text


def test_parse_bool_is_case_insensitive():
    assert parse_bool(" TRUE ", False) is True
    assert parse_bool("False", True) is False
    assert parse_bool(None, True) is True


def test_explicit_overrides_win():
    config = RuntimeConfig.from_env({"LLM_PROVIDER": "openai"}, provider=Provider.ANTHROPIC)
    assert config.provider is Provider.ANTHROPIC


def test_cache_is_resettable(monkeypatch):
    monkeypatch.setenv("OPENAI_MODEL", "o3")
    reset_runtime_config_cache()
    first = get_runtime_config()
    assert first.openai_model == "o3"

    monkeypatch.setenv("OPENAI_MODEL", "o4-mini")
    assert get_runtime_config() is first

    reset_runtime_config_cache()
    assert get_runtime_config().openai_model == "o4-mini"
