"""
Tests for the model override registry and generic parameter mapping.
"""

import pytest

from reviewlm.core.models import Provider, ReviewMode
from reviewlm.core.overrides import (
    ModelOverride,
    OverrideRegistry,
    REASONING_EFFORT_FAST,
    REASONING_EFFORT_LOW,
    REASONING_EFFORT_THINKING,
    lookup,
    resolve_parameters,
)


def test_gpt5_family_forces_temperature_one():
    override = lookup(Provider.OPENAI, "gpt-5-mini-2025-08-07")
    assert override is not None
    assert override.temperature == 1.0
    assert override.reasoning_model is True

    params = resolve_parameters(Provider.OPENAI, "gpt-5", ReviewMode.LINE_COMMENTS, False)
    assert params.temperature == 1.0


def test_exact_entry_beats_family_prefix():
    override = lookup(Provider.OPENAI, "gpt-5-chat-latest")
    assert override is not None
    assert override.exact is True
    assert override.reasoning_model is False


def test_longest_prefix_wins():
    registry = OverrideRegistry()
    registry.register(Provider.OPENAI, ModelOverride("gpt", temperature=0.5))
    registry.register(Provider.OPENAI, ModelOverride("gpt-4o", temperature=0.2))

    assert registry.lookup(Provider.OPENAI, "gpt-4o-mini").temperature == 0.2
    assert registry.lookup(Provider.OPENAI, "gpt-3.5").temperature == 0.5


def test_unknown_model_has_no_override():
    assert lookup(Provider.ANTHROPIC, "claude-sonnet-4-5-20250929") is None
    assert lookup(Provider.OPENAI, "some-future-model") is None


def test_overrides_are_per_provider():
    assert lookup(Provider.ANTHROPIC, "gpt-5") is None


def test_duplicate_registration_is_rejected():
    registry = OverrideRegistry()
    registry.register(Provider.OPENAI, ModelOverride("gpt-5", temperature=1.0))
    with pytest.raises(ValueError, match="already registered"):
        registry.register(Provider.OPENAI, ModelOverride("gpt-5", temperature=0.7))


def test_same_pattern_exact_and_prefix_can_coexist():
    registry = OverrideRegistry()
    registry.register(Provider.OPENAI, ModelOverride("gpt-5", temperature=1.0))
    registry.register(Provider.OPENAI, ModelOverride("gpt-5", temperature=0.3, exact=True))

    assert registry.lookup(Provider.OPENAI, "gpt-5").temperature == 0.3
    assert registry.lookup(Provider.OPENAI, "gpt-5-mini").temperature == 1.0


@pytest.mark.parametrize(
    "mode, thinking, budget, temperature",
    [
        (ReviewMode.LINE_COMMENTS, False, 4096, 0.0),
        (ReviewMode.LINE_COMMENTS, True, 16384, 1.0),
        (ReviewMode.DISCUSSION, False, 1024, 0.0),
        (ReviewMode.DISCUSSION, True, 2048, 1.0),
    ],
)
def test_generic_mapping_for_anthropic(mode, thinking, budget, temperature):
    params = resolve_parameters(Provider.ANTHROPIC, "claude-sonnet-4-5", mode, thinking)
    assert params.token_budget == budget
    assert params.temperature == temperature


def test_anthropic_thinking_budget_leaves_room_for_visible_text():
    params = resolve_parameters(
        Provider.ANTHROPIC, "claude-sonnet-4-5", ReviewMode.LINE_COMMENTS, True
    )
    assert params.thinking_budget == 16384 - 4096
    assert params.thinking_budget < params.token_budget


def test_anthropic_thinking_dropped_below_minimum():
    # 2048 - 1024 leaves exactly the minimum; a capped model leaves nothing
    params = resolve_parameters(
        Provider.ANTHROPIC, "claude-sonnet-4-5", ReviewMode.DISCUSSION, True
    )
    assert params.thinking_budget == 1024

    capped = resolve_parameters(
        Provider.ANTHROPIC, "claude-3-haiku-20240307", ReviewMode.LINE_COMMENTS, True
    )
    assert capped.token_budget == 4096
    assert capped.thinking_budget is None


def test_no_thinking_budget_when_thinking_off():
    params = resolve_parameters(
        Provider.ANTHROPIC, "claude-sonnet-4-5", ReviewMode.LINE_COMMENTS, False
    )
    assert params.thinking_budget is None


def test_openai_reasoning_effort():
    fast = resolve_parameters(Provider.OPENAI, "gpt-5", ReviewMode.DISCUSSION, False)
    slow = resolve_parameters(Provider.OPENAI, "gpt-5", ReviewMode.DISCUSSION, True)
    chat = resolve_parameters(Provider.OPENAI, "gpt-5-chat-latest", ReviewMode.DISCUSSION, True)

    assert fast.reasoning_effort == REASONING_EFFORT_FAST
    assert slow.reasoning_effort == REASONING_EFFORT_THINKING
    assert chat.reasoning_effort is None
    assert chat.temperature == 1.0


def test_o_series_fast_effort_is_low():
    for model in ("o3", "o3-mini", "o4-mini"):
        params = resolve_parameters(Provider.OPENAI, model, ReviewMode.LINE_COMMENTS, False)
        assert params.reasoning_effort == REASONING_EFFORT_LOW
        assert params.fast_effort == REASONING_EFFORT_LOW

    gpt5 = resolve_parameters(Provider.OPENAI, "gpt-5-mini", ReviewMode.LINE_COMMENTS, True)
    assert gpt5.reasoning_effort == REASONING_EFFORT_THINKING
    assert gpt5.fast_effort == REASONING_EFFORT_FAST


def test_non_reasoning_models_have_no_fast_effort():
    params = resolve_parameters(Provider.OPENAI, "gpt-4.1", ReviewMode.DISCUSSION, False)
    assert params.fast_effort is None
