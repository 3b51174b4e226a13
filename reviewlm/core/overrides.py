"""
reviewlm.core.overrides — Per-model parameter overrides.

Some model families reject parameters the generic mapping would send (the
GPT-5 family only accepts ``temperature=1``, for example).  Those constraints
live in a static table so that the payload builders never special-case model
names themselves.

Resolution order for a (provider, model) pair:
    1. exact model id
    2. longest matching family prefix
    3. the generic mapping for the provider and mode
"""

from __future__ import annotations

from dataclasses import dataclass

from reviewlm.core.models import Provider, ReviewMode


@dataclass(frozen=True)
class ModelOverride:
    """Forced values for one model id (``exact``) or one model family."""
    model_pattern: str
    temperature: float | None = None
    token_budget: int | None = None
    reasoning_model: bool = False
    # Lowest effort the model accepts; o-series has no "minimal"
    fast_effort: str = "minimal"
    exact: bool = False

    def matches(self, model: str) -> bool:
        if self.exact:
            return model == self.model_pattern
        return model.startswith(self.model_pattern)


@dataclass(frozen=True)
class ModeDefaults:
    """Generic mapping used when no override pins a value."""
    base_budget: int
    thinking_multiplier: int
    temperature: float = 0.0
    thinking_temperature: float = 1.0


@dataclass(frozen=True)
class ResolvedParameters:
    temperature: float
    token_budget: int
    base_budget: int
    thinking_budget: int | None = None
    reasoning_effort: str | None = None
    fast_effort: str | None = None
    reasoning_model: bool = False


# Anthropic refuses a thinking budget below this
ANTHROPIC_MIN_THINKING_BUDGET = 1024

MODE_DEFAULTS: dict[ReviewMode, ModeDefaults] = {
    ReviewMode.DISCUSSION: ModeDefaults(base_budget=1024, thinking_multiplier=2),
    ReviewMode.LINE_COMMENTS: ModeDefaults(base_budget=4096, thinking_multiplier=4),
}

REASONING_EFFORT_THINKING = "medium"
REASONING_EFFORT_FAST = "minimal"
REASONING_EFFORT_LOW = "low"


class OverrideRegistry:
    """
    Static lookup table of model overrides.

    Registering the same pattern twice for one provider is an error: a later
    entry must never silently shadow an earlier one.
    """

    def __init__(self) -> None:
        self._entries: dict[Provider, dict[tuple[str, bool], ModelOverride]] = {}

    def register(self, provider: Provider, override: ModelOverride) -> None:
        table = self._entries.setdefault(provider, {})
        key = (override.model_pattern, override.exact)
        if key in table:
            raise ValueError(
                f"Override for {provider.value}:{override.model_pattern!r} "
                f"(exact={override.exact}) is already registered"
            )
        table[key] = override

    def lookup(self, provider: Provider, model: str) -> ModelOverride | None:
        table = self._entries.get(provider, {})
        exact = table.get((model, True))
        if exact is not None:
            return exact
        family = [o for o in table.values() if not o.exact and o.matches(model)]
        if not family:
            return None
        return max(family, key=lambda o: len(o.model_pattern))

    def resolve_parameters(
        self,
        provider: Provider,
        model: str,
        mode: ReviewMode,
        thinking_enabled: bool,
    ) -> ResolvedParameters:
        """Combine the generic mapping with any override for *model*."""
        defaults = MODE_DEFAULTS[mode]
        override = self.lookup(provider, model)

        if thinking_enabled:
            temperature = defaults.thinking_temperature
            token_budget = defaults.base_budget * defaults.thinking_multiplier
        else:
            temperature = defaults.temperature
            token_budget = defaults.base_budget

        reasoning_model = False
        fast_effort: str | None = None
        if override is not None:
            if override.temperature is not None:
                temperature = override.temperature
            if override.token_budget is not None:
                token_budget = override.token_budget
            reasoning_model = override.reasoning_model

        base_budget = min(defaults.base_budget, token_budget)
        thinking_budget: int | None = None
        reasoning_effort: str | None = None

        if provider is Provider.ANTHROPIC and thinking_enabled:
            # Visible text keeps the base room; thinking gets the rest.
            candidate = token_budget - base_budget
            if candidate >= ANTHROPIC_MIN_THINKING_BUDGET:
                thinking_budget = candidate
        elif provider is Provider.OPENAI and reasoning_model:
            fast_effort = override.fast_effort
            reasoning_effort = REASONING_EFFORT_THINKING if thinking_enabled else fast_effort

        return ResolvedParameters(
            temperature=temperature,
            token_budget=token_budget,
            base_budget=base_budget,
            thinking_budget=thinking_budget,
            reasoning_effort=reasoning_effort,
            fast_effort=fast_effort,
            reasoning_model=reasoning_model,
        )


def _build_default_registry() -> OverrideRegistry:
    registry = OverrideRegistry()
    # GPT-5 family and o-series reasoning models only accept temperature=1
    registry.register(Provider.OPENAI, ModelOverride("gpt-5", temperature=1.0, reasoning_model=True))
    registry.register(Provider.OPENAI, ModelOverride(
        "o3", temperature=1.0, reasoning_model=True, fast_effort=REASONING_EFFORT_LOW,
    ))
    registry.register(Provider.OPENAI, ModelOverride(
        "o4-mini", temperature=1.0, reasoning_model=True, fast_effort=REASONING_EFFORT_LOW,
    ))
    # gpt-5-chat is the non-reasoning chat variant
    registry.register(
        Provider.OPENAI,
        ModelOverride("gpt-5-chat-latest", temperature=1.0, exact=True),
    )
    # Claude 3 Haiku caps output at 4096 tokens
    registry.register(Provider.ANTHROPIC, ModelOverride("claude-3-haiku", token_budget=4096))
    return registry


DEFAULT_REGISTRY = _build_default_registry()


def lookup(provider: Provider, model: str) -> ModelOverride | None:
    """Module-level shortcut over the default registry."""
    return DEFAULT_REGISTRY.lookup(provider, model)


def resolve_parameters(
    provider: Provider,
    model: str,
    mode: ReviewMode,
    thinking_enabled: bool,
) -> ResolvedParameters:
    return DEFAULT_REGISTRY.resolve_parameters(provider, model, mode, thinking_enabled)
