"""
reviewlm.core.models — Pydantic schemas shared by every layer of the engine.

A ``ReviewRequest`` enters the engine, each attempt produces one frozen
``ProviderPayload``, each provider reply is normalised into a
``RawProviderResponse`` (a tagged union discriminated by ``shape``), and the
only thing that leaves is a plain string.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Provider(StrEnum):
    """Generative-model backends the engine can talk to."""
    ANTHROPIC = "anthropic"     # Messages API
    OPENAI = "openai"           # Responses API


class ReviewMode(StrEnum):
    """What the caller wants back."""
    LINE_COMMENTS = "line_comments"     # strict JSON review payload
    DISCUSSION = "discussion"           # free-form markdown reply


class ResponseShape(StrEnum):
    """Tag of the ``RawProviderResponse`` union, one per response family."""
    TOOL_INVOCATION = "tool_invocation"
    OUTPUT_TEXT = "output_text"
    CONTENT_BLOCKS = "content_blocks"
    STATUS_ONLY = "status_only"


class ResponseStatus(StrEnum):
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"


class RetryDecision(StrEnum):
    NONE = "none"
    RETRY_REDUCED_BUDGET = "retry_reduced_budget"


# Normalised reason code for "the output budget ran out"
BUDGET_EXHAUSTED = "max_output_tokens"


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

class PromptSegments(BaseModel):
    """
    A discussion prompt split into a stable, cacheable prefix and a
    per-request dynamic suffix.
    """
    model_config = ConfigDict(frozen=True)

    stable_parts: tuple[str, ...] = ()
    dynamic_parts: tuple[str, ...] = ()

    @property
    def text(self) -> str:
        return "\n".join((*self.stable_parts, *self.dynamic_parts))


class ReviewRequest(BaseModel):
    """Immutable input to one acquisition."""
    model_config = ConfigDict(frozen=True)

    prompt: str = ""
    thinking_enabled: bool = False
    provider: Provider = Provider.ANTHROPIC
    model: str = ""
    mode: ReviewMode = ReviewMode.LINE_COMMENTS
    segments: PromptSegments | None = None

    @property
    def prompt_text(self) -> str:
        """The full prompt, whether given as a string or as segments."""
        if self.segments is not None:
            return self.segments.text
        return self.prompt


class RetryContext(BaseModel):
    """What the payload builder needs to rebuild the second attempt."""
    model_config = ConfigDict(frozen=True)

    token_budget: int
    corrective_instruction: str | None = None


# ---------------------------------------------------------------------------
# Request payload
# ---------------------------------------------------------------------------

class ProviderPayload(BaseModel):
    """
    A provider-specific request, built fresh for every attempt and never
    mutated afterwards.
    """
    model_config = ConfigDict(frozen=True)

    provider: Provider
    mode: ReviewMode
    endpoint: str
    body: dict[str, Any]
    headers: dict[str, str] = Field(default_factory=dict)
    token_budget: int
    temperature: float | None = None
    thinking_budget: int | None = None
    reasoning_effort: str | None = None
    attempt: int = 0


# ---------------------------------------------------------------------------
# Normalised provider response
# ---------------------------------------------------------------------------

class ToolInvocation(BaseModel):
    """A single tool/function call; ``arguments`` is a JSON string."""
    name: str
    arguments: str = ""


class UsageInfo(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0
    reasoning_tokens: int = 0
    cache_read_tokens: int = 0
    cache_creation_tokens: int = 0


class RawProviderResponse(BaseModel):
    """
    One provider reply, classified by ``shape``.

    ``has_output`` is ``False`` when the backend answered without producing
    any choice/output item at all (as opposed to producing an empty one).
    """
    provider: Provider
    shape: ResponseShape
    tool_calls: list[ToolInvocation] = Field(default_factory=list)
    output_text: str | None = None
    text_blocks: list[str] = Field(default_factory=list)
    status: ResponseStatus = ResponseStatus.COMPLETE
    incomplete_reason: str | None = None
    has_output: bool = True
    usage: UsageInfo = Field(default_factory=UsageInfo)
    raw: dict[str, Any] = Field(default_factory=dict)

    @property
    def text(self) -> str:
        """All visible text the reply carries, in order."""
        if self.output_text is not None:
            return self.output_text
        return "\n".join(self.text_blocks)

    @property
    def has_visible_text(self) -> bool:
        return bool(self.text.strip()) or bool(self.tool_calls)

    @property
    def budget_exhausted(self) -> bool:
        return (
            self.status is ResponseStatus.INCOMPLETE
            and self.incomplete_reason == BUDGET_EXHAUSTED
        )
