"""
reviewlm.acquisition.extraction — Ordered strategies that pull a canonical
payload out of a ``RawProviderResponse``.

The chain asks each strategy's ``can_handle()`` in order and commits to the
first one that says yes.  Whatever that strategy returns is final: a parse
failure raises ``InvalidJSON`` and a ``None`` is a terminal miss.  Nothing
falls through to a lower-priority strategy, so a genuine model error is never
disguised as an extraction-chain quirk.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from reviewlm.core.errors import (
    AcquisitionError,
    InvalidJSON,
    ToolNotInvoked,
    UnexpectedResponseShape,
)
from reviewlm.core.models import RawProviderResponse, ResponseShape
from reviewlm.core.schema import REVIEW_TOOL_NAME, canonical_json, validate_review_payload

logger = logging.getLogger("reviewlm.acquisition.extraction")

_FENCED_JSON = re.compile(r"```json[ \t]*\r?\n(.+?)\r?\n[ \t]*```", re.DOTALL)
_TEXT_SHAPES = (ResponseShape.OUTPUT_TEXT, ResponseShape.CONTENT_BLOCKS)


@dataclass(frozen=True)
class ExtractionResult:
    content: str
    extractor_name: str


class ResponseExtractor(Protocol):
    name: str

    def can_handle(self, raw: RawProviderResponse) -> bool: ...

    def extract(self, raw: RawProviderResponse) -> str | None: ...


def _parse_review_json(text: str, source: str, provider: str) -> str:
    """Parse, validate against the review schema and re-serialise."""
    try:
        parsed: Any = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidJSON(
            f"{source} returned invalid JSON: {exc}",
            provider=provider,
            detail={"extractor": source},
        ) from exc
    try:
        validate_review_payload(parsed)
    except ValueError as exc:
        raise InvalidJSON(
            f"{source} JSON does not match the review schema: {exc}",
            provider=provider,
            detail={"extractor": source},
        ) from exc
    return canonical_json(parsed)


# ---------------------------------------------------------------------------
# Strategies, most specific first
# ---------------------------------------------------------------------------

class ToolInvocationExtractor:
    """Arguments of the expected tool/function call."""

    name = "ToolInvocation"

    def __init__(self, expected_tool_name: str = REVIEW_TOOL_NAME) -> None:
        self.expected_tool_name = expected_tool_name

    def can_handle(self, raw: RawProviderResponse) -> bool:
        return bool(raw.tool_calls)

    def extract(self, raw: RawProviderResponse) -> str | None:
        call = next((c for c in raw.tool_calls if c.name == self.expected_tool_name), None)
        if call is None:
            names = ", ".join(c.name or "<unnamed>" for c in raw.tool_calls)
            raise ToolNotInvoked(
                f"Unexpected tool name: {names} (expected {self.expected_tool_name})",
                provider=raw.provider.value,
            )
        if not call.arguments.strip():
            raise InvalidJSON(
                f"Tool call {self.expected_tool_name} is missing its arguments",
                provider=raw.provider.value,
                detail={"extractor": self.name},
            )
        return _parse_review_json(call.arguments, f"Tool call {call.name}", raw.provider.value)


class StructuredTextExtractor:
    """Schema-constrained output text (OpenAI Structured Outputs)."""

    name = "StructuredText"

    def can_handle(self, raw: RawProviderResponse) -> bool:
        return raw.shape is ResponseShape.OUTPUT_TEXT

    def extract(self, raw: RawProviderResponse) -> str | None:
        text = (raw.output_text or "").strip()
        if not text:
            return None
        return _parse_review_json(text, "Structured output", raw.provider.value)


class FencedJsonExtractor:
    """A ```json fenced block embedded in free text."""

    name = "FencedJson"

    def can_handle(self, raw: RawProviderResponse) -> bool:
        return raw.shape in _TEXT_SHAPES and _FENCED_JSON.search(raw.text) is not None

    def extract(self, raw: RawProviderResponse) -> str | None:
        match = _FENCED_JSON.search(raw.text)
        if match is None:
            return None
        return _parse_review_json(match.group(1).strip(), "Fenced JSON block", raw.provider.value)


class BareJsonExtractor:
    """Whole-message text that is itself a JSON document."""

    name = "BareJson"

    def can_handle(self, raw: RawProviderResponse) -> bool:
        if raw.shape not in _TEXT_SHAPES:
            return False
        text = raw.text.strip()
        return (text.startswith("{") and text.endswith("}")) or (
            text.startswith("[") and text.endswith("]")
        )

    def extract(self, raw: RawProviderResponse) -> str | None:
        return _parse_review_json(raw.text.strip(), "JSON text", raw.provider.value)


class PlainTextExtractor:
    """Discussion replies: the visible text, trimmed, no schema."""

    name = "PlainText"

    def can_handle(self, raw: RawProviderResponse) -> bool:
        return raw.shape in _TEXT_SHAPES

    def extract(self, raw: RawProviderResponse) -> str | None:
        return raw.text.strip()


# ---------------------------------------------------------------------------
# The chain
# ---------------------------------------------------------------------------

class ExtractionChain:
    """
    Runs the strategies once per response.

    *unmatched_error* is raised when the response carries visible content but
    no strategy recognises it.  A response with no visible content at all
    yields ``None`` so the content retry policy can decide what to do.
    """

    def __init__(
        self,
        extractors: Sequence[ResponseExtractor],
        unmatched_error: type[AcquisitionError] = UnexpectedResponseShape,
        context_name: str = "response",
    ) -> None:
        self.extractors = tuple(extractors)
        self.unmatched_error = unmatched_error
        self.context_name = context_name

    def extract(self, raw: RawProviderResponse) -> ExtractionResult | None:
        if raw.shape is ResponseShape.STATUS_ONLY:
            logger.info(
                "%s: %s returned no visible output (status=%s, reason=%s)",
                self.context_name, raw.provider.value, raw.status.value, raw.incomplete_reason,
            )
            return None

        for extractor in self.extractors:
            if not extractor.can_handle(raw):
                continue
            content = extractor.extract(raw)
            if content is None:
                logger.warning(
                    "%s: %s matched but extracted nothing", self.context_name, extractor.name
                )
                return None
            logger.debug("%s: using %s result", self.context_name, extractor.name)
            return ExtractionResult(content=content, extractor_name=extractor.name)

        raise self.unmatched_error(
            f"Unexpected {raw.shape.value} response from {raw.provider.value} "
            f"for {self.context_name}: no extraction strategy matched",
            provider=raw.provider.value,
        )


def line_comments_chain(structured_text: bool = False) -> ExtractionChain:
    """Chain for strict review payloads.  Free text without JSON is fatal."""
    extractors: list[ResponseExtractor] = [ToolInvocationExtractor(REVIEW_TOOL_NAME)]
    if structured_text:
        extractors.append(StructuredTextExtractor())
    extractors.extend([FencedJsonExtractor(), BareJsonExtractor()])
    return ExtractionChain(extractors, unmatched_error=ToolNotInvoked, context_name="Inline comment")


def discussion_chain() -> ExtractionChain:
    return ExtractionChain(
        [PlainTextExtractor()],
        unmatched_error=UnexpectedResponseShape,
        context_name="Discussion reply",
    )
