"""
reviewlm.adapters.anthropic — Anthropic Messages API adapter.

Line-comment reviews declare the ``provide_code_review`` tool and, when
extended thinking is off, force the model to call it.  Discussion replies are
plain text.  Two provider features are wired in:

- Extended context: the ``context-1m-2025-08-07`` beta header, on by default.
- Prompt caching: when a discussion prompt arrives as segments, the last
  stable block carries ``cache_control: {"type": "ephemeral"}`` so the stable
  prefix is reused across replies in the same thread.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from reviewlm.acquisition.transport import DEFAULT_MAX_ATTEMPTS, TransportExecutor
from reviewlm.adapters.base import BaseAdapter
from reviewlm.core.config import DEFAULT_ANTHROPIC_BASE_URL, DEFAULT_ANTHROPIC_MODEL
from reviewlm.core.errors import UnexpectedResponseShape
from reviewlm.core.models import (
    BUDGET_EXHAUSTED,
    Provider,
    ProviderPayload,
    RawProviderResponse,
    ResponseShape,
    ResponseStatus,
    ReviewMode,
    ReviewRequest,
    RetryContext,
    ToolInvocation,
    UsageInfo,
)
from reviewlm.core.overrides import ANTHROPIC_MIN_THINKING_BUDGET, OverrideRegistry
from reviewlm.core.schema import (
    REVIEW_PARAMETERS_SCHEMA,
    REVIEW_TOOL_DESCRIPTION,
    REVIEW_TOOL_NAME,
)

logger = logging.getLogger("reviewlm.adapters.anthropic")

ANTHROPIC_VERSION = "2023-06-01"
EXTENDED_CONTEXT_BETA = "context-1m-2025-08-07"
MESSAGES_ENDPOINT = "/v1/messages"


def build_tool_spec() -> dict[str, Any]:
    return {
        "name": REVIEW_TOOL_NAME,
        "description": REVIEW_TOOL_DESCRIPTION,
        "input_schema": REVIEW_PARAMETERS_SCHEMA,
    }


class AnthropicAdapter(BaseAdapter):
    """Builds Messages API requests and classifies Messages API replies."""

    provider = Provider.ANTHROPIC

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        *,
        base_url: str = DEFAULT_ANTHROPIC_BASE_URL,
        extended_context: bool = True,
        prompt_cache: bool = True,
        registry: OverrideRegistry | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        http_transport: httpx.AsyncBaseTransport | None = None,
        executor: TransportExecutor | None = None,
    ) -> None:
        self.extended_context = extended_context
        self.prompt_cache = prompt_cache
        super().__init__(
            api_key,
            model,
            base_url=base_url,
            headers={
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            },
            registry=registry,
            max_attempts=max_attempts,
            http_transport=http_transport,
            executor=executor,
        )

    # ------------------------------------------------------------------
    # Payload construction
    # ------------------------------------------------------------------

    def build_payload(
        self,
        request: ReviewRequest,
        retry: RetryContext | None = None,
    ) -> ProviderPayload:
        self._require_credential()
        self._require_matching_provider(request)
        model = self._model_for(request)
        params = self.registry.resolve_parameters(
            self.provider, model, request.mode, request.thinking_enabled
        )

        token_budget = params.token_budget
        thinking_budget = params.thinking_budget
        temperature = params.temperature

        if retry is not None:
            token_budget = retry.token_budget
            if thinking_budget is not None:
                thinking_budget = self._shrink_thinking(token_budget, params.base_budget)
                if thinking_budget is None:
                    logger.info(
                        "Retry budget %d leaves no room for thinking; disabling it",
                        token_budget,
                    )
        if thinking_budget is None and request.thinking_enabled:
            # Thinking was dropped, so the non-thinking temperature applies.
            temperature = self.registry.resolve_parameters(
                self.provider, model, request.mode, False
            ).temperature

        body: dict[str, Any] = {
            "model": model,
            "max_tokens": token_budget,
            "temperature": temperature,
            "messages": [
                {
                    "role": "user",
                    "content": self._build_content(request, retry),
                }
            ],
        }

        if thinking_budget is not None:
            body["thinking"] = {"type": "enabled", "budget_tokens": thinking_budget}

        if request.mode is ReviewMode.LINE_COMMENTS:
            body["tools"] = [build_tool_spec()]
            # Forced tool use is not allowed together with extended thinking
            if thinking_budget is None:
                body["tool_choice"] = {"type": "tool", "name": REVIEW_TOOL_NAME}

        headers: dict[str, str] = {}
        if self.extended_context:
            headers["anthropic-beta"] = EXTENDED_CONTEXT_BETA

        logger.debug(
            "Anthropic %s request: model=%s max_tokens=%d thinking=%s extended_context=%s",
            request.mode.value, model, token_budget, thinking_budget, self.extended_context,
        )

        return ProviderPayload(
            provider=self.provider,
            mode=request.mode,
            endpoint=MESSAGES_ENDPOINT,
            body=body,
            headers=headers,
            token_budget=token_budget,
            temperature=temperature,
            thinking_budget=thinking_budget,
            attempt=0 if retry is None else 1,
        )

    @staticmethod
    def _shrink_thinking(token_budget: int, base_budget: int) -> int | None:
        visible_room = min(base_budget, token_budget)
        candidate = token_budget - visible_room
        if candidate < ANTHROPIC_MIN_THINKING_BUDGET:
            return None
        return candidate

    def _build_content(
        self,
        request: ReviewRequest,
        retry: RetryContext | None,
    ) -> str | list[dict[str, Any]]:
        corrective = retry.corrective_instruction if retry is not None else None

        if request.segments is None:
            if not corrective:
                return request.prompt
            return [
                {"type": "text", "text": request.prompt},
                {"type": "text", "text": corrective},
            ]

        blocks: list[dict[str, Any]] = [
            {"type": "text", "text": part} for part in request.segments.stable_parts
        ]
        if blocks and self.prompt_cache:
            blocks[-1]["cache_control"] = {"type": "ephemeral"}
        blocks.extend(
            {"type": "text", "text": part} for part in request.segments.dynamic_parts
        )
        if corrective:
            blocks.append({"type": "text", "text": corrective})
        return blocks

    # ------------------------------------------------------------------
    # Response classification
    # ------------------------------------------------------------------

    def parse_response(self, data: dict[str, Any]) -> RawProviderResponse:
        content = data.get("content")
        if not isinstance(content, list):
            raise UnexpectedResponseShape(
                f"Anthropic response has no content list (keys: {sorted(data)})",
                provider=self.provider.value,
            )

        tool_calls: list[ToolInvocation] = []
        text_blocks: list[str] = []
        for block in content:
            if not isinstance(block, dict):
                continue
            kind = block.get("type")
            if kind == "tool_use":
                tool_input = block.get("input")
                tool_calls.append(ToolInvocation(
                    name=block.get("name", ""),
                    arguments=json.dumps(tool_input) if tool_input is not None else "",
                ))
            elif kind == "text":
                text_blocks.append(block.get("text") or "")
            # "thinking" / "redacted_thinking" blocks are hidden reasoning

        stop_reason = data.get("stop_reason")
        incomplete = stop_reason == "max_tokens"

        if tool_calls:
            shape = ResponseShape.TOOL_INVOCATION
        elif any(t.strip() for t in text_blocks):
            shape = ResponseShape.CONTENT_BLOCKS
        else:
            shape = ResponseShape.STATUS_ONLY

        usage = data.get("usage") or {}
        return RawProviderResponse(
            provider=self.provider,
            shape=shape,
            tool_calls=tool_calls,
            text_blocks=text_blocks,
            status=ResponseStatus.INCOMPLETE if incomplete else ResponseStatus.COMPLETE,
            incomplete_reason=BUDGET_EXHAUSTED if incomplete else None,
            has_output=bool(content),
            usage=UsageInfo(
                input_tokens=usage.get("input_tokens") or 0,
                output_tokens=usage.get("output_tokens") or 0,
                cache_read_tokens=usage.get("cache_read_input_tokens") or 0,
                cache_creation_tokens=usage.get("cache_creation_input_tokens") or 0,
            ),
            raw=data,
        )
