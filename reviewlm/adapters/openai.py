"""
reviewlm.adapters.openai — OpenAI Responses API adapter.

Line-comment reviews are constrained one of two ways:

- ``tool`` (default): the review schema is declared as a strict function tool
  and ``tool_choice`` forces the model to call it.
- ``schema``: the review schema is sent as ``text.format`` (Structured
  Outputs) and the answer arrives as schema-constrained output text.

GPT-5 and o-series models reason before answering.  Hidden reasoning tokens
count against ``max_output_tokens``, and when they use up the whole budget
the reply comes back ``status: "incomplete"`` with no visible text.  That is
the main trigger for the content retry.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from reviewlm.acquisition.transport import DEFAULT_MAX_ATTEMPTS, TransportExecutor
from reviewlm.adapters.base import BaseAdapter
from reviewlm.core.config import (
    DEFAULT_OPENAI_BASE_URL,
    DEFAULT_OPENAI_MAX_PROMPT_CHARS,
    DEFAULT_OPENAI_MODEL,
    STRUCTURED_OUTPUT_SCHEMA,
    STRUCTURED_OUTPUT_TOOL,
)
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
from reviewlm.core.overrides import OverrideRegistry
from reviewlm.core.schema import (
    REVIEW_PARAMETERS_SCHEMA,
    REVIEW_SYSTEM_INSTRUCTION,
    REVIEW_TOOL_DESCRIPTION,
    REVIEW_TOOL_NAME,
)

logger = logging.getLogger("reviewlm.adapters.openai")

RESPONSES_ENDPOINT = "/v1/responses"
TRUNCATION_MARKER = "\n... (truncated)"


def build_tool_spec() -> dict[str, Any]:
    return {
        "type": "function",
        "name": REVIEW_TOOL_NAME,
        "description": REVIEW_TOOL_DESCRIPTION,
        "parameters": REVIEW_PARAMETERS_SCHEMA,
        "strict": True,
    }


def build_text_format() -> dict[str, Any]:
    return {
        "format": {
            "type": "json_schema",
            "name": REVIEW_TOOL_NAME,
            "schema": REVIEW_PARAMETERS_SCHEMA,
            "strict": True,
        }
    }


class OpenAIAdapter(BaseAdapter):
    """Builds Responses API requests and classifies Responses API replies."""

    provider = Provider.OPENAI

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_OPENAI_MODEL,
        *,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        structured_output: str = STRUCTURED_OUTPUT_TOOL,
        max_prompt_chars: int = DEFAULT_OPENAI_MAX_PROMPT_CHARS,
        registry: OverrideRegistry | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        http_transport: httpx.AsyncBaseTransport | None = None,
        executor: TransportExecutor | None = None,
    ) -> None:
        if structured_output not in (STRUCTURED_OUTPUT_TOOL, STRUCTURED_OUTPUT_SCHEMA):
            raise ValueError(f"Unknown structured output mode: '{structured_output}'")
        self.structured_output = structured_output
        self.max_prompt_chars = max_prompt_chars
        super().__init__(
            api_key,
            model,
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
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
        reasoning_effort = params.reasoning_effort
        if retry is not None:
            token_budget = retry.token_budget
            if reasoning_effort is not None:
                reasoning_effort = params.fast_effort

        body: dict[str, Any] = {
            "model": model,
            "input": self._build_input(request, retry),
            "max_output_tokens": token_budget,
            "temperature": params.temperature,
        }

        if request.mode is ReviewMode.LINE_COMMENTS:
            body["instructions"] = REVIEW_SYSTEM_INSTRUCTION
            if self.structured_output == STRUCTURED_OUTPUT_SCHEMA:
                body["text"] = build_text_format()
            else:
                body["tools"] = [build_tool_spec()]
                body["tool_choice"] = {"type": "function", "name": REVIEW_TOOL_NAME}

        if reasoning_effort is not None:
            body["reasoning"] = {"effort": reasoning_effort}

        logger.debug(
            "OpenAI %s request: model=%s max_output_tokens=%d effort=%s",
            request.mode.value, model, token_budget, reasoning_effort,
        )

        return ProviderPayload(
            provider=self.provider,
            mode=request.mode,
            endpoint=RESPONSES_ENDPOINT,
            body=body,
            token_budget=token_budget,
            temperature=params.temperature,
            reasoning_effort=reasoning_effort,
            attempt=0 if retry is None else 1,
        )

    def _build_input(
        self,
        request: ReviewRequest,
        retry: RetryContext | None,
    ) -> str | list[dict[str, Any]]:
        text = request.prompt_text
        if request.mode is ReviewMode.DISCUSSION and len(text) > self.max_prompt_chars:
            logger.warning(
                "Discussion prompt truncated from %d to %d characters",
                len(text), self.max_prompt_chars,
            )
            text = text[: self.max_prompt_chars] + TRUNCATION_MARKER

        corrective = retry.corrective_instruction if retry is not None else None
        if not corrective:
            return text
        return [
            {"role": "user", "content": text},
            {"role": "user", "content": corrective},
        ]

    # ------------------------------------------------------------------
    # Response classification
    # ------------------------------------------------------------------

    def parse_response(self, data: dict[str, Any]) -> RawProviderResponse:
        if data.get("error"):
            raise UnexpectedResponseShape(
                f"OpenAI response carries an error: {data['error']}",
                provider=self.provider.value,
            )
        output = data.get("output")
        if output is None and "output_text" not in data:
            raise UnexpectedResponseShape(
                f"OpenAI response has no output (keys: {sorted(data)})",
                provider=self.provider.value,
            )
        output = output if isinstance(output, list) else []

        tool_calls: list[ToolInvocation] = []
        texts: list[str] = []
        saw_message = False
        for item in output:
            if not isinstance(item, dict):
                continue
            kind = item.get("type")
            if kind == "function_call":
                tool_calls.append(ToolInvocation(
                    name=item.get("name", ""),
                    arguments=item.get("arguments") or "",
                ))
            elif kind == "message":
                saw_message = True
                for part in item.get("content") or []:
                    if not isinstance(part, dict):
                        continue
                    if part.get("type") == "output_text":
                        texts.append(part.get("text") or "")
                    elif part.get("type") == "refusal":
                        logger.warning("OpenAI refused: %s", part.get("refusal", ""))
            # "reasoning" items are hidden reasoning

        if saw_message:
            output_text: str | None = "".join(texts)
        else:
            output_text = data.get("output_text")

        incomplete = data.get("status") == "incomplete"
        reason = (data.get("incomplete_details") or {}).get("reason") if incomplete else None

        if tool_calls:
            shape = ResponseShape.TOOL_INVOCATION
        elif output_text and output_text.strip():
            shape = ResponseShape.OUTPUT_TEXT
        else:
            shape = ResponseShape.STATUS_ONLY

        usage = data.get("usage") or {}
        return RawProviderResponse(
            provider=self.provider,
            shape=shape,
            tool_calls=tool_calls,
            output_text=output_text,
            status=ResponseStatus.INCOMPLETE if incomplete else ResponseStatus.COMPLETE,
            incomplete_reason=BUDGET_EXHAUSTED if reason == "max_output_tokens" else reason,
            has_output=bool(output) or bool(output_text),
            usage=UsageInfo(
                input_tokens=usage.get("input_tokens") or 0,
                output_tokens=usage.get("output_tokens") or 0,
                reasoning_tokens=(usage.get("output_tokens_details") or {}).get("reasoning_tokens") or 0,
                cache_read_tokens=(usage.get("input_tokens_details") or {}).get("cached_tokens") or 0,
            ),
            raw=data,
        )
