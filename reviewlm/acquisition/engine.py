"""
reviewlm.acquisition.engine — Runs one acquisition end to end.

Payload builder → transport → extraction chain → content retry policy, for at
most two attempts.  Attempts are strictly sequential and every attempt gets a
freshly built payload.

Finalisation when no usable content came back:

- discussion mode returns ``""`` and lets the caller decide what to post;
- line-comment mode raises ``NoChoicesReturned`` when the backend produced
  no output item at all, and ``EmptyOutput`` otherwise.
"""

from __future__ import annotations

import logging

from reviewlm.acquisition.extraction import ExtractionChain, ExtractionResult
from reviewlm.acquisition.retry_policy import ContentRetryPolicy
from reviewlm.adapters.base import BaseAdapter
from reviewlm.core.errors import EmptyOutput, NoChoicesReturned
from reviewlm.core.fingerprint import compute_prompt_hash, compute_segments_prefix_hash
from reviewlm.core.models import (
    RawProviderResponse,
    RetryContext,
    RetryDecision,
    ReviewMode,
    ReviewRequest,
)
from reviewlm.telemetry import UsageTracker, log_cache_metrics, log_raw_reply

logger = logging.getLogger("reviewlm.acquisition.engine")


def request_fingerprint(request: ReviewRequest, model: str) -> str:
    """Stable-prefix hash for segmented prompts, full-prompt hash otherwise."""
    if request.segments is not None:
        return compute_segments_prefix_hash(request.segments.stable_parts, model)
    return compute_prompt_hash(request.prompt, model)


class AcquisitionEngine:
    """
    Orchestrates the attempts for one adapter/chain pair.

    The engine holds no per-request state, so one instance can serve
    concurrent ``acquire()`` calls.
    """

    def __init__(
        self,
        adapter: BaseAdapter,
        chain: ExtractionChain,
        policy: ContentRetryPolicy | None = None,
        *,
        prompt_cache_debug: bool = False,
        raw_reply_debug: bool = False,
    ) -> None:
        self.adapter = adapter
        self.chain = chain
        self.policy = policy or ContentRetryPolicy()
        self.prompt_cache_debug = prompt_cache_debug
        self.raw_reply_debug = raw_reply_debug

    async def acquire(self, request: ReviewRequest) -> str:
        content, _ = await self.acquire_with_usage(request)
        return content

    async def acquire_with_usage(self, request: ReviewRequest) -> tuple[str, UsageTracker]:
        model = request.model or self.adapter.model
        tracker = UsageTracker(provider=self.adapter.provider.value, model=model)
        fingerprint = request_fingerprint(request, model)

        retry: RetryContext | None = None
        raw: RawProviderResponse | None = None
        extracted: ExtractionResult | None = None

        for attempt in range(self.policy.max_attempts):
            payload = self.adapter.build_payload(request, retry)
            logger.info(
                "Acquiring %s reply from %s (model=%s attempt=%d budget=%d hash=%s)",
                request.mode.value, self.adapter.provider.value, model,
                attempt + 1, payload.token_budget, fingerprint,
            )

            raw = await self.adapter.send(payload)
            tracker.add_usage(raw.usage)
            if self.prompt_cache_debug:
                log_cache_metrics(fingerprint, raw, mode=request.mode.value, attempt=attempt + 1)
            if self.raw_reply_debug:
                log_raw_reply(raw, model=model, attempt=attempt + 1)

            extracted = self.chain.extract(raw)
            decision = self.policy.decide(raw, attempt, extracted)
            if decision is RetryDecision.NONE:
                break
            retry = self.policy.retry_context(payload)

        logger.debug(tracker.format_summary())
        return self._finalise(request, raw, extracted), tracker

    def _finalise(
        self,
        request: ReviewRequest,
        raw: RawProviderResponse | None,
        extracted: ExtractionResult | None,
    ) -> str:
        if extracted is not None and extracted.content.strip():
            return extracted.content

        provider = self.adapter.provider.value
        if request.mode is ReviewMode.DISCUSSION:
            logger.warning("%s returned an empty discussion reply after retry", provider)
            return ""

        if raw is None or not raw.has_output:
            raise NoChoicesReturned(
                f"No choices returned from {provider}",
                provider=provider,
            )
        raise EmptyOutput(
            f"Empty response from {provider}",
            provider=provider,
            detail={
                "status": raw.status.value,
                "incomplete_reason": raw.incomplete_reason,
            },
        )
