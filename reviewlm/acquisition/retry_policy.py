"""
reviewlm.acquisition.retry_policy — The single content retry.

A first attempt can fail semantically while succeeding on the wire: the
backend answers, but the answer is empty, or hidden reasoning consumed the
whole output budget before any visible text was produced.  The policy turns
that into an explicit ``RetryDecision`` and sizes the second attempt.

The second attempt always gets a *smaller* budget.  More room mostly buys
more hidden reasoning; less room pushes the model to answer quickly.
"""

from __future__ import annotations

import logging

from reviewlm.acquisition.extraction import ExtractionResult
from reviewlm.core.models import (
    ProviderPayload,
    RawProviderResponse,
    RetryContext,
    RetryDecision,
    ReviewMode,
)

logger = logging.getLogger("reviewlm.acquisition.retry_policy")

# First attempt + one content retry
MAX_ATTEMPTS = 2
MIN_RETRY_BUDGET = 256

EMPTY_REPLY_CORRECTION = (
    "Your previous reply was empty. Reply now with a short, direct answer in "
    "plain text. Do not spend time on lengthy reasoning."
)


class ContentRetryPolicy:
    """Decides whether an attempt earns the one retry, and how to shape it."""

    max_attempts = MAX_ATTEMPTS

    def decide(
        self,
        raw: RawProviderResponse,
        attempt_number: int,
        extracted: ExtractionResult | None = None,
    ) -> RetryDecision:
        """*attempt_number* is 0 for the first attempt."""
        if attempt_number + 1 >= self.max_attempts:
            return RetryDecision.NONE

        if raw.budget_exhausted and not raw.has_visible_text:
            logger.warning(
                "%s ran out of output budget before producing visible text "
                "(reasoning_tokens=%d); retrying with a smaller budget",
                raw.provider.value, raw.usage.reasoning_tokens,
            )
            return RetryDecision.RETRY_REDUCED_BUDGET

        if extracted is None or not extracted.content.strip():
            logger.warning(
                "%s returned an empty reply; retrying once", raw.provider.value
            )
            return RetryDecision.RETRY_REDUCED_BUDGET

        return RetryDecision.NONE

    @staticmethod
    def reduced_budget(previous: int) -> int:
        """Strictly smaller than *previous*, never below the floor unless forced."""
        return max(1, min(previous - 1, max(MIN_RETRY_BUDGET, previous // 2)))

    def retry_context(self, payload: ProviderPayload) -> RetryContext:
        corrective = (
            EMPTY_REPLY_CORRECTION if payload.mode is ReviewMode.DISCUSSION else None
        )
        return RetryContext(
            token_budget=self.reduced_budget(payload.token_budget),
            corrective_instruction=corrective,
        )
