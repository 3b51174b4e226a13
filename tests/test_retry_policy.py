"""
Tests for the content retry policy.
"""

import pytest

from reviewlm.acquisition.extraction import ExtractionResult
from reviewlm.acquisition.retry_policy import EMPTY_REPLY_CORRECTION, ContentRetryPolicy
from reviewlm.core.models import (
    BUDGET_EXHAUSTED,
    Provider,
    ProviderPayload,
    RawProviderResponse,
    ResponseShape,
    ResponseStatus,
    RetryDecision,
    ReviewMode,
)


def _raw(shape=ResponseShape.STATUS_ONLY, status=ResponseStatus.COMPLETE, reason=None, text=None):
    return RawProviderResponse(
        provider=Provider.OPENAI,
        shape=shape,
        status=status,
        incomplete_reason=reason,
        output_text=text,
    )


def _payload(mode, budget):
    return ProviderPayload(
        provider=Provider.OPENAI,
        mode=mode,
        endpoint="/v1/responses",
        body={},
        token_budget=budget,
    )


@pytest.fixture
def policy():
    return ContentRetryPolicy()


def test_budget_exhausted_without_text_retries(policy):
    raw = _raw(status=ResponseStatus.INCOMPLETE, reason=BUDGET_EXHAUSTED)
    assert policy.decide(raw, 0, None) is RetryDecision.RETRY_REDUCED_BUDGET


def test_empty_extraction_retries(policy):
    raw = _raw(shape=ResponseShape.OUTPUT_TEXT, text="   ")
    assert policy.decide(raw, 0, ExtractionResult("", "PlainText")) is RetryDecision.RETRY_REDUCED_BUDGET
    assert policy.decide(raw, 0, None) is RetryDecision.RETRY_REDUCED_BUDGET


def test_good_content_does_not_retry(policy):
    raw = _raw(shape=ResponseShape.OUTPUT_TEXT, text="hello")
    assert policy.decide(raw, 0, ExtractionResult("hello", "PlainText")) is RetryDecision.NONE


def test_never_more_than_one_retry(policy):
    raw = _raw(status=ResponseStatus.INCOMPLETE, reason=BUDGET_EXHAUSTED)
    assert policy.decide(raw, 1, None) is RetryDecision.NONE


@pytest.mark.parametrize("previous", [1024, 2048, 4096, 16384, 300, 256, 100, 2])
def test_reduced_budget_is_strictly_smaller(previous):
    reduced = ContentRetryPolicy.reduced_budget(previous)
    assert 1 <= reduced < previous


def test_reduced_budget_values():
    assert ContentRetryPolicy.reduced_budget(2048) == 1024
    assert ContentRetryPolicy.reduced_budget(300) == 256
    assert ContentRetryPolicy.reduced_budget(200) == 199


def test_corrective_instruction_only_for_discussion(policy):
    discussion = policy.retry_context(_payload(ReviewMode.DISCUSSION, 2048))
    line = policy.retry_context(_payload(ReviewMode.LINE_COMMENTS, 4096))

    assert discussion.corrective_instruction == EMPTY_REPLY_CORRECTION
    assert discussion.token_budget == 1024
    assert line.corrective_instruction is None
    assert line.token_budget == 2048
