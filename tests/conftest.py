"""
Shared fixtures: a scripted fake backend and provider reply builders.
"""

import json
from typing import Any

import httpx
import pytest

from reviewlm.core.config import RuntimeConfig, reset_runtime_config_cache
from reviewlm.core.schema import REVIEW_TOOL_NAME


class FakeBackend:
    """Answers each request with the next scripted reply and records it."""

    def __init__(self, *replies: Any) -> None:
        self.replies = list(replies)
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.replies:
            raise AssertionError(f"Unexpected extra request to {request.url}")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return reply
        return httpx.Response(200, json=reply)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def bodies(self) -> list[dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]


# ---------------------------------------------------------------------------
# Anthropic Messages API replies
# ---------------------------------------------------------------------------

def anthropic_message(content, stop_reason="end_turn", usage=None):
    return {
        "id": "msg_test",
        "type": "message",
        "role": "assistant",
        "model": "claude-sonnet-4-5-20250929",
        "content": content,
        "stop_reason": stop_reason,
        "usage": usage or {"input_tokens": 120, "output_tokens": 40},
    }


def anthropic_tool_use(tool_input, name=REVIEW_TOOL_NAME):
    return anthropic_message(
        [{"type": "tool_use", "id": "toolu_01", "name": name, "input": tool_input}],
        stop_reason="tool_use",
    )


def anthropic_text(text, stop_reason="end_turn"):
    return anthropic_message([{"type": "text", "text": text}], stop_reason=stop_reason)


# ---------------------------------------------------------------------------
# OpenAI Responses API replies
# ---------------------------------------------------------------------------

def openai_response(output, status="completed", incomplete_reason=None, usage=None):
    data = {
        "id": "resp_test",
        "object": "response",
        "model": "gpt-5",
        "status": status,
        "output": output,
        "usage": usage or {
            "input_tokens": 200,
            "output_tokens": 60,
            "output_tokens_details": {"reasoning_tokens": 0},
        },
    }
    if incomplete_reason is not None:
        data["incomplete_details"] = {"reason": incomplete_reason}
    return data


def openai_function_call(arguments, name=REVIEW_TOOL_NAME):
    return openai_response([{
        "type": "function_call",
        "id": "fc_01",
        "call_id": "call_01",
        "name": name,
        "arguments": arguments,
    }])


def openai_text(text, status="completed", incomplete_reason=None):
    return openai_response(
        [{
            "type": "message",
            "id": "msg_01",
            "role": "assistant",
            "content": [{"type": "output_text", "text": text, "annotations": []}],
        }],
        status=status,
        incomplete_reason=incomplete_reason,
    )


def openai_reasoning_only(reasoning_tokens=2048):
    return openai_response(
        [{"type": "reasoning", "id": "rs_01", "summary": []}],
        status="incomplete",
        incomplete_reason="max_output_tokens",
        usage={
            "input_tokens": 200,
            "output_tokens": reasoning_tokens,
            "output_tokens_details": {"reasoning_tokens": reasoning_tokens},
        },
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def review_payload():
    return {"summary": "ok", "comments": []}


@pytest.fixture
def anthropic_config():
    return RuntimeConfig(anthropic_api_key="sk-ant-test")


@pytest.fixture
def openai_config():
    return RuntimeConfig(provider="openai", openai_api_key="sk-test")


@pytest.fixture(autouse=True)
def _fresh_runtime_config():
    reset_runtime_config_cache()
    yield
    reset_runtime_config_cache()
