"""
Tests for the response extraction chain.
"""

import json

import pytest

from reviewlm.acquisition.extraction import discussion_chain, line_comments_chain
from reviewlm.core.errors import InvalidJSON, ToolNotInvoked, UnexpectedResponseShape
from reviewlm.core.models import (
    BUDGET_EXHAUSTED,
    Provider,
    RawProviderResponse,
    ResponseShape,
    ResponseStatus,
    ToolInvocation,
)


def _tool_response(arguments, name="provide_code_review"):
    return RawProviderResponse(
        provider=Provider.ANTHROPIC,
        shape=ResponseShape.TOOL_INVOCATION,
        tool_calls=[ToolInvocation(name=name, arguments=arguments)],
    )


def _blocks(*texts):
    return RawProviderResponse(
        provider=Provider.ANTHROPIC,
        shape=ResponseShape.CONTENT_BLOCKS,
        text_blocks=list(texts),
    )


def _output_text(text):
    return RawProviderResponse(
        provider=Provider.OPENAI,
        shape=ResponseShape.OUTPUT_TEXT,
        output_text=text,
    )


def test_tool_invocation_returns_canonical_json():
    result = line_comments_chain().extract(_tool_response('{"summary": "ok", "comments": []}'))
    assert result.content == '{"summary":"ok","comments":[]}'
    assert result.extractor_name == "ToolInvocation"


def test_canonical_json_keeps_unicode():
    args = json.dumps({"summary": "déjà vu", "comments": []})
    result = line_comments_chain().extract(_tool_response(args))
    assert "déjà vu" in result.content


def test_malformed_tool_arguments_raise_invalid_json():
    with pytest.raises(InvalidJSON):
        line_comments_chain().extract(_tool_response('{"summary": "ok", "comments": ['))


def test_schema_violation_raises_invalid_json():
    args = json.dumps({"summary": "ok"})
    with pytest.raises(InvalidJSON, match="review schema"):
        line_comments_chain().extract(_tool_response(args))


def test_start_line_after_line_is_rejected():
    args = json.dumps({
        "summary": "ok",
        "comments": [{
            "path": "a.py", "line": 3, "start_line": 9, "body": "x",
            "search_replace_blocks": None,
        }],
    })
    with pytest.raises(InvalidJSON):
        line_comments_chain().extract(_tool_response(args))


def test_wrong_tool_name_is_tool_not_invoked():
    with pytest.raises(ToolNotInvoked, match="Unexpected tool name"):
        line_comments_chain().extract(_tool_response("{}", name="something_else"))


def test_empty_tool_arguments_raise_invalid_json():
    with pytest.raises(InvalidJSON):
        line_comments_chain().extract(_tool_response(""))


def test_fenced_json_block_in_text():
    text = 'Here you go:\n```json\n{"summary": "fenced", "comments": []}\n```\nThanks'
    result = line_comments_chain().extract(_blocks(text))
    assert result.content == '{"summary":"fenced","comments":[]}'
    assert result.extractor_name == "FencedJson"


def test_broken_fenced_json_does_not_fall_through():
    text = '```json\n{"summary": \n```'
    with pytest.raises(InvalidJSON):
        line_comments_chain().extract(_blocks(text))


def test_bare_json_text():
    result = line_comments_chain().extract(_blocks('  {"summary": "bare", "comments": []}  '))
    assert result.extractor_name == "BareJson"
    assert json.loads(result.content)["summary"] == "bare"


def test_free_text_in_line_mode_is_tool_not_invoked():
    with pytest.raises(ToolNotInvoked):
        line_comments_chain().extract(_blocks("I think this PR looks fine."))


def test_structured_text_only_when_enabled():
    text = '{"summary": "schema", "comments": []}'
    structured = line_comments_chain(structured_text=True).extract(_output_text(text))
    assert structured.extractor_name == "StructuredText"

    fallback = line_comments_chain().extract(_output_text(text))
    assert fallback.extractor_name == "BareJson"


def test_status_only_yields_none():
    raw = RawProviderResponse(
        provider=Provider.OPENAI,
        shape=ResponseShape.STATUS_ONLY,
        status=ResponseStatus.INCOMPLETE,
        incomplete_reason=BUDGET_EXHAUSTED,
    )
    assert line_comments_chain().extract(raw) is None
    assert discussion_chain().extract(raw) is None


def test_discussion_reply_is_trimmed():
    result = discussion_chain().extract(_blocks("  Looks good to me.\n\n"))
    assert result.content == "Looks good to me."
    assert result.extractor_name == "PlainText"


def test_discussion_joins_text_blocks():
    result = discussion_chain().extract(_blocks("First.", "Second."))
    assert result.content == "First.\nSecond."


def test_discussion_rejects_tool_calls():
    with pytest.raises(UnexpectedResponseShape):
        discussion_chain().extract(_tool_response("{}"))
