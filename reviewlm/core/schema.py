"""
reviewlm.core.schema — The review payload contract.

The same JSON schema is declared to both providers (Anthropic ``input_schema``,
OpenAI function ``parameters`` or ``text.format`` json_schema).  OpenAI strict
mode requires ``additionalProperties: false`` on every object and every
property listed in ``required``, hence the nullable ``start_line`` and
``search_replace_blocks``.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

REVIEW_TOOL_NAME = "provide_code_review"

REVIEW_TOOL_DESCRIPTION = "Provide structured code review with line-specific comments"

REVIEW_SYSTEM_INSTRUCTION = (
    "You are an expert code reviewer. When appropriate, use the tool "
    f"`{REVIEW_TOOL_NAME}` to return a structured JSON result. Do not include "
    "your internal reasoning or chain-of-thought in outputs. If you need to "
    "reason, do so silently and only output the structured result."
)

REVIEW_PARAMETERS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "summary": {
            "type": "string",
            "description": (
                "Overall summary of the PR. Supports GitHub-flavored Markdown "
                "(headings, lists, tables, code fences)."
            ),
        },
        "comments": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "path": {
                        "type": "string",
                        "description": "File path relative to repository root",
                    },
                    "line": {
                        "type": "integer",
                        "description": (
                            "End line number for the comment (or single line "
                            "if start_line not provided)"
                        ),
                    },
                    "start_line": {
                        "type": ["integer", "null"],
                        "description": (
                            "Start line number for multi-line comments. Use null "
                            "when not applicable. Must be <= line when provided."
                        ),
                    },
                    "body": {
                        "type": "string",
                        "description": (
                            "Detailed comment about the issue. Supports "
                            "GitHub-flavored Markdown (suggestion blocks included)."
                        ),
                    },
                    "search_replace_blocks": {
                        "type": ["array", "null"],
                        "items": {
                            "type": "object",
                            "properties": {
                                "search": {
                                    "type": "string",
                                    "description": (
                                        "Exact code content to find, matching "
                                        "character-for-character."
                                    ),
                                },
                                "replace": {
                                    "type": "string",
                                    "description": "New code content to replace the search content with.",
                                },
                            },
                            "required": ["search", "replace"],
                            "additionalProperties": False,
                        },
                        "description": (
                            "SEARCH/REPLACE blocks for precise code modifications. "
                            "Use null when no changes are suggested."
                        ),
                    },
                },
                "required": ["path", "line", "start_line", "body", "search_replace_blocks"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["summary", "comments"],
    "additionalProperties": False,
}


# ---------------------------------------------------------------------------
# Validation models
# ---------------------------------------------------------------------------

class SearchReplaceBlock(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    search: str
    replace: str


class ReviewComment(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    path: str
    line: int
    start_line: int | None = None
    body: str
    search_replace_blocks: list[SearchReplaceBlock] | None = None

    @model_validator(mode="after")
    def _start_not_after_end(self) -> "ReviewComment":
        if self.start_line is not None and self.start_line > self.line:
            raise ValueError(
                f"start_line ({self.start_line}) must be <= line ({self.line})"
            )
        return self


class ReviewPayload(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    summary: str
    comments: list[ReviewComment]


def validate_review_payload(parsed: Any) -> ReviewPayload:
    """Raise ``ValueError`` unless *parsed* matches the review schema."""
    if not isinstance(parsed, dict):
        raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
    try:
        return ReviewPayload.model_validate(parsed)
    except ValidationError as exc:
        raise ValueError(str(exc)) from exc


def canonical_json(parsed: Any) -> str:
    """Compact serialisation that round-trips through ``json.loads``."""
    return json.dumps(parsed, ensure_ascii=False, separators=(",", ":"))
