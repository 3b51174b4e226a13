"""
reviewlm.telemetry — Per-request usage accounting and debug logging.

Nothing here influences control flow.  A ``UsageTracker`` lives for exactly
one acquisition, so concurrent requests never share it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field

from reviewlm.core.models import RawProviderResponse, UsageInfo

logger = logging.getLogger("reviewlm.telemetry")

RAW_REPLY_PREVIEW_CHARS = 300


@dataclass
class UsageTracker:
    """Tracks cumulative token usage across the attempts of one request."""
    provider: str = ""
    model: str = ""
    attempts: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_reasoning_tokens: int = 0
    total_cache_read_tokens: int = 0
    total_cache_creation_tokens: int = 0
    attempt_usage: list[UsageInfo] = field(default_factory=list)

    def add_usage(self, usage: UsageInfo) -> None:
        self.attempts += 1
        self.total_input_tokens += usage.input_tokens
        self.total_output_tokens += usage.output_tokens
        self.total_reasoning_tokens += usage.reasoning_tokens
        self.total_cache_read_tokens += usage.cache_read_tokens
        self.total_cache_creation_tokens += usage.cache_creation_tokens
        self.attempt_usage.append(usage)

    @property
    def cache_hit_ratio(self) -> float:
        if not self.total_input_tokens:
            return 0.0
        return self.total_cache_read_tokens / self.total_input_tokens

    def format_summary(self) -> str:
        lines = [
            "Acquisition Usage Summary",
            f"  Provider:         {self.provider}",
            f"  Model:            {self.model}",
            f"  Attempts:         {self.attempts}",
            f"  Input tokens:     {self.total_input_tokens:,}",
            f"  Output tokens:    {self.total_output_tokens:,}",
            f"  Reasoning tokens: {self.total_reasoning_tokens:,}",
            f"  Cached tokens:    {self.total_cache_read_tokens:,}",
            f"  Cache hit ratio:  {self.cache_hit_ratio:.1%}",
        ]
        for number, usage in enumerate(self.attempt_usage, start=1):
            lines.append(
                f"  Attempt {number}: in={usage.input_tokens:,} out={usage.output_tokens:,} "
                f"reasoning={usage.reasoning_tokens:,}"
            )
        return "\n".join(lines)


def log_cache_metrics(
    fingerprint: str,
    raw: RawProviderResponse,
    *,
    mode: str,
    attempt: int,
) -> None:
    """Correlate provider prompt-cache counters with the prompt fingerprint."""
    metrics = {
        "prompt_hash": fingerprint,
        "provider": raw.provider.value,
        "mode": mode,
        "attempt": attempt,
        "input_tokens": raw.usage.input_tokens,
        "cache_read_input_tokens": raw.usage.cache_read_tokens,
        "cache_creation_input_tokens": raw.usage.cache_creation_tokens,
    }
    logger.warning("Prompt cache usage: %s", json.dumps(metrics))


def log_raw_reply(raw: RawProviderResponse, *, model: str, attempt: int) -> None:
    """Preview of the visible reply, for debugging empty or odd answers."""
    text = raw.text
    logger.warning(
        "Raw %s reply (model=%s attempt=%d shape=%s status=%s length=%d): %r",
        raw.provider.value, model, attempt, raw.shape.value, raw.status.value,
        len(text), text[:RAW_REPLY_PREVIEW_CHARS],
    )
