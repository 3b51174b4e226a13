"""
reviewlm.acquisition.dispatcher — Selects the provider pipeline.

``resolve()`` binds the configured provider's adapter to the extraction
chain for the requested mode.  ``get_sender()`` and
``get_discussion_sender()`` wrap that binding into the two async callables
the reviewer uses: prompt in, string out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from reviewlm.acquisition.engine import AcquisitionEngine
from reviewlm.acquisition.extraction import (
    ExtractionChain,
    ExtractionResult,
    discussion_chain,
    line_comments_chain,
)
from reviewlm.adapters import adapter_from_config
from reviewlm.adapters.base import BaseAdapter
from reviewlm.core.config import STRUCTURED_OUTPUT_SCHEMA, RuntimeConfig, get_runtime_config
from reviewlm.core.models import (
    PromptSegments,
    Provider,
    ProviderPayload,
    RawProviderResponse,
    ReviewMode,
    ReviewRequest,
)

logger = logging.getLogger("reviewlm.acquisition.dispatcher")

LineCommentSender = Callable[[str], Awaitable[str]]
DiscussionSender = Callable[[str | PromptSegments], Awaitable[str]]


@dataclass
class ProviderBinding:
    """The provider-specific pieces of one pipeline."""
    provider: Provider
    mode: ReviewMode
    adapter: BaseAdapter
    chain: ExtractionChain

    async def send(self, payload: ProviderPayload) -> RawProviderResponse:
        return await self.adapter.send(payload)

    def extract(self, raw: RawProviderResponse) -> ExtractionResult | None:
        return self.chain.extract(raw)

    def engine(self, config: RuntimeConfig) -> AcquisitionEngine:
        return AcquisitionEngine(
            self.adapter,
            self.chain,
            prompt_cache_debug=config.prompt_cache_debug,
            raw_reply_debug=config.raw_reply_debug,
        )

    async def close(self) -> None:
        await self.adapter.close()


def chain_for(provider: Provider, mode: ReviewMode, config: RuntimeConfig) -> ExtractionChain:
    if mode is ReviewMode.DISCUSSION:
        return discussion_chain()
    structured_text = (
        provider is Provider.OPENAI
        and config.openai_structured_output == STRUCTURED_OUTPUT_SCHEMA
    )
    return line_comments_chain(structured_text=structured_text)


def resolve(
    config: RuntimeConfig,
    mode: ReviewMode,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> ProviderBinding:
    """Pick adapter + chain for the configured provider."""
    provider = config.provider
    logger.debug("Resolving %s pipeline for provider %s", mode.value, provider.value)
    return ProviderBinding(
        provider=provider,
        mode=mode,
        adapter=adapter_from_config(config, provider, http_transport=http_transport),
        chain=chain_for(provider, mode, config),
    )


def build_request(
    config: RuntimeConfig,
    mode: ReviewMode,
    prompt: str | PromptSegments,
) -> ReviewRequest:
    segments = prompt if isinstance(prompt, PromptSegments) else None
    return ReviewRequest(
        prompt="" if segments is not None else prompt,
        segments=segments,
        thinking_enabled=config.thinking_enabled,
        provider=config.provider,
        model=config.model_for(config.provider),
        mode=mode,
    )


async def acquire(
    prompt: str | PromptSegments,
    mode: ReviewMode,
    config: RuntimeConfig | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """One-shot acquisition; the HTTP client is closed before returning."""
    config = config or get_runtime_config()
    binding = resolve(config, mode, http_transport=http_transport)
    try:
        return await binding.engine(config).acquire(build_request(config, mode, prompt))
    finally:
        await binding.close()


def get_sender(
    config: RuntimeConfig | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> LineCommentSender:
    """Async callable returning the canonical review JSON for a prompt."""

    async def send(prompt: str) -> str:
        return await acquire(
            prompt, ReviewMode.LINE_COMMENTS,
            config=config, http_transport=http_transport,
        )

    return send


def get_discussion_sender(
    config: RuntimeConfig | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> DiscussionSender:
    """Async callable returning a free-form reply (possibly ``""``)."""

    async def send(prompt: str | PromptSegments) -> str:
        return await acquire(
            prompt, ReviewMode.DISCUSSION,
            config=config, http_transport=http_transport,
        )

    return send
