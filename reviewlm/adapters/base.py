"""
reviewlm.adapters.base — Abstract base class for provider adapters.

An adapter owns the two provider-specific halves of an attempt: building the
request payload and classifying the raw JSON reply into a
``RawProviderResponse``.  The HTTP round trip itself is delegated to a
``TransportExecutor``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx

from reviewlm.acquisition.transport import (
    DEFAULT_MAX_ATTEMPTS,
    TransportExecutor,
    create_http_client,
)
from reviewlm.core.errors import MissingCredential
from reviewlm.core.models import (
    Provider,
    ProviderPayload,
    RawProviderResponse,
    ReviewRequest,
    RetryContext,
)
from reviewlm.core.overrides import DEFAULT_REGISTRY, OverrideRegistry


class BaseAdapter(ABC):
    """
    Interface contract for all provider adapters.

    Subclasses implement ``build_payload()`` and ``parse_response()``.
    """

    provider: Provider

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        base_url: str,
        headers: dict[str, str],
        registry: OverrideRegistry | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        http_transport: httpx.AsyncBaseTransport | None = None,
        executor: TransportExecutor | None = None,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self.registry = registry or DEFAULT_REGISTRY
        self._executor = executor or TransportExecutor(
            create_http_client(base_url, headers, transport=http_transport),
            provider=self.provider.value,
            max_attempts=max_attempts,
        )

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    @abstractmethod
    def build_payload(
        self,
        request: ReviewRequest,
        retry: RetryContext | None = None,
    ) -> ProviderPayload:
        """Build a fresh provider request for one attempt."""
        ...

    @abstractmethod
    def parse_response(self, data: dict[str, Any]) -> RawProviderResponse:
        """Classify a decoded provider reply into the tagged union."""
        ...

    async def send(self, payload: ProviderPayload) -> RawProviderResponse:
        data = await self._executor.send(payload)
        return self.parse_response(data)

    async def close(self) -> None:
        """Release the pooled HTTP client."""
        await self._executor.aclose()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_credential(self) -> None:
        if not self._api_key:
            raise MissingCredential(
                f"No API key configured for provider '{self.provider.value}'",
                provider=self.provider.value,
            )

    def _require_matching_provider(self, request: ReviewRequest) -> None:
        if request.provider is not self.provider:
            raise ValueError(
                f"Request for provider '{request.provider.value}' passed to the "
                f"{self.provider.value} adapter"
            )

    def _model_for(self, request: ReviewRequest) -> str:
        return request.model or self.model
