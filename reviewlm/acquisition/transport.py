"""
reviewlm.acquisition.transport — HTTP execution with transient-failure retries.

One ``send()`` is one logical attempt from the engine's point of view, even
though it may cost several HTTP round trips.  Only transport-classified
failures are retried here:

  - connection errors, timeouts and protocol errors (``httpx.TransportError``)
  - HTTP 429 and every 5xx (Anthropic uses 529 for "overloaded")
  - HTTP 403 that carries rate-limit headers

Every other 4xx is a request the backend will never accept, so it is raised
immediately as ``RequestRejected``.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable

import httpx

from reviewlm.core.errors import RequestRejected, TransportFailure, UnexpectedResponseShape
from reviewlm.core.models import ProviderPayload

logger = logging.getLogger("reviewlm.acquisition.transport")

# ---------------------------------------------------------------------------
# Timeouts and pool limits
# ---------------------------------------------------------------------------
_CONNECT_TIMEOUT = 10.0    # TCP + TLS handshake (seconds)
_READ_TIMEOUT = 300.0      # thinking models can take minutes before the first byte
_WRITE_TIMEOUT = 30.0      # large review prompts
_POOL_TIMEOUT = 10.0

DEFAULT_TIMEOUT = httpx.Timeout(
    connect=_CONNECT_TIMEOUT,
    read=_READ_TIMEOUT,
    write=_WRITE_TIMEOUT,
    pool=_POOL_TIMEOUT,
)

DEFAULT_LIMITS = httpx.Limits(
    max_connections=20,
    max_keepalive_connections=10,
    keepalive_expiry=120,
)

# ---------------------------------------------------------------------------
# Retry settings
# ---------------------------------------------------------------------------
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0        # seconds, doubles each retry
DEFAULT_MAX_DELAY = 30.0
_ERROR_BODY_PREVIEW = 500


def is_retryable_status(status_code: int, headers: httpx.Headers | None = None) -> bool:
    if status_code == 429 or status_code >= 500:
        return True
    if status_code == 403 and headers is not None:
        return "retry-after" in headers or headers.get("x-ratelimit-remaining") == "0"
    return False


def _retry_after_seconds(headers: httpx.Headers) -> float | None:
    raw = headers.get("retry-after")
    if raw is None:
        return None
    try:
        return max(0.0, float(raw))
    except ValueError:
        return None


def create_http_client(
    base_url: str,
    headers: dict[str, str],
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Build the pooled client an adapter owns for its lifetime."""
    return httpx.AsyncClient(
        base_url=base_url,
        headers=headers,
        timeout=DEFAULT_TIMEOUT,
        limits=DEFAULT_LIMITS,
        transport=transport,
    )


class TransportExecutor:
    """
    Posts a ``ProviderPayload`` and returns the decoded JSON body.

    *sleep* and *rand* are injectable so backoff can be tested without
    waiting.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        provider: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
        jitter: bool = True,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ) -> None:
        self._client = client
        self._provider = provider
        self.max_attempts = max(1, max_attempts)
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._jitter = jitter
        self._sleep = sleep
        self._rand = rand

    def backoff_delay(self, attempt: int, retry_after: float | None = None) -> float:
        """Delay before retry number *attempt* (0-based), capped at max_delay."""
        if retry_after is not None:
            return min(retry_after, self._max_delay)
        delay = min(self._base_delay * (2 ** attempt), self._max_delay)
        if self._jitter:
            delay = min(delay * (0.5 + self._rand()), self._max_delay)
        return delay

    async def send(self, payload: ProviderPayload) -> dict[str, Any]:
        last_status: int | None = None
        last_reason = ""

        for attempt in range(self.max_attempts):
            retry_after: float | None = None
            try:
                resp = await self._client.post(
                    payload.endpoint, json=payload.body, headers=payload.headers
                )
            except httpx.TransportError as exc:
                last_status = None
                last_reason = f"{type(exc).__name__}: {exc}"
            else:
                if resp.is_success:
                    return self._decode(resp)
                if not is_retryable_status(resp.status_code, resp.headers):
                    raise RequestRejected(
                        f"{self._provider} rejected the request with HTTP "
                        f"{resp.status_code}: {resp.text[:_ERROR_BODY_PREVIEW]}",
                        status_code=resp.status_code,
                        provider=self._provider,
                    )
                last_status = resp.status_code
                last_reason = f"HTTP {resp.status_code}"
                retry_after = _retry_after_seconds(resp.headers)

            if attempt + 1 >= self.max_attempts:
                break

            delay = self.backoff_delay(attempt, retry_after)
            logger.warning(
                "%s %s (attempt %d/%d) — retrying in %.1fs",
                self._provider, last_reason, attempt + 1, self.max_attempts, delay,
            )
            await self._sleep(delay)

        logger.error(
            "%s transport failed after %d attempts: %s",
            self._provider, self.max_attempts, last_reason,
        )
        raise TransportFailure(
            f"{self._provider} request failed after {self.max_attempts} attempts: {last_reason}",
            status_code=last_status,
            attempts=self.max_attempts,
            provider=self._provider,
        )

    def _decode(self, resp: httpx.Response) -> dict[str, Any]:
        try:
            data = resp.json()
        except ValueError as exc:
            raise UnexpectedResponseShape(
                f"{self._provider} returned a non-JSON body: {resp.text[:_ERROR_BODY_PREVIEW]}",
                provider=self._provider,
            ) from exc
        if not isinstance(data, dict):
            raise UnexpectedResponseShape(
                f"{self._provider} returned JSON {type(data).__name__}, expected an object",
                provider=self._provider,
            )
        return data

    async def aclose(self) -> None:
        await self._client.aclose()
