"""
reviewlm.core.errors — Exceptions surfaced to callers of the engine.

Each class carries a stable ``code`` so callers can branch on the kind of
contract violation without parsing the message text.
"""

from __future__ import annotations

from typing import Any


class AcquisitionError(Exception):
    """Base class for every error the engine raises."""

    code = "acquisition_error"

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        detail: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.provider = provider
        self.detail = detail or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "provider": self.provider,
            "detail": self.detail,
        }


class MissingCredential(AcquisitionError):
    """No API key configured for the selected provider."""
    code = "missing_credential"


class TransportFailure(AcquisitionError):
    """Network, 5xx or rate-limit failure that outlived every transport retry."""
    code = "transport_failure"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        attempts: int = 0,
        provider: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.attempts = attempts
        super().__init__(
            message,
            provider=provider,
            detail={"status_code": status_code, "attempts": attempts},
        )


class RequestRejected(AcquisitionError):
    """The backend refused the request itself (non-retryable 4xx)."""
    code = "request_rejected"

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        provider: str | None = None,
    ) -> None:
        self.status_code = status_code
        super().__init__(message, provider=provider, detail={"status_code": status_code})


class NoChoicesReturned(AcquisitionError):
    """The backend answered but returned no output item at all."""
    code = "no_choices_returned"


class EmptyOutput(AcquisitionError):
    """The backend produced output, but nothing usable was in it."""
    code = "empty_output"


class ToolNotInvoked(AcquisitionError):
    """The backend ignored the structured-output contract."""
    code = "tool_not_invoked"


class InvalidJSON(AcquisitionError):
    """The chosen extraction strategy's payload failed to parse or validate."""
    code = "invalid_json"


class UnexpectedResponseShape(AcquisitionError):
    """No extraction strategy recognises the response."""
    code = "unexpected_response_shape"


__all__ = [
    "AcquisitionError",
    "EmptyOutput",
    "InvalidJSON",
    "MissingCredential",
    "NoChoicesReturned",
    "RequestRejected",
    "ToolNotInvoked",
    "TransportFailure",
    "UnexpectedResponseShape",
]
