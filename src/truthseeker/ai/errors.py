"""Exception hierarchy for the Gemini gateway.

All gateway failures inherit from GatewayError so the session controller can
catch one type. ``__str__`` returns only the safe message; details and the
original SDK exception stay on the instance for debugging.

    GatewayError
    ├── InvalidRequestError        missing/empty payload fields, unknown action
    ├── ParseError                 structured output could not be parsed
    └── UpstreamError              provider or network failure (user may retry)
        ├── QuotaExceededError     rate limit / quota (HTTP 429)
        ├── ContentBlockedError    response blocked by safety filters
        └── ProviderUnavailableError   no API key or client construction failed
"""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base exception for all gateway errors.

    Attributes:
        message: Human-readable error description (safe to log and display).
        retriable: Whether the user can usefully re-trigger the action.
        details: Additional context (may contain sensitive data, don't log).
        original_error: The underlying exception that caused this error.
    """

    def __init__(
        self,
        message: str,
        retriable: bool = False,
        details: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.retriable = retriable
        self.details = details or {}
        self.original_error = original_error

    def __str__(self) -> str:
        return self.message


class InvalidRequestError(GatewayError):
    """The caller sent an action or payload the gateway cannot accept.

    Attributes:
        fields: Names of the missing or invalid payload fields.
    """

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        super().__init__(message, retriable=False, details={"fields": fields or []})
        self.fields = fields or []


class ParseError(GatewayError):
    """Structured output was not valid JSON for the expected schema.

    Attributes:
        raw_text: The unparseable model output.
    """

    def __init__(self, message: str, raw_text: str = "", original_error: Exception | None = None):
        super().__init__(message, retriable=False, original_error=original_error)
        self.raw_text = raw_text


class UpstreamError(GatewayError):
    """The provider or the network failed. Message is kept verbatim.

    Attributes:
        status_code: HTTP status reported by the provider, when known.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, retriable=True, original_error=original_error)
        self.status_code = status_code


class QuotaExceededError(UpstreamError):
    """Provider rate limit or quota exhausted."""

    def __init__(
        self,
        message: str = "Gemini quota exceeded. Wait a moment and try again.",
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, status_code=429, original_error=original_error)


class ContentBlockedError(UpstreamError):
    """Prompt or response was blocked by the provider's safety filters."""

    def __init__(
        self,
        message: str = "Content blocked by safety filters.",
        blocked_reason: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error=original_error)
        self.retriable = False
        self.blocked_reason = blocked_reason


class ProviderUnavailableError(UpstreamError):
    """The provider client could not be created (usually no API key)."""

    def __init__(self, message: str = "No Gemini API key configured") -> None:
        super().__init__(message)
        self.retriable = False
