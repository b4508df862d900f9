"""Exception hierarchy raised by the Loyverse clients."""

from __future__ import annotations

from typing import Any, Mapping, Optional


class LoyverseError(Exception):
    """Base class carrying the upstream status and error payload."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        error: Optional[str] = None,
        error_description: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.error_description = error_description

    @property
    def detail(self) -> str:
        return self.error_description or self.error or str(self)


class AuthenticationError(LoyverseError):
    """Token refresh failed or the API kept rejecting a refreshed token."""


class ApiError(LoyverseError):
    """Non-retryable error response from the resource API."""


class RateLimitExceeded(LoyverseError):
    """A 429 response; consumed by the request executor's backoff loop."""

    def __init__(self, *, retry_after: Optional[float] = None) -> None:
        super().__init__("Rate limit exceeded", status_code=429)
        self.retry_after = retry_after


class MaxRetriesExceededError(LoyverseError):
    """The retry budget was exhausted on rate limits or transient failures."""

    def __init__(self, *, attempts: int, waited_seconds: float) -> None:
        super().__init__(
            f"Max retries exceeded after {attempts} attempts "
            f"({waited_seconds:.1f}s spent backing off)"
        )
        self.attempts = attempts
        self.waited_seconds = waited_seconds


def parse_error_payload(payload: Any) -> tuple[Optional[str], Optional[str]]:
    """Extract ``(error, error_description)`` from an upstream error body.

    OAuth endpoints return ``{"error", "error_description"}`` while the
    resource API wraps failures as ``{"errors": [{"code", "details"}]}``.
    """
    if not isinstance(payload, Mapping):
        return None, None
    if "error" in payload:
        return payload.get("error"), payload.get("error_description")
    errors = payload.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], Mapping):
        first = errors[0]
        return first.get("code"), first.get("details")
    return None, None


__all__ = [
    "ApiError",
    "AuthenticationError",
    "LoyverseError",
    "MaxRetriesExceededError",
    "RateLimitExceeded",
    "parse_error_payload",
]
