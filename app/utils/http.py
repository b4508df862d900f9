"""HTTP utilities providing retry/backoff semantics."""

from __future__ import annotations

from typing import Mapping, Optional


class RetryConfig:
    def __init__(self, *, max_retries: int = 3, base_delay_seconds: float = 1.0) -> None:
        self.max_retries = max_retries
        self.base_delay_seconds = base_delay_seconds

    def backoff_delay(self, retry_count: int) -> float:
        """Exponential delay for the given zero-based retry count."""
        return self.base_delay_seconds * (2**retry_count)


def parse_retry_after(headers: Mapping[str, str]) -> Optional[float]:
    """Return the ``Retry-After`` header in seconds, if it holds a number."""
    raw = headers.get("retry-after")
    if raw is None:
        return None
    try:
        seconds = float(raw.strip())
    except ValueError:
        return None
    if seconds < 0:
        return None
    return seconds


def join_url(base_url: str, endpoint: str) -> str:
    return f"{base_url.rstrip('/')}/{endpoint.lstrip('/')}"


__all__ = ["RetryConfig", "join_url", "parse_retry_after"]
