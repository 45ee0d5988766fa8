"""
Error taxonomy for the crawler.

Per-event and per-source failures are turned into data by the pipeline;
these classes only cross a component boundary where noted.
"""
from __future__ import annotations

from typing import Any, Optional

from .models import ErrorContext


class GigCrawlerError(Exception):
    """Base class for crawler errors."""


class DateFormatError(GigCrawlerError, ValueError):
    """No known date pattern matched. Carries the original input."""

    def __init__(self, value: Any, message: str = "Invalid date format") -> None:
        self.value = value
        super().__init__(f"{message}: {value!r}")


class FetchError(GigCrawlerError):
    """Network, timeout or HTTP status failure for one source."""

    def __init__(self, message: str, context: Optional[ErrorContext] = None) -> None:
        super().__init__(message)
        self.context = context


class ConfigurationError(GigCrawlerError):
    """Malformed adapter definition (missing venue name or base URL)."""


class ValidationError(GigCrawlerError):
    """Structural defect in a single event."""

    def __init__(self, errors: list) -> None:
        self.errors = errors
        super().__init__("; ".join(getattr(e, "message", str(e)) for e in errors))


class RateLimitTimeoutError(GigCrawlerError, TimeoutError):
    """A rate limited task did not finish within its timeout."""

    def __init__(self, timeout_s: float, domain: str = "default") -> None:
        self.timeout_s = timeout_s
        self.domain = domain
        super().__init__(f"Rate limiter timeout after {timeout_s:g}s (domain={domain})")


class RequestCancelledError(GigCrawlerError):
    """Queued task dropped by RateLimiter.clear_queue()."""

    def __init__(self, message: str = "Request cancelled - queue cleared") -> None:
        super().__init__(message)
