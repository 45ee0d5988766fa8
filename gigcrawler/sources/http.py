from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import requests

from ..config import (
    FETCH_RETRY_ATTEMPTS,
    FETCH_RETRY_DELAY_S,
    FETCH_TIMEOUT_S,
    FETCH_USER_AGENT,
)
from ..errors import FetchError
from ..models import ErrorContext

logger = logging.getLogger(__name__)

MAX_RETRY_DELAY_S = 10.0


@dataclass
class HttpResult:
    url: str
    status_code: int
    text: str


def http_get(
    url: str,
    *,
    timeout_s: float = FETCH_TIMEOUT_S,
    headers: Optional[Dict[str, str]] = None,
) -> HttpResult:
    logger.debug("[fetch] GET url=%s timeout_s=%s", url, timeout_s)
    merged = {"User-Agent": FETCH_USER_AGENT}
    merged.update(headers or {})
    r = requests.get(url, timeout=timeout_s, headers=merged)
    r.raise_for_status()
    return HttpResult(url=r.url, status_code=r.status_code, text=r.text)


async def fetch_url(
    url: str,
    *,
    timeout_s: float = FETCH_TIMEOUT_S,
    headers: Optional[Dict[str, str]] = None,
) -> HttpResult:
    """Async fetch capability: the blocking GET runs in a worker thread."""
    return await asyncio.to_thread(http_get, url, timeout_s=timeout_s, headers=headers)


FetchFn = Callable[..., Awaitable[HttpResult]]


# ---------------------------------------
# Error classification
# ---------------------------------------

def classify_error(exc: BaseException) -> Tuple[str, Optional[int]]:
    """Return (error_type, status_code) for a failed fetch."""
    if isinstance(exc, (requests.Timeout, TimeoutError)):
        return "timeout", None
    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        return "http_error", exc.response.status_code
    if isinstance(exc, (requests.ConnectionError, ConnectionError)):
        return "connection_error", None
    return "unknown", None


def build_error_context(
    exc: BaseException,
    *,
    venue: str,
    url: Optional[str],
    attempt: int = 1,
    timeout_s: Optional[float] = None,
) -> ErrorContext:
    error_type, status_code = classify_error(exc)

    message = f"{venue} scraping failed"
    if error_type == "timeout":
        message += " - Request timeout" + (f" ({timeout_s:g}s)" if timeout_s else "")
    elif error_type == "http_error":
        message += f" - HTTP {status_code}"
    elif error_type == "connection_error":
        message += " - Connection failed"

    return ErrorContext(
        error_type=error_type,
        message=message,
        venue=venue,
        url=url,
        attempt=attempt,
        status_code=status_code,
        original_error=f"{type(exc).__name__}: {exc}",
        timestamp=datetime.now(timezone.utc),
    )


# ---------------------------------------
# Retrying fetch
# ---------------------------------------

class RetryingFetcher:
    """
    Fetch with its own retry policy: ``attempts`` tries, exponential backoff
    ``min(retry_delay_s * 2**(attempt-1), 10s)`` between them.

    Independent of the rate limiter's pacing; the two layers compose.
    """

    def __init__(
        self,
        venue: str,
        *,
        fetch: FetchFn = fetch_url,
        attempts: int = FETCH_RETRY_ATTEMPTS,
        retry_delay_s: float = FETCH_RETRY_DELAY_S,
        timeout_s: float = FETCH_TIMEOUT_S,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.venue = venue
        self.attempts = max(1, attempts)
        self.retry_delay_s = retry_delay_s
        self.timeout_s = timeout_s
        self._fetch = fetch
        self._sleep = sleep

    def retry_delay(self, attempt: int) -> float:
        return min(self.retry_delay_s * 2 ** (attempt - 1), MAX_RETRY_DELAY_S)

    async def fetch_with_retry(
        self,
        url: str,
        *,
        timeout_s: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> HttpResult:
        timeout_s = self.timeout_s if timeout_s is None else timeout_s
        last_error: Optional[FetchError] = None

        for attempt in range(1, self.attempts + 1):
            try:
                return await self._fetch(url, timeout_s=timeout_s, headers=headers)
            except (requests.RequestException, OSError) as e:
                context = build_error_context(
                    e, venue=self.venue, url=url, attempt=attempt, timeout_s=timeout_s
                )
                last_error = FetchError(context.message, context)

                if attempt < self.attempts:
                    delay = self.retry_delay(attempt)
                    logger.warning(
                        "[fetch] venue=%s attempt=%d/%d failed, retrying in %.2fs | %s: %s",
                        self.venue,
                        attempt,
                        self.attempts,
                        delay,
                        type(e).__name__,
                        e,
                    )
                    await self._sleep(delay)

        assert last_error is not None
        raise last_error
