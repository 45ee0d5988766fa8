"""
Rate limiter for outbound requests.

Queued tasks are released highest priority first (FIFO among equal
priorities) while fewer than ``max_concurrent`` are active. Before a task
starts it waits for the pacing delay: the requests-per-second interval,
never less than ``min_delay_s``, escalated by exponential backoff while the
limiter (or the task's domain) has consecutive errors.

Retries are not done here; callers own their retry policy.
"""
from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from .config import (
    RATE_LIMIT_BACKOFF_MULTIPLIER,
    RATE_LIMIT_MAX_CONCURRENT,
    RATE_LIMIT_MAX_DELAY_S,
    RATE_LIMIT_MIN_DELAY_S,
    RATE_LIMIT_REQUESTS_PER_SECOND,
    RATE_LIMIT_TIMEOUT_S,
)
from .errors import RateLimitTimeoutError, RequestCancelledError
from .models import DomainStats, RateLimiterStats

logger = logging.getLogger(__name__)

TaskFn = Callable[[], Awaitable[Any]]


@dataclass(order=True)
class _QueuedRequest:
    sort_key: tuple  # (-priority, arrival)
    task: TaskFn = field(compare=False)
    domain: str = field(compare=False)
    priority: int = field(compare=False)
    timeout_s: float = field(compare=False)
    future: asyncio.Future = field(compare=False)


def _settle(future: asyncio.Future, *, result: Any = None, exc: Optional[BaseException] = None) -> None:
    if future.done():
        return
    if exc is not None:
        future.set_exception(exc)
    else:
        future.set_result(result)


class RateLimiter:
    def __init__(
        self,
        max_concurrent: int = RATE_LIMIT_MAX_CONCURRENT,
        requests_per_second: float = RATE_LIMIT_REQUESTS_PER_SECOND,
        min_delay_s: float = RATE_LIMIT_MIN_DELAY_S,
        max_delay_s: float = RATE_LIMIT_MAX_DELAY_S,
        backoff_multiplier: float = RATE_LIMIT_BACKOFF_MULTIPLIER,
        default_timeout_s: float = RATE_LIMIT_TIMEOUT_S,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be >= 1")
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be > 0")

        self.max_concurrent = max_concurrent
        self.requests_per_second = requests_per_second
        self.min_delay_s = min_delay_s
        self.max_delay_s = max_delay_s
        self.backoff_multiplier = backoff_multiplier
        self.default_timeout_s = default_timeout_s

        self._clock = clock
        self._sleep = sleep

        self._queue: List[_QueuedRequest] = []
        self._arrivals = itertools.count()
        self._active = 0
        self._last_request_time: Optional[float] = None
        self._consecutive_errors = 0
        self._domains: Dict[str, DomainStats] = {}

        # Serializes delay computation + sleep + timestamp so starts stay spaced
        self._issue_lock = asyncio.Lock()
        self._workers: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def active_requests(self) -> int:
        return self._active

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    async def execute(
        self,
        task: TaskFn,
        *,
        domain: str = "default",
        priority: int = 0,
        timeout_s: Optional[float] = None,
    ) -> Any:
        """
        Run ``task`` (a zero-argument coroutine function) under the limiter.

        Raises whatever the task raises, RateLimitTimeoutError when it runs
        past ``timeout_s``, or RequestCancelledError if the queue is cleared
        before it starts.
        """
        future = asyncio.get_running_loop().create_future()
        request = _QueuedRequest(
            sort_key=(-priority, next(self._arrivals)),
            task=task,
            domain=domain or "default",
            priority=priority,
            timeout_s=self.default_timeout_s if timeout_s is None else timeout_s,
            future=future,
        )
        heapq.heappush(self._queue, request)
        self._drain()
        return await future

    def calculate_delay(self, domain: str = "default") -> float:
        """Seconds to wait before the next request for ``domain`` may start."""
        base_delay = 1.0 / self.requests_per_second
        if self._last_request_time is None:
            since_last = math.inf
        else:
            since_last = self._clock() - self._last_request_time

        delay = max(self.min_delay_s, base_delay - since_last)

        if self._consecutive_errors > 0:
            delay = max(delay, self._backoff(self._consecutive_errors))

        stats = self._domains.get(domain)
        if stats is not None and stats.consecutive_errors > 0:
            delay = max(delay, self._backoff(stats.consecutive_errors))

        return delay

    def clear_queue(self) -> int:
        """Fail every queued (not yet started) task. Running tasks are untouched."""
        cleared = self._queue
        self._queue = []
        for request in cleared:
            _settle(request.future, exc=RequestCancelledError())
        if cleared:
            logger.warning("[rate_limiter] queue cleared cancelled=%d", len(cleared))
        return len(cleared)

    def reset_errors(self, domain: Optional[str] = None) -> None:
        if domain is not None:
            stats = self._domains.get(domain)
            if stats is not None:
                stats.consecutive_errors = 0
            return
        self._consecutive_errors = 0
        for stats in self._domains.values():
            stats.consecutive_errors = 0

    def get_stats(self) -> RateLimiterStats:
        return RateLimiterStats(
            active_requests=self._active,
            queue_length=len(self._queue),
            consecutive_errors=self._consecutive_errors,
            last_request_time=self._last_request_time,
            domains={name: stats.model_copy() for name, stats in self._domains.items()},
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _backoff(self, consecutive_errors: int) -> float:
        backoff = self.min_delay_s * self.backoff_multiplier ** (consecutive_errors - 1)
        return min(backoff, self.max_delay_s)

    def _drain(self) -> None:
        while self._active < self.max_concurrent and self._queue:
            request = heapq.heappop(self._queue)
            if request.future.done():
                # caller went away while queued
                continue
            self._active += 1
            worker = asyncio.get_running_loop().create_task(self._run(request))
            self._workers.add(worker)
            worker.add_done_callback(self._workers.discard)

    async def _run(self, request: _QueuedRequest) -> None:
        try:
            async with self._issue_lock:
                delay = self.calculate_delay(request.domain)
                if delay > 0:
                    await self._sleep(delay)
                self._last_request_time = self._clock()

            inner = asyncio.ensure_future(request.task())
            done, _ = await asyncio.wait({inner}, timeout=request.timeout_s)
            if not done:
                inner.cancel()
                raise RateLimitTimeoutError(request.timeout_s, request.domain)
            result = inner.result()
        except asyncio.CancelledError:
            self._record(request.domain, success=False)
            request.future.cancel()
            raise
        except Exception as e:
            self._record(request.domain, success=False)
            logger.info(
                "[rate_limiter] task failed domain=%s consecutive_errors=%d | %s: %s",
                request.domain,
                self._consecutive_errors,
                type(e).__name__,
                e,
            )
            _settle(request.future, exc=e)
        else:
            self._record(request.domain, success=True)
            _settle(request.future, result=result)
        finally:
            self._active -= 1
            self._drain()

    def _record(self, domain: str, *, success: bool) -> None:
        stats = self._domains.setdefault(domain, DomainStats())
        stats.requests += 1
        stats.last_request_time = self._clock()
        if success:
            stats.successes += 1
            stats.consecutive_errors = 0
            self._consecutive_errors = 0
        else:
            stats.errors += 1
            stats.consecutive_errors += 1
            self._consecutive_errors += 1
