from __future__ import annotations

import argparse
import asyncio
import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from .config import (
    LOG_LEVEL,
    OUTPUT_DIR,
    RATE_LIMIT_BACKOFF_MULTIPLIER,
    RATE_LIMIT_MAX_CONCURRENT,
    RATE_LIMIT_MAX_DELAY_S,
    RATE_LIMIT_MIN_DELAY_S,
    RATE_LIMIT_REQUESTS_PER_SECOND,
    RATE_LIMIT_TIMEOUT_S,
)
from .models import (
    AdapterOutcome,
    AdapterStatus,
    AggregateResult,
    AggregateStats,
    CanonicalEvent,
    EventWarning,
    InvalidEvent,
    SourceStats,
)
from .rate_limiter import RateLimiter
from .sources.base import BaseAdapter
from .sources.http import build_error_context
from .sources.registry import SOURCES, build_adapters
from .storage import EventSink, JsonFileSink
from .validate import ValidationContext, ValidationPolicy, validate_events

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    DISPATCHING = "dispatching"
    COLLECTING = "collecting"
    MERGING = "merging"
    DONE = "done"


def event_sort_key(ev: CanonicalEvent) -> Tuple[bool, int]:
    """Ascending by date_unix; undated events last."""
    return (ev.date_unix is None, ev.date_unix or 0)


class Orchestrator:
    """
    Runs every adapter concurrently, validates each source's events, and
    merges the survivors into one date-ordered result. A failing source
    never affects the others.
    """

    def __init__(
        self,
        adapters: Sequence[BaseAdapter],
        *,
        limiter: RateLimiter,
        sink: Optional[EventSink] = None,
        policy: Optional[ValidationPolicy] = None,
        now: Optional[Callable[[], datetime]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.adapters = list(adapters)
        self.limiter = limiter
        self.sink = sink
        self.policy = policy or ValidationPolicy()
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._clock = clock
        self.state = RunState.IDLE

    async def run(self) -> AggregateResult:
        started = self._clock()
        run_at = self._now()

        self.state = RunState.DISPATCHING
        logger.info("[pipeline] dispatching sources=%d", len(self.adapters))
        tasks = [asyncio.ensure_future(a.execute()) for a in self.adapters]

        self.state = RunState.COLLECTING
        results = await asyncio.gather(*tasks, return_exceptions=True)

        self.state = RunState.MERGING
        events: List[CanonicalEvent] = []
        invalid: List[InvalidEvent] = []
        warnings: List[EventWarning] = []
        stats = AggregateStats(timestamp=run_at)

        for adapter, res in zip(self.adapters, results):
            if isinstance(res, BaseException):
                if not isinstance(res, Exception):
                    raise res
                res = self._unexpected_failure(adapter, res)

            name = res.source_name or getattr(adapter, "venue_name", "")

            if res.status == AdapterStatus.FAILURE:
                stats.failed += 1
                ctx = res.error_context
                stats.venues[name] = SourceStats(
                    status="error",
                    duration_ms=res.duration_ms,
                    source_tag=res.source_tag,
                    error=ctx.message if ctx else "Unknown error",
                    error_context=ctx,
                )
                logger.error(
                    "[pipeline] SOURCE_FAILED venue=%s | %s", name, ctx.message if ctx else "Unknown error"
                )
                continue

            if not res.events:
                stats.no_events += 1
                stats.venues[name] = SourceStats(
                    status="no_events",
                    duration_ms=res.duration_ms,
                    source_tag=res.source_tag,
                )
                logger.warning("[pipeline] NO_EVENTS venue=%s", name)
                continue

            context = ValidationContext(venue=name, source_tag=res.source_tag, now=run_at)
            batch = validate_events(res.events, context, self.policy)

            events.extend(batch.valid)
            invalid.extend(batch.invalid)
            warnings.extend(batch.warnings)

            stats.successful += 1
            if batch.warnings:
                stats.with_warnings += 1
            stats.venues[name] = SourceStats(
                status="success",
                events=batch.valid_count,
                invalid_events=batch.invalid_count,
                warnings=len(batch.warnings),
                raw_events=batch.total,
                validation_errors=batch.error_counts,
                warning_types=batch.warning_counts,
                duration_ms=res.duration_ms,
                source_tag=res.source_tag,
            )
            logger.info(
                "[pipeline] venue=%s valid=%d raw=%d invalid=%d warnings=%d",
                name,
                batch.valid_count,
                batch.total,
                batch.invalid_count,
                len(batch.warnings),
            )

        events.sort(key=event_sort_key)

        stats.total_events = len(events)
        stats.null_dates = sum(1 for e in events if e.date_unix is None)
        stats.total_errors = len(invalid)
        stats.total_warnings = len(warnings)
        stats.execution_time_ms = int((self._clock() - started) * 1000)
        stats.rate_limiter = self.limiter.get_stats()

        result = AggregateResult(events=events, stats=stats, invalid=invalid, warnings=warnings)

        if self.sink is not None:
            self.sink.write(result)

        self.state = RunState.DONE
        return result

    def _unexpected_failure(self, adapter: BaseAdapter, exc: Exception) -> AdapterOutcome:
        venue = getattr(adapter, "venue_name", "") or ""
        logger.error(
            "[pipeline] UNEXPECTED venue=%s | %s: %s", venue, type(exc).__name__, exc
        )
        return AdapterOutcome(
            source_name=venue,
            source_tag=getattr(adapter, "source_tag", type(adapter).__name__),
            status=AdapterStatus.FAILURE,
            error_context=build_error_context(
                exc, venue=venue, url=getattr(adapter, "base_url", None)
            ),
        )


def summary_line(result: AggregateResult) -> str:
    s = result.stats
    return (
        f"[pipeline][summary]"
        f" sources={len(s.venues)}"
        f" successful={s.successful}"
        f" failed={s.failed}"
        f" no_events={s.no_events}"
        f" with_warnings={s.with_warnings}"
        f" events={s.total_events}"
        f" null_dates={s.null_dates}"
        f" invalid={s.total_errors}"
        f" warnings={s.total_warnings}"
        f" execution_time_ms={s.execution_time_ms}"
    )


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="gigcrawler", description="Scrape venue listings into events.json")
    p.add_argument("--output-dir", default=OUTPUT_DIR, help="directory for the JSON output files")
    p.add_argument(
        "--venue",
        action="append",
        default=None,
        help="only scrape this venue (repeatable)",
    )
    p.add_argument("--dry-run", action="store_true", help="scrape and validate without writing files")
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    limiter = RateLimiter(
        max_concurrent=RATE_LIMIT_MAX_CONCURRENT,
        requests_per_second=RATE_LIMIT_REQUESTS_PER_SECOND,
        min_delay_s=RATE_LIMIT_MIN_DELAY_S,
        max_delay_s=RATE_LIMIT_MAX_DELAY_S,
        backoff_multiplier=RATE_LIMIT_BACKOFF_MULTIPLIER,
        default_timeout_s=RATE_LIMIT_TIMEOUT_S,
    )
    adapters = build_adapters(SOURCES, limiter=limiter, venues=args.venue)
    sink = None if args.dry_run else JsonFileSink(args.output_dir)

    orchestrator = Orchestrator(adapters, limiter=limiter, sink=sink)
    result = asyncio.run(orchestrator.run())

    # Deterministic, grep-friendly summary line.
    print(summary_line(result))


if __name__ == "__main__":
    main()
