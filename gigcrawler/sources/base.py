from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, List, Optional

from bs4 import BeautifulSoup

from ..errors import ConfigurationError, DateFormatError, FetchError
from ..models import AdapterOutcome, AdapterStatus, ErrorContext, RawEvent
from ..normalize import DateNormalizer
from ..rate_limiter import RateLimiter
from .http import RetryingFetcher, build_error_context
from .types import ExtractedItem, SourceConfig

logger = logging.getLogger(__name__)


class BaseAdapter(ABC):
    """
    One venue. Subclasses only implement ``extract``; fetching (with
    retries), rate limiting, date normalization and the non-throwing
    ``execute`` envelope live here and in the helpers it holds.
    """

    def __init__(
        self,
        cfg: SourceConfig,
        *,
        limiter: RateLimiter,
        fetcher: Optional[RetryingFetcher] = None,
        normalizer: Optional[DateNormalizer] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cfg = cfg
        self.limiter = limiter
        self.fetcher = fetcher or RetryingFetcher(cfg.venue_name)
        self.normalizer = normalizer or DateNormalizer()
        self._clock = clock

    @property
    def venue_name(self) -> str:
        return self.cfg.venue_name

    @property
    def base_url(self) -> str:
        return self.cfg.base_url

    @property
    def source_tag(self) -> str:
        return type(self).__name__

    @abstractmethod
    def extract(self, soup: BeautifulSoup, page_url: str) -> List[ExtractedItem]:
        """Return listing rows found on the parsed page."""

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def validate_config(self) -> None:
        if not isinstance(self.cfg.venue_name, str) or not self.cfg.venue_name.strip():
            raise ConfigurationError("Venue name is required and must be a string")
        if not isinstance(self.cfg.base_url, str) or not self.cfg.base_url.strip():
            raise ConfigurationError("Base URL is required and must be a string")

    def parse_event_date(self, raw_date: str, title: str) -> Optional[int]:
        """Normalize, swallowing DateFormatError into None."""
        try:
            return self.normalizer.normalize(raw_date)
        except DateFormatError as e:
            logger.info(
                "[source] DATE_PARSE_FAILED venue=%s title=%r | %s", self.venue_name, title, e
            )
            return None

    def create_event(self, item: ExtractedItem, scraped_at: datetime) -> RawEvent:
        title = (item.title_raw or "").strip()
        raw_date = (item.datetime_raw or "").strip()
        link = (item.item_url or "").strip() or None
        return RawEvent(
            title=title,
            raw_date=raw_date,
            link=link,
            source_name=self.venue_name,
            date_unix=self.parse_event_date(raw_date, title),
            scraped_at=scraped_at,
            source_tag=self.source_tag,
        )

    async def fetch_document(self, url: str) -> BeautifulSoup:
        result = await self.fetcher.fetch_with_retry(url)
        return BeautifulSoup(result.text, "html.parser")

    # ------------------------------------------------------------------
    # Scrape + envelope
    # ------------------------------------------------------------------

    async def scrape(self) -> List[RawEvent]:
        return await self.limiter.execute(
            self._scrape_page,
            domain=self.cfg.domain,
            priority=self.cfg.priority,
            timeout_s=self.cfg.timeout_s,
        )

    async def _scrape_page(self) -> List[RawEvent]:
        soup = await self.fetch_document(self.base_url)
        items = self.extract(soup, self.base_url)[: self.cfg.max_items]
        scraped_at = self.now_utc()
        return [self.create_event(it, scraped_at) for it in items]

    async def execute(self) -> AdapterOutcome:
        """Validate config, scrape, time it. Never raises for source errors."""
        started = self._clock()
        try:
            self.validate_config()
            logger.info("[source] start venue=%s adapter=%s", self.venue_name, self.cfg.adapter)
            events = await self.scrape()
        except Exception as e:
            duration_ms = int((self._clock() - started) * 1000)
            context = self._error_context(e)
            logger.error(
                "[source] ERROR venue=%s duration_ms=%d | %s (%s)",
                self.venue_name,
                duration_ms,
                context.message,
                context.original_error,
            )
            return AdapterOutcome(
                source_name=self.venue_name or "",
                source_tag=self.source_tag,
                status=AdapterStatus.FAILURE,
                error_context=context,
                duration_ms=duration_ms,
            )

        duration_ms = int((self._clock() - started) * 1000)
        events = list(events or [])
        logger.info(
            "[source] done venue=%s events=%d duration_ms=%d",
            self.venue_name,
            len(events),
            duration_ms,
        )
        return AdapterOutcome(
            source_name=self.venue_name,
            source_tag=self.source_tag,
            status=AdapterStatus.SUCCESS if events else AdapterStatus.NO_RESULTS,
            events=events,
            duration_ms=duration_ms,
        )

    def _error_context(self, exc: Exception) -> ErrorContext:
        if isinstance(exc, FetchError) and exc.context is not None:
            return exc.context
        if isinstance(exc, ConfigurationError):
            return ErrorContext(
                error_type="configuration",
                message=str(exc),
                venue=self.venue_name or None,
                url=self.base_url or None,
                original_error=f"{type(exc).__name__}: {exc}",
                timestamp=datetime.now(timezone.utc),
            )
        return build_error_context(
            exc,
            venue=self.venue_name,
            url=self.base_url,
            timeout_s=self.cfg.timeout_s,
        )
