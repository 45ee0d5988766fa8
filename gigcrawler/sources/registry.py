from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Type

from ..errors import ConfigurationError
from ..normalize import DateNormalizer
from ..rate_limiter import RateLimiter
from .adapters.gigseekr import GigseekrVenueAdapter
from .adapters.green_door import GreenDoorAdapter
from .adapters.hope_and_ruin import HopeAndRuinAdapter
from .adapters.wegottickets import WeGotTicketsAdapter
from .base import BaseAdapter
from .http import FetchFn, RetryingFetcher
from .types import SourceConfig

logger = logging.getLogger(__name__)


ADAPTERS: Dict[str, Type[BaseAdapter]] = {
    "hope_and_ruin": HopeAndRuinAdapter,
    "green_door": GreenDoorAdapter,
    "gigseekr": GigseekrVenueAdapter,
    "wegottickets": WeGotTicketsAdapter,
}


SOURCES: List[SourceConfig] = [
    SourceConfig(
        venue_name="Hope & Ruin",
        adapter="hope_and_ruin",
        base_url="https://www.hope.pub/events/",
        domain="hope.pub",
    ),
    SourceConfig(
        venue_name="Green Door Store",
        adapter="green_door",
        base_url="https://thegreendoorstore.co.uk/events/",
        domain="thegreendoorstore.co.uk",
    ),
    SourceConfig(
        venue_name="Concorde 2",
        adapter="gigseekr",
        base_url="https://www.gigseekr.com/uk/en/brighton/concorde-2/venue/jk",
        domain="gigseekr.com",
    ),
    SourceConfig(
        venue_name="Chalk",
        adapter="gigseekr",
        base_url="https://www.gigseekr.com/uk/en/brighton/chalk/venue/8kq",
        domain="gigseekr.com",
    ),
    SourceConfig(
        venue_name="Folklore Rooms",
        adapter="wegottickets",
        base_url="https://wegottickets.com/location/23904",
        domain="wegottickets.com",
    ),
    SourceConfig(
        venue_name="Prince Albert",
        adapter="gigseekr",
        base_url="https://www.gigseekr.com/uk/en/brighton/the-prince-albert/venue/6a",
        domain="gigseekr.com",
    ),
    SourceConfig(
        venue_name="Pipeline",
        adapter="wegottickets",
        base_url="https://wegottickets.com/location/20025",
        domain="wegottickets.com",
    ),
]


def get_adapter(
    cfg: SourceConfig,
    *,
    limiter: RateLimiter,
    normalizer: Optional[DateNormalizer] = None,
    fetch: Optional[FetchFn] = None,
) -> BaseAdapter:
    cls = ADAPTERS.get(cfg.adapter)
    if cls is None:
        raise ConfigurationError(
            f"Unknown adapter {cfg.adapter!r} for venue {cfg.venue_name!r}"
        )
    fetcher = RetryingFetcher(cfg.venue_name, fetch=fetch) if fetch is not None else None
    return cls(cfg, limiter=limiter, fetcher=fetcher, normalizer=normalizer)


def build_adapters(
    sources: Iterable[SourceConfig],
    *,
    limiter: RateLimiter,
    normalizer: Optional[DateNormalizer] = None,
    venues: Optional[Iterable[str]] = None,
) -> List[BaseAdapter]:
    """
    Instantiate enabled sources. A source with an unknown adapter is
    logged and skipped; it does not stop the others.
    """
    wanted = {v.strip().lower() for v in venues} if venues else None
    adapters: List[BaseAdapter] = []

    for cfg in sources:
        if not cfg.enabled:
            continue
        if wanted is not None and cfg.venue_name.strip().lower() not in wanted:
            continue
        try:
            adapters.append(get_adapter(cfg, limiter=limiter, normalizer=normalizer))
        except ConfigurationError as e:
            logger.error("[sources] ERROR get_adapter failed venue=%s | %s", cfg.venue_name, e)
            continue

    logger.info("[sources] count=%d", len(adapters))
    for a in adapters:
        logger.info(
            "[sources] - venue=%s adapter=%s domain=%s priority=%d url=%s",
            a.venue_name,
            a.cfg.adapter,
            a.cfg.domain,
            a.cfg.priority,
            a.base_url,
        )
    return adapters
