from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..config import RATE_LIMIT_TIMEOUT_S


@dataclass(frozen=True)
class SourceConfig:
    venue_name: str
    adapter: str
    base_url: str
    domain: str = "default"
    priority: int = 1
    timeout_s: float = RATE_LIMIT_TIMEOUT_S
    max_items: int = 200
    enabled: bool = True


@dataclass
class ExtractedItem:
    """
    Adapter-neutral extraction result, one listing row as found on the page.
    The adapter envelope turns these into RawEvent (normalizing the date).
    """
    title_raw: str
    datetime_raw: str
    item_url: Optional[str] = None
