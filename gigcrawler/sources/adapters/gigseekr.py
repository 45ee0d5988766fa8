from __future__ import annotations

from typing import List
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from ..base import BaseAdapter
from ..types import ExtractedItem

GIGSEEKR_ROOT = "https://www.gigseekr.com"


def _part(event: Tag, selector: str) -> str:
    el = event.select_one(selector)
    return el.get_text(strip=True) if el else ""


class GigseekrVenueAdapter(BaseAdapter):
    """
    GigSeekr venue pages (Concorde 2, Chalk, Prince Albert share the layout).

    Strategy:
    - Day / month / year live in separate spans; join them as "04 SEP 2025"
    - Links are site-relative
    """

    def extract(self, soup: BeautifulSoup, page_url: str) -> List[ExtractedItem]:
        items: List[ExtractedItem] = []
        for event in soup.select(".event-container .basic-event"):
            day = _part(event, ".date-container .day")
            month = _part(event, ".date-container .month")
            year = _part(event, ".date-container .year")
            anchor = event.select_one(".details h3 a")
            href = anchor.get("href") if anchor else None
            items.append(
                ExtractedItem(
                    title_raw=anchor.get_text(strip=True) if anchor else "",
                    datetime_raw=" ".join(p for p in (day, month, year) if p),
                    item_url=urljoin(GIGSEEKR_ROOT, href) if href else None,
                )
            )
        return items
