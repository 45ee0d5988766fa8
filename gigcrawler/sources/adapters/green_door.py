from __future__ import annotations

from typing import List
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from ..base import BaseAdapter
from ..types import ExtractedItem


class GreenDoorAdapter(BaseAdapter):
    """
    Strategy:
    - Events page with .event-card blocks
    - datetime_raw like "Tue, 2 Sep 2025" (no time)
    """

    def extract(self, soup: BeautifulSoup, page_url: str) -> List[ExtractedItem]:
        items: List[ExtractedItem] = []
        for card in soup.select(".event-card"):
            title = card.select_one(".event-card__title")
            when = card.select_one(".event-card__date")
            link = card.select_one(".event-card__link")
            href = link.get("href") if link else None
            items.append(
                ExtractedItem(
                    title_raw=title.get_text(strip=True) if title else "",
                    datetime_raw=when.get_text(strip=True) if when else "",
                    item_url=urljoin(page_url, href) if href else None,
                )
            )
        return items
