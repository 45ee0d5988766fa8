from __future__ import annotations

from typing import List
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from ..base import BaseAdapter
from ..types import ExtractedItem


class HopeAndRuinAdapter(BaseAdapter):
    """
    Strategy:
    - Single events page, one card per gig
    - datetime_raw like "4th September 2025 at 7:30 pm"
    """

    def extract(self, soup: BeautifulSoup, page_url: str) -> List[ExtractedItem]:
        items: List[ExtractedItem] = []
        for card in soup.select(".events-list-alternate__card"):
            title = card.select_one(".heading-link")
            when = card.select_one(".meta--date")
            button = card.select_one(".card__button")
            href = button.get("href") if button else None
            items.append(
                ExtractedItem(
                    title_raw=title.get_text(strip=True) if title else "",
                    datetime_raw=when.get_text(strip=True) if when else "",
                    item_url=urljoin(page_url, href) if href else None,
                )
            )
        return items
