from __future__ import annotations

from typing import List
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from ..base import BaseAdapter
from ..types import ExtractedItem


class WeGotTicketsAdapter(BaseAdapter):
    """
    WeGotTickets location pages (Folklore Rooms, Pipeline).

    Strategy:
    - One block per listing; the first venue-details row holds the date,
      e.g. "Saturday 6th September, 2025"
    """

    def extract(self, soup: BeautifulSoup, page_url: str) -> List[ExtractedItem]:
        items: List[ExtractedItem] = []
        for block in soup.select(".content.block-group.chatterbox-margin"):
            title = block.select_one("h2 a")
            when = block.select_one(".venue-details tr:nth-of-type(1) td")
            button = block.select_one(".button")
            href = button.get("href") if button else None
            items.append(
                ExtractedItem(
                    title_raw=title.get_text(strip=True) if title else "",
                    datetime_raw=when.get_text(" ", strip=True) if when else "",
                    item_url=urljoin(page_url, href) if href else None,
                )
            )
        return items
