"""
Text and URL sanitizers for scraped listings.

Rules:
  1. Titles: markup removed, whitespace collapsed, max 200 chars,
     empty → "Untitled Event"
  2. Venue names: plain text, whitespace collapsed, max 100 chars,
     empty → "Unknown Venue"
  3. Links: only http/https with a host survive, anything else → None
"""
from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup

DEFAULT_TITLE = "Untitled Event"
DEFAULT_VENUE = "Unknown Venue"
MAX_TITLE_LENGTH = 200
MAX_VENUE_LENGTH = 100

ALLOWED_SCHEMES = frozenset({"http", "https"})

_SCRIPT_STYLE_RE = re.compile(r"<(script|style)\b.*?</\1\s*>", re.IGNORECASE | re.DOTALL)


def strip_markup(text: Optional[str]) -> str:
    """Drop tags (and script/style bodies), collapse whitespace."""
    s = text or ""
    if "<" in s:
        s = _SCRIPT_STYLE_RE.sub("", s)
        s = BeautifulSoup(s, "html.parser").get_text(" ")
    return " ".join(s.split())


def _truncate(s: str, limit: int) -> str:
    if len(s) <= limit:
        return s
    return s[: limit - 3].rstrip() + "..."


def sanitize_title(title: Optional[str]) -> str:
    s = _truncate(strip_markup(title), MAX_TITLE_LENGTH)
    return s or DEFAULT_TITLE


def sanitize_venue(venue: Optional[str]) -> str:
    s = _truncate(strip_markup(venue), MAX_VENUE_LENGTH)
    return s or DEFAULT_VENUE


def is_valid_url(url: Optional[str]) -> bool:
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme.lower() in ALLOWED_SCHEMES and bool(parsed.netloc)


def sanitize_url(url: Optional[str]) -> Optional[str]:
    if not is_valid_url(url):
        return None
    return url.strip()
