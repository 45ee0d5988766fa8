from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, List, Optional, Tuple
from zoneinfo import ZoneInfo

import dateparser

from .config import TIMEZONE
from .errors import DateFormatError


# ============================================================
# Helpers
# ============================================================

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

MONTHS = {
    "january": 1, "jan": 1,
    "february": 2, "feb": 2,
    "march": 3, "mar": 3,
    "april": 4, "apr": 4,
    "may": 5,
    "june": 6, "jun": 6,
    "july": 7, "jul": 7,
    "august": 8, "aug": 8,
    "september": 9, "sep": 9, "sept": 9,
    "october": 10, "oct": 10,
    "november": 11, "nov": 11,
    "december": 12, "dec": 12,
}

# Approximate lengths for "<N> <unit> ago"
RELATIVE_UNITS_S = {
    "second": 1,
    "minute": 60,
    "hour": 60 * 60,
    "day": 24 * 60 * 60,
    "week": 7 * 24 * 60 * 60,
    "month": 30 * 24 * 60 * 60,
    "year": 365 * 24 * 60 * 60,
}


def to_unix_ms(dt: datetime) -> int:
    """Milliseconds since the epoch for a timezone-aware datetime."""
    return (dt - _EPOCH) // timedelta(milliseconds=1)


def to_24h(hour: int, meridiem: Optional[str]) -> int:
    """12-hour clock to 24-hour clock. Without a meridiem the hour is kept."""
    if not meridiem:
        return hour
    pm = meridiem.lower() == "pm"
    if pm and hour != 12:
        return hour + 12
    if not pm and hour == 12:
        return 0
    return hour


def _clean(text: str) -> str:
    return " ".join(text.split())


@dataclass(frozen=True)
class _Ctx:
    tz_name: str
    tz: ZoneInfo
    now: datetime  # aware, in tz


def _local(
    ctx: _Ctx,
    year: int,
    month: int,
    day: int,
    hour: int = 0,
    minute: int = 0,
    second: int = 0,
) -> Optional[datetime]:
    """Build a local datetime; None when the calendar fields are invalid."""
    try:
        return datetime(year, month, day, hour, minute, second, tzinfo=ctx.tz)
    except ValueError:
        return None


def _clock(m: re.Match[str]) -> Optional[Tuple[int, int]]:
    groups = m.groupdict()
    if not groups.get("hour"):
        return 0, 0
    hour = to_24h(int(groups["hour"]), groups.get("meridiem"))
    minute = int(groups["minute"]) if groups.get("minute") else 0
    if hour > 23 or minute > 59:
        return None
    return hour, minute


# ============================================================
# Pattern builders
# ============================================================

def _build_numeric_with_time(m: re.Match[str], ctx: _Ctx) -> Optional[datetime]:
    # DD/MM/YY H:MMam, UK day-first
    hm = _clock(m)
    if hm is None:
        return None
    return _local(ctx, 2000 + int(m["year"]), int(m["month"]), int(m["day"]), *hm)


def _build_locale(m: re.Match[str], ctx: _Ctx) -> Optional[datetime]:
    text = m.string
    # ISO text is owned by the strict ISO pattern
    if _ISO_RE.match(text):
        return None
    try:
        parsed = dateparser.parse(
            text,
            languages=["en"],
            settings={
                "TIMEZONE": ctx.tz_name,
                "RETURN_AS_TIMEZONE_AWARE": True,
                "DATE_ORDER": "DMY",
                "REQUIRE_PARTS": ["day", "month", "year"],
            },
        )
    except (ValueError, OverflowError):
        return None
    if parsed is not None and parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=ctx.tz)
    return parsed


def _build_month_name(m: re.Match[str], ctx: _Ctx) -> Optional[datetime]:
    """Day + month name, optional year (current year when absent), optional time."""
    month = MONTHS.get(m["month"].lower())
    if month is None:
        return None
    hm = _clock(m)
    if hm is None:
        return None
    year = int(m["year"]) if m.groupdict().get("year") else ctx.now.year
    return _local(ctx, year, month, int(m["day"]), *hm)


def _build_numeric_date(m: re.Match[str], ctx: _Ctx) -> Optional[datetime]:
    return _local(ctx, 2000 + int(m["year"]), int(m["month"]), int(m["day"]))


def _build_named_day(m: re.Match[str], ctx: _Ctx) -> Optional[datetime]:
    day = ctx.now.date()
    if m["word"].lower() == "yesterday":
        day -= timedelta(days=1)
    return _local(ctx, day.year, day.month, day.day)


def _build_relative(m: re.Match[str], ctx: _Ctx) -> Optional[datetime]:
    amount = int(m["amount"]) if m["amount"] else 1
    return ctx.now - timedelta(seconds=amount * RELATIVE_UNITS_S[m["unit"].lower()])


def _build_iso(m: re.Match[str], ctx: _Ctx) -> Optional[datetime]:
    hour = int(m["hour"]) if m["hour"] else 0
    minute = int(m["minute"]) if m["minute"] else 0
    second = int(m["second"]) if m["second"] else 0
    if hour > 23 or minute > 59 or second > 59:
        return None
    return _local(ctx, int(m["year"]), int(m["month"]), int(m["day"]), hour, minute, second)


def _build_inferred_year(m: re.Match[str], ctx: _Ctx) -> Optional[datetime]:
    """
    Year-less listing: take the current year, or next year if that date
    has already passed. Weekly listings that span exactly one year can
    land in the wrong year; the rule is kept as-is.
    """
    month = MONTHS.get(m["month"].lower())
    if month is None:
        return None
    day = int(m["day"])
    candidate = _local(ctx, ctx.now.year, month, day)
    if candidate is None:
        # 29 Feb in a non-leap current year
        return _local(ctx, ctx.now.year + 1, month, day)
    if candidate < ctx.now:
        return _local(ctx, ctx.now.year + 1, month, day)
    return candidate


# ============================================================
# Pattern table (order matters: first match wins)
# ============================================================

_DASH = "[-–—―]"
_CONNECT = rf"(?:\s+{_DASH}\s*|\s*{_DASH}\s+)"
_ORD = "(?:st|nd|rd|th)"
_I = re.IGNORECASE

_ISO_RE = re.compile(
    r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"(?:T(?P<hour>\d{2}):(?P<minute>\d{2})(?::(?P<second>\d{2}))?)?$"
)


@dataclass(frozen=True)
class DatePattern:
    name: str
    regex: re.Pattern[str]
    build: Callable[[re.Match[str], _Ctx], Optional[datetime]]

    def parse(self, text: str, ctx: _Ctx) -> Optional[datetime]:
        m = self.regex.search(text)
        if not m:
            return None
        return self.build(m, ctx)


DATE_PATTERNS: List[DatePattern] = [
    # 05/09/25 7:30pm
    DatePattern(
        "numeric_with_meridiem",
        re.compile(
            r"^(?P<day>\d{1,2})/(?P<month>\d{1,2})/(?P<year>\d{2})\s+"
            r"(?P<hour>\d{1,2}):(?P<minute>\d{2})\s*(?P<meridiem>am|pm)$",
            _I,
        ),
        _build_numeric_with_time,
    ),
    # Anything carrying an explicit four-digit year: "Tue, 2 Sep 2025", "2 September 2025 20:00"
    DatePattern("locale", re.compile(r"\b\d{4}\b"), _build_locale),
    # 4th September 2025 at 7:30 pm / 31st October 2024 - 7:30 pm
    DatePattern(
        "ordinal_date_time",
        re.compile(
            rf"^(?P<day>\d{{1,2}}){_ORD}\s+(?P<month>[a-z]+)\s+(?P<year>\d{{4}})\s*"
            rf"(?:{_DASH}|at)\s*(?P<hour>\d{{1,2}}):(?P<minute>\d{{2}})\s*(?P<meridiem>am|pm)$",
            _I,
        ),
        _build_month_name,
    ),
    # Tue, 5 Nov 2024 / Monday 10 March
    DatePattern(
        "weekday_date",
        re.compile(
            r"^[a-z]+,?\s+(?P<day>\d{1,2})\s+(?P<month>[a-z]+)(?:\s+(?P<year>\d{4}))?$",
            _I,
        ),
        _build_month_name,
    ),
    # Tuesday 11th March, 2025
    DatePattern(
        "weekday_ordinal_date",
        re.compile(
            rf"^[a-z]+\s+(?P<day>\d{{1,2}}){_ORD}\s+(?P<month>[a-z]+),?\s+(?P<year>\d{{4}})$",
            _I,
        ),
        _build_month_name,
    ),
    # Fri 14 Mar - 7:00pm
    DatePattern(
        "weekday_date_time",
        re.compile(
            rf"^[a-z]+\s+(?P<day>\d{{1,2}})\s+(?P<month>[a-z]+){_CONNECT}"
            r"(?P<hour>\d{1,2}):(?P<minute>\d{2})\s*(?P<meridiem>am|pm)$",
            _I,
        ),
        _build_month_name,
    ),
    # 1/12/24
    DatePattern(
        "numeric_date",
        re.compile(r"^(?P<day>\d{1,2})/(?P<month>\d{1,2})/(?P<year>\d{2})$"),
        _build_numeric_date,
    ),
    # 12 Nov 2024
    DatePattern(
        "simple_date",
        re.compile(r"^(?P<day>\d{1,2})\s+(?P<month>[a-z]+)\s+(?P<year>\d{4})$", _I),
        _build_month_name,
    ),
    # 14th Nov - 6pm
    DatePattern(
        "ordinal_time_no_year",
        re.compile(
            rf"^(?P<day>\d{{1,2}}){_ORD}?\s+(?P<month>[a-z]+){_CONNECT}"
            r"(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?\s*(?P<meridiem>am|pm)$",
            _I,
        ),
        _build_month_name,
    ),
    DatePattern("named_day", re.compile(r"^(?P<word>today|yesterday)$", _I), _build_named_day),
    # 3 days ago
    DatePattern(
        "relative",
        re.compile(
            r"^(?P<amount>\d+)?\s*(?P<unit>second|minute|hour|day|week|month|year)s?\s+ago$",
            _I,
        ),
        _build_relative,
    ),
    # 2025-11-27 / 2025-11-27T19:00 / 2025-11-27T19:00:00
    DatePattern("iso", _ISO_RE, _build_iso),
    # Thu 27th Nov
    DatePattern(
        "weekday_ordinal_no_year",
        re.compile(rf"^[a-z]+\s+(?P<day>\d{{1,2}}){_ORD}\s+(?P<month>[a-z]+)$", _I),
        _build_inferred_year,
    ),
]


# ============================================================
# Normalizer
# ============================================================

class DateNormalizer:
    """
    Turns listing date text (or epoch numbers, or datetimes) into
    milliseconds since the epoch.

    Calendar fields are interpreted in ``tz_name``. ``now`` is injectable so
    year inference and relative forms are deterministic in tests.
    """

    def __init__(
        self,
        tz_name: str = TIMEZONE,
        now: Optional[Callable[[], datetime]] = None,
        patterns: Optional[List[DatePattern]] = None,
    ) -> None:
        self.tz_name = tz_name
        self.tz = ZoneInfo(tz_name)
        self._now = now
        self.patterns = list(patterns) if patterns is not None else list(DATE_PATTERNS)

    def now(self) -> datetime:
        if self._now is None:
            return datetime.now(self.tz)
        current = self._now()
        if current.tzinfo is None:
            current = current.replace(tzinfo=self.tz)
        return current.astimezone(self.tz)

    def _ctx(self) -> _Ctx:
        return _Ctx(tz_name=self.tz_name, tz=self.tz, now=self.now())

    def normalize(self, value: Any) -> int:
        """Return epoch milliseconds or raise DateFormatError."""
        if value is None or isinstance(value, bool):
            raise DateFormatError(value)

        if isinstance(value, datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=self.tz)
            return to_unix_ms(value)

        if isinstance(value, date):
            return to_unix_ms(datetime(value.year, value.month, value.day, tzinfo=self.tz))

        if isinstance(value, (int, float)):
            return _from_number(value)

        if isinstance(value, str):
            text = _clean(value)
            if text:
                ctx = self._ctx()
                for pattern in self.patterns:
                    dt = pattern.parse(text, ctx)
                    if dt is not None:
                        return to_unix_ms(dt)

        raise DateFormatError(value)

    def try_pattern(self, name: str, text: str) -> Optional[int]:
        """Run a single named pattern; None when it does not apply."""
        for pattern in self.patterns:
            if pattern.name == name:
                dt = pattern.parse(_clean(text), self._ctx())
                return to_unix_ms(dt) if dt is not None else None
        raise KeyError(name)

    def matching_pattern(self, text: str) -> Optional[str]:
        """Name of the first pattern that accepts ``text`` (debug helper)."""
        cleaned = _clean(text or "")
        ctx = self._ctx()
        for pattern in self.patterns:
            if pattern.parse(cleaned, ctx) is not None:
                return pattern.name
        return None


def _from_number(value: float) -> int:
    if isinstance(value, float):
        if not value.is_integer():
            raise DateFormatError(value, "Invalid numeric timestamp format")
        value = int(value)
    if value < 0:
        raise DateFormatError(value, "Invalid numeric timestamp format")
    digits = len(str(value))
    if digits == 10:
        return value * 1000
    if digits == 13:
        return value
    raise DateFormatError(value, "Invalid numeric timestamp format")


def normalize(value: Any, now: Optional[Callable[[], datetime]] = None) -> int:
    """Normalize with the configured TIMEZONE."""
    return DateNormalizer(now=now).normalize(value)
