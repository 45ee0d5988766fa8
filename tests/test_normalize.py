# tests/test_normalize.py
"""
DateNormalizer: listing date text -> epoch milliseconds.

All tests run in Europe/London with a frozen "now" so year inference and
relative forms are deterministic.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from gigcrawler.errors import DateFormatError
from gigcrawler.normalize import DATE_PATTERNS, DateNormalizer, to_24h, to_unix_ms

LONDON = ZoneInfo("Europe/London")
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=LONDON)


def _ms(*args) -> int:
    return to_unix_ms(datetime(*args, tzinfo=LONDON))


@pytest.fixture
def normalizer() -> DateNormalizer:
    return DateNormalizer("Europe/London", now=lambda: NOW)


# ---------------------------------------------------------------------------
# Known listing formats
# ---------------------------------------------------------------------------

class TestKnownFormats:
    def test_ordinal_with_at_time(self, normalizer):
        assert normalizer.normalize("4th September 2025 at 7:30 pm") == 1757010600000

    def test_weekday_comma_date(self, normalizer):
        assert normalizer.normalize("Tue, 2 Sep 2025") == 1756767600000

    def test_uppercase_month_abbreviation(self, normalizer):
        assert normalizer.normalize("04 SEP 2025") == 1756940400000

    def test_weekday_ordinal_comma_year(self, normalizer):
        assert normalizer.normalize("Saturday 6th September, 2025") == 1757113200000

    def test_numeric_with_meridiem(self, normalizer):
        assert normalizer.normalize("05/09/25 7:30pm") == _ms(2025, 9, 5, 19, 30)

    def test_leap_day_accepted(self, normalizer):
        assert normalizer.normalize("29/02/24 3:45pm") == _ms(2024, 2, 29, 15, 45)

    def test_whitespace_is_collapsed(self, normalizer):
        assert normalizer.normalize("  Tue,   2 Sep\n2025 ") == 1756767600000

    def test_iso_date_time(self, normalizer):
        assert normalizer.normalize("2025-11-27T19:00") == _ms(2025, 11, 27, 19, 0)
        assert normalizer.matching_pattern("2025-11-27T19:00") == "iso"

    def test_iso_date_only(self, normalizer):
        assert normalizer.normalize("2025-11-27") == _ms(2025, 11, 27)


# ---------------------------------------------------------------------------
# Single patterns
# ---------------------------------------------------------------------------

class TestPatterns:
    def test_pattern_order_is_stable(self):
        assert [p.name for p in DATE_PATTERNS] == [
            "numeric_with_meridiem",
            "locale",
            "ordinal_date_time",
            "weekday_date",
            "weekday_ordinal_date",
            "weekday_date_time",
            "numeric_date",
            "simple_date",
            "ordinal_time_no_year",
            "named_day",
            "relative",
            "iso",
            "weekday_ordinal_no_year",
        ]

    def test_ordinal_date_time_with_dash(self, normalizer):
        got = normalizer.try_pattern("ordinal_date_time", "31st October 2024 - 7:30 pm")
        assert got == _ms(2024, 10, 31, 19, 30)

    def test_ordinal_date_time_with_at(self, normalizer):
        got = normalizer.try_pattern("ordinal_date_time", "4th September 2025 at 7:30 pm")
        assert got == 1757010600000

    def test_weekday_date_with_year(self, normalizer):
        assert normalizer.try_pattern("weekday_date", "Tue, 5 Nov 2024") == _ms(2024, 11, 5)

    def test_weekday_date_without_year_uses_current_year(self, normalizer):
        assert normalizer.normalize("Monday 10 March") == _ms(2026, 3, 10)
        assert normalizer.matching_pattern("Monday 10 March") == "weekday_date"

    def test_weekday_ordinal_date(self, normalizer):
        got = normalizer.try_pattern("weekday_ordinal_date", "Tuesday 11th March, 2025")
        assert got == _ms(2025, 3, 11)

    def test_weekday_date_time(self, normalizer):
        assert normalizer.normalize("Fri 14 Mar - 7:00pm") == _ms(2026, 3, 14, 19, 0)
        assert normalizer.matching_pattern("Fri 14 Mar - 7:00pm") == "weekday_date_time"

    def test_en_dash_connector(self, normalizer):
        assert normalizer.normalize("Fri 14 Mar – 7:00pm") == _ms(2026, 3, 14, 19, 0)

    def test_numeric_date(self, normalizer):
        assert normalizer.normalize("1/12/24") == _ms(2024, 12, 1)
        assert normalizer.matching_pattern("1/12/24") == "numeric_date"

    def test_simple_date(self, normalizer):
        assert normalizer.try_pattern("simple_date", "12 Nov 2024") == _ms(2024, 11, 12)

    def test_ordinal_time_no_year(self, normalizer):
        assert normalizer.normalize("14th Nov - 6pm") == _ms(2026, 11, 14, 18, 0)
        assert normalizer.matching_pattern("14th Nov - 6pm") == "ordinal_time_no_year"

    def test_today_and_yesterday(self, normalizer):
        assert normalizer.normalize("today") == _ms(2026, 10, 19)
        assert normalizer.normalize("Yesterday") == _ms(2026, 10, 18)

    def test_relative(self, normalizer):
        expected = to_unix_ms(NOW - timedelta(days=3))
        assert normalizer.normalize("3 days ago") == expected

    def test_relative_without_count(self, normalizer):
        assert normalizer.normalize("week ago") == to_unix_ms(NOW - timedelta(weeks=1))

    def test_inferred_year_upcoming(self, normalizer):
        assert normalizer.normalize("Thu 27th Nov") == _ms(2026, 11, 27)
        assert normalizer.matching_pattern("Thu 27th Nov") == "weekday_ordinal_no_year"

    def test_inferred_year_rolls_forward_when_passed(self, normalizer):
        assert normalizer.normalize("Tue 5th Jan") == _ms(2027, 1, 5)

    def test_locale_needs_a_four_digit_year(self, normalizer):
        assert normalizer.try_pattern("locale", "Thu 27th Nov") is None

    def test_locale_leaves_iso_to_iso_pattern(self, normalizer):
        assert normalizer.try_pattern("locale", "2025-11-27") is None

    def test_pattern_not_applying_returns_none(self, normalizer):
        assert normalizer.try_pattern("numeric_date", "Tue, 2 Sep 2025") is None

    def test_unknown_pattern_name(self, normalizer):
        with pytest.raises(KeyError):
            normalizer.try_pattern("nope", "today")


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

class TestFailures:
    @pytest.mark.parametrize(
        "value",
        ["29/02/25 7:30pm", "31/04/25 7:30pm", "05/09/25 13:30pm", "invalid date", "", "   "],
    )
    def test_unparseable_text(self, normalizer, value):
        with pytest.raises(DateFormatError) as exc:
            normalizer.normalize(value)
        assert exc.value.value == value

    def test_none(self, normalizer):
        with pytest.raises(DateFormatError):
            normalizer.normalize(None)

    def test_bool_is_not_a_timestamp(self, normalizer):
        with pytest.raises(DateFormatError):
            normalizer.normalize(True)

    def test_date_format_error_is_value_error(self, normalizer):
        with pytest.raises(ValueError):
            normalizer.normalize("not a date")

    def test_unsupported_type(self, normalizer):
        with pytest.raises(DateFormatError):
            normalizer.normalize(["4th September 2025"])


# ---------------------------------------------------------------------------
# Non-string input
# ---------------------------------------------------------------------------

class TestNonString:
    def test_seconds_are_scaled(self, normalizer):
        assert normalizer.normalize(1757010600) == 1757010600000

    def test_milliseconds_pass_through(self, normalizer):
        assert normalizer.normalize(1757010600000) == 1757010600000

    def test_integral_float(self, normalizer):
        assert normalizer.normalize(1757010600.0) == 1757010600000

    @pytest.mark.parametrize("value", [12345, -1757010600, 1757010600.5, 17570106000000])
    def test_bad_numbers(self, normalizer, value):
        with pytest.raises(DateFormatError):
            normalizer.normalize(value)

    def test_aware_datetime(self, normalizer):
        dt = datetime(2025, 9, 4, 18, 30, tzinfo=timezone.utc)
        assert normalizer.normalize(dt) == 1757010600000

    def test_naive_datetime_is_local(self, normalizer):
        assert normalizer.normalize(datetime(2025, 9, 4, 19, 30)) == 1757010600000

    def test_date_is_local_midnight(self, normalizer):
        assert normalizer.normalize(date(2025, 9, 4)) == 1756940400000


def test_to_24h():
    assert to_24h(12, "am") == 0
    assert to_24h(12, "pm") == 12
    assert to_24h(7, "PM") == 19
    assert to_24h(7, None) == 7
