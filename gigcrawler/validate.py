"""
Event validation.

Errors make an event unusable (missing field, bad link, no date, date
outside the plausible window). Warnings flag suspicious but usable events
(short title, past date, near-duplicate title within the same source).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from .config import VALIDATION_MAX_FUTURE_YEARS, VALIDATION_MIN_DATE
from .errors import ValidationError
from .models import (
    CanonicalEvent,
    EventWarning,
    InvalidEvent,
    RawEvent,
    ValidationIssue,
    ValidationOutcome,
)
from .sanitize import is_valid_url, sanitize_title, sanitize_url, sanitize_venue

logger = logging.getLogger(__name__)


# Error codes
MISSING_TITLE = "missing_title"
MISSING_DATE = "missing_date"
MISSING_VENUE = "missing_venue"
INVALID_LINK = "invalid_link"
DATE_PARSE_FAILED = "date_parse_failed"
INVALID_DATE_UNIX = "invalid_date_unix"
DATE_TOO_FAR_PAST = "date_too_far_past"
DATE_TOO_FAR_FUTURE = "date_too_far_future"

# Warning codes
SHORT_TITLE = "short_title"
PAST_EVENT = "past_event"
DUPLICATE_TITLE = "duplicate_title"


def _parse_min_date(s: str) -> datetime:
    d = datetime.fromisoformat(s.strip())
    if d.tzinfo is None:
        d = d.replace(tzinfo=timezone.utc)
    return d


@dataclass(frozen=True)
class ValidationPolicy:
    min_date: datetime = field(default_factory=lambda: _parse_min_date(VALIDATION_MIN_DATE))
    max_future_years: int = VALIDATION_MAX_FUTURE_YEARS
    min_title_length: int = 3
    past_grace: timedelta = timedelta(days=1)
    duplicate_threshold: float = 0.8


@dataclass
class ValidationContext:
    """Shared across one source's events: carries titles already seen."""
    venue: str = ""
    source_tag: str = ""
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    seen_titles: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Title similarity
# ---------------------------------------------------------------------------

def levenshtein(a: str, b: str) -> int:
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def title_similarity(a: str, b: str) -> float:
    """1 - levenshtein(a, b) / max(len(a), len(b)). Returns 0.0–1.0."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein(a, b) / longest


# ---------------------------------------------------------------------------
# Single event
# ---------------------------------------------------------------------------

def _add_years(dt: datetime, years: int) -> datetime:
    try:
        return dt.replace(year=dt.year + years)
    except ValueError:
        # 29 Feb
        return dt.replace(year=dt.year + years, day=28)


def _issue(code: str, message: str) -> ValidationIssue:
    return ValidationIssue(code=code, message=message)


def _check_date(
    date_unix: object,
    raw_date: str,
    context: ValidationContext,
    policy: ValidationPolicy,
    errors: List[ValidationIssue],
    warnings: List[ValidationIssue],
) -> Optional[int]:
    """Append date errors/warnings; return the usable timestamp or None."""
    if date_unix is None:
        errors.append(_issue(DATE_PARSE_FAILED, f'Date parsing failed for: "{raw_date}"'))
        return None

    if isinstance(date_unix, bool) or not isinstance(date_unix, int) or date_unix < 0:
        errors.append(_issue(INVALID_DATE_UNIX, "Invalid dateUnix format"))
        return None

    try:
        event_dt = datetime.fromtimestamp(date_unix / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        errors.append(_issue(INVALID_DATE_UNIX, "Invalid dateUnix format"))
        return None

    now = context.now if context.now.tzinfo else context.now.replace(tzinfo=timezone.utc)

    if event_dt < policy.min_date:
        errors.append(_issue(DATE_TOO_FAR_PAST, f"Event date too far in past: {event_dt.isoformat()}"))
    elif event_dt > _add_years(now, policy.max_future_years):
        errors.append(
            _issue(DATE_TOO_FAR_FUTURE, f"Event date too far in future: {event_dt.isoformat()}")
        )
    elif event_dt < now - policy.past_grace:
        warnings.append(_issue(PAST_EVENT, f"Event date is in the past: {event_dt.isoformat()}"))

    return date_unix


def validate_event(
    raw: RawEvent,
    context: ValidationContext,
    policy: Optional[ValidationPolicy] = None,
) -> ValidationOutcome:
    policy = policy or ValidationPolicy()

    title = (raw.title or "").strip()
    raw_date = (raw.raw_date or "").strip()
    venue = (raw.source_name or context.venue or "").strip()
    link = (raw.link or "").strip() or None

    errors: List[ValidationIssue] = []
    warnings: List[ValidationIssue] = []

    if not title:
        errors.append(_issue(MISSING_TITLE, "Missing or invalid title"))
    if not raw_date:
        errors.append(_issue(MISSING_DATE, "Missing or invalid date string"))
    if not venue:
        errors.append(_issue(MISSING_VENUE, "Missing or invalid venue"))
    if link is not None and not is_valid_url(link):
        errors.append(_issue(INVALID_LINK, f"Invalid link URL: {link}"))

    date_unix = _check_date(raw.date_unix, raw_date, context, policy, errors, warnings)

    if title:
        if len(title) < policy.min_title_length:
            warnings.append(_issue(SHORT_TITLE, f'Title is very short: "{title}"'))

        folded = title.casefold()
        for seen in context.seen_titles:
            if title_similarity(folded, seen) > policy.duplicate_threshold:
                warnings.append(_issue(DUPLICATE_TITLE, f'Title looks like a duplicate of "{seen}"'))
                break
        context.seen_titles.append(folded)

    sanitized = CanonicalEvent(
        title=sanitize_title(title),
        raw_date=raw_date,
        venue=sanitize_venue(venue),
        link=sanitize_url(link),
        date_unix=date_unix,
        scraped_at=raw.scraped_at,
        source_tag=raw.source_tag or context.source_tag,
    )

    return ValidationOutcome(
        valid=not errors,
        errors=errors,
        warnings=warnings,
        sanitized_event=sanitized,
        attempted={"title": title, "raw_date": raw_date, "venue": venue, "link": link},
    )


def ensure_valid(
    raw: RawEvent,
    context: ValidationContext,
    policy: Optional[ValidationPolicy] = None,
) -> CanonicalEvent:
    """Validate one event, raising ValidationError on structural errors."""
    outcome = validate_event(raw, context, policy)
    if not outcome.valid:
        raise ValidationError(outcome.errors)
    return outcome.sanitized_event


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

@dataclass
class BatchValidation:
    valid: List[CanonicalEvent] = field(default_factory=list)
    invalid: List[InvalidEvent] = field(default_factory=list)
    warnings: List[EventWarning] = field(default_factory=list)
    total: int = 0
    error_counts: Dict[str, int] = field(default_factory=dict)
    warning_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def valid_count(self) -> int:
        return len(self.valid)

    @property
    def invalid_count(self) -> int:
        return len(self.invalid)


def validate_events(
    events: Iterable[RawEvent],
    context: ValidationContext,
    policy: Optional[ValidationPolicy] = None,
) -> BatchValidation:
    """Validate a source's events with one shared context."""
    policy = policy or ValidationPolicy()
    result = BatchValidation()

    for index, raw in enumerate(events):
        result.total += 1
        outcome = validate_event(raw, context, policy)

        if outcome.valid:
            result.valid.append(outcome.sanitized_event)
        else:
            result.invalid.append(
                InvalidEvent(
                    index=index,
                    source_name=outcome.sanitized_event.venue,
                    event=outcome.sanitized_event,
                    errors=outcome.errors,
                )
            )
            for issue in outcome.errors:
                result.error_counts[issue.code] = result.error_counts.get(issue.code, 0) + 1
            logger.debug(
                "[validate] INVALID venue=%s title=%r | %s",
                context.venue,
                outcome.attempted.get("title"),
                "; ".join(i.message for i in outcome.errors),
            )

        if outcome.warnings:
            result.warnings.append(
                EventWarning(
                    index=index,
                    source_name=outcome.sanitized_event.venue,
                    title=outcome.sanitized_event.title,
                    warnings=outcome.warnings,
                )
            )
            for issue in outcome.warnings:
                result.warning_counts[issue.code] = result.warning_counts.get(issue.code, 0) + 1

    return result
