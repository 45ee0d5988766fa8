from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AdapterStatus(str, Enum):
    SUCCESS = "success"
    NO_RESULTS = "no_results"
    FAILURE = "failure"


class ErrorContext(BaseModel):
    """Structured description of why a source failed."""
    model_config = ConfigDict(frozen=True)

    error_type: str = "unknown"        # timeout | http_error | connection_error | configuration | unknown
    message: str
    venue: Optional[str] = None
    url: Optional[str] = None
    attempt: int = 1
    status_code: Optional[int] = None
    original_error: Optional[str] = None
    timestamp: datetime


class RawEvent(BaseModel):
    """One listing as extracted by an adapter. Never persisted directly."""
    title: str
    raw_date: str
    link: Optional[str] = None
    source_name: str

    date_unix: Optional[int] = None    # None = normalization failed
    scraped_at: datetime
    source_tag: str = ""


class CanonicalEvent(BaseModel):
    title: str
    raw_date: str
    venue: str
    link: Optional[str] = None
    date_unix: Optional[int] = None
    scraped_at: datetime
    source_tag: str = ""


class ValidationIssue(BaseModel):
    code: str
    message: str


class ValidationOutcome(BaseModel):
    valid: bool
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)
    sanitized_event: CanonicalEvent
    # trimmed input strings, kept verbatim so callers can see what was attempted
    attempted: Dict[str, Optional[str]] = Field(default_factory=dict)


class InvalidEvent(BaseModel):
    index: int
    source_name: str
    event: CanonicalEvent
    errors: List[ValidationIssue]


class EventWarning(BaseModel):
    index: int
    source_name: str
    title: str
    warnings: List[ValidationIssue]


class AdapterOutcome(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_name: str
    source_tag: str = ""
    status: AdapterStatus
    events: List[RawEvent] = Field(default_factory=list)
    error_context: Optional[ErrorContext] = None
    duration_ms: int = 0


class DomainStats(BaseModel):
    requests: int = 0
    successes: int = 0
    errors: int = 0
    consecutive_errors: int = 0
    last_request_time: Optional[float] = None

    @property
    def success_rate(self) -> float:
        if not self.requests:
            return 0.0
        return round(self.successes / self.requests * 100, 2)


class RateLimiterStats(BaseModel):
    active_requests: int = 0
    queue_length: int = 0
    consecutive_errors: int = 0
    last_request_time: Optional[float] = None
    domains: Dict[str, DomainStats] = Field(default_factory=dict)


class SourceStats(BaseModel):
    status: str                        # success | no_events | error
    events: int = 0
    invalid_events: int = 0
    warnings: int = 0
    raw_events: int = 0
    validation_errors: Dict[str, int] = Field(default_factory=dict)
    warning_types: Dict[str, int] = Field(default_factory=dict)
    duration_ms: int = 0
    source_tag: str = ""
    error: Optional[str] = None
    error_context: Optional[ErrorContext] = None


class AggregateStats(BaseModel):
    timestamp: datetime
    successful: int = 0
    failed: int = 0
    no_events: int = 0
    with_warnings: int = 0
    total_events: int = 0
    null_dates: int = 0
    total_errors: int = 0
    total_warnings: int = 0
    execution_time_ms: int = 0
    venues: Dict[str, SourceStats] = Field(default_factory=dict)
    rate_limiter: RateLimiterStats = Field(default_factory=RateLimiterStats)


class AggregateResult(BaseModel):
    events: List[CanonicalEvent] = Field(default_factory=list)
    stats: AggregateStats
    invalid: List[InvalidEvent] = Field(default_factory=list)
    warnings: List[EventWarning] = Field(default_factory=list)
