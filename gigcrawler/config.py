import os
from dotenv import load_dotenv

load_dotenv()

_invalid = []


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        _invalid.append(name)
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        _invalid.append(name)
        return default


TIMEZONE = os.getenv("TIMEZONE", "Europe/London")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
OUTPUT_DIR = os.getenv("OUTPUT_DIR", "data")

RATE_LIMIT_MAX_CONCURRENT = _env_int("RATE_LIMIT_MAX_CONCURRENT", 3)
RATE_LIMIT_REQUESTS_PER_SECOND = _env_float("RATE_LIMIT_REQUESTS_PER_SECOND", 2.0)
RATE_LIMIT_MIN_DELAY_S = _env_float("RATE_LIMIT_MIN_DELAY_S", 0.5)
RATE_LIMIT_MAX_DELAY_S = _env_float("RATE_LIMIT_MAX_DELAY_S", 10.0)
RATE_LIMIT_BACKOFF_MULTIPLIER = _env_float("RATE_LIMIT_BACKOFF_MULTIPLIER", 2.0)
RATE_LIMIT_TIMEOUT_S = _env_float("RATE_LIMIT_TIMEOUT_S", 30.0)

FETCH_TIMEOUT_S = _env_float("FETCH_TIMEOUT_S", 10.0)
FETCH_RETRY_ATTEMPTS = _env_int("FETCH_RETRY_ATTEMPTS", 3)
FETCH_RETRY_DELAY_S = _env_float("FETCH_RETRY_DELAY_S", 1.0)
FETCH_USER_AGENT = os.getenv(
    "FETCH_USER_AGENT", "Mozilla/5.0 (compatible; Brighton-Gigs-Scraper/1.0)"
)

# Plausible event window: nothing before this date, nothing more than N years ahead
VALIDATION_MIN_DATE = os.getenv("VALIDATION_MIN_DATE", "2020-01-01")
VALIDATION_MAX_FUTURE_YEARS = _env_int("VALIDATION_MAX_FUTURE_YEARS", 2)

# Fail fast if a numeric setting cannot be read
if _invalid:
    raise EnvironmentError(
        f"Invalid numeric environment variables: {', '.join(_invalid)}. "
        "Check your .env file."
    )
