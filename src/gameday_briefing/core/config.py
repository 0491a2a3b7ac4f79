from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from gameday_briefing.core.constants import ESPN_INJURIES_URL, PFR_TRANSACTIONS_FEED
from gameday_briefing.core.errors import ConfigError

_repo_root = Path(__file__).resolve().parents[3]
load_dotenv(dotenv_path=_repo_root / ".env")


def _parse_csv_env(name: str) -> list[str]:
    """Parse a comma separated env var into a list."""
    raw = os.getenv(name, "").strip()
    if not raw:
        return []
    return [x.strip() for x in raw.split(",") if x.strip()]


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except Exception:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    return raw in {"1", "true", "True", "yes", "YES"}


# ==========================================
# Rate limiter / request queue
# ==========================================

RATE_LIMIT_ENABLED = _env_bool("RATE_LIMIT_ENABLED", True)
RATE_LIMIT_RESERVOIR = _env_int("RATE_LIMIT_RESERVOIR", 5)
RATE_LIMIT_REFILL_SEC = _env_float("RATE_LIMIT_REFILL_SEC", 60.0)
RATE_LIMIT_MIN_TIME_MS = _env_int("RATE_LIMIT_MIN_TIME_MS", 400)
RATE_LIMIT_MAX_CONCURRENT = _env_int("RATE_LIMIT_MAX_CONCURRENT", 1)

HTTP_TIMEOUT_SEC = _env_float("HTTP_TIMEOUT_SEC", 10.0)
HTTP_MAX_RETRIES = _env_int("HTTP_MAX_RETRIES", 3)
HTTP_BACKOFF_BASE_MS = _env_int("HTTP_BACKOFF_BASE_MS", 500)
HTTP_BACKOFF_CAP_MS = _env_int("HTTP_BACKOFF_CAP_MS", 8000)
HTTP_BACKOFF_JITTER_MS = _env_int("HTTP_BACKOFF_JITTER_MS", 250)

DEFERRED_MAX_ITEMS = _env_int("DEFERRED_MAX_ITEMS", 100)
DEFERRED_RETRY_CEILING = _env_int("DEFERRED_RETRY_CEILING", 6)
DEFERRED_DELAY_SEC = _env_float("DEFERRED_DELAY_SEC", 30.0)

# ==========================================
# Schedule
# ==========================================

SPORTSDB_BASE_URL = os.getenv("SPORTSDB_BASE_URL", "https://www.thesportsdb.com/api/v1/json").rstrip("/")
SPORTSDB_KEY = os.getenv("SPORTSDB_KEY", "123")
SCHEDULE_BASE_DAYS = _env_int("SCHEDULE_BASE_DAYS", 7)
SCHEDULE_MIN_GAMES = _env_int("SCHEDULE_MIN_GAMES", 3)
SCHEDULE_EXPANSION_STEP_DAYS = _env_int("SCHEDULE_EXPANSION_STEP_DAYS", 7)
SCHEDULE_MAX_EXPANSION_DAYS = _env_int("SCHEDULE_MAX_EXPANSION_DAYS", 14)
SCHEDULE_TEAMS = _parse_csv_env("SCHEDULE_TEAMS")
SCHEDULE_TIMEZONE = os.getenv("SCHEDULE_TIMEZONE", "America/New_York")
TEAM_DELAY_MS = _env_int("TEAM_DELAY_MS", 3000)

# ==========================================
# News
# ==========================================

NEWS_MIN_ITEMS = _env_int("NEWS_MIN_ITEMS", 2)
MAX_ENTRIES_PER_FEED = _env_int("MAX_ENTRIES_PER_FEED", 50)
ARTICLE_FETCH_ENABLED = _env_bool("ARTICLE_FETCH_ENABLED", True)
ARTICLE_FETCH_TIMEOUT_SEC = _env_float("ARTICLE_FETCH_TIMEOUT_SEC", 6.0)
ARTICLE_FETCH_CONCURRENCY = _env_int("ARTICLE_FETCH_CONCURRENCY", 3)
ARTICLE_FETCH_MAX_ITEMS = _env_int("ARTICLE_FETCH_MAX_ITEMS", 20)
EXCERPT_MIN_CHARS = _env_int("EXCERPT_MIN_CHARS", 500)
EXCERPT_MAX_CHARS = _env_int("EXCERPT_MAX_CHARS", 700)
BULLET_MAX_CHARS = _env_int("BULLET_MAX_CHARS", 280)
DEDUPE_JACCARD_THRESHOLD = _env_float("DEDUPE_JACCARD_THRESHOLD", 0.8)
# primary per-category inputs; an empty value turns the source off
INJURY_TABLE_URL = os.getenv("INJURY_TABLE_URL", ESPN_INJURIES_URL).strip()
TRANSACTIONS_FEED_URL = os.getenv("TRANSACTIONS_FEED_URL", PFR_TRANSACTIONS_FEED).strip()
TRANSACTIONS_MAX_ITEMS = _env_int("TRANSACTIONS_MAX_ITEMS", 15)

# ==========================================
# Enhancer (optional language model)
# ==========================================

ENHANCER_ENABLED = _env_bool("ENHANCER_ENABLED", False)
ENHANCER_API_KEY = os.getenv("ENHANCER_API_KEY", "").strip()
ENHANCER_API_BASE = os.getenv("ENHANCER_API_BASE", "https://generativelanguage.googleapis.com/v1beta")
ENHANCER_MODEL = os.getenv("ENHANCER_MODEL", "gemini-2.0-flash")
ENHANCER_TIMEOUT_SEC = _env_float("ENHANCER_TIMEOUT_SEC", 12.0)
ENHANCER_MAX_CALLS_PER_RUN = _env_int("ENHANCER_MAX_CALLS_PER_RUN", 3)
ENHANCER_BATCH_MAX = _env_int("ENHANCER_BATCH_MAX", 15)
ENHANCER_MAX_OUTPUT_TOKENS = _env_int("ENHANCER_MAX_OUTPUT_TOKENS", 600)

LOG_LEVEL = (os.getenv("LOG_LEVEL", "INFO") or "INFO").strip().upper()


def validate_startup_config() -> None:
    """Fail fast on settings the run cannot proceed without.

    Called once from the CLI; components assume valid values afterwards.
    """
    if ENHANCER_ENABLED and not ENHANCER_API_KEY:
        raise ConfigError("ENHANCER_ENABLED=1 requires ENHANCER_API_KEY")
    positive = {
        "RATE_LIMIT_RESERVOIR": RATE_LIMIT_RESERVOIR,
        "RATE_LIMIT_MAX_CONCURRENT": RATE_LIMIT_MAX_CONCURRENT,
        "RATE_LIMIT_REFILL_SEC": RATE_LIMIT_REFILL_SEC,
        "HTTP_TIMEOUT_SEC": HTTP_TIMEOUT_SEC,
        "SCHEDULE_BASE_DAYS": SCHEDULE_BASE_DAYS,
        "ARTICLE_FETCH_CONCURRENCY": ARTICLE_FETCH_CONCURRENCY,
        "BULLET_MAX_CHARS": BULLET_MAX_CHARS,
    }
    for name, value in positive.items():
        if value <= 0:
            raise ConfigError(f"{name} must be positive (got {value})")
    if EXCERPT_MIN_CHARS > EXCERPT_MAX_CHARS:
        raise ConfigError("EXCERPT_MIN_CHARS must not exceed EXCERPT_MAX_CHARS")
