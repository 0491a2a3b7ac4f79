from __future__ import annotations

import datetime
import re
from zoneinfo import ZoneInfo

from gameday_briefing.core.config import SCHEDULE_TIMEZONE

# Earliest and latest plausible local kickoff hour (1 PM through 11 PM).
KICKOFF_HOUR_MIN = 13
KICKOFF_HOUR_MAX = 23
DEFAULT_KICKOFF = (20, 0)

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_MONTH_DATE_RE = re.compile(
    r"\b(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?\s+(\d{1,2})(?:st|nd|rd|th)?(?:,?\s+(\d{4}))?\b",
    re.IGNORECASE,
)
_SLASH_DATE_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2,4}))?\b")
_ISO_DATE_RE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
_TIME_RE = re.compile(r"\b(\d{1,2}):(\d{2})\s*(?:([AaPp])\.?\s?[Mm]\.?)?")
_ROLLOVER_DAYS = 180


def find_date_text(text: str) -> str | None:
    if not text:
        return None
    m = _ISO_DATE_RE.search(text) or _MONTH_DATE_RE.search(text) or _SLASH_DATE_RE.search(text)
    return m.group(0) if m else None


def find_time_text(text: str) -> str | None:
    if not text:
        return None
    m = _TIME_RE.search(text)
    return m.group(0) if m else None


def _parse_date(date_text: str, reference: datetime.date) -> datetime.date | None:
    iso = _ISO_DATE_RE.search(date_text)
    m = _MONTH_DATE_RE.search(date_text)
    if iso:
        month, day, year = int(iso.group(2)), int(iso.group(3)), int(iso.group(1))
    elif m:
        month = _MONTHS[m.group(1).lower()[:3]]
        day = int(m.group(2))
        year = int(m.group(3)) if m.group(3) else None
    else:
        m = _SLASH_DATE_RE.search(date_text)
        if not m:
            return None
        month, day = int(m.group(1)), int(m.group(2))
        year = int(m.group(3)) if m.group(3) else None
        if year is not None and year < 100:
            year += 2000
    explicit_year = year is not None
    try:
        parsed = datetime.date(year or reference.year, month, day)
    except ValueError:
        return None
    if not explicit_year and (reference - parsed).days > _ROLLOVER_DAYS:
        try:
            parsed = parsed.replace(year=parsed.year + 1)
        except ValueError:
            return None
    return parsed


def _parse_time(time_text: str | None) -> tuple[int, int] | None:
    if not time_text:
        return DEFAULT_KICKOFF
    m = _TIME_RE.search(time_text)
    if not m:
        return None
    hour, minute = int(m.group(1)), int(m.group(2))
    meridiem = (m.group(3) or "").lower()
    if minute > 59:
        return None
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        if meridiem == "p" and hour != 12:
            hour += 12
        elif meridiem == "a" and hour == 12:
            hour = 0
    elif hour > 23:
        return None
    return hour, minute


def is_plausible_kickoff(moment: datetime.datetime, tz: str = SCHEDULE_TIMEZONE) -> bool:
    local = moment.astimezone(ZoneInfo(tz)) if moment.tzinfo else moment
    return KICKOFF_HOUR_MIN <= local.hour <= KICKOFF_HOUR_MAX


def parse_kickoff(
    date_text: str,
    time_text: str | None = None,
    *,
    tz: str = SCHEDULE_TIMEZONE,
    reference: datetime.datetime | None = None,
) -> datetime.datetime | None:
    """Parse scraped date/time text into an aware UTC kickoff.

    Times outside the plausible kickoff band come back as None: scraped
    markup is full of numbers that happen to look like times.
    """
    zone = ZoneInfo(tz)
    ref = (reference or datetime.datetime.now(datetime.timezone.utc)).astimezone(zone).date()
    day = _parse_date(date_text or "", ref)
    if day is None:
        return None
    hm = _parse_time(time_text)
    if hm is None:
        return None
    local = datetime.datetime(day.year, day.month, day.day, hm[0], hm[1], tzinfo=zone)
    if not is_plausible_kickoff(local, tz):
        return None
    return local.astimezone(datetime.timezone.utc)
