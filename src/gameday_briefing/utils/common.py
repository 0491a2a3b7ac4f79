from __future__ import annotations

import calendar
import datetime
import email.utils
import html
import re
from typing import Any, Iterable
from urllib.parse import urlsplit, urlunsplit

from gameday_briefing.core.constants import SENTENCE_ABBREVIATIONS, SOURCE_LABELS

_WS_RE = re.compile(r"\s+")  # collapse runs of whitespace
_TAG_RE = re.compile(r"<[^>]+>")
_SENTENCE_END_RE = re.compile(r"(?:(?<=[.!?])|(?<=[.!?][\"')\]]))\s+(?=[\"'(\[]?[A-Z0-9])")
_ABBREV_MARK = "\u0000"


def clean_text(s: str) -> str:
    """Unescape entities, strip tags and normalize whitespace."""
    if not s:
        return ""
    s = html.unescape(s)
    s = s.replace("\u00a0", " ")
    s = _TAG_RE.sub("", s)
    s = _WS_RE.sub(" ", s).strip()
    return s


def clean_text_ws(text: str) -> str:
    return _WS_RE.sub(" ", (text or "").strip())


def parse_datetime_utc(value: str, *, default_tz: datetime.tzinfo | None = None) -> datetime.datetime | None:
    if not value:
        return None
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    try:
        dt = datetime.datetime.fromisoformat(raw)
    except Exception:
        try:
            dt = email.utils.parsedate_to_datetime(value)
        except Exception:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=default_tz or datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def struct_time_to_utc(value: Any) -> datetime.datetime | None:
    """feedparser `*_parsed` fields are UTC struct_time tuples."""
    if not value:
        return None
    try:
        return datetime.datetime.fromtimestamp(calendar.timegm(tuple(value)[:9]), tz=datetime.timezone.utc)
    except Exception:
        return None


def canonical_url(url: str) -> str:
    """Drop query string and fragment so tracking variants collapse."""
    if not url:
        return ""
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return url.strip()
    path = parts.path.rstrip("/") or "/"
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), path, "", ""))


def source_from_url(url: str) -> str:
    """Short outlet label for a feed or article URL."""
    if not url:
        return ""
    host = (urlsplit(url).netloc or "").lower()
    for fragment, label in SOURCE_LABELS:
        if fragment in host:
            return label
    if host.startswith("www."):
        host = host[4:]
    return host.split(":")[0]


def split_sentences(text: str, abbreviations: Iterable[str] = SENTENCE_ABBREVIATIONS) -> list[str]:
    """Split prose into sentences without breaking on common abbreviations."""
    text = clean_text_ws(text)
    if not text:
        return []
    protected = text
    for abbr in abbreviations:
        protected = protected.replace(abbr, abbr.replace(".", _ABBREV_MARK))
    parts = _SENTENCE_END_RE.split(protected)
    return [p.replace(_ABBREV_MARK, ".").strip() for p in parts if p.strip()]


def jaccard(a: set[str], b: set[str]) -> float:
    if not a or not b:
        return 1.0 if a == b else 0.0
    return len(a & b) / len(a | b)
