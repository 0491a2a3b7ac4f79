from __future__ import annotations

import datetime
import re
from dataclasses import dataclass
from typing import Any, Callable

from gameday_briefing.utils import canonical_url, clean_text, source_from_url, struct_time_to_utc


@dataclass(frozen=True)
class FeedEntry:
    title: str
    url: str
    summary: str
    published: datetime.datetime | None
    source: str
    feed_url: str = ""

    @property
    def key(self) -> str:
        return canonical_url(self.url) or self.title.lower()


def _get(entry: Any, name: str, default: Any = "") -> Any:
    # feedparser entries support both attribute and key access; fakes may offer either
    value = getattr(entry, name, None)
    if value is None and isinstance(entry, dict):
        value = entry.get(name)
    return default if value is None else value


class EntryParser:
    def __init__(self, *, clean_text_func: Callable[[str], str] = clean_text) -> None:
        self._clean_text = clean_text_func

    def strip_source_from_text(self, text: str, source_name: str) -> str:
        # "Headline - ESPN", "Headline | NFL.com"
        if not text or not source_name:
            return text
        src = re.escape(source_name.strip())
        cleaned = re.sub(rf"\s*[\|\-–—·:]\s*{src}\s*\.{{0,3}}\s*$", "", text, flags=re.IGNORECASE)
        return cleaned.strip()

    def _extract_full_text_parts(self, entry: Any) -> list[str]:
        content_list = _get(entry, "content", None)
        if isinstance(content_list, list) and content_list:
            parts: list[str] = []
            for content in content_list:
                if isinstance(content, dict):
                    value = content.get("value", "") or ""
                else:
                    value = getattr(content, "value", "") or ""
                if value:
                    parts.append(value)
            return parts
        return []

    def entry_source(self, entry: Any, feed_url: str) -> str:
        source = _get(entry, "source", None)
        title = ""
        if isinstance(source, dict):
            title = source.get("title", "") or ""
        elif source is not None:
            title = getattr(source, "title", "") or ""
        if title:
            return self._clean_text(title)
        link = _get(entry, "link", "")
        # aggregator links point at the aggregator, the feed host is a better label
        return source_from_url(feed_url) or source_from_url(link) or "Unknown"

    def parse_entry(self, entry: Any, feed_url: str) -> FeedEntry | None:
        title_raw = str(_get(entry, "title", "")).strip()
        link = str(_get(entry, "link", "")).strip()
        if not title_raw and not link:
            return None
        source = self.entry_source(entry, feed_url)
        title = self.strip_source_from_text(self._clean_text(title_raw), source)
        parts = self._extract_full_text_parts(entry)
        summary_raw = "\n".join(parts) if parts else str(_get(entry, "summary", "") or _get(entry, "description", ""))
        # keep paragraph breaks for per-line cleaning
        summary_raw = re.sub(r"(?i)<\s*(?:br\s*/?|/p)\s*>", "\n", summary_raw)
        summary = "\n".join(self._clean_text(line) for line in summary_raw.splitlines() if line.strip())
        summary = self.strip_source_from_text(summary, source)
        published = struct_time_to_utc(_get(entry, "published_parsed", None)) or struct_time_to_utc(
            _get(entry, "updated_parsed", None)
        )
        return FeedEntry(
            title=title,
            url=link,
            summary=summary,
            published=published,
            source=source,
            feed_url=feed_url,
        )
