from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Callable, Sequence
from urllib.parse import urljoin, urlparse

import trafilatura
from bs4 import BeautifulSoup

from gameday_briefing.core.config import (
    ARTICLE_FETCH_CONCURRENCY,
    ARTICLE_FETCH_MAX_ITEMS,
    ARTICLE_FETCH_TIMEOUT_SEC,
)
from gameday_briefing.core.errors import FetchFailure, RequestError
from gameday_briefing.models.queue import FetchRequest
from gameday_briefing.net.request_queue import RequestQueue
from gameday_briefing.utils import clean_text, source_from_url

logger = logging.getLogger(__name__)

MIN_ARTICLE_CHARS = 200
_MEDIA_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".mp4", ".m3u8", ".pdf")


@dataclass(frozen=True)
class ArticleBody:
    requested_url: str
    final_url: str
    text: str
    extractor: str  # "trafilatura" | "summary" | "none"
    notes: tuple[str, ...] = ()


def is_google_news(url: str) -> bool:
    try:
        return urlparse(url).netloc.endswith("news.google.com")
    except Exception:
        return False


def is_probably_media_url(url: str) -> bool:
    try:
        path = (urlparse(url).path or "").lower()
    except Exception:
        return False
    return path.endswith(_MEDIA_EXTENSIONS)


def looks_like_article_text(text: str, min_chars: int = MIN_ARTICLE_CHARS) -> bool:
    return bool(text) and len(text) >= min_chars


def extract_canonical_url(html: str, base_url: str) -> str:
    soup = BeautifulSoup(html, "html.parser")

    link = soup.find("link", rel="canonical")
    if link and link.get("href"):
        return urljoin(base_url, link.get("href"))

    og = soup.find("meta", property="og:url")
    if og and og.get("content"):
        return urljoin(base_url, og.get("content"))

    refresh = soup.find("meta", attrs={"http-equiv": "refresh"})
    if refresh and refresh.get("content"):
        m = re.search(r"url=(.+)", refresh["content"], flags=re.IGNORECASE)
        if m:
            return urljoin(base_url, m.group(1).strip())

    return ""


def extract_with_trafilatura(url: str, html: str) -> str:
    try:
        extracted = trafilatura.extract(
            html,
            url=url,
            include_comments=False,
            include_tables=False,
        )
    except Exception as exc:
        logger.debug("trafilatura failed for %s: %s", url, exc)
        return ""
    # keep line breaks; byline and ad stripping works per line
    return "\n".join(clean_text(line) for line in (extracted or "").splitlines() if line.strip())


class ArticleFetcher:
    """Fetch article bodies through the request queue.

    Bodies are fetched with their own timeout and at most `concurrency`
    fetches waiting on the queue at once. Anything that does not yield
    article-like text falls back to the feed summary.
    """

    def __init__(
        self,
        queue: RequestQueue,
        *,
        timeout_sec: float = ARTICLE_FETCH_TIMEOUT_SEC,
        concurrency: int = ARTICLE_FETCH_CONCURRENCY,
        max_items: int = ARTICLE_FETCH_MAX_ITEMS,
        min_text_chars: int = MIN_ARTICLE_CHARS,
        extract_func: Callable[[str, str], str] = extract_with_trafilatura,
    ) -> None:
        self._queue = queue
        self._timeout = timeout_sec
        self._semaphore = asyncio.Semaphore(max(1, concurrency))
        self._max_items = max(0, max_items)
        self._min_text_chars = min_text_chars
        self._extract = extract_func

    @property
    def max_items(self) -> int:
        return self._max_items

    def _summary_result(self, url: str, summary: str, note: str) -> ArticleBody:
        extractor = "summary" if summary else "none"
        return ArticleBody(requested_url=url, final_url=url, text=summary, extractor=extractor, notes=(note,))

    async def fetch(self, url: str, *, summary: str = "", subject: str = "") -> ArticleBody:
        if not url:
            return self._summary_result(url, summary, "no_url")
        if is_google_news(url):
            # redirect pages need a browser to resolve; the feed summary is enough
            return self._summary_result(url, summary, "google_news_redirect")
        if is_probably_media_url(url):
            return self._summary_result(url, summary, "media_url")

        request = FetchRequest.build(
            url,
            timeout_sec=self._timeout,
            source=source_from_url(url) or "article",
            subject=subject,
            expect="text",
        )
        async with self._semaphore:
            try:
                html = await self._queue.submit(request)
            except RequestError as exc:
                failure = FetchFailure.from_exception(exc, url)
                logger.info("article fetch failed, using summary: %s", failure.to_note())
                return self._summary_result(url, summary, failure.to_note())

        if not html:
            return self._summary_result(url, summary, "empty_html")
        final_url = extract_canonical_url(html, url) or url
        text = self._extract(final_url, html)
        if not looks_like_article_text(text, self._min_text_chars):
            return self._summary_result(final_url, summary, "not_article_text")
        return ArticleBody(requested_url=url, final_url=final_url, text=text, extractor="trafilatura")

    async def fetch_many(self, targets: Sequence[tuple[str, str]], *, subject: str = "") -> list[ArticleBody]:
        """Fetch `(url, summary)` pairs, preserving order.

        Only the first `max_items` targets are fetched; the rest keep their
        summaries.
        """
        if not targets:
            return []
        head = targets[: self._max_items]
        tail = targets[self._max_items :]
        fetched = await asyncio.gather(*(self.fetch(url, summary=summary, subject=subject) for url, summary in head))
        rest = [self._summary_result(url, summary, "over_fetch_limit") for url, summary in tail]
        return [*fetched, *rest]
