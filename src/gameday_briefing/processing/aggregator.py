from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence
from urllib.parse import quote_plus

import feedparser

from gameday_briefing.core.config import (
    ARTICLE_FETCH_ENABLED,
    BULLET_MAX_CHARS,
    EXCERPT_MAX_CHARS,
    EXCERPT_MIN_CHARS,
    INJURY_TABLE_URL,
    MAX_ENTRIES_PER_FEED,
    NEWS_MIN_ITEMS,
    TEAM_DELAY_MS,
    TRANSACTIONS_FEED_URL,
    TRANSACTIONS_MAX_ITEMS,
)
from gameday_briefing.core.constants import (
    CATEGORY_INJURIES,
    CATEGORY_ROSTER,
    DEFAULT_RUN_TYPE,
    GLOBAL_FEEDS,
    LOOKBACK_HOURS,
    MAX_BULLETS,
    NEWS_CATEGORIES,
    SUBJECT_FEED_TEMPLATE,
)
from gameday_briefing.core.errors import RequestError
from gameday_briefing.models.news import CategoryBucket, Excerpt
from gameday_briefing.models.queue import FetchRequest
from gameday_briefing.net.request_queue import RequestQueue
from gameday_briefing.processing.articles import ArticleFetcher
from gameday_briefing.processing.classifier import NewsClassifier
from gameday_briefing.processing.cleaning import clean_excerpt, trim_excerpt
from gameday_briefing.processing.dedupe import DedupeEngine
from gameday_briefing.processing.enhancer import DisabledEnhancer, Enhancer
from gameday_briefing.processing.formatting import enforce_format
from gameday_briefing.processing.injury_table import (
    INJURY_TABLE_LABEL,
    InjuryReport,
    InjuryTableSource,
    format_injury_bullet,
)
from gameday_briefing.processing.parsing import EntryParser, FeedEntry
from gameday_briefing.processing.transactions import TRANSACTIONS_LABEL, transaction_bullet
from gameday_briefing.utils import canonical_url, source_from_url, split_sentences

logger = logging.getLogger(__name__)


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass(frozen=True)
class NewsConfig:
    min_items: int = NEWS_MIN_ITEMS
    max_entries_per_feed: int = MAX_ENTRIES_PER_FEED
    feed_delay_sec: float = TEAM_DELAY_MS / 1000.0
    excerpt_min_chars: int = EXCERPT_MIN_CHARS
    excerpt_max_chars: int = EXCERPT_MAX_CHARS
    bullet_max_chars: int = BULLET_MAX_CHARS
    article_fetch_enabled: bool = ARTICLE_FETCH_ENABLED
    global_feeds: tuple[str, ...] = GLOBAL_FEEDS
    subject_feed_template: str = SUBJECT_FEED_TEMPLATE
    max_bullets: Mapping[str, int] = field(default_factory=lambda: dict(MAX_BULLETS))
    lookback_hours: Mapping[str, tuple[int, int]] = field(default_factory=lambda: dict(LOOKBACK_HOURS))
    injury_table_url: str = INJURY_TABLE_URL
    transactions_feed_url: str = TRANSACTIONS_FEED_URL
    transactions_max_items: int = TRANSACTIONS_MAX_ITEMS

    def lookbacks_for(self, run_type: str) -> tuple[int, int]:
        return self.lookback_hours.get(run_type) or self.lookback_hours[DEFAULT_RUN_TYPE]


class NewsAggregator:
    """Feeds -> excerpts -> categorized, deduplicated, capped bullet buckets.

    Feed documents are fetched once per run and re-filtered when a sparse
    category widens its lookback. Article bodies are cached by canonical
    URL for the same reason.
    """

    def __init__(
        self,
        queue: RequestQueue,
        *,
        classifier: NewsClassifier | None = None,
        dedupe_engine: DedupeEngine | None = None,
        enhancer: Enhancer | None = None,
        article_fetcher: ArticleFetcher | None = None,
        injury_table: InjuryTableSource | None = None,
        entry_parser: EntryParser | None = None,
        feed_parser: Callable[[str], Any] = feedparser.parse,
        config: NewsConfig | None = None,
        now_func: Callable[[], datetime.datetime] = _utc_now,
    ) -> None:
        self._queue = queue
        self._classifier = classifier or NewsClassifier()
        self._dedupe = dedupe_engine or DedupeEngine()
        self._enhancer: Enhancer = enhancer or DisabledEnhancer()
        self._config = config or NewsConfig()
        self._articles = article_fetcher
        if self._articles is None and self._config.article_fetch_enabled:
            self._articles = ArticleFetcher(queue)
        self._injury_table = injury_table
        if self._injury_table is None and self._config.injury_table_url:
            self._injury_table = InjuryTableSource(queue, url=self._config.injury_table_url)
        self._entry_parser = entry_parser or EntryParser()
        self._feed_parser = feed_parser
        self._now = now_func
        self._entry_cache: dict[str, list[FeedEntry]] = {}
        self._body_cache: dict[str, str] = {}
        self._injury_reports: list[InjuryReport] | None = None
        self._transaction_entries: list[FeedEntry] | None = None

    def reset_run_cache(self) -> None:
        self._entry_cache.clear()
        self._body_cache.clear()
        self._injury_reports = None
        self._transaction_entries = None

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    def feed_urls(self, subject: str = "") -> list[str]:
        urls = list(self._config.global_feeds)
        if subject:
            urls.append(self._config.subject_feed_template.format(query=quote_plus(subject)))
        return urls

    async def _fetch_feed(self, url: str, subject: str) -> list[FeedEntry]:
        request = FetchRequest.build(url, source=source_from_url(url) or "feed", subject=subject, expect="text")
        try:
            body = await self._queue.submit(request, defer=True)
        except RequestError as exc:
            logger.warning("feed failed [%s]: %s", request.tag, exc)
            return []
        if not body:
            return []
        try:
            parsed = self._feed_parser(body)
        except Exception as exc:
            logger.warning("feed parse failed [%s]: %s", request.tag, exc)
            return []
        raw_entries = list(getattr(parsed, "entries", None) or [])
        if not raw_entries and getattr(parsed, "bozo", False):
            logger.warning("malformed feed [%s]: %s", request.tag, getattr(parsed, "bozo_exception", ""))
        entries: list[FeedEntry] = []
        for raw in raw_entries[: self._config.max_entries_per_feed]:
            entry = self._entry_parser.parse_entry(raw, url)
            if entry is not None:
                entries.append(entry)
        logger.debug("feed [%s]: %d entries", request.tag, len(entries))
        return entries

    async def fetch_feed_entries(self, subject: str = "") -> list[FeedEntry]:
        """All feed entries for a subject, URL-deduplicated, first seen wins."""
        cached = self._entry_cache.get(subject)
        if cached is not None:
            return cached
        entries: list[FeedEntry] = []
        seen: set[str] = set()
        for i, url in enumerate(self.feed_urls(subject)):
            if i and self._config.feed_delay_sec > 0:
                await self._queue.scheduler.sleep(self._config.feed_delay_sec)
            for entry in await self._fetch_feed(url, subject):
                if entry.key in seen:
                    continue
                seen.add(entry.key)
                entries.append(entry)
        self._entry_cache[subject] = entries
        logger.info("collected %d unique feed entries for %r", len(entries), subject or "league")
        return entries

    def select_entries(
        self, entries: Sequence[FeedEntry], lookback_hours: int, *, include_undated: bool = False
    ) -> list[FeedEntry]:
        cutoff = self._now() - datetime.timedelta(hours=lookback_hours)
        out = []
        for entry in entries:
            if entry.published is None:
                if include_undated:
                    out.append(entry)
                continue
            if entry.published >= cutoff:
                out.append(entry)
        return out

    async def _bodies(self, entries: Sequence[FeedEntry], subject: str) -> list[str]:
        if self._articles is None:
            return [e.summary for e in entries]
        missing = [e for e in entries if e.key not in self._body_cache]
        if missing:
            results = await self._articles.fetch_many([(e.url, e.summary) for e in missing], subject=subject)
            for entry, result in zip(missing, results):
                self._body_cache[entry.key] = result.text
        return [self._body_cache.get(e.key, e.summary) for e in entries]

    def to_excerpt(self, entry: FeedEntry, body: str, subject: str = "") -> Excerpt | None:
        text = clean_excerpt(body) or clean_excerpt(entry.summary) or entry.title
        text = trim_excerpt(text, self._config.excerpt_min_chars, self._config.excerpt_max_chars)
        if not text:
            return None
        return Excerpt(
            source=entry.source,
            text=text,
            title=entry.title,
            url=entry.url,
            tag=subject,
            published=entry.published,
        )

    async def collect(self, subject: str, lookback_hours: int, *, include_undated: bool = False) -> list[Excerpt]:
        entries = await self.fetch_feed_entries(subject)
        selected = self.select_entries(entries, lookback_hours, include_undated=include_undated)
        bodies = await self._bodies(selected, subject)
        excerpts = []
        for entry, body in zip(selected, bodies):
            excerpt = self.to_excerpt(entry, body, subject)
            if excerpt is not None:
                excerpts.append(excerpt)
        return excerpts

    # ------------------------------------------------------------------
    # Primary sources
    # ------------------------------------------------------------------

    async def injury_table_bullets(self, lookback_hours: int) -> list[str]:
        """Injury report rows updated within the lookback; undated rows are kept."""
        if self._injury_table is None:
            return []
        now = self._now()
        if self._injury_reports is None:
            self._injury_reports = await self._injury_table.fetch(now.date())
        cutoff = (now - datetime.timedelta(hours=lookback_hours)).date()
        return [
            format_injury_bullet(r, max_chars=self._config.bullet_max_chars)
            for r in self._injury_reports
            if r.updated is None or r.updated >= cutoff
        ]

    async def _transactions(self, lookback_hours: int) -> list[FeedEntry]:
        url = self._config.transactions_feed_url
        if not url:
            return []
        if self._transaction_entries is None:
            self._transaction_entries = await self._fetch_feed(url, "")
        return self.select_entries(self._transaction_entries, lookback_hours)[: self._config.transactions_max_items]

    async def transaction_bullets(self, lookback_hours: int) -> list[str]:
        bullets: list[str] = []
        for entry in await self._transactions(lookback_hours):
            bullet = transaction_bullet(entry.title, entry.source, max_chars=self._config.bullet_max_chars)
            if bullet:
                bullets.append(bullet)
        return bullets

    # ------------------------------------------------------------------
    # Classification / dedupe
    # ------------------------------------------------------------------

    def classify(self, excerpt: Excerpt) -> str | None:
        return self._classifier.classify(excerpt)

    def group(self, excerpts: Sequence[Excerpt]) -> dict[str, list[Excerpt]]:
        grouped: dict[str, list[Excerpt]] = {c: [] for c in NEWS_CATEGORIES}
        for excerpt in excerpts:
            category = self.classify(excerpt)
            if category in grouped:
                grouped[category].append(excerpt)
        return grouped

    def dedupe(self, bullets: Sequence[str]) -> list[str]:
        return self._dedupe.simple_dedupe(bullets)

    def bullet_from_excerpt(self, category: str, excerpt: Excerpt) -> str:
        sentences = split_sentences(excerpt.text)
        picked = [s for s in sentences if self._classifier.matches(category, s)][:2]
        if not picked:
            if excerpt.title and self._classifier.matches(category, excerpt.title):
                picked = [excerpt.title.rstrip(".") + "."]
            elif sentences:
                picked = sentences[:1]
            elif excerpt.title:
                picked = [excerpt.title]
        if not picked:
            return ""
        return enforce_format(" ".join(picked), excerpt.source, self._config.bullet_max_chars)

    async def _bullets_for(self, category: str, excerpts: Sequence[Excerpt]) -> list[str]:
        bullets: list[str] = []
        if self._enhancer.enabled and excerpts:
            try:
                enhanced = await self._enhancer.summarize(category, excerpts)
            except Exception as exc:
                logger.warning("enhancer summarize failed for %s: %s", category, exc)
                enhanced = []
            bullets = [enforce_format(b, max_chars=self._config.bullet_max_chars) for b in enhanced if b.strip()]
            if not bullets:
                logger.info("no enhanced bullets for %s, using rule-based bullets", category)
        if not bullets:
            bullets = [b for b in (self.bullet_from_excerpt(category, e) for e in excerpts) if b]
        return bullets

    async def build_bucket(
        self,
        category: str,
        excerpts: Sequence[Excerpt],
        *,
        lookback_note: str = "",
        primary: Sequence[str] = (),
        primary_label: str = "",
    ) -> CategoryBucket:
        """Bullets for one category, capped, with a provenance label.

        `primary` bullets come from a structured per-category source and
        lead the list; bullets built from RSS excerpts fill in after them.
        """
        bullets = await self._bullets_for(category, excerpts)
        merged = await self._dedupe.semantic_dedupe(bullets, self._enhancer)
        # merged output is free text again; re-bound it
        supplement = [enforce_format(b, max_chars=self._config.bullet_max_chars) for b in merged]
        final = self._dedupe.simple_dedupe([*primary, *supplement])
        cap = self._config.max_bullets.get(category, len(final))
        kept = final[:cap]
        sources: list[str] = []
        for excerpt in excerpts:
            if excerpt.source and excerpt.source not in sources:
                sources.append(excerpt.source)
        primary_set = set(primary)
        from_primary = sum(1 for b in final if b in primary_set)
        if from_primary and len(final) > from_primary:
            label = f"{primary_label} + RSS ({', '.join(sources)})"
        elif from_primary:
            label = primary_label
        else:
            label = ", ".join(sources) or "no sources"
        provenance = "; ".join(p for p in (label, lookback_note) if p)
        if len(final) > cap:
            logger.info("%s: %d bullets over the cap of %d", category, len(final) - cap, cap)
        return CategoryBucket(
            category=category,
            bullets=kept,
            total_count=len(final),
            truncated_count=len(final) - len(kept),
            provenance=provenance,
        )

    async def primary_bullets(self, lookback_hours: int, categories: Sequence[str] = NEWS_CATEGORIES) -> dict[str, list[str]]:
        """Structured-source bullets: the injury table and the transactions feed."""
        out: dict[str, list[str]] = {}
        if CATEGORY_INJURIES in categories:
            out[CATEGORY_INJURIES] = await self.injury_table_bullets(lookback_hours)
        if CATEGORY_ROSTER in categories:
            out[CATEGORY_ROSTER] = await self.transaction_bullets(lookback_hours)
        return out

    def _without_transaction_posts(self, excerpts: Sequence[Excerpt]) -> list[Excerpt]:
        # the general feeds repeat transaction posts already read from the transactions feed
        keys = {e.key for e in self._transaction_entries or []}
        return [e for e in excerpts if canonical_url(e.url) not in keys] if keys else list(excerpts)

    async def build_buckets(self, subject: str = "", run_type: str = DEFAULT_RUN_TYPE) -> list[CategoryBucket]:
        """One bucket per news category, in fixed order.

        Injuries lead with the injury table and roster moves with the
        transactions feed; classified RSS excerpts supplement both and are
        the only input for breaking news. A category with fewer than
        `min_items` items in the base lookback is rebuilt once from the
        widened lookback, which also admits entries without a published time.
        """
        self.reset_run_cache()
        base_hours, wide_hours = self._config.lookbacks_for(run_type)
        primary: dict[str, list[str]] = {c: [] for c in NEWS_CATEGORIES}
        primary.update(await self.primary_bullets(base_hours))
        grouped = self.group(await self.collect(subject, base_hours))
        notes = {c: f"{c}: last {base_hours}h" for c in NEWS_CATEGORIES}

        sparse = [c for c in NEWS_CATEGORIES if len(primary[c]) + len(grouped[c]) < self._config.min_items]
        if sparse and wide_hours > base_hours:
            logger.info("sparse categories %s, widening lookback %dh -> %dh", sparse, base_hours, wide_hours)
            widened = self.group(await self.collect(subject, wide_hours, include_undated=True))
            primary.update(await self.primary_bullets(wide_hours, sparse))
            for category in sparse:
                grouped[category] = widened[category]
                notes[category] = f"{category}: expanded to {wide_hours}h"
        grouped[CATEGORY_ROSTER] = self._without_transaction_posts(grouped[CATEGORY_ROSTER])

        labels = {CATEGORY_INJURIES: INJURY_TABLE_LABEL, CATEGORY_ROSTER: TRANSACTIONS_LABEL}
        buckets = []
        for category in NEWS_CATEGORIES:
            bucket = await self.build_bucket(
                category,
                grouped[category],
                lookback_note=notes[category],
                primary=primary[category],
                primary_label=labels.get(category, ""),
            )
            logger.info(
                "%s: %d bullets (%d truncated) from %d primary and %d excerpts",
                category, len(bucket.bullets), bucket.truncated_count, len(primary[category]), len(grouped[category]),
            )
            buckets.append(bucket)
        return buckets
