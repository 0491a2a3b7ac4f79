from __future__ import annotations

import asyncio
import datetime
from typing import Sequence

from gameday_briefing.models.news import Excerpt
from gameday_briefing.models.queue import FetchRequest, HttpResponse
from gameday_briefing.net.clock import VirtualScheduler
from gameday_briefing.net.rate_limiter import RateLimiter
from gameday_briefing.net.request_queue import QueueConfig, RequestQueue
from gameday_briefing.processing.aggregator import NewsAggregator, NewsConfig
from gameday_briefing.processing.articles import ArticleFetcher, extract_canonical_url

UTC = datetime.timezone.utc
NOW = datetime.datetime(2024, 9, 5, 12, 0, tzinfo=UTC)
ESPN_FEED = "https://www.espn.com/espn/rss/nfl/news"
NFL_FEED = "https://www.nfl.com/rss/rsslanding?searchString=home"
BROKEN_FEED = "https://www.cbssports.com/rss/headlines/nfl/"

JONES = (
    "Bills wide receiver Marcus Jones (ankle) is day-to-day after leaving Wednesday's practice early, "
    "coach Sean McDermott said on Thursday."
)


def _parsed(hours_ago: float) -> tuple:
    return (NOW - datetime.timedelta(hours=hours_ago)).utctimetuple()


class _Entry:
    def __init__(self, *, title: str, summary: str, link: str, published_parsed: tuple | None = None) -> None:
        self.title = title
        self.summary = summary
        self.link = link
        if published_parsed is not None:
            self.published_parsed = published_parsed


class _Feed:
    def __init__(self, entries: list[_Entry]) -> None:
        self.entries = entries
        self.bozo = False


FEEDS = {
    ESPN_FEED: _Feed(
        [
            _Entry(title="Jones day-to-day", summary=JONES, link="https://espn.test/a/1?utm=rss", published_parsed=_parsed(4)),
            _Entry(
                title="Bills sign veteran linebacker",
                summary="The Buffalo Bills signed linebacker Sam Smith to a one-year deal on Tuesday.",
                link="https://espn.test/a/2",
                published_parsed=_parsed(30),
            ),
            _Entry(
                title="Dolphins place Brown on IR",
                summary="The Miami Dolphins placed Brown on injured reserve with a knee injury.",
                link="https://espn.test/a/3",
                published_parsed=_parsed(100),
            ),
            _Entry(title="Week 1 takeaways", summary="Ten observations from camp.", link="https://espn.test/a/4",
                   published_parsed=_parsed(2)),
        ]
    ),
    NFL_FEED: _Feed(
        [
            _Entry(title="Jones ankle update", summary=JONES, link="https://nfl.test/b/1", published_parsed=_parsed(5)),
            # same story through a tracking URL variant
            _Entry(title="Jones day-to-day", summary=JONES, link="https://espn.test/a/1", published_parsed=_parsed(4)),
        ]
    ),
}


class _FeedTransport:
    """Feed URLs echo back as the body so the fake parser can route them."""

    async def get(self, request: FetchRequest) -> HttpResponse:
        if request.url == BROKEN_FEED:
            return HttpResponse(404, "", request.url)
        return HttpResponse(200, request.url, request.url)

    async def close(self) -> None:
        return None


class _SummaryEnhancer:
    enabled = True
    calls_made = 0

    def reset_call_counter(self) -> None:
        self.calls_made = 0

    async def enhance(self, instruction: str, batch: Sequence[str]) -> list[str]:
        return []

    async def merge_duplicates(self, bullets: Sequence[str]) -> list[str]:
        return []

    async def summarize(self, category: str, excerpts: Sequence[Excerpt]) -> list[str]:
        if category == "injuries":
            return ["- Marcus Jones is day-to-day with an ankle injury (ESPN)"]
        return []


def _aggregator(**overrides) -> tuple[NewsAggregator, VirtualScheduler]:
    scheduler = VirtualScheduler()
    feeds = overrides.pop("feeds", FEEDS)
    queue = RequestQueue(
        limiter=RateLimiter(capacity=100, min_time_sec=0.0, scheduler=scheduler),
        transport=overrides.pop("transport", None) or _FeedTransport(),
        config=QueueConfig(max_retries=0),
        scheduler=scheduler,
    )
    settings = {
        "min_items": 1,
        "feed_delay_sec": 3.0,
        "article_fetch_enabled": False,
        "global_feeds": (ESPN_FEED, NFL_FEED, BROKEN_FEED),
        "injury_table_url": "",
        "transactions_feed_url": "",
    }
    settings.update(overrides.pop("config", {}))
    config = NewsConfig(**settings)
    aggregator = NewsAggregator(
        queue,
        feed_parser=lambda body: feeds.get(body, _Feed([])),
        config=config,
        now_func=lambda: NOW,
        **overrides,
    )
    return aggregator, scheduler


def test_feed_urls_add_subject_search() -> None:
    aggregator, _ = _aggregator()
    urls = aggregator.feed_urls("Buffalo Bills")
    assert urls[:3] == [ESPN_FEED, NFL_FEED, BROKEN_FEED]
    assert "q=Buffalo+Bills+NFL" in urls[-1]
    assert aggregator.feed_urls("") == [ESPN_FEED, NFL_FEED, BROKEN_FEED]


def test_collect_applies_lookback_and_url_dedupe() -> None:
    aggregator, scheduler = _aggregator()

    excerpts = asyncio.run(aggregator.collect("", 72))

    assert [e.title for e in excerpts] == ["Jones day-to-day", "Bills sign veteran linebacker", "Week 1 takeaways", "Jones ankle update"]
    assert [e.source for e in excerpts] == ["ESPN", "ESPN", "ESPN", "NFL.com"]
    # per-feed delay between the three feeds; the 404 feed is skipped
    assert scheduler.sleeps == [3.0, 3.0]


def test_build_buckets_dedupes_caps_and_widens_sparse_categories() -> None:
    aggregator, _ = _aggregator()

    buckets = asyncio.run(aggregator.build_buckets("", "morning"))

    by_cat = {b.category: b for b in buckets}
    assert [b.category for b in buckets] == ["injuries", "roster", "breaking"]

    injuries = by_cat["injuries"]
    assert injuries.bullets == [JONES + " (ESPN)"]
    assert injuries.total_count == 1
    assert injuries.provenance == "ESPN, NFL.com; injuries: last 72h"

    roster = by_cat["roster"]
    assert roster.bullets == ["The Buffalo Bills signed linebacker Sam Smith to a one-year deal on Tuesday. (ESPN)"]

    breaking = by_cat["breaking"]
    assert breaking.empty
    assert breaking.provenance == "no sources; breaking: expanded to 168h"


def test_per_category_cap_records_truncation() -> None:
    aggregator, _ = _aggregator(config={"max_bullets": {"injuries": 1, "roster": 12, "breaking": 10}, "min_items": 3})

    buckets = asyncio.run(aggregator.build_buckets("", "morning"))

    injuries = buckets[0]
    # widened to 168h, which admits the Dolphins IR story
    assert injuries.total_count == 2
    assert injuries.truncated_count == 1
    assert len(injuries.bullets) == 1
    assert injuries.provenance.endswith("injuries: expanded to 168h")


def test_enhancer_bullets_replace_rule_based_ones() -> None:
    aggregator, _ = _aggregator(enhancer=_SummaryEnhancer())

    buckets = asyncio.run(aggregator.build_buckets("", "morning"))

    assert buckets[0].bullets == ["Marcus Jones is day-to-day with an ankle injury (ESPN)"]
    # roster has no enhanced output and keeps the rule-based bullet
    assert buckets[1].bullets[0].endswith("(ESPN)")


def test_dedupe_collapses_punctuation_variants() -> None:
    aggregator, _ = _aggregator()
    assert aggregator.dedupe(["Jones (ankle) day-to-day (ESPN)", "jones ankle day to day (espn)"]) == [
        "Jones (ankle) day-to-day (ESPN)"
    ]


def test_article_fetcher_uses_canonical_and_falls_back_to_summary() -> None:
    page = (
        '<html><head><link rel="canonical" href="/nfl/story/1"></head>'
        "<body><article><p>" + "Real article text. " * 20 + "</p></article></body></html>"
    )

    class _PageTransport:
        async def get(self, request: FetchRequest) -> HttpResponse:
            if "missing" in request.url:
                return HttpResponse(404, "", request.url)
            return HttpResponse(200, page, request.url)

        async def close(self) -> None:
            return None

    scheduler = VirtualScheduler()
    queue = RequestQueue(
        limiter=RateLimiter(capacity=100, min_time_sec=0.0, scheduler=scheduler),
        transport=_PageTransport(),
        config=QueueConfig(max_retries=0),
        scheduler=scheduler,
    )
    fetcher = ArticleFetcher(queue, max_items=2, extract_func=lambda url, html: "Real article text. " * 20)

    results = asyncio.run(
        fetcher.fetch_many(
            [
                ("https://www.espn.com/nfl/story/1?src=rss", "summary one"),
                ("https://www.espn.com/missing", "summary two"),
                ("https://www.espn.com/nfl/story/3", "summary three"),
            ]
        )
    )

    assert results[0].extractor == "trafilatura"
    assert results[0].final_url == "https://www.espn.com/nfl/story/1"
    assert (results[1].text, results[1].extractor) == ("summary two", "summary")
    assert results[2].notes == ("over_fetch_limit",)
    assert extract_canonical_url('<meta property="og:url" content="https://x.test/a">', "https://y.test") == "https://x.test/a"


INJURY_URL = "https://injuries.test/nfl"
PFR_FEED = "https://www.profootballrumors.com/category/transactions/feed"
INJURY_PAGE = """
<div class="injuries"><table><tbody>
  <tr><td><a>Josh Allen</a> BUF</td><td>QB</td><td>Questionable</td><td>Wrist</td><td>Sep 4</td></tr>
  <tr><td><a>Von Miller</a> DEN</td><td>LB</td><td>Out</td><td>Knee</td><td>Feb 9</td></tr>
</tbody></table></div>
"""
ALLEN = "Josh Allen (BUF) - Questionable (Wrist) · Updated Sep 4 (ESPN)"
TRANSACTIONS = _Feed(
    [
        _Entry(title="Bills Sign WR Marcus Jones", summary="", link="https://pfr.test/t/1", published_parsed=_parsed(10)),
        _Entry(title="Minor NFL Transactions: 9/4/24", summary="", link="https://pfr.test/t/2", published_parsed=_parsed(12)),
        _Entry(title="Jets Sign QB Aaron Rodgers", summary="", link="https://pfr.test/t/3", published_parsed=_parsed(200)),
    ]
)


class _PrimaryTransport(_FeedTransport):
    def __init__(self) -> None:
        self.requests: list[str] = []

    async def get(self, request: FetchRequest) -> HttpResponse:
        self.requests.append(request.url)
        if request.url == INJURY_URL:
            return HttpResponse(200, INJURY_PAGE, request.url)
        return await super().get(request)


def _primary_aggregator(feeds: dict, **config) -> tuple[NewsAggregator, _PrimaryTransport]:
    transport = _PrimaryTransport()
    settings = {"injury_table_url": INJURY_URL, "transactions_feed_url": PFR_FEED, **config}
    aggregator, _ = _aggregator(transport=transport, feeds=feeds, config=settings)
    return aggregator, transport


def test_injury_table_and_transactions_lead_with_rss_supplement() -> None:
    aggregator, _ = _primary_aggregator({**FEEDS, PFR_FEED: TRANSACTIONS})

    buckets = asyncio.run(aggregator.build_buckets("", "morning"))

    injuries, roster = buckets[0], buckets[1]
    # the Feb 9 row is outside the lookback
    assert injuries.bullets == [ALLEN, JONES + " (ESPN)"]
    assert injuries.provenance == "ESPN table + RSS (ESPN, NFL.com); injuries: last 72h"
    assert roster.bullets == [
        "BUF - Signed Marcus Jones (PFR)",
        "The Buffalo Bills signed linebacker Sam Smith to a one-year deal on Tuesday. (ESPN)",
    ]
    assert roster.provenance == "PFR + RSS (ESPN); roster: last 72h"


def test_primary_sources_are_fetched_once_when_lookback_widens() -> None:
    aggregator, transport = _primary_aggregator({**FEEDS, PFR_FEED: TRANSACTIONS}, min_items=4)

    buckets = asyncio.run(aggregator.build_buckets("", "morning"))

    injuries, roster = buckets[0], buckets[1]
    assert injuries.provenance.endswith("injuries: expanded to 168h")
    assert injuries.bullets[0] == ALLEN
    assert not any("Von Miller" in b for b in injuries.bullets)
    assert roster.bullets[0] == "BUF - Signed Marcus Jones (PFR)"
    assert transport.requests.count(INJURY_URL) == 1
    assert transport.requests.count(PFR_FEED) == 1


def test_primary_only_buckets_and_repeated_transaction_posts() -> None:
    repeat = _Entry(
        title="Bills sign Marcus Jones",
        summary="The Buffalo Bills signed wide receiver Marcus Jones on Wednesday.",
        link="https://pfr.test/t/1",
        published_parsed=_parsed(9),
    )
    feeds = {ESPN_FEED: _Feed([repeat]), PFR_FEED: TRANSACTIONS}
    aggregator, _ = _primary_aggregator(feeds, global_feeds=(ESPN_FEED,))

    buckets = asyncio.run(aggregator.build_buckets("", "morning"))

    injuries, roster = buckets[0], buckets[1]
    assert (injuries.bullets, injuries.provenance) == ([ALLEN], "ESPN table; injuries: last 72h")
    # the general feed's copy of the transaction post is not counted twice
    assert (roster.bullets, roster.provenance) == (["BUF - Signed Marcus Jones (PFR)"], "PFR; roster: last 72h")
