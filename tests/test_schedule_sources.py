from __future__ import annotations

import asyncio
import datetime
import json

import pytest

from gameday_briefing.core.errors import SourceError
from gameday_briefing.models.queue import FetchRequest, HttpResponse
from gameday_briefing.models.schedule import ScheduleWindow
from gameday_briefing.net.clock import VirtualScheduler
from gameday_briefing.net.rate_limiter import RateLimiter
from gameday_briefing.net.request_queue import QueueConfig, RequestQueue
from gameday_briefing.schedule.resolver import ScheduleConfig, ScheduleResolver
from gameday_briefing.schedule.sources import (
    EspnScheduleSource,
    NflComScheduleSource,
    SportsDbSource,
    normalize_team,
)

UTC = datetime.timezone.utc
WINDOW = ScheduleWindow(
    start=datetime.datetime(2024, 9, 5, 12, 0, tzinfo=UTC),
    end=datetime.datetime(2024, 9, 12, 12, 0, tzinfo=UTC),
    label="next 7d",
)


class _RoutingTransport:
    """Answers by URL suffix; unknown URLs get a 404."""

    def __init__(self, routes: dict[str, object]) -> None:
        self._routes = routes
        self.requests: list[FetchRequest] = []

    async def get(self, request: FetchRequest) -> HttpResponse:
        self.requests.append(request)
        for suffix, body in self._routes.items():
            if request.url.endswith(suffix):
                if callable(body):
                    body = body(request)
                text = body if isinstance(body, str) else json.dumps(body)
                return HttpResponse(200, text, request.url)
        return HttpResponse(404, "", request.url)

    async def close(self) -> None:
        return None


def _queue(transport: _RoutingTransport) -> RequestQueue:
    scheduler = VirtualScheduler()
    limiter = RateLimiter(capacity=1000, min_time_sec=0.0, scheduler=scheduler)
    return RequestQueue(
        limiter=limiter, transport=transport, config=QueueConfig(max_retries=0), scheduler=scheduler
    )


ESPN_PAGE = """
<html><body>
<div class="Table__Title">Sunday, September 8, 2024</div>
<div class="ResponsiveTable"><table><tbody>
  <tr class="Table__TR">
    <td><a href="/nfl/team/_/name/buf/buffalo-bills">Buffalo</a></td>
    <td>@ <a href="/nfl/team/_/name/mia/miami-dolphins">Miami</a></td>
    <td>1:00 PM</td>
  </tr>
  <tr class="Table__TR">
    <td><a href="/nfl/team/_/name/kc/kansas-city-chiefs">Kansas City</a></td>
    <td>@ <a href="/nfl/team/_/name/bal/baltimore-ravens">Baltimore</a></td>
    <td>3:00 AM</td>
  </tr>
</tbody></table></div>
</body></html>
"""


def test_normalize_team_aliases() -> None:
    assert normalize_team("BUF") == "Buffalo Bills"
    assert normalize_team("Dolphins") == "Miami Dolphins"
    assert normalize_team("wsh") == "Washington Commanders"
    assert normalize_team("Kansas City") == "Kansas City Chiefs"
    assert normalize_team("Unknown FC") == "Unknown FC"


def test_espn_table_rows() -> None:
    source = EspnScheduleSource(_queue(_RoutingTransport({"/nfl/schedule": ESPN_PAGE})), tz="America/New_York")

    games = asyncio.run(source.fetch_schedule(WINDOW))

    assert [(g.away_team, g.home_team) for g in games] == [
        ("Buffalo Bills", "Miami Dolphins"),
        ("Kansas City Chiefs", "Baltimore Ravens"),
    ]
    assert games[0].start == datetime.datetime(2024, 9, 8, 17, 0, tzinfo=UTC)
    # "3:00 AM" is outside the kickoff band, so the time stays unparsed
    assert games[1].start is None
    assert {g.source for g in games} == {"ESPN"}


def test_espn_text_fallback_when_no_rows() -> None:
    page = "<html><body><p>Week 1: BUF @ MIA, KC vs BAL and BUF @ BUF</p></body></html>"
    source = EspnScheduleSource(_queue(_RoutingTransport({"/nfl/schedule": page})))

    games = asyncio.run(source.fetch_schedule(WINDOW))

    assert [(g.away_team, g.home_team) for g in games] == [
        ("Buffalo Bills", "Miami Dolphins"),
        ("Kansas City Chiefs", "Baltimore Ravens"),
    ]
    assert all(g.start is None and g.source == "ESPN text" for g in games)


def test_nfl_embedded_json_filters_to_window() -> None:
    data = {
        "props": {
            "games": [
                {
                    "awayTeam": {"fullName": "Buffalo Bills"},
                    "homeTeam": {"nickName": "Dolphins"},
                    "startDate": "2024-09-08T17:00:00Z",
                },
                {
                    "awayTeam": {"abbreviation": "KC"},
                    "homeTeam": {"abbreviation": "BAL"},
                    "startDate": "2024-10-20T17:00:00Z",
                },
            ]
        }
    }
    page = f'<html><script type="application/json">{json.dumps(data)}</script></html>'
    source = NflComScheduleSource(_queue(_RoutingTransport({"/schedules/": page})))

    games = asyncio.run(source.fetch_schedule(WINDOW))

    assert len(games) == 1
    assert games[0].away_team == "Buffalo Bills"
    assert games[0].home_team == "Miami Dolphins"
    assert games[0].source == "NFL.com"


def test_nfl_matchup_cards() -> None:
    page = """
    <div class="game-card" data-away-team="PHI" data-home-team="GB" data-date="Sep 6">
      <span>8:15 PM</span>
    </div>
    """
    source = NflComScheduleSource(_queue(_RoutingTransport({"/schedules/": page})), tz="America/New_York")

    games = source.extract(page, WINDOW)

    assert [(g.away_team, g.home_team) for g in games] == [("Philadelphia Eagles", "Green Bay Packers")]
    assert games[0].start == datetime.datetime(2024, 9, 7, 0, 15, tzinfo=UTC)


def _event(away: str, home: str, timestamp: str, league: str = "NFL") -> dict[str, str]:
    return {"strLeague": league, "strAwayTeam": away, "strHomeTeam": home, "strTimestamp": timestamp}


def test_sportsdb_team_events_in_window() -> None:
    events = {
        "events": [
            _event("Buffalo Bills", "Miami Dolphins", "2024-09-08T17:00:00+00:00"),
            _event("Buffalo Bills", "New York Jets", "2024-09-30T00:15:00+00:00"),
            _event("Toronto Argonauts", "BC Lions", "2024-09-08T17:00:00+00:00", league="CFL"),
        ]
    }
    transport = _RoutingTransport({"/eventsnext.php": events})
    queue = _queue(transport)
    source = SportsDbSource(queue, teams=["Buffalo Bills", "MIA"], team_delay_sec=3.0)

    games = asyncio.run(source.fetch_schedule(WINDOW))

    assert [(g.away_team, g.home_team) for g in games] == [("Buffalo Bills", "Miami Dolphins")] * 2
    assert [dict(r.params)["id"] for r in transport.requests] == ["134918", "134919"]
    assert queue.scheduler.sleeps == [3.0]


def test_sportsdb_falls_back_to_league_day_query() -> None:
    def by_day(request: FetchRequest) -> dict[str, object]:
        if dict(request.params)["d"] == "2024-09-08":
            return {"events": [{"strLeague": "NFL", "strAwayTeam": "BUF", "strHomeTeam": "MIA",
                                "dateEvent": "2024-09-08", "strTime": "17:00:00+00:00"}]}
        return {"events": None}

    transport = _RoutingTransport({"/eventsnext.php": {"events": None}, "/eventsday.php": by_day})
    source = SportsDbSource(_queue(transport), teams=["Buffalo Bills"], team_delay_sec=0.0)

    games = asyncio.run(source.fetch_schedule(WINDOW))

    assert len(games) == 1
    assert games[0].start == datetime.datetime(2024, 9, 8, 17, 0, tzinfo=UTC)
    assert games[0].away_team == "Buffalo Bills"


def test_sportsdb_raises_when_every_team_fails() -> None:
    source = SportsDbSource(_queue(_RoutingTransport({})), teams=["Buffalo Bills", "Miami Dolphins"], team_delay_sec=0.0)

    with pytest.raises(SourceError):
        asyncio.run(source.fetch_schedule(WINDOW))


def test_sportsdb_expansion_reuses_cached_payloads() -> None:
    transport = _RoutingTransport({"/eventsnext.php": {"events": None}, "/eventsday.php": {"events": None}})
    source = SportsDbSource(_queue(transport), teams=["Buffalo Bills", "Miami Dolphins"], team_delay_sec=0.0)
    resolver = ScheduleResolver(
        [source], config=ScheduleConfig(base_days=7, min_games=3, expansion_step_days=7, max_expansion_days=14)
    )

    result = asyncio.run(resolver.resolve(WINDOW))

    assert result.games == ()
    team_calls = [r for r in transport.requests if r.url.endswith("/eventsnext.php")]
    day_calls = [dict(r.params)["d"] for r in transport.requests if r.url.endswith("/eventsday.php")]
    # one request per team, one per calendar day of the widest window
    assert len(team_calls) == 2
    assert len(day_calls) == len(set(day_calls)) == 22
    assert len(transport.requests) == 24


def test_html_source_fetches_page_once_until_reset() -> None:
    transport = _RoutingTransport({"/nfl/schedule": ESPN_PAGE})
    source = EspnScheduleSource(_queue(transport), tz="America/New_York")
    wider = ScheduleWindow(start=WINDOW.start, end=WINDOW.end + datetime.timedelta(days=7))

    asyncio.run(source.fetch_schedule(WINDOW))
    asyncio.run(source.fetch_schedule(wider))
    assert len(transport.requests) == 1

    source.reset_cache()
    asyncio.run(source.fetch_schedule(WINDOW))
    assert len(transport.requests) == 2
