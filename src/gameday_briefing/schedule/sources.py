from __future__ import annotations

import datetime
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Protocol, Sequence

from bs4 import BeautifulSoup, Tag

from gameday_briefing.core.config import (
    SCHEDULE_TEAMS,
    SCHEDULE_TIMEZONE,
    SPORTSDB_BASE_URL,
    SPORTSDB_KEY,
    TEAM_DELAY_MS,
)
from gameday_briefing.core.constants import (
    ESPN_SCHEDULE_URL,
    NFL_LEAGUE_NAME,
    NFL_SCHEDULE_URL,
    SPORTSDB_TEAM_IDS,
    TEAM_ABBREVIATIONS,
    TEAM_ALIASES,
    TEAM_NAMES,
)
from gameday_briefing.core.errors import RequestError, SourceError
from gameday_briefing.models.queue import FetchRequest
from gameday_briefing.models.schedule import Game, ScheduleWindow
from gameday_briefing.net.request_queue import RequestQueue
from gameday_briefing.schedule.kickoff import find_date_text, find_time_text, parse_kickoff
from gameday_briefing.utils import clean_text_ws, parse_datetime_utc

logger = logging.getLogger(__name__)

_ABBR_ALT = "|".join(sorted(TEAM_ABBREVIATIONS, key=len, reverse=True))
_MATCHUP_TEXT_RE = re.compile(rf"\b({_ABBR_ALT})\s*(?:@|vs\.?|at)\s*({_ABBR_ALT})\b")
_TEAM_NAME_RE = re.compile(
    r"\b(" + "|".join(re.escape(alias) for alias in sorted(TEAM_ALIASES, key=len, reverse=True) if len(alias) > 3) + r")\b",
    re.IGNORECASE,
)


def normalize_team(name: str) -> str:
    """Map abbreviations and nicknames to the full franchise name."""
    cleaned = clean_text_ws(name).strip(" @")
    if not cleaned:
        return ""
    return TEAM_ALIASES.get(cleaned.lower(), cleaned)


class ScheduleSource(Protocol):
    name: str

    async def fetch_schedule(self, window: ScheduleWindow) -> list[Game]: ...

    def reset_cache(self) -> None: ...


@dataclass(frozen=True)
class ParseContext:
    source: str
    tz: str
    reference: datetime.datetime


ExtractionStrategy = Callable[[BeautifulSoup, ParseContext], list[Game]]


# -----------------------------
# Structured API
# -----------------------------
class SportsDbSource:
    """TheSportsDB events API: per-team upcoming events, then per-day league events.

    Payloads are cached until `reset_cache()`, so re-querying with a wider
    window only costs requests for days the window did not cover yet.
    """

    name = "TheSportsDB"

    def __init__(
        self,
        queue: RequestQueue,
        *,
        base_url: str = SPORTSDB_BASE_URL,
        api_key: str = SPORTSDB_KEY,
        teams: Sequence[str] | None = None,
        team_delay_sec: float = TEAM_DELAY_MS / 1000.0,
    ) -> None:
        self._queue = queue
        self._base = f"{base_url.rstrip('/')}/{api_key}"
        self._teams = [normalize_team(t) for t in (teams or SCHEDULE_TEAMS or TEAM_NAMES)]
        self._team_delay = team_delay_sec
        # team -> events, None when the request failed or was deferred
        self._team_events: dict[str, list[dict[str, Any]] | None] = {}
        self._day_events: dict[datetime.date, list[dict[str, Any]]] = {}

    def reset_cache(self) -> None:
        self._team_events.clear()
        self._day_events.clear()

    async def _events_for_team(self, team: str, team_id: str, *, delay: bool) -> list[dict[str, Any]] | None:
        if team in self._team_events:
            return self._team_events[team]
        if delay and self._team_delay > 0:
            await self._queue.scheduler.sleep(self._team_delay)
        request = FetchRequest.build(
            f"{self._base}/eventsnext.php", params={"id": team_id}, source=self.name, subject=team
        )
        try:
            payload = await self._queue.submit(request, defer=True)
        except RequestError as exc:
            logger.warning("TheSportsDB events for %s failed: %s", team, exc)
            payload = None
        # None from submit means deferred for a later drain
        events = None if payload is None else _events(payload, "events")
        self._team_events[team] = events
        return events

    async def fetch_schedule(self, window: ScheduleWindow) -> list[Game]:
        games: list[Game] = []
        failures = 0
        fetched = 0
        for team in self._teams:
            team_id = SPORTSDB_TEAM_IDS.get(team)
            if not team_id:
                logger.debug("no TheSportsDB id for %s", team)
                continue
            cached = team in self._team_events
            events = await self._events_for_team(team, team_id, delay=fetched > 0 and not cached)
            if not cached:
                fetched += 1
            if events is None:
                failures += 1
                continue
            games.extend(self._games_in_window(events, window))

        if not games:
            games = await self._fetch_by_day(window)
        if not games and self._teams and failures >= len(self._teams):
            raise SourceError("every TheSportsDB team request failed")
        return games

    async def _fetch_by_day(self, window: ScheduleWindow) -> list[Game]:
        games: list[Game] = []
        day = window.start.date()
        last = window.end.date()
        while day <= last:
            if day not in self._day_events:
                request = FetchRequest.build(
                    f"{self._base}/eventsday.php",
                    params={"d": day.isoformat(), "l": NFL_LEAGUE_NAME},
                    source=self.name,
                    subject=day.isoformat(),
                )
                try:
                    payload = await self._queue.submit(request)
                except RequestError as exc:
                    logger.warning("TheSportsDB day %s failed: %s", day, exc)
                    payload = None
                self._day_events[day] = _events(payload, "events")
            games.extend(self._games_in_window(self._day_events[day], window))
            day += datetime.timedelta(days=1)
        return games

    def _games_in_window(self, events: Iterable[dict[str, Any]], window: ScheduleWindow) -> list[Game]:
        out: list[Game] = []
        for event in events:
            game = self.event_to_game(event)
            if game is None or game.start is None:
                continue
            if window.contains(game.start):
                out.append(game)
        return out

    def event_to_game(self, event: dict[str, Any]) -> Game | None:
        league = str(event.get("strLeague") or NFL_LEAGUE_NAME)
        if league != NFL_LEAGUE_NAME:
            return None
        away = normalize_team(str(event.get("strAwayTeam") or ""))
        home = normalize_team(str(event.get("strHomeTeam") or ""))
        if not away or not home:
            return None
        start = parse_datetime_utc(str(event.get("strTimestamp") or ""))
        if start is None and event.get("dateEvent"):
            raw_time = str(event.get("strTime") or "00:00:00").split("+")[0]
            start = parse_datetime_utc(f"{event['dateEvent']}T{raw_time}")
        return Game(away_team=away, home_team=home, start=start, source=self.name)


def _events(payload: Any, key: str) -> list[dict[str, Any]]:
    if not isinstance(payload, dict):
        return []
    events = payload.get(key)
    if not isinstance(events, list):
        return []
    return [e for e in events if isinstance(e, dict)]


# -----------------------------
# Scraped sources
# -----------------------------
class HtmlScheduleSource:
    """Fetch one schedule page and run extraction strategies in order.

    The first strategy that yields at least one game wins. Games whose
    time could not be parsed are kept; the rest must fall in the window.
    """

    name = "html"
    url = ""
    strategies: tuple[ExtractionStrategy, ...] = ()

    def __init__(
        self,
        queue: RequestQueue,
        *,
        url: str | None = None,
        tz: str = SCHEDULE_TIMEZONE,
        strategies: Sequence[ExtractionStrategy] | None = None,
    ) -> None:
        self._queue = queue
        self._url = url or self.url
        self._tz = tz
        if strategies is not None:
            self.strategies = tuple(strategies)
        self._markup: str | None = None

    def reset_cache(self) -> None:
        self._markup = None

    async def fetch_schedule(self, window: ScheduleWindow) -> list[Game]:
        # the page does not depend on the window; fetch it once per resolve
        if self._markup is None:
            request = FetchRequest.build(self._url, source=self.name, expect="text")
            self._markup = await self._queue.submit(request) or ""
        markup = self._markup
        if not markup:
            return []
        return self.extract(markup, window)

    def extract(self, markup: str, window: ScheduleWindow) -> list[Game]:
        soup = BeautifulSoup(markup, "html.parser")
        ctx = ParseContext(source=self.name, tz=self._tz, reference=window.start)
        for strategy in self.strategies:
            try:
                games = strategy(soup, ctx)
            except Exception as exc:
                logger.warning("%s strategy %s failed: %s", self.name, getattr(strategy, "__name__", strategy), exc)
                continue
            if games:
                logger.info("%s: %d games via %s", self.name, len(games), getattr(strategy, "__name__", "strategy"))
                return [g for g in games if g.start is None or window.contains(g.start)]
        return []


def _select_rows(soup: BeautifulSoup, selectors: Sequence[str]) -> list[Tag]:
    for selector in selectors:
        rows = soup.select(selector)
        if rows:
            return rows
    return []


def _teams_from_links(row: Tag) -> list[str]:
    names: list[str] = []
    for a in row.select('a[href*="/team/"]'):
        name = normalize_team(a.get_text(" ", strip=True))
        if name and (not names or names[-1] != name):
            names.append(name)
    return names


def _teams_from_text(text: str) -> list[str]:
    names: list[str] = []
    for m in _TEAM_NAME_RE.finditer(text or ""):
        name = normalize_team(m.group(1))
        if name and name not in names:
            names.append(name)
    return names


def _row_date_text(row: Tag) -> str | None:
    if row.get("data-date"):
        return str(row["data-date"])
    title = row.find_previous(class_=re.compile(r"Table__Title|section-title|schedule-date"))
    if title is not None:
        found = find_date_text(title.get_text(" ", strip=True))
        if found:
            return found
    return find_date_text(row.get_text(" ", strip=True))


def _games_from_rows(rows: Iterable[Tag], ctx: ParseContext) -> list[Game]:
    games: list[Game] = []
    for row in rows:
        text = row.get_text(" ", strip=True)
        teams = _teams_from_links(row)
        if len(teams) < 2:
            teams = _teams_from_text(text)
        if len(teams) < 2 or teams[0] == teams[1]:
            continue
        date_text = _row_date_text(row)
        start = parse_kickoff(date_text, find_time_text(text), tz=ctx.tz, reference=ctx.reference) if date_text else None
        games.append(Game(away_team=teams[0], home_team=teams[1], start=start, source=ctx.source))
    return games


def games_from_text(soup: BeautifulSoup, ctx: ParseContext) -> list[Game]:
    """Last resort: `BUF @ MIA` style matchups anywhere in the page text."""
    text = soup.get_text(" ", strip=True)
    games: list[Game] = []
    for m in _MATCHUP_TEXT_RE.finditer(text):
        away, home = normalize_team(m.group(1)), normalize_team(m.group(2))
        if away and home and away != home:
            games.append(Game(away_team=away, home_team=home, start=None, source=f"{ctx.source} text"))
    return games


ESPN_ROW_SELECTORS = (
    ".ResponsiveTable tbody tr",
    ".Table__TR",
    '[data-module="schedule"] tbody tr',
    ".schedule-table tbody tr",
)
ESPN_FALLBACK_ROW_SELECTORS = ("tr[data-date]", ".schedule tr", "tbody tr")


def espn_table_rows(soup: BeautifulSoup, ctx: ParseContext) -> list[Game]:
    return _games_from_rows(_select_rows(soup, ESPN_ROW_SELECTORS), ctx)


def espn_fallback_rows(soup: BeautifulSoup, ctx: ParseContext) -> list[Game]:
    return _games_from_rows(_select_rows(soup, ESPN_FALLBACK_ROW_SELECTORS), ctx)


class EspnScheduleSource(HtmlScheduleSource):
    name = "ESPN"
    url = ESPN_SCHEDULE_URL
    strategies = (espn_table_rows, espn_fallback_rows, games_from_text)


def _team_label(value: Any) -> str:
    if isinstance(value, str):
        return normalize_team(value)
    if isinstance(value, dict):
        for key in ("fullName", "name", "displayName", "nickName", "abbreviation"):
            if isinstance(value.get(key), str) and value[key].strip():
                return normalize_team(value[key])
    return ""


def _walk_json(node: Any) -> Iterable[dict[str, Any]]:
    stack = [node]
    while stack:
        cur = stack.pop()
        if isinstance(cur, dict):
            yield cur
            stack.extend(reversed(list(cur.values())))
        elif isinstance(cur, list):
            stack.extend(reversed(cur))


def nfl_embedded_json(soup: BeautifulSoup, ctx: ParseContext) -> list[Game]:
    games: list[Game] = []
    scripts = soup.select('script[type="application/json"], script[type="application/ld+json"], script#__NEXT_DATA__')
    for script in scripts:
        try:
            data = json.loads(script.string or script.get_text() or "")
        except ValueError:
            continue
        for obj in _walk_json(data):
            if "homeTeam" not in obj or "awayTeam" not in obj:
                continue
            away, home = _team_label(obj.get("awayTeam")), _team_label(obj.get("homeTeam"))
            if not away or not home:
                continue
            raw = obj.get("startDate") or obj.get("gameTime") or obj.get("time") or obj.get("date") or ""
            start = parse_datetime_utc(str(raw)) if raw else None
            games.append(Game(away_team=away, home_team=home, start=start, source=ctx.source))
        if games:
            break
    return games


NFL_CARD_SELECTORS = ("[data-away-team][data-home-team]", ".nfl-c-matchup-strip", ".game-card", ".schedule-game-card")


def nfl_matchup_cards(soup: BeautifulSoup, ctx: ParseContext) -> list[Game]:
    games: list[Game] = []
    for card in _select_rows(soup, NFL_CARD_SELECTORS):
        if card.get("data-away-team") and card.get("data-home-team"):
            teams = [normalize_team(str(card["data-away-team"])), normalize_team(str(card["data-home-team"]))]
        else:
            abbrs = [el.get_text(strip=True) for el in card.select(".nfl-c-matchup-strip__team-abbreviation")]
            teams = [normalize_team(a) for a in abbrs if a] or _teams_from_text(card.get_text(" ", strip=True))
        if len(teams) < 2 or teams[0] == teams[1]:
            continue
        text = card.get_text(" ", strip=True)
        date_text = card.get("data-date") or _row_date_text(card)
        start = parse_kickoff(str(date_text), find_time_text(text), tz=ctx.tz, reference=ctx.reference) if date_text else None
        games.append(Game(away_team=teams[0], home_team=teams[1], start=start, source=ctx.source))
    return games


class NflComScheduleSource(HtmlScheduleSource):
    name = "NFL.com"
    url = NFL_SCHEDULE_URL
    strategies = (nfl_embedded_json, nfl_matchup_cards, games_from_text)


def default_sources(queue: RequestQueue) -> list[ScheduleSource]:
    return [SportsDbSource(queue), EspnScheduleSource(queue), NflComScheduleSource(queue)]
