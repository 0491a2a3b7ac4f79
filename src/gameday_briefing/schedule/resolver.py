from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from gameday_briefing.core.config import (
    SCHEDULE_BASE_DAYS,
    SCHEDULE_EXPANSION_STEP_DAYS,
    SCHEDULE_MAX_EXPANSION_DAYS,
    SCHEDULE_MIN_GAMES,
)
from gameday_briefing.models.schedule import Game, ScheduleResult, ScheduleWindow
from gameday_briefing.schedule.sources import ScheduleSource

logger = logging.getLogger(__name__)

_FAR_FUTURE = datetime.datetime.max.replace(tzinfo=datetime.timezone.utc)


@dataclass(frozen=True)
class ScheduleConfig:
    base_days: int = SCHEDULE_BASE_DAYS
    min_games: int = SCHEDULE_MIN_GAMES
    expansion_step_days: int = SCHEDULE_EXPANSION_STEP_DAYS
    max_expansion_days: int = SCHEDULE_MAX_EXPANSION_DAYS


def dedupe_games(games: Iterable[Game]) -> list[Game]:
    """Drop exact (away, home, start) repeats, keeping the first seen."""
    seen: set[tuple[str, str, datetime.datetime | None]] = set()
    out: list[Game] = []
    for game in games:
        if game.identity in seen:
            continue
        seen.add(game.identity)
        out.append(game)
    return out


def sort_games(games: Sequence[Game]) -> list[Game]:
    # sorted() is stable, so unparsed games keep their source order at the end
    return sorted(games, key=lambda g: (g.start is None, g.start or _FAR_FUTURE))


class ScheduleResolver:
    """Try schedule sources in priority order, widening sparse windows.

    While a source returns fewer than `min_games`, the window end is pushed
    out by `expansion_step_days` (never more than `max_expansion_days` in
    total) and the same source is asked again. The first source left with
    at least one game is accepted; results are never merged across sources.
    A source that raised is not re-queried. Source caches are cleared at
    the start of each resolve and kept across its expansion steps.
    """

    def __init__(self, sources: Sequence[ScheduleSource], *, config: ScheduleConfig | None = None) -> None:
        self._sources = list(sources)
        self._config = config or ScheduleConfig()

    def base_window(self, now: datetime.datetime | None = None) -> ScheduleWindow:
        now = now or datetime.datetime.now(datetime.timezone.utc)
        return ScheduleWindow.upcoming(now, self._config.base_days)

    async def _query(self, source: ScheduleSource, window: ScheduleWindow, failures: dict[str, str]) -> list[Game]:
        try:
            games = await source.fetch_schedule(window)
        except Exception as exc:
            failures[source.name] = str(exc) or type(exc).__name__
            logger.warning("schedule source %s failed: %s", source.name, exc)
            return []
        return dedupe_games(games)

    async def resolve(self, window: ScheduleWindow | None = None) -> ScheduleResult:
        base = window or self.base_window()
        cfg = self._config
        attempted: list[str] = []
        failures: dict[str, str] = {}

        for source in self._sources:
            source.reset_cache()
            attempted.append(source.name)
            games = await self._query(source, base, failures)

            used = base
            extra = 0
            while (
                len(games) < cfg.min_games
                and source.name not in failures
                and extra < cfg.max_expansion_days
                and cfg.expansion_step_days > 0
            ):
                extra = min(extra + cfg.expansion_step_days, cfg.max_expansion_days)
                used = base.widened(extra)
                logger.info(
                    "only %d games from %s, expanding window by %d days", len(games), source.name, extra
                )
                wider = await self._query(source, used, failures)
                games = dedupe_games([*games, *wider])

            if not games:
                logger.info("schedule source %s returned no games up to %s", source.name, used.end.date())
                continue

            logger.info("schedule resolved from %s: %d games", source.name, len(games))
            return ScheduleResult(
                games=tuple(sort_games(games)),
                window_used=used,
                expanded=used is not base,
                sources_attempted=tuple(attempted),
                source=source.name,
                failures=failures,
            )

        logger.warning("no schedule source produced games (attempted: %s)", ", ".join(attempted))
        return ScheduleResult(
            games=(),
            window_used=base,
            expanded=False,
            sources_attempted=tuple(attempted),
            source=None,
            failures=failures,
        )
