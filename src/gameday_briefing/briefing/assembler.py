from __future__ import annotations

import datetime
import logging
import math
from typing import Callable, Mapping, Sequence, TypeVar
from zoneinfo import ZoneInfo

from gameday_briefing.core.config import SCHEDULE_TIMEZONE
from gameday_briefing.core.constants import (
    CATEGORY_GAMES,
    DEFAULT_RUN_TYPE,
    EMPTY_MARKERS,
    ITEMS_PER_PAGE,
    SECTION_ORDER,
    SECTION_TITLES,
)
from gameday_briefing.models.briefing import Briefing, BriefingPage, BriefingSection
from gameday_briefing.models.news import CategoryBucket
from gameday_briefing.models.schedule import Game, ScheduleResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

TOTAL_FAILURE_NOTE = "all schedule sources failed"


def chunk(items: Sequence[T], n: int) -> list[list[T]]:
    """Split `items` into pages of `n`; the last page holds the remainder."""
    if n <= 0:
        raise ValueError(f"page size must be positive (got {n})")
    return [list(items[i : i + n]) for i in range(0, len(items), n)]


def page_count(item_count: int, n: int) -> int:
    if n <= 0:
        raise ValueError(f"page size must be positive (got {n})")
    return math.ceil(item_count / n)


def format_game_line(game: Game, tz: datetime.tzinfo) -> str:
    matchup = f"{game.away_team} @ {game.home_team}"
    if game.start is None:
        return f"{matchup} - TBD"
    local = game.start.astimezone(tz)
    hour = local.hour % 12 or 12
    meridiem = "AM" if local.hour < 12 else "PM"
    zone = "ET" if getattr(tz, "key", "") == "America/New_York" else (local.tzname() or "")
    when = f"{local:%a} {local.month}/{local.day} {hour}:{local.minute:02d} {meridiem}"
    return f"{matchup} - {when} {zone}".rstrip()


def schedule_provenance(result: ScheduleResult) -> str:
    if result.total_failure:
        return TOTAL_FAILURE_NOTE
    if result.source is None:
        return "no schedule source"
    if result.expanded:
        return f"{result.source}; expanded to {round(result.window_used.days)} days"
    return result.source


class BriefingAssembler:
    """Turn schedule and news results into the fixed-shape briefing payload.

    Every category in `SECTION_ORDER` is always present. Items keep the
    order they arrived in; only pagination is applied here.
    """

    def __init__(
        self,
        *,
        items_per_page: Mapping[str, int] = ITEMS_PER_PAGE,
        tz: datetime.tzinfo | None = None,
        now_func: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self._items_per_page = dict(items_per_page)
        self._tz = tz or ZoneInfo(SCHEDULE_TIMEZONE)
        self._now = now_func or (lambda: datetime.datetime.now(datetime.timezone.utc))

    def build_section(
        self,
        category: str,
        items: Sequence[str],
        *,
        total_count: int | None = None,
        truncated_count: int = 0,
        provenance: str = "",
    ) -> BriefingSection:
        size = self._items_per_page.get(category, 5)
        pages: list[BriefingPage] = [
            {"index": i, "items": page} for i, page in enumerate(chunk(items, size), start=1)
        ]
        section: BriefingSection = {
            "category": category,
            "title": SECTION_TITLES.get(category, category.title()),
            "pages": pages,
            "totalCount": len(items) if total_count is None else total_count,
            "truncatedCount": truncated_count,
            "provenance": provenance,
            "empty": not items,
        }
        if not items:
            section["emptyMarker"] = EMPTY_MARKERS.get(category, "No items")
        return section

    def games_section(self, result: ScheduleResult) -> BriefingSection:
        lines = [format_game_line(g, self._tz) for g in result.games]
        return self.build_section(CATEGORY_GAMES, lines, provenance=schedule_provenance(result))

    def assemble(
        self,
        schedule_result: ScheduleResult,
        buckets: Sequence[CategoryBucket],
        *,
        subject: str = "",
        run_type: str = DEFAULT_RUN_TYPE,
    ) -> Briefing:
        by_category = {b.category: b for b in buckets}
        sections: list[BriefingSection] = []
        for category in SECTION_ORDER:
            if category == CATEGORY_GAMES:
                sections.append(self.games_section(schedule_result))
                continue
            bucket = by_category.get(category) or CategoryBucket(category=category, provenance="no data")
            sections.append(
                self.build_section(
                    category,
                    bucket.bullets,
                    total_count=bucket.total_count,
                    truncated_count=bucket.truncated_count,
                    provenance=bucket.provenance,
                )
            )

        window = schedule_result.window_used
        briefing: Briefing = {
            "generatedAt": self._now().isoformat(),
            "subject": subject,
            "runType": run_type,
            "scheduleWindow": f"{window.start.date().isoformat()}..{window.end.date().isoformat()}",
            "scheduleExpanded": schedule_result.expanded,
            "sourcesAttempted": list(schedule_result.sources_attempted),
            "sections": sections,
        }
        logger.info(
            "assembled briefing: %s",
            ", ".join(f"{s['category']}={len(s['pages'])}p" for s in sections),
        )
        return briefing
