from __future__ import annotations

import datetime
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Game:
    away_team: str
    home_team: str
    start: datetime.datetime | None  # aware UTC, None when unparsed
    source: str

    @property
    def identity(self) -> tuple[str, str, datetime.datetime | None]:
        return (self.away_team, self.home_team, self.start)


@dataclass(frozen=True)
class ScheduleWindow:
    start: datetime.datetime
    end: datetime.datetime
    label: str = ""

    @property
    def days(self) -> float:
        return (self.end - self.start).total_seconds() / 86400.0

    def contains(self, moment: datetime.datetime) -> bool:
        return self.start <= moment <= self.end

    def widened(self, extra_days: int) -> "ScheduleWindow":
        # start never moves
        end = self.end + datetime.timedelta(days=extra_days)
        label = f"{self.label} +{extra_days}d" if self.label else f"+{extra_days}d"
        return ScheduleWindow(start=self.start, end=end, label=label)

    @classmethod
    def upcoming(cls, now: datetime.datetime, days: int, label: str = "") -> "ScheduleWindow":
        return cls(start=now, end=now + datetime.timedelta(days=days), label=label or f"next {days}d")


@dataclass(frozen=True)
class ScheduleResult:
    games: tuple[Game, ...]
    window_used: ScheduleWindow
    expanded: bool
    sources_attempted: tuple[str, ...]
    source: str | None = None
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def total_failure(self) -> bool:
        return self.source is None and not self.games
