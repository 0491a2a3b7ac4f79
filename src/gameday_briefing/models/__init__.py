"""Typed models for queue, schedule, news and briefing payloads."""

from .briefing import Briefing, BriefingPage, BriefingSection
from .news import CategoryBucket, Excerpt
from .queue import DeferredItem, DrainResult, FetchRequest, HttpResponse, LimiterStats, QueueStats
from .schedule import Game, ScheduleResult, ScheduleWindow

__all__ = [
    "Briefing",
    "BriefingPage",
    "BriefingSection",
    "CategoryBucket",
    "DeferredItem",
    "DrainResult",
    "Excerpt",
    "FetchRequest",
    "Game",
    "HttpResponse",
    "LimiterStats",
    "QueueStats",
    "ScheduleResult",
    "ScheduleWindow",
]
