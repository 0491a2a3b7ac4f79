from __future__ import annotations

from typing import NotRequired, TypedDict


class BriefingPage(TypedDict):
    index: int
    items: list[str]


class BriefingSection(TypedDict):
    category: str
    title: str
    pages: list[BriefingPage]
    totalCount: int
    truncatedCount: int
    provenance: str
    empty: bool
    emptyMarker: NotRequired[str]


class Briefing(TypedDict):
    generatedAt: str
    subject: str
    runType: str
    scheduleWindow: str
    scheduleExpanded: bool
    sourcesAttempted: list[str]
    sections: list[BriefingSection]
    queueStats: NotRequired[dict[str, object]]
