from __future__ import annotations

import re
from typing import Mapping

from gameday_briefing.core.constants import (
    CATEGORY_BREAKING,
    CATEGORY_INJURIES,
    CATEGORY_PATTERNS,
    CATEGORY_ROSTER,
    EXCLUDE_HINT_PATTERN,
)
from gameday_briefing.models.news import Excerpt


class NewsClassifier:
    """Rule-based category assignment.

    Pure function of the excerpt text: exclusion hints first, then
    injuries, roster moves, and breaking news only when neither of the
    other two signals is present.
    """

    def __init__(
        self,
        *,
        patterns: Mapping[str, tuple[re.Pattern[str], ...]] = CATEGORY_PATTERNS,
        exclude_pattern: re.Pattern[str] | None = EXCLUDE_HINT_PATTERN,
    ) -> None:
        self._patterns = dict(patterns)
        self._exclude = exclude_pattern

    def matches(self, category: str, text: str) -> bool:
        return any(p.search(text) for p in self._patterns.get(category, ()))

    def classify_text(self, text: str) -> str | None:
        if not text:
            return None
        if self._exclude is not None and self._exclude.search(text):
            return None
        injury = self.matches(CATEGORY_INJURIES, text)
        roster = self.matches(CATEGORY_ROSTER, text)
        if injury:
            return CATEGORY_INJURIES
        if roster:
            return CATEGORY_ROSTER
        if self.matches(CATEGORY_BREAKING, text):
            return CATEGORY_BREAKING
        return None

    def classify(self, excerpt: Excerpt) -> str | None:
        return self.classify_text(excerpt.classify_text)
