from __future__ import annotations

import datetime
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Excerpt:
    source: str
    text: str
    title: str = ""
    url: str = ""
    tag: str = ""  # team or player the excerpt is about
    published: datetime.datetime | None = None

    @property
    def classify_text(self) -> str:
        return f"{self.title} {self.text}".strip()


@dataclass
class CategoryBucket:
    category: str
    bullets: list[str] = field(default_factory=list)
    total_count: int = 0
    truncated_count: int = 0
    provenance: str = ""

    @property
    def empty(self) -> bool:
        return not self.bullets
