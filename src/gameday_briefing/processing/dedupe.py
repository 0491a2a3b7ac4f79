from __future__ import annotations

import logging
import re
from typing import Callable, Sequence

from gameday_briefing.core.config import DEDUPE_JACCARD_THRESHOLD, ENHANCER_BATCH_MAX
from gameday_briefing.processing.enhancer import Enhancer
from gameday_briefing.utils import jaccard

logger = logging.getLogger(__name__)

_PUNCT_RE = re.compile(r"[^\w\s]|_")
_WS_RE = re.compile(r"\s+")


def normalize_for_dedupe(text: str) -> str:
    # punctuation becomes a space so "day-to-day" and "day to day" agree
    lowered = (text or "").lower()
    return _WS_RE.sub(" ", _PUNCT_RE.sub(" ", lowered)).strip()


def dedupe_tokens(text: str) -> set[str]:
    return set(normalize_for_dedupe(text).split())


class DedupeEngine:
    """Two-tier bullet deduplication.

    Tier 1 (`simple_dedupe`) is deterministic token-set Jaccard matching and
    always runs. Tier 2 (`semantic_dedupe`) hands a bounded batch to the
    enhancer and falls back to the tier 1 result on any failure.
    """

    def __init__(
        self,
        *,
        threshold: float = DEDUPE_JACCARD_THRESHOLD,
        batch_max: int = ENHANCER_BATCH_MAX,
        tokenize_func: Callable[[str], set[str]] = dedupe_tokens,
        jaccard_func: Callable[[set[str], set[str]], float] = jaccard,
    ) -> None:
        self._threshold = threshold
        self._batch_max = max(1, batch_max)
        self._tokenize = tokenize_func
        self._jaccard = jaccard_func

    def similarity(self, a: str, b: str) -> float:
        return self._jaccard(self._tokenize(a), self._tokenize(b))

    def is_duplicate(self, a: str, b: str) -> bool:
        return self.similarity(a, b) > self._threshold

    def simple_dedupe(self, bullets: Sequence[str]) -> list[str]:
        kept: list[str] = []
        kept_tokens: list[set[str]] = []
        for bullet in bullets:
            toks = self._tokenize(bullet)
            if any(self._jaccard(toks, other) > self._threshold for other in kept_tokens):
                continue
            kept.append(bullet)
            kept_tokens.append(toks)
        return kept

    async def semantic_dedupe(self, bullets: Sequence[str], enhancer: Enhancer) -> list[str]:
        base = self.simple_dedupe(bullets)
        if not enhancer.enabled or len(base) < 2:
            return base
        head, tail = base[: self._batch_max], base[self._batch_max :]
        try:
            merged = await enhancer.merge_duplicates(head)
        except Exception as exc:
            logger.warning("semantic dedupe failed, keeping rule-based result: %s", exc)
            return base
        if not merged:
            logger.info("semantic dedupe returned nothing, keeping rule-based result")
            return base
        return [*merged, *tail]


_default_engine = DedupeEngine()


def simple_dedupe(bullets: Sequence[str]) -> list[str]:
    return _default_engine.simple_dedupe(bullets)


async def semantic_dedupe(bullets: Sequence[str], enhancer: Enhancer) -> list[str]:
    return await _default_engine.semantic_dedupe(bullets, enhancer)
