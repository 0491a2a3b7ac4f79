from __future__ import annotations

import re

from gameday_briefing.core.config import BULLET_MAX_CHARS
from gameday_briefing.core.constants import SOURCE_PLACEHOLDER
from gameday_briefing.processing.cleaning import cut_at_word
from gameday_briefing.utils import clean_text_ws, split_sentences

_BULLET_PREFIX_RE = re.compile(r"^\s*(?:(?:[•\-*–]+|\d+[.)]|\[\d+\])\s*)+")
# "(ESPN)", "(NFL.com)", "(Source unavailable)"; lowercase asides like "(ankle)" are not citations.
# Model output often closes the line after the citation: "... (ESPN)."
_CITATION_RE = re.compile(r"\s*\(([A-Z0-9][^()]{0,39})\)[\s.!]*$")


def strip_bullet_prefix(line: str) -> str:
    return _BULLET_PREFIX_RE.sub("", line or "", count=1).strip()


def split_citation(text: str) -> tuple[str, str | None]:
    m = _CITATION_RE.search(text)
    if not m:
        return text, None
    return text[: m.start()].rstrip(), f"({m.group(1).strip()})"


def enforce_format(text: str, source: str | None = None, max_chars: int = BULLET_MAX_CHARS) -> str:
    """Bound a bullet to `max_chars` and guarantee it ends with a citation.

    An existing trailing citation is kept; otherwise `source` is cited, or
    a placeholder when nothing is known. Long bodies are cut at a sentence
    boundary when one fits, else at a word boundary.
    """
    text = clean_text_ws(strip_bullet_prefix(text))
    body, citation = split_citation(text)
    if citation is None:
        citation = f"({source})" if source else SOURCE_PLACEHOLDER
    budget = max(1, max_chars - len(citation) - 1)
    if len(body) > budget:
        kept = ""
        for sentence in split_sentences(body):
            candidate = f"{kept} {sentence}".strip()
            if len(candidate) > budget:
                break
            kept = candidate
        body = kept or cut_at_word(body, budget)
    if not body:
        return citation
    return f"{body} {citation}"
