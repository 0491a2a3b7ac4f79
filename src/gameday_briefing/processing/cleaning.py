from __future__ import annotations

import re

from gameday_briefing.core.config import EXCERPT_MAX_CHARS, EXCERPT_MIN_CHARS
from gameday_briefing.core.constants import BOILERPLATE_LINE_HINTS
from gameday_briefing.utils import clean_text, clean_text_ws, split_sentences

_URL_RE = re.compile(r"(?:https?://|www\.)\S+", re.IGNORECASE)
_HANDLE_RE = re.compile(r"(?<![\w@])@\w{2,}")
_PHOTO_CREDIT_RE = re.compile(r"\((?:AP|Getty|USA TODAY)[^)]*(?:Photo|Images|Sports)[^)]*\)", re.IGNORECASE)
_BYLINE_LINE_RE = re.compile(r"By\s+[A-Z][\w.'-]+(?:\s+[A-Z][\w.'-]+){0,3}(?:\s*(?:,|\||and)\s*[A-Z][\w .'-]*)?")
_BYLINE_PATTERNS = (
    re.compile(r"^[A-Z][a-z]+(?:\s+[A-Z][a-z]+){1,2}\s*\|\s*[A-Za-z .]+\|\s*"),
    re.compile(r"\b[A-Z][a-z]+\s+[A-Z][a-z]+,\s*(?:ESPN|NFL\.com|CBS Sports|Yahoo Sports)\s+(?:Staff\s+)?Writer\b\s*"),
    re.compile(r"\b[A-Z][a-z]+\s+[A-Z][a-z]+\s*\|\s*(?:NFL|ESPN|CBS)\s+[A-Z ]*WRITER\b\s*"),
)
_ELLIPSIS = "…"


def _is_boilerplate(line: str) -> bool:
    low = line.lower()
    # long paragraphs that merely mention "subscribe" are real content
    return len(line) < 120 and any(hint in low for hint in BOILERPLATE_LINE_HINTS)


def strip_byline(line: str) -> str:
    if _BYLINE_LINE_RE.fullmatch(line):
        return ""
    for pattern in _BYLINE_PATTERNS:
        line = pattern.sub("", line)
    return line


def clean_excerpt(text: str) -> str:
    """Remove bylines, ad copy, links and handles from raw article text."""
    if not text:
        return ""
    kept: list[str] = []
    for raw_line in re.split(r"[\r\n]+", text):
        line = clean_text(raw_line)
        if not line or _is_boilerplate(line):
            continue
        line = strip_byline(line)
        line = _URL_RE.sub("", line)
        line = _HANDLE_RE.sub("", line)
        line = _PHOTO_CREDIT_RE.sub("", line)
        line = clean_text_ws(line)
        if line:
            kept.append(line)
    return clean_text_ws(" ".join(kept))


def cut_at_word(text: str, limit: int, suffix: str = _ELLIPSIS) -> str:
    if len(text) <= limit:
        return text
    room = max(1, limit - len(suffix))
    cut = text[:room]
    if " " in cut and not text[room].isspace():
        cut = cut[: cut.rfind(" ")]
    return cut.rstrip(" ,;:-") + suffix


def trim_excerpt(text: str, min_chars: int = EXCERPT_MIN_CHARS, max_chars: int = EXCERPT_MAX_CHARS) -> str:
    """Accumulate whole sentences into the [min_chars, max_chars] band.

    Stops as soon as the band is reached. A first sentence that alone
    exceeds `max_chars` is cut at a word boundary instead.
    """
    sentences = split_sentences(text)
    out = ""
    for sentence in sentences:
        candidate = f"{out} {sentence}".strip()
        if len(candidate) > max_chars:
            break
        out = candidate
        if len(out) >= min_chars:
            break
    if not out and sentences:
        return cut_at_word(sentences[0], max_chars)
    return out
