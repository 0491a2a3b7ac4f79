from __future__ import annotations

import re

from gameday_briefing.core.config import BULLET_MAX_CHARS
from gameday_briefing.core.constants import TEAM_ABBR_BY_NAME, TEAM_ABBREVIATIONS, TEAM_ALIASES
from gameday_briefing.processing.formatting import enforce_format

TRANSACTIONS_LABEL = "PFR"

_ACTION_RE = re.compile(
    r"\b(re-?sign(?:s|ed)?|sign(?:s|ed)?|waive(?:s|d)?|release(?:s|d)?|trade(?:s|d)?|acquire(?:s|d)?|"
    r"promote(?:s|d)?|elevate(?:s|d)?|claim(?:s|ed)?|activate(?:s|d)?|"
    r"place(?:s|d)?\b.{0,40}?\bon (?:injured reserve|ir)|designate(?:s|d)?\b.{0,40}?\b(?:for|to) return|"
    r"extend(?:s|ed)?|extension)\b",
    re.IGNORECASE,
)
# matched stem -> normalized verb, first hit wins
_ACTION_NAMES: tuple[tuple[str, str], ...] = (
    ("resign", "Re-signed"),
    ("sign", "Signed"),
    ("waive", "Waived"),
    ("release", "Released"),
    ("trade", "Traded"),
    ("acquire", "Acquired"),
    ("promote", "Promoted"),
    ("elevate", "Elevated"),
    ("claim", "Claimed"),
    ("activate", "Activated"),
    ("place", "Placed on IR"),
    ("designate", "Designated to return"),
    ("exten", "Extended"),
)

_TEAM_WORDS_RE = re.compile(
    r"\b(" + "|".join(re.escape(a) for a in sorted(TEAM_ALIASES, key=len, reverse=True) if len(a) > 3) + r")\b",
    re.IGNORECASE,
)
_TEAM_ABBR_RE = re.compile(r"\b(" + "|".join(sorted(TEAM_ABBREVIATIONS, key=len, reverse=True)) + r")\b")
_TOKEN_RE = re.compile(r"[A-Za-z][A-Za-z.'\-]*|[^\sA-Za-z]+")

_POSITIONS = {
    "QB", "RB", "FB", "WR", "TE", "OL", "OT", "OG", "LT", "RT", "LG", "RG", "C", "G", "T",
    "DL", "DE", "DT", "NT", "EDGE", "LB", "ILB", "OLB", "CB", "DB", "S", "FS", "SS", "K", "P", "LS",
    "KR", "PR",
}
_STOPWORDS = {
    "a", "after", "agent", "agents", "agree", "agrees", "among", "an", "and", "as", "at", "contract",
    "cut", "cuts", "deal", "designate", "designated", "designates", "draft", "ex", "five-year", "for",
    "former", "four-year", "franchise", "free", "from", "in", "injured", "ir", "league", "list", "minor",
    "move", "moves", "multi-year", "nfi", "nfl", "notes", "of", "off", "on", "one-year", "option", "pick",
    "place", "placed", "places", "plus", "practice", "ps", "pup", "reinstate", "reinstated", "reinstates",
    "reserve", "restructure", "restructures", "return", "rookie", "roster", "squad", "suspended", "tag",
    "tender", "the", "three-year", "to", "two-year", "undrafted", "veteran", "waiver", "waivers", "with",
    "year",
}
_NAME_SUFFIXES = {"jr", "sr", "ii", "iii", "iv", "v"}


def extract_action(title: str) -> str | None:
    m = _ACTION_RE.search(title or "")
    if not m:
        return None
    matched = m.group(1).lower().replace("-", "")
    for stem, name in _ACTION_NAMES:
        if matched.startswith(stem):
            return name
    return None


def extract_team(title: str) -> str | None:
    """Abbreviation of the first team named in the title."""
    hits = [m for m in (_TEAM_WORDS_RE.search(title or ""), _TEAM_ABBR_RE.search(title or "")) if m]
    if not hits:
        return None
    first = min(hits, key=lambda m: m.start())
    full = TEAM_ALIASES.get(first.group(1).lower())
    return TEAM_ABBR_BY_NAME.get(full) if full else None


def _is_name_token(token: str) -> bool:
    if not token[0].isupper():
        return False
    bare = token.strip(".-'").lower()
    if not bare or bare in _STOPWORDS or token.strip(".") in _POSITIONS:
        return False
    return not _ACTION_RE.fullmatch(token)


def extract_player(title: str) -> str | None:
    """First run of two or more capitalized name words outside team names.

    Feed titles are title-cased, so verbs, positions and contract words
    are skipped by vocabulary rather than by case.
    """
    masked = _TEAM_ABBR_RE.sub(" , ", _TEAM_WORDS_RE.sub(" , ", title or ""))
    runs: list[list[str]] = []
    current: list[str] = []
    for token in _TOKEN_RE.findall(masked):
        if token[0].isalpha() and (_is_name_token(token) or (current and token.strip(".").lower() in _NAME_SUFFIXES)):
            current.append(token)
            continue
        if current:
            runs.append(current)
            current = []
    if current:
        runs.append(current)
    for run in runs:
        if len(run) >= 2:
            return " ".join(run if len(run) <= 4 else run[:2])
    return None


def transaction_bullet(title: str, source: str = TRANSACTIONS_LABEL, *, max_chars: int = BULLET_MAX_CHARS) -> str | None:
    """`Bills Sign WR Marcus Jones` -> `BUF - Signed Marcus Jones (PFR)`.

    Titles without a team or a recognizable move are not transactions.
    When no player name can be picked out the cleaned title is used.
    """
    team = extract_team(title)
    action = extract_action(title)
    if not team or not action:
        return None
    player = extract_player(title)
    if not player:
        return enforce_format(title, source, max_chars)
    return enforce_format(f"{team} - {action} {player}", source, max_chars)
