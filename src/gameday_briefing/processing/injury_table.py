from __future__ import annotations

import datetime
import logging
import re
from dataclasses import dataclass
from typing import Sequence

from bs4 import BeautifulSoup, Tag

from gameday_briefing.core.config import BULLET_MAX_CHARS, INJURY_TABLE_URL
from gameday_briefing.core.constants import TEAM_ABBR_BY_NAME, TEAM_ABBREVIATIONS, TEAM_ALIASES
from gameday_briefing.core.errors import RequestError
from gameday_briefing.models.queue import FetchRequest
from gameday_briefing.net.request_queue import RequestQueue
from gameday_briefing.processing.cleaning import cut_at_word
from gameday_briefing.processing.formatting import enforce_format
from gameday_briefing.utils import clean_text_ws

logger = logging.getLogger(__name__)

INJURY_TABLE_LABEL = "ESPN table"
INJURY_TABLE_CITATION = "ESPN"
NOTE_MAX_CHARS = 120

ROW_SELECTORS = (
    "tbody tr.Table__TR",
    ".injuries tbody tr",
    '[data-module="injuries"] tbody tr',
    ".ResponsiveTable tbody tr",
)

# header hint -> column role; "est. return date" must resolve to return, not updated
_HEADER_ROLES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("player", ("name", "player")),
    ("position", ("pos",)),
    ("return", ("return",)),
    ("status", ("status",)),
    ("note", ("comment", "note", "injury", "description")),
    ("updated", ("updated", "date")),
)
# headerless tables: player, position, status, comment
_POSITIONAL_ROLES = {"player": 0, "position": 1, "status": 2, "note": 3}

_STATUS_ACRONYMS = {"IR", "PUP", "NFI"}
_MONTHS = {m: i for i, m in enumerate(("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"), 1)}
_UPDATED_RE = re.compile(
    r"^(?:(Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\.?\s+(\d{1,2})|(\d{1,2})/(\d{1,2}))$",
    re.IGNORECASE,
)
_ABBR_TOKEN_RE = re.compile(r"\b(" + "|".join(sorted(TEAM_ABBREVIATIONS, key=len, reverse=True)) + r")\b")
_TEAM_TITLE_CLASS_RE = re.compile(r"Table__Title|injuries__teamName|team-name")


@dataclass(frozen=True)
class InjuryReport:
    player: str
    team: str | None
    status: str
    note: str = ""
    updated: datetime.date | None = None


def parse_updated(text: str, today: datetime.date) -> datetime.date | None:
    """`Sep 4` or `9/4` -> the latest such date not after tomorrow.

    The page omits the year, so a December row read in January belongs to
    the previous year. `Recently` maps to today.
    """
    text = clean_text_ws(text)
    if text.lower() == "recently":
        return today
    m = _UPDATED_RE.match(text)
    if not m:
        return None
    if m.group(1):
        month, day = _MONTHS[m.group(1).lower()[:3]], int(m.group(2))
    else:
        month, day = int(m.group(3)), int(m.group(4))
    for year in (today.year, today.year - 1):
        try:
            candidate = datetime.date(year, month, day)
        except ValueError:
            continue
        if candidate <= today + datetime.timedelta(days=1):
            return candidate
    return None


def normalize_status(status: str) -> str:
    status = clean_text_ws(status)
    if status.upper() in _STATUS_ACRONYMS:
        return status.upper()
    if status.isupper() or status.islower():
        return status.title()
    return status


def team_abbr(value: str) -> str | None:
    full = TEAM_ALIASES.get(clean_text_ws(value).lower())
    return TEAM_ABBR_BY_NAME.get(full) if full else None


def _select_rows(soup: BeautifulSoup, selectors: Sequence[str]) -> list[Tag]:
    for selector in selectors:
        rows = soup.select(selector)
        if rows:
            logger.debug("injury table: %d rows via %r", len(rows), selector)
            return rows
    return []


def column_roles(table: Tag | None) -> dict[str, int]:
    if table is None:
        return {}
    header = table.find("thead")
    if header is None:
        return {}
    roles: dict[str, int] = {}
    for i, cell in enumerate(header.find_all(["th", "td"])):
        label = cell.get_text(" ", strip=True).lower()
        for role, hints in _HEADER_ROLES:
            if role not in roles and any(h in label for h in hints):
                roles[role] = i
                break
    return roles if "player" in roles and "status" in roles else {}


def _alt_team(node: Tag) -> str | None:
    for img in node.select("img[alt]"):
        abbr = team_abbr(str(img["alt"]))
        if abbr:
            return abbr
    return None


def _row_team(row: Tag, cells: Sequence[Tag], skip: set[int]) -> str | None:
    for attr in ("data-team", "data-team-abbr"):
        if row.get(attr):
            abbr = team_abbr(str(row[attr]))
            if abbr:
                return abbr
    abbr = _alt_team(row)
    if abbr:
        return abbr
    for i, cell in enumerate(cells[:2]):
        if i in skip:
            continue
        m = _ABBR_TOKEN_RE.search(cell.get_text(" ", strip=True))
        if m:
            return team_abbr(m.group(1))
    # league page: one table per team under a title block
    title = row.find_previous(class_=_TEAM_TITLE_CLASS_RE)
    if title is not None:
        return team_abbr(title.get_text(" ", strip=True)) or _alt_team(title)
    return None


def parse_injury_row(row: Tag, roles: dict[str, int], today: datetime.date) -> InjuryReport | None:
    cells = row.find_all("td")
    if len(cells) < 3:
        return None

    def text_at(role: str) -> str:
        i = roles.get(role)
        if i is None or i >= len(cells):
            return ""
        return clean_text_ws(cells[i].get_text(" ", strip=True))

    player_idx = roles.get("player", 0)
    player_cell = cells[player_idx] if player_idx < len(cells) else cells[0]
    link = player_cell.find("a")
    player = clean_text_ws((link or player_cell).get_text(" ", strip=True))
    status = text_at("status")
    if not player or not status:
        return None

    note = text_at("note")
    if "updated" in roles:
        updated = parse_updated(text_at("updated"), today)
    else:
        updated = None
        for i in range(len(cells) - 1, -1, -1):
            if i == roles.get("return"):
                continue
            updated = parse_updated(cells[i].get_text(" ", strip=True), today)
            if updated is not None:
                break
    if note and parse_updated(note, today) is not None:
        note = ""

    skip = {roles["position"]} if "position" in roles else set()
    return InjuryReport(
        player=player,
        team=_row_team(row, cells, skip),
        status=normalize_status(status),
        note=note,
        updated=updated,
    )


def format_injury_bullet(
    report: InjuryReport, *, citation: str = INJURY_TABLE_CITATION, max_chars: int = BULLET_MAX_CHARS
) -> str:
    team = f" ({report.team})" if report.team else ""
    note = f" ({cut_at_word(report.note.rstrip('.'), NOTE_MAX_CHARS)})" if report.note else ""
    updated = f" · Updated {report.updated:%b} {report.updated.day}" if report.updated else ""
    return enforce_format(f"{report.player}{team} - {report.status}{note}{updated} ({citation})", max_chars=max_chars)


class InjuryTableSource:
    """League-wide injury report scraped from one HTML page.

    Rows come from the first selector in `ROW_SELECTORS` that matches.
    Column roles are read from each table's header when it has one,
    otherwise they are taken by position. Reports are ordered most
    recently updated first and deduplicated per player and team.
    """

    name = INJURY_TABLE_LABEL

    def __init__(
        self,
        queue: RequestQueue,
        *,
        url: str = INJURY_TABLE_URL,
        row_selectors: Sequence[str] = ROW_SELECTORS,
    ) -> None:
        self._queue = queue
        self._url = url
        self._row_selectors = tuple(row_selectors)

    async def fetch(self, today: datetime.date) -> list[InjuryReport]:
        request = FetchRequest.build(self._url, source=self.name, expect="text")
        try:
            markup = await self._queue.submit(request, defer=True)
        except RequestError as exc:
            logger.warning("injury table failed [%s]: %s", request.tag, exc)
            return []
        reports = self.extract(markup or "", today)
        logger.info("injury table: %d reports", len(reports))
        return reports

    def extract(self, markup: str, today: datetime.date) -> list[InjuryReport]:
        if not markup:
            return []
        soup = BeautifulSoup(markup, "html.parser")
        rows = _select_rows(soup, self._row_selectors)
        if not rows:
            logger.warning("injury table: no rows matched %s", self._row_selectors)
            return []
        roles_by_table: dict[int, dict[str, int]] = {}
        parsed: list[InjuryReport] = []
        for row in rows:
            table = row.find_parent("table")
            key = id(table)
            if key not in roles_by_table:
                roles_by_table[key] = column_roles(table) or dict(_POSITIONAL_ROLES)
            report = parse_injury_row(row, roles_by_table[key], today)
            if report is not None:
                parsed.append(report)
        # undated rows sort as current
        parsed.sort(key=lambda r: r.updated or today, reverse=True)
        reports: list[InjuryReport] = []
        seen: set[tuple[str, str | None]] = set()
        for report in parsed:
            dedupe_key = (report.player.lower(), report.team)
            if dedupe_key in seen:
                continue
            seen.add(dedupe_key)
            reports.append(report)
        return reports
