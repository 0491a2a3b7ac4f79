from __future__ import annotations

import asyncio
import datetime

from gameday_briefing.models.queue import FetchRequest, HttpResponse
from gameday_briefing.net.clock import VirtualScheduler
from gameday_briefing.net.rate_limiter import RateLimiter
from gameday_briefing.net.request_queue import QueueConfig, RequestQueue
from gameday_briefing.processing.injury_table import (
    InjuryReport,
    InjuryTableSource,
    format_injury_bullet,
    normalize_status,
    parse_updated,
)

TODAY = datetime.date(2024, 9, 5)
HEADER = (
    "<thead><tr><th>NAME</th><th>POS</th><th>EST. RETURN DATE</th><th>STATUS</th><th>COMMENT</th></tr></thead>"
)
TEAM_PAGE = f"""
<div class="ResponsiveTable">
  <div class="Table__Title"><img alt="Buffalo Bills" src="/i/buf.png"> Buffalo Bills</div>
  <table>{HEADER}<tbody>
    <tr class="Table__TR"><td><a href="/nfl/player/_/id/1">Josh Allen</a></td><td>QB</td><td>Sep 15</td>
      <td>QUESTIONABLE</td><td>Allen is dealing with a sprained wrist.</td></tr>
    <tr class="Table__TR"><td><a href="/nfl/player/_/id/1">Josh Allen</a></td><td>QB</td><td>Sep 15</td>
      <td>Questionable</td><td>Repeated row.</td></tr>
  </tbody></table>
</div>
<div class="ResponsiveTable">
  <div class="Table__Title">Miami Dolphins</div>
  <table>{HEADER}<tbody>
    <tr class="Table__TR"><td><a href="/nfl/player/_/id/2">Tyreek Hill</a></td><td>WR</td><td>Oct 1</td>
      <td>Injured Reserve</td><td>Hill (ankle) was placed on IR.</td></tr>
  </tbody></table>
</div>
"""
LIST_PAGE = """
<div class="injuries"><table><tbody>
  <tr><td><a>Von Miller</a> DEN</td><td>LB</td><td>Out</td><td>Knee</td><td>Sep 2</td></tr>
  <tr><td><a>Josh Allen</a> BUF</td><td>QB</td><td>questionable</td><td>Wrist</td><td>Sep 4</td></tr>
  <tr><td>Header-like row</td><td>only two cells</td></tr>
  <tr><td><a>Kyle Hamilton</a> BAL</td><td>S</td><td>Doubtful</td><td>Sep 3</td></tr>
</tbody></table></div>
"""


def test_team_tables_use_header_roles_and_title_blocks() -> None:
    reports = InjuryTableSource(queue=None).extract(TEAM_PAGE, TODAY)

    assert [(r.player, r.team, r.status) for r in reports] == [
        ("Josh Allen", "BUF", "Questionable"),
        ("Tyreek Hill", "MIA", "Injured Reserve"),
    ]
    # the estimated return column is not an update time
    assert all(r.updated is None for r in reports)
    assert reports[0].note == "Allen is dealing with a sprained wrist."


def test_headerless_rows_read_by_position_newest_first() -> None:
    reports = InjuryTableSource(queue=None).extract(LIST_PAGE, TODAY)

    assert [r.player for r in reports] == ["Josh Allen", "Kyle Hamilton", "Von Miller"]
    allen = reports[0]
    assert (allen.team, allen.status, allen.note, allen.updated) == (
        "BUF", "Questionable", "Wrist", datetime.date(2024, 9, 4)
    )
    # a date in the comment column is the update time, not a note
    hamilton = reports[1]
    assert (hamilton.team, hamilton.note, hamilton.updated) == ("BAL", "", datetime.date(2024, 9, 3))


def test_parse_updated_assumes_the_most_recent_year() -> None:
    assert parse_updated("Sep 4", TODAY) == datetime.date(2024, 9, 4)
    assert parse_updated("9/4", TODAY) == datetime.date(2024, 9, 4)
    assert parse_updated("Dec 30", datetime.date(2025, 1, 2)) == datetime.date(2024, 12, 30)
    assert parse_updated("Recently", TODAY) == TODAY
    assert parse_updated("Questionable", TODAY) is None


def test_status_case_is_normalized() -> None:
    assert normalize_status("OUT") == "Out"
    assert normalize_status("injured reserve") == "Injured Reserve"
    assert normalize_status("ir") == "IR"
    assert normalize_status("Day-to-Day") == "Day-to-Day"


def test_injury_bullet_format() -> None:
    report = InjuryReport(
        player="Josh Allen", team="BUF", status="Questionable", note="Wrist.", updated=datetime.date(2024, 9, 4)
    )
    assert format_injury_bullet(report) == "Josh Allen (BUF) - Questionable (Wrist) · Updated Sep 4 (ESPN)"
    bare = InjuryReport(player="Tyreek Hill", team=None, status="Out")
    assert format_injury_bullet(bare) == "Tyreek Hill - Out (ESPN)"


def test_fetch_goes_through_the_queue_and_survives_a_missing_page() -> None:
    class _Transport:
        def __init__(self, status: int) -> None:
            self.status = status
            self.requests: list[FetchRequest] = []

        async def get(self, request: FetchRequest) -> HttpResponse:
            self.requests.append(request)
            return HttpResponse(self.status, LIST_PAGE if self.status == 200 else "", request.url)

        async def close(self) -> None:
            return None

    def _source(transport: _Transport) -> InjuryTableSource:
        scheduler = VirtualScheduler()
        queue = RequestQueue(
            limiter=RateLimiter(capacity=10, min_time_sec=0.0, scheduler=scheduler),
            transport=transport,
            config=QueueConfig(max_retries=0),
            scheduler=scheduler,
        )
        return InjuryTableSource(queue, url="https://injuries.test/nfl")

    ok = _Transport(200)
    assert len(asyncio.run(_source(ok).fetch(TODAY))) == 3
    assert [(r.url, r.expect) for r in ok.requests] == [("https://injuries.test/nfl", "text")]

    missing = _Transport(404)
    assert asyncio.run(_source(missing).fetch(TODAY)) == []
