from __future__ import annotations

import datetime

from gameday_briefing.schedule.kickoff import find_date_text, find_time_text, is_plausible_kickoff, parse_kickoff

UTC = datetime.timezone.utc
REF = datetime.datetime(2024, 9, 1, 12, 0, tzinfo=UTC)


def test_month_name_date_with_afternoon_time() -> None:
    got = parse_kickoff("Sunday, September 8", "1:00 PM", tz="America/New_York", reference=REF)
    assert got == datetime.datetime(2024, 9, 8, 17, 0, tzinfo=UTC)


def test_slash_and_iso_dates() -> None:
    assert parse_kickoff("9/8", "4:25 PM", tz="America/New_York", reference=REF) == datetime.datetime(
        2024, 9, 8, 20, 25, tzinfo=UTC
    )
    assert parse_kickoff("2024-09-09", "8:15 p.m.", tz="America/New_York", reference=REF) == datetime.datetime(
        2024, 9, 10, 0, 15, tzinfo=UTC
    )


def test_missing_time_defaults_to_prime_time() -> None:
    got = parse_kickoff("Sep 12", None, tz="America/New_York", reference=REF)
    assert got == datetime.datetime(2024, 9, 13, 0, 0, tzinfo=UTC)


def test_implausible_times_are_discarded() -> None:
    assert parse_kickoff("9/8", "3:00 AM", tz="America/New_York", reference=REF) is None
    assert parse_kickoff("9/8", "10:30", tz="America/New_York", reference=REF) is None
    assert parse_kickoff("9/8", "25:99", tz="America/New_York", reference=REF) is None
    assert parse_kickoff("no date here", "1:00 PM", tz="America/New_York", reference=REF) is None


def test_date_without_year_rolls_into_next_season() -> None:
    reference = datetime.datetime(2024, 12, 20, 12, 0, tzinfo=UTC)
    got = parse_kickoff("Jan 5", "1:00 PM", tz="America/New_York", reference=reference)
    assert got == datetime.datetime(2025, 1, 5, 18, 0, tzinfo=UTC)


def test_plausibility_band_uses_local_hour() -> None:
    assert is_plausible_kickoff(datetime.datetime(2024, 9, 8, 17, 0, tzinfo=UTC), "America/New_York")
    assert is_plausible_kickoff(datetime.datetime(2024, 9, 9, 3, 30, tzinfo=UTC), "America/New_York")
    assert not is_plausible_kickoff(datetime.datetime(2024, 9, 8, 12, 0, tzinfo=UTC), "America/New_York")


def test_find_date_and_time_text() -> None:
    text = "Week 1 - Sunday, September 8, 2024 at 1:00 PM on CBS"
    assert find_date_text(text) == "September 8, 2024"
    assert find_time_text(text) == "1:00 PM"
    assert find_date_text("no schedule yet") is None
    assert find_time_text("") is None
