from gameday_briefing.processing.cleaning import clean_excerpt, cut_at_word, strip_byline, trim_excerpt


def test_clean_excerpt_strips_bylines_ads_links_and_handles() -> None:
    raw = (
        "By John Smith\n"
        "Advertisement\n"
        "Bills receiver Jones (ankle) is day-to-day. Full story: https://espn.com/x via @espn\n"
        "Jane Doe, ESPN Staff Writer The Bills also signed a kicker."
    )
    out = clean_excerpt(raw)
    assert "John Smith" not in out
    assert "Advertisement" not in out
    assert "https" not in out
    assert "@espn" not in out
    assert "Staff Writer" not in out
    assert out.startswith("Bills receiver Jones (ankle) is day-to-day.")
    assert out.endswith("The Bills also signed a kicker.")


def test_byline_line_must_be_whole_line() -> None:
    assert strip_byline("By John Smith") == ""
    assert strip_byline("By Sunday, the Bills will know more.") == "By Sunday, the Bills will know more."


def test_long_paragraph_mentioning_subscribe_is_kept() -> None:
    line = (
        "The team told season ticket holders they can subscribe to practice updates, and the coach added that "
        "the starting quarterback was limited on Wednesday with a sore shoulder."
    )
    assert clean_excerpt(line) == line


def test_trim_excerpt_stops_inside_band_at_sentence_boundary() -> None:
    text = "First sentence is here. Second sentence follows. Third one never makes it."
    assert trim_excerpt(text, min_chars=30, max_chars=60) == "First sentence is here. Second sentence follows."


def test_trim_excerpt_cuts_overlong_first_sentence_at_word() -> None:
    text = "word " * 50 + "end."
    out = trim_excerpt(text, min_chars=10, max_chars=40)
    assert out.endswith("…")
    assert len(out) <= 40
    assert "wor…" not in out


def test_cut_at_word() -> None:
    assert cut_at_word("The quick brown fox jumps", 12) == "The quick…"
    assert cut_at_word("short", 12) == "short"
