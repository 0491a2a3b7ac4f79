from gameday_briefing.models.news import Excerpt
from gameday_briefing.processing.classifier import NewsClassifier


def test_categories_by_signal() -> None:
    clf = NewsClassifier()
    assert clf.classify_text("Bills place Jones on injured reserve") == "injuries"
    assert clf.classify_text("Chiefs sign veteran kicker to one-year deal") == "roster"
    assert clf.classify_text("Smith suspended six games by the league") == "breaking"
    assert clf.classify_text("Weather looks great for Sunday") is None
    assert clf.classify_text("") is None


def test_injury_wins_over_roster_and_breaking_needs_no_other_signal() -> None:
    clf = NewsClassifier()
    assert clf.classify_text("Jones (ankle) returns after the team signed a backup") == "injuries"
    assert clf.classify_text("Bills officially sign rookie receiver") == "roster"


def test_exclusion_hints_win() -> None:
    clf = NewsClassifier()
    assert clf.classify_text("Week 1 takeaways: Jones injured in loss") is None
    assert clf.classify_text("Fantasy waiver targets after Jones was released") is None


def test_classify_is_deterministic_on_excerpts() -> None:
    clf = NewsClassifier()
    excerpt = Excerpt(source="ESPN", title="Ravens waive linebacker", text="The move clears a roster spot.")
    assert clf.classify(excerpt) == clf.classify(excerpt) == "roster"
