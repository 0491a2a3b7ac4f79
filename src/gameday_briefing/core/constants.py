from __future__ import annotations

import re

# ==========================================
# Teams
# ==========================================

# (full name, nickname, abbreviation, TheSportsDB team id)
NFL_TEAMS: tuple[tuple[str, str, str, str], ...] = (
    # AFC East
    ("Buffalo Bills", "Bills", "BUF", "134918"),
    ("Miami Dolphins", "Dolphins", "MIA", "134919"),
    ("New England Patriots", "Patriots", "NE", "134920"),
    ("New York Jets", "Jets", "NYJ", "134921"),
    # AFC North
    ("Baltimore Ravens", "Ravens", "BAL", "134922"),
    ("Cincinnati Bengals", "Bengals", "CIN", "134923"),
    ("Cleveland Browns", "Browns", "CLE", "134924"),
    ("Pittsburgh Steelers", "Steelers", "PIT", "134925"),
    # AFC South
    ("Houston Texans", "Texans", "HOU", "134926"),
    ("Indianapolis Colts", "Colts", "IND", "134927"),
    ("Jacksonville Jaguars", "Jaguars", "JAX", "134928"),
    ("Tennessee Titans", "Titans", "TEN", "134929"),
    # AFC West
    ("Denver Broncos", "Broncos", "DEN", "134930"),
    ("Kansas City Chiefs", "Chiefs", "KC", "135907"),
    ("Las Vegas Raiders", "Raiders", "LV", "134932"),
    ("Los Angeles Chargers", "Chargers", "LAC", "135908"),
    # NFC East
    ("Dallas Cowboys", "Cowboys", "DAL", "134934"),
    ("New York Giants", "Giants", "NYG", "134935"),
    ("Philadelphia Eagles", "Eagles", "PHI", "134936"),
    ("Washington Commanders", "Commanders", "WAS", "134937"),
    # NFC North
    ("Chicago Bears", "Bears", "CHI", "134938"),
    ("Detroit Lions", "Lions", "DET", "134939"),
    ("Green Bay Packers", "Packers", "GB", "134940"),
    ("Minnesota Vikings", "Vikings", "MIN", "134941"),
    # NFC South
    ("Atlanta Falcons", "Falcons", "ATL", "134942"),
    ("Carolina Panthers", "Panthers", "CAR", "134943"),
    ("New Orleans Saints", "Saints", "NO", "134944"),
    ("Tampa Bay Buccaneers", "Buccaneers", "TB", "134945"),
    # NFC West
    ("Arizona Cardinals", "Cardinals", "ARI", "134946"),
    ("Los Angeles Rams", "Rams", "LAR", "135909"),
    ("San Francisco 49ers", "49ers", "SF", "134948"),
    ("Seattle Seahawks", "Seahawks", "SEA", "134949"),
)

TEAM_NAMES: tuple[str, ...] = tuple(t[0] for t in NFL_TEAMS)
SPORTSDB_TEAM_IDS: dict[str, str] = {t[0]: t[3] for t in NFL_TEAMS}

# Lowercased alias -> full name. ESPN uses WSH for Washington.
TEAM_ALIASES: dict[str, str] = {}
for _full, _nick, _abbr, _id in NFL_TEAMS:
    TEAM_ALIASES[_full.lower()] = _full
    TEAM_ALIASES[_nick.lower()] = _full
    TEAM_ALIASES[_abbr.lower()] = _full
# ESPN schedule rows show the city; shared cities (New York, Los Angeles) stay ambiguous
_cities = [full[: -len(nick)].strip().lower() for full, nick, _abbr, _id in NFL_TEAMS]
for (_full, _nick, _abbr, _id), _city in zip(NFL_TEAMS, _cities):
    if _cities.count(_city) == 1:
        TEAM_ALIASES.setdefault(_city, _full)
TEAM_ALIASES["wsh"] = "Washington Commanders"
TEAM_ALIASES["la rams"] = "Los Angeles Rams"
TEAM_ALIASES["la chargers"] = "Los Angeles Chargers"
TEAM_ALIASES["niners"] = "San Francisco 49ers"
TEAM_ALIASES["bucs"] = "Tampa Bay Buccaneers"

TEAM_ABBREVIATIONS: tuple[str, ...] = tuple(t[2] for t in NFL_TEAMS) + ("WSH",)
TEAM_ABBR_BY_NAME: dict[str, str] = {t[0]: t[2] for t in NFL_TEAMS}

# ==========================================
# Sources
# ==========================================

GLOBAL_FEEDS: tuple[str, ...] = (
    "https://www.espn.com/espn/rss/nfl/news",
    "https://www.nfl.com/rss/rsslanding?searchString=home",
    "https://sports.yahoo.com/nfl/rss.xml",
    "https://www.cbssports.com/rss/headlines/nfl/",
    "https://profootballtalk.nbcsports.com/feed/",
    "https://www.profootballrumors.com/feed",
)
SUBJECT_FEED_TEMPLATE = "https://news.google.com/rss/search?q={query}+NFL&hl=en-US&gl=US&ceid=US:en"

ESPN_INJURIES_URL = "https://www.espn.com/nfl/injuries"
PFR_TRANSACTIONS_FEED = "https://www.profootballrumors.com/category/transactions/feed"
ESPN_SCHEDULE_URL = "https://www.espn.com/nfl/schedule"
NFL_SCHEDULE_URL = "https://www.nfl.com/schedules/"
NFL_LEAGUE_NAME = "NFL"

# host fragment -> short label used in citations and provenance
SOURCE_LABELS: tuple[tuple[str, str], ...] = (
    ("espn.com", "ESPN"),
    ("nfl.com", "NFL.com"),
    ("yahoo.com", "Yahoo"),
    ("cbssports.com", "CBS"),
    ("profootballtalk", "PFT"),
    ("profootballrumors.com", "PFR"),
    ("news.google.com", "Google News"),
    ("thesportsdb.com", "TheSportsDB"),
)

USER_AGENT = "Mozilla/5.0 (compatible; GamedayBriefing/1.0; +https://github.com/)"

# ==========================================
# Categories
# ==========================================

CATEGORY_INJURIES = "injuries"
CATEGORY_ROSTER = "roster"
CATEGORY_GAMES = "games"
CATEGORY_BREAKING = "breaking"

NEWS_CATEGORIES: tuple[str, ...] = (CATEGORY_INJURIES, CATEGORY_ROSTER, CATEGORY_BREAKING)
SECTION_ORDER: tuple[str, ...] = (CATEGORY_INJURIES, CATEGORY_ROSTER, CATEGORY_GAMES, CATEGORY_BREAKING)

SECTION_TITLES: dict[str, str] = {
    CATEGORY_INJURIES: "Injuries",
    CATEGORY_ROSTER: "Roster Moves",
    CATEGORY_GAMES: "Scheduled Games",
    CATEGORY_BREAKING: "Breaking News",
}
EMPTY_MARKERS: dict[str, str] = {
    CATEGORY_INJURIES: "No injury updates",
    CATEGORY_ROSTER: "No roster moves",
    CATEGORY_GAMES: "No scheduled games",
    CATEGORY_BREAKING: "No breaking news",
}

ITEMS_PER_PAGE: dict[str, int] = {
    CATEGORY_INJURIES: 8,
    CATEGORY_ROSTER: 6,
    CATEGORY_GAMES: 10,
    CATEGORY_BREAKING: 5,
}
MAX_BULLETS: dict[str, int] = {
    CATEGORY_INJURIES: 20,
    CATEGORY_ROSTER: 12,
    CATEGORY_BREAKING: 10,
}

# run type -> (base lookback hours, widened lookback hours)
LOOKBACK_HOURS: dict[str, tuple[int, int]] = {
    "morning": (72, 168),
    "afternoon": (48, 120),
    "evening": (48, 120),
}
DEFAULT_RUN_TYPE = "morning"

# ==========================================
# Classification vocabulary
# ==========================================

INJURY_IR_PATTERN = re.compile(
    r"\b(placed on (?:injured reserve|ir)|activated from (?:injured reserve|ir)|designated to return)\b",
    re.IGNORECASE,
)
INJURY_PATTERN = re.compile(
    r"\b(injur(?:y|ies|ed)|carted off|out for (?:the )?season|out indefinitely|questionable|doubtful|"
    r"inactives?|ruled out|limited practice|did not practice|day-to-day|day to day|concussion|"
    r"hamstring|ankle|knee|groin|shoulder|wrist|foot|acl|mcl|pup|physically unable)\b",
    re.IGNORECASE,
)
ROSTER_PATTERN = re.compile(
    r"\b(signs?|signed|re-?signs?|re-?signed|waives?|waived|releases?|released|trades?|traded|"
    r"acquires?|acquired|promotes?|promoted|elevates?|elevated|claims?|claimed|"
    r"activated|one-year deal|two-year deal|contract extension|extension|agreement)\b",
    re.IGNORECASE,
)
BREAKING_PATTERN = re.compile(
    r"\b(breaking|official(?:ly)?|announced?|press release|per sources?|sources say|expected to|"
    r"agrees? to|agreed to|returns?|sidelined|suspended|fined|fires?|fired|hired|retires?|retired)\b",
    re.IGNORECASE,
)
EXCLUDE_HINT_PATTERN = re.compile(
    r"\b(takeaways|observations|first impressions?|film review|camp notebook|preseason notes|"
    r"went \d+-for-\d+|stat line|highlights|power rankings|mock draft|fantasy)\b",
    re.IGNORECASE,
)

CATEGORY_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    CATEGORY_INJURIES: (INJURY_IR_PATTERN, INJURY_PATTERN),
    CATEGORY_ROSTER: (ROSTER_PATTERN,),
    CATEGORY_BREAKING: (BREAKING_PATTERN,),
}

# ==========================================
# Cleaning
# ==========================================

SENTENCE_ABBREVIATIONS: tuple[str, ...] = (
    "Jr.", "Sr.", "Dr.", "Mr.", "Mrs.", "Ms.", "St.", "vs.", "No.", "etc.",
    "i.e.", "e.g.", "U.S.", "Jan.", "Feb.", "Aug.", "Sept.", "Sep.", "Oct.", "Nov.", "Dec.",
)
BOILERPLATE_LINE_HINTS: tuple[str, ...] = (
    "advertisement",
    "sign up",
    "subscribe",
    "read more",
    "click here",
    "follow us",
    "download the app",
    "all rights reserved",
    "getty images",
    "associated press contributed",
)
SOURCE_PLACEHOLDER = "(Source unavailable)"
