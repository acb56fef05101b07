import os
from pathlib import Path

# Base project directory
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Data directories
DATA_DIR = Path(os.environ.get("FANTASY_DATA_DIR", PROJECT_ROOT / "data"))
STORE_DIR = DATA_DIR / "store"
RAW_DATA_DIR = DATA_DIR / "raw"

# Shared secret for the scheduled task dispatcher; unset means open
CRON_SECRET_ENV = "CRON_SECRET"
CRON_SECRET_HEADER = "x-cron-secret"

# Provider endpoints (undocumented; response shapes vary)
ESPN_TEAMS_URL = "https://site.api.espn.com/apis/site/v2/sports/football/nfl/teams"
ESPN_TEAM_ROSTER_URL = (
    "https://site.api.espn.com/apis/site/v2/sports/football/nfl/teams/{team_id}?enable=roster"
)
ESPN_SCOREBOARD_URL = "https://site.api.espn.com/apis/v2/sports/football/nfl/scoreboard"
ESPN_BOXSCORE_URL = (
    "https://site.web.api.espn.com/apis/common/v3/sports/football/nfl/competitions/{game_id}/boxscore"
)
SLEEPER_PLAYERS_URL = "https://api.sleeper.app/v1/players/nfl"
NEWS_RSS_URL = "https://news.google.com/rss/search"

# Regular season
ESPN_SEASON_TYPE = 2

# Positions kept in the player directory
ALLOWED_POSITIONS = {"QB", "RB", "WR", "TE", "K", "DEF"}

# HTTP
HTTP_TIMEOUT_SECONDS = 15
HTTP_MAX_ATTEMPTS = 3
HTTP_BASE_DELAY = 0.25
USER_AGENT = "pi-fantasy-league/0.1"

# Roster fetches in flight at once
FETCH_WINDOW = 8

# Store writes
WRITE_CHUNK_SIZE = 200
WRITE_PAUSE_SECONDS = 0.12
STORE_MAX_ATTEMPTS = 5

# Weekly projection used when nothing better is known
BASELINE_PROJECTIONS = {
    "QB": 12,
    "RB": 9,
    "WR": 9,
    "TE": 7,
    "K": 6,
    "DEF": 6,
}
DEFAULT_BASELINE_PROJECTION = 5

# Where seed_week_projections gets its numbers
PROJECTION_SOURCES = ("baseline", "csv", "props")

# Interceptions assumed for a passer with a yardage prop but no INT line
PROPS_DEFAULT_PASS_INT = 0.7

# News cache
NEWS_CACHE_SECONDS = 15 * 60
NEWS_MAX_ITEMS = 10

# FantasyPros weekly projection exports
FILE_PATTERNS = {
    "qb": "FantasyPros_Fantasy_Football_Projections_QB.csv",
    "flex": "FantasyPros_Fantasy_Football_Projections_FLX.csv",
    "k": "FantasyPros_Fantasy_Football_Projections_K.csv",
    "dst": "FantasyPros_Fantasy_Football_Projections_DST.csv",
}

# Column name mappings for files with duplicate headers
QB_COLUMNS = [
    "Player", "Team",
    "Pass_Att", "Pass_Cmp", "Pass_Yds", "Pass_TD", "Pass_Int",
    "Rush_Att", "Rush_Yds", "Rush_TD",
    "FL", "FPTS",
]

FLEX_COLUMNS = [
    "Player", "Team", "POS",
    "Rush_Att", "Rush_Yds", "Rush_TD",
    "Rec", "Rec_Yds", "Rec_TD",
    "FL", "FPTS",
]

# Export column -> scoring stat key, for rescoring with league weights
CSV_STAT_COLUMNS = {
    "Pass_Yds": "pass_yds",
    "Pass_TD": "pass_td",
    "Pass_Int": "pass_int",
    "Rush_Yds": "rush_yds",
    "Rush_TD": "rush_td",
    "Rec": "rec",
    "Rec_Yds": "rec_yds",
    "Rec_TD": "rec_td",
    "FL": "fumbles",
    "FG": "fg",
    "XPT": "xp",
    "SACK": "sacks",
    "INT": "def_int",
    "FR": "def_fr",
    "TD": "def_td",
}
