"""League-wide scoring and money constants."""

# PPR stat weights
PPR_WEIGHTS = {
    "pass_yds": 0.04,  # 1 pt / 25 pass yds
    "pass_td": 4,
    "pass_int": -2,
    "rush_yds": 0.1,   # 1 pt / 10 rush yds
    "rush_td": 6,
    "rec": 1,
    "rec_yds": 0.1,
    "rec_td": 6,
    "fumbles": -2,
    # Kicker
    "xp": 1,
    "fg": 3,
    # Team DEF/ST
    "sacks": 1,
    "def_int": 2,
    "def_fr": 2,
    "def_td": 6,
}

# Incoming stat-line names -> weight keys
STAT_ALIASES = {
    "passYds": "pass_yds",
    "passTD": "pass_td",
    "passInt": "pass_int",
    "rushYds": "rush_yds",
    "rushTD": "rush_td",
    "receptions": "rec",
    "recYds": "rec_yds",
    "recTD": "rec_td",
    "fumblesLost": "fumbles",
    "xpMade": "xp",
    "fgMade": "fg",
    "sack": "sacks",
    "interceptions": "def_int",
    "int": "def_int",
    "fr": "def_fr",
    "fumRec": "def_fr",
    "defTD": "def_td",
}

MAX_SCHEDULE_WEEKS = 18
BYE = "__BYE__"

# Pi amounts are kept to 4 decimal places
PI_DECIMALS = 4
# Pools at or below this are not worth settling
DUST_PI = 0.009
