"""Normalization and field extraction for player records from any provider.

Provider payloads disagree on field names (``full_name`` vs ``displayName``,
``espn_id`` vs ``espnId`` vs ``espn.playerId``), team codes (``JAC`` vs
``JAX``, full names) and positions (``PK``, ``D/ST``). Everything here is
tolerant: missing or malformed values come back as None, never raise.
"""

import logging
import re
from typing import Any, Iterable, Mapping, Optional

import pandas as pd

logger = logging.getLogger(__name__)

# Full team name -> standard abbreviation
TEAM_NAME_TO_ABBR = {
    "Arizona Cardinals": "ARI",
    "Atlanta Falcons": "ATL",
    "Baltimore Ravens": "BAL",
    "Buffalo Bills": "BUF",
    "Carolina Panthers": "CAR",
    "Chicago Bears": "CHI",
    "Cincinnati Bengals": "CIN",
    "Cleveland Browns": "CLE",
    "Dallas Cowboys": "DAL",
    "Denver Broncos": "DEN",
    "Detroit Lions": "DET",
    "Green Bay Packers": "GB",
    "Houston Texans": "HOU",
    "Indianapolis Colts": "IND",
    "Jacksonville Jaguars": "JAX",
    "Kansas City Chiefs": "KC",
    "Las Vegas Raiders": "LV",
    "Los Angeles Chargers": "LAC",
    "Los Angeles Rams": "LAR",
    "Miami Dolphins": "MIA",
    "Minnesota Vikings": "MIN",
    "New England Patriots": "NE",
    "New Orleans Saints": "NO",
    "New York Giants": "NYG",
    "New York Jets": "NYJ",
    "Philadelphia Eagles": "PHI",
    "Pittsburgh Steelers": "PIT",
    "San Francisco 49ers": "SF",
    "Seattle Seahawks": "SEA",
    "Tampa Bay Buccaneers": "TB",
    "Tennessee Titans": "TEN",
    "Washington Commanders": "WAS",
}

# Provider-specific codes -> the abbreviation used in the directory
_TEAM_ALIASES = {
    "JAC": "JAX",
    "WSH": "WAS",
    "LA": "LAR",
    "OAK": "LV",
    "SD": "LAC",
    "STL": "LAR",
}

FANTASY_POSITIONS = {"QB", "RB", "WR", "TE", "K", "DEF"}

_POSITION_ALIASES = {
    "PK": "K",
    "DST": "DEF",
    "D/ST": "DEF",
    "D-ST": "DEF",
    "D": "DEF",
}

# Letters followed by an optional rank, e.g. "WR12"
_POS_PATTERN = re.compile(r"^([A-Za-z]+?)(\d+)?$")

# Alias field names, tried in order; first non-empty wins.
NAME_FIELDS = ("name", "full_name", "fullName", "displayName", "display_name", "playerName")
TEAM_FIELDS = ("team", "team_abbr", "nflTeam", "proTeam", "teamAbbr")
POSITION_FIELDS = ("position", "pos", "fantasy_position")
ESPN_ID_FIELDS = ("espn_id", "espnId", "espnID", "espn_player_id")
PHOTO_FIELDS = (
    "photo_url", "photoUrl", "photoURL", "photo", "headshotUrl", "headshot",
    "imageUrl", "image", "img", "avatar",
)

ESPN_HEADSHOT_URL = "https://a.espncdn.com/i/headshots/nfl/players/full/{espn_id}.png"
SLEEPER_HEADSHOT_URL = "https://sleepercdn.com/content/nfl/players/full/{sleeper_id}.jpg"


def is_blank(value: Any) -> bool:
    """True for None, NaN and empty/whitespace strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (dict, list, tuple)):
        return len(value) == 0
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def first_present(record: Mapping[str, Any], fields: Iterable[str]) -> Any:
    """Value of the first alias field that is present and non-blank."""
    for name in fields:
        value = record.get(name)
        if not is_blank(value):
            return value
    return None


# ----------------------------------------------------------------------
# Normalizers
# ----------------------------------------------------------------------
def normalize_position(pos: Any) -> Optional[str]:
    """Canonical fantasy position: "PK" -> "K", "D/ST" -> "DEF", "WR1" -> "WR".

    Positions outside the fantasy set (OL, LB, ...) are returned
    uppercased so callers can decide whether to drop them.
    """
    if isinstance(pos, Mapping):
        pos = pos.get("abbreviation") or pos.get("abbrev") or pos.get("name")
    if is_blank(pos):
        return None
    raw = str(pos).strip().upper()
    if raw in _POSITION_ALIASES:
        return _POSITION_ALIASES[raw]
    m = _POS_PATTERN.match(raw)
    if not m:
        return raw
    letters = m.group(1)
    return _POSITION_ALIASES.get(letters, letters)


def normalize_team(team: Any) -> Optional[str]:
    """Standardize a team identifier to its abbreviation, None for free agents."""
    if isinstance(team, Mapping):
        team = team.get("abbreviation") or team.get("displayName") or team.get("name")
    if is_blank(team):
        return None
    team = str(team).strip().strip('"')
    if team in TEAM_NAME_TO_ABBR:
        return TEAM_NAME_TO_ABBR[team]
    abbr = team.upper()
    if abbr in ("FA", "FREE AGENT", "NONE"):
        return None
    return _TEAM_ALIASES.get(abbr, abbr)


def normalize_player_name(name: Any) -> Optional[str]:
    """Clean a display name: straight quotes, ASCII hyphens, single spaces."""
    if is_blank(name):
        return None

    name = str(name).strip().strip('"')

    name = name.replace("’", "'")
    name = name.replace("‘", "'")
    name = name.replace("ʼ", "'")
    name = name.replace("–", "-")
    name = name.replace("—", "-")

    return " ".join(name.split()) or None


def normalize_espn_id(value: Any) -> Optional[str]:
    """Digits-only ESPN athlete id, or None."""
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    digits = re.sub(r"[^\d]", "", str(value))
    return digits or None


# ----------------------------------------------------------------------
# Field extraction
# ----------------------------------------------------------------------
def extract_name(record: Mapping[str, Any]) -> Optional[str]:
    name = first_present(record, NAME_FIELDS)
    if name is None:
        first = record.get("first_name") or record.get("firstName")
        last = record.get("last_name") or record.get("lastName")
        if not is_blank(first) or not is_blank(last):
            name = f"{first or ''} {last or ''}"
    return normalize_player_name(name)


def extract_team(record: Mapping[str, Any]) -> Optional[str]:
    return normalize_team(first_present(record, TEAM_FIELDS))


def extract_position(record: Mapping[str, Any]) -> Optional[str]:
    pos = first_present(record, POSITION_FIELDS)
    if pos is None:
        positions = record.get("fantasy_positions")
        if isinstance(positions, list) and positions:
            pos = positions[0]
    return normalize_position(pos)


def extract_espn_id(record: Mapping[str, Any]) -> Optional[str]:
    eid = first_present(record, ESPN_ID_FIELDS)
    if eid is None:
        nested = record.get("espn")
        if isinstance(nested, Mapping):
            eid = nested.get("playerId") or nested.get("id")
    return normalize_espn_id(eid)


def extract_photo(record: Mapping[str, Any]) -> Optional[str]:
    url = first_present(record, PHOTO_FIELDS)
    if url is None or not isinstance(url, str):
        return None
    if not re.match(r"^https?://", url.strip(), re.IGNORECASE):
        return None
    return url.strip()


def espn_headshot_url(espn_id: Any) -> Optional[str]:
    eid = normalize_espn_id(espn_id)
    return ESPN_HEADSHOT_URL.format(espn_id=eid) if eid else None


def sleeper_headshot_url(sleeper_id: Any) -> Optional[str]:
    if is_blank(sleeper_id):
        return None
    return SLEEPER_HEADSHOT_URL.format(sleeper_id=str(sleeper_id).strip())
