"""Provider payloads -> directory records and stat lines.

- ESPN team rosters become raw ``espn`` records (allowed positions only)
- every NFL team gets a synthesized ``DEF:<ABBR>`` defense
- box scores become per-player weekly stat lines
- FantasyPros projection frames are rescored with the league weights
"""

import logging
import math
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from src.data_pipeline.config import ALLOWED_POSITIONS, CSV_STAT_COLUMNS
from src.league.config import PPR_WEIGHTS
from src.league.scoring import fantasy_points, round_points
from src.players.cleaning import (
    normalize_player_name,
    normalize_position,
    normalize_team,
)
from src.players.models import Player, RawPlayerRecord

logger = logging.getLogger(__name__)

# Box score (category, label) -> stat key
BOX_SCORE_STATS = {
    ("passing", "YDS"): "pass_yds",
    ("passing", "TD"): "pass_td",
    ("passing", "INT"): "pass_int",
    ("rushing", "YDS"): "rush_yds",
    ("rushing", "TD"): "rush_td",
    ("receiving", "REC"): "rec",
    ("receiving", "YDS"): "rec_yds",
    ("receiving", "TD"): "rec_td",
    ("fumbles", "LOST"): "fumbles",
}
STAT_LINE_KEYS = tuple(dict.fromkeys(BOX_SCORE_STATS.values()))

_NAME_SUFFIX = re.compile(r"\s+(jr\.?|sr\.?|ii|iii|iv|v)$", re.IGNORECASE)


def _number(value: Any) -> float:
    try:
        x = float(value)
    except (TypeError, ValueError):
        return 0.0
    return x if math.isfinite(x) else 0.0


def strip_name_suffix(name: Optional[str]) -> str:
    """"James Cook III" -> "James Cook"."""
    return _NAME_SUFFIX.sub("", (name or "").strip())


# ----------------------------------------------------------------------
# Rosters
# ----------------------------------------------------------------------
def extract_roster_buckets(team_json: Any) -> List[List[Dict[str, Any]]]:
    """Player lists from an ESPN team payload, whatever shape it arrived in.

    Seen in the wild: ``athletes`` as a list of position groups with
    ``items``, groups with their own ``athletes``, an already-flat list of
    players, and a single ``athletes.items`` list.
    """
    if not isinstance(team_json, dict):
        return []
    team = team_json.get("team") if isinstance(team_json.get("team"), dict) else team_json
    primary = team.get("athletes") or team_json.get("athletes") or []

    buckets = []
    if isinstance(primary, list):
        for group in primary:
            if not isinstance(group, dict):
                continue
            if isinstance(group.get("items"), list):
                buckets.append(list(group["items"]))
            elif isinstance(group.get("athletes"), list):
                buckets.append(list(group["athletes"]))
            elif group.get("id") or group.get("athlete") or group.get("displayName"):
                buckets.append([group])
    elif isinstance(primary, dict) and isinstance(primary.get("items"), list):
        buckets.append(list(primary["items"]))
    return buckets


def roster_records(
    team_json: Any, team_meta: Mapping[str, str], fetched_at: int = 0
) -> List[RawPlayerRecord]:
    """Fantasy-relevant athletes on one team roster as raw ESPN records."""
    records = []
    for bucket in extract_roster_buckets(team_json):
        for item in bucket:
            if not isinstance(item, dict):
                continue
            person = item.get("athlete") if isinstance(item.get("athlete"), dict) else item
            position = normalize_position(person.get("position") or item.get("position"))
            if position not in ALLOWED_POSITIONS:
                continue
            espn_id = person.get("id") or person.get("uid") or item.get("id")
            name = (
                person.get("fullName")
                or person.get("displayName")
                or person.get("name")
                or item.get("displayName")
            )
            if espn_id is None and not name:
                continue
            team = normalize_team(person.get("team")) or normalize_team(team_meta.get("abbr"))
            records.append(RawPlayerRecord(
                source="espn",
                data={
                    "id": espn_id,
                    "espn_id": espn_id,
                    "name": name or str(espn_id),
                    "position": position,
                    "team": team,
                },
                fetched_at=fetched_at,
            ))
    return records


def defense_player(team_abbr: str, now_ms: int = 0) -> Player:
    abbr = normalize_team(team_abbr) or str(team_abbr).upper()
    return Player(
        id=f"DEF:{abbr}",
        name=f"{abbr} D/ST",
        position="DEF",
        team=abbr,
        updated_at=now_ms,
    )


# ----------------------------------------------------------------------
# Box scores
# ----------------------------------------------------------------------
def _stat_value(category: Mapping[str, Any], label: str) -> float:
    for stat in category.get("stats") or []:
        if not isinstance(stat, dict):
            continue
        names = (stat.get("shortDisplayName"), stat.get("abbreviation"), stat.get("name"))
        if label in names:
            return _number(stat.get("value"))
    return 0.0


def score_stat_line(line: Dict[str, float]) -> Dict[str, float]:
    line["pts"] = fantasy_points({k: line.get(k, 0.0) for k in STAT_LINE_KEYS})
    return line


def normalize_player_stat(entry: Mapping[str, Any], team_abbr: Optional[str]) -> Optional[Dict[str, Any]]:
    """One box score player entry -> {"id", "name_team", "line"}, or None."""
    athlete = entry.get("athlete") if isinstance(entry.get("athlete"), dict) else {}
    espn_id = str(athlete["id"]) if athlete.get("id") is not None else None
    name = (normalize_player_name(athlete.get("displayName")) or "").upper()
    team = (normalize_team(team_abbr) or normalize_team(athlete.get("team")) or "").upper()
    name_team = f"{name}|{team}" if name and team else None
    if not espn_id and not name_team:
        return None

    categories = {
        str(c.get("name") or "").lower(): c
        for c in entry.get("statistics") or []
        if isinstance(c, dict)
    }
    line = {key: 0.0 for key in STAT_LINE_KEYS}
    for (group, label), key in BOX_SCORE_STATS.items():
        if group in categories:
            line[key] = _stat_value(categories[group], label)
    return {"id": espn_id, "name_team": name_team, "line": score_stat_line(line)}


def add_stat_lines(a: Optional[Mapping[str, float]], b: Mapping[str, float]) -> Dict[str, float]:
    merged = {key: _number((a or {}).get(key)) + _number(b.get(key)) for key in STAT_LINE_KEYS}
    return score_stat_line(merged)


def week_stats_from_boxscores(boxscores: Iterable[Any]) -> Dict[str, Dict[str, float]]:
    """Sum every player's lines across the week's games.

    Keyed by ESPN id and by ``NAME|TEAM``; an id entry wins when both
    would collide on the same key.
    """
    by_id: Dict[str, Dict[str, float]] = {}
    by_name_team: Dict[str, Dict[str, float]] = {}
    for box in boxscores:
        if not isinstance(box, dict) or not isinstance(box.get("boxscore"), dict):
            continue
        for team in box["boxscore"].get("teams") or []:
            if not isinstance(team, dict):
                continue
            meta = team.get("team") or {}
            team_abbr = meta.get("abbreviation") or meta.get("shortDisplayName")
            statistics = team.get("statistics")
            players = statistics.get("players") or [] if isinstance(statistics, dict) else []
            for entry in players:
                if not isinstance(entry, dict):
                    continue
                norm = normalize_player_stat(entry, team_abbr)
                if norm is None:
                    continue
                if norm["id"]:
                    by_id[norm["id"]] = add_stat_lines(by_id.get(norm["id"]), norm["line"])
                if norm["name_team"]:
                    key = norm["name_team"]
                    by_name_team[key] = add_stat_lines(by_name_team.get(key), norm["line"])

    out = dict(by_id)
    for key, line in by_name_team.items():
        out.setdefault(key, line)
    return out


# ----------------------------------------------------------------------
# Projection frames
# ----------------------------------------------------------------------
def rescore_projections(df: pd.DataFrame, weights: Mapping[str, float] = PPR_WEIGHTS) -> pd.DataFrame:
    """Add ``Proj``: the row's stat columns scored with *weights*.

    Defenses keep the file's FPTS, which includes points-allowed tiers the
    league weights don't model.
    """
    out = df.copy()
    proj = pd.Series(0.0, index=out.index)
    for column, stat_key in CSV_STAT_COLUMNS.items():
        if column not in out.columns or stat_key not in weights:
            continue
        proj += pd.to_numeric(out[column], errors="coerce").fillna(0) * weights[stat_key]

    if "FPTS" in out.columns:
        fpts = pd.to_numeric(out["FPTS"], errors="coerce").fillna(0)
        proj = proj.where(out["POS"] != "DEF", fpts)
    out["Proj"] = proj.apply(round_points)
    return out


def projection_keys(df: pd.DataFrame) -> pd.DataFrame:
    """Add ``Team_Abbr``, ``Key`` (name|TEAM|POS) and ``Base_Key`` (suffix stripped)."""
    out = df.copy()
    out["Team_Abbr"] = out["Team"].apply(normalize_team) if "Team" in out.columns else None
    names = out["Player"].apply(lambda n: (normalize_player_name(n) or "").lower())
    teams = out["Team_Abbr"].fillna("").astype(str)
    pos = out["POS"].fillna("").astype(str).str.upper()
    out["Key"] = names + "|" + teams + "|" + pos
    out["Base_Key"] = names.apply(strip_name_suffix) + "|" + teams + "|" + pos
    return out


def player_match_keys(player: Player) -> List[str]:
    """Keys a projection row may match *player* under, most specific first."""
    name = (normalize_player_name(player.name) or "").lower()
    tail = f"|{player.team or ''}|{player.position or ''}"
    return [name + tail, strip_name_suffix(name) + tail]


def projections_by_player(df: pd.DataFrame, players: Iterable[Player]) -> Dict[str, float]:
    """player id -> projected points for this file.

    Two passes: exact name|TEAM|POS, then the same with name suffixes
    stripped on both sides. Defenses match on team alone.
    """
    frame = projection_keys(rescore_projections(df))
    exact = dict(zip(frame["Key"], frame["Proj"]))
    base = dict(zip(frame["Base_Key"], frame["Proj"]))
    defenses = {
        team: proj
        for team, pos, proj in zip(frame["Team_Abbr"], frame["POS"], frame["Proj"])
        if pos == "DEF" and team
    }

    out: Dict[str, float] = {}
    for player in players:
        if player.position == "DEF":
            if player.team in defenses:
                out[player.id] = float(defenses[player.team])
            continue
        full_key, base_key = player_match_keys(player)
        if full_key in exact:
            out[player.id] = float(exact[full_key])
        elif base_key in base:
            out[player.id] = float(base[base_key])
    logger.info("Matched %d of %d projection rows to players", len(out), len(frame))
    return out
