"""Sportsbook prop lines -> expected fantasy points.

Prop documents live in ``props/{id}``, one per player, week and book,
written by whatever feeds the lines in::

    playerId | espnId | name + team + pos     who the line is for
    week, season, book
    passYdsLine  passTDLine  passIntLine
    rushYdsLine  rushTDLine
    recLine      recYdsLine  recTDLine
    passTDOdds   rushTDOdds  recTDOdds  anyTDOdds   (American odds)

Lines from several books for the same player are averaged. A touchdown
line wins over touchdown odds; odds count as the chance of at least one
score. Only QB, RB, WR and TE are projected from props.
"""

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from src.data_pipeline.config import PROPS_DEFAULT_PASS_INT
from src.league.config import PPR_WEIGHTS
from src.league.scoring import fantasy_points
from src.players.cleaning import normalize_player_name, normalize_position, normalize_team
from src.players.models import Player

# Prop field -> scoring stat key
LINE_STATS = {
    "passYdsLine": "pass_yds",
    "passTDLine": "pass_td",
    "passIntLine": "pass_int",
    "rushYdsLine": "rush_yds",
    "rushTDLine": "rush_td",
    "recLine": "rec",
    "recYdsLine": "rec_yds",
    "recTDLine": "rec_td",
}
TD_ODDS = {
    "pass_td": "passTDOdds",
    "rush_td": "rushTDOdds",
    "rec_td": "recTDOdds",
}
ANY_TD_ODDS = "anyTDOdds"

# Positions projected from props, and where an anytime-TD price lands
# when nothing more specific is quoted
ANY_TD_BY_POSITION = {"QB": "pass_td", "RB": "rush_td", "WR": "rec_td", "TE": "rec_td"}


def american_odds_to_prob(odds: Any) -> Optional[float]:
    """+150 -> 0.4, -150 -> 0.6. None for missing, zero or junk odds."""
    try:
        a = float(odds)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(a) or a == 0:
        return None
    if a > 0:
        return 100 / (a + 100)
    return -a / (-a + 100)


def prop_group_key(row: Mapping[str, Any]) -> str:
    if row.get("playerId"):
        return str(row["playerId"])
    return "|".join(str(row.get(k) or "").strip().upper() for k in ("name", "team", "pos"))


def group_props(
    rows: Iterable[Mapping[str, Any]], books: Optional[Sequence[str]] = None
) -> Dict[str, List[Mapping[str, Any]]]:
    """Rows per player. With *books*, rows quoted by any other book are dropped."""
    groups: Dict[str, List[Mapping[str, Any]]] = {}
    for row in rows:
        if books and row.get("book") and row["book"] not in books:
            continue
        groups.setdefault(prop_group_key(row), []).append(row)
    return groups


def merge_props(rows: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    """Average each line and odds field over the rows that quote it."""
    frame = pd.DataFrame(list(rows))
    merged: Dict[str, Any] = {}
    for column in [*LINE_STATS, *TD_ODDS.values(), ANY_TD_ODDS]:
        if column not in frame.columns:
            continue
        mean = pd.to_numeric(frame[column], errors="coerce").mean()
        if pd.notna(mean):
            merged[column] = float(mean)
    pos = next((row.get("pos") for row in rows if row.get("pos")), None)
    merged["pos"] = normalize_position(pos)
    return merged


def expected_stats(position: Optional[str], props: Mapping[str, Any]) -> Dict[str, float]:
    """Expected stat line for one game from merged props."""
    stats = {key: float(props[field]) for field, key in LINE_STATS.items() if field in props}

    for key, odds_field in TD_ODDS.items():
        if key in stats:
            stats[key] = max(0.0, stats[key])
        else:
            stats[key] = american_odds_to_prob(props.get(odds_field)) or 0.0

    if "pass_int" not in stats:
        stats["pass_int"] = PROPS_DEFAULT_PASS_INT if stats.get("pass_yds", 0.0) > 0 else 0.0

    if not any(stats[key] for key in TD_ODDS):
        bucket = ANY_TD_BY_POSITION.get(normalize_position(position) or "")
        if bucket:
            stats[bucket] = american_odds_to_prob(props.get(ANY_TD_ODDS)) or 0.0
    return stats


def project_from_props(
    position: Optional[str], props: Mapping[str, Any], weights: Mapping[str, float] = PPR_WEIGHTS
) -> float:
    return fantasy_points(expected_stats(position, props), weights)


class PlayerLookup:
    """Finds the directory player a prop row is about.

    Tried in order: ``playerId`` as a document id, ``espnId``, then the
    name, preferring the candidate on the same team and position.
    """

    def __init__(self, players: Iterable[Player]):
        self.by_id: Dict[str, Player] = {}
        self.by_espn: Dict[str, Player] = {}
        self.by_name: Dict[str, List[Player]] = {}
        for player in players:
            self.by_id[player.id] = player
            if player.espn_id:
                self.by_espn[str(player.espn_id)] = player
            self.by_name.setdefault(self._name(player.name), []).append(player)

    @staticmethod
    def _name(name: Any) -> str:
        return (normalize_player_name(name) or "").lower()

    def find(self, row: Mapping[str, Any]) -> Optional[Player]:
        if row.get("playerId") and str(row["playerId"]) in self.by_id:
            return self.by_id[str(row["playerId"])]
        if row.get("espnId") and str(row["espnId"]) in self.by_espn:
            return self.by_espn[str(row["espnId"])]

        candidates = self.by_name.get(self._name(row.get("name"))) if row.get("name") else None
        if not candidates:
            return None
        team = normalize_team(row.get("team"))
        pos = normalize_position(row.get("pos"))
        same_team = [p for p in candidates if team and p.team == team]
        for player in same_team:
            if player.position == pos:
                return player
        return same_team[0] if same_team else candidates[0]
