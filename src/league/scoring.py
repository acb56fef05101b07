"""Fantasy scoring - stat lines to points, starters to team totals."""

import logging
import math
from typing import Any, Dict, Mapping, Optional

from src.draft_manager.draft_state import TeamRoster
from src.league.config import PPR_WEIGHTS, STAT_ALIASES
from src.players.models import Player

logger = logging.getLogger(__name__)


def _number(value: Any) -> float:
    try:
        x = float(value)
    except (TypeError, ValueError):
        return 0.0
    return x if math.isfinite(x) else 0.0


def round_points(points: float) -> float:
    """Round half up to one decimal place."""
    return math.floor(points * 10 + 0.5) / 10


def fantasy_points(stats: Optional[Mapping[str, Any]], weights: Mapping[str, float] = PPR_WEIGHTS) -> float:
    """Weighted sum of a stat line, rounded to 0.1.

    Missing, null or non-numeric fields count as 0. Both snake_case keys
    (``pass_yds``) and provider-style keys (``passYds``) are accepted.
    """
    if not stats:
        return 0.0
    totals: Dict[str, float] = {}
    for key, value in stats.items():
        weight_key = key if key in weights else STAT_ALIASES.get(key)
        if weight_key is None or weight_key in totals:
            continue
        totals[weight_key] = _number(value)
    points = sum(weights[k] * v for k, v in totals.items())
    return round_points(points)


def stat_keys_for(player: Player) -> list:
    """Keys a week-stats map may use for *player*: id, ESPN id, NAME|TEAM."""
    keys = [player.id]
    if player.espn_id:
        keys.append(player.espn_id)
    if player.name:
        keys.append(f"{player.name.upper()}|{(player.team or '').upper()}")
    return keys


def actual_points(player: Player, week_stats: Optional[Mapping[str, Any]]) -> Optional[float]:
    """Points from real stats if the week has any for *player*, else None."""
    if not week_stats:
        return None
    for key in stat_keys_for(player):
        line = week_stats.get(key)
        if line is None:
            continue
        if isinstance(line, Mapping) and "pts" in line:
            return round_points(_number(line["pts"]))
        if isinstance(line, Mapping):
            return fantasy_points(line)
        return round_points(_number(line))
    return None


def player_points(
    player: Optional[Player], week, week_stats: Optional[Mapping[str, Any]] = None
) -> float:
    """Actual points when available, projected otherwise, 0 if neither."""
    if player is None:
        return 0.0
    actual = actual_points(player, week_stats)
    if actual is not None:
        return actual
    return round_points(player.projection_for(week))


def team_points(
    team: TeamRoster,
    players: Mapping[str, Player],
    week,
    week_stats: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    """Score a team's starters for *week*. Bench players never count.

    Returns:
        {"total": float, "lines": [{"slot", "player_id", "points",
        "projected", "actual", "opponent"}, ...]}
    """
    lines = []
    total = 0.0
    for slot, player_id in team.roster.items():
        player = players.get(player_id) if player_id else None
        if player_id and player is None:
            logger.debug("Unknown player %s in %s's %s slot", player_id, team.owner, slot)
        actual = actual_points(player, week_stats) if player else None
        points = player_points(player, week, week_stats)
        total += points
        lines.append({
            "slot": slot,
            "player_id": player_id,
            "points": points,
            "projected": player.projection_for(week) if player else 0.0,
            "actual": actual,
            "opponent": player.opponent_for(week) if player else "",
        })
    return {"total": round_points(total), "lines": lines}
