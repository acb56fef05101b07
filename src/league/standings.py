"""Weekly results -> league standings."""

import logging
from typing import Any, Dict, List, Mapping, Optional

from src.draft_manager.draft_rules import ValidationError
from src.draft_manager.draft_controller import load_league
from src.league.models import Standing
from src.league.scoring import round_points, team_points
from src.storage.document_store import DocumentStore
from src.storage.repositories import PlayerRepository, ScheduleRepository, TeamRepository

logger = logging.getLogger(__name__)


def record_result(
    standings: Dict[str, Standing], home: str, away: str, home_pts: float, away_pts: float
) -> None:
    """Apply one head-to-head result to *standings* in place."""
    h = standings.setdefault(home, Standing())
    a = standings.setdefault(away, Standing())
    h.points_for = round_points(h.points_for + home_pts)
    h.points_against = round_points(h.points_against + away_pts)
    a.points_for = round_points(a.points_for + away_pts)
    a.points_against = round_points(a.points_against + home_pts)
    if home_pts > away_pts:
        h.wins += 1
        a.losses += 1
    elif away_pts > home_pts:
        a.wins += 1
        h.losses += 1
    else:
        h.ties += 1
        a.ties += 1


def score_week(
    store: DocumentStore, league_id: str, week: int, week_stats: Optional[Mapping[str, Any]] = None
) -> Dict[str, float]:
    """Starter totals for every team in the league for *week*."""
    players = {p.id: p for p in PlayerRepository(store).list_all()}
    return {
        team.owner: team_points(team, players, week, week_stats)["total"]
        for team in TeamRepository(store, league_id).list_all()
    }


def apply_week_results(
    store: DocumentStore,
    league_id: str,
    week: int,
    week_stats: Optional[Mapping[str, Any]] = None,
    team_totals: Optional[Mapping[str, float]] = None,
) -> Dict[str, Any]:
    """Score *week*'s scheduled matchups and fold them into standings.

    A week is only ever applied once; re-running returns applied=False.

    Args:
        week_stats: Actual stat lines for the week (see scoring.actual_points).
        team_totals: Precomputed owner -> points; skips scoring when given.
    """
    if not week or int(week) < 1:
        raise ValidationError(f"Invalid week: {week}")
    week = int(week)
    totals = dict(team_totals) if team_totals is not None else score_week(
        store, league_id, week, week_stats
    )

    with store.transaction() as txn:
        league = load_league(txn, league_id)
        if week in league.scored_weeks:
            logger.info("Week %d already applied for league %s", week, league_id)
            return {"applied": False, "week": week, "results": []}

        matchups = ScheduleRepository(txn, league_id).get_week(week)
        results: List[Dict[str, Any]] = []
        for m in matchups:
            home, away = m.get("home"), m.get("away")
            if not home or not away:
                continue
            home_pts = float(totals.get(home, 0.0))
            away_pts = float(totals.get(away, 0.0))
            record_result(league.standings, home, away, home_pts, away_pts)
            results.append({"home": home, "away": away, "home_pts": home_pts, "away_pts": away_pts})

        league.scored_weeks = sorted(set(league.scored_weeks) | {week})
        txn.update(f"leagues/{league.id}", {
            "standings": {k: v.to_dict() for k, v in league.standings.items()},
            "scored_weeks": league.scored_weeks,
        })

    logger.info("Applied %d results for league %s week %d", len(results), league_id, week)
    return {"applied": True, "week": week, "results": results}
