"""Round-robin season schedule via the circle method."""

import logging
from typing import Dict, List, Optional, Sequence

from src.draft_manager.draft_rules import NotFound, ValidationError, require
from src.league.config import BYE, MAX_SCHEDULE_WEEKS
from src.storage.document_store import DocumentStore
from src.storage.repositories import LeagueRepository, ScheduleRepository

logger = logging.getLogger(__name__)


def generate_round_robin(usernames: Sequence[str], total_weeks: Optional[int] = None) -> List[Dict]:
    """Weekly pairings for *usernames*.

    An odd team count gets a synthetic bye entry; pairings against it are
    dropped. Seat 0 stays fixed while the others rotate one step per week.
    Deterministic for a given input order.

    Returns:
        [{"week": 1, "matchups": [{"home": ..., "away": ...}, ...]}, ...]
    """
    teams = []
    for name in usernames or []:
        if name and name not in teams:
            teams.append(name)
    if len(teams) < 2:
        return []

    seats = list(teams)
    if len(seats) % 2 == 1:
        seats.append(BYE)
    half = len(seats) // 2
    weeks = min(total_weeks or len(teams) - 1, MAX_SCHEDULE_WEEKS)

    left = seats[:half]
    right = list(reversed(seats[half:]))

    schedule = []
    for week in range(1, weeks + 1):
        matchups = [
            {"home": home, "away": away}
            for home, away in zip(left, right)
            if home != BYE and away != BYE
        ]
        schedule.append({"week": week, "matchups": matchups})

        # Every seat but left[0] moves one step around the circle
        if half > 1:
            left, right = [left[0], right[0]] + left[1:-1], right[1:] + [left[-1]]
    return schedule


def ensure_season_schedule(
    store: DocumentStore,
    league_id: str,
    total_weeks: Optional[int] = None,
    recreate: bool = False,
) -> Dict[str, List[int]]:
    """Write week-1..N schedule docs unless they already exist.

    Args:
        total_weeks: Weeks to generate; defaults to the league's
            schedule_weeks rule.
        recreate: Replace an existing schedule.

    Returns:
        {"weeks_created": [1, 2, ...]} (empty if nothing was written).
    """
    league_id = require(league_id, "leagueId")
    leagues = LeagueRepository(store)
    league = leagues.get(league_id)
    if league is None:
        raise NotFound(f"League {league_id} not found")
    members = leagues.list_members(league_id)
    if len(members) < 2:
        raise ValidationError("Need at least 2 team members to schedule")

    weeks = total_weeks or league.rules.schedule_weeks
    schedule = generate_round_robin(members, weeks)

    with store.transaction() as txn:
        repo = ScheduleRepository(txn, league_id)
        if repo.has_schedule() and not recreate:
            logger.info("League %s already has a schedule; leaving it", league_id)
            return {"weeks_created": []}
        if recreate:
            repo.clear()
        for entry in schedule:
            repo.save_week(entry["week"], entry["matchups"])

    logger.info("Wrote %d schedule weeks for league %s", len(schedule), league_id)
    return {"weeks_created": [w["week"] for w in schedule]}
