"""Weekly stat lines and scoring a league week from them."""

from typing import Any, Mapping, Optional

from src.api.responses import int_param, json_endpoint
from src.data_pipeline.jobs import IngestionJobs
from src.draft_manager.draft_rules import ValidationError, require
from src.league.standings import apply_week_results


@json_endpoint
def week_stats(params: Optional[Mapping[str, Any]], jobs: IngestionJobs):
    """``{stats: {<espn id or NAME|TEAM>: {pass_yds, ..., pts}}}`` for a week."""
    params = params or {}
    week = int_param(params, "week")
    season = int_param(params, "season")
    stats = jobs.fetch_week_stats(week, season)
    return {"ok": True, "week": week, "season": season, "stats": stats}


@json_endpoint
def score_league_week(params: Optional[Mapping[str, Any]], jobs: IngestionJobs):
    """Fetch a week's actual stats and fold the league's matchups into standings."""
    params = params or {}
    league_id = require(params.get("leagueId"), "leagueId")
    week = int_param(params, "week")
    if not week:
        raise ValidationError("week is required")
    stats = jobs.fetch_week_stats(week, int_param(params, "season"))
    result = apply_week_results(jobs.store, league_id, week, week_stats=stats)
    return {"ok": True, **result}
