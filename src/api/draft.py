"""Draft polling endpoints."""

from typing import Any, Mapping, Optional

from src.api.responses import int_param, json_endpoint
from src.clock import Clock
from src.draft_manager.draft_controller import DraftController
from src.draft_manager.draft_rules import require
from src.storage.document_store import DocumentStore


@json_endpoint
def check_due_drafts(store: DocumentStore, clock: Optional[Clock] = None):
    """Flip every scheduled draft whose start time has passed to live."""
    result = DraftController(store, clock).start_due_drafts()
    return {"ok": True, **result}


@json_endpoint
def tick_draft(
    params: Optional[Mapping[str, Any]], store: DocumentStore, clock: Optional[Clock] = None
):
    """Auto-pick for whoever is on the clock if their time ran out."""
    params = params or {}
    league_id = require(params.get("leagueId"), "leagueId")
    result = DraftController(store, clock).auto_draft_if_expired(league_id, int_param(params, "week"))
    return {"ok": True, **result}
