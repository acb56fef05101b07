"""Entry fee payments: the Pi webhook and a manual mark-paid."""

import logging
from typing import Any, Mapping, Optional

from src.api.responses import json_endpoint, require_method
from src.clock import Clock
from src.draft_manager.draft_rules import ValidationError
from src.league.treasury import TreasuryManager
from src.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)

MANUAL_TX_ID = "dev-manual"


@json_endpoint
def handle_pi_webhook(
    payload: Optional[Mapping[str, Any]],
    store: DocumentStore,
    clock: Optional[Clock] = None,
    method: Optional[str] = "POST",
):
    """Record an entry payment once the provider reports it COMPLETED.

    Other statuses are acknowledged and ignored. Repeat deliveries of a
    payment are harmless.
    """
    require_method(method, "POST")
    payload = payload or {}
    if payload.get("status") != "COMPLETED":
        logger.info("Ignoring payment notification with status %r", payload.get("status"))
        return {"ok": True, "ignored": True}

    league_id = payload.get("leagueId")
    username = payload.get("username")
    tx_id = payload.get("txId")
    if not league_id or not username or not tx_id:
        raise ValidationError("Missing fields")

    result = TreasuryManager(store, clock).record_payment(
        league_id, username, tx_id, amount_pi=payload.get("amountPi")
    )
    return {"ok": True, **result}


@json_endpoint
def mark_paid(
    payload: Optional[Mapping[str, Any]],
    store: DocumentStore,
    clock: Optional[Clock] = None,
    method: Optional[str] = "POST",
):
    """Mark a member paid without a provider transaction."""
    require_method(method, "POST")
    payload = payload or {}
    league_id = payload.get("leagueId")
    username = payload.get("username")
    if not league_id or not username:
        raise ValidationError("leagueId and username required")

    result = TreasuryManager(store, clock).record_payment(league_id, username, MANUAL_TX_ID)
    logger.warning("Manually marked %s paid in league %s", username, league_id)
    return {"ok": True, **result}
