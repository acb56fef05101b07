"""Entry fees, rake, season winners and the payout queue.

Money math works on Pi amounts rounded to 4 decimal places. The pool only
shrinks when a payout is marked sent, so queued-but-unsent payouts are
still part of ``pool_pi``.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from src.clock import Clock, now_ms
from src.draft_manager.draft_controller import load_league
from src.draft_manager.draft_rules import NotFound, StateConflict, ValidationError, require
from src.league.config import DUST_PI, PI_DECIMALS
from src.league.models import League, Payout, Standing
from src.storage.document_store import DocumentStore, Transaction

logger = logging.getLogger(__name__)

_SCALE = 10 ** PI_DECIMALS


def round_pi(amount: float) -> float:
    return round(float(amount), PI_DECIMALS)


def floor_pi(amount: float) -> float:
    return math.floor(round(float(amount) * _SCALE, 6)) / _SCALE


def effective_rake_bps(league: League) -> int:
    """The league's rake when an entry fee is charged, else 0."""
    if league.entry.enabled and league.entry.amount_pi > 0:
        return league.rules.rake_bps
    return 0


def compute_rake(amount_pi: float, rake_bps: int) -> Tuple[float, float]:
    """Split a payment into (rake, net)."""
    rake = round_pi(amount_pi * rake_bps / 10000)
    return rake, round_pi(amount_pi - rake)


# ----------------------------------------------------------------------
# Pure operations on a League
# ----------------------------------------------------------------------
def record_entry_payment(
    league: League, username: str, amount_pi: Optional[float], tx_id: str, at: int
) -> bool:
    """Credit an entry payment to the pool. Returns False for a repeat.

    A user who has already paid is left alone, so webhook retries are safe.
    """
    if league.entry.is_paid(username):
        previous = league.entry.paid[username].get("tx_id")
        if previous != tx_id:
            logger.warning(
                "%s already paid league %s (tx %s); ignoring tx %s",
                username, league.id, previous, tx_id,
            )
        return False

    amount = float(amount_pi) if amount_pi is not None else league.entry.amount_pi
    if amount < 0:
        raise ValidationError(f"Negative payment amount: {amount}")
    rake, net = compute_rake(amount, effective_rake_bps(league))

    league.entry.paid[username] = {"paid_at": at, "tx_id": tx_id}
    league.treasury.pool_pi = round_pi(league.treasury.pool_pi + net)
    league.treasury.rake_pi = round_pi(league.treasury.rake_pi + rake)
    league.treasury.txs.append({
        "kind": "entry",
        "username": username,
        "amount_pi": round_pi(amount),
        "net_pi": net,
        "rake_pi": rake,
        "tx_id": tx_id,
        "at": at,
    })
    return True


def rank_standings(standings: Dict[str, Standing]) -> List[str]:
    """Usernames best first: wins desc, points_for desc, losses asc, name asc."""
    return sorted(
        standings,
        key=lambda u: (
            -standings[u].wins,
            -standings[u].points_for,
            standings[u].losses,
            u,
        ),
    )


def split_pool(pool_pi: float, winners: List[str]) -> List[Tuple[str, float]]:
    """Even split floored to 4dp; the remainder goes to the first winner."""
    if not winners:
        return []
    share = floor_pi(pool_pi / len(winners))
    amounts = [share] * len(winners)
    amounts[0] = round_pi(pool_pi - share * (len(winners) - 1))
    return list(zip(winners, amounts))


def season_winners(league: League) -> List[Tuple[str, float]]:
    """(username, amount) for the top winners_count teams over the unqueued pool."""
    ranked = rank_standings(league.standings)
    winners = ranked[: max(1, league.rules.winners_count)]
    queued = sum(p.amount_pi for p in league.treasury.pending)
    available = round_pi(league.treasury.pool_pi - queued)
    if available <= DUST_PI:
        return []
    return split_pool(available, winners)


def is_settlement_ready(league: League) -> bool:
    """Draft done and the season over (flagged, or the settlement week reached)."""
    if league.draft.status != "done":
        return False
    return league.settings.season_ended or league.settings.current_week >= league.rules.settlement_week


def enqueue_season_payouts(league: League, at: int) -> List[Payout]:
    """Queue winner payouts. Pairs already pending or sent are not queued again."""
    existing = {
        (p.username, round_pi(p.amount_pi))
        for p in league.treasury.pending + league.treasury.sent
    }
    added = []
    for username, amount in season_winners(league):
        if (username, round_pi(amount)) in existing:
            continue
        payout = Payout.create("season", username, amount, at)
        league.treasury.pending.append(payout)
        added.append(payout)
    return added


def _find_pending(league: League, payout_id: str) -> Payout:
    for payout in league.treasury.pending:
        if payout.id == payout_id:
            return payout
    if any(p.id == payout_id for p in league.treasury.sent):
        raise StateConflict(f"Payout {payout_id} was already sent")
    raise NotFound(f"Pending payout {payout_id} not found")


def mark_payout_sent(league: League, payout_id: str, tx_id: str, at: int) -> Payout:
    """pending -> sent; the amount leaves the pool (never below 0)."""
    payout = _find_pending(league, payout_id)
    league.treasury.pending.remove(payout)
    payout.status = "sent"
    payout.tx_id = tx_id
    payout.sent_at = at
    league.treasury.sent.append(payout)
    league.treasury.pool_pi = max(0.0, round_pi(league.treasury.pool_pi - payout.amount_pi))
    league.treasury.txs.append({
        "kind": "payout",
        "username": payout.username,
        "amount_pi": payout.amount_pi,
        "payout_id": payout.id,
        "tx_id": tx_id,
        "at": at,
    })
    return payout


def cancel_pending_payout(league: League, payout_id: str) -> Payout:
    """Drop a queued payout. The pool is untouched."""
    payout = _find_pending(league, payout_id)
    league.treasury.pending.remove(payout)
    return payout


# ----------------------------------------------------------------------
# Store-backed operations
# ----------------------------------------------------------------------
class TreasuryManager:
    """Runs each treasury transition as one atomic league update."""

    def __init__(self, store: DocumentStore, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or now_ms

    def record_payment(
        self, league_id: str, username: str, tx_id: str, amount_pi: Optional[float] = None
    ) -> Dict[str, Any]:
        username = require(username, "username")
        tx_id = require(tx_id, "txId")
        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            credited = record_entry_payment(league, username, amount_pi, tx_id, self.clock())
            if credited:
                self._save(txn, league, entry=True)
        if credited:
            logger.info("Recorded entry payment from %s in league %s (tx %s)",
                        username, league_id, tx_id)
        return {"credited": credited, "pool_pi": league.treasury.pool_pi}

    def enqueue_season_payouts(self, league_id: str) -> List[Payout]:
        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            added = enqueue_season_payouts(league, self.clock())
            if added:
                self._save(txn, league)
        for payout in added:
            logger.info("Queued payout of %.4f Pi to %s in league %s",
                        payout.amount_pi, payout.username, league_id)
        return added

    def mark_payout_sent(self, league_id: str, payout_id: str, tx_id: str) -> Payout:
        tx_id = require(tx_id, "txId")
        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            payout = mark_payout_sent(league, payout_id, tx_id, self.clock())
            self._save(txn, league)
        logger.info("Payout %s to %s marked sent (tx %s)", payout_id, payout.username, tx_id)
        return payout

    def cancel_pending_payout(self, league_id: str, payout_id: str) -> Payout:
        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            payout = cancel_pending_payout(league, payout_id)
            self._save(txn, league)
        logger.info("Cancelled pending payout %s in league %s", payout_id, league_id)
        return payout

    def settle_all(self) -> Dict[str, int]:
        """Queue payouts for every league that is ready to settle."""
        checked = 0
        enqueued = 0
        for league_id, _ in self.store.list("leagues"):
            league = load_league(self.store, league_id)
            if not is_settlement_ready(league):
                continue
            checked += 1
            enqueued += len(self.enqueue_season_payouts(league_id))
        return {"ready": checked, "enqueued": enqueued}

    @staticmethod
    def _save(txn: Transaction, league: League, entry: bool = False) -> None:
        fields = {"treasury": league.treasury.to_dict()}
        if entry:
            fields["entry"] = league.entry.to_dict()
        txn.update(f"leagues/{league.id}", fields)
