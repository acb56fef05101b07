"""Tests for entry payments, rake, winners and the payout queue."""

import pytest

from src.draft_manager.draft_controller import DraftController
from src.draft_manager.draft_rules import NotFound, StateConflict, ValidationError
from src.league.league_manager import LeagueManager
from src.league.models import League, Standing
from src.league.treasury import (
    TreasuryManager,
    compute_rake,
    enqueue_season_payouts,
    floor_pi,
    is_settlement_ready,
    mark_payout_sent,
    rank_standings,
    record_entry_payment,
    season_winners,
    split_pool,
)
from src.storage.repositories import LeagueRepository


# ── Helpers ──────────────────────────────────────────────────────────

def _make_league(entry_pi=10.0, **standings):
    league = League.create_new("L", "alice")
    league.entry.enabled = entry_pi > 0
    league.entry.amount_pi = entry_pi
    league.standings = {name: Standing(wins=w) for name, w in standings.items()} or {"alice": Standing()}
    return league


def _paid_league(store, clock, members=("bob",), entry_pi=10.0):
    manager = LeagueManager(store, clock)
    league = manager.create_league("L", "alice")
    for username in members:
        manager.join_league(league.id, username)
    manager.set_entry_settings(league.id, enabled=True, amount_pi=entry_pi)
    treasury = TreasuryManager(store, clock)
    for username in ("alice",) + tuple(members):
        treasury.record_payment(league.id, username, f"tx-{username}")
    return league.id, treasury


def _finish_season(store, clock, league_id):
    DraftController(store, clock).end_draft(league_id)
    LeagueManager(store, clock).end_season(league_id)


# ── Money math ───────────────────────────────────────────────────────

class TestMoneyMath:
    def test_rake_200_bps(self):
        assert compute_rake(10.0, 200) == (0.2, 9.8)

    def test_zero_rake(self):
        assert compute_rake(3.0, 0) == (0.0, 3.0)

    def test_floor_pi(self):
        assert floor_pi(10 / 3) == 3.3333

    def test_split_pool_remainder_to_first(self):
        shares = split_pool(10.0, ["a", "b", "c"])
        assert shares == [("a", 3.3334), ("b", 3.3333), ("c", 3.3333)]
        assert round(sum(amount for _, amount in shares), 4) == 10.0

    def test_split_pool_no_winners(self):
        assert split_pool(10.0, []) == []

    def test_rank_standings_tiebreaks(self):
        standings = {
            "carol": Standing(wins=3, points_for=300),
            "bob": Standing(wins=3, points_for=310),
            "alice": Standing(wins=3, points_for=300),
            "dave": Standing(wins=5),
        }
        assert rank_standings(standings) == ["dave", "bob", "alice", "carol"]


# ── Pure league operations ───────────────────────────────────────────

class TestRecordEntryPayment:
    def test_credits_net_and_rake(self):
        league = _make_league()
        assert record_entry_payment(league, "alice", None, "tx1", at=5) is True
        assert league.treasury.pool_pi == 9.8
        assert league.treasury.rake_pi == 0.2
        assert league.entry.paid["alice"] == {"paid_at": 5, "tx_id": "tx1"}
        assert league.treasury.txs[0]["kind"] == "entry"

    def test_repeat_payment_ignored(self):
        league = _make_league()
        record_entry_payment(league, "alice", None, "tx1", at=5)
        assert record_entry_payment(league, "alice", None, "tx1", at=6) is False
        assert record_entry_payment(league, "alice", 50, "tx2", at=7) is False
        assert league.treasury.pool_pi == 9.8
        assert len(league.treasury.txs) == 1

    def test_no_rake_without_entry_fee(self):
        league = _make_league(entry_pi=0)
        record_entry_payment(league, "alice", 4.0, "tx1", at=1)
        assert (league.treasury.pool_pi, league.treasury.rake_pi) == (4.0, 0.0)

    def test_negative_amount(self):
        with pytest.raises(ValidationError):
            record_entry_payment(_make_league(), "alice", -1, "tx1", at=1)


class TestSeasonPayouts:
    def test_not_ready_until_draft_done_and_season_over(self):
        league = _make_league()
        assert not is_settlement_ready(league)
        league.draft.status = "done"
        assert not is_settlement_ready(league)
        league.settings.season_ended = True
        assert is_settlement_ready(league)

    def test_settlement_week_counts_as_over(self):
        league = _make_league()
        league.draft.status = "done"
        league.settings.current_week = league.rules.settlement_week
        assert is_settlement_ready(league)

    def test_winner_takes_pool(self):
        league = _make_league(alice=2, bob=5)
        league.treasury.pool_pi = 19.6
        assert season_winners(league) == [("bob", 19.6)]

    def test_dust_pool_pays_nothing(self):
        league = _make_league(alice=1)
        league.treasury.pool_pi = 0.009
        assert season_winners(league) == []

    def test_enqueue_is_idempotent(self):
        league = _make_league(alice=2, bob=5)
        league.treasury.pool_pi = 19.6
        first = enqueue_season_payouts(league, at=1)
        second = enqueue_season_payouts(league, at=2)
        assert [(p.username, p.amount_pi, p.status) for p in first] == [("bob", 19.6, "pending")]
        assert second == []
        assert len(league.treasury.pending) == 1

    def test_sent_payout_leaves_pool_and_is_final(self):
        league = _make_league(alice=2, bob=5)
        league.treasury.pool_pi = 19.6
        payout = enqueue_season_payouts(league, at=1)[0]
        sent = mark_payout_sent(league, payout.id, "tx-out", at=3)
        assert sent.status == "sent"
        assert league.treasury.pool_pi == 0.0
        assert league.treasury.pending == []
        with pytest.raises(StateConflict):
            mark_payout_sent(league, payout.id, "tx-again", at=4)
        assert enqueue_season_payouts(league, at=5) == []


# ── Store-backed manager ─────────────────────────────────────────────

class TestTreasuryManager:
    def test_pool_plus_rake_equals_payments(self, store, clock):
        league_id, _ = _paid_league(store, clock, members=("bob", "carol"))
        league = LeagueRepository(store).get(league_id)
        assert round(league.treasury.pool_pi + league.treasury.rake_pi, 4) == 30.0
        assert league.treasury.rake_pi == 0.6
        assert sorted(league.entry.paid) == ["alice", "bob", "carol"]

    def test_record_payment_result(self, store, clock):
        league_id, treasury = _paid_league(store, clock, members=())
        assert treasury.record_payment(league_id, "alice", "tx-alice") == {"credited": False, "pool_pi": 9.8}

    def test_settle_all_enqueues_ready_leagues(self, store, clock):
        league_id, treasury = _paid_league(store, clock)
        assert treasury.settle_all() == {"ready": 0, "enqueued": 0}

        _finish_season(store, clock, league_id)
        assert treasury.settle_all() == {"ready": 1, "enqueued": 1}
        assert treasury.settle_all() == {"ready": 1, "enqueued": 0}

        league = LeagueRepository(store).get(league_id)
        assert len(league.treasury.pending) == 1
        assert league.treasury.pending[0].amount_pi == 19.6
        assert league.treasury.pool_pi == 19.6

    def test_send_then_cancel_flow(self, store, clock):
        league_id, treasury = _paid_league(store, clock)
        _finish_season(store, clock, league_id)
        payout = treasury.enqueue_season_payouts(league_id)[0]

        treasury.mark_payout_sent(league_id, payout.id, "tx-out")
        league = LeagueRepository(store).get(league_id)
        assert league.treasury.pool_pi == 0.0
        assert [p.id for p in league.treasury.sent] == [payout.id]

        with pytest.raises(StateConflict):
            treasury.cancel_pending_payout(league_id, payout.id)
        with pytest.raises(NotFound):
            treasury.cancel_pending_payout(league_id, "nope")

    def test_cancel_keeps_pool(self, store, clock):
        league_id, treasury = _paid_league(store, clock)
        _finish_season(store, clock, league_id)
        payout = treasury.enqueue_season_payouts(league_id)[0]
        treasury.cancel_pending_payout(league_id, payout.id)
        league = LeagueRepository(store).get(league_id)
        assert league.treasury.pending == []
        assert league.treasury.pool_pi == 19.6

    def test_missing_tx_id(self, store, clock):
        league_id, treasury = _paid_league(store, clock, members=())
        with pytest.raises(ValidationError):
            treasury.record_payment(league_id, "bob", "")
