"""Draft controller - orchestrates pick flow and state updates."""

import logging
from typing import Dict, List, Optional, Sequence

from src.clock import Clock, now_ms
from src.draft_manager.config import DRAFT_STATUSES
from src.draft_manager.draft_rules import (
    DraftRules,
    EntryUnpaid,
    NotFound,
    StateConflict,
    ValidationError,
    require,
)
from src.draft_manager.draft_state import DraftState, Pick
from src.draft_manager.roster_validator import RosterValidator
from src.league.models import League
from src.players.cleaning import normalize_position
from src.players.models import Player
from src.storage.document_store import DocumentStore, Transaction
from src.storage.repositories import (
    Claim,
    ClaimRepository,
    LeagueRepository,
    PlayerRepository,
    TeamRepository,
)

logger = logging.getLogger(__name__)


def load_league(db, league_id: str) -> League:
    league = LeagueRepository(db).get(require(league_id, "leagueId"))
    if league is None:
        raise NotFound(f"League {league_id} not found")
    return league


def all_members_paid(db, league: League) -> bool:
    """True when the entry fee is off or every member has paid it."""
    if not league.entry.enabled or league.entry.amount_pi <= 0:
        return True
    members = LeagueRepository(db).list_members(league.id)
    return all(league.entry.is_paid(m) for m in members)


class DraftController:
    """Main controller for draft orchestration.

    Coordinates between DraftRules (turn/claim checks), RosterValidator
    (slot legality and assignment) and DraftState (snake bookkeeping).
    Every state change is one store transaction, so a pick's turn check,
    claim check and writes can't interleave with another pick.
    """

    def __init__(self, store: DocumentStore, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or now_ms

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def configure_draft(self, league_id: str, order: Optional[Sequence[str]] = None) -> DraftState:
        """Reset the draft to scheduled with *order* (or the current order).

        Also locks free-agent add/drop league-wide until the draft ends.
        """
        with self.store.transaction() as txn:
            league = self._configure(txn, league_id, order)

        logger.info(
            "Draft configured for league %s: %d teams, %d rounds",
            league_id, league.draft.teams_count, league.draft.rounds_total,
        )
        return league.draft

    def init_draft_order(self, league_id: str) -> List[str]:
        """Seed the draft order from the member list (join order)."""
        members = LeagueRepository(self.store).list_members(require(league_id, "leagueId"))
        if not members:
            raise ValidationError("No members to seed draft order")
        self.configure_draft(league_id, members)
        return members

    def set_draft_schedule(
        self, league_id: str, scheduled_at: int, order: Optional[Sequence[str]] = None
    ) -> DraftState:
        """Reconfigure the draft and record when it should start on its own."""
        if scheduled_at is None:
            raise ValidationError("Missing scheduledAt")
        with self.store.transaction() as txn:
            league = self._configure(txn, league_id, order, scheduled_at=int(scheduled_at))
        logger.info("Draft for league %s scheduled at %d", league_id, scheduled_at)
        return league.draft

    def set_draft_status(self, league_id: str, status: str) -> None:
        if status not in DRAFT_STATUSES:
            raise ValidationError(f"Invalid status '{status}'. Must be one of: {DRAFT_STATUSES}")
        with self.store.transaction() as txn:
            load_league(txn, league_id)
            txn.update(f"leagues/{league_id}", {"draft.status": status})

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def start_draft(self, league_id: str) -> DraftState:
        """scheduled -> live; the first pick clock starts now.

        Raises:
            EntryUnpaid: If the entry fee is on and someone hasn't paid.
            StateConflict: If the draft already finished or has no order.
        """
        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            if league.draft.is_complete:
                raise StateConflict("Draft already finished")
            if not league.draft.order:
                raise StateConflict("Draft order is empty; configure the draft first")
            if not all_members_paid(txn, league):
                raise EntryUnpaid("All entry fees must be paid before starting the draft")
            league.draft.start(self.clock())
            self._save_draft(txn, league)

        logger.info("Draft started for league %s; %s on the clock",
                    league_id, league.draft.current_drafter())
        return league.draft

    def start_due_drafts(self, now: Optional[int] = None) -> Dict[str, int]:
        """Start every scheduled draft whose start time has passed.

        Leagues that can't start (unpaid entries, empty order) are logged
        and skipped so one bad league doesn't block the rest.
        """
        now = self.clock() if now is None else now
        due = [
            league for league in LeagueRepository(self.store).with_draft_status("scheduled")
            if league.draft.scheduled_at is not None
            and league.draft.scheduled_at <= now
        ]
        started = 0
        for league in due:
            try:
                self.start_draft(league.id)
                started += 1
            except StateConflict as e:
                logger.warning("Could not start due draft for league %s: %s", league.id, e)
        return {"started": started, "checked": len(due)}

    def end_draft(self, league_id: str) -> DraftState:
        """Force the draft to done and unlock add/drop."""
        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            league.draft.finish(self.clock())
            league.settings.lock_add_during_draft = False
            self._save_draft(txn, league, lock=False)
        logger.info("Draft ended for league %s", league_id)
        return league.draft

    # ------------------------------------------------------------------
    # Picks
    # ------------------------------------------------------------------
    def pick(
        self,
        league_id: str,
        username: str,
        player_id: str,
        position: Optional[str] = None,
        slot: Optional[str] = None,
        auto: bool = False,
    ) -> Pick:
        """Validate and execute a draft pick atomically.

        Args:
            league_id: League being drafted.
            username: User making the pick; must be on the clock.
            player_id: Player being drafted.
            position: Player position; looked up in the directory if omitted.
            slot: Explicit starting slot (or "BENCH"); auto-assigned if omitted.

        Returns:
            The Pick record with the roster slot it landed in.

        Raises:
            NotLive, NotYourTurn, AlreadyOwned, IllegalSlot: On rule
                violations. Nothing is written in that case.
        """
        username = require(username, "username")
        player_id = require(player_id, "playerId")

        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            record = self._pick_in(txn, league, username, player_id, position, slot, auto)
        self._log_pick(league, record)
        return record

    def get_available_players(
        self, league_id: str, week: Optional[int] = None, position: Optional[str] = None
    ) -> List[Player]:
        """Unclaimed players, best projection for *week* first."""
        league = load_league(self.store, league_id)
        return self._available(self.store, league, week, position)

    def auto_pick_best_available(self, league_id: str, week: Optional[int] = None) -> Optional[Pick]:
        """Pick the highest-projected unclaimed player for whoever is on the clock.

        Returns None when the draft isn't live or nobody is available.
        """
        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            record = self._auto_pick_in(txn, league, week)
        if record is not None:
            self._log_pick(league, record)
        return record

    def auto_draft_if_expired(self, league_id: str, week: Optional[int] = None) -> Dict:
        """Advance an expired pick clock. Safe to poll on every tick.

        The deadline check and the pick run in one transaction.

        Returns:
            {"acted": bool, "reason": str} where reason is one of
            no-league, not-live, set-deadline, not-expired, auto-picked,
            no-players or finished.
        """
        league_id = require(league_id, "leagueId")
        with self.store.transaction() as txn:
            league = LeagueRepository(txn).get(league_id)
            if league is None:
                return {"acted": False, "reason": "no-league"}
            if not league.draft.is_live:
                return {"acted": False, "reason": "not-live"}

            now = self.clock()
            if not league.draft.deadline:
                txn.update(f"leagues/{league.id}", {"draft.deadline": now + league.draft.clock_ms})
                return {"acted": True, "reason": "set-deadline"}
            if now < league.draft.deadline:
                return {"acted": False, "reason": "not-expired"}

            record = self._auto_pick_in(txn, league, week)

        if record is None:
            return {"acted": False, "reason": "no-players"}
        self._log_pick(league, record)
        return {
            "acted": True,
            "reason": "finished" if league.draft.is_complete else "auto-picked",
            "pick": record.to_dict(),
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_draft(self, league_id: str) -> DraftState:
        return load_league(self.store, league_id).draft

    def is_my_turn(self, league_id: str, username: str) -> bool:
        draft = self.get_draft(league_id)
        return draft.is_live and draft.is_turn_of(username)

    def current_drafter(self, league_id: str) -> Optional[str]:
        return self.get_draft(league_id).current_drafter()

    def get_draft_summary(self, league_id: str) -> Dict:
        """Picks and rosters. Returns dict with "error" key if the draft is not done."""
        league = load_league(self.store, league_id)
        if not league.draft.is_complete:
            return {"error": "Draft not complete"}
        teams = TeamRepository(self.store, league.id).list_all()
        validator = RosterValidator(league.rules)
        return {
            "league_id": league.id,
            "completed_at": league.draft.completed_at,
            "total_picks": league.draft.picks_taken,
            "picks": [p.to_dict() for p in league.draft.picks],
            "teams": [t.to_dict() for t in teams],
            "slots": {t.owner: validator.get_roster_summary(t) for t in teams},
        }

    # ------------------------------------------------------------------
    def _pick_in(
        self,
        txn: Transaction,
        league: League,
        username: str,
        player_id: str,
        position: Optional[str],
        slot: Optional[str],
        auto: bool,
    ) -> Pick:
        claims = ClaimRepository(txn, league.id)
        teams = TeamRepository(txn, league.id)

        if not position:
            player = PlayerRepository(txn).get(player_id)
            position = player.position if player else None
        position = normalize_position(position)

        DraftRules(league.draft).validate_pick(
            username, player_id, claims.owner_of(player_id), position
        )

        team = teams.get_or_create(username, league.rules.starting_slots)
        target = RosterValidator(league.rules).determine_roster_slot(team, position, slot)

        now = self.clock()
        record = Pick(
            pick_number=league.draft.picks_taken + 1,
            round=league.draft.round,
            username=username,
            player_id=player_id,
            slot=target,
            at=now,
            auto=auto,
        )
        team.place(player_id, target)
        claims.create(Claim(player_id, username, now))
        teams.save(team)

        league.draft.picks.append(record)
        league.draft.advance(now)
        if league.draft.is_complete:
            league.settings.lock_add_during_draft = False
        self._save_draft(txn, league, lock=league.settings.lock_add_during_draft)
        return record

    def _auto_pick_in(self, txn: Transaction, league: League, week: Optional[int]) -> Optional[Pick]:
        username = league.draft.current_drafter()
        if not league.draft.is_live or not username:
            return None
        for player in self._available(txn, league, week):
            if not player.position:
                continue
            return self._pick_in(txn, league, username, player.id, player.position, None, auto=True)
        logger.warning("No available players to auto-pick in league %s", league.id)
        return None

    @staticmethod
    def _available(db, league: League, week: Optional[int], position: Optional[str] = None) -> List[Player]:
        week = week or league.settings.current_week
        owned = ClaimRepository(db, league.id).claimed_ids()
        players = [
            p for p in PlayerRepository(db).list_all()
            if p.id not in owned and (position is None or p.position == position)
        ]
        players.sort(key=lambda p: (-p.projection_for(week), p.name or "", p.id))
        return players

    @staticmethod
    def _log_pick(league: League, record: Pick) -> None:
        logger.info(
            "Pick %d (Rd %d): %s selects %s -> %s%s",
            record.pick_number, record.round, record.username, record.player_id,
            record.slot, " [auto]" if record.auto else "",
        )
        if league.draft.is_complete:
            logger.info("Draft complete for league %s", league.id)

    def _configure(
        self,
        txn: Transaction,
        league_id: str,
        order: Optional[Sequence[str]],
        scheduled_at: Optional[int] = None,
    ) -> League:
        league = load_league(txn, league_id)
        new_order = list(order) if order else list(league.draft.order)
        league.draft.reset(new_order, league.rules)
        if scheduled_at is not None:
            league.draft.scheduled_at = scheduled_at
        league.settings.lock_add_during_draft = True
        self._save_draft(txn, league, lock=True)
        return league

    @staticmethod
    def _save_draft(txn: Transaction, league: League, lock: Optional[bool] = None) -> None:
        fields = {"draft": league.draft.to_dict()}
        if lock is not None:
            fields["settings.lock_add_during_draft"] = lock
        txn.update(f"leagues/{league.id}", fields)
