"""League lifecycle, membership and roster moves outside the draft."""

import logging
from typing import Any, Callable, Dict, List, Optional

from src.clock import Clock, now_ms
from src.draft_manager.config import BENCH, LeagueRules
from src.draft_manager.draft_controller import load_league
from src.draft_manager.draft_rules import (
    AddDropLocked,
    AlreadyOwned,
    IllegalSlot,
    NotFound,
    StateConflict,
    ValidationError,
    require,
    require_username,
)
from src.draft_manager.draft_state import TeamRoster
from src.draft_manager.roster_validator import RosterValidator
from src.league.models import League, Standing
from src.league.treasury import effective_rake_bps
from src.storage.document_store import DocumentStore
from src.storage.repositories import (
    Claim,
    ClaimRepository,
    LeagueRepository,
    PlayerRepository,
    TeamRepository,
)

logger = logging.getLogger(__name__)


class LeagueManager:
    """Create and join leagues; add, drop and move players."""

    def __init__(self, store: DocumentStore, clock: Optional[Clock] = None):
        self.store = store
        self.clock = clock or now_ms

    # ------------------------------------------------------------------
    # Leagues and members
    # ------------------------------------------------------------------
    def create_league(
        self,
        name: str,
        owner: str,
        rules: Optional[LeagueRules] = None,
        order: Optional[List[str]] = None,
    ) -> League:
        """Create a league; the owner joins it and gets a team straight away."""
        name = require(name, "name")
        owner = require_username(owner, "owner")
        now = self.clock()
        league = League.create_new(name, owner, rules, now_ms=now)
        if order:
            league.draft.reset(order, league.rules)

        with self.store.transaction() as txn:
            LeagueRepository(txn).save(league)
            LeagueRepository(txn).add_member(league.id, owner, joined_at=now)
            TeamRepository(txn, league.id).save(TeamRoster.create(owner, league.rules.starting_slots))

        logger.info("Created league %s (%s) owned by %s", league.id, name, owner)
        return league

    def get_league(self, league_id: str) -> League:
        return load_league(self.store, league_id)

    def join_league(self, league_id: str, username: str) -> bool:
        """Add *username* as a member. Returns False if they already were one."""
        username = require_username(username)
        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            leagues = LeagueRepository(txn)
            if leagues.is_member(league.id, username):
                self._ensure_team(txn, league, username)
                return False
            leagues.add_member(league.id, username, joined_at=self.clock())
            if username not in league.standings:
                league.standings[username] = Standing()
                standings = {k: v.to_dict() for k, v in league.standings.items()}
                txn.update(f"leagues/{league.id}", {"standings": standings})
            self._ensure_team(txn, league, username)

        logger.info("%s joined league %s", username, league_id)
        return True

    def ensure_team(self, league_id: str, username: str) -> TeamRoster:
        username = require(username, "username")
        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            return self._ensure_team(txn, league, username)

    def list_members(self, league_id: str) -> List[str]:
        return LeagueRepository(self.store).list_members(require(league_id, "leagueId"))

    def list_teams(self, league_id: str) -> List[TeamRoster]:
        return TeamRepository(self.store, require(league_id, "leagueId")).list_all()

    def get_team(self, league_id: str, username: str) -> TeamRoster:
        team = TeamRepository(self.store, require(league_id, "leagueId")).get(username)
        if team is None:
            raise NotFound(f"Team {username} not found in league {league_id}")
        return team

    def list_leagues_for(self, username: str) -> List[League]:
        """Leagues *username* owns or belongs to."""
        username = require(username, "username")
        leagues = LeagueRepository(self.store)
        return [
            league for league in leagues.list_all()
            if league.owner == username or leagues.is_member(league.id, username)
        ]

    def listen_league(self, league_id: str, on_change: Callable[[Optional[League]], None]):
        """Call *on_change* with the league now and after every change. Returns unsubscribe."""
        league_id = require(league_id, "leagueId")

        def forward(data: Optional[Dict[str, Any]]) -> None:
            on_change(League.from_dict(data, doc_id=league_id) if data is not None else None)

        return self.store.listen(f"leagues/{league_id}", forward)

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    def set_entry_settings(
        self, league_id: str, enabled: Optional[bool] = None, amount_pi: Optional[float] = None
    ) -> League:
        """Toggle the entry fee and/or set its amount; the rake follows the rules."""
        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            if enabled is not None:
                league.entry.enabled = bool(enabled)
            if amount_pi is not None:
                amount = float(amount_pi)
                if amount < 0:
                    raise ValidationError(f"Entry amount cannot be negative: {amount}")
                league.entry.amount_pi = amount
            league.entry.rake_bps = effective_rake_bps(league)
            txn.update(f"leagues/{league.id}", {"entry": league.entry.to_dict()})
        return league

    def set_current_week(self, league_id: str, week: int) -> None:
        week = int(week)
        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            if not 1 <= week <= league.rules.season_weeks:
                raise ValidationError(
                    f"Week {week} outside 1..{league.rules.season_weeks}"
                )
            txn.update(f"leagues/{league.id}", {"settings.current_week": week})

    def end_season(self, league_id: str) -> None:
        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            txn.update(f"leagues/{league.id}", {"settings.season_ended": True})
        logger.info("Season ended for league %s", league_id)

    # ------------------------------------------------------------------
    # Roster moves
    # ------------------------------------------------------------------
    def add_drop_player(
        self,
        league_id: str,
        username: str,
        add_id: Optional[str] = None,
        drop_id: Optional[str] = None,
    ) -> TeamRoster:
        """Drop then add, in one transaction. Added players go to the bench.

        Raises:
            AddDropLocked: While a draft is configured and live.
            AlreadyOwned: If *add_id* is claimed by anyone.
            StateConflict: If *drop_id* isn't on this team.
        """
        username = require(username, "username")
        if not add_id and not drop_id:
            raise ValidationError("Nothing to add or drop")

        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            if league.settings.lock_add_during_draft and league.draft.is_live:
                raise AddDropLocked("Add/Drop is disabled during the draft")

            claims = ClaimRepository(txn, league.id)
            team = self._ensure_team(txn, league, username)

            if drop_id:
                if team.remove_player(drop_id) is None:
                    raise StateConflict(f"{drop_id} is not on {username}'s roster")
                claims.delete(drop_id)

            if add_id:
                owner = claims.owner_of(add_id)
                if owner:
                    raise AlreadyOwned(f"Player {add_id} already claimed by {owner}")
                team.place(add_id, BENCH)
                claims.create(Claim(add_id, username, self.clock()))

            TeamRepository(txn, league.id).save(team)

        logger.info("%s in league %s: add=%s drop=%s", username, league_id, add_id, drop_id)
        return team

    def release_player(self, league_id: str, username: str, player_id: str) -> TeamRoster:
        """Clear the player from every slot and the bench, and drop the claim."""
        username = require(username, "username")
        player_id = require(player_id, "playerId")
        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            teams = TeamRepository(txn, league.id)
            team = teams.get(username)
            if team is None:
                raise NotFound(f"Team {username} not found in league {league_id}")
            if team.remove_player(player_id) is None:
                raise StateConflict(f"{player_id} is not on {username}'s roster")
            teams.save(team)
            ClaimRepository(txn, league.id).delete(player_id)
        logger.info("%s released %s in league %s", username, player_id, league_id)
        return team

    def move_to_starter(
        self, league_id: str, username: str, player_id: str, slot: str
    ) -> TeamRoster:
        """Bench -> *slot*. Whoever held the slot swaps onto the bench.

        Raises:
            IllegalSlot: If the player's position can't start at *slot*.
        """
        player_id = require(player_id, "playerId")
        slot = require(slot, "slot").upper()
        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            teams = TeamRepository(txn, league.id)
            team = teams.get(require(username, "username"))
            if team is None:
                raise NotFound(f"Team {username} not found in league {league_id}")
            if player_id not in team.bench:
                raise StateConflict(f"{player_id} is not on the bench")

            player = PlayerRepository(txn).get(player_id)
            position = player.position if player else None
            validator = RosterValidator(league.rules)
            if slot == BENCH or not validator.is_legal(slot, position):
                raise IllegalSlot(f"{position} cannot play {slot}")

            team.ensure_slots(league.rules.starting_slots)
            team.bench.remove(player_id)
            previous = team.roster.get(slot)
            if previous:
                team.bench.append(previous)
            team.roster[slot] = player_id
            teams.save(team)
        return team

    def move_to_bench(self, league_id: str, username: str, slot: str) -> TeamRoster:
        """Slot -> bench. An empty slot is a no-op."""
        slot = require(slot, "slot").upper()
        with self.store.transaction() as txn:
            league = load_league(txn, league_id)
            teams = TeamRepository(txn, league.id)
            team = teams.get(require(username, "username"))
            if team is None:
                raise NotFound(f"Team {username} not found in league {league_id}")
            player_id = team.roster.get(slot)
            if not player_id:
                return team
            team.roster[slot] = None
            team.bench.append(player_id)
            teams.save(team)
        return team

    # ------------------------------------------------------------------
    @staticmethod
    def _ensure_team(txn, league: League, username: str) -> TeamRoster:
        teams = TeamRepository(txn, league.id)
        team = teams.get(username)
        if team is None:
            team = TeamRoster.create(username, league.rules.starting_slots)
            teams.save(team)
        return team
