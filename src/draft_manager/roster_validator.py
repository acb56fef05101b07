"""Roster validation and slot assignment logic."""

from typing import Dict, List, Optional

from src.draft_manager.config import (
    BENCH,
    FLEX_ELIGIBLE_POSITIONS,
    LeagueRules,
    slot_positions,
)
from src.draft_manager.draft_rules import IllegalSlot
from src.draft_manager.draft_state import TeamRoster
from src.players.cleaning import normalize_position


class RosterValidator:
    """Validates slot legality and picks slots for new players."""

    FLEX_SLOT = "FLEX"

    def __init__(self, rules: LeagueRules):
        self.rules = rules

    def is_legal(self, slot: str, position: Optional[str]) -> bool:
        """Whether *position* may occupy *slot*. The bench takes anyone."""
        if slot == BENCH:
            return True
        if slot not in self.rules.starting_slots:
            return False
        return normalize_position(position) in slot_positions(slot)

    def determine_roster_slot(
        self, team: TeamRoster, position: str, slot: Optional[str] = None
    ) -> str:
        """
        Determine which roster slot a new player should fill.

        With an explicit *slot* the position must be legal there; an occupied
        slot sends the player to the bench instead. Without one the priority
        is: first open dedicated slot -> FLEX (if eligible) -> BENCH.

        Raises:
            IllegalSlot: If an explicit slot does not accept the position.
        """
        position = normalize_position(position)
        team.ensure_slots(self.rules.starting_slots)

        if slot:
            slot = slot.strip().upper()
            if not self.is_legal(slot, position):
                raise IllegalSlot(f"{position} cannot play {slot}")
            if slot == BENCH or team.is_open(slot):
                return slot
            return BENCH

        for candidate in self.dedicated_slots(position):
            if team.is_open(candidate):
                return candidate

        if position in FLEX_ELIGIBLE_POSITIONS and team.is_open(self.FLEX_SLOT):
            if self.FLEX_SLOT in self.rules.starting_slots:
                return self.FLEX_SLOT

        return BENCH

    def dedicated_slots(self, position: Optional[str]) -> List[str]:
        """Starting slots reserved for *position* alone, in roster order."""
        return [
            s for s in self.rules.starting_slots
            if s != self.FLEX_SLOT and slot_positions(s) == frozenset({position})
        ]

    def get_roster_summary(self, team: TeamRoster) -> Dict[str, Dict]:
        """Filled/open status of every starting slot plus the bench."""
        summary = {}
        for slot in self.rules.starting_slots:
            summary[slot] = {
                "player_id": team.roster.get(slot),
                "open": team.is_open(slot) or slot not in team.roster,
            }
        summary[BENCH] = {
            "filled": len(team.bench),
            "size": self.rules.bench_size,
            "remaining": max(0, self.rules.bench_size - len(team.bench)),
        }
        return summary
