from src.draft_manager.config import BENCH, LeagueRules
from src.draft_manager.draft_rules import (
    AddDropLocked,
    AlreadyOwned,
    DraftRules,
    EntryUnpaid,
    IllegalSlot,
    NotFound,
    NotLive,
    NotYourTurn,
    StateConflict,
    ValidationError,
)
from src.draft_manager.draft_state import DraftState, Pick, TeamRoster, snake_position
from src.draft_manager.roster_validator import RosterValidator

__all__ = [
    "AddDropLocked",
    "AlreadyOwned",
    "BENCH",
    "DraftRules",
    "DraftState",
    "EntryUnpaid",
    "IllegalSlot",
    "LeagueRules",
    "NotFound",
    "NotLive",
    "NotYourTurn",
    "Pick",
    "RosterValidator",
    "StateConflict",
    "TeamRoster",
    "ValidationError",
    "snake_position",
]
