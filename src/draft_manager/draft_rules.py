"""Draft rule enforcement, pick validation and the league error taxonomy."""

from typing import Optional

from src.draft_manager.draft_state import DraftState


class ValidationError(Exception):
    """Bad or missing input (missing league id, unknown position, ...)."""

    status_code = 400


class StateConflict(Exception):
    """The action is well-formed but the current state does not allow it.

    Never retried automatically; the caller should re-read state first.
    """

    status_code = 409


class NotLive(StateConflict):
    """Pick attempted while the draft is not live."""


class NotYourTurn(StateConflict):
    """Pick submitted by someone other than the user on the clock."""


class AlreadyOwned(StateConflict):
    """The player is already claimed in this league."""


class IllegalSlot(StateConflict):
    """The player's position may not start in the requested slot."""


class AddDropLocked(StateConflict):
    """Free-agent moves are locked while a draft is configured or live."""


class EntryUnpaid(StateConflict):
    """The draft cannot start until every member has paid the entry fee."""


class NotFound(ValidationError):
    """A league, team or player id that does not exist."""

    status_code = 404


def require(value, name: str) -> str:
    """Return *value* as a stripped string or raise ValidationError."""
    text = "" if value is None else str(value).strip()
    if not text:
        raise ValidationError(f"Missing {name}")
    return text


def require_username(value, name: str = "username") -> str:
    """Like require(); usernames are document ids, so "/" is refused."""
    text = require(value, name)
    if "/" in text:
        raise ValidationError(f"Invalid {name}: {text!r}")
    return text


class DraftRules:
    """Enforces turn, ownership and slot rules for a single pick."""

    def __init__(self, draft: DraftState):
        self.draft = draft

    def validate_pick(
        self,
        username: str,
        player_id: str,
        claimed_by: Optional[str],
        position: Optional[str],
    ) -> None:
        """Raise the matching StateConflict if the pick is not allowed.

        Checks run in order: draft live, turn ownership, claim, position.
        """
        if not self.draft.is_live:
            raise NotLive(f"Draft is not live (status: {self.draft.status})")

        on_clock = self.draft.current_drafter()
        if on_clock != username:
            raise NotYourTurn(f"Not {username}'s turn (on the clock: {on_clock})")

        if claimed_by:
            raise AlreadyOwned(f"Player {player_id} already claimed by {claimed_by}")

        if not position:
            raise ValidationError(f"Player {player_id} has no position defined")

