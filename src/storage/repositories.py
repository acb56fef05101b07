"""Per-entity repositories over a DocumentStore or an open Transaction.

Document layout::

    players/{player_id}
    leagues/{league_id}
    leagues/{league_id}/members/{username}
    leagues/{league_id}/teams/{username}
    leagues/{league_id}/claims/{player_id}
    leagues/{league_id}/schedule/week-{n}
    props/{prop_id}

Every repository takes the same ``db`` handle, so code written against a
repository runs unchanged inside ``store.transaction()``.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

from src.draft_manager.draft_state import TeamRoster
from src.league.models import League
from src.players.models import Player
from src.storage.document_store import DocumentStore, Transaction

logger = logging.getLogger(__name__)

Db = Union[DocumentStore, Transaction]


def league_path(league_id: str) -> str:
    return f"leagues/{league_id}"


@dataclass
class Claim:
    """Which team owns a player within one league."""

    player_id: str
    claimed_by: str
    at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"claimed_by": self.claimed_by, "at": self.at}


class PlayerRepository:
    COLLECTION = "players"

    def __init__(self, db: Db):
        self.db = db

    @classmethod
    def path(cls, player_id: str) -> str:
        return f"{cls.COLLECTION}/{player_id}"

    def get(self, player_id: str) -> Optional[Player]:
        data = self.db.get(self.path(player_id))
        return Player.from_dict(data, doc_id=player_id) if data is not None else None

    def list_all(self) -> List[Player]:
        return [Player.from_dict(data, doc_id=pid) for pid, data in self.db.list(self.COLLECTION)]

    def save(self, player: Player, merge: bool = False) -> None:
        self.db.set(self.path(player.id), player.to_dict(), merge=merge)

    def delete(self, player_id: str) -> None:
        self.db.delete(self.path(player_id))


class LeagueRepository:
    COLLECTION = "leagues"

    def __init__(self, db: Db):
        self.db = db

    def get(self, league_id: str) -> Optional[League]:
        data = self.db.get(league_path(league_id))
        return League.from_dict(data, doc_id=league_id) if data is not None else None

    def list_all(self) -> List[League]:
        return [League.from_dict(data, doc_id=lid) for lid, data in self.db.list(self.COLLECTION)]

    def with_draft_status(self, status: str) -> List[League]:
        """Store-only; transactions don't support queries."""
        return [
            League.from_dict(data, doc_id=lid)
            for lid, data in self.db.query(self.COLLECTION, "draft.status", "==", status)
        ]

    def save(self, league: League) -> None:
        self.db.set(league_path(league.id), league.to_dict())

    # -- members ------------------------------------------------------------
    def add_member(self, league_id: str, username: str, joined_at: int = 0) -> None:
        self.db.set(
            f"{league_path(league_id)}/members/{username}",
            {"username": username, "joined_at": joined_at},
            merge=True,
        )

    def is_member(self, league_id: str, username: str) -> bool:
        return self.db.exists(f"{league_path(league_id)}/members/{username}")

    def list_members(self, league_id: str) -> List[str]:
        """Usernames in join order."""
        docs = self.db.list(f"{league_path(league_id)}/members")
        docs.sort(key=lambda pair: (pair[1].get("joined_at") or 0, pair[0]))
        return [doc_id for doc_id, _ in docs]


class TeamRepository:
    def __init__(self, db: Db, league_id: str):
        self.db = db
        self.league_id = league_id

    def path(self, username: str) -> str:
        return f"{league_path(self.league_id)}/teams/{username}"

    def get(self, username: str) -> Optional[TeamRoster]:
        data = self.db.get(self.path(username))
        return TeamRoster.from_dict(data, owner=username) if data is not None else None

    def get_or_create(self, username: str, slots: Sequence[str]) -> TeamRoster:
        team = self.get(username)
        if team is None:
            team = TeamRoster.create(username, slots)
        team.ensure_slots(slots)
        return team

    def list_all(self) -> List[TeamRoster]:
        return [
            TeamRoster.from_dict(data, owner=username)
            for username, data in self.db.list(f"{league_path(self.league_id)}/teams")
        ]

    def save(self, team: TeamRoster) -> None:
        self.db.set(self.path(team.owner), team.to_dict())


class ClaimRepository:
    def __init__(self, db: Db, league_id: str):
        self.db = db
        self.league_id = league_id

    def path(self, player_id: str) -> str:
        return f"{league_path(self.league_id)}/claims/{player_id}"

    def get(self, player_id: str) -> Optional[Claim]:
        data = self.db.get(self.path(player_id))
        if data is None:
            return None
        return Claim(player_id, data.get("claimed_by") or "", int(data.get("at") or 0))

    def owner_of(self, player_id: str) -> Optional[str]:
        claim = self.get(player_id)
        return claim.claimed_by if claim else None

    def create(self, claim: Claim) -> None:
        self.db.set(self.path(claim.player_id), claim.to_dict())

    def delete(self, player_id: str) -> None:
        self.db.delete(self.path(player_id))

    def claimed_ids(self) -> Dict[str, str]:
        """player_id -> username for every claim in the league."""
        return {
            pid: data.get("claimed_by") or ""
            for pid, data in self.db.list(f"{league_path(self.league_id)}/claims")
        }


class ScheduleRepository:
    def __init__(self, db: Db, league_id: str):
        self.db = db
        self.league_id = league_id

    def collection(self) -> str:
        return f"{league_path(self.league_id)}/schedule"

    def path(self, week: int) -> str:
        return f"{self.collection()}/week-{int(week)}"

    def has_schedule(self) -> bool:
        return len(self.db.list(self.collection())) > 0

    def get_week(self, week: int) -> List[Dict[str, str]]:
        data = self.db.get(self.path(week))
        return list((data or {}).get("matchups") or [])

    def save_week(self, week: int, matchups: List[Dict[str, str]]) -> None:
        self.db.set(self.path(week), {"week": int(week), "matchups": matchups})

    def clear(self) -> int:
        removed = 0
        for doc_id, _ in self.db.list(self.collection()):
            self.db.delete(f"{self.collection()}/{doc_id}")
            removed += 1
        return removed


class PropRepository:
    """Sportsbook prop lines, one document per player, week and book."""

    COLLECTION = "props"

    def __init__(self, db: DocumentStore):
        self.db = db

    @classmethod
    def path(cls, prop_id: str) -> str:
        return f"{cls.COLLECTION}/{prop_id}"

    def save(self, prop_id: str, data: Dict[str, Any]) -> None:
        self.db.set(self.path(prop_id), data)

    def for_week(self, week: int, season: Optional[int] = None) -> List[Dict[str, Any]]:
        """Store-only, like LeagueRepository.with_draft_status."""
        rows = [data for _, data in self.db.query(self.COLLECTION, "week", "==", int(week))]
        if season is not None:
            rows = [row for row in rows if row.get("season") == int(season)]
        return rows
