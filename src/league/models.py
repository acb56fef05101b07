"""League aggregate: settings, standings, entry fee, treasury and draft."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import uuid

from src.draft_manager.config import LeagueRules
from src.draft_manager.draft_state import DraftState

PAYOUT_KINDS = ("entry", "season", "payout")
PAYOUT_STATUSES = ("pending", "sent")


@dataclass
class Standing:
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points_for: float = 0.0
    points_against: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "wins": self.wins,
            "losses": self.losses,
            "ties": self.ties,
            "points_for": self.points_for,
            "points_against": self.points_against,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Standing":
        data = data or {}
        return cls(
            wins=int(data.get("wins") or 0),
            losses=int(data.get("losses") or 0),
            ties=int(data.get("ties") or 0),
            points_for=float(data.get("points_for") or 0),
            points_against=float(data.get("points_against") or 0),
        )


@dataclass
class LeagueSettings:
    current_week: int = 1
    lock_add_during_draft: bool = False
    season_ended: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_week": self.current_week,
            "lock_add_during_draft": self.lock_add_during_draft,
            "season_ended": self.season_ended,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LeagueSettings":
        data = data or {}
        return cls(
            current_week=int(data.get("current_week") or 1),
            lock_add_during_draft=bool(data.get("lock_add_during_draft", False)),
            season_ended=bool(data.get("season_ended", False)),
        )


@dataclass
class EntrySettings:
    """Entry fee configuration and who has paid."""

    enabled: bool = False
    amount_pi: float = 0.0
    rake_bps: int = 0
    paid: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def is_paid(self, username: str) -> bool:
        return username in self.paid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "amount_pi": self.amount_pi,
            "rake_bps": self.rake_bps,
            "paid": {k: dict(v) for k, v in self.paid.items()},
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EntrySettings":
        data = data or {}
        return cls(
            enabled=bool(data.get("enabled", False)),
            amount_pi=float(data.get("amount_pi") or 0),
            rake_bps=int(data.get("rake_bps") or 0),
            paid={k: dict(v or {}) for k, v in (data.get("paid") or {}).items()},
        )


@dataclass
class Payout:
    """A treasury movement; queued payouts go pending -> sent exactly once."""

    id: str
    kind: str
    username: str
    amount_pi: float
    status: str = "pending"
    tx_id: Optional[str] = None
    created_at: int = 0
    sent_at: Optional[int] = None

    def __post_init__(self):
        if self.kind not in PAYOUT_KINDS:
            raise ValueError(f"Invalid payout kind '{self.kind}'. Must be one of: {PAYOUT_KINDS}")
        if self.status not in PAYOUT_STATUSES:
            raise ValueError(
                f"Invalid payout status '{self.status}'. Must be one of: {PAYOUT_STATUSES}"
            )

    @classmethod
    def create(cls, kind: str, username: str, amount_pi: float, now_ms: int, **kwargs) -> "Payout":
        return cls(
            id=uuid.uuid4().hex[:12],
            kind=kind,
            username=username,
            amount_pi=amount_pi,
            created_at=now_ms,
            **kwargs,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "username": self.username,
            "amount_pi": self.amount_pi,
            "status": self.status,
            "tx_id": self.tx_id,
            "created_at": self.created_at,
            "sent_at": self.sent_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Payout":
        return cls(
            id=str(data.get("id") or ""),
            kind=data.get("kind") or "season",
            username=data.get("username") or "",
            amount_pi=float(data.get("amount_pi") or 0),
            status=data.get("status") or "pending",
            tx_id=data.get("tx_id"),
            created_at=int(data.get("created_at") or 0),
            sent_at=data.get("sent_at"),
        )


@dataclass
class Treasury:
    pool_pi: float = 0.0
    rake_pi: float = 0.0
    txs: List[Dict[str, Any]] = field(default_factory=list)
    pending: List[Payout] = field(default_factory=list)
    sent: List[Payout] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pool_pi": self.pool_pi,
            "rake_pi": self.rake_pi,
            "txs": [dict(t) for t in self.txs],
            "payouts": {
                "pending": [p.to_dict() for p in self.pending],
                "sent": [p.to_dict() for p in self.sent],
            },
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Treasury":
        data = data or {}
        payouts = data.get("payouts") or {}
        return cls(
            pool_pi=float(data.get("pool_pi") or 0),
            rake_pi=float(data.get("rake_pi") or 0),
            txs=[dict(t) for t in data.get("txs") or []],
            pending=[Payout.from_dict(p) for p in payouts.get("pending") or []],
            sent=[Payout.from_dict(p) for p in payouts.get("sent") or []],
        )


@dataclass
class League:
    """One fantasy competition. Members and teams live in subcollections."""

    id: str
    name: str
    owner: str
    rules: LeagueRules = field(default_factory=LeagueRules)
    settings: LeagueSettings = field(default_factory=LeagueSettings)
    entry: EntrySettings = field(default_factory=EntrySettings)
    treasury: Treasury = field(default_factory=Treasury)
    standings: Dict[str, Standing] = field(default_factory=dict)
    draft: DraftState = field(default_factory=DraftState)
    scored_weeks: List[int] = field(default_factory=list)
    created_at: int = 0

    @classmethod
    def create_new(
        cls, name: str, owner: str, rules: Optional[LeagueRules] = None, now_ms: int = 0
    ) -> "League":
        """Factory method for a new league owned (and joined) by *owner*."""
        rules = rules or LeagueRules()
        return cls(
            id=uuid.uuid4().hex[:20],
            name=name,
            owner=owner,
            rules=rules,
            standings={owner: Standing()},
            draft=DraftState.create_new([owner], rules),
            created_at=now_ms,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "owner": self.owner,
            "rules": self.rules.to_dict(),
            "settings": self.settings.to_dict(),
            "entry": self.entry.to_dict(),
            "treasury": self.treasury.to_dict(),
            "standings": {k: v.to_dict() for k, v in self.standings.items()},
            "draft": self.draft.to_dict(),
            "scored_weeks": list(self.scored_weeks),
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> "League":
        return cls(
            id=doc_id or str(data.get("id") or ""),
            name=data.get("name") or "",
            owner=data.get("owner") or "",
            rules=LeagueRules.from_dict(data.get("rules") or {}),
            settings=LeagueSettings.from_dict(data.get("settings")),
            entry=EntrySettings.from_dict(data.get("entry")),
            treasury=Treasury.from_dict(data.get("treasury")),
            standings={
                k: Standing.from_dict(v) for k, v in (data.get("standings") or {}).items()
            },
            draft=DraftState.from_dict(data.get("draft")),
            scored_weeks=[int(w) for w in data.get("scored_weeks") or []],
            created_at=int(data.get("created_at") or 0),
        )
