"""Draft state data models - the ``draft`` field of a league and its teams."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from src.draft_manager.config import (
    BENCH,
    DEFAULT_PICK_CLOCK_MS,
    DEFAULT_ROUNDS_TOTAL,
    DEFAULT_STARTING_SLOTS,
    DRAFT_STATUSES,
    LeagueRules,
)


def snake_position(picks_taken: int, teams_count: int) -> Tuple[int, int, int]:
    """Pointer, round and direction after *picks_taken* picks.

    Odd rounds walk the order forward (0 -> N-1), even rounds walk it
    backward (N-1 -> 0), so the last picker of a round also picks first
    in the next one.

    Returns:
        (pointer, round, direction)
    """
    n = max(1, teams_count)
    picks_taken = max(0, picks_taken)
    rnd = picks_taken // n + 1
    in_round = picks_taken % n
    if rnd % 2 == 1:
        return in_round, rnd, 1
    return n - 1 - in_round, rnd, -1


@dataclass
class Pick:
    """Represents a single draft pick."""

    pick_number: int
    round: int
    username: str
    player_id: str
    slot: str
    at: int
    auto: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pick_number": self.pick_number,
            "round": self.round,
            "username": self.username,
            "player_id": self.player_id,
            "slot": self.slot,
            "at": self.at,
            "auto": self.auto,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pick":
        return cls(
            pick_number=int(data["pick_number"]),
            round=int(data["round"]),
            username=data["username"],
            player_id=data["player_id"],
            slot=data.get("slot") or BENCH,
            at=int(data.get("at") or 0),
            auto=bool(data.get("auto", False)),
        )


@dataclass
class DraftState:
    """Snake draft progress for one league."""

    status: str = "scheduled"
    order: List[str] = field(default_factory=list)
    pointer: int = 0
    direction: int = 1
    round: int = 1
    picks_taken: int = 0
    rounds_total: int = DEFAULT_ROUNDS_TOTAL
    clock_ms: int = DEFAULT_PICK_CLOCK_MS
    deadline: Optional[int] = None
    scheduled_at: Optional[int] = None
    started_at: Optional[int] = None
    completed_at: Optional[int] = None
    picks: List[Pick] = field(default_factory=list)

    def __post_init__(self):
        if self.status not in DRAFT_STATUSES:
            raise ValueError(
                f"Invalid draft status '{self.status}'. Must be one of: {DRAFT_STATUSES}"
            )

    @classmethod
    def create_new(cls, order: Sequence[str], rules: LeagueRules) -> "DraftState":
        """A freshly configured draft at round 1, pick 1."""
        return cls(
            status="scheduled",
            order=_unique(order),
            rounds_total=rules.rounds_total(),
            clock_ms=rules.pick_clock_ms,
        )

    @property
    def teams_count(self) -> int:
        return max(1, len(self.order))

    @property
    def total_picks(self) -> int:
        return self.rounds_total * self.teams_count

    @property
    def is_live(self) -> bool:
        return self.status == "live"

    @property
    def is_complete(self) -> bool:
        return self.status == "done"

    def current_drafter(self) -> Optional[str]:
        """Username on the clock, or None when nobody is."""
        if not self.order or self.status == "done":
            return None
        return self.order[min(max(self.pointer, 0), len(self.order) - 1)]

    def is_turn_of(self, username: str) -> bool:
        return self.current_drafter() == username

    def reset(self, order: Optional[Sequence[str]], rules: LeagueRules) -> None:
        """Back to scheduled at round 1, pointer 0; *order* replaces the current one if given."""
        if order is not None:
            self.order = _unique(order)
        self.status = "scheduled"
        self.pointer = 0
        self.direction = 1
        self.round = 1
        self.picks_taken = 0
        self.rounds_total = rules.rounds_total()
        self.clock_ms = rules.pick_clock_ms
        self.deadline = None
        self.started_at = None
        self.completed_at = None
        self.picks = []

    def start(self, now_ms: int) -> None:
        self.status = "live"
        self.started_at = now_ms
        self.deadline = now_ms + self.clock_ms

    def advance(self, now_ms: int) -> None:
        """Count one pick and move the pointer along the snake."""
        self.picks_taken += 1
        pointer, rnd, direction = snake_position(self.picks_taken, self.teams_count)
        if self.picks_taken >= self.total_picks:
            self.finish(now_ms)
            # Hold on the final slot once every pick is in
            self.round = self.rounds_total
            self.pointer = min(max(pointer, 0), self.teams_count - 1)
            self.direction = direction
            return
        self.pointer = pointer
        self.round = rnd
        self.direction = direction
        self.deadline = now_ms + self.clock_ms

    def finish(self, now_ms: int) -> None:
        self.status = "done"
        self.deadline = None
        if not self.completed_at:
            self.completed_at = now_ms

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "order": list(self.order),
            "pointer": self.pointer,
            "direction": self.direction,
            "round": self.round,
            "picks_taken": self.picks_taken,
            "rounds_total": self.rounds_total,
            "clock_ms": self.clock_ms,
            "deadline": self.deadline,
            "scheduled_at": self.scheduled_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "picks": [p.to_dict() for p in self.picks],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "DraftState":
        if not data:
            return cls()
        return cls(
            status=data.get("status") or "scheduled",
            order=list(data.get("order") or []),
            pointer=int(data.get("pointer") or 0),
            direction=-1 if data.get("direction") == -1 else 1,
            round=int(data.get("round") or 1),
            picks_taken=int(data.get("picks_taken") or 0),
            rounds_total=int(data.get("rounds_total") or DEFAULT_ROUNDS_TOTAL),
            clock_ms=int(data.get("clock_ms") or DEFAULT_PICK_CLOCK_MS),
            deadline=data.get("deadline"),
            scheduled_at=data.get("scheduled_at"),
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
            picks=[Pick.from_dict(p) for p in data.get("picks") or []],
        )


@dataclass
class TeamRoster:
    """One user's fixed starting slots plus a bench list."""

    owner: str
    name: str = ""
    roster: Dict[str, Optional[str]] = field(default_factory=dict)
    bench: List[str] = field(default_factory=list)

    @classmethod
    def create(
        cls, owner: str, slots: Sequence[str] = DEFAULT_STARTING_SLOTS, name: Optional[str] = None
    ) -> "TeamRoster":
        return cls(owner=owner, name=name or owner, roster={s: None for s in slots})

    def ensure_slots(self, slots: Sequence[str]) -> None:
        for slot in slots:
            self.roster.setdefault(slot, None)

    def player_ids(self) -> List[str]:
        starters = [pid for pid in self.roster.values() if pid]
        return starters + list(self.bench)

    def starters(self) -> Dict[str, str]:
        return {slot: pid for slot, pid in self.roster.items() if pid}

    def holds(self, player_id: str) -> bool:
        return self.slot_of(player_id) is not None

    def slot_of(self, player_id: str) -> Optional[str]:
        """The starting slot holding *player_id*, BENCH, or None."""
        for slot, pid in self.roster.items():
            if pid == player_id:
                return slot
        if player_id in self.bench:
            return BENCH
        return None

    def is_open(self, slot: str) -> bool:
        return slot in self.roster and not self.roster[slot]

    def place(self, player_id: str, slot: str) -> None:
        if slot == BENCH:
            self.bench.append(player_id)
            return
        if self.roster.get(slot):
            raise ValueError(f"Slot {slot} already holds {self.roster[slot]}")
        self.roster[slot] = player_id

    def remove_player(self, player_id: str) -> Optional[str]:
        """Remove *player_id* wherever it sits. Returns the slot it left."""
        slot = self.slot_of(player_id)
        if slot == BENCH:
            self.bench.remove(player_id)
        elif slot is not None:
            self.roster[slot] = None
        return slot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "owner": self.owner,
            "name": self.name,
            "roster": dict(self.roster),
            "bench": list(self.bench),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], owner: Optional[str] = None) -> "TeamRoster":
        return cls(
            owner=owner or data.get("owner") or "",
            name=data.get("name") or owner or data.get("owner") or "",
            roster={k: (v or None) for k, v in (data.get("roster") or {}).items()},
            bench=[pid for pid in data.get("bench") or [] if pid],
        )


def _unique(names: Sequence[str]) -> List[str]:
    seen = set()
    out = []
    for name in names:
        name = str(name).strip()
        if name and name not in seen:
            seen.add(name)
            out.append(name)
    return out
