import re
from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple

# Starters: QB, WR1, WR2, RB1, RB2, TE, FLEX, K, DEF
DEFAULT_STARTING_SLOTS = ("QB", "WR1", "WR2", "RB1", "RB2", "TE", "FLEX", "K", "DEF")
BENCH = "BENCH"

DEFAULT_BENCH_SIZE = 3
DEFAULT_PICK_CLOCK_MS = 5000
DEFAULT_RAKE_BPS = 200
DEFAULT_SEASON_WEEKS = 18
DEFAULT_SCHEDULE_WEEKS = 14
DEFAULT_WINNERS_COUNT = 1
DEFAULT_ROUNDS_TOTAL = len(DEFAULT_STARTING_SLOTS) + DEFAULT_BENCH_SIZE

FLEX_ELIGIBLE_POSITIONS = frozenset({"RB", "WR", "TE"})

# Slot -> positions allowed to start there
SLOT_ELIGIBILITY: Dict[str, FrozenSet[str]] = {
    "QB": frozenset({"QB"}),
    "RB1": frozenset({"RB"}),
    "RB2": frozenset({"RB"}),
    "WR1": frozenset({"WR"}),
    "WR2": frozenset({"WR"}),
    "TE": frozenset({"TE"}),
    "FLEX": FLEX_ELIGIBLE_POSITIONS,
    "K": frozenset({"K"}),
    "DEF": frozenset({"DEF"}),
}

DRAFT_STATUSES = ("scheduled", "live", "done")


def slot_positions(slot: str) -> FrozenSet[str]:
    """Positions eligible for *slot*; unknown slots like "WR3" fall back to their prefix."""
    if slot in SLOT_ELIGIBILITY:
        return SLOT_ELIGIBILITY[slot]
    return frozenset({re.sub(r"\d+$", "", slot)})


@dataclass(frozen=True)
class LeagueRules:
    """Per-league constants, fixed when the league is created."""

    starting_slots: Tuple[str, ...] = DEFAULT_STARTING_SLOTS
    bench_size: int = DEFAULT_BENCH_SIZE
    pick_clock_ms: int = DEFAULT_PICK_CLOCK_MS
    rake_bps: int = DEFAULT_RAKE_BPS
    season_weeks: int = DEFAULT_SEASON_WEEKS
    settlement_week: int = DEFAULT_SEASON_WEEKS
    schedule_weeks: int = DEFAULT_SCHEDULE_WEEKS
    winners_count: int = DEFAULT_WINNERS_COUNT

    def rounds_total(self) -> int:
        """One round per starting slot plus one per bench spot."""
        if not self.starting_slots:
            raise ValueError("starting_slots cannot be empty")
        return len(self.starting_slots) + self.bench_size

    def to_dict(self) -> Dict:
        return {
            "starting_slots": list(self.starting_slots),
            "bench_size": self.bench_size,
            "pick_clock_ms": self.pick_clock_ms,
            "rake_bps": self.rake_bps,
            "season_weeks": self.season_weeks,
            "settlement_week": self.settlement_week,
            "schedule_weeks": self.schedule_weeks,
            "winners_count": self.winners_count,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "LeagueRules":
        if not data:
            return cls()
        defaults = cls()
        return cls(
            starting_slots=tuple(data.get("starting_slots") or defaults.starting_slots),
            bench_size=int(data.get("bench_size", defaults.bench_size)),
            pick_clock_ms=int(data.get("pick_clock_ms", defaults.pick_clock_ms)),
            rake_bps=int(data.get("rake_bps", defaults.rake_bps)),
            season_weeks=int(data.get("season_weeks", defaults.season_weeks)),
            settlement_week=int(data.get("settlement_week", defaults.settlement_week)),
            schedule_weeks=int(data.get("schedule_weeks", defaults.schedule_weeks)),
            winners_count=int(data.get("winners_count", defaults.winners_count)),
        )
