"""Shared fixtures: an in-memory store, a controllable clock and seed data."""

import pytest

from src.draft_manager.config import LeagueRules
from src.players.models import Player
from src.storage.document_store import InMemoryDocumentStore
from src.storage.repositories import PlayerRepository

START_MS = 1_700_000_000_000


class FakeClock:
    """Epoch-ms clock that only moves when told to."""

    def __init__(self, start: int = START_MS):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class RecordingSleep:
    """Stands in for time.sleep; remembers every requested delay."""

    def __init__(self):
        self.calls = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


# ------------------------------------------------------------------
# Lightweight factories - cheap to construct, no I/O
# ------------------------------------------------------------------

def _make_player(pid, position, team="TST", projection=10.0, week=1, **overrides):
    data = {
        "id": pid,
        "name": f"Player {pid}",
        "position": position,
        "team": team,
        "projections": {str(week): projection},
    }
    data.update(overrides)
    return Player(**data)


SEED_PLAYERS = [
    ("qb1", "QB", 20.0), ("qb2", "QB", 18.0),
    ("rb1", "RB", 15.0), ("rb2", "RB", 14.0), ("rb3", "RB", 9.0),
    ("wr1", "WR", 16.0), ("wr2", "WR", 13.0), ("wr3", "WR", 11.0), ("wr4", "WR", 8.0),
    ("te1", "TE", 9.0), ("te2", "TE", 6.0),
    ("k1", "K", 7.0), ("k2", "K", 6.5),
    ("def1", "DEF", 6.0), ("def2", "DEF", 5.5),
]


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def small_rules():
    """Two starters and one bench spot: three rounds."""
    return LeagueRules(starting_slots=("QB", "WR1"), bench_size=1)


@pytest.fixture
def seeded_store(store):
    """Store holding SEED_PLAYERS with week-1 projections."""
    repo = PlayerRepository(store)
    for pid, pos, proj in SEED_PLAYERS:
        repo.save(_make_player(pid, pos, projection=proj))
    return store
