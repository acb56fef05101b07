"""Tests for round-robin schedule generation."""

from itertools import combinations

import pytest

from src.draft_manager.draft_rules import NotFound, ValidationError
from src.league.config import BYE, MAX_SCHEDULE_WEEKS
from src.league.league_manager import LeagueManager
from src.league.schedule import ensure_season_schedule, generate_round_robin
from src.storage.repositories import ScheduleRepository


def _pairs(schedule):
    return [frozenset((m["home"], m["away"])) for week in schedule for m in week["matchups"]]


class TestGenerateRoundRobin:
    def test_six_teams_each_pair_once(self):
        teams = list("abcdef")
        schedule = generate_round_robin(teams, 5)
        assert [w["week"] for w in schedule] == [1, 2, 3, 4, 5]
        pairs = _pairs(schedule)
        assert len(pairs) == 15
        assert set(pairs) == {frozenset(p) for p in combinations(teams, 2)}

    def test_everyone_plays_once_per_week(self):
        teams = list("abcdef")
        for week in generate_round_robin(teams, 5):
            seen = [t for m in week["matchups"] for t in (m["home"], m["away"])]
            assert sorted(seen) == teams

    def test_odd_count_gets_a_bye(self):
        teams = list("abcde")
        schedule = generate_round_robin(teams, 5)
        for week in schedule:
            assert len(week["matchups"]) == 2
            assert all(BYE not in (m["home"], m["away"]) for m in week["matchups"])
        assert set(_pairs(schedule)) == {frozenset(p) for p in combinations(teams, 2)}

    def test_defaults_to_one_cycle(self):
        assert len(generate_round_robin(list("abcd"))) == 3

    def test_capped_weeks(self):
        assert len(generate_round_robin(["a", "b"], 40)) == MAX_SCHEDULE_WEEKS

    def test_deterministic(self):
        assert generate_round_robin(list("abcd"), 6) == generate_round_robin(list("abcd"), 6)

    @pytest.mark.parametrize("teams", [[], ["solo"], ["a", "a"]])
    def test_too_few_teams(self, teams):
        assert generate_round_robin(teams) == []


class TestEnsureSeasonSchedule:
    def _league_with(self, store, clock, members):
        manager = LeagueManager(store, clock)
        league = manager.create_league("L", "alice")
        for username in members:
            manager.join_league(league.id, username)
        return league.id

    def test_writes_weeks_once(self, store, clock):
        league_id = self._league_with(store, clock, ["bob", "carol", "dave"])
        result = ensure_season_schedule(store, league_id, total_weeks=3)
        assert result == {"weeks_created": [1, 2, 3]}
        assert len(ScheduleRepository(store, league_id).get_week(1)) == 2

        assert ensure_season_schedule(store, league_id) == {"weeks_created": []}

    def test_recreate_replaces(self, store, clock):
        league_id = self._league_with(store, clock, ["bob"])
        ensure_season_schedule(store, league_id, total_weeks=4)
        result = ensure_season_schedule(store, league_id, total_weeks=2, recreate=True)
        assert result == {"weeks_created": [1, 2]}
        schedule = ScheduleRepository(store, league_id)
        assert schedule.get_week(2) != []
        assert schedule.get_week(3) == []

    def test_uses_league_schedule_weeks(self, store, clock):
        league_id = self._league_with(store, clock, ["bob"])
        assert len(ensure_season_schedule(store, league_id)["weeks_created"]) == 14

    def test_needs_two_members(self, store, clock):
        league_id = self._league_with(store, clock, [])
        with pytest.raises(ValidationError):
            ensure_season_schedule(store, league_id)

    def test_unknown_league(self, store):
        with pytest.raises(NotFound):
            ensure_season_schedule(store, "ghost")
