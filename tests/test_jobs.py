"""Tests for the scheduled player directory jobs."""

import pytest

from src.data_pipeline.ingestion import EspnClient, SleeperClient, UpstreamUnavailable
from src.data_pipeline.jobs import IngestionJobs, baseline_projection
from src.draft_manager.draft_rules import ValidationError
from src.players.models import Player
from src.storage.repositories import PlayerRepository
from tests.mock_http import MockResponse, RoutingSession
from tests.sample_data import (
    BUF_ROSTER,
    KC_ROSTER,
    TEAMS_PAYLOAD,
    boxscore,
    scoreboard,
    props_players,
    save_props,
    stat_entry,
    write_projection_files,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ROSTER_ROUTES = {
    "nfl/teams": MockResponse(TEAMS_PAYLOAD),
    "teams/2?enable": MockResponse(BUF_ROSTER),
    "teams/12?enable": MockResponse(KC_ROSTER),
}


def _jobs(store, routes, clock, sleep):
    session = RoutingSession(routes)
    espn = EspnClient(session=session, sleep=sleep, max_attempts=1)
    sleeper = SleeperClient(session=session, sleep=sleep, max_attempts=1)
    return IngestionJobs(store, espn=espn, sleeper=sleeper, clock=clock, sleep=sleep), session


def _save(store, *players):
    repo = PlayerRepository(store)
    for player in players:
        repo.save(player)
    return repo


# ---------------------------------------------------------------------------
# Refresh
# ---------------------------------------------------------------------------

class TestRefreshPlayers:
    def test_pulls_rosters_and_defenses(self, store, clock, sleep):
        jobs, _ = _jobs(store, ROSTER_ROUTES, clock, sleep)
        result = jobs.refresh_players()
        assert result["ok"] is True
        assert result["teams"] == 2
        assert result["received"] == 6
        assert result["created"] == 6
        assert result["errors"] == []

        repo = PlayerRepository(store)
        allen = repo.get("espn-3918298")
        assert (allen.name, allen.position, allen.team) == ("Josh Allen", "QB", "BUF")
        assert allen.updated_at == clock()
        assert allen.photo_url.endswith("/3918298.png")
        assert repo.get("espn-222").position == "K"
        assert repo.get("DEF:KC").team == "KC"

    def test_roster_failure_is_reported(self, store, clock, sleep):
        routes = dict(ROSTER_ROUTES, **{"teams/12?enable": MockResponse({}, status_code=404)})
        jobs, _ = _jobs(store, routes, clock, sleep)
        result = jobs.refresh_players()
        assert result["ok"] is True
        assert len(result["errors"]) == 1
        assert result["errors"][0]["team"] == "KC"
        assert result["received"] == 5

    def test_existing_local_player_keeps_id_and_projections(self, store, clock, sleep):
        _save(store, Player(id="allen-local", name="Josh Allen", position="QB", team="BUF",
                            projections={"1": 20.0}))
        jobs, _ = _jobs(store, ROSTER_ROUTES, clock, sleep)
        result = jobs.refresh_players()
        assert result["created"] == 5

        repo = PlayerRepository(store)
        allen = repo.get("allen-local")
        assert allen.espn_id == "3918298"
        assert allen.projections == {"1": 20.0}
        assert repo.get("espn-3918298") is None

    def test_second_run_creates_nothing(self, store, clock, sleep):
        jobs, _ = _jobs(store, ROSTER_ROUTES, clock, sleep)
        jobs.refresh_players()
        clock.advance(1000)
        again = jobs.refresh_players()
        assert again["created"] == 0
        assert len(PlayerRepository(store).list_all()) == 6

    def test_teams_unavailable(self, store, clock, sleep):
        jobs, _ = _jobs(store, {"nfl/teams": MockResponse({}, status_code=500)}, clock, sleep)
        result = jobs.refresh_players()
        assert (result["ok"], result["where"]) == (False, "teams")

    def test_no_teams_parsed(self, store, clock, sleep):
        jobs, _ = _jobs(store, {"nfl/teams": MockResponse({"sports": []})}, clock, sleep)
        assert jobs.refresh_players()["where"] == "teams-parse"

    def test_no_players_parsed(self, store, clock, sleep):
        routes = dict(ROSTER_ROUTES, **{
            "teams/2?enable": MockResponse({}),
            "teams/12?enable": MockResponse({}),
        })
        jobs, _ = _jobs(store, routes, clock, sleep)
        result = jobs.refresh_players()
        assert (result["ok"], result["where"]) == (False, "roster-parse")
        assert PlayerRepository(store).list_all() == []


# ---------------------------------------------------------------------------
# Projections and matchups
# ---------------------------------------------------------------------------

class TestSeedWeekProjections:
    def test_baseline_fills_new_week(self, seeded_store, clock, sleep):
        jobs, _ = _jobs(seeded_store, {}, clock, sleep)
        result = jobs.seed_week_projections(2)
        assert result["source"] == "baseline"
        assert (result["processed"], result["updated"], result["skipped"]) == (15, 15, 0)
        qb = PlayerRepository(seeded_store).get("qb1")
        assert qb.projections == {"1": 20.0, "2": 12.0}

    def test_existing_week_skipped_unless_overwrite(self, seeded_store, clock, sleep):
        jobs, _ = _jobs(seeded_store, {}, clock, sleep)
        assert jobs.seed_week_projections(1)["skipped"] == 15
        assert PlayerRepository(seeded_store).get("qb1").projections["1"] == 20.0

        assert jobs.seed_week_projections(1, overwrite=True)["updated"] == 15
        assert PlayerRepository(seeded_store).get("qb1").projections["1"] == 12.0

    def test_csv_with_baseline_fallback(self, store, clock, sleep, tmp_path):
        _save(
            store,
            Player(id="allen", name="Josh Allen", position="QB", team="BUF"),
            Player(id="te9", name="Nobody", position="TE", team="KC"),
        )
        jobs, _ = _jobs(store, {}, clock, sleep)
        result = jobs.seed_week_projections(3, csv_dir=write_projection_files(tmp_path))
        assert (result["source"], result["matched"]) == ("csv", 1)
        repo = PlayerRepository(store)
        assert repo.get("allen").projections == {"3": 20.0}
        assert repo.get("te9").projections == {"3": 7.0}

    @pytest.mark.parametrize("week", [0, "x", None])
    def test_invalid_week(self, store, clock, sleep, week):
        jobs, _ = _jobs(store, {}, clock, sleep)
        with pytest.raises(ValidationError):
            jobs.seed_week_projections(week)

    def test_baseline_projection_default(self):
        assert baseline_projection("QB") == 12.0
        assert baseline_projection(None) == 5.0

    def test_csv_defaults_to_raw_data_dir(self, store, clock, sleep, tmp_path, monkeypatch):
        monkeypatch.setattr("src.data_pipeline.jobs.RAW_DATA_DIR", write_projection_files(tmp_path))
        _save(store, Player(id="allen", name="Josh Allen", position="QB", team="BUF"))
        jobs, _ = _jobs(store, {}, clock, sleep)
        result = jobs.seed_week_projections(3, source="csv")
        assert (result["source"], result["matched"]) == ("csv", 1)
        assert PlayerRepository(store).get("allen").projections == {"3": 20.0}

    def test_csv_dir_without_exports(self, store, clock, sleep, tmp_path):
        _save(store, Player(id="allen", name="Josh Allen", position="QB", team="BUF"))
        jobs, _ = _jobs(store, {}, clock, sleep)
        result = jobs.seed_week_projections(3, source="csv", csv_dir=tmp_path)
        assert (result["ok"], result["where"]) == (False, "csv")
        assert PlayerRepository(store).get("allen").projections == {}

    def test_unknown_source(self, store, clock, sleep):
        jobs, _ = _jobs(store, {}, clock, sleep)
        with pytest.raises(ValidationError, match="projection source"):
            jobs.seed_week_projections(1, source="tea-leaves")


class TestSeedProjectionsFromProps:
    def _jobs(self, store, clock, sleep):
        _save(store, *props_players())
        save_props(store)
        return _jobs(store, {}, clock, sleep)[0]

    def test_matched_players_get_prop_projection(self, store, clock, sleep):
        jobs = self._jobs(store, clock, sleep)
        result = jobs.seed_week_projections(1, source="props", season=2025, books=["DK", "FD"])
        assert result == {
            "ok": True, "week": 1, "source": "props",
            "processed": 4, "updated": 2, "skipped": 2, "matched": 3,
        }
        repo = PlayerRepository(store)
        assert repo.get("allen").projections == {"1": 22.9}
        assert repo.get("kelce").projections == {"1": 14.8}
        assert repo.get("cook").projections == {"1": 9.0}

    def test_overwrite_replaces_existing_week(self, store, clock, sleep):
        jobs = self._jobs(store, clock, sleep)
        result = jobs.seed_week_projections(1, overwrite=True, source="props", season=2025)
        assert result["updated"] == 3
        assert PlayerRepository(store).get("cook").projections == {"1": 9.1}

    def test_every_book_and_season_by_default(self, store, clock, sleep):
        jobs = self._jobs(store, clock, sleep)
        jobs.seed_week_projections(1, source="props")
        # pass yds averaged over 250.5, 260.5, 400.5 and 100.5 -> 253.0
        assert PlayerRepository(store).get("allen").projections == {"1": 22.8}

    def test_no_props_for_week(self, store, clock, sleep):
        jobs = self._jobs(store, clock, sleep)
        result = jobs.seed_week_projections(9, source="props")
        assert (result["ok"], result["reason"], result["updated"]) == (True, "no-props", 0)

    def test_unprojectable_positions_skipped(self, store, clock, sleep):
        _save(store, Player(id="bass", name="Tyler Bass", position="K", team="BUF"))
        save_props(store, {"bass": {"playerId": "bass", "pos": "K", "week": 1, "anyTDOdds": 500,
                                    "recLine": 1}})
        jobs, _ = _jobs(store, {}, clock, sleep)
        result = jobs.seed_week_projections(1, source="props")
        assert (result["updated"], result["skipped"]) == (0, 1)
        assert PlayerRepository(store).get("bass").projections == {}


class TestSeedWeekMatchups:
    def _store(self, store):
        return _save(
            store,
            Player(id="allen", name="Josh Allen", position="QB", team="BUF",
                   matchups={"3": {"opp": "", "home": True}}),
            Player(id="kelce", name="Travis Kelce", position="TE", team="KC"),
            Player(id="tua", name="Tua", position="QB", team="MIA"),
        )

    def test_stamps_opponents(self, store, clock, sleep):
        repo = self._store(store)
        jobs, session = _jobs(store, {"scoreboard": MockResponse(scoreboard(("401", "BUF", "KC")))}, clock, sleep)
        result = jobs.seed_week_matchups(3, season=2025)
        assert result == {"ok": True, "week": 3, "updated": 2, "teams": 2}
        assert repo.get("allen").matchups["3"] == {"opp": "KC", "home": True}
        assert repo.get("kelce").opponent_for(3) == "BUF"
        assert repo.get("tua").matchups == {}
        assert session.get_calls[0]["kwargs"]["params"]["season"] == 2025

    @pytest.mark.parametrize("response", [
        MockResponse({"events": []}),
        MockResponse({}, status_code=404),
    ])
    def test_no_games(self, store, clock, sleep, response):
        self._store(store)
        jobs, _ = _jobs(store, {"scoreboard": response}, clock, sleep)
        assert jobs.seed_week_matchups(22)["reason"] == "no-games"

    def test_parsed_zero(self, store, clock, sleep):
        single = {"events": [{"competitions": [{"competitors": [{"team": {"abbreviation": "BUF"}}]}]}]}
        jobs, _ = _jobs(store, {"scoreboard": MockResponse(single)}, clock, sleep)
        assert jobs.seed_week_matchups(1)["reason"] == "parsed-zero"

    def test_scoreboard_unavailable(self, store, clock, sleep):
        jobs, _ = _jobs(store, {"scoreboard": MockResponse({}, status_code=500)}, clock, sleep)
        result = jobs.seed_week_matchups(1)
        assert (result["ok"], result["where"]) == (False, "scoreboard")


# ---------------------------------------------------------------------------
# Headshots, dedupe and prune
# ---------------------------------------------------------------------------

SLEEPER_CATALOG = {
    "4984": {"full_name": "Josh Allen", "team": "BUF", "position": "QB", "espn_id": 3918298},
    "9": {"full_name": "Travis Kelce", "team": "KC", "position": "TE"},
    "10": {"full_name": "Solo Name", "team": None, "position": "WR"},
}


class TestBackfillHeadshots:
    def test_match_order(self, store, clock, sleep):
        repo = _save(
            store,
            Player(id="allen", name="Josh Allen", position="QB", team="BUF"),
            Player(id="kelce", name="Travis Kelce", position="WR", team="KC"),
            Player(id="solo", name="Solo Name", position="WR", team="NYJ"),
            Player(id="pic", name="Has Photo", position="RB", team="NYJ", photo_url="https://x/p.png"),
            Player(id="ghost", name="Ghost", position="RB", team="NYJ"),
        )
        jobs, _ = _jobs(store, {"sleeper": MockResponse(SLEEPER_CATALOG)}, clock, sleep)
        result = jobs.backfill_headshots()
        assert result == {"ok": True, "examined": 5, "updated": 3, "already": 1}

        allen = repo.get("allen")
        assert allen.espn_id == "3918298"
        assert allen.sleeper_id == "4984"
        assert allen.photo_url.endswith("/3918298.png")
        assert repo.get("kelce").photo_url.endswith("/9.jpg")
        assert repo.get("solo").sleeper_id == "10"
        assert repo.get("ghost").photo_url is None

    def test_sleeper_unavailable(self, store, clock, sleep):
        jobs, _ = _jobs(store, {"sleeper": MockResponse({}, status_code=500)}, clock, sleep)
        result = jobs.backfill_headshots()
        assert (result["ok"], result["where"]) == (False, "sleeper")


class TestDedupeAndPrune:
    def test_dedupe_collapses_to_canonical_id(self, store, clock, sleep):
        repo = _save(
            store,
            Player(id="a", name="Josh Allen", position="QB", team="BUF", espn_id="42",
                   projections={"1": 10.0}, updated_at=1),
            Player(id="b", name="Josh Allen", position="QB", team="BUF", espn_id="42",
                   projections={"2": 12.0}, updated_at=2),
        )
        jobs, _ = _jobs(store, {}, clock, sleep)
        assert jobs.dedupe_players() == {"ok": True, "groups": 1, "merged": 2, "deleted": 2}
        assert [p.id for p in repo.list_all()] == ["espn-42"]
        assert repo.get("espn-42").projections == {"1": 10.0, "2": 12.0}
        assert jobs.dedupe_players()["groups"] == 0

    def test_prune_drops_non_fantasy_positions(self, store, clock, sleep):
        repo = _save(
            store,
            Player(id="qb", name="QB Guy", position="QB"),
            Player(id="ol", name="Line Man", position="OL"),
            Player(id="nopos", name="Mystery"),
        )
        jobs, _ = _jobs(store, {}, clock, sleep)
        assert jobs.prune_irrelevant_players() == {"ok": True, "checked": 3, "deleted": 2}
        assert [p.id for p in repo.list_all()] == ["qb"]


# ---------------------------------------------------------------------------
# Settlement, stats and the combined refresh
# ---------------------------------------------------------------------------

def test_settle_season_with_no_leagues(store, clock, sleep):
    jobs, _ = _jobs(store, {}, clock, sleep)
    assert jobs.settle_season() == {"ok": True, "ready": 0, "enqueued": 0}


class TestFetchWeekStats:
    def test_failed_boxscore_skipped(self, store, clock, sleep):
        routes = {
            "scoreboard": MockResponse(scoreboard(("401", "BUF", "KC"), ("402", "MIA", "NYJ"))),
            "401/boxscore": MockResponse(boxscore(
                "BUF", stat_entry("3918298", "Josh Allen", passing={"YDS": 300, "TD": 3, "INT": 1}),
            )),
            "402/boxscore": MockResponse({}, status_code=500),
        }
        jobs, session = _jobs(store, routes, clock, sleep)
        stats = jobs.fetch_week_stats(week=5)
        assert set(stats) == {"3918298", "JOSH ALLEN|BUF"}
        assert stats["3918298"]["pts"] == 22.0
        assert session.calls_to("402/boxscore") == 1

    def test_no_games(self, store, clock, sleep):
        jobs, _ = _jobs(store, {"scoreboard": MockResponse({"events": []})}, clock, sleep)
        assert jobs.fetch_week_stats(week=5) == {}

    def test_scoreboard_failure_raises(self, store, clock, sleep):
        jobs, _ = _jobs(store, {"scoreboard": MockResponse({}, status_code=500)}, clock, sleep)
        with pytest.raises(UpstreamUnavailable):
            jobs.fetch_week_stats(week=5)


def test_full_refresh(store, clock, sleep):
    _save(store, Player(id="ol", name="Line Man", position="OL", team="BUF"))
    jobs, _ = _jobs(store, ROSTER_ROUTES, clock, sleep)
    result = jobs.full_refresh()
    assert result["ok"] is True
    assert result["refresh"]["created"] == 6
    assert result["prune"] == {"ok": True, "checked": 7, "deleted": 1}
    assert result["dedupe"]["groups"] == 0
