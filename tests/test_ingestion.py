"""Tests for the provider clients and the FantasyPros CSV ingester."""

import pandas as pd
import pytest
import requests

from src.data_pipeline.config import FILE_PATTERNS
from src.data_pipeline.ingestion import (
    EspnClient,
    FantasyProsIngester,
    IngestionError,
    ProviderClient,
    SleeperClient,
    UpstreamUnavailable,
    _parse_numeric,
    scoreboard_game_ids,
    scoreboard_opponents,
)
from tests.mock_http import MockResponse, MockSession
from tests.sample_data import TEAMS_PAYLOAD, scoreboard, write_projection_files


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_ingester(tmp_path):
    """Ingester pointing at a temporary directory holding every export."""
    return FantasyProsIngester(write_projection_files(tmp_path))


def _client(cls, responses, sleep, **kwargs):
    session = MockSession(responses)
    return cls(session=session, sleep=sleep, **kwargs), session


# ---------------------------------------------------------------------------
# HTTP clients
# ---------------------------------------------------------------------------

class TestProviderClient:
    def test_decodes_json(self, sleep):
        client, session = _client(ProviderClient, [MockResponse({"a": 1})], sleep)
        assert client.get_json("https://x/y", params={"q": 1}) == {"a": 1}
        call = session.get_calls[0]
        assert call["kwargs"]["params"] == {"q": 1}
        assert "User-Agent" in call["kwargs"]["headers"]
        assert call["kwargs"]["timeout"] > 0

    def test_retries_transient_errors(self, sleep):
        client, session = _client(
            ProviderClient,
            [requests.ConnectionError("reset"), MockResponse({}, status_code=503), MockResponse({"ok": 1})],
            sleep,
            base_delay=0.1,
        )
        assert client.get_json("https://x") == {"ok": 1}
        assert len(session.get_calls) == 3
        assert sleep.calls == pytest.approx([0.1, 0.2])

    def test_gives_up_with_upstream_unavailable(self, sleep):
        client, _ = _client(ProviderClient, [MockResponse({}, status_code=500)] * 3, sleep)
        with pytest.raises(UpstreamUnavailable) as exc:
            client.get_json("https://x", label="thing")
        assert isinstance(exc.value.__cause__, requests.HTTPError)
        assert "thing" in str(exc.value)

    def test_bad_json_is_retried_then_fails(self, sleep):
        client, _ = _client(ProviderClient, [MockResponse(text="<html>")] * 2, sleep, max_attempts=2)
        with pytest.raises(UpstreamUnavailable):
            client.get_json("https://x")

    @pytest.mark.parametrize("status", [400, 401, 403, 404])
    def test_client_errors_are_not_retried(self, sleep, status):
        client, session = _client(ProviderClient, [MockResponse({}, status_code=status)], sleep)
        with pytest.raises(UpstreamUnavailable) as exc:
            client.get_json("https://x")
        assert exc.value.__cause__.response.status_code == status
        assert len(session.get_calls) == 1
        assert sleep.calls == []

    @pytest.mark.parametrize("status", [408, 429])
    def test_timeout_and_rate_limit_are_retried(self, sleep, status):
        client, session = _client(
            ProviderClient, [MockResponse({}, status_code=status), MockResponse({"ok": 1})], sleep
        )
        assert client.get_json("https://x") == {"ok": 1}
        assert len(session.get_calls) == 2


class TestEspnClient:
    def test_list_teams(self, sleep):
        client, _ = _client(EspnClient, [MockResponse(TEAMS_PAYLOAD)], sleep)
        assert client.list_teams() == [
            {"id": "2", "abbr": "BUF", "name": "Buffalo Bills"},
            {"id": "12", "abbr": "KC", "name": "Kansas City Chiefs"},
        ]

    def test_list_teams_unexpected_shape(self, sleep):
        client, _ = _client(EspnClient, [MockResponse({"sports": "nope"})], sleep)
        assert client.list_teams() == []

    def test_scoreboard_params(self, sleep):
        client, session = _client(EspnClient, [MockResponse(scoreboard(("401", "BUF", "KC")))], sleep)
        client.scoreboard(week=3, season=2025)
        assert session.get_calls[0]["kwargs"]["params"] == {"seasontype": 2, "week": 3, "season": 2025}

    def test_scoreboard_404_means_no_games(self, sleep):
        client, session = _client(EspnClient, [MockResponse({}, status_code=404)], sleep)
        assert client.scoreboard(week=22) == {"events": []}
        assert len(session.get_calls) == 1
        assert sleep.calls == []

    def test_scoreboard_500_raises(self, sleep):
        client, _ = _client(EspnClient, [MockResponse({}, status_code=500)] * 3, sleep)
        with pytest.raises(UpstreamUnavailable):
            client.scoreboard(week=1)

    def test_roster_and_boxscore_urls(self, sleep):
        client, session = _client(EspnClient, [MockResponse({}), MockResponse({})], sleep)
        client.team_roster("12")
        client.boxscore("401")
        assert "/teams/12" in session.get_calls[0]["url"]
        assert "/401/boxscore" in session.get_calls[1]["url"]


class TestSleeperClient:
    def test_players_keyed_by_id(self, sleep):
        payload = {"4984": {"full_name": "Josh Allen"}, "junk": "not a record"}
        client, _ = _client(SleeperClient, [MockResponse(payload)], sleep)
        assert client.players() == {"4984": {"full_name": "Josh Allen"}}

    def test_non_object_payload(self, sleep):
        client, _ = _client(SleeperClient, [MockResponse([1, 2, 3])], sleep)
        with pytest.raises(UpstreamUnavailable):
            client.players()


class TestScoreboardShapes:
    def test_opponents_both_directions(self):
        sb = scoreboard(("401", "buf", "KC"), ("402", "MIA", "NYJ"))
        assert scoreboard_opponents(sb) == {"BUF": "KC", "KC": "BUF", "MIA": "NYJ", "NYJ": "MIA"}

    def test_single_competitor_skipped(self):
        sb = {"events": [{"competitions": [{"competitors": [{"team": {"abbreviation": "BUF"}}]}]}]}
        assert scoreboard_opponents(sb) == {}

    def test_game_ids(self):
        assert scoreboard_game_ids(scoreboard(("401", "BUF", "KC"), ("402", "MIA", "NYJ"))) == ["401", "402"]
        assert scoreboard_game_ids({}) == []


# ---------------------------------------------------------------------------
# Projection exports
# ---------------------------------------------------------------------------

class TestParseNumeric:
    @pytest.mark.parametrize("raw,expected", [("3,904.1", 3904.1), ("12", 12.0), (7, 7.0)])
    def test_values(self, raw, expected):
        assert _parse_numeric(raw) == expected

    def test_blank_is_nan(self):
        assert pd.isna(_parse_numeric(""))
        assert pd.isna(_parse_numeric("n/a"))


class TestReadProjections:
    def test_qb(self, tmp_ingester):
        df = tmp_ingester.read("qb")
        assert list(df["Player"]) == ["Josh Allen", "Patrick Mahomes"]
        assert df.loc[1, "Pass_Yds"] == 1000.0
        assert set(df["POS"]) == {"QB"}

    def test_flex_position_letters(self, tmp_ingester):
        df = tmp_ingester.read("flex")
        assert list(df["POS"]) == ["RB", "TE"]
        assert df.loc[0, "Rush_Yds"] == 70.0
        assert df.loc[1, "Rec_Yds"] == 60.0

    def test_k_and_dst(self, tmp_ingester):
        assert tmp_ingester.read("k").loc[0, "FG"] == 2.0
        dst = tmp_ingester.read("dst")
        assert dst.loc[0, "POS"] == "DEF"
        assert dst.loc[0, "FPTS"] == 8.5

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            FantasyProsIngester(tmp_path).read("qb")

    def test_read_all(self, tmp_ingester):
        df = tmp_ingester.read_all()
        assert len(df) == 6
        assert sorted(set(df["POS"])) == ["DEF", "K", "QB", "RB", "TE"]

    def test_read_all_skips_missing_files(self, tmp_path):
        df = FantasyProsIngester(write_projection_files(tmp_path, keys=("k",))).read_all()
        assert list(df["Player"]) == ["Harrison Butker"]

    def test_read_all_empty_dir(self, tmp_path):
        with pytest.raises(IngestionError, match="No projection files"):
            FantasyProsIngester(tmp_path).read_all()

    def test_read_all_unparseable_file(self, tmp_path):
        (tmp_path / FILE_PATTERNS["k"]).write_text("Name,Team\nx,y\n", encoding="utf-8")
        with pytest.raises(IngestionError, match="k projections"):
            FantasyProsIngester(tmp_path).read_all()
