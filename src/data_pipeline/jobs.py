"""Scheduled ingestion jobs over the player directory.

Every job returns a JSON-friendly summary dict with an ``ok`` flag.
Upstream failures degrade to partial (or no) work and never delete good
data; store write failures surface as PersistenceError.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from src.clock import Clock, now_ms
from src.data_pipeline.config import (
    ALLOWED_POSITIONS,
    BASELINE_PROJECTIONS,
    DEFAULT_BASELINE_PROJECTION,
    FETCH_WINDOW,
    PROJECTION_SOURCES,
    RAW_DATA_DIR,
    STORE_MAX_ATTEMPTS,
    WRITE_CHUNK_SIZE,
    WRITE_PAUSE_SECONDS,
)
from src.data_pipeline.ingestion import (
    EspnClient,
    FantasyProsIngester,
    IngestionError,
    SleeperClient,
    UpstreamUnavailable,
    scoreboard_game_ids,
    scoreboard_opponents,
)
from src.data_pipeline.props import (
    ANY_TD_BY_POSITION,
    PlayerLookup,
    group_props,
    merge_props,
    project_from_props,
)
from src.data_pipeline.transformation import (
    defense_player,
    projections_by_player,
    roster_records,
    week_stats_from_boxscores,
)
from src.draft_manager.draft_rules import ValidationError
from src.league.treasury import TreasuryManager
from src.players.cleaning import (
    espn_headshot_url,
    extract_espn_id,
    extract_name,
    extract_position,
    extract_team,
    sleeper_headshot_url,
)
from src.players.identity import identity_key, merge_players, plan_dedupe, resolve_records
from src.players.models import Player
from src.storage.bulk_writer import BulkWriter
from src.storage.document_store import DocumentStore
from src.storage.repositories import PlayerRepository, PropRepository

logger = logging.getLogger(__name__)


def baseline_projection(position: Optional[str]) -> float:
    return float(BASELINE_PROJECTIONS.get(position or "", DEFAULT_BASELINE_PROJECTION))


def _check_week(week) -> int:
    try:
        week = int(week)
    except (TypeError, ValueError):
        raise ValidationError(f"week is required (1..18), got {week!r}") from None
    if week < 1:
        raise ValidationError(f"week is required (1..18), got {week}")
    return week


def _name_team_pos(name, team, pos) -> str:
    return "{}|{}|{}".format((name or "").lower(), (team or "").lower(), (pos or "").lower())


class IngestionJobs:
    """Player directory maintenance against ESPN, Sleeper and CSV exports."""

    def __init__(
        self,
        store: DocumentStore,
        espn: Optional[EspnClient] = None,
        sleeper: Optional[SleeperClient] = None,
        clock: Optional[Clock] = None,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.store = store
        self.espn = espn or EspnClient(sleep=sleep)
        self.sleeper = sleeper or SleeperClient(sleep=sleep)
        self.clock = clock or now_ms
        self.sleep = sleep

    def _writer(self) -> BulkWriter:
        return BulkWriter(
            self.store,
            chunk_size=WRITE_CHUNK_SIZE,
            pause_seconds=WRITE_PAUSE_SECONDS,
            max_attempts=STORE_MAX_ATTEMPTS,
            sleep=self.sleep,
        )

    def _players(self) -> List[Player]:
        return PlayerRepository(self.store).list_all()

    # ------------------------------------------------------------------
    # refresh
    # ------------------------------------------------------------------
    def refresh_players(self) -> Dict[str, Any]:
        """Pull every NFL roster from ESPN and merge it into the directory.

        Rosters that fail to load are reported in ``errors`` and skipped;
        existing projections and matchups always survive the merge.
        """
        now = self.clock()
        try:
            teams = self.espn.list_teams()
        except UpstreamUnavailable as e:
            logger.warning("ESPN teams unavailable: %s", e)
            return {"ok": False, "where": "teams", "error": str(e)}
        if not teams:
            return {"ok": False, "where": "teams-parse", "error": "no teams found"}

        records = []
        errors = []
        with ThreadPoolExecutor(max_workers=FETCH_WINDOW) as pool:
            futures = [pool.submit(self.espn.team_roster, team["id"]) for team in teams]
            for team, future in zip(teams, futures):
                try:
                    records.extend(roster_records(future.result(), team, fetched_at=now))
                except UpstreamUnavailable as e:
                    logger.warning("Roster for %s unavailable: %s", team.get("abbr"), e)
                    errors.append({"team": team.get("abbr"), "error": str(e)})

        incoming = list(resolve_records(records).values())
        incoming.extend(defense_player(team["abbr"], now) for team in teams if team.get("abbr"))
        if not records:
            return {"ok": False, "where": "roster-parse", "error": "no players parsed", "errors": errors}

        existing = self._players()
        by_key = {identity_key(p): p for p in existing}
        by_ntp = {
            _name_team_pos(p.name, p.team, p.position): p for p in existing if not p.espn_id
        }

        writer = self._writer()
        created = 0
        for player in incoming:
            current = by_key.get(identity_key(player)) or by_ntp.get(
                _name_team_pos(player.name, player.team, player.position)
            )
            if current is None:
                merged = player
                created += 1
            else:
                merged = merge_players([current, player], keep_id=current.id)
            writer.set(PlayerRepository.path(merged.id), merged.to_dict(), merge=True)
        written = writer.close()

        logger.info(
            "Refreshed %d players from %d teams (%d new, %d roster errors)",
            len(incoming), len(teams), created, len(errors),
        )
        return {
            "ok": True,
            "teams": len(teams),
            "received": len(incoming),
            "created": created,
            "written": written,
            "errors": errors,
        }

    # ------------------------------------------------------------------
    # projections
    # ------------------------------------------------------------------
    def seed_week_projections(
        self,
        week,
        overwrite: bool = False,
        source: Optional[str] = None,
        csv_dir: Optional[Path] = None,
        season: Optional[int] = None,
        books: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """Write projections for *week*. Weeks that already have a value are
        skipped unless *overwrite*.

        Sources:
            baseline: every player gets the position baseline.
            csv: FantasyPros exports in *csv_dir* (RAW_DATA_DIR by default),
                rescored with the league weights; unmatched players get
                the baseline.
            props: sportsbook lines from the ``props`` collection for
                *week* (and *season*, *books* if given); only matched
                players are written.

        With no *source*, csv is used when *csv_dir* is given.
        """
        week = _check_week(week)
        source = (source or ("csv" if csv_dir is not None else "baseline")).strip().lower()
        if source not in PROJECTION_SOURCES:
            raise ValidationError(
                f"Unknown projection source '{source}'. Must be one of: {', '.join(PROJECTION_SOURCES)}"
            )
        if source == "props":
            return self._seed_from_props(week, overwrite, season, books)

        players = self._players()
        projected: Dict[str, float] = {}
        if source == "csv":
            data_dir = Path(csv_dir) if csv_dir is not None else RAW_DATA_DIR
            try:
                frame = FantasyProsIngester(data_dir).read_all()
            except IngestionError as e:
                logger.warning("Week %d projections: %s", week, e)
                return {"ok": False, "where": "csv", "error": str(e), "source": source}
            projected = projections_by_player(frame, players)

        writer = self._writer()
        key = str(week)
        updated = skipped = 0
        for player in players:
            if not overwrite and key in player.projections:
                skipped += 1
                continue
            value = projected.get(player.id, baseline_projection(player.position))
            writer.update(PlayerRepository.path(player.id), {f"projections.{key}": round(value, 1)})
            updated += 1
        writer.close()

        logger.info("Week %d %s projections: %d updated, %d skipped", week, source, updated, skipped)
        return {
            "ok": True,
            "week": week,
            "processed": len(players),
            "updated": updated,
            "skipped": skipped,
            "source": source,
            "matched": len(projected),
        }

    def _seed_from_props(
        self, week: int, overwrite: bool, season: Optional[int], books: Optional[Sequence[str]]
    ) -> Dict[str, Any]:
        summary: Dict[str, Any] = {"ok": True, "week": week, "source": "props"}
        groups = group_props(PropRepository(self.store).for_week(week, season), books)
        if not groups:
            return {**summary, "reason": "no-props", "processed": 0, "updated": 0, "skipped": 0, "matched": 0}

        lookup = PlayerLookup(self._players())
        writer = self._writer()
        key = str(week)
        updated = skipped = matched = 0
        for rows in groups.values():
            merged = merge_props(rows)
            position = merged["pos"]
            points = project_from_props(position, merged) if position in ANY_TD_BY_POSITION else 0.0
            player = lookup.find(rows[0]) if points > 0 else None
            if player is None:
                skipped += 1
                continue
            matched += 1
            if not overwrite and key in player.projections:
                skipped += 1
                continue
            writer.update(PlayerRepository.path(player.id), {f"projections.{key}": points})
            updated += 1
        writer.close()

        logger.info(
            "Week %d props projections: %d groups, %d updated, %d skipped",
            week, len(groups), updated, skipped,
        )
        return {**summary, "processed": len(groups), "updated": updated, "skipped": skipped, "matched": matched}

    # ------------------------------------------------------------------
    # matchups
    # ------------------------------------------------------------------
    def seed_week_matchups(self, week, season: Optional[int] = None) -> Dict[str, Any]:
        """Stamp ``matchups[week].opp`` on every player whose team plays."""
        week = _check_week(week)
        try:
            scoreboard = self.espn.scoreboard(week, season)
        except UpstreamUnavailable as e:
            logger.warning("Scoreboard unavailable for week %d: %s", week, e)
            return {"ok": False, "where": "scoreboard", "error": str(e)}

        if not scoreboard.get("events"):
            return {"ok": True, "reason": "no-games", "updated": 0, "teams": 0}
        opponents = scoreboard_opponents(scoreboard)
        if not opponents:
            return {"ok": True, "reason": "parsed-zero", "updated": 0, "teams": 0}

        writer = self._writer()
        key = str(week)
        updated = 0
        for player in self._players():
            opp = opponents.get((player.team or "").upper())
            if not opp:
                continue
            entry = dict(player.matchups.get(key) or {})
            entry["opp"] = opp
            writer.update(PlayerRepository.path(player.id), {f"matchups.{key}": entry})
            updated += 1
        writer.close()

        logger.info("Week %d matchups: %d players across %d teams", week, updated, len(opponents))
        return {"ok": True, "week": week, "updated": updated, "teams": len(opponents)}

    # ------------------------------------------------------------------
    # headshots
    # ------------------------------------------------------------------
    def backfill_headshots(self) -> Dict[str, Any]:
        """Fill missing photos (and ESPN ids) from the Sleeper catalog.

        Match order: name|team|position, then name|team, then name alone.
        """
        try:
            catalog = self.sleeper.players()
        except UpstreamUnavailable as e:
            logger.warning("Sleeper catalog unavailable: %s", e)
            return {"ok": False, "where": "sleeper", "error": str(e)}

        exact: Dict[str, Dict[str, Any]] = {}
        by_name_team: Dict[str, Dict[str, Any]] = {}
        by_name: Dict[str, Dict[str, Any]] = {}
        for sleeper_id, row in catalog.items():
            name = (extract_name(row) or "").lower()
            if not name:
                continue
            team = (extract_team(row) or "").lower()
            entry = dict(row, player_id=sleeper_id)
            exact.setdefault(_name_team_pos(name, team, extract_position(row)), entry)
            by_name_team.setdefault(f"{name}|{team}", entry)
            by_name.setdefault(name, entry)

        writer = self._writer()
        now = self.clock()
        examined = updated = already = 0
        for player in self._players():
            examined += 1
            if player.photo_url:
                already += 1
                continue
            name = (player.name or "").lower()
            team = (player.team or "").lower()
            match = (
                exact.get(_name_team_pos(name, team, player.position))
                or by_name_team.get(f"{name}|{team}")
                or by_name.get(name)
            )
            if match is None:
                continue

            espn_id = player.espn_id or extract_espn_id(match)
            fields: Dict[str, Any] = {
                "sleeper_id": str(match["player_id"]),
                "photo_url": espn_headshot_url(espn_id) or sleeper_headshot_url(match["player_id"]),
                "updated_at": now,
            }
            if espn_id and not player.espn_id:
                fields["espn_id"] = espn_id
            writer.update(PlayerRepository.path(player.id), fields)
            updated += 1
        writer.close()

        logger.info("Headshots: %d updated, %d already had one", updated, already)
        return {"ok": True, "examined": examined, "updated": updated, "already": already}

    # ------------------------------------------------------------------
    # dedupe / prune
    # ------------------------------------------------------------------
    def dedupe_players(self) -> Dict[str, Any]:
        """Collapse players sharing an identity into one surviving document."""
        plans = plan_dedupe(self._players())
        writer = self._writer()
        deleted = 0
        for plan in plans:
            writer.set(PlayerRepository.path(plan.survivor.id), plan.survivor.to_dict(), merge=False)
            for doc_id in plan.delete_ids:
                writer.delete(PlayerRepository.path(doc_id))
                deleted += 1
        writer.close()

        logger.info("Dedupe: %d groups merged, %d documents deleted", len(plans), deleted)
        return {
            "ok": True,
            "groups": len(plans),
            "merged": sum(len(p.member_ids) for p in plans),
            "deleted": deleted,
        }

    def prune_irrelevant_players(self) -> Dict[str, Any]:
        """Delete players whose position is outside the fantasy set."""
        players = self._players()
        writer = self._writer()
        deleted = 0
        for player in players:
            if player.position not in ALLOWED_POSITIONS:
                writer.delete(PlayerRepository.path(player.id))
                deleted += 1
        writer.close()
        logger.info("Prune: %d of %d players deleted", deleted, len(players))
        return {"ok": True, "checked": len(players), "deleted": deleted}

    # ------------------------------------------------------------------
    # settle / stats
    # ------------------------------------------------------------------
    def settle_season(self) -> Dict[str, Any]:
        result = TreasuryManager(self.store, self.clock).settle_all()
        return {"ok": True, **result}

    def fetch_week_stats(self, week=None, season: Optional[int] = None) -> Dict[str, Dict[str, float]]:
        """Actual stat lines for a week, keyed by ESPN id and NAME|TEAM.

        Box scores that fail to load are skipped.

        Raises:
            UpstreamUnavailable: If the scoreboard itself can't be fetched.
        """
        scoreboard = self.espn.scoreboard(week, season)
        game_ids = scoreboard_game_ids(scoreboard)
        if not game_ids:
            return {}

        boxscores = []
        with ThreadPoolExecutor(max_workers=FETCH_WINDOW) as pool:
            futures = [pool.submit(self.espn.boxscore, game_id) for game_id in game_ids]
            for game_id, future in zip(game_ids, futures):
                try:
                    boxscores.append(future.result())
                except UpstreamUnavailable as e:
                    logger.warning("Box score %s unavailable: %s", game_id, e)
        return week_stats_from_boxscores(boxscores)

    def full_refresh(self) -> Dict[str, Any]:
        """refresh -> prune -> dedupe."""
        refresh = self.refresh_players()
        prune = self.prune_irrelevant_players()
        dedupe = self.dedupe_players()
        return {
            "ok": bool(refresh.get("ok")),
            "refresh": refresh,
            "prune": prune,
            "dedupe": dedupe,
        }
