"""Provider clients and projection file ingestion.

ESPN and Sleeper are undocumented JSON feeds: every fetch retries with
backoff and raises UpstreamUnavailable once it gives up, so callers can
carry on with whatever they already gathered.

FantasyPros projection exports are CSVs with a few quirks:
- Duplicate column names in QB and FLEX files
- Empty placeholder rows after headers
- Comma-formatted numbers (e.g., "3,904.1")
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd
import requests

from src.data_pipeline.config import (
    ESPN_BOXSCORE_URL,
    ESPN_SCOREBOARD_URL,
    ESPN_SEASON_TYPE,
    ESPN_TEAM_ROSTER_URL,
    ESPN_TEAMS_URL,
    FILE_PATTERNS,
    FLEX_COLUMNS,
    HTTP_BASE_DELAY,
    HTTP_MAX_ATTEMPTS,
    HTTP_TIMEOUT_SECONDS,
    QB_COLUMNS,
    SLEEPER_PLAYERS_URL,
    USER_AGENT,
)
from src.retry import with_backoff

logger = logging.getLogger(__name__)


class UpstreamUnavailable(Exception):
    """A provider fetch failed after retries or returned an unusable shape."""


class IngestionError(Exception):
    """Raised when CSV ingestion fails."""


def _parse_numeric(value):
    """Parse a numeric string that may contain commas (e.g., '3,904.1' -> 3904.1)."""
    if pd.isna(value):
        return value
    if isinstance(value, (int, float)):
        return float(value)
    s = str(value).replace(",", "").strip().strip('"')
    if s == "" or s.isspace():
        return float("nan")
    try:
        return float(s)
    except ValueError:
        return float("nan")


# ----------------------------------------------------------------------
# HTTP
# ----------------------------------------------------------------------
class ProviderClient:
    """GET-and-decode JSON with bounded retries."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        max_attempts: int = HTTP_MAX_ATTEMPTS,
        base_delay: float = HTTP_BASE_DELAY,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.session = session or requests.Session()
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.sleep = sleep

    def get_json(self, url: str, params: Optional[Mapping[str, Any]] = None, label: str = "fetch") -> Any:
        """Fetch *url* and decode the body.

        Raises:
            UpstreamUnavailable: When every attempt failed.
        """
        def fetch():
            response = self.session.get(
                url,
                params=dict(params) if params else None,
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
                timeout=HTTP_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            return response.json()

        try:
            return with_backoff(
                fetch,
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                retry_on=(requests.RequestException, ValueError),
                label=label,
                sleep=self.sleep,
                give_up=_is_client_error,
            )
        except (requests.RequestException, ValueError) as e:
            raise UpstreamUnavailable(f"{label}: {e}") from e


class EspnClient(ProviderClient):
    """Teams, rosters, scoreboards and box scores from ESPN's site API."""

    def list_teams(self) -> List[Dict[str, str]]:
        """[{"id", "abbr", "name"}, ...]; empty if the payload has no teams."""
        data = self.get_json(ESPN_TEAMS_URL, label="espn-teams")
        league = _first(_first(_get(data, "sports"), {}).get("leagues"), {})
        teams = []
        for item in league.get("teams") or []:
            team = _get(item, "team")
            if not isinstance(team, dict) or team.get("id") is None:
                continue
            teams.append({
                "id": str(team["id"]),
                "abbr": team.get("abbreviation") or team.get("shortDisplayName") or team.get("name") or "",
                "name": team.get("displayName") or team.get("name") or "",
            })
        return teams

    def team_roster(self, team_id: str) -> Dict[str, Any]:
        return self.get_json(ESPN_TEAM_ROSTER_URL.format(team_id=team_id), label=f"espn-roster-{team_id}")

    def scoreboard(self, week: Optional[int] = None, season: Optional[int] = None) -> Dict[str, Any]:
        """Scoreboard for a week. A 404 (week has no games) comes back as no events."""
        params: Dict[str, Any] = {"seasontype": ESPN_SEASON_TYPE}
        if week:
            params["week"] = int(week)
        if season:
            params["season"] = int(season)
        try:
            return self.get_json(ESPN_SCOREBOARD_URL, params=params, label="espn-scoreboard")
        except UpstreamUnavailable as e:
            cause = e.__cause__
            if isinstance(cause, requests.HTTPError) and _status_of(cause) == 404:
                logger.warning("No scoreboard for week=%s season=%s", week, season)
                return {"events": []}
            raise

    def boxscore(self, game_id: str) -> Dict[str, Any]:
        return self.get_json(ESPN_BOXSCORE_URL.format(game_id=game_id), label=f"espn-boxscore-{game_id}")


class SleeperClient(ProviderClient):
    """Sleeper's bulk NFL player catalog."""

    def players(self) -> Dict[str, Dict[str, Any]]:
        """{sleeper_id: record}. Anything other than a dict counts as unavailable."""
        data = self.get_json(SLEEPER_PLAYERS_URL, label="sleeper-players")
        if not isinstance(data, dict):
            raise UpstreamUnavailable("sleeper-players: expected an object keyed by player id")
        return {str(k): v for k, v in data.items() if isinstance(v, dict)}


def _get(data: Any, key: str) -> Any:
    return data.get(key) if isinstance(data, dict) else None


def _first(items: Any, default: Any) -> Any:
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return default


def _status_of(error: requests.HTTPError) -> Optional[int]:
    response = getattr(error, "response", None)
    return getattr(response, "status_code", None)


def _is_client_error(error: BaseException) -> bool:
    """True for a 4xx response other than 408 and 429."""
    if not isinstance(error, requests.HTTPError):
        return False
    status = _status_of(error)
    return status is not None and 400 <= status < 500 and status not in (408, 429)


# ----------------------------------------------------------------------
# Scoreboard shapes
# ----------------------------------------------------------------------
def scoreboard_opponents(scoreboard: Mapping[str, Any]) -> Dict[str, str]:
    """TEAM -> OPP for every two-team competition, both directions."""
    opponents: Dict[str, str] = {}
    for event in _get(scoreboard, "events") or []:
        for comp in _get(event, "competitions") or []:
            competitors = _get(comp, "competitors") or []
            if len(competitors) != 2:
                continue
            abbrs = []
            for c in competitors:
                team = _get(c, "team") or {}
                abbrs.append(str(team.get("abbreviation") or team.get("shortDisplayName") or "").upper())
            a, b = abbrs
            if a and b:
                opponents[a] = b
                opponents[b] = a
    return opponents


def scoreboard_game_ids(scoreboard: Mapping[str, Any]) -> List[str]:
    ids = []
    for event in _get(scoreboard, "events") or []:
        for comp in _get(event, "competitions") or []:
            if _get(comp, "id") is not None:
                ids.append(str(comp["id"]))
    return ids


# ----------------------------------------------------------------------
# FantasyPros projection exports
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class ExportFormat:
    """Layout of one export. *position* None means the file has its own POS column."""

    position: Optional[str]
    numeric: Tuple[str, ...]
    # Replacement header for files whose own header repeats labels
    names: Optional[Tuple[str, ...]] = None


EXPORT_FORMATS = {
    "qb": ExportFormat("QB", tuple(QB_COLUMNS[2:]), names=tuple(QB_COLUMNS)),
    "flex": ExportFormat(None, tuple(FLEX_COLUMNS[3:]), names=tuple(FLEX_COLUMNS)),
    "k": ExportFormat("K", ("FG", "FGA", "XPT", "FPTS")),
    "dst": ExportFormat("DEF", ("SACK", "INT", "FR", "FF", "TD", "SAFETY", "PA", "YDS_AGN", "FPTS")),
}


def tidy_projection_frame(df: pd.DataFrame, numeric: Sequence[str]) -> pd.DataFrame:
    """Strip quotes and padding, drop rows without a player, parse numbers."""
    for col in df.select_dtypes(include=["object", "str"]).columns:
        df[col] = df[col].str.strip('"').str.strip()
    df = df[df["Player"].notna() & (df["Player"] != "")].reset_index(drop=True)
    for col in numeric:
        if col in df.columns:
            df[col] = df[col].apply(_parse_numeric)
    return df


class FantasyProsIngester:
    """Weekly FantasyPros projection exports found in *data_dir*."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def path_for(self, file_key: str) -> Path:
        return self.data_dir / FILE_PATTERNS[file_key]

    def read(self, file_key: str) -> pd.DataFrame:
        """One export as a cleaned frame with a ``POS`` column.

        Files with a replacement header skip their own header and the
        blank placeholder row beneath it.

        Raises:
            FileNotFoundError: If the export isn't there.
        """
        fmt = EXPORT_FORMATS[file_key]
        path = self.path_for(file_key)
        if not path.exists():
            raise FileNotFoundError(f"Expected file not found: {path}")

        if fmt.names:
            df = pd.read_csv(path, header=None, skiprows=2, names=list(fmt.names))
        else:
            df = pd.read_csv(path)
        df = tidy_projection_frame(df, fmt.numeric)

        if fmt.position:
            df["POS"] = fmt.position
        else:
            # "WR12" -> "WR"
            df["POS"] = df["POS"].astype(str).str.extract(r"^([A-Za-z]+)", expand=False).str.upper()
        logger.info("Loaded %d %s projections from %s", len(df), file_key, path.name)
        return df

    def read_all(self) -> pd.DataFrame:
        """Every export present, concatenated. Missing files are skipped.

        Raises:
            IngestionError: If an export can't be parsed, or there are none.
        """
        frames = []
        for file_key in EXPORT_FORMATS:
            if not self.path_for(file_key).exists():
                logger.info("No %s projection file in %s", file_key, self.data_dir)
                continue
            try:
                frames.append(self.read(file_key))
            except Exception as e:
                raise IngestionError(f"Failed to read {file_key} projections: {e}") from e
        if not frames:
            raise IngestionError(f"No projection files found in {self.data_dir}")
        return pd.concat(frames, ignore_index=True, sort=False)
