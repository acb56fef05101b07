"""Canonical player record and the raw provider records it is built from."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from src.players.cleaning import (
    extract_espn_id,
    extract_name,
    extract_photo,
    extract_position,
    extract_team,
    is_blank,
)

RAW_SOURCES = ("local", "sleeper", "espn", "csv", "store")


def to_epoch_ms(raw: Any) -> int:
    """Best-effort timestamp parse; unknown shapes become 0."""
    if raw is None or raw == "":
        return 0
    if isinstance(raw, datetime):
        return int(raw.timestamp() * 1000)
    if isinstance(raw, dict):
        if "seconds" in raw:
            try:
                return int(float(raw["seconds"]) * 1000)
            except (TypeError, ValueError):
                return 0
        return 0
    if isinstance(raw, (int, float)):
        return int(raw)
    try:
        return int(float(raw))
    except (TypeError, ValueError):
        pass
    try:
        return int(datetime.fromisoformat(str(raw)).timestamp() * 1000)
    except ValueError:
        return 0


@dataclass
class RawPlayerRecord:
    """A provider payload tagged with where it came from.

    Raw records never travel past the identity resolver; everything
    downstream works with Player.
    """

    source: str
    data: Dict[str, Any]
    fetched_at: int = 0

    def __post_init__(self):
        if self.source not in RAW_SOURCES:
            raise ValueError(
                f"Unknown record source '{self.source}'. Must be one of: {RAW_SOURCES}"
            )


@dataclass
class Player:
    """Canonical fantasy-relevant identity."""

    id: str
    name: str
    position: Optional[str] = None
    team: Optional[str] = None
    espn_id: Optional[str] = None
    sleeper_id: Optional[str] = None
    photo_url: Optional[str] = None
    projections: Dict[str, float] = field(default_factory=dict)
    matchups: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    updated_at: int = 0

    def projection_for(self, week) -> float:
        value = self.projections.get(str(week))
        try:
            return float(value) if value is not None else 0.0
        except (TypeError, ValueError):
            return 0.0

    def opponent_for(self, week) -> str:
        entry = self.matchups.get(str(week)) or {}
        return entry.get("opp") or entry.get("opponent") or ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "position": self.position,
            "team": self.team,
            "espn_id": self.espn_id,
            "sleeper_id": self.sleeper_id,
            "photo_url": self.photo_url,
            "projections": dict(self.projections),
            "matchups": {k: dict(v) for k, v in self.matchups.items()},
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> "Player":
        """Build from a stored document, tolerating legacy field names."""
        player_id = doc_id or str(data.get("id") or "")
        projections = data.get("projections") or data.get("projByWeek") or {}
        matchups = data.get("matchups") or {}
        sleeper_id = data.get("sleeper_id") or data.get("sleeperId")
        return cls(
            id=player_id,
            name=extract_name(data) or player_id,
            position=extract_position(data),
            team=extract_team(data),
            espn_id=extract_espn_id(data),
            sleeper_id=None if is_blank(sleeper_id) else str(sleeper_id),
            photo_url=extract_photo(data),
            projections={
                str(k): v for k, v in projections.items()
            } if isinstance(projections, dict) else {},
            matchups={
                str(k): v for k, v in matchups.items() if isinstance(v, dict)
            } if isinstance(matchups, dict) else {},
            updated_at=to_epoch_ms(data.get("updated_at", data.get("updatedAt"))),
        )
