"""Player identity resolution - one canonical Player per real athlete.

Identity key:
    ``espn:<id>`` whenever an ESPN athlete id is known, otherwise
    ``ntp:<name>|<TEAM>|<POS>`` (name lowercased, team/position uppercased).
    Records with nothing usable all land in the ``ntp:||`` bucket.

Merge rules for records sharing a key:
    - projections merge week-by-week; a positive incoming value wins,
      otherwise the existing value stays, otherwise 0
    - matchups merge week-by-week; incoming wins only with a non-empty opp
    - scalar fields take the first non-null value from the best record,
      where "best" is newest updated_at, then has an ESPN id, then has a
      photo, then whichever was seen first
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from src.players.cleaning import (
    espn_headshot_url,
    extract_espn_id,
    extract_name,
    extract_photo,
    extract_position,
    extract_team,
    is_blank,
)
from src.players.models import Player, RawPlayerRecord, to_epoch_ms

logger = logging.getLogger(__name__)

UNKNOWN_KEY = "ntp:||"

_SCALAR_FIELDS = ("name", "position", "team", "espn_id", "sleeper_id", "photo_url")


# ----------------------------------------------------------------------
# Identity keys
# ----------------------------------------------------------------------
def identity_key(record: Union[Player, RawPlayerRecord, Mapping[str, Any]]) -> str:
    """Compute the identity key for a player-like record. Never raises."""
    if isinstance(record, Player):
        espn_id, name, team, pos = record.espn_id, record.name, record.team, record.position
    else:
        data = record.data if isinstance(record, RawPlayerRecord) else record
        if not isinstance(data, Mapping):
            return UNKNOWN_KEY
        espn_id = extract_espn_id(data)
        name, team, pos = extract_name(data), extract_team(data), extract_position(data)

    if espn_id:
        return f"espn:{espn_id}"
    return "ntp:{}|{}|{}".format(
        (name or "").strip().lower(),
        (team or "").strip().upper(),
        (pos or "").strip().upper(),
    )


def canonical_doc_id(player: Player) -> str:
    """Preferred document id: ``espn-<id>`` when the ESPN id is known."""
    if player.espn_id:
        return f"espn-{player.espn_id}"
    if player.id:
        return player.id
    key = identity_key(player)[len("ntp:"):]
    slug = re.sub(r"[^a-z0-9]+", "-", key.lower()).strip("-")
    return f"ntp-{slug}" if slug else "ntp-unknown"


# ----------------------------------------------------------------------
# Raw record conversion
# ----------------------------------------------------------------------
def to_player(record: RawPlayerRecord) -> Player:
    """Convert one tagged provider record into the canonical Player shape."""
    data = record.data if isinstance(record.data, Mapping) else {}
    espn_id = extract_espn_id(data)
    if record.source == "espn" and not espn_id:
        # ESPN athlete payloads carry their own id as plain "id"
        espn_id = extract_espn_id({"espn_id": data.get("id") or data.get("uid")})

    sleeper_id = None
    if record.source == "sleeper":
        sleeper_id = data.get("player_id") or data.get("id")
        sleeper_id = None if is_blank(sleeper_id) else str(sleeper_id)

    source_id = data.get("id")
    if record.source == "sleeper" and sleeper_id:
        source_id = f"sleeper-{sleeper_id}"
    elif record.source == "espn":
        source_id = None

    player = Player.from_dict(dict(data), doc_id="")
    player.espn_id = espn_id
    player.sleeper_id = sleeper_id or player.sleeper_id
    player.photo_url = extract_photo(data) or espn_headshot_url(espn_id)
    player.updated_at = to_epoch_ms(data.get("updated_at", data.get("updatedAt"))) or record.fetched_at
    player.projections = normalize_projections(player.projections)
    player.matchups = normalize_matchups(player.matchups)
    player.id = "" if is_blank(source_id) else str(source_id)
    player.id = canonical_doc_id(player)
    player.name = extract_name(data) or player.id
    return player


def resolve_records(records: Iterable[RawPlayerRecord]) -> Dict[str, Player]:
    """Convert and merge raw records. Returns {identity_key: Player}."""
    groups: Dict[str, List[Player]] = {}
    for record in records:
        player = to_player(record)
        groups.setdefault(identity_key(player), []).append(player)
    return {key: merge_players(group) for key, group in groups.items()}


# ----------------------------------------------------------------------
# Map merges
# ----------------------------------------------------------------------
def _to_number(value: Any) -> Optional[float]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return number


def normalize_projections(projections: Any) -> Dict[str, float]:
    if not isinstance(projections, Mapping):
        return {}
    out = {}
    for week, value in projections.items():
        number = _to_number(value)
        if number is not None:
            out[str(week)] = number
    return out


def merge_projections(existing: Any, incoming: Any) -> Dict[str, float]:
    """Week-by-week union: positive incoming wins, else existing, else 0."""
    a = normalize_projections(existing)
    b = normalize_projections(incoming)
    out = {}
    for week in sorted(set(a) | set(b)):
        bv = b.get(week)
        if bv is not None and bv > 0:
            out[week] = bv
        elif week in a:
            out[week] = a[week]
        else:
            out[week] = bv if bv is not None else 0.0
    return out


def normalize_matchups(matchups: Any) -> Dict[str, Dict[str, Any]]:
    if not isinstance(matchups, Mapping):
        return {}
    out = {}
    for week, value in matchups.items():
        if not isinstance(value, Mapping):
            continue
        entry = dict(value)
        opp = entry.get("opp") or entry.get("opponent") or entry.get("vs") or ""
        entry["opp"] = str(opp).strip().upper() if opp else ""
        out[str(week)] = entry
    return out


def merge_matchups(existing: Any, incoming: Any) -> Dict[str, Dict[str, Any]]:
    """Week-by-week union: incoming wins only when it carries an opponent."""
    a = normalize_matchups(existing)
    b = normalize_matchups(incoming)
    out = {}
    for week in sorted(set(a) | set(b)):
        ea = a.get(week, {})
        eb = b.get(week, {})
        out[week] = {**ea, **eb} if eb.get("opp") else dict(ea)
    return out


# ----------------------------------------------------------------------
# Record merges
# ----------------------------------------------------------------------
def _quality_order(players: Sequence[Player]) -> List[Player]:
    """Best record first."""
    indexed = list(enumerate(players))
    indexed.sort(
        key=lambda pair: (
            -pair[1].updated_at,
            0 if pair[1].espn_id else 1,
            0 if pair[1].photo_url else 1,
            pair[0],
        )
    )
    return [p for _, p in indexed]


def better_player(a: Player, b: Player) -> Player:
    """The record that should win a merge; *a* on a full tie."""
    return _quality_order([a, b])[0]


def merge_players(players: Sequence[Player], keep_id: Optional[str] = None) -> Player:
    """Merge records that share an identity into one Player.

    Args:
        players: Records in first-seen order.
        keep_id: Force the resulting document id (used when patching an
            existing directory entry in place).
    """
    if not players:
        raise ValueError("merge_players needs at least one player")
    ranked = _quality_order(players)
    best = ranked[0]

    merged = Player(id=best.id, name=best.name)
    for attr in _SCALAR_FIELDS:
        for p in ranked:
            value = getattr(p, attr)
            if not is_blank(value):
                setattr(merged, attr, value)
                break

    projections: Dict[str, float] = {}
    matchups: Dict[str, Dict[str, Any]] = {}
    for p in reversed(ranked):
        projections = merge_projections(projections, p.projections)
        matchups = merge_matchups(matchups, p.matchups)
    merged.projections = projections
    merged.matchups = matchups
    merged.updated_at = max(p.updated_at for p in players)

    if not merged.photo_url and merged.espn_id:
        merged.photo_url = espn_headshot_url(merged.espn_id)
    merged.id = keep_id or canonical_doc_id(merged)
    if is_blank(merged.name):
        merged.name = merged.id
    return merged


# ----------------------------------------------------------------------
# De-duplication
# ----------------------------------------------------------------------
@dataclass
class DedupePlan:
    """One identity group collapsing into a single surviving document."""

    key: str
    survivor: Player
    delete_ids: List[str] = field(default_factory=list)
    member_ids: List[str] = field(default_factory=list)


def plan_dedupe(players: Iterable[Player]) -> List[DedupePlan]:
    """Group players by identity and plan the merge for every duplicate group.

    Re-planning after the plans are applied yields no work, so the sweep is
    safe to run repeatedly.
    """
    groups: Dict[str, List[Player]] = {}
    for player in players:
        groups.setdefault(identity_key(player), []).append(player)

    plans = []
    for key in sorted(groups):
        group = groups[key]
        if len(group) <= 1:
            continue
        survivor = merge_players(group)
        if key == UNKNOWN_KEY:
            logger.warning(
                "Merging %d players with no usable identity: %s",
                len(group), [p.id for p in group],
            )
        plans.append(
            DedupePlan(
                key=key,
                survivor=survivor,
                delete_ids=[p.id for p in group if p.id != survivor.id],
                member_ids=[p.id for p in group],
            )
        )
    return plans
