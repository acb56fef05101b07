from src.players.identity import (
    DedupePlan,
    canonical_doc_id,
    identity_key,
    merge_matchups,
    merge_players,
    merge_projections,
    plan_dedupe,
    resolve_records,
    to_player,
)
from src.players.models import Player, RawPlayerRecord

__all__ = [
    "DedupePlan",
    "Player",
    "RawPlayerRecord",
    "canonical_doc_id",
    "identity_key",
    "merge_matchups",
    "merge_players",
    "merge_projections",
    "plan_dedupe",
    "resolve_records",
    "to_player",
]
