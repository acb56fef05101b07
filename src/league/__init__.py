from src.league.models import (
    EntrySettings,
    League,
    LeagueSettings,
    Payout,
    Standing,
    Treasury,
)

__all__ = [
    "EntrySettings",
    "League",
    "LeagueSettings",
    "Payout",
    "Standing",
    "Treasury",
]
