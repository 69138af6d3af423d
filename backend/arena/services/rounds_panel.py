"""
Rounds panel for the admin tournament view: current round, when it is
expected to end, and the round's matches.

Computed from one in-memory list of battles; callers load the tournament's
battles once (players eager-loaded) and pass them in.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from arena.models.tournament import Tournament
from arena.models.tournament_battle import (
    STATUS_COMPLETED,
    STATUS_PENDING,
    STATUS_SCHEDULED,
    TournamentBattle,
)
from arena.services.round_resolver import battles_in_round, resolve_current_round
from arena.services.round_window import estimate_round_end, parse_timestamp

DISPLAY_FORMAT = "%b %d, %Y %H:%M"
TBD = "TBD"
NO_TIME = "-"


def format_timestamp(value: Any) -> Optional[str]:
    """'Jan 10, 2024 10:00', or None when the value is not a usable timestamp."""
    parsed = parse_timestamp(value)
    if parsed is None:
        return None
    return parsed.strftime(DISPLAY_FORMAT)


def player_name(player) -> str:
    name = getattr(player, "name", None) if player is not None else None
    return name or TBD


def display_status(battle: TournamentBattle) -> str:
    if battle.status:
        return battle.status
    if battle.completed_at:
        return STATUS_COMPLETED
    if battle.scheduled_at:
        return STATUS_SCHEDULED
    return STATUS_PENDING


def _schedule_sort_key(battle: TournamentBattle):
    scheduled = parse_timestamp(battle.scheduled_at)
    if scheduled is None:
        return (0, datetime.min, battle.id or 0)
    # aware and naive timestamps cannot be compared
    return (1, scheduled.replace(tzinfo=None), battle.id or 0)


def build_match_row(battle: TournamentBattle) -> Dict[str, Any]:
    p1 = player_name(battle.player1)
    p2 = player_name(battle.player2)
    scheduled = parse_timestamp(battle.scheduled_at)
    return {
        "id": battle.id,
        "player1_name": p1,
        "player2_name": p2,
        "label": f"{p1} vs {p2}",
        "status": display_status(battle),
        "scheduled_at": scheduled.isoformat() if scheduled else None,
        "scheduled_display": format_timestamp(scheduled) or NO_TIME,
    }


def build_rounds_panel(tournament: Tournament, battles: Sequence[TournamentBattle]) -> Dict[str, Any]:
    current_round = resolve_current_round(battles)
    round_battles = sorted(battles_in_round(battles, current_round), key=_schedule_sort_key)
    ends_at = estimate_round_end(round_battles, tournament.round_delay_days)

    matches: List[Dict[str, Any]] = [build_match_row(b) for b in round_battles]
    return {
        "tournament_id": tournament.id,
        "current_round": current_round,
        "round_ends_at": ends_at.isoformat() if ends_at else None,
        "round_ends_display": format_timestamp(ends_at) or TBD,
        "match_count": len(matches),
        "matches": matches,
    }
