"""
Broadcast events for tournament battles and rounds.

Each event names its channel (`broadcast_on`), its wire name (`broadcast_as`)
and its JSON payload (`broadcast_with`). Battle events go out on the
tournament's presence channel so observers of the tournament see them.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from arena.models.tournament_battle import (
    STATUS_COMPLETED,
    STATUS_FORFEITED,
    TournamentBattle,
)
from arena.services.round_resolver import is_round_complete, is_terminal


def presence_channel(tournament_id: int) -> str:
    return f"tournament.{tournament_id}"


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if isinstance(value, datetime) else value


class BroadcastEvent:
    """Base for anything published to a broadcast channel."""

    broadcast_as: str = ""

    def broadcast_on(self) -> str:
        raise NotImplementedError

    def broadcast_with(self) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass
class BattleCompleted(BroadcastEvent):
    battle: TournamentBattle

    broadcast_as = "BattleCompleted"

    def broadcast_on(self) -> str:
        return presence_channel(self.battle.tournament_id)

    def broadcast_with(self) -> Dict[str, Any]:
        b = self.battle
        return {
            "battle": {
                "id": b.id,
                "status": b.status,
                "completed_at": _iso(b.completed_at),
                "winner_id": b.winner_id,
                "is_draw": b.is_draw,
                "player1_score": b.player1_score,
                "player2_score": b.player2_score,
                "battle_duration": b.battle_duration,
            }
        }


@dataclass
class BattleForfeited(BroadcastEvent):
    battle: TournamentBattle

    broadcast_as = "BattleForfeited"

    def broadcast_on(self) -> str:
        return presence_channel(self.battle.tournament_id)

    def broadcast_with(self) -> Dict[str, Any]:
        b = self.battle
        return {
            "battle": {
                "id": b.id,
                "status": b.status,
                "completed_at": _iso(b.completed_at),
                "winner_id": b.winner_id,
                "forfeit_reason": b.forfeit_reason,
                "battle_duration": b.battle_duration,
            }
        }


@dataclass
class TournamentRoundCreated(BroadcastEvent):
    tournament_id: int
    round: int
    battles: List[Dict[str, Any]] = field(default_factory=list)

    broadcast_as = "TournamentRoundCreated"

    def broadcast_on(self) -> str:
        return presence_channel(self.tournament_id)

    def broadcast_with(self) -> Dict[str, Any]:
        return {
            "tournament_id": self.tournament_id,
            "round": self.round,
            "battles": self.battles,
        }


@dataclass
class TournamentRoundClosed(BroadcastEvent):
    tournament_id: int
    round: int
    winners: List[int] = field(default_factory=list)
    next_round: Optional[int] = None
    tournament_complete: bool = False
    tournament_winner: Optional[int] = None
    closed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    broadcast_as = "TournamentRoundClosed"

    def broadcast_on(self) -> str:
        return presence_channel(self.tournament_id)

    def broadcast_with(self) -> Dict[str, Any]:
        return {
            "tournament_id": self.tournament_id,
            "round": self.round,
            "winners": self.winners,
            "next_round": self.next_round,
            "tournament_complete": self.tournament_complete,
            "tournament_winner": self.tournament_winner,
            "timestamp": self.closed_at.isoformat(),
        }


def battle_summary(battle: TournamentBattle) -> Dict[str, Any]:
    """Round-created payload entry for one battle."""
    return {
        "id": battle.id,
        "round": battle.round,
        "player1_id": battle.player1_id,
        "player2_id": battle.player2_id,
        "status": battle.status,
        "scheduled_at": _iso(battle.scheduled_at),
    }


def detect_battle_event(previous_status: str, battle: TournamentBattle) -> Optional[BroadcastEvent]:
    """
    Event for a status change from `previous_status` to `battle.status`.

    Only a move from a non-terminal status into completed/forfeited yields an
    event; re-saving a battle whose status did not change yields None.
    """
    if previous_status == battle.status or is_terminal(previous_status):
        return None
    if battle.status == STATUS_COMPLETED:
        return BattleCompleted(battle)
    if battle.status == STATUS_FORFEITED:
        return BattleForfeited(battle)
    return None


def build_round_closed(
    tournament_id: int,
    round_number: int,
    round_battles: Sequence[TournamentBattle],
    later_round_exists: bool = False,
) -> Optional[TournamentRoundClosed]:
    """
    Round-closed event if every battle in `round_battles` is terminal, else None.

    The tournament is declared complete only when this is its last round and at
    most one winner remains. If battles already exist for a later round, the
    event points at the next round instead.
    """
    if not round_battles or not is_round_complete(round_battles):
        return None

    winners: List[int] = []
    for b in sorted(round_battles, key=lambda x: x.id or 0):
        if b.winner_id is not None and b.winner_id not in winners:
            winners.append(b.winner_id)

    if later_round_exists or len(winners) > 1:
        return TournamentRoundClosed(
            tournament_id=tournament_id,
            round=round_number,
            winners=winners,
            next_round=round_number + 1,
        )
    return TournamentRoundClosed(
        tournament_id=tournament_id,
        round=round_number,
        winners=winners,
        tournament_complete=True,
        tournament_winner=winners[0] if winners else None,
    )
