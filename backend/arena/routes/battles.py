"""
Tournament battles: listing, runtime updates (status/scores/winner), round
creation from explicit pairings, and the current-round panel.

Completion and forfeit broadcasts are queued on the request's unit of work
and published after the commit, before the response is returned.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy.orm import selectinload
from sqlmodel import Session, select

from arena.database import get_session
from arena.models.tournament import Tournament
from arena.models.tournament_battle import BATTLE_STATUSES, TournamentBattle
from arena.services.battle_notifier import BattleNotifier
from arena.services.battle_runtime import BattleUpdateError, apply_battle_update, create_round
from arena.services.broadcaster import get_broadcaster
from arena.services.rounds_panel import build_rounds_panel
from arena.unit_of_work import UnitOfWork, get_unit_of_work

router = APIRouter()


class BattleUpdate(BaseModel):
    status: Optional[str] = None
    player1_score: Optional[float] = None
    player2_score: Optional[float] = None
    winner_id: Optional[int] = None
    battle_duration: Optional[float] = None
    forfeit_reason: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    player1_id: Optional[int] = None
    player2_id: Optional[int] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v is not None and v not in BATTLE_STATUSES:
            raise ValueError(f"status must be one of {', '.join(BATTLE_STATUSES)}")
        return v

    @field_validator("battle_duration")
    @classmethod
    def validate_duration(cls, v):
        if v is not None and v < 0:
            raise ValueError("battle_duration must be >= 0")
        return v


class BattleState(BaseModel):
    id: int
    tournament_id: int
    round: int
    player1_id: Optional[int] = None
    player2_id: Optional[int] = None
    status: str
    scheduled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    winner_id: Optional[int] = None
    is_draw: bool = False
    player1_score: Optional[float] = None
    player2_score: Optional[float] = None
    battle_duration: Optional[float] = None
    forfeit_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class BattleUpdateResponse(BaseModel):
    battle: BattleState
    previous_status: str
    events: List[str] = []


class Pairing(BaseModel):
    player1_id: Optional[int] = None
    player2_id: Optional[int] = None
    scheduled_at: Optional[datetime] = None


class RoundCreate(BaseModel):
    round: int
    pairings: List[Pairing]


class RoundCreateResponse(BaseModel):
    tournament_id: int
    round: int
    battles: List[BattleState]


class MatchRow(BaseModel):
    id: int
    player1_name: str
    player2_name: str
    label: str
    status: str
    scheduled_at: Optional[str] = None
    scheduled_display: str


class RoundsPanel(BaseModel):
    tournament_id: int
    current_round: int
    round_ends_at: Optional[str] = None
    round_ends_display: str
    match_count: int
    matches: List[MatchRow]


def get_notifier(broadcaster=Depends(get_broadcaster)) -> BattleNotifier:
    return BattleNotifier(broadcaster)


def _get_tournament_or_404(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


@router.get("/tournaments/{tournament_id}/battles", response_model=List[BattleState])
def list_battles(
    tournament_id: int,
    round_number: Optional[int] = Query(default=None, ge=1, alias="round"),
    session: Session = Depends(get_session),
) -> List[TournamentBattle]:
    """List battles ordered by round, then id. Optionally filtered to one round."""
    _get_tournament_or_404(session, tournament_id)
    query = select(TournamentBattle).where(TournamentBattle.tournament_id == tournament_id)
    if round_number is not None:
        query = query.where(TournamentBattle.round == round_number)
    return session.exec(query.order_by(TournamentBattle.round, TournamentBattle.id)).all()


@router.patch(
    "/tournaments/{tournament_id}/battles/{battle_id}",
    response_model=BattleUpdateResponse,
)
def update_battle(
    tournament_id: int,
    battle_id: int,
    payload: BattleUpdate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    notifier: BattleNotifier = Depends(get_notifier),
) -> BattleUpdateResponse:
    """Update battle status/score/winner. Battle must belong to tournament.
    Completing or forfeiting broadcasts on the tournament's presence channel."""
    session = uow.session
    _get_tournament_or_404(session, tournament_id)

    battle = session.get(TournamentBattle, battle_id)
    if not battle or battle.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Battle not found")

    changes: Dict[str, Any] = payload.model_dump(exclude_unset=True)
    try:
        result = apply_battle_update(uow, battle, changes, notifier)
    except BattleUpdateError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return BattleUpdateResponse(
        battle=BattleState.model_validate(result.battle),
        previous_status=result.previous_status,
        events=[e.broadcast_as for e in result.events],
    )


@router.post(
    "/tournaments/{tournament_id}/rounds",
    response_model=RoundCreateResponse,
    status_code=201,
)
def create_tournament_round(
    tournament_id: int,
    payload: RoundCreate,
    uow: UnitOfWork = Depends(get_unit_of_work),
    notifier: BattleNotifier = Depends(get_notifier),
) -> RoundCreateResponse:
    """Create a round's battles from explicit pairings (no automatic seeding)."""
    tournament = _get_tournament_or_404(uow.session, tournament_id)
    try:
        battles = create_round(
            uow,
            tournament,
            payload.round,
            [p.model_dump() for p in payload.pairings],
            notifier,
        )
    except BattleUpdateError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))

    return RoundCreateResponse(
        tournament_id=tournament_id,
        round=payload.round,
        battles=[BattleState.model_validate(b) for b in battles],
    )


@router.get("/tournaments/{tournament_id}/rounds/current", response_model=RoundsPanel)
def get_current_round(tournament_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    """Current round, its estimated end and its matches. Point-in-time read, not cached."""
    tournament = _get_tournament_or_404(session, tournament_id)
    battles = session.exec(
        select(TournamentBattle)
        .where(TournamentBattle.tournament_id == tournament_id)
        .options(
            selectinload(TournamentBattle.player1),
            selectinload(TournamentBattle.player2),
        )
    ).all()
    return build_rounds_panel(tournament, battles)
