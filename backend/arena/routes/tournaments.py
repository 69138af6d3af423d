from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session, select

from arena.database import get_session
from arena.models.participant import Participant
from arena.models.tournament import TOURNAMENT_STATUSES, TOURNAMENT_UPCOMING, Tournament

router = APIRouter()


def _validate_status(v):
    if v is not None and v not in TOURNAMENT_STATUSES:
        raise ValueError(f"status must be one of {', '.join(TOURNAMENT_STATUSES)}")
    return v


class TournamentCreate(BaseModel):
    name: str
    status: str = TOURNAMENT_UPCOMING
    round_delay_days: int = 0

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _validate_status(v)


class TournamentUpdate(BaseModel):
    name: Optional[str] = None
    status: Optional[str] = None
    round_delay_days: Optional[int] = None

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        return _validate_status(v)


class TournamentResponse(BaseModel):
    id: int
    name: str
    status: str
    round_delay_days: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ParticipantCreate(BaseModel):
    name: str
    email: Optional[str] = None


class ParticipantResponse(BaseModel):
    id: int
    name: str
    email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    return session.exec(select(Tournament).order_by(Tournament.id)).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    tournament = Tournament(**tournament_data.model_dump())
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


@router.patch("/tournaments/{tournament_id}", response_model=TournamentResponse)
def update_tournament(tournament_id: int, tournament_data: TournamentUpdate, session: Session = Depends(get_session)):
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")

    for key, value in tournament_data.model_dump(exclude_unset=True).items():
        if value is None:
            continue
        setattr(tournament, key, value)

    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/participants", response_model=List[ParticipantResponse])
def list_participants(session: Session = Depends(get_session)):
    return session.exec(select(Participant).order_by(Participant.id)).all()


@router.post("/participants", response_model=ParticipantResponse, status_code=201)
def create_participant(participant_data: ParticipantCreate, session: Session = Depends(get_session)):
    if not participant_data.name.strip():
        raise HTTPException(status_code=422, detail="name is required")
    participant = Participant(name=participant_data.name.strip(), email=participant_data.email)
    session.add(participant)
    session.commit()
    session.refresh(participant)
    return participant
