from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from arena.models.participant import Participant
    from arena.models.tournament import Tournament

STATUS_PENDING = "pending"
STATUS_SCHEDULED = "scheduled"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_FORFEITED = "forfeited"

BATTLE_STATUSES = (
    STATUS_PENDING,
    STATUS_SCHEDULED,
    STATUS_IN_PROGRESS,
    STATUS_COMPLETED,
    STATUS_FORFEITED,
)
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_FORFEITED)


class TournamentBattle(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    round: int = Field(index=True)  # Immutable once created

    # Participants stay null ("TBD") until assigned
    player1_id: Optional[int] = Field(default=None, foreign_key="participant.id")
    player2_id: Optional[int] = Field(default=None, foreign_key="participant.id")

    status: str = Field(default=STATUS_PENDING)  # see BATTLE_STATUSES
    scheduled_at: Optional[datetime] = Field(default=None)
    completed_at: Optional[datetime] = Field(default=None)  # set iff status is terminal

    winner_id: Optional[int] = Field(default=None, foreign_key="participant.id")
    is_draw: bool = Field(default=False)
    player1_score: Optional[float] = Field(default=None)
    player2_score: Optional[float] = Field(default=None)
    battle_duration: Optional[float] = Field(default=None)  # seconds
    forfeit_reason: Optional[str] = Field(default=None)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="battles")
    player1: Optional["Participant"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "TournamentBattle.player1_id"}
    )
    player2: Optional["Participant"] = Relationship(
        sa_relationship_kwargs={"foreign_keys": "TournamentBattle.player2_id"}
    )
