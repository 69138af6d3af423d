from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from arena.models.tournament_battle import TournamentBattle

TOURNAMENT_UPCOMING = "upcoming"
TOURNAMENT_ACTIVE = "active"
TOURNAMENT_COMPLETED = "completed"
TOURNAMENT_STATUSES = (TOURNAMENT_UPCOMING, TOURNAMENT_ACTIVE, TOURNAMENT_COMPLETED)


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    status: str = Field(default=TOURNAMENT_UPCOMING)
    # Days added to the latest scheduled battle of a round to estimate its end
    round_delay_days: int = Field(default=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Relationships
    battles: List["TournamentBattle"] = Relationship(back_populates="tournament")
