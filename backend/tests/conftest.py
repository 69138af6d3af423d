from datetime import datetime
from typing import Any, Dict, List, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from arena.database import get_session
from arena.main import app
from arena.services.broadcaster import get_broadcaster

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. All models MUST be imported before create_all() (see session_fixture)
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables are created per test and dropped afterwards
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


class RecordingBroadcaster:
    """Captures published messages instead of sending them."""

    def __init__(self):
        self.messages: List[Tuple[str, str, Dict[str, Any]]] = []

    def publish(self, channel: str, event: str, data: Dict[str, Any]) -> None:
        self.messages.append((channel, event, data))

    def events(self) -> List[str]:
        return [event for _channel, event, _data in self.messages]


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    from arena.models.participant import Participant  # noqa: F401
    from arena.models.tournament import Tournament  # noqa: F401
    from arena.models.tournament_battle import TournamentBattle  # noqa: F401

    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() and stay in place
    for the entire duration. This ensures the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="broadcasts")
def broadcasts_fixture(client: TestClient):
    """Route API broadcasts into a RecordingBroadcaster"""
    recorder = RecordingBroadcaster()
    app.dependency_overrides[get_broadcaster] = lambda: recorder
    return recorder


@pytest.fixture
def two_round_tournament(session: Session):
    """
    Tournament (round_delay_days=3) with four players.

    Round 1: two completed battles.
    Round 2: one scheduled battle (Ada vs Grace, 2024-01-10 10:00) and one
    pending battle (Linus vs TBD, 2024-01-12 09:00).
    """
    from arena.models.participant import Participant
    from arena.models.tournament import Tournament
    from arena.models.tournament_battle import TournamentBattle

    tournament = Tournament(name="Spring Cup", status="active", round_delay_days=3)
    session.add(tournament)
    session.commit()
    session.refresh(tournament)

    players = [Participant(name=n) for n in ("Ada", "Grace", "Linus", "Barbara")]
    for p in players:
        session.add(p)
    session.commit()
    for p in players:
        session.refresh(p)
    ada, grace, linus, barbara = players

    r1 = [
        TournamentBattle(
            tournament_id=tournament.id,
            round=1,
            player1_id=ada.id,
            player2_id=barbara.id,
            status="completed",
            winner_id=ada.id,
            player1_score=8,
            player2_score=5,
            scheduled_at=datetime(2024, 1, 3, 10, 0),
            completed_at=datetime(2024, 1, 3, 10, 20),
        ),
        TournamentBattle(
            tournament_id=tournament.id,
            round=1,
            player1_id=grace.id,
            player2_id=linus.id,
            status="completed",
            winner_id=grace.id,
            player1_score=9,
            player2_score=4,
            scheduled_at=datetime(2024, 1, 4, 10, 0),
            completed_at=datetime(2024, 1, 4, 10, 25),
        ),
    ]
    r2_scheduled = TournamentBattle(
        tournament_id=tournament.id,
        round=2,
        player1_id=ada.id,
        player2_id=grace.id,
        status="scheduled",
        scheduled_at=datetime(2024, 1, 10, 10, 0),
    )
    r2_pending = TournamentBattle(
        tournament_id=tournament.id,
        round=2,
        player1_id=linus.id,
        player2_id=None,
        status="pending",
        scheduled_at=datetime(2024, 1, 12, 9, 0),
    )
    for b in r1 + [r2_scheduled, r2_pending]:
        session.add(b)
    session.commit()
    for b in r1 + [r2_scheduled, r2_pending]:
        session.refresh(b)

    return {
        "tournament_id": tournament.id,
        "players": {p.name: p.id for p in players},
        "round1_ids": [b.id for b in r1],
        "scheduled_id": r2_scheduled.id,
        "pending_id": r2_pending.id,
    }
