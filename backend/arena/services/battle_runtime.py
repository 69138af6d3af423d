"""
Battle runtime: status transitions, scoring and round creation.

Transitions into completed/forfeited are compare-and-set on the stored status,
so of two racing requests only one observes the transition (and notifies).
Completed and forfeited are terminal.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import update
from sqlmodel import select

from arena.models.participant import Participant
from arena.models.tournament import TOURNAMENT_COMPLETED, Tournament
from arena.models.tournament_battle import (
    BATTLE_STATUSES,
    STATUS_COMPLETED,
    STATUS_FORFEITED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    STATUS_SCHEDULED,
    TournamentBattle,
)
from arena.services.battle_events import (
    BroadcastEvent,
    TournamentRoundClosed,
    TournamentRoundCreated,
    battle_summary,
)
from arena.services.battle_notifier import BattleNotifier
from arena.services.round_resolver import is_terminal
from arena.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[str, set] = {
    STATUS_PENDING: {STATUS_SCHEDULED, STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_FORFEITED},
    STATUS_SCHEDULED: {STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_FORFEITED},
    STATUS_IN_PROGRESS: {STATUS_COMPLETED, STATUS_FORFEITED},
    STATUS_COMPLETED: set(),
    STATUS_FORFEITED: set(),
}

# Fields a PATCH may carry besides status
RESULT_FIELDS = ("player1_score", "player2_score", "winner_id", "battle_duration", "forfeit_reason")
SETUP_FIELDS = ("player1_id", "player2_id", "scheduled_at")


class BattleUpdateError(Exception):
    """Base exception for rejected battle updates"""
    status_code = 422


class InvalidTransitionError(BattleUpdateError):
    """Status change not allowed from the current status"""
    pass


class InvalidWinnerError(BattleUpdateError):
    """Winner is not one of the battle's players"""
    pass


class UnknownParticipantError(BattleUpdateError):
    """Referenced participant does not exist"""
    pass


class BattleConflictError(BattleUpdateError):
    """Battle status changed underneath this request"""
    status_code = 409


class RoundExistsError(BattleUpdateError):
    """Battles already exist for the requested round"""
    status_code = 409


@dataclass
class BattleUpdateResult:
    battle: TournamentBattle
    previous_status: str
    events: List[BroadcastEvent] = field(default_factory=list)


def validate_status_transition(current: str, new: str) -> None:
    if new not in BATTLE_STATUSES:
        raise InvalidTransitionError(f"Invalid battle status: {new}")
    if current == new:
        return
    if is_terminal(current):
        raise InvalidTransitionError(f"{current} is terminal; cannot change to {new}")
    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(f"Cannot change status from {current} to {new}")


def _require_participant(session, participant_id: Optional[int]) -> None:
    if participant_id is not None and session.get(Participant, participant_id) is None:
        raise UnknownParticipantError(f"Participant {participant_id} not found")


def _score(value: Optional[float]) -> float:
    return float(value) if value is not None else 0.0


def derive_completion(battle: TournamentBattle, winner_id: Optional[int]) -> None:
    """Set is_draw and winner_id for a completed battle. A missing score counts as 0."""
    s1 = _score(battle.player1_score)
    s2 = _score(battle.player2_score)
    battle.is_draw = s1 == s2
    if battle.is_draw:
        if winner_id is not None:
            raise InvalidWinnerError("A drawn battle cannot have a winner")
        battle.winner_id = None
    elif winner_id is not None:
        battle.winner_id = winner_id
    else:
        battle.winner_id = battle.player1_id if s1 > s2 else battle.player2_id


def _claim_transition(uow: UnitOfWork, battle: TournamentBattle, previous: str, new: str) -> None:
    """Compare-and-set the stored status; raise if another request got there first."""
    result = uow.session.execute(
        update(TournamentBattle)
        .where(TournamentBattle.id == battle.id, TournamentBattle.status == previous)
        .values(status=new)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        uow.rollback()
        raise BattleConflictError(f"Battle {battle.id} is no longer {previous}")


def _complete_tournament(session, tournament_id: int) -> None:
    tournament = session.get(Tournament, tournament_id)
    if tournament is None:
        return
    tournament.status = TOURNAMENT_COMPLETED
    session.add(tournament)
    logger.info(f"Tournament {tournament_id} completed")


def apply_battle_update(
    uow: UnitOfWork,
    battle: TournamentBattle,
    changes: Dict[str, Any],
    notifier: BattleNotifier,
) -> BattleUpdateResult:
    """
    Apply a partial update to a battle and commit it.

    `changes` holds only the fields the caller set (status, scores, winner_id,
    battle_duration, forfeit_reason, player ids, scheduled_at). Round is never
    changed. Broadcasts for completion/forfeit (and a round closing) are
    queued on the unit of work and go out after the commit.

    Raises:
        BattleUpdateError subclasses; nothing is committed in that case
    """
    session = uow.session
    previous = battle.status
    new_status = changes.get("status") or previous
    validate_status_transition(previous, new_status)

    if is_terminal(previous):
        edited = [k for k in RESULT_FIELDS + SETUP_FIELDS if k in changes and changes[k] != getattr(battle, k)]
        if edited:
            raise InvalidTransitionError(
                f"Battle {battle.id} is {previous}; cannot edit {', '.join(edited)}"
            )
        return BattleUpdateResult(battle=battle, previous_status=previous)

    for key in ("player1_id", "player2_id"):
        if key in changes:
            _require_participant(session, changes[key])
            setattr(battle, key, changes[key])
    if "scheduled_at" in changes:
        battle.scheduled_at = changes["scheduled_at"]
    for key in ("player1_score", "player2_score", "battle_duration", "forfeit_reason"):
        if key in changes:
            setattr(battle, key, changes[key])

    winner_id = changes.get("winner_id")
    if winner_id is not None:
        if winner_id not in (battle.player1_id, battle.player2_id):
            raise InvalidWinnerError(f"Winner {winner_id} is not a player in battle {battle.id}")
        if new_status not in (STATUS_COMPLETED, STATUS_FORFEITED):
            raise InvalidWinnerError("winner_id can only be set when completing or forfeiting")

    if new_status != previous:
        if new_status == STATUS_COMPLETED:
            derive_completion(battle, winner_id)
        elif new_status == STATUS_FORFEITED:
            battle.is_draw = False
            battle.winner_id = winner_id

        if is_terminal(new_status):
            _claim_transition(uow, battle, previous, new_status)
            battle.completed_at = datetime.now(timezone.utc)
        battle.status = new_status

    session.add(battle)

    events: List[BroadcastEvent] = []
    if is_terminal(battle.status) and not is_terminal(previous):
        round_battles = session.exec(
            select(TournamentBattle).where(
                TournamentBattle.tournament_id == battle.tournament_id,
                TournamentBattle.round == battle.round,
            )
        ).all()
        later_round = session.exec(
            select(TournamentBattle.id).where(
                TournamentBattle.tournament_id == battle.tournament_id,
                TournamentBattle.round > battle.round,
            )
        ).first()
        events = notifier.battle_updated(
            uow, previous, battle, round_battles, later_round_exists=later_round is not None
        )
        if any(isinstance(e, TournamentRoundClosed) and e.tournament_complete for e in events):
            _complete_tournament(session, battle.tournament_id)

    uow.commit()
    session.refresh(battle)
    return BattleUpdateResult(battle=battle, previous_status=previous, events=events)


def create_round(
    uow: UnitOfWork,
    tournament: Tournament,
    round_number: int,
    pairings: Sequence[Dict[str, Any]],
    notifier: BattleNotifier,
) -> List[TournamentBattle]:
    """
    Create the battles of a round from explicit pairings and announce it.

    Each pairing has player1_id, player2_id (either may be None for TBD) and an
    optional scheduled_at. Battles with a scheduled_at start as scheduled,
    others as pending.
    """
    session = uow.session
    if round_number < 1:
        raise BattleUpdateError("round must be a positive integer")
    if not pairings:
        raise BattleUpdateError("At least one pairing is required")

    existing = session.exec(
        select(TournamentBattle).where(
            TournamentBattle.tournament_id == tournament.id,
            TournamentBattle.round == round_number,
        )
    ).first()
    if existing is not None:
        raise RoundExistsError(f"Round {round_number} already exists for tournament {tournament.id}")

    battles: List[TournamentBattle] = []
    for pairing in pairings:
        _require_participant(session, pairing.get("player1_id"))
        _require_participant(session, pairing.get("player2_id"))
        scheduled_at = pairing.get("scheduled_at")
        battle = TournamentBattle(
            tournament_id=tournament.id,
            round=round_number,
            player1_id=pairing.get("player1_id"),
            player2_id=pairing.get("player2_id"),
            scheduled_at=scheduled_at,
            status=STATUS_SCHEDULED if scheduled_at else STATUS_PENDING,
        )
        session.add(battle)
        battles.append(battle)

    session.flush()  # assign ids for the announcement
    notifier.queue(
        uow,
        TournamentRoundCreated(
            tournament_id=tournament.id,
            round=round_number,
            battles=[battle_summary(b) for b in battles],
        ),
    )
    uow.commit()
    for battle in battles:
        session.refresh(battle)
    logger.info(f"Created round {round_number} with {len(battles)} battle(s) for tournament {tournament.id}")
    return battles
