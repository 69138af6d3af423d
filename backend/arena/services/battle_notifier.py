"""Queues battle/round broadcasts on a unit of work so they go out after commit."""
import logging
from typing import List, Optional, Sequence

from arena.models.tournament_battle import TournamentBattle
from arena.services.battle_events import (
    BroadcastEvent,
    build_round_closed,
    detect_battle_event,
)
from arena.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class BattleNotifier:
    def __init__(self, broadcaster):
        self.broadcaster = broadcaster

    def deliver(self, event: BroadcastEvent) -> bool:
        """
        Publish one event now. Transport errors are logged, not raised.

        Returns:
            bool: True if the broadcaster accepted the event
        """
        channel = event.broadcast_on()
        try:
            self.broadcaster.publish(channel, event.broadcast_as, event.broadcast_with())
            return True
        except Exception:
            logger.exception(f"Failed to broadcast {event.broadcast_as} on {channel}")
            return False

    def queue(self, uow: UnitOfWork, event: BroadcastEvent) -> None:
        # Payload is built at delivery time, after commit
        uow.after_commit(lambda: self.deliver(event))

    def battle_updated(
        self,
        uow: UnitOfWork,
        previous_status: str,
        battle: TournamentBattle,
        round_battles: Optional[Sequence[TournamentBattle]] = None,
        later_round_exists: bool = False,
    ) -> List[BroadcastEvent]:
        """
        Queue the events caused by one battle update and return them.

        `round_battles` are all battles of the battle's round, including the
        updated one; when given, closing the round also queues a round-closed
        event. `later_round_exists` keeps that event from declaring the
        tournament complete.
        """
        event = detect_battle_event(previous_status, battle)
        if event is None:
            return []

        events: List[BroadcastEvent] = [event]
        if round_battles is not None:
            closed = build_round_closed(
                battle.tournament_id, battle.round, round_battles, later_round_exists
            )
            if closed is not None:
                events.append(closed)

        for e in events:
            self.queue(uow, e)
        logger.info(
            f"Battle {battle.id}: {previous_status} -> {battle.status}; "
            f"queued {', '.join(e.broadcast_as for e in events)}"
        )
        return events
