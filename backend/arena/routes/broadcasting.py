from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from arena.services.battle_events import presence_channel
from arena.services.broadcaster import presence_manager

router = APIRouter()


@router.websocket("/ws/tournaments/{tournament_id}")
async def tournament_presence(
    websocket: WebSocket,
    tournament_id: int,
    user_id: Optional[str] = None,
    name: Optional[str] = None,
):
    """
    Join the presence channel for a tournament.

    Who may observe a tournament is decided upstream; the member identity is
    taken from the query string as given.
    """
    channel = presence_channel(tournament_id)
    member = {"id": user_id, "name": name}
    await presence_manager.join(websocket, channel, member)
    try:
        while True:
            # Observers only listen; client frames are ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        await presence_manager.leave(websocket, channel)
