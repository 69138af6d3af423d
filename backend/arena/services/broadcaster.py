"""
Presence-channel broadcasting over websockets.

Observers join `tournament.{id}` over a websocket; the manager tracks who is
on each channel and fans event messages out to them. Sync request handlers
publish through `publish()`, which hands the send to the event loop that owns
the sockets.

With BROADCAST_DRIVER=log nothing is sent; messages are only logged.
"""
import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)

SUBSCRIPTION_SUCCEEDED = "pusher:subscription_succeeded"
MEMBER_ADDED = "pusher:member_added"
MEMBER_REMOVED = "pusher:member_removed"


def build_message(channel: str, event: str, data: Dict[str, Any]) -> Dict[str, Any]:
    return {"event": event, "channel": channel, "data": data}


class PresenceChannelManager:
    def __init__(self):
        # Maps channel -> {websocket: member info}
        self.channels: Dict[str, Dict[WebSocket, Dict[str, Any]]] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def members(self, channel: str) -> List[Dict[str, Any]]:
        return list(self.channels.get(channel, {}).values())

    async def join(self, websocket: WebSocket, channel: str, member: Dict[str, Any]) -> None:
        await websocket.accept()
        self._loop = asyncio.get_running_loop()
        others = self.channels.setdefault(channel, {})
        existing = list(others.keys())
        others[websocket] = member
        logger.info(f"Member {member.get('id')} joined {channel} ({len(others)} present)")

        await websocket.send_json(build_message(channel, SUBSCRIPTION_SUCCEEDED, {"members": self.members(channel)}))
        await self._send_all(channel, existing, build_message(channel, MEMBER_ADDED, member))

    async def leave(self, websocket: WebSocket, channel: str) -> None:
        connections = self.channels.get(channel)
        if not connections or websocket not in connections:
            return
        member = connections.pop(websocket)
        if not connections:
            del self.channels[channel]
        logger.info(f"Member {member.get('id')} left {channel}")
        await self.broadcast(channel, build_message(channel, MEMBER_REMOVED, member))

    async def broadcast(self, channel: str, message: Dict[str, Any]) -> None:
        """Send message to every socket on the channel"""
        await self._send_all(channel, list(self.channels.get(channel, {}).keys()), message)

    async def _send_all(self, channel: str, sockets: List[WebSocket], message: Dict[str, Any]) -> None:
        """Send to each socket; members whose socket fails are removed and announced."""
        dropped: List[Dict[str, Any]] = []
        for connection in sockets:
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.warning(f"Dropping dead connection on {channel}: {e}")
                connections = self.channels.get(channel)
                if connections is not None and connection in connections:
                    dropped.append(connections.pop(connection))
                    if not connections:
                        del self.channels[channel]

        for member in dropped:
            remaining = list(self.channels.get(channel, {}).keys())
            await self._send_all(channel, remaining, build_message(channel, MEMBER_REMOVED, member))

    def publish(self, channel: str, event: str, data: Dict[str, Any]) -> None:
        """
        Queue `event` for every member of `channel`.

        Callable from any thread. Raises RuntimeError when the event loop that
        owns the sockets is gone.
        """
        if not self.channels.get(channel):
            logger.info(f"Broadcast {event} on {channel}: no members present")
            return
        if self._loop is None or self._loop.is_closed():
            raise RuntimeError(f"Broadcast transport unavailable for {channel}")

        logger.info(f"Broadcast {event} on {channel} to {len(self.channels[channel])} member(s)")
        asyncio.run_coroutine_threadsafe(self.broadcast(channel, build_message(channel, event, data)), self._loop)


class LogBroadcaster:
    """Dry-run driver: logs what would have been broadcast."""

    def publish(self, channel: str, event: str, data: Dict[str, Any]) -> None:
        logger.info(f"[DRY RUN] Broadcast {event} on {channel}: {data}")


# Singleton instances
presence_manager = PresenceChannelManager()
_log_broadcaster = LogBroadcaster()


def get_broadcaster():
    """Broadcaster selected by BROADCAST_DRIVER ("websocket" or "log")."""
    driver = os.getenv("BROADCAST_DRIVER", "websocket").lower()
    if driver == "log":
        return _log_broadcaster
    return presence_manager
