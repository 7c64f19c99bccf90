"""
Connection manager for WebSocket clients.

Assigns each connection its player id and handles sending messages to
individual players, to a set of players, or to everyone connected.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable

from websockets.asyncio.server import ServerConnection

from shared.protocol import Message


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PlayerConnection:
    """Tracks a connected player's state."""
    player_id: str
    websocket: ServerConnection
    connected_at: datetime = field(default_factory=_utcnow)
    last_activity: datetime = field(default_factory=_utcnow)

    def update_activity(self) -> None:
        """Update last activity timestamp."""
        self.last_activity = _utcnow()


class ConnectionManager:
    """
    Manages WebSocket connections.

    The connection id handed out here is the player's identity for the
    lifetime of the socket. Registration and removal are synchronous so
    they complete within a single event-loop step.
    """

    def __init__(self):
        # websocket -> PlayerConnection
        self._connections: dict[ServerConnection, PlayerConnection] = {}

        # player_id -> websocket (for quick lookup)
        self._player_to_socket: dict[str, ServerConnection] = {}

    # =========================================================================
    # Connection Lifecycle
    # =========================================================================

    def connect(self, websocket: ServerConnection, player_id: str | None = None) -> PlayerConnection:
        """
        Register a new connection and assign it a player id.

        Returns:
            The PlayerConnection object
        """
        connection = PlayerConnection(
            player_id=player_id or uuid.uuid4().hex,
            websocket=websocket,
        )

        self._connections[websocket] = connection
        self._player_to_socket[connection.player_id] = websocket

        logger.info(f"Client connected: {connection.player_id}")

        return connection

    def disconnect(self, websocket: ServerConnection) -> PlayerConnection | None:
        """
        Forget a connection.

        Returns:
            The PlayerConnection if found, None otherwise
        """
        connection = self._connections.pop(websocket, None)

        if connection:
            self._player_to_socket.pop(connection.player_id, None)
            logger.info(f"Client disconnected: {connection.player_id}")

        return connection

    # =========================================================================
    # Queries
    # =========================================================================

    def get_connection(self, websocket: ServerConnection) -> PlayerConnection | None:
        """Get connection info for a websocket."""
        return self._connections.get(websocket)

    def is_player_connected(self, player_id: str) -> bool:
        """Check if a player is currently connected."""
        return player_id in self._player_to_socket

    # =========================================================================
    # Messaging
    # =========================================================================

    async def send_to_player(self, player_id: str, message: Message | dict | str) -> bool:
        """
        Send a message to a specific player.

        Returns:
            True if sent successfully, False if player not connected
        """
        websocket = self._player_to_socket.get(player_id)
        if not websocket:
            return False

        return await self._send_to_websocket(websocket, message)

    async def send_to_connection(
        self,
        websocket: ServerConnection,
        message: Message | dict | str
    ) -> bool:
        """
        Send a message to a specific websocket connection.

        Returns:
            True if sent successfully, False on error
        """
        return await self._send_to_websocket(websocket, message)

    async def send_to_players(
        self,
        player_ids: Iterable[str],
        message: Message | dict | str
    ) -> int:
        """
        Send the same message to several players (e.g. everyone in a room).

        Returns:
            Number of players the message was sent to
        """
        sent_count = 0
        for player_id in player_ids:
            if await self.send_to_player(player_id, message):
                sent_count += 1
        return sent_count

    async def broadcast_to_all(self, message: Message | dict | str) -> int:
        """
        Broadcast a message to all connected players.

        Returns:
            Number of players the message was sent to
        """
        sent_count = 0
        for websocket in list(self._connections.keys()):
            if await self._send_to_websocket(websocket, message):
                sent_count += 1
        return sent_count

    async def _send_to_websocket(
        self,
        websocket: ServerConnection,
        message: Message | dict | str
    ) -> bool:
        """Internal helper to send a message to a websocket."""
        try:
            if isinstance(message, Message):
                data = message.to_json()
            elif isinstance(message, dict):
                data = json.dumps(message)
            else:
                data = message

            await websocket.send(data)

            # Update activity timestamp
            connection = self._connections.get(websocket)
            if connection:
                connection.update_activity()

            return True

        except Exception as e:
            logger.error(f"Failed to send message: {e}")
            return False

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self) -> dict[str, Any]:
        """Get connection statistics."""
        return {
            "total_connections": len(self._connections),
            "total_players": len(self._player_to_socket),
        }
