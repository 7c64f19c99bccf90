"""
WebSocket server for the pig card game.

Main entry point that ties together connection management,
the room registry, and message handling.
"""

import asyncio
import logging
import signal
from typing import Any

from websockets.asyncio.server import ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from server.network.connection_manager import ConnectionManager
from server.network.message_handler import HandleResult, MessageHandler
from server.network.room_registry import Room, RoomRegistry
from server.config import settings
from shared.protocol import (
    ConnectedMessage,
    ErrorMessage,
    GamesListMessage,
    GameStartedMessage,
    GameStateUpdatedMessage,
)


logger = logging.getLogger(__name__)


class PigGameServer:
    """
    WebSocket server for pig card game rooms.

    Handles client connections, routes messages, pushes the lobby list
    on a timer and reaps rooms that never started.
    """

    def __init__(
        self,
        host: str = None,
        port: int = None,
        registry: RoomRegistry | None = None,
        lobby_interval: float = None,
        reap_interval: float = None,
    ):
        self.host = host or settings.HOST
        self.port = port or settings.PORT
        self.lobby_interval = lobby_interval or settings.LOBBY_BROADCAST_INTERVAL
        self.reap_interval = reap_interval or settings.REAP_INTERVAL

        # Initialize managers
        self._connections = ConnectionManager()
        self._rooms = registry or RoomRegistry(
            min_players=settings.MIN_PLAYERS,
            max_players=settings.MAX_PLAYERS,
            room_ttl=settings.ROOM_TTL,
        )
        self._handler = MessageHandler(self._rooms)

        # Server state
        self._server = None
        self._running = False
        self._shutdown_event = asyncio.Event()
        self._tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Start the WebSocket server and its periodic tasks."""
        self._running = True
        self._shutdown_event.clear()

        self._server = await serve(
            self._handle_client,
            self.host,
            self.port,
            ping_interval=30,
            ping_timeout=10,
        )

        self._tasks = [
            asyncio.create_task(self._lobby_loop()),
            asyncio.create_task(self._reap_loop()),
        ]

        logger.info(f"Pig game server started on ws://{self.host}:{self.port}")

        # Wait for shutdown signal
        await self._shutdown_event.wait()

    async def stop(self) -> None:
        """Stop the server gracefully."""
        logger.info("Shutting down server...")
        self._running = False

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        if self._server:
            self._server.close()
            await self._server.wait_closed()

        self._shutdown_event.set()
        logger.info("Server stopped")

    def request_shutdown(self) -> None:
        """Request server shutdown (can be called from signal handler)."""
        asyncio.create_task(self.stop())

    # =========================================================================
    # Connection Handling
    # =========================================================================

    async def _handle_client(self, websocket: ServerConnection) -> None:
        """
        Handle a client connection.

        The connection is assigned a player id, told about it, and from
        then on messages are routed through the message handler.
        """
        connection = self._connections.connect(websocket)
        player_id = connection.player_id

        try:
            await self._connections.send_to_connection(
                websocket, ConnectedMessage.create(player_id)
            )

            # Handle messages until disconnect
            async for raw_message in websocket:
                if not self._running:
                    break

                await self._handle_message(websocket, player_id, raw_message)

        except ConnectionClosed:
            logger.debug(f"Connection closed for player {player_id}")
        except Exception as e:
            logger.exception(f"Error handling client {player_id}: {e}")
        finally:
            await self._handle_disconnect(websocket, player_id)

    async def _handle_message(
        self,
        websocket: ServerConnection,
        player_id: str,
        raw_message: str | bytes
    ) -> None:
        """Handle an incoming message from a connected player."""
        connection = self._connections.get_connection(websocket)
        if connection:
            connection.update_activity()

        if isinstance(raw_message, bytes):
            raw_message = raw_message.decode("utf-8", errors="replace")

        try:
            result = await self._handler.handle_message(player_id, raw_message)
            await self._deliver(player_id, result)

        except Exception as e:
            logger.exception(f"Error handling message from {player_id}: {e}")
            await self._connections.send_to_connection(
                websocket, ErrorMessage.create(f"Internal error: {e}", "INTERNAL_ERROR")
            )

    async def _handle_disconnect(self, websocket: ServerConnection, player_id: str) -> None:
        """Handle player disconnection: leave every room, then tell the others."""
        self._connections.disconnect(websocket)

        results = self._handler.handle_disconnect(player_id)
        for result in results:
            await self._deliver(player_id, result)

        if results:
            logger.info(f"Player {player_id} disconnected and left {len(results)} room(s)")

    # =========================================================================
    # Delivery
    # =========================================================================

    async def _deliver(self, player_id: str, result: HandleResult) -> None:
        """Send everything a HandleResult describes, in order."""
        # Send response to requester
        if result.response:
            await self._connections.send_to_player(player_id, result.response)

        room = self._rooms.get_room(result.room_id) if result.room_id else None

        if room:
            for broadcast in result.broadcasts:
                await self._connections.send_to_players(room.player_ids, broadcast)

            if result.broadcast_state and room.game:
                await self._broadcast_state_to_room(room, started=result.game_started)

            for broadcast in result.after_state:
                await self._connections.send_to_players(room.player_ids, broadcast)

        if result.refresh_lobby:
            await self.broadcast_lobby()

    async def _broadcast_state_to_room(self, room: Room, started: bool = False) -> None:
        """Send each room member their own projection of the game state."""
        for player_id in room.player_ids:
            state = room.game.get_state_for_player(player_id)
            if started:
                message = GameStartedMessage.create(
                    state, room.id, room.game_mode.value, room.status.value
                )
            else:
                message = GameStateUpdatedMessage.create(state)

            if not await self._connections.send_to_player(player_id, message):
                logger.debug(f"Could not send state to {player_id}")

    async def broadcast_lobby(self) -> int:
        """Push the list of waiting rooms to every connection."""
        return await self._connections.broadcast_to_all(
            GamesListMessage.create(self._rooms.list_waiting_rooms())
        )

    # =========================================================================
    # Periodic Tasks
    # =========================================================================

    async def _lobby_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.lobby_interval)
            try:
                await self.broadcast_lobby()
            except Exception as e:
                logger.exception(f"Lobby broadcast failed: {e}")

    async def _reap_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self.reap_interval)
            try:
                await self.reap_stale_rooms()
            except Exception as e:
                logger.exception(f"Room reap failed: {e}")

    async def reap_stale_rooms(self) -> list[str]:
        """Remove rooms that never started and refresh the lobby if any went."""
        reaped = self._rooms.reap()
        if reaped:
            logger.info(f"Reaped {len(reaped)} stale room(s)")
            await self.broadcast_lobby()
        return reaped

    def get_stats(self) -> dict[str, Any]:
        """Get server statistics."""
        return {
            "running": self._running,
            "connections": self._connections.get_stats(),
            "rooms": self._handler.get_stats(),
        }


async def run_server(host: str = None, port: int = None) -> None:
    """
    Run the pig game server.

    Sets up signal handlers for graceful shutdown.
    """
    server = PigGameServer(host, port)

    # Set up signal handlers
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, server.request_shutdown)

    try:
        await server.start()
    finally:
        # Clean up signal handlers
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.remove_signal_handler(sig)


def main():
    """Entry point for running the server."""
    # Configure logging
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    print(f"Starting pig game server on ws://{settings.HOST}:{settings.PORT}")
    print("Press Ctrl+C to stop")

    try:
        asyncio.run(run_server())
    except KeyboardInterrupt:
        print("\nServer stopped")


if __name__ == "__main__":
    main()
