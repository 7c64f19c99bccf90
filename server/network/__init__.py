"""
Network layer for the pig game server.

Provides WebSocket server, connection management, room registry and
message handling.
"""

from server.network.connection_manager import ConnectionManager, PlayerConnection
from server.network.room_registry import Room, RoomRegistry
from server.network.message_handler import MessageHandler, HandleResult
from server.network.server import PigGameServer, run_server


__all__ = [
    "ConnectionManager",
    "PlayerConnection",
    "Room",
    "RoomRegistry",
    "MessageHandler",
    "HandleResult",
    "PigGameServer",
    "run_server",
]
