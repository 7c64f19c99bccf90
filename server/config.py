"""
Server configuration loaded from environment variables.
"""
import os
from dotenv import load_dotenv

from shared.constants import MAX_PLAYERS, MIN_PLAYERS, ROOM_TTL_SECONDS

load_dotenv()

class Config:
    """Server configuration."""

    # Server settings
    HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
    PORT: int = int(os.getenv("SERVER_PORT", "8765"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Periodic tasks (seconds)
    LOBBY_BROADCAST_INTERVAL: float = float(os.getenv("LOBBY_BROADCAST_INTERVAL", "5"))
    REAP_INTERVAL: float = float(os.getenv("REAP_INTERVAL", "3600"))
    ROOM_TTL: float = float(os.getenv("ROOM_TTL", str(ROOM_TTL_SECONDS)))

    # Game settings
    MIN_PLAYERS: int = int(os.getenv("MIN_PLAYERS", str(MIN_PLAYERS)))
    MAX_PLAYERS: int = int(os.getenv("MAX_PLAYERS", str(MAX_PLAYERS)))


config = Config()
settings = config  # Alias for backward compatibility
