"""
Room registry: the single authoritative store of rooms.

Manages room lifecycle: creation, joining, readiness, starting, leaving
and reaping of stale rooms. One registry is owned by the server and
passed to the message handler; tests create as many as they need.
"""

import logging
import random
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from server.game_engine import (
    ActionResult,
    Game,
    InsufficientCardsError,
    Player,
    ValidationResult,
)
from shared.constants import MAX_PLAYERS, MIN_PLAYERS, ROOM_TTL_SECONDS
from shared.enums import GameMode, RoomStatus


logger = logging.getLogger(__name__)


@dataclass
class Room:
    """A session grouping players for one game."""
    id: str
    owner_id: str | None
    game_mode: GameMode = GameMode.BASIC
    max_players: int = MAX_PLAYERS
    players: list[Player] = field(default_factory=list)
    game: Game | None = None
    created_at: float = field(default_factory=time.time)

    @property
    def status(self) -> RoomStatus:
        if self.game is None:
            return RoomStatus.WAITING
        if self.game.is_finished:
            return RoomStatus.FINISHED
        return RoomStatus.PLAYING

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def is_full(self) -> bool:
        return self.player_count >= self.max_players

    @property
    def is_empty(self) -> bool:
        return not self.players

    def get_player(self, player_id: str) -> Player | None:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    def has_player(self, player_id: str) -> bool:
        return self.get_player(player_id) is not None

    @property
    def player_ids(self) -> list[str]:
        return [player.id for player in self.players]

    def to_lobby_dict(self) -> dict[str, Any]:
        """Room state as shown in the waiting room."""
        return {
            "id": self.id,
            "players": [player.to_lobby_dict() for player in self.players],
            "owner": self.owner_id,
            "gameMode": self.game_mode.value,
            "maxPlayers": self.max_players,
            "status": self.status.value,
        }

    def to_summary(self) -> dict[str, Any]:
        """Entry in the lobby games list."""
        return {
            "id": self.id,
            "playerCount": self.player_count,
            "maxPlayers": self.max_players,
            "gameMode": self.game_mode.value,
            "owner": self.owner_id,
            "status": self.status.value,
        }


class RoomRegistry:
    """
    In-memory store of all rooms, keyed by room id.

    Provides methods for:
    - Creating rooms and joining players to them
    - Tracking readiness and starting games
    - Removing players, handing ownership on, deleting empty rooms
    - Reaping rooms that never started
    """

    def __init__(
        self,
        min_players: int = MIN_PLAYERS,
        max_players: int = MAX_PLAYERS,
        room_ttl: float = ROOM_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ):
        # room_id -> Room
        self._rooms: dict[str, Room] = {}

        self.min_players = min_players
        self.max_players = max_players
        self.room_ttl = room_ttl
        self._clock = clock
        self._rng = rng

    def __len__(self) -> int:
        return len(self._rooms)

    def __iter__(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    # =========================================================================
    # Room Creation
    # =========================================================================

    def create_room(
        self,
        owner_id: str,
        game_mode: str | GameMode = GameMode.BASIC,
        max_players: int | None = None,
        owner_name: str | None = None,
    ) -> tuple[ValidationResult, Room | None]:
        """
        Create a new room with the owner seated first.

        Returns:
            Tuple of (validation result, Room or None)
        """
        try:
            mode = GameMode(game_mode)
        except ValueError:
            return ValidationResult.failure(
                ActionResult.INVALID_GAME_MODE, f"Unknown game mode: {game_mode}"
            ), None

        if max_players is None:
            max_players = self.max_players
        if not self.min_players <= max_players <= self.max_players:
            return ValidationResult.failure(
                ActionResult.INVALID_MAX_PLAYERS,
                f"Rooms hold between {self.min_players} and {self.max_players} players",
            ), None

        room = Room(
            id=uuid.uuid4().hex[:10],
            owner_id=owner_id,
            game_mode=mode,
            max_players=max_players,
            created_at=self._clock(),
        )
        room.players.append(Player(id=owner_id, name=owner_name or "Player 1"))

        self._rooms[room.id] = room

        logger.info(f"Room {room.id} ({mode.value}, max {max_players}) created by {owner_id}")

        return ValidationResult.success("Room created"), room

    # =========================================================================
    # Joining and Leaving
    # =========================================================================

    def join_room(
        self,
        room_id: str,
        player_id: str,
        player_name: str,
    ) -> tuple[ValidationResult, Room | None]:
        """
        Seat a player in a waiting room. Joining a room you are already
        in succeeds without changes.

        Returns:
            Tuple of (validation result, Room or None)
        """
        room = self._rooms.get(room_id)
        if not room:
            return ValidationResult.failure(ActionResult.ROOM_NOT_FOUND, "Room not found"), None

        if room.has_player(player_id):
            return ValidationResult.success("Already in room"), room

        if room.is_full:
            return ValidationResult.failure(ActionResult.ROOM_FULL, "Room is full"), None

        if room.status != RoomStatus.WAITING:
            return ValidationResult.failure(
                ActionResult.ALREADY_STARTED, "Game has already started"
            ), None

        room.players.append(Player(id=player_id, name=player_name))

        logger.info(f"Player {player_name} ({player_id}) joined room {room_id}")

        return ValidationResult.success(f"{player_name} joined the room"), room

    def set_ready(
        self,
        room_id: str,
        player_id: str,
        ready: bool,
    ) -> tuple[ValidationResult, Room | None]:
        """Mark a seated player ready or not ready."""
        room = self._rooms.get(room_id)
        if not room:
            return ValidationResult.failure(ActionResult.ROOM_NOT_FOUND, "Room not found"), None

        player = room.get_player(player_id)
        if not player:
            return ValidationResult.failure(ActionResult.NOT_IN_ROOM, "You are not in this room"), None

        if room.status != RoomStatus.WAITING:
            return ValidationResult.failure(
                ActionResult.ALREADY_STARTED, "Game has already started"
            ), None

        player.ready = bool(ready)
        return ValidationResult.success(), room

    def leave(self, room_id: str, player_id: str) -> tuple[ValidationResult, Room | None]:
        """
        Remove a player from a room.

        Ownership passes to whoever is now seated first. A room left
        empty is deleted; check `room.is_empty` on the returned room.

        Returns:
            Tuple of (validation result, Room or None)
        """
        room = self._rooms.get(room_id)
        if not room:
            return ValidationResult.failure(ActionResult.ROOM_NOT_FOUND, "Room not found"), None

        if not room.has_player(player_id):
            return ValidationResult.failure(ActionResult.NOT_IN_ROOM, "You are not in this room"), None

        if room.game is not None:
            room.game.remove_player(player_id)
        else:
            room.players = [player for player in room.players if player.id != player_id]

        if room.is_empty:
            room.owner_id = None
            del self._rooms[room_id]
            logger.info(f"Room {room_id} removed after its last player left")
        elif room.owner_id == player_id:
            room.owner_id = room.players[0].id
            logger.info(f"Ownership of room {room_id} passed to {room.owner_id}")

        logger.info(f"Player {player_id} left room {room_id}")

        return ValidationResult.success("Left room"), room

    def leave_all(self, player_id: str) -> list[Room]:
        """Remove a player from every room they are in (used on disconnect)."""
        left = []
        for room in self.rooms_for_player(player_id):
            result, updated = self.leave(room.id, player_id)
            if result.valid:
                left.append(updated)
        return left

    # =========================================================================
    # Game Flow
    # =========================================================================

    def start_game(self, room_id: str, requester_id: str) -> tuple[ValidationResult, Room | None]:
        """
        Start the game (owner only, everyone ready).

        Returns:
            Tuple of (validation result, Room or None)
        """
        room = self._rooms.get(room_id)
        if not room:
            return ValidationResult.failure(ActionResult.ROOM_NOT_FOUND, "Room not found"), None

        if requester_id != room.owner_id:
            return ValidationResult.failure(
                ActionResult.NOT_OWNER, "Only the room owner can start the game"
            ), None

        if room.status != RoomStatus.WAITING:
            return ValidationResult.failure(
                ActionResult.ALREADY_STARTED, "Game has already started"
            ), None

        if room.player_count < self.min_players:
            return ValidationResult.failure(
                ActionResult.TOO_FEW_PLAYERS,
                f"Need at least {self.min_players} players to start",
            ), None

        if not all(player.ready for player in room.players):
            return ValidationResult.failure(
                ActionResult.NOT_ALL_READY, "All players must be ready"
            ), None

        game = Game(
            players=room.players,
            game_mode=room.game_mode,
            rng=self._rng or random.Random(),
            min_players=self.min_players,
        )

        try:
            game.start()
        except InsufficientCardsError as e:
            logger.error(f"Could not deal room {room_id}: {e}")
            return ValidationResult.failure(ActionResult.NO_CARDS_AVAILABLE, e.message), None

        room.game = game

        logger.info(f"Game started in room {room_id} with {room.player_count} players")

        return ValidationResult.success("Game started!"), room

    # =========================================================================
    # Queries
    # =========================================================================

    def get_room(self, room_id: str) -> Room | None:
        """Get a room by ID."""
        return self._rooms.get(room_id)

    def rooms_for_player(self, player_id: str) -> list[Room]:
        """All rooms the player is seated in."""
        return [room for room in self._rooms.values() if room.has_player(player_id)]

    def list_waiting_rooms(self) -> list[dict[str, Any]]:
        """Summaries of rooms still waiting for players."""
        return [
            room.to_summary()
            for room in self._rooms.values()
            if room.status == RoomStatus.WAITING
        ]

    # =========================================================================
    # Cleanup
    # =========================================================================

    def reap(self) -> list[str]:
        """
        Delete rooms that are still waiting after the room TTL.

        Returns:
            IDs of the rooms removed
        """
        now = self._clock()
        stale = [
            room_id
            for room_id, room in self._rooms.items()
            if room.status == RoomStatus.WAITING and now - room.created_at > self.room_ttl
        ]
        for room_id in stale:
            del self._rooms[room_id]
            logger.info(f"Reaped stale room {room_id}")
        return stale

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self) -> dict[str, Any]:
        """Get registry statistics."""
        by_status = {status.value: 0 for status in RoomStatus}
        for room in self._rooms.values():
            by_status[room.status.value] += 1

        return {
            "total_rooms": len(self._rooms),
            "rooms_by_status": by_status,
            "total_players_in_rooms": sum(room.player_count for room in self._rooms.values()),
        }
