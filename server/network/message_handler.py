"""
Message handler for routing client messages to room and game actions.

Parses incoming messages, validates them, executes the appropriate
registry or game action, and describes the responses and broadcasts
the server must deliver.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from server.game_engine import Game, Player, ValidationResult
from server.network.room_registry import Room, RoomRegistry
from shared.enums import MessageType, RoomStatus
from shared.protocol import (
    Message,
    UnknownMessageTypeError,
    parse_message,
    ErrorMessage,
    JoinErrorMessage,
    PongMessage,
    GamesListMessage,
    GameCreatedMessage,
    RoomStateMessage,
    RoomUpdatedMessage,
    GameStateUpdatedMessage,
    CardDrawnMessage,
    CardDiscardedMessage,
    CardPlayedMessage,
    TurnEndedMessage,
    TurnStartedMessage,
    GameEndedMessage,
)


logger = logging.getLogger(__name__)


@dataclass
class HandleResult:
    """Result of handling a message."""
    # Response to send back to the requesting player only (None if no response needed)
    response: Message | None = None
    # Room whose current members receive the broadcasts below
    room_id: str | None = None
    # Messages to broadcast to every player in the room, requester included
    broadcasts: list[Message] = field(default_factory=list)
    # Whether to send each room member their own projection of the game state
    broadcast_state: bool = False
    # Send the projected state as gameStarted rather than gameStateUpdated
    game_started: bool = False
    # Messages broadcast to the room after the state
    after_state: list[Message] = field(default_factory=list)
    # Whether every connection should get a fresh games list
    refresh_lobby: bool = False


def _error(validation: ValidationResult) -> HandleResult:
    return HandleResult(response=ErrorMessage.create(validation.message, validation.code))


def _winner_payload(player: Player | None) -> dict | None:
    if player is None:
        return None
    return {
        "id": player.id,
        "name": player.name,
        "pigs": [pig.to_dict() for pig in player.pigs],
    }


class MessageHandler:
    """
    Routes incoming messages to appropriate room and game actions.

    Each handler method returns a HandleResult. Nothing is sent from
    here; state is fully mutated before the server awaits any send.
    Failed actions only ever produce a response to the requester.
    """

    def __init__(self, registry: RoomRegistry):
        self._rooms = registry

    async def handle_message(
        self,
        player_id: str,
        message: Message | str | dict
    ) -> HandleResult:
        """
        Handle an incoming message from a player.

        Args:
            player_id: Connection id of the sender
            message: The message (Message object, JSON string, or dict)

        Returns:
            HandleResult with response and broadcasts
        """
        # Parse message if needed
        if not isinstance(message, Message):
            try:
                if isinstance(message, str):
                    message = parse_message(message)
                else:
                    message = Message.from_dict(message)
            except UnknownMessageTypeError as e:
                return HandleResult(
                    response=ErrorMessage.create(str(e), "UNKNOWN_MESSAGE_TYPE", e.request_id)
                )
            except ValueError as e:
                logger.error(f"Failed to parse message: {e}")
                return HandleResult(
                    response=ErrorMessage.create(f"Invalid message format: {e}", "PARSE_ERROR")
                )

        # Route to appropriate handler
        handler = self._get_handler(message.type)
        if not handler:
            return HandleResult(
                response=ErrorMessage.create(
                    f"Unknown message type: {message.type.value}",
                    "UNKNOWN_MESSAGE_TYPE",
                    message.request_id
                )
            )

        try:
            result = await handler(player_id, message)

            # Preserve request_id in response
            if result.response and message.request_id:
                result.response.request_id = message.request_id

            return result

        except Exception as e:
            logger.exception(f"Error handling message {message.type}: {e}")
            return HandleResult(
                response=ErrorMessage.create(
                    f"Internal error: {e}",
                    "INTERNAL_ERROR",
                    message.request_id
                )
            )

    def _get_handler(self, message_type: MessageType):
        """Get the handler method for a message type."""
        handlers = {
            MessageType.PING: self._handle_ping,

            # Lobby
            MessageType.GET_GAMES: self._handle_get_games,
            MessageType.CREATE_GAME: self._handle_create_game,
            MessageType.JOIN_ROOM: self._handle_join_room,
            MessageType.TOGGLE_READY: self._handle_toggle_ready,
            MessageType.LEAVE_ROOM: self._handle_leave_room,
            MessageType.START_GAME: self._handle_start_game,

            # Game actions
            MessageType.DRAW_CARD: self._handle_draw_card,
            MessageType.DISCARD_CARD: self._handle_discard_card,
            MessageType.PLAY_CARD: self._handle_play_card,
            MessageType.END_TURN: self._handle_end_turn,

            # State query
            MessageType.GET_STATE: self._handle_get_state,
        }
        return handlers.get(message_type)

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def _get_room(self, message: Message) -> tuple[Room | None, HandleResult | None]:
        """Look up the room named in a message, or an error result."""
        room_id = message.data.get("roomId")
        if not room_id:
            return None, HandleResult(
                response=ErrorMessage.create("roomId is required", "MISSING_ROOM_ID")
            )

        room = self._rooms.get_room(room_id)
        if not room:
            return None, HandleResult(
                response=ErrorMessage.create("Room not found", "ROOM_NOT_FOUND")
            )

        return room, None

    def _get_active_game(
        self,
        player_id: str,
        message: Message
    ) -> tuple[Room | None, Game | None, HandleResult | None]:
        """Resolve the room and running game for a turn action."""
        claimed_id = message.data.get("playerId")
        if claimed_id and claimed_id != player_id:
            return None, None, HandleResult(
                response=ErrorMessage.create(
                    "playerId does not match this connection", "PLAYER_MISMATCH"
                )
            )

        room, error = self._get_room(message)
        if error:
            return None, None, error

        if not room.has_player(player_id):
            return None, None, HandleResult(
                response=ErrorMessage.create("You are not in this room", "NOT_IN_ROOM")
            )

        if room.status != RoomStatus.PLAYING:
            return None, None, HandleResult(
                response=ErrorMessage.create("The game is not in progress", "GAME_NOT_ACTIVE")
            )

        return room, room.game, None

    def _game_over_messages(self, game: Game) -> list[Message]:
        if not game.is_finished:
            return []
        return [GameEndedMessage.create(_winner_payload(game.winner), game.end_reason or "win")]

    # =========================================================================
    # Lobby Handlers
    # =========================================================================

    async def _handle_ping(self, player_id: str, message: Message) -> HandleResult:
        return HandleResult(response=PongMessage.create())

    async def _handle_get_games(self, player_id: str, message: Message) -> HandleResult:
        """Handle getGames request."""
        return HandleResult(
            response=GamesListMessage.create(self._rooms.list_waiting_rooms())
        )

    async def _handle_create_game(self, player_id: str, message: Message) -> HandleResult:
        """Handle createGame request."""
        game_mode = message.data.get("gameMode", "basic")
        player_name = message.data.get("playerName")

        try:
            max_players = int(message.data.get("maxPlayers", self._rooms.max_players))
        except (TypeError, ValueError):
            return HandleResult(
                response=ErrorMessage.create("maxPlayers must be a number", "INVALID_MAX_PLAYERS")
            )

        result, room = self._rooms.create_room(
            owner_id=player_id,
            game_mode=game_mode,
            max_players=max_players,
            owner_name=player_name,
        )

        if not result.valid:
            return _error(result)

        return HandleResult(
            response=GameCreatedMessage.create(room.id, room.to_lobby_dict()),
            refresh_lobby=True,
        )

    async def _handle_join_room(self, player_id: str, message: Message) -> HandleResult:
        """Handle joinRoom request."""
        room_id = message.data.get("roomId")
        player_name = message.data.get("playerName") or "Player"

        if not room_id:
            return HandleResult(
                response=JoinErrorMessage.create("roomId is required", "MISSING_ROOM_ID")
            )

        result, room = self._rooms.join_room(room_id, player_id, player_name)

        if not result.valid:
            return HandleResult(
                response=JoinErrorMessage.create(result.message, result.code)
            )

        return HandleResult(
            room_id=room.id,
            broadcasts=[RoomStateMessage.create(room.to_lobby_dict())],
            refresh_lobby=True,
        )

    async def _handle_toggle_ready(self, player_id: str, message: Message) -> HandleResult:
        """Handle toggleReady request."""
        room_id = message.data.get("roomId")
        if not room_id:
            return HandleResult(
                response=ErrorMessage.create("roomId is required", "MISSING_ROOM_ID")
            )

        ready = message.data.get("ready", True)
        if not isinstance(ready, bool):
            return HandleResult(
                response=ErrorMessage.create("ready must be true or false", "INVALID_READY")
            )

        result, room = self._rooms.set_ready(room_id, player_id, ready)

        if not result.valid:
            return _error(result)

        return HandleResult(
            room_id=room.id,
            broadcasts=[RoomStateMessage.create(room.to_lobby_dict())],
        )

    async def _handle_leave_room(self, player_id: str, message: Message) -> HandleResult:
        """Handle leaveRoom request."""
        room_id = message.data.get("roomId")
        if not room_id:
            return HandleResult(
                response=ErrorMessage.create("roomId is required", "MISSING_ROOM_ID")
            )

        result = self._leave(room_id, player_id)
        if result is None:
            return HandleResult(
                response=ErrorMessage.create("You are not in this room", "NOT_IN_ROOM")
            )
        return result

    def _leave(self, room_id: str, player_id: str) -> HandleResult | None:
        """Remove a player from one room and describe what the others see."""
        room = self._rooms.get_room(room_id)
        was_playing = room is not None and room.status == RoomStatus.PLAYING

        result, room = self._rooms.leave(room_id, player_id)
        if not result.valid:
            return None

        if room.is_empty:
            return HandleResult(refresh_lobby=True)

        handle = HandleResult(
            room_id=room.id,
            broadcasts=[
                RoomUpdatedMessage.create(
                    players=[player.to_lobby_dict() for player in room.players],
                    owner=room.owner_id,
                    game_mode=room.game_mode.value,
                )
            ],
            refresh_lobby=True,
        )

        if was_playing:
            handle.broadcast_state = True
            handle.after_state = self._game_over_messages(room.game)

        return handle

    def handle_disconnect(self, player_id: str) -> list[HandleResult]:
        """
        Treat a disconnect as leaving every room the player is in.

        Runs synchronously so no other handler can observe a half-removed
        player.
        """
        results = []
        for room in self._rooms.rooms_for_player(player_id):
            result = self._leave(room.id, player_id)
            if result is not None:
                results.append(result)
        return results

    async def _handle_start_game(self, player_id: str, message: Message) -> HandleResult:
        """Handle startGame request."""
        room_id = message.data.get("roomId")
        if not room_id:
            return HandleResult(
                response=ErrorMessage.create("roomId is required", "MISSING_ROOM_ID")
            )

        result, room = self._rooms.start_game(room_id, player_id)

        if not result.valid:
            return _error(result)

        return HandleResult(
            room_id=room.id,
            broadcast_state=True,
            game_started=True,
            refresh_lobby=True,
        )

    # =========================================================================
    # Game Action Handlers
    # =========================================================================

    async def _handle_draw_card(self, player_id: str, message: Message) -> HandleResult:
        """Handle drawCard request."""
        room, game, error = self._get_active_game(player_id, message)
        if error:
            return error

        result, _card = game.draw_card(player_id)
        if not result.valid:
            return _error(result)

        player = game.get_player(player_id)

        return HandleResult(
            room_id=room.id,
            broadcasts=[CardDrawnMessage.create(player_id, len(player.hand))],
            broadcast_state=True,
        )

    async def _handle_discard_card(self, player_id: str, message: Message) -> HandleResult:
        """Handle discardCard request."""
        room, game, error = self._get_active_game(player_id, message)
        if error:
            return error

        card_id = message.data.get("cardId")
        if not card_id:
            return HandleResult(
                response=ErrorMessage.create("cardId is required", "MISSING_CARD_ID")
            )

        result, card = game.discard_card(player_id, card_id)
        if not result.valid:
            return _error(result)

        player = game.get_player(player_id)

        return HandleResult(
            room_id=room.id,
            broadcasts=[
                CardDiscardedMessage.create(
                    player_id=player_id,
                    card=card.to_dict(),
                    hand_count=len(player.hand),
                    actions_remaining=game.actions_remaining,
                )
            ],
            broadcast_state=True,
        )

    async def _handle_play_card(self, player_id: str, message: Message) -> HandleResult:
        """Handle playCard request."""
        room, game, error = self._get_active_game(player_id, message)
        if error:
            return error

        card_id = message.data.get("cardId")
        if not card_id:
            return HandleResult(
                response=ErrorMessage.create("cardId is required", "MISSING_CARD_ID")
            )

        target_pig_id = message.data.get("targetPigId")
        target_player_id = message.data.get("targetPlayerId")

        card = game.get_player(player_id).find_card(card_id)
        result, effect = game.play_card(player_id, card_id, target_pig_id, target_player_id)
        if not result.valid:
            return _error(result)

        return HandleResult(
            room_id=room.id,
            broadcasts=[
                CardPlayedMessage.create(
                    player_id=player_id,
                    card=card.to_dict(),
                    target_pig_id=target_pig_id,
                    target_player_id=target_player_id,
                    effect=effect.to_dict(),
                )
            ],
            broadcast_state=True,
            after_state=self._game_over_messages(game),
        )

    async def _handle_end_turn(self, player_id: str, message: Message) -> HandleResult:
        """Handle endTurn request."""
        room, game, error = self._get_active_game(player_id, message)
        if error:
            return error

        result = game.end_turn(player_id)
        if not result.valid:
            return _error(result)

        return HandleResult(
            room_id=room.id,
            broadcasts=[
                TurnEndedMessage.create(player_id),
                TurnStartedMessage.create(game.current_player.id, game.turn_count),
            ],
            broadcast_state=True,
        )

    # =========================================================================
    # State Query Handler
    # =========================================================================

    async def _handle_get_state(self, player_id: str, message: Message) -> HandleResult:
        """Handle getState request (re-send the requester's projection)."""
        room, error = self._get_room(message)
        if error:
            return error

        if not room.has_player(player_id):
            return HandleResult(
                response=ErrorMessage.create("You are not in this room", "NOT_IN_ROOM")
            )

        if room.game is None:
            return HandleResult(response=RoomStateMessage.create(room.to_lobby_dict()))

        return HandleResult(
            response=GameStateUpdatedMessage.create(room.game.get_state_for_player(player_id))
        )

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_stats(self) -> dict[str, Any]:
        return self._rooms.get_stats()
