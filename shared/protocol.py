"""
Message protocol for client-server communication.

All messages are JSON objects with a "type" field and optional "data" field.
"""

from dataclasses import dataclass, field
from typing import Any
import json

from shared.enums import MessageType


class UnknownMessageTypeError(ValueError):
    """The frame is well formed but names no known message type."""

    def __init__(self, message_type: Any, request_id: str | None = None):
        super().__init__(f"Unknown message type: {message_type}")
        self.message_type = message_type
        self.request_id = request_id


@dataclass
class Message:
    """Base message structure for all client-server communication."""
    type: MessageType
    data: dict[str, Any] = field(default_factory=dict)
    request_id: str | None = None  # Optional, for matching requests to responses

    def to_json(self) -> str:
        """Serialize message to JSON string."""
        return json.dumps(self.to_dict())

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "type": self.type.value,
            "data": self.data,
            "request_id": self.request_id,
        }

    @classmethod
    def from_json(cls, json_str: str) -> "Message":
        """Deserialize message from JSON string."""
        raw = json.loads(json_str)
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, raw: dict) -> "Message":
        """
        Create message from dictionary.

        Raises:
            ValueError: the frame or its data is not a JSON object
            UnknownMessageTypeError: the type field is missing or unknown
        """
        if not isinstance(raw, dict):
            raise ValueError("message must be a JSON object")

        data = raw.get("data")
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValueError("data must be a JSON object")

        try:
            message_type = MessageType(raw.get("type"))
        except ValueError:
            raise UnknownMessageTypeError(raw.get("type"), raw.get("request_id")) from None

        return cls(
            type=message_type,
            data=data,
            request_id=raw.get("request_id"),
        )


@dataclass
class ErrorMessage(Message):
    """Error response message, sent only to the requester."""
    type: MessageType = MessageType.ERROR

    @classmethod
    def create(cls, message: str, code: str = "ERROR", request_id: str | None = None) -> "ErrorMessage":
        """Create an error message."""
        return cls(
            data={"message": message, "code": code},
            request_id=request_id,
        )


@dataclass
class JoinErrorMessage(Message):
    """Sent to a player whose join request was refused."""
    type: MessageType = MessageType.JOIN_ERROR

    @classmethod
    def create(cls, message: str, code: str = "JOIN_FAILED") -> "JoinErrorMessage":
        return cls(data={"message": message, "code": code})


# =============================================================================
# Server Response/Broadcast Messages (Server -> Client)
# =============================================================================

@dataclass
class ConnectedMessage(Message):
    """First frame on every connection, carrying the assigned player id."""
    type: MessageType = MessageType.CONNECTED

    @classmethod
    def create(cls, player_id: str) -> "ConnectedMessage":
        return cls(data={"playerId": player_id})


@dataclass
class PongMessage(Message):
    type: MessageType = MessageType.PONG

    @classmethod
    def create(cls) -> "PongMessage":
        return cls()


@dataclass
class GamesListMessage(Message):
    """List of rooms still waiting for players."""
    type: MessageType = MessageType.GAMES_LIST

    @classmethod
    def create(cls, games: list[dict]) -> "GamesListMessage":
        return cls(data={"games": games})


@dataclass
class GameCreatedMessage(Message):
    """Sent to the creator of a room."""
    type: MessageType = MessageType.GAME_CREATED

    @classmethod
    def create(cls, room_id: str, room: dict) -> "GameCreatedMessage":
        return cls(data={"roomId": room_id, "room": room})


@dataclass
class RoomStateMessage(Message):
    """Lobby view of a room: members, readiness, owner."""
    type: MessageType = MessageType.ROOM_STATE

    @classmethod
    def create(cls, room_state: dict) -> "RoomStateMessage":
        return cls(data=room_state)


@dataclass
class RoomUpdatedMessage(Message):
    """Broadcast to the remaining members when someone leaves."""
    type: MessageType = MessageType.ROOM_UPDATED

    @classmethod
    def create(cls, players: list[dict], owner: str | None, game_mode: str) -> "RoomUpdatedMessage":
        return cls(data={
            "players": players,
            "owner": owner,
            "gameMode": game_mode,
        })


@dataclass
class GameStartedMessage(Message):
    """Initial projected state, one per recipient."""
    type: MessageType = MessageType.GAME_STARTED

    @classmethod
    def create(cls, game_state: dict, room_id: str, game_mode: str, status: str) -> "GameStartedMessage":
        data = dict(game_state)
        data.update({
            "roomId": room_id,
            "gameMode": game_mode,
            "status": status,
            "currentPlayerIndex": game_state.get("currentPlayerIndex", 0),
        })
        return cls(data=data)


@dataclass
class GameStateUpdatedMessage(Message):
    """Projected game state for a single recipient."""
    type: MessageType = MessageType.GAME_STATE_UPDATED

    @classmethod
    def create(cls, game_state: dict, request_id: str | None = None) -> "GameStateUpdatedMessage":
        return cls(data=game_state, request_id=request_id)


@dataclass
class CardDrawnMessage(Message):
    """Broadcast when a card is drawn. The card itself is never included."""
    type: MessageType = MessageType.CARD_DRAWN

    @classmethod
    def create(cls, player_id: str, hand_count: int) -> "CardDrawnMessage":
        return cls(data={"playerId": player_id, "handCount": hand_count})


@dataclass
class CardDiscardedMessage(Message):
    """Broadcast when a card is discarded face up."""
    type: MessageType = MessageType.CARD_DISCARDED

    @classmethod
    def create(
        cls,
        player_id: str,
        card: dict,
        hand_count: int,
        actions_remaining: int
    ) -> "CardDiscardedMessage":
        return cls(data={
            "playerId": player_id,
            "card": card,
            "handCount": hand_count,
            "actionsRemaining": actions_remaining,
        })


@dataclass
class CardPlayedMessage(Message):
    """Broadcast when a card is played, with its effect descriptor."""
    type: MessageType = MessageType.CARD_PLAYED

    @classmethod
    def create(
        cls,
        player_id: str,
        card: dict,
        target_pig_id: str | None,
        target_player_id: str | None,
        effect: dict
    ) -> "CardPlayedMessage":
        return cls(data={
            "playerId": player_id,
            "card": card,
            "targetPigId": target_pig_id,
            "targetPlayerId": target_player_id,
            "effect": effect,
        })


@dataclass
class TurnEndedMessage(Message):
    type: MessageType = MessageType.TURN_ENDED

    @classmethod
    def create(cls, player_id: str) -> "TurnEndedMessage":
        return cls(data={"playerId": player_id})


@dataclass
class TurnStartedMessage(Message):
    type: MessageType = MessageType.TURN_STARTED

    @classmethod
    def create(cls, player_id: str, turn_count: int) -> "TurnStartedMessage":
        return cls(data={"playerId": player_id, "turnCount": turn_count})


@dataclass
class GameEndedMessage(Message):
    """Broadcast when the game is over."""
    type: MessageType = MessageType.GAME_ENDED

    @classmethod
    def create(cls, winner: dict | None, reason: str = "win") -> "GameEndedMessage":
        return cls(data={"winner": winner, "reason": reason})


# =============================================================================
# Helper function for parsing incoming messages
# =============================================================================

def parse_message(json_str: str) -> Message:
    """
    Parse a JSON string into a Message.

    Returns the base Message class. The message handler uses the type
    field to determine how to process it.
    """
    return Message.from_json(json_str)
