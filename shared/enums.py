"""
Enumerations used throughout the game.
"""
from enum import Enum


class CardType(str, Enum):
    """Types of cards in the deck."""
    MUD = "mud"
    BARN = "barn"
    BATH = "bath"
    RAIN = "rain"
    LIGHTNING = "lightning"
    LIGHTNING_ROD = "lightning_rod"
    BARN_LOCK = "barn_lock"

    # Expansion pack
    BEAUTIFUL_PIG = "beautiful_pig"
    ESCAPE = "escape"
    LUCKY_BIRD = "lucky_bird"


class PigStatus(str, Enum):
    """State of a single pig."""
    CLEAN = "clean"
    DIRTY = "dirty"
    BEAUTIFUL = "beautiful"


class GameMode(str, Enum):
    """Deck recipe and win rules."""
    BASIC = "basic"
    EXPANSION = "expansion"


class RoomStatus(str, Enum):
    """Lifecycle of a room."""
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


class GamePhase(str, Enum):
    """Phase of an embedded game."""
    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"


class EffectType(str, Enum):
    """Kinds of effect descriptors produced by a played card."""
    STATUS_CHANGE = "STATUS_CHANGE"
    ADD_BARN = "ADD_BARN"
    DESTROY_BARN = "DESTROY_BARN"
    ADD_LIGHTNING_ROD = "ADD_LIGHTNING_ROD"
    LOCK_BARN = "LOCK_BARN"
    RAIN = "RAIN"
    LUCKY_BIRD = "LUCKY_BIRD"


class MessageType(str, Enum):
    """Types of messages between client and server."""
    # Connection
    CONNECTED = "connected"
    PING = "ping"
    PONG = "pong"

    # Lobby
    GET_GAMES = "getGames"
    GAMES_LIST = "gamesList"
    CREATE_GAME = "createGame"
    GAME_CREATED = "gameCreated"
    JOIN_ROOM = "joinRoom"
    JOIN_ERROR = "joinError"
    ROOM_STATE = "roomState"
    TOGGLE_READY = "toggleReady"
    LEAVE_ROOM = "leaveRoom"
    ROOM_UPDATED = "roomUpdated"

    # Game flow
    START_GAME = "startGame"
    GAME_STARTED = "gameStarted"
    GET_STATE = "getState"
    GAME_STATE_UPDATED = "gameStateUpdated"
    GAME_ENDED = "gameEnded"

    # Turn actions
    DRAW_CARD = "drawCard"
    CARD_DRAWN = "cardDrawn"
    DISCARD_CARD = "discardCard"
    CARD_DISCARDED = "cardDiscarded"
    PLAY_CARD = "playCard"
    CARD_PLAYED = "cardPlayed"
    END_TURN = "endTurn"
    TURN_ENDED = "turnEnded"
    TURN_STARTED = "turnStarted"

    # Errors
    ERROR = "error"
