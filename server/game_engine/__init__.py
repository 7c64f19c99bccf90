"""
Game engine package.
"""
from .cards import Card, CardDeck, create_deck, shuffle
from .player import Barn, Pig, Player
from .rules import ActionResult, CardEffect, CardResolver, ValidationResult, check_winner
from .game import Game
from .errors import (
    GameEngineError,
    InsufficientCardsError,
    InvariantViolation,
    NoCardsAvailableError,
)

__all__ = [
    "Card",
    "CardDeck",
    "create_deck",
    "shuffle",
    "Barn",
    "Pig",
    "Player",
    "ActionResult",
    "CardEffect",
    "CardResolver",
    "ValidationResult",
    "check_winner",
    "Game",
    "GameEngineError",
    "InsufficientCardsError",
    "InvariantViolation",
    "NoCardsAvailableError",
]
