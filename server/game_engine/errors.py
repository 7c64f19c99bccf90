"""
Exceptions raised by the deck and game primitives.

Rule violations are not exceptions; they come back as a failed
ValidationResult. These cover the cases a caller cannot express as
a normal refusal.
"""


class GameEngineError(Exception):
    """Base exception for game engine errors."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class InsufficientCardsError(GameEngineError):
    """The deck cannot supply a full opening hand to every player."""

    def __init__(self, needed: int, available: int):
        super().__init__(
            "INSUFFICIENT_CARDS",
            f"Need {needed} cards to deal but only {available} remain",
        )
        self.needed = needed
        self.available = available


class NoCardsAvailableError(GameEngineError):
    """Deck and discard pile are both empty."""

    def __init__(self):
        super().__init__("NO_CARDS_AVAILABLE", "No cards left in the deck or discard pile")


class InvariantViolation(GameEngineError):
    """Shared state no longer satisfies a data-model invariant."""

    def __init__(self, message: str):
        super().__init__("STATE_CORRUPTION", message)
