"""
Card definitions and deck management.
"""
import random
from dataclasses import dataclass, field
from typing import List, Sequence

from shared.constants import BASIC_CARDS, EXPANSION_CARDS, CARDS_PER_HAND
from shared.enums import CardType, GameMode

from .errors import InsufficientCardsError, NoCardsAvailableError


@dataclass(frozen=True)
class Card:
    """A single card. Cards move between zones but are never copied."""

    id: str
    type: CardType

    def to_dict(self) -> dict:
        """Convert card to dictionary."""
        return {"id": self.id, "type": self.type.value}


def card_recipe(game_mode: GameMode) -> list[tuple[CardType, int]]:
    """Fixed supply of each card type for a game mode."""
    recipe = [(CardType(name), count) for name, count in BASIC_CARDS]
    if game_mode == GameMode.EXPANSION:
        recipe += [(CardType(name), count) for name, count in EXPANSION_CARDS]
    return recipe


def create_deck(game_mode: GameMode) -> List[Card]:
    """
    Build the unshuffled deck for a game mode.

    Card ids are "{type}-{index}", unique within one deck.
    """
    return [
        Card(id=f"{card_type.value}-{i}", type=card_type)
        for card_type, count in card_recipe(game_mode)
        for i in range(count)
    ]


def shuffle(cards: List[Card], rng: random.Random | None = None) -> List[Card]:
    """Shuffle cards in place (Fisher-Yates) and return the same list."""
    (rng or random).shuffle(cards)
    return cards


@dataclass
class CardDeck:
    """Draw pile and discard pile for one game."""

    game_mode: GameMode = GameMode.BASIC
    cards: List[Card] = field(default_factory=list)
    discard: List[Card] = field(default_factory=list)
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def reset(self) -> None:
        """Reset to a freshly shuffled full deck."""
        self.cards = shuffle(create_deck(self.game_mode), self.rng)
        self.discard = []

    @property
    def total(self) -> int:
        """Number of cards the recipe for this mode contains."""
        return sum(count for _, count in card_recipe(self.game_mode))

    def deal(self, hands: Sequence[List[Card]], cards_per_hand: int = CARDS_PER_HAND) -> None:
        """
        Deal opening hands from the top (end) of the deck, in seat order.

        Raises:
            InsufficientCardsError: the deck is too short; nothing is dealt
        """
        needed = len(hands) * cards_per_hand
        if len(self.cards) < needed:
            raise InsufficientCardsError(needed, len(self.cards))

        for hand in hands:
            for _ in range(cards_per_hand):
                hand.append(self.cards.pop())

    def reshuffle(self) -> None:
        """Move the discard pile into the empty deck and shuffle it."""
        self.cards = shuffle(self.discard, self.rng)
        self.discard = []

    def draw(self) -> Card:
        """
        Draw the top card, reshuffling the discard pile if the deck is empty.

        Raises:
            NoCardsAvailableError: deck and discard pile are both empty
        """
        if not self.cards:
            if not self.discard:
                raise NoCardsAvailableError()
            self.reshuffle()

        return self.cards.pop()

    def discard_card(self, card: Card) -> None:
        """Place a card face up on the discard pile."""
        self.discard.append(card)

    def to_dict(self) -> dict:
        """Public view of the piles: deck order stays hidden."""
        return {
            "deckCount": len(self.cards),
            "discardPile": [card.to_dict() for card in self.discard],
        }
