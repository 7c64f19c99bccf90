"""
Player, pig and barn state.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from shared.constants import HIDDEN_CARD, PIGS_PER_PLAYER
from shared.enums import PigStatus

from .cards import Card


@dataclass
class Barn:
    """A barn attached to a pig. Rod and lock are independent flags."""

    has_lightning_rod: bool = False
    is_locked: bool = False

    def to_dict(self) -> dict:
        return {
            "hasLightningRod": self.has_lightning_rod,
            "isLocked": self.is_locked,
        }


@dataclass
class Pig:
    """One of a player's pigs."""

    id: str
    status: PigStatus = PigStatus.CLEAN
    barn: Optional[Barn] = None

    @property
    def is_locked_in(self) -> bool:
        """True if the pig sits in a locked barn."""
        return self.barn is not None and self.barn.is_locked

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "status": self.status.value,
            "barn": self.barn.to_dict() if self.barn else None,
        }


def pig_id(player_id: str, index: int) -> str:
    """Stable pig id derived from the owning player and seat index."""
    return f"{player_id}-pig-{index}"


@dataclass
class Player:
    """Represents a player in a room."""

    id: str
    name: str
    ready: bool = False
    hand: List[Card] = field(default_factory=list)
    pigs: List[Pig] = field(default_factory=list)

    def reset_pigs(self, count: int = PIGS_PER_PLAYER) -> None:
        """Give the player a fresh set of clean pigs without barns."""
        self.pigs = [Pig(id=pig_id(self.id, i)) for i in range(count)]

    def get_pig(self, target_pig_id: str) -> Optional[Pig]:
        """Find one of this player's pigs by exact id."""
        for pig in self.pigs:
            if pig.id == target_pig_id:
                return pig
        return None

    def find_card(self, card_id: str) -> Optional[Card]:
        """Find a card in hand by id."""
        for card in self.hand:
            if card.id == card_id:
                return card
        return None

    def remove_card(self, card_id: str) -> Optional[Card]:
        """Take a card out of the hand, or None if it isn't there."""
        card = self.find_card(card_id)
        if card is not None:
            self.hand.remove(card)
        return card

    def all_pigs(self, status: PigStatus) -> bool:
        """True if the player has pigs and every one has the given status."""
        return bool(self.pigs) and all(pig.status == status for pig in self.pigs)

    def to_lobby_dict(self) -> dict:
        """Membership view used before the game starts."""
        return {
            "id": self.id,
            "name": self.name,
            "ready": self.ready,
        }

    def to_dict(self, reveal_hand: bool = True) -> dict:
        """
        Convert player to dictionary.

        With reveal_hand False the hand is replaced by opaque placeholders,
        one per card, carrying neither id nor type.
        """
        if reveal_hand:
            hand = [card.to_dict() for card in self.hand]
        else:
            hand = [dict(HIDDEN_CARD) for _ in self.hand]

        return {
            "id": self.id,
            "name": self.name,
            "ready": self.ready,
            "hand": hand,
            "handCount": len(self.hand),
            "pigs": [pig.to_dict() for pig in self.pigs],
        }
