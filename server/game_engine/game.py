"""
Game state and the turn/action state machine.
"""
import logging
import random
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional

from shared.constants import ACTIONS_PER_TURN, CARDS_PER_HAND, MIN_PLAYERS
from shared.enums import EffectType, GameMode, GamePhase

from .cards import Card, CardDeck
from .errors import InvariantViolation, NoCardsAvailableError
from .player import Player
from .rules import ActionResult, CardEffect, CardResolver, ValidationResult, check_winner


logger = logging.getLogger(__name__)


@dataclass
class Game:
    """
    Authoritative state of one game in progress.

    `players` is the room's own seat list; seat order is turn order.
    """

    players: List[Player] = field(default_factory=list)
    game_mode: GameMode = GameMode.BASIC
    rng: random.Random = field(default_factory=random.Random, repr=False)
    cards_per_hand: int = CARDS_PER_HAND
    min_players: int = MIN_PLAYERS

    # Turn state
    current_player_index: int = 0
    turn_count: int = 0
    actions_remaining: int = ACTIONS_PER_TURN
    last_action: Optional[dict] = None

    # Outcome
    phase: GamePhase = GamePhase.IN_PROGRESS
    winner_id: Optional[str] = None
    end_reason: Optional[str] = None

    deck: CardDeck = field(init=False)
    resolver: CardResolver = field(init=False, repr=False)

    def __post_init__(self):
        self.deck = CardDeck(game_mode=self.game_mode, rng=self.rng)
        self.resolver = CardResolver()

    @property
    def current_player(self) -> Optional[Player]:
        """Get the current player."""
        if not self.players:
            return None
        return self.players[self.current_player_index]

    @property
    def is_finished(self) -> bool:
        return self.phase == GamePhase.FINISHED

    @property
    def winner(self) -> Optional[Player]:
        return self.get_player(self.winner_id) if self.winner_id else None

    def get_player(self, player_id: str) -> Optional[Player]:
        for player in self.players:
            if player.id == player_id:
                return player
        return None

    # =========== Setup ===========

    def start(self) -> None:
        """
        Shuffle a full deck, give every player fresh pigs and deal hands.

        Raises:
            InsufficientCardsError: too many players for the deck
        """
        self.deck.reset()
        for player in self.players:
            player.hand = []
            player.reset_pigs()

        self.deck.deal([player.hand for player in self.players], self.cards_per_hand)

        self.current_player_index = 0
        self.turn_count = 0
        self.actions_remaining = ACTIONS_PER_TURN
        self.last_action = None
        self.phase = GamePhase.IN_PROGRESS
        self.winner_id = None
        self.end_reason = None

        self._check_conservation()
        logger.debug(
            f"Dealt {len(self.players)} hands, {len(self.deck.cards)} cards left in deck"
        )

    # =========== Validation helpers ===========

    def _validate_actor(self, player_id: str) -> Optional[ValidationResult]:
        """Common gate for every turn action: game live, player seated, their turn."""
        if self.is_finished:
            return ValidationResult.failure(ActionResult.GAME_NOT_ACTIVE, "The game is over")

        if self.get_player(player_id) is None:
            return ValidationResult.failure(ActionResult.NOT_IN_ROOM, "You are not in this game")

        current = self.current_player
        if current is None or current.id != player_id:
            return ValidationResult.failure(ActionResult.NOT_YOUR_TURN, "It's not your turn")

        return None

    # =========== Turn actions ===========

    def play_card(
        self,
        player_id: str,
        card_id: str,
        target_pig_id: Optional[str] = None,
        target_player_id: Optional[str] = None,
    ) -> tuple[ValidationResult, Optional[CardEffect]]:
        """
        Play a card from the current player's hand.

        On success the card moves to the discard pile, one action is used
        (lucky bird instead sets the actions left to the rest of the hand)
        and the win condition is checked.

        Returns:
            Tuple of (validation result, effect descriptor or None)
        """
        error = self._validate_actor(player_id)
        if error:
            return error, None

        if self.actions_remaining <= 0:
            return ValidationResult.failure(
                ActionResult.NO_ACTIONS_REMAINING, "No actions remaining this turn"
            ), None

        player = self.get_player(player_id)
        card = player.find_card(card_id)
        if card is None:
            return ValidationResult.failure(ActionResult.CARD_NOT_FOUND, "Card not in your hand"), None

        result, effect = self.resolver.resolve(
            self.players, card, player_id, target_pig_id, target_player_id
        )
        if not result.valid:
            return result, None

        player.remove_card(card.id)
        self.deck.discard_card(card)

        if effect.type == EffectType.LUCKY_BIRD:
            self.actions_remaining = effect.extra_actions
        else:
            self.actions_remaining = max(0, self.actions_remaining - 1)

        self.last_action = {
            "type": "playCard",
            "playerId": player_id,
            "card": card.to_dict(),
            "targetPigId": target_pig_id,
            "targetPlayerId": target_player_id or (player_id if target_pig_id else None),
        }

        logger.debug(f"{player.name} played {card.id}: {effect.type.value}")

        winner = check_winner(self.players, self.game_mode)
        if winner:
            self._finish(winner, "win")

        self._check_conservation()
        return ValidationResult.success(f"{player.name} played {card.type.value}"), effect

    def draw_card(self, player_id: str) -> tuple[ValidationResult, Optional[Card]]:
        """
        Draw one card for the current player, reshuffling the discard pile
        into the deck if needed. Drawing does not use an action.

        Returns:
            Tuple of (validation result, drawn card or None)
        """
        error = self._validate_actor(player_id)
        if error:
            return error, None

        player = self.get_player(player_id)
        if len(player.hand) >= self.cards_per_hand:
            return ValidationResult.failure(
                ActionResult.HAND_FULL, f"You already hold {self.cards_per_hand} cards"
            ), None

        try:
            card = self.deck.draw()
        except NoCardsAvailableError as e:
            return ValidationResult.failure(ActionResult.NO_CARDS_AVAILABLE, e.message), None

        player.hand.append(card)
        self.last_action = {"type": "drawCard", "playerId": player_id}

        self._check_conservation()
        return ValidationResult.success(f"{player.name} drew a card"), card

    def discard_card(self, player_id: str, card_id: str) -> tuple[ValidationResult, Optional[Card]]:
        """
        Discard a card from the current player's hand.

        Uses an action if any remain; actions never go below zero.

        Returns:
            Tuple of (validation result, discarded card or None)
        """
        error = self._validate_actor(player_id)
        if error:
            return error, None

        player = self.get_player(player_id)
        card = player.remove_card(card_id)
        if card is None:
            return ValidationResult.failure(ActionResult.CARD_NOT_FOUND, "Card not in your hand"), None

        self.deck.discard_card(card)
        self.actions_remaining = max(0, self.actions_remaining - 1)
        self.last_action = {
            "type": "discardCard",
            "playerId": player_id,
            "card": card.to_dict(),
        }

        self._check_conservation()
        return ValidationResult.success(f"{player.name} discarded {card.type.value}"), card

    def end_turn(self, player_id: str) -> ValidationResult:
        """End the current player's turn and pass to the next seat."""
        error = self._validate_actor(player_id)
        if error:
            return error

        self._advance_turn()

        return ValidationResult.success(f"Turn ended. {self.current_player.name}'s turn")

    def _advance_turn(self) -> None:
        """Move to next player's turn."""
        self.current_player_index = (self.current_player_index + 1) % len(self.players)
        self.turn_count += 1
        self._reset_turn()

    def _reset_turn(self) -> None:
        self.actions_remaining = ACTIONS_PER_TURN
        self.last_action = None

    # =========== Membership ===========

    def remove_player(self, player_id: str) -> Optional[Player]:
        """
        Take a player out of the game.

        Their hand goes to the discard pile so the card set stays whole.
        The turn stays with the same player if someone else left; if the
        current player left, the next seat starts a fresh turn.
        """
        index = next(
            (i for i, player in enumerate(self.players) if player.id == player_id), None
        )
        if index is None:
            return None

        player = self.players.pop(index)
        for card in player.hand:
            self.deck.discard_card(card)
        player.hand = []

        if self.players:
            if index < self.current_player_index:
                self.current_player_index -= 1
            elif index == self.current_player_index:
                self.current_player_index %= len(self.players)
                self._reset_turn()
        else:
            self.current_player_index = 0

        if not self.is_finished and len(self.players) < self.min_players:
            self._finish(None, "not_enough_players")

        self._check_conservation()
        return player

    # =========== Outcome ===========

    def _finish(self, winner: Optional[Player], reason: str) -> None:
        """Freeze the game; no further actions are accepted."""
        self.phase = GamePhase.FINISHED
        self.winner_id = winner.id if winner else None
        self.end_reason = reason

        if winner:
            logger.info(f"{winner.name} ({winner.id}) wins after {self.turn_count} turns")
        else:
            logger.info(f"Game ended without a winner: {reason}")

    # =========== Invariants ===========

    def card_ids(self) -> Counter:
        """Multiset of card ids across deck, discard pile and hands."""
        ids = Counter(card.id for card in self.deck.cards)
        ids.update(card.id for card in self.deck.discard)
        for player in self.players:
            ids.update(card.id for card in player.hand)
        return ids

    def _check_conservation(self) -> None:
        ids = self.card_ids()
        total = sum(ids.values())
        if total != self.deck.total or len(ids) != total:
            raise InvariantViolation(
                f"Card set broken: {total} cards ({len(ids)} distinct), expected {self.deck.total}"
            )

    # =========== Serialization ===========

    def to_dict(self) -> dict:
        """Full, unredacted state. Never send this to a client."""
        return {
            "players": [player.to_dict() for player in self.players],
            "deck": [card.to_dict() for card in self.deck.cards],
            "discardPile": [card.to_dict() for card in self.deck.discard],
            "currentPlayerIndex": self.current_player_index,
            "turnCount": self.turn_count,
            "actionsRemaining": self.actions_remaining,
            "lastAction": self.last_action,
            "gameMode": self.game_mode.value,
            "phase": self.phase.value,
            "winnerId": self.winner_id,
        }

    def get_state_for_player(self, player_id: str) -> dict:
        """
        Get game state as seen by one player.

        Other players' hands become placeholders and the deck is reduced
        to a count. Built fresh on every call.
        """
        current = self.current_player
        state = {
            "players": [
                player.to_dict(reveal_hand=player.id == player_id)
                for player in self.players
            ],
            "currentPlayerIndex": self.current_player_index,
            "currentPlayerId": current.id if current else None,
            "isYourTurn": current is not None and current.id == player_id,
            "turnCount": self.turn_count,
            "actionsRemaining": self.actions_remaining,
            "lastAction": self.last_action,
            "gameMode": self.game_mode.value,
            "phase": self.phase.value,
            "winnerId": self.winner_id,
        }
        state.update(self.deck.to_dict())
        return state
