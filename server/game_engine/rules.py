"""
Rule enforcement: card legality, card effects and win detection.
"""
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, List, Optional

from shared.enums import CardType, EffectType, GameMode, PigStatus

from .cards import Card
from .player import Barn, Pig, Player


class ActionResult(Enum):
    """Result of attempting an action."""
    SUCCESS = auto()

    # Room registry
    ROOM_NOT_FOUND = auto()
    ROOM_FULL = auto()
    ALREADY_STARTED = auto()
    NOT_OWNER = auto()
    TOO_FEW_PLAYERS = auto()
    NOT_ALL_READY = auto()
    NOT_IN_ROOM = auto()
    INVALID_GAME_MODE = auto()
    INVALID_MAX_PLAYERS = auto()

    # Turn and action gating
    GAME_NOT_ACTIVE = auto()
    NOT_YOUR_TURN = auto()
    NO_ACTIONS_REMAINING = auto()
    CARD_NOT_FOUND = auto()
    HAND_FULL = auto()
    NO_CARDS_AVAILABLE = auto()

    # Card targeting and legality
    PLAYER_NOT_FOUND = auto()
    PIG_NOT_FOUND = auto()
    INVALID_TARGET = auto()
    RULE_VIOLATION = auto()


@dataclass
class ValidationResult:
    """Result of validating an action."""
    valid: bool
    result: ActionResult
    message: str = ""

    @property
    def code(self) -> str:
        """Wire error code."""
        return self.result.name

    @classmethod
    def success(cls, message: str = "") -> "ValidationResult":
        return cls(valid=True, result=ActionResult.SUCCESS, message=message)

    @classmethod
    def failure(cls, result: ActionResult, message: str = "") -> "ValidationResult":
        return cls(valid=False, result=result, message=message)


@dataclass
class CardEffect:
    """
    Descriptor of what a resolved card changed.

    The mutation has already been applied when a CardEffect is returned;
    clients use it to animate and reconcile, never to re-apply.
    """
    type: EffectType
    player_id: Optional[str] = None
    pig_id: Optional[str] = None
    from_status: Optional[PigStatus] = None
    to_status: Optional[PigStatus] = None
    affected_pigs: List[dict] = field(default_factory=list)
    extra_actions: Optional[int] = None

    def to_dict(self) -> dict:
        data = {"type": self.type.value}
        if self.player_id is not None:
            data["playerId"] = self.player_id
        if self.pig_id is not None:
            data["pigId"] = self.pig_id
        if self.from_status is not None:
            data["from"] = self.from_status.value
        if self.to_status is not None:
            data["to"] = self.to_status.value
        if self.type == EffectType.RAIN:
            data["affectedPigs"] = self.affected_pigs
        if self.extra_actions is not None:
            data["actionsRemaining"] = self.extra_actions
        return data


# Cards that act on everyone or on the hand rather than on one pig
UNTARGETED_CARDS = frozenset({CardType.RAIN, CardType.LUCKY_BIRD})


@dataclass
class _Target:
    player: Player
    pig: Pig


class CardResolver:
    """
    Maps (card, target) to a state mutation and an effect descriptor.

    Every card type has exactly one handler; constructing a resolver with
    a card type left unhandled fails immediately.
    """

    def __init__(self):
        self._handlers: dict[CardType, Callable[..., tuple[ValidationResult, Optional[CardEffect]]]] = {
            CardType.MUD: self._play_mud,
            CardType.BARN: self._play_barn,
            CardType.BATH: self._play_bath,
            CardType.RAIN: self._play_rain,
            CardType.LIGHTNING: self._play_lightning,
            CardType.LIGHTNING_ROD: self._play_lightning_rod,
            CardType.BARN_LOCK: self._play_barn_lock,
            CardType.BEAUTIFUL_PIG: self._play_beautiful_pig,
            CardType.ESCAPE: self._play_escape,
            CardType.LUCKY_BIRD: self._play_lucky_bird,
        }
        missing = set(CardType) - set(self._handlers)
        if missing:
            raise NotImplementedError(
                f"No effect handler for card types: {sorted(t.value for t in missing)}"
            )

    def resolve(
        self,
        players: List[Player],
        card: Card,
        acting_player_id: str,
        target_pig_id: Optional[str] = None,
        target_player_id: Optional[str] = None,
    ) -> tuple[ValidationResult, Optional[CardEffect]]:
        """
        Check legality of a card play and apply its effect.

        The target player defaults to the acting player. On failure nothing
        is mutated and the effect is None.

        Returns:
            Tuple of (validation result, effect descriptor or None)
        """
        acting = _find_player(players, acting_player_id)
        if acting is None:
            return ValidationResult.failure(ActionResult.PLAYER_NOT_FOUND, "Player not found"), None

        handler = self._handlers[card.type]

        if card.type in UNTARGETED_CARDS:
            return handler(players, acting)

        target, error = self._find_target(players, acting, target_pig_id, target_player_id)
        if error:
            return error, None

        return handler(target)

    @staticmethod
    def _find_target(
        players: List[Player],
        acting: Player,
        target_pig_id: Optional[str],
        target_player_id: Optional[str],
    ) -> tuple[Optional[_Target], Optional[ValidationResult]]:
        if not target_pig_id:
            return None, ValidationResult.failure(
                ActionResult.INVALID_TARGET, "This card needs a target pig"
            )

        player = acting
        if target_player_id:
            player = _find_player(players, target_player_id)
            if player is None:
                return None, ValidationResult.failure(
                    ActionResult.PLAYER_NOT_FOUND, "Target player not found"
                )

        pig = player.get_pig(target_pig_id)
        if pig is None:
            return None, ValidationResult.failure(
                ActionResult.PIG_NOT_FOUND, "Target pig not found"
            )

        return _Target(player=player, pig=pig), None

    # =========== Per-card handlers ===========

    @staticmethod
    def _change_status(target: _Target, to_status: PigStatus) -> tuple[ValidationResult, CardEffect]:
        from_status = target.pig.status
        target.pig.status = to_status
        return ValidationResult.success(), CardEffect(
            type=EffectType.STATUS_CHANGE,
            player_id=target.player.id,
            pig_id=target.pig.id,
            from_status=from_status,
            to_status=to_status,
        )

    def _play_mud(self, target: _Target):
        if target.pig.status != PigStatus.CLEAN:
            return _violation("Mud can only be thrown on a clean pig")
        return self._change_status(target, PigStatus.DIRTY)

    def _play_barn(self, target: _Target):
        if target.pig.barn is not None:
            return _violation("That pig already has a barn")
        target.pig.barn = Barn()
        return ValidationResult.success(), CardEffect(
            type=EffectType.ADD_BARN,
            player_id=target.player.id,
            pig_id=target.pig.id,
        )

    def _play_bath(self, target: _Target):
        if target.pig.status != PigStatus.DIRTY:
            return _violation("Only a dirty pig can be bathed")
        if target.pig.is_locked_in:
            return _violation("That pig is in a locked barn")
        return self._change_status(target, PigStatus.CLEAN)

    def _play_rain(self, players: List[Player], acting: Player):
        exposed = [
            pig
            for player in players
            for pig in player.pigs
            if pig.status == PigStatus.DIRTY and pig.barn is None
        ]
        if not exposed:
            return _violation("There is no dirty pig out in the rain")

        affected_pigs = []
        for player in players:
            pigs = []
            for pig in player.pigs:
                was_affected = pig.status == PigStatus.DIRTY and pig.barn is None
                if was_affected:
                    pig.status = PigStatus.CLEAN
                pigs.append({"pigId": pig.id, "wasAffected": was_affected})
            affected_pigs.append({"playerId": player.id, "pigs": pigs})

        return ValidationResult.success(), CardEffect(
            type=EffectType.RAIN,
            player_id=acting.id,
            affected_pigs=affected_pigs,
        )

    def _play_lightning(self, target: _Target):
        if target.pig.barn is None:
            return _violation("That pig has no barn")
        if target.pig.barn.has_lightning_rod:
            return _violation("The barn is protected by a lightning rod")
        target.pig.barn = None
        return ValidationResult.success(), CardEffect(
            type=EffectType.DESTROY_BARN,
            player_id=target.player.id,
            pig_id=target.pig.id,
        )

    def _play_lightning_rod(self, target: _Target):
        if target.pig.barn is None:
            return _violation("That pig has no barn")
        if target.pig.barn.has_lightning_rod:
            return _violation("The barn already has a lightning rod")
        target.pig.barn.has_lightning_rod = True
        return ValidationResult.success(), CardEffect(
            type=EffectType.ADD_LIGHTNING_ROD,
            player_id=target.player.id,
            pig_id=target.pig.id,
        )

    def _play_barn_lock(self, target: _Target):
        if target.pig.barn is None:
            return _violation("That pig has no barn")
        if target.pig.barn.is_locked:
            return _violation("The barn is already locked")
        target.pig.barn.is_locked = True
        return ValidationResult.success(), CardEffect(
            type=EffectType.LOCK_BARN,
            player_id=target.player.id,
            pig_id=target.pig.id,
        )

    def _play_beautiful_pig(self, target: _Target):
        if target.pig.status == PigStatus.BEAUTIFUL:
            return _violation("That pig is already beautiful")
        if target.pig.is_locked_in:
            return _violation("That pig is in a locked barn")
        return self._change_status(target, PigStatus.BEAUTIFUL)

    def _play_escape(self, target: _Target):
        if target.pig.status != PigStatus.BEAUTIFUL:
            return _violation("Only a beautiful pig can escape")
        return self._change_status(target, PigStatus.CLEAN)

    def _play_lucky_bird(self, players: List[Player], acting: Player):
        # The lucky bird itself is still in hand here
        other_cards = len(acting.hand) - 1
        if other_cards < 1:
            return _violation("Lucky bird needs other cards in hand")
        return ValidationResult.success(), CardEffect(
            type=EffectType.LUCKY_BIRD,
            player_id=acting.id,
            extra_actions=other_cards,
        )


def _violation(message: str) -> tuple[ValidationResult, None]:
    return ValidationResult.failure(ActionResult.RULE_VIOLATION, message), None


def _find_player(players: List[Player], player_id: str) -> Optional[Player]:
    for player in players:
        if player.id == player_id:
            return player
    return None


def check_winner(players: List[Player], game_mode: GameMode) -> Optional[Player]:
    """
    Return the first player, in seat order, whose pigs meet a win condition.

    All pigs dirty wins in any mode; all pigs beautiful wins only in the
    expansion.
    """
    for player in players:
        if player.all_pigs(PigStatus.DIRTY):
            return player
        if game_mode == GameMode.EXPANSION and player.all_pigs(PigStatus.BEAUTIFUL):
            return player
    return None
