"""
Tests for the network layer: room registry, message handling and delivery.

Run from project root: python -m pytest tests/ -v
Or run directly: python tests/test_network/test_network.py
"""

import asyncio
import json
import random
import sys
import unittest
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from server.game_engine import ActionResult, Game
from server.network.connection_manager import ConnectionManager
from server.network.message_handler import MessageHandler
from server.network.room_registry import RoomRegistry
from server.network.server import PigGameServer
from shared.constants import HIDDEN_CARD
from shared.enums import CardType, GameMode, MessageType, PigStatus, RoomStatus
from shared.protocol import Message


class MockWebSocket:
    """Mock WebSocket that records every frame sent to it."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send(self, data: str) -> None:
        if self.fail:
            raise ConnectionError("socket closed")
        self.sent.append(json.loads(data))

    def of_type(self, message_type: MessageType) -> list[dict]:
        return [m for m in self.sent if m["type"] == message_type.value]

    def types(self) -> list[str]:
        return [m["type"] for m in self.sent]


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def give_card(game: Game, player_id: str, card_type: CardType) -> str:
    """Swap the first card of a player's hand for one of the given type."""
    player = game.get_player(player_id)
    for pile in (game.deck.cards, game.deck.discard):
        card = next((c for c in pile if c.type == card_type), None)
        if card is not None:
            pile.remove(card)
            pile.append(player.hand.pop(0))
            player.hand.insert(0, card)
            return card.id
    raise AssertionError(f"No {card_type.value} card available")


def ready_room(registry: RoomRegistry, *player_ids: str) -> str:
    """Create a room owned by the first player with everyone seated and ready."""
    _, room = registry.create_room(player_ids[0], GameMode.BASIC, owner_name="Owner")
    for player_id in player_ids[1:]:
        registry.join_room(room.id, player_id, player_id.upper())
    for player_id in player_ids:
        registry.set_ready(room.id, player_id, True)
    return room.id


class TestRoomRegistry(unittest.TestCase):
    """Room lifecycle without any network involved."""

    def setUp(self):
        self.clock = FakeClock()
        self.registry = RoomRegistry(clock=self.clock, rng=random.Random(11))

    def test_create_room(self):
        result, room = self.registry.create_room("alice", "expansion", 3)

        self.assertTrue(result.valid)
        self.assertEqual(len(room.id), 10)
        self.assertEqual(room.owner_id, "alice")
        self.assertEqual(room.player_ids, ["alice"])
        self.assertEqual(room.players[0].name, "Player 1")
        self.assertEqual(room.game_mode, GameMode.EXPANSION)
        self.assertEqual(room.status, RoomStatus.WAITING)
        self.assertIs(self.registry.get_room(room.id), room)

    def test_create_room_validation(self):
        result, room = self.registry.create_room("alice", "turbo")
        self.assertEqual(result.result, ActionResult.INVALID_GAME_MODE)
        self.assertIsNone(room)

        for max_players in (1, 5):
            result, _ = self.registry.create_room("alice", "basic", max_players)
            self.assertEqual(result.result, ActionResult.INVALID_MAX_PLAYERS)

        self.assertEqual(len(self.registry), 0)

    def test_room_ids_unique(self):
        ids = {self.registry.create_room(f"p{i}")[1].id for i in range(50)}
        self.assertEqual(len(ids), 50)

    def test_join_room(self):
        _, room = self.registry.create_room("alice")

        result, joined = self.registry.join_room(room.id, "bob", "Bob")

        self.assertTrue(result.valid)
        self.assertEqual(joined.player_ids, ["alice", "bob"])
        self.assertFalse(joined.get_player("bob").ready)

    def test_join_is_idempotent(self):
        _, room = self.registry.create_room("alice")
        self.registry.join_room(room.id, "bob", "Bob")

        result, _ = self.registry.join_room(room.id, "bob", "Bob")

        self.assertTrue(result.valid)
        self.assertEqual(room.player_count, 2)

    def test_join_errors(self):
        result, _ = self.registry.join_room("missing", "bob", "Bob")
        self.assertEqual(result.result, ActionResult.ROOM_NOT_FOUND)

        _, small = self.registry.create_room("alice", "basic", 2)
        self.registry.join_room(small.id, "bob", "Bob")
        result, _ = self.registry.join_room(small.id, "carol", "Carol")
        self.assertEqual(result.result, ActionResult.ROOM_FULL)

        room_id = ready_room(self.registry, "dave", "erin")
        self.registry.start_game(room_id, "dave")
        result, _ = self.registry.join_room(room_id, "frank", "Frank")
        self.assertEqual(result.result, ActionResult.ALREADY_STARTED)

    def test_set_ready(self):
        _, room = self.registry.create_room("alice")

        result, _ = self.registry.set_ready(room.id, "alice", True)
        self.assertTrue(result.valid)
        self.assertTrue(room.get_player("alice").ready)

        result, _ = self.registry.set_ready(room.id, "bob", True)
        self.assertEqual(result.result, ActionResult.NOT_IN_ROOM)

    def test_start_game_checks(self):
        _, room = self.registry.create_room("alice")
        self.registry.set_ready(room.id, "alice", True)

        result, _ = self.registry.start_game(room.id, "alice")
        self.assertEqual(result.result, ActionResult.TOO_FEW_PLAYERS)

        self.registry.join_room(room.id, "bob", "Bob")
        result, _ = self.registry.start_game(room.id, "bob")
        self.assertEqual(result.result, ActionResult.NOT_OWNER)

        result, _ = self.registry.start_game(room.id, "alice")
        self.assertEqual(result.result, ActionResult.NOT_ALL_READY)
        self.assertIsNone(room.game)

    def test_start_game(self):
        room_id = ready_room(self.registry, "alice", "bob")

        result, room = self.registry.start_game(room_id, "alice")

        self.assertTrue(result.valid)
        self.assertEqual(room.status, RoomStatus.PLAYING)
        self.assertIs(room.game.players, room.players)
        self.assertEqual(len(room.get_player("bob").hand), 3)
        self.assertEqual(room.game.current_player.id, "alice")

        result, _ = self.registry.start_game(room_id, "alice")
        self.assertEqual(result.result, ActionResult.ALREADY_STARTED)

    def test_leave_hands_ownership_on(self):
        _, room = self.registry.create_room("alice")
        self.registry.join_room(room.id, "bob", "Bob")
        self.registry.join_room(room.id, "carol", "Carol")

        result, room = self.registry.leave(room.id, "alice")

        self.assertTrue(result.valid)
        self.assertEqual(room.owner_id, "bob")
        self.assertEqual(room.player_ids, ["bob", "carol"])

    def test_last_player_leaving_deletes_room(self):
        _, room = self.registry.create_room("alice")

        result, left = self.registry.leave(room.id, "alice")

        self.assertTrue(result.valid)
        self.assertTrue(left.is_empty)
        self.assertIsNone(self.registry.get_room(room.id))

    def test_leave_errors(self):
        _, room = self.registry.create_room("alice")
        self.assertEqual(self.registry.leave("missing", "alice")[0].result, ActionResult.ROOM_NOT_FOUND)
        self.assertEqual(self.registry.leave(room.id, "bob")[0].result, ActionResult.NOT_IN_ROOM)

    def test_leave_during_game(self):
        room_id = ready_room(self.registry, "alice", "bob", "carol")
        _, room = self.registry.start_game(room_id, "alice")

        self.registry.leave(room_id, "bob")

        self.assertEqual(room.player_ids, ["alice", "carol"])
        self.assertEqual(room.status, RoomStatus.PLAYING)
        self.assertEqual(len(room.game.deck.discard), 3)

        self.registry.leave(room_id, "carol")
        self.assertEqual(room.status, RoomStatus.FINISHED)
        self.assertEqual(room.game.end_reason, "not_enough_players")

    def test_leave_all(self):
        _, first = self.registry.create_room("alice")
        _, second = self.registry.create_room("bob")
        self.registry.join_room(second.id, "alice", "Alice")

        left = self.registry.leave_all("alice")

        self.assertEqual({room.id for room in left}, {first.id, second.id})
        self.assertEqual(self.registry.rooms_for_player("alice"), [])
        self.assertIsNone(self.registry.get_room(first.id))
        self.assertEqual(second.player_ids, ["bob"])

    def test_list_waiting_rooms(self):
        _, waiting = self.registry.create_room("alice", "basic", 3)
        started_id = ready_room(self.registry, "bob", "carol")
        self.registry.start_game(started_id, "bob")

        games = self.registry.list_waiting_rooms()

        self.assertEqual(games, [{
            "id": waiting.id,
            "playerCount": 1,
            "maxPlayers": 3,
            "gameMode": "basic",
            "owner": "alice",
            "status": "waiting",
        }])

    def test_reap_stale_waiting_rooms(self):
        _, stale = self.registry.create_room("alice")
        started_id = ready_room(self.registry, "bob", "carol")
        self.registry.start_game(started_id, "bob")

        self.clock.now += 3600
        _, fresh = self.registry.create_room("dave")

        self.clock.now += self.registry.room_ttl - 1800
        reaped = self.registry.reap()

        self.assertEqual(reaped, [stale.id])
        self.assertIsNone(self.registry.get_room(stale.id))
        self.assertIsNotNone(self.registry.get_room(fresh.id))
        self.assertIsNotNone(self.registry.get_room(started_id))

    def test_get_stats(self):
        self.registry.create_room("alice")
        started_id = ready_room(self.registry, "bob", "carol")
        self.registry.start_game(started_id, "bob")

        stats = self.registry.get_stats()

        self.assertEqual(stats["total_rooms"], 2)
        self.assertEqual(stats["rooms_by_status"], {"waiting": 1, "playing": 1, "finished": 0})
        self.assertEqual(stats["total_players_in_rooms"], 3)


class TestConnectionManager(unittest.IsolatedAsyncioTestCase):

    async def test_connect_assigns_ids(self):
        manager = ConnectionManager()
        first = manager.connect(MockWebSocket())
        second = manager.connect(MockWebSocket())

        self.assertNotEqual(first.player_id, second.player_id)
        self.assertTrue(manager.is_player_connected(first.player_id))
        self.assertEqual(manager.get_stats()["total_connections"], 2)

    async def test_disconnect(self):
        manager = ConnectionManager()
        ws = MockWebSocket()
        connection = manager.connect(ws)

        self.assertIs(manager.disconnect(ws), connection)
        self.assertFalse(manager.is_player_connected(connection.player_id))
        self.assertIsNone(manager.disconnect(ws))

    async def test_send_to_players(self):
        manager = ConnectionManager()
        sockets = [MockWebSocket() for _ in range(3)]
        ids = [manager.connect(ws).player_id for ws in sockets]

        sent = await manager.send_to_players(ids[1:], Message(MessageType.PONG))

        self.assertEqual(sent, 2)
        self.assertEqual(sockets[0].sent, [])
        self.assertEqual(sockets[1].types(), ["pong"])

    async def test_failed_send_reported(self):
        manager = ConnectionManager()
        player_id = manager.connect(MockWebSocket(fail=True)).player_id

        self.assertFalse(await manager.send_to_player(player_id, {"type": "pong"}))
        self.assertFalse(await manager.send_to_player("nobody", {"type": "pong"}))


class TestMessageHandler(unittest.IsolatedAsyncioTestCase):
    """Protocol routing on top of a real registry."""

    def setUp(self):
        self.registry = RoomRegistry(rng=random.Random(5))
        self.handler = MessageHandler(self.registry)

    async def send(self, player_id: str, message_type: MessageType, request_id=None, **data):
        return await self.handler.handle_message(
            player_id, Message(type=message_type, data=data, request_id=request_id)
        )

    async def start_game(self) -> str:
        room_id = ready_room(self.registry, "alice", "bob")
        result = await self.send("alice", MessageType.START_GAME, roomId=room_id)
        self.assertTrue(result.game_started)
        return room_id

    async def test_ping(self):
        result = await self.send("alice", MessageType.PING, request_id="r1")
        self.assertEqual(result.response.type, MessageType.PONG)
        self.assertEqual(result.response.request_id, "r1")

    async def test_parse_error(self):
        result = await self.handler.handle_message("alice", "{not json")
        self.assertEqual(result.response.data["code"], "PARSE_ERROR")

    async def test_unknown_message_type(self):
        result = await self.handler.handle_message(
            "alice", json.dumps({"type": "fly", "request_id": "r9"})
        )
        self.assertEqual(result.response.data["code"], "UNKNOWN_MESSAGE_TYPE")
        self.assertEqual(result.response.request_id, "r9")

        result = await self.handler.handle_message("alice", json.dumps({"data": {}}))
        self.assertEqual(result.response.data["code"], "UNKNOWN_MESSAGE_TYPE")

        # A server-only type is not something clients may send
        result = await self.send("alice", MessageType.GAME_ENDED)
        self.assertEqual(result.response.data["code"], "UNKNOWN_MESSAGE_TYPE")

    async def test_non_object_data_is_parse_error(self):
        _, room = self.registry.create_room("alice")

        result = await self.handler.handle_message("bob", '{"type": "joinRoom", "data": ["x"]}')
        self.assertEqual(result.response.data["code"], "PARSE_ERROR")

        result = await self.handler.handle_message("bob", {"type": "toggleReady", "data": "ready"})
        self.assertEqual(result.response.data["code"], "PARSE_ERROR")

        result = await self.handler.handle_message("bob", "[1, 2]")
        self.assertEqual(result.response.data["code"], "PARSE_ERROR")

        self.assertEqual(room.player_ids, ["alice"])

    async def test_null_data_is_empty(self):
        result = await self.handler.handle_message("alice", '{"type": "getGames", "data": null}')
        self.assertEqual(result.response.type, MessageType.GAMES_LIST)

    async def test_create_game(self):
        result = await self.send("alice", MessageType.CREATE_GAME, gameMode="expansion", playerName="Alice")

        self.assertEqual(result.response.type, MessageType.GAME_CREATED)
        room_id = result.response.data["roomId"]
        self.assertEqual(result.response.data["room"]["players"], [{"id": "alice", "name": "Alice", "ready": False}])
        self.assertTrue(result.refresh_lobby)
        self.assertEqual(self.registry.get_room(room_id).game_mode, GameMode.EXPANSION)

    async def test_create_game_invalid(self):
        result = await self.send("alice", MessageType.CREATE_GAME, maxPlayers="lots")
        self.assertEqual(result.response.data["code"], "INVALID_MAX_PLAYERS")

        result = await self.send("alice", MessageType.CREATE_GAME, gameMode="turbo")
        self.assertEqual(result.response.data["code"], "INVALID_GAME_MODE")

    async def test_join_room(self):
        _, room = self.registry.create_room("alice")

        result = await self.send("bob", MessageType.JOIN_ROOM, roomId=room.id, playerName="Bob")

        self.assertIsNone(result.response)
        self.assertEqual(result.room_id, room.id)
        self.assertEqual(result.broadcasts[0].type, MessageType.ROOM_STATE)
        self.assertEqual(len(result.broadcasts[0].data["players"]), 2)

    async def test_join_error(self):
        result = await self.send("bob", MessageType.JOIN_ROOM, roomId="nope", playerName="Bob")

        self.assertEqual(result.response.type, MessageType.JOIN_ERROR)
        self.assertEqual(result.response.data["code"], "ROOM_NOT_FOUND")
        self.assertEqual(result.broadcasts, [])

    async def test_toggle_ready(self):
        _, room = self.registry.create_room("alice")

        result = await self.send("alice", MessageType.TOGGLE_READY, roomId=room.id, ready=True)

        self.assertTrue(result.broadcasts[0].data["players"][0]["ready"])

    async def test_toggle_ready_rejects_non_boolean(self):
        _, room = self.registry.create_room("alice")

        for value in ("false", 0, None):
            result = await self.send("alice", MessageType.TOGGLE_READY, roomId=room.id, ready=value)
            self.assertEqual(result.response.data["code"], "INVALID_READY")
            self.assertEqual(result.broadcasts, [])

        self.assertFalse(room.get_player("alice").ready)

    async def test_start_game_errors(self):
        _, room = self.registry.create_room("alice")
        self.registry.join_room(room.id, "bob", "Bob")

        result = await self.send("bob", MessageType.START_GAME, roomId=room.id)
        self.assertEqual(result.response.data["code"], "NOT_OWNER")

        result = await self.send("alice", MessageType.START_GAME, roomId=room.id)
        self.assertEqual(result.response.data["code"], "NOT_ALL_READY")

    async def test_play_card(self):
        room_id = await self.start_game()
        game = self.registry.get_room(room_id).game
        card_id = give_card(game, "alice", CardType.MUD)

        result = await self.send(
            "alice", MessageType.PLAY_CARD,
            roomId=room_id, playerId="alice", cardId=card_id,
            targetPigId="bob-pig-0", targetPlayerId="bob",
        )

        self.assertIsNone(result.response)
        self.assertTrue(result.broadcast_state)
        played = result.broadcasts[0]
        self.assertEqual(played.type, MessageType.CARD_PLAYED)
        self.assertEqual(played.data["card"], {"id": card_id, "type": "mud"})
        self.assertEqual(played.data["effect"]["to"], "dirty")
        self.assertEqual(result.after_state, [])

    async def test_rejected_play_only_answers_requester(self):
        room_id = await self.start_game()
        game = self.registry.get_room(room_id).game
        card_id = give_card(game, "alice", CardType.BATH)

        result = await self.send(
            "alice", MessageType.PLAY_CARD,
            roomId=room_id, cardId=card_id, targetPigId="alice-pig-0",
        )

        self.assertEqual(result.response.data["code"], "RULE_VIOLATION")
        self.assertEqual(result.broadcasts, [])
        self.assertFalse(result.broadcast_state)

    async def test_player_mismatch(self):
        room_id = await self.start_game()

        result = await self.send("bob", MessageType.END_TURN, roomId=room_id, playerId="alice")

        self.assertEqual(result.response.data["code"], "PLAYER_MISMATCH")
        self.assertEqual(self.registry.get_room(room_id).game.current_player.id, "alice")

    async def test_not_your_turn(self):
        room_id = await self.start_game()
        result = await self.send("bob", MessageType.END_TURN, roomId=room_id, playerId="bob")
        self.assertEqual(result.response.data["code"], "NOT_YOUR_TURN")

    async def test_turn_action_before_start(self):
        _, room = self.registry.create_room("alice")
        result = await self.send("alice", MessageType.DRAW_CARD, roomId=room.id)
        self.assertEqual(result.response.data["code"], "GAME_NOT_ACTIVE")

    async def test_not_in_room(self):
        room_id = await self.start_game()
        result = await self.send("mallory", MessageType.DRAW_CARD, roomId=room_id)
        self.assertEqual(result.response.data["code"], "NOT_IN_ROOM")

    async def test_discard_then_draw(self):
        room_id = await self.start_game()
        game = self.registry.get_room(room_id).game
        card_id = game.get_player("alice").hand[0].id

        result = await self.send("alice", MessageType.DISCARD_CARD, roomId=room_id, cardId=card_id)
        discarded = result.broadcasts[0]
        self.assertEqual(discarded.type, MessageType.CARD_DISCARDED)
        self.assertEqual(discarded.data["handCount"], 2)
        self.assertEqual(discarded.data["actionsRemaining"], 0)

        result = await self.send("alice", MessageType.DRAW_CARD, roomId=room_id)
        drawn = result.broadcasts[0]
        self.assertEqual(drawn.data, {"playerId": "alice", "handCount": 3})

        result = await self.send("alice", MessageType.DRAW_CARD, roomId=room_id)
        self.assertEqual(result.response.data["code"], "HAND_FULL")

    async def test_end_turn(self):
        room_id = await self.start_game()

        result = await self.send("alice", MessageType.END_TURN, roomId=room_id)

        self.assertEqual([m.type for m in result.broadcasts], [MessageType.TURN_ENDED, MessageType.TURN_STARTED])
        self.assertEqual(result.broadcasts[1].data, {"playerId": "bob", "turnCount": 1})
        self.assertTrue(result.broadcast_state)

    async def test_winning_play_ends_game(self):
        room_id = await self.start_game()
        game = self.registry.get_room(room_id).game
        alice = game.get_player("alice")
        alice.pigs[0].status = PigStatus.DIRTY
        alice.pigs[1].status = PigStatus.DIRTY
        card_id = give_card(game, "alice", CardType.MUD)

        result = await self.send(
            "alice", MessageType.PLAY_CARD, roomId=room_id, cardId=card_id, targetPigId="alice-pig-2"
        )

        ended = result.after_state[0]
        self.assertEqual(ended.type, MessageType.GAME_ENDED)
        self.assertEqual(ended.data["winner"]["id"], "alice")
        self.assertEqual(ended.data["reason"], "win")

        result = await self.send("bob", MessageType.DRAW_CARD, roomId=room_id)
        self.assertEqual(result.response.data["code"], "GAME_NOT_ACTIVE")

    async def test_leave_room_in_lobby(self):
        _, room = self.registry.create_room("alice")
        self.registry.join_room(room.id, "bob", "Bob")

        result = await self.send("alice", MessageType.LEAVE_ROOM, roomId=room.id)

        updated = result.broadcasts[0]
        self.assertEqual(updated.type, MessageType.ROOM_UPDATED)
        self.assertEqual(updated.data["owner"], "bob")
        self.assertFalse(result.broadcast_state)
        self.assertTrue(result.refresh_lobby)

    async def test_leave_during_game(self):
        room_id = await self.start_game()

        result = await self.send("bob", MessageType.LEAVE_ROOM, roomId=room_id)

        self.assertTrue(result.broadcast_state)
        ended = result.after_state[0]
        self.assertIsNone(ended.data["winner"])
        self.assertEqual(ended.data["reason"], "not_enough_players")

    async def test_handle_disconnect(self):
        _, first = self.registry.create_room("alice")
        _, second = self.registry.create_room("bob")
        self.registry.join_room(second.id, "alice", "Alice")

        results = self.handler.handle_disconnect("alice")

        self.assertEqual(len(results), 2)
        self.assertEqual(self.registry.rooms_for_player("alice"), [])
        self.assertEqual(second.owner_id, "bob")

    async def test_get_state(self):
        room_id = await self.start_game()

        result = await self.send("bob", MessageType.GET_STATE, roomId=room_id, request_id="s1")

        state = result.response.data
        self.assertEqual(result.response.type, MessageType.GAME_STATE_UPDATED)
        self.assertEqual(result.response.request_id, "s1")
        self.assertFalse(state["isYourTurn"])
        self.assertEqual(state["players"][0]["hand"], [HIDDEN_CARD] * 3)


class TestServerDelivery(unittest.IsolatedAsyncioTestCase):
    """Messages as they reach each socket, without binding a port."""

    def setUp(self):
        self.server = PigGameServer(registry=RoomRegistry(rng=random.Random(9)))
        self.alice_ws = MockWebSocket()
        self.bob_ws = MockWebSocket()
        self.alice = self.server._connections.connect(self.alice_ws).player_id
        self.bob = self.server._connections.connect(self.bob_ws).player_id

    async def send(self, ws: MockWebSocket, player_id: str, message_type: MessageType, **data):
        raw = json.dumps({"type": message_type.value, "data": data})
        await self.server._handle_message(ws, player_id, raw)

    async def start_game(self) -> str:
        await self.send(self.alice_ws, self.alice, MessageType.CREATE_GAME, playerName="Alice")
        room_id = self.alice_ws.of_type(MessageType.GAME_CREATED)[0]["data"]["roomId"]
        await self.send(self.bob_ws, self.bob, MessageType.JOIN_ROOM, roomId=room_id, playerName="Bob")
        await self.send(self.alice_ws, self.alice, MessageType.TOGGLE_READY, roomId=room_id, ready=True)
        await self.send(self.bob_ws, self.bob, MessageType.TOGGLE_READY, roomId=room_id, ready=True)
        await self.send(self.alice_ws, self.alice, MessageType.START_GAME, roomId=room_id)
        return room_id

    async def test_create_refreshes_everyones_lobby(self):
        await self.send(self.alice_ws, self.alice, MessageType.CREATE_GAME)

        games = self.bob_ws.of_type(MessageType.GAMES_LIST)[-1]["data"]["games"]
        self.assertEqual(len(games), 1)
        self.assertEqual(games[0]["owner"], self.alice)

    async def test_game_started_is_redacted_per_player(self):
        room_id = await self.start_game()

        alice_view = self.alice_ws.of_type(MessageType.GAME_STARTED)[0]["data"]
        bob_view = self.bob_ws.of_type(MessageType.GAME_STARTED)[0]["data"]

        self.assertEqual(alice_view["roomId"], room_id)
        self.assertEqual(alice_view["status"], "playing")
        self.assertNotIn({"hidden": True}, alice_view["players"][0]["hand"])
        self.assertEqual(alice_view["players"][1]["hand"], [HIDDEN_CARD] * 3)
        self.assertEqual(bob_view["players"][0]["hand"], [HIDDEN_CARD] * 3)
        self.assertTrue(alice_view["isYourTurn"])
        self.assertFalse(bob_view["isYourTurn"])

        # The started room drops out of the lobby list
        self.assertEqual(self.bob_ws.of_type(MessageType.GAMES_LIST)[-1]["data"]["games"], [])

    async def test_draw_never_reveals_card_to_others(self):
        room_id = await self.start_game()
        game = self.server._rooms.get_room(room_id).game
        card_id = game.get_player(self.alice).hand[0].id
        await self.send(self.alice_ws, self.alice, MessageType.DISCARD_CARD, roomId=room_id, cardId=card_id)

        self.bob_ws.sent.clear()
        await self.send(self.alice_ws, self.alice, MessageType.DRAW_CARD, roomId=room_id)

        self.assertEqual(self.bob_ws.types(), ["cardDrawn", "gameStateUpdated"])
        drawn_id = game.get_player(self.alice).hand[-1].id
        self.assertNotIn(f'"{drawn_id}"', json.dumps(self.bob_ws.sent))

    async def test_errors_go_only_to_requester(self):
        room_id = await self.start_game()
        self.alice_ws.sent.clear()

        await self.send(self.bob_ws, self.bob, MessageType.END_TURN, roomId=room_id)

        self.assertEqual(self.bob_ws.of_type(MessageType.ERROR)[-1]["data"]["code"], "NOT_YOUR_TURN")
        self.assertEqual(self.alice_ws.sent, [])

    async def test_disconnect_mid_game(self):
        await self.start_game()
        self.alice_ws.sent.clear()

        await self.server._handle_disconnect(self.bob_ws, self.bob)

        self.assertEqual(
            self.alice_ws.types(),
            ["roomUpdated", "gameStateUpdated", "gameEnded", "gamesList"],
        )
        ended = self.alice_ws.of_type(MessageType.GAME_ENDED)[0]["data"]
        self.assertEqual(ended, {"winner": None, "reason": "not_enough_players"})
        self.assertFalse(self.server._connections.is_player_connected(self.bob))

    async def test_reap_refreshes_lobby(self):
        clock = FakeClock()
        self.server._rooms = RoomRegistry(clock=clock)
        _, room = self.server._rooms.create_room(self.alice)
        clock.now += self.server._rooms.room_ttl + 1

        reaped = await self.server.reap_stale_rooms()

        self.assertEqual(reaped, [room.id])
        self.assertEqual(self.bob_ws.of_type(MessageType.GAMES_LIST)[-1]["data"]["games"], [])

    async def test_reap_loop_survives_failure(self):
        calls = []

        def flaky_reap():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("sweep failed")
            if len(calls) >= 3:
                self.server._running = False
            return []

        self.server._rooms.reap = flaky_reap
        self.server.reap_interval = 0
        self.server._running = True

        with self.assertLogs("server.network.server", level="ERROR"):
            await asyncio.wait_for(self.server._reap_loop(), timeout=2)

        self.assertEqual(len(calls), 3)

    async def test_stats(self):
        await self.send(self.alice_ws, self.alice, MessageType.CREATE_GAME)
        stats = self.server.get_stats()
        self.assertEqual(stats["connections"]["total_connections"], 2)
        self.assertEqual(stats["rooms"]["total_rooms"], 1)


if __name__ == "__main__":
    unittest.main(verbosity=2)
