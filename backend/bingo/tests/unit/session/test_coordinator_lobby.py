"""Connection lifecycle, joining and lobby commands of RoomCoordinator."""

from bingo.logic.enums import ErrorCode, GamePhase
from bingo.messaging.types import (
    HostStartGameMessage,
    HostToggleAllowHighlightMessage,
    HostUpdateSettingsMessage,
    JoinRoomMessage,
    PlayerReadyMessage,
    PlayerUnreadyMessage,
    RegenerateCardsMessage,
    SelectCardsMessage,
    SendChatMessage,
    SendReactionMessage,
    ToggleAutoMarkMessage,
    ToggleHighlightCalledNumbersMessage,
)
from bingo.tests.mocks import MockConnection
from bingo.tests.unit.session.helpers import clear_all, join, select_first_cards


class TestConnect:
    async def test_first_connection_becomes_host(self, room):
        connection = MockConnection()

        await room.connect(connection)

        init = connection.last_of_type("init")
        assert init["playerId"] == connection.connection_id
        assert init["isHost"] is True
        assert init["state"]["phase"] == "lobby"
        assert "remainingNumbers" not in init["state"]
        assert room.state.host_id == connection.connection_id

    async def test_later_connections_are_not_host(self, room):
        await join(room, "Host")
        guest = MockConnection()

        await room.connect(guest)

        assert guest.last_of_type("init")["isHost"] is False

    async def test_host_reassigned_when_old_host_cannot_return(self, room):
        host = await join(room, "Host")
        await room.disconnect(host)
        newcomer = MockConnection()

        await room.connect(newcomer)

        assert newcomer.last_of_type("init")["isHost"] is True
        assert room.state.host_id == newcomer.connection_id
        assert room.state.players[host.connection_id].is_host is False

    async def test_host_kept_while_identified_host_may_reconnect(self, room):
        host = await join(room, "Host", persistent_id="host-ident")
        await room.disconnect(host)
        newcomer = MockConnection()

        await room.connect(newcomer)

        assert newcomer.last_of_type("init")["isHost"] is False
        assert room.state.host_id == host.connection_id


class TestJoin:
    async def test_joiner_gets_private_view(self, room):
        connection = await join(room, "Ana")

        types = [m["type"] for m in connection.sent_messages]
        assert types == ["init", "cardPool", "chatHistory", "gameState"]
        assert len(connection.last_of_type("cardPool")["cards"]) == 8
        player = room.state.players[connection.connection_id]
        assert player.name == "Ana"
        assert player.is_host is True

    async def test_others_see_player_joined(self, room):
        host = await join(room, "Host")
        clear_all(host)

        guest = await join(room, "Guest")

        joined = host.last_of_type("playerJoined")
        assert joined["player"]["id"] == guest.connection_id
        assert joined["player"]["name"] == "Guest"
        assert guest.messages_of_type("playerJoined") == []

    async def test_identified_join_creates_stats(self, room):
        await join(room, "Ana", persistent_id="ident")

        stats = room.state.player_stats["ident"]
        assert stats.player_name == "Ana"
        assert stats.connected is True

    async def test_repeated_join_resends_view_without_duplicating(self, room):
        connection = await join(room, "Ana")
        clear_all(connection)
        await room.handle_command(connection, JoinRoomMessage(player_name="Ana"))

        assert len(room.state.players) == 1
        assert [m["type"] for m in connection.sent_messages] == ["cardPool", "chatHistory", "gameState"]


class TestDisconnect:
    async def test_player_retained_and_others_notified(self, room):
        host = await join(room, "Host")
        guest = await join(room, "Guest", persistent_id="guest-ident")
        clear_all(host)

        await room.disconnect(guest)

        assert room.state.players[guest.connection_id].connected is False
        assert room.state.player_stats["guest-ident"].connected is False
        assert host.last_of_type("playerLeft")["playerId"] == guest.connection_id
        assert room.connection_count == 1

    async def test_disconnect_before_join(self, room):
        connection = MockConnection()
        await room.connect(connection)

        await room.disconnect(connection)

        assert room.connection_count == 0
        assert room.state.players == {}


class TestNotJoined:
    async def test_commands_require_join(self, room):
        connection = MockConnection()
        await room.connect(connection)
        for command in (PlayerReadyMessage(), SendChatMessage(content="hi"), SelectCardsMessage(card_ids=[])):
            connection.clear()
            await room.handle_command(connection, command)

            error = connection.last_of_type("error")
            assert error["code"] == ErrorCode.NOT_JOINED
            assert error["message"] == "Join the room first"


class TestCards:
    async def test_select_cards_broadcasts_player(self, room):
        host = await join(room, "Host")
        guest = await join(room, "Guest")
        clear_all(host, guest)

        card_ids = await select_first_cards(room, guest, count=2)

        player = host.last_of_type("playerUpdated")["player"]
        assert player["selectedCardIds"] == card_ids
        assert set(player["markedCells"]) == set(card_ids)

    async def test_regenerate_sends_new_pool_privately(self, room):
        host = await join(room, "Host")
        guest = await join(room, "Guest")
        old_cards = room.state.players[guest.connection_id].cards
        clear_all(host, guest)

        await room.handle_command(guest, RegenerateCardsMessage())

        assert room.state.players[guest.connection_id].cards != old_cards
        assert len(guest.last_of_type("cardPool")["cards"]) == 8
        assert host.messages_of_type("cardPool") == []
        assert host.last_of_type("playerUpdated")["player"]["id"] == guest.connection_id

    async def test_cards_locked_while_playing(self, room):
        host = await join(room, "Host")
        await select_first_cards(room, host)
        await room.handle_command(host, HostStartGameMessage())
        clear_all(host)

        await room.handle_command(host, SelectCardsMessage(card_ids=[]))
        await room.handle_command(host, RegenerateCardsMessage())

        errors = host.messages_of_type("error")
        assert [e["message"] for e in errors] == ["Cannot change cards now", "Cannot regenerate cards now"]
        assert all(e["code"] == ErrorCode.INVALID_PHASE for e in errors)


class TestReadiness:
    async def test_ready_needs_selection(self, room):
        connection = await join(room, "Ana")
        clear_all(connection)

        await room.handle_command(connection, PlayerReadyMessage())

        assert room.state.players[connection.connection_id].ready_to_play is False
        assert connection.sent_messages == []

    async def test_ready_then_unready(self, room):
        connection = await join(room, "Ana")
        await select_first_cards(room, connection)

        await room.handle_command(connection, PlayerReadyMessage())
        assert room.state.players[connection.connection_id].ready_to_play is True

        await room.handle_command(connection, PlayerUnreadyMessage())
        assert room.state.players[connection.connection_id].ready_to_play is False

    async def test_start_requires_all_ready_when_configured(self, room):
        host = await join(room, "Host")
        guest = await join(room, "Guest")
        await room.handle_command(host, HostUpdateSettingsMessage(require_all_players_ready=True))
        await select_first_cards(room, guest)
        clear_all(host)

        await room.handle_command(host, HostStartGameMessage())
        assert host.last_of_type("error")["message"] == "Not all players are ready"

        await room.handle_command(guest, PlayerReadyMessage())
        await room.handle_command(host, HostStartGameMessage())
        assert room.state.phase == GamePhase.PLAYING


class TestPreferences:
    async def test_auto_mark_toggle(self, room):
        connection = await join(room, "Ana")

        await room.handle_command(connection, ToggleAutoMarkMessage(enabled=True))

        assert room.state.players[connection.connection_id].auto_mark is True
        assert connection.last_of_type("playerUpdated")["player"]["autoMark"] is True

    async def test_revoking_highlight_switches_everyone_off(self, room):
        host = await join(room, "Host")
        guest = await join(room, "Guest")

        await room.handle_command(host, HostToggleAllowHighlightMessage(enabled=False))
        await room.handle_command(guest, ToggleHighlightCalledNumbersMessage(enabled=True))

        assert room.state.settings.allow_highlight_called_numbers is False
        assert all(not p.highlight_called_numbers for p in room.state.players.values())
        assert guest.last_of_type("gameState")["state"]["settings"]["allowHighlightCalledNumbers"] is False


class TestChat:
    async def test_chat_broadcast_to_room(self, room):
        host = await join(room, "Host")
        guest = await join(room, "Guest")
        clear_all(host, guest)

        await room.handle_command(guest, SendChatMessage(content="good luck all"))

        for connection in (host, guest):
            posted = connection.last_of_type("chatMessage")["message"]
            assert posted["content"] == "good luck all"
            assert posted["playerName"] == "Guest"
            assert posted["type"] == "text"

    async def test_reaction(self, room):
        host = await join(room, "Host")

        await room.handle_command(host, SendReactionMessage(reaction="lets_go"))

        posted = host.last_of_type("chatMessage")["message"]
        assert (posted["type"], posted["content"]) == ("reaction", "lets_go")

    async def test_history_sent_to_late_joiner(self, room):
        host = await join(room, "Host")
        await room.handle_command(host, SendChatMessage(content="first!"))

        late = await join(room, "Late")

        history = late.last_of_type("chatHistory")["messages"]
        assert [m["content"] for m in history] == ["first!"]


class TestSettings:
    async def test_update_settings_in_lobby(self, room):
        host = await join(room, "Host")

        await room.handle_command(host, HostUpdateSettingsMessage(max_winners=1, allow_multiple_winners=False))

        assert room.state.settings.max_winners == 1
        assert room.state.settings.allow_multiple_winners is False
        assert host.last_of_type("gameState")["state"]["settings"]["maxWinners"] == 1

    async def test_update_settings_rejected_outside_lobby(self, room):
        host = await join(room, "Host")
        await select_first_cards(room, host)
        await room.handle_command(host, HostStartGameMessage())

        await room.handle_command(host, HostUpdateSettingsMessage(max_winners=5))

        error = host.last_of_type("error")
        assert error["code"] == ErrorCode.INVALID_PHASE
        assert error["message"] == "Settings can only be changed in the lobby"
        assert room.state.settings.max_winners == 3
