"""
Single-writer coordinator for one bingo room.

The coordinator holds the room's current state, applies one command at a
time under an asyncio lock, owns the room timers, and decides which
notifications go to whom after each transition. Reducers in
bingo.logic.engine stay pure; every side effect lives here.
"""

import asyncio
import random
from typing import assert_never

import structlog

from bingo.logic import engine
from bingo.logic.chat import add_chat_message
from bingo.logic.enums import ChatMessageType, GamePhase
from bingo.logic.exceptions import (
    AuthorizationError,
    InvalidActionError,
    NotJoinedError,
    PhaseError,
    PlayerNotFoundError,
    ProtocolError,
    ResourceExhaustedError,
    SessionError,
)
from bingo.logic.patterns import resolve_pattern
from bingo.logic.settings import clamp_call_interval
from bingo.logic.state import BingoGameState, Player
from bingo.logic.stats import (
    increment_games_played,
    increment_player_wins,
    update_player_stats,
    update_stats_connection,
)
from bingo.logic.types import WireModel
from bingo.logic.utils import now_ms
from bingo.messaging.protocol import ConnectionProtocol
from bingo.messaging.types import (
    BingoInvalidMessage,
    BingoValidatedMessage,
    CardPoolMessage,
    ChatHistoryMessage,
    ChatPostedMessage,
    ClaimBingoMessage,
    ClientCommand,
    ErrorMessage,
    GamePausedMessage,
    GameResetMessage,
    GameResumedMessage,
    GameStartedMessage,
    GameStateMessage,
    HostCallNextMessage,
    HostCommand,
    HostCreateTimeoutMessage,
    HostEndTimeoutMessage,
    HostKickPlayerMessage,
    HostPauseMessage,
    HostResetMessage,
    HostResumeMessage,
    HostSetPatternMessage,
    HostSetSpeedMessage,
    HostStartGameMessage,
    HostToggleAllowHighlightMessage,
    HostToggleAutoCallMessage,
    HostUpdateSettingsMessage,
    InitMessage,
    JoinRoomMessage,
    KickedMessage,
    MarkCellMessage,
    NumberCalledMessage,
    PatternChangedMessage,
    PlayerJoinedMessage,
    PlayerLeftMessage,
    PlayerReadyMessage,
    PlayerUnreadyMessage,
    PlayerUpdatedMessage,
    RegenerateCardsMessage,
    SelectCardsMessage,
    SendChatMessage,
    SendReactionMessage,
    TimeoutEndedMessage,
    TimeoutStartedMessage,
    ToggleAutoMarkMessage,
    ToggleHighlightCalledNumbersMessage,
)
from bingo.session.broadcast import broadcast_to_connections, send_safely
from bingo.session.timer_manager import RoomTimers

logger = structlog.get_logger()

_CARD_CHANGE_PHASES = frozenset({GamePhase.LOBBY, GamePhase.TIMEOUT})

_HOST_COMMANDS = (
    HostStartGameMessage,
    HostCallNextMessage,
    HostPauseMessage,
    HostResumeMessage,
    HostResetMessage,
    HostSetPatternMessage,
    HostSetSpeedMessage,
    HostToggleAutoCallMessage,
    HostToggleAllowHighlightMessage,
    HostCreateTimeoutMessage,
    HostEndTimeoutMessage,
    HostKickPlayerMessage,
    HostUpdateSettingsMessage,
)

KICK_CLOSE_CODE = 4001


class RoomCoordinator:
    """
    Authoritative owner of one room's game session.

    All mutation flows through handle_command, connect, disconnect and the
    two timer callbacks, each of which runs to completion under the room
    lock before the next one starts.
    """

    def __init__(self, room_id: str, *, rng: random.Random | None = None) -> None:
        self._room_id = room_id
        self._rng = rng
        self._state = engine.create_initial_state(room_id, rng=rng)
        self._connections: dict[str, ConnectionProtocol] = {}
        self._timers = RoomTimers(room_id)
        self._lock = asyncio.Lock()
        self._pending_closes: list[tuple[ConnectionProtocol, int, str]] = []

    @property
    def room_id(self) -> str:
        return self._room_id

    @property
    def state(self) -> BingoGameState:
        return self._state

    @property
    def timers(self) -> RoomTimers:
        return self._timers

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def has_connection(self, connection_id: str) -> bool:
        return connection_id in self._connections

    # --- Connection lifecycle ---

    async def connect(self, connection: ConnectionProtocol) -> None:
        """Register a connection, assign host if the room has none, and send init."""
        async with self._lock:
            connection_id = connection.connection_id
            self._connections[connection_id] = connection
            if not self._host_reachable():
                self._state = engine.set_host(self._state, connection_id)
                logger.info("host assigned", room_id=self._room_id, host_id=connection_id)
            await self._send(
                connection_id,
                InitMessage(
                    player_id=connection_id,
                    is_host=self._state.host_id == connection_id,
                    state=self._state,
                ),
            )

    async def disconnect(self, connection: ConnectionProtocol) -> None:
        """
        Soft-remove a closed connection.

        The player entity is retained with ``connected=False`` so the same
        persistent identity can reclaim it. Timers keep running.
        """
        async with self._lock:
            connection_id = connection.connection_id
            if self._connections.get(connection_id) is connection:
                del self._connections[connection_id]
            player = self._state.get_player(connection_id)
            if player is None or not player.connected:
                return
            self._state = engine.update_connection(self._state, connection_id, connected=False)
            if player.persistent_id:
                self._state = update_stats_connection(self._state, player.persistent_id, connected=False)
            logger.info("player disconnected", room_id=self._room_id, player_id=connection_id)
            await self._broadcast(PlayerLeftMessage(player_id=connection_id))

    async def shutdown(self) -> None:
        """Cancel both timers; called when the room is torn down."""
        self._timers.cancel_all()

    # --- Commands ---

    async def handle_command(self, connection: ConnectionProtocol, message: ClientCommand) -> None:
        """Apply one command, converting rejections into an error for the sender."""
        async with self._lock:
            try:
                await self._dispatch(connection.connection_id, message)
            except SessionError as e:
                logger.info(
                    "command rejected",
                    room_id=self._room_id,
                    connection_id=connection.connection_id,
                    command=message.type,
                    code=e.code,
                    reason=e.message,
                )
                await self._send(connection.connection_id, ErrorMessage(code=e.code, message=e.message))
            finally:
                closes, self._pending_closes = self._pending_closes, []
        for target, code, reason in closes:
            await target.close(code=code, reason=reason)

    async def _dispatch(self, sender_id: str, message: ClientCommand) -> None:  # noqa: C901, PLR0912
        if isinstance(message, _HOST_COMMANDS):
            self._require_host(sender_id)
            await self._dispatch_host(sender_id, message)
        elif isinstance(message, JoinRoomMessage):
            await self._handle_join(sender_id, message)
        elif isinstance(message, SelectCardsMessage):
            await self._handle_select_cards(sender_id, message)
        elif isinstance(message, RegenerateCardsMessage):
            await self._handle_regenerate_cards(sender_id, message)
        elif isinstance(message, MarkCellMessage):
            await self._handle_mark_cell(sender_id, message)
        elif isinstance(message, ClaimBingoMessage):
            await self._handle_claim_bingo(sender_id, message)
        elif isinstance(message, ToggleAutoMarkMessage):
            self._require_player(sender_id)
            await self._apply_player_update(
                sender_id,
                engine.toggle_auto_mark(self._state, sender_id, enabled=message.enabled),
            )
        elif isinstance(message, ToggleHighlightCalledNumbersMessage):
            self._require_player(sender_id)
            self._state = engine.toggle_highlight_called_numbers(self._state, sender_id, enabled=message.enabled)
            await self._broadcast(PlayerUpdatedMessage(player=self._state.players[sender_id]))
        elif isinstance(message, PlayerReadyMessage):
            self._require_player(sender_id)
            await self._apply_player_update(sender_id, engine.set_ready(self._state, sender_id, ready=True))
        elif isinstance(message, PlayerUnreadyMessage):
            self._require_player(sender_id)
            await self._apply_player_update(sender_id, engine.set_ready(self._state, sender_id, ready=False))
        elif isinstance(message, SendChatMessage):
            await self._post_chat(sender_id, message.content, ChatMessageType.TEXT)
        elif isinstance(message, SendReactionMessage):
            await self._post_chat(sender_id, message.reaction.value, ChatMessageType.REACTION)
        else:
            assert_never(message)

    async def _dispatch_host(self, sender_id: str, message: HostCommand) -> None:  # noqa: C901, PLR0912
        if isinstance(message, HostStartGameMessage):
            await self._host_start_game()
        elif isinstance(message, HostCallNextMessage):
            await self._host_call_next()
        elif isinstance(message, HostPauseMessage):
            await self._host_pause()
        elif isinstance(message, HostResumeMessage):
            await self._host_resume()
        elif isinstance(message, HostResetMessage):
            await self._host_reset(preserve_card_selections=message.preserve_card_selections)
        elif isinstance(message, HostSetPatternMessage):
            await self._host_set_pattern(sender_id, message)
        elif isinstance(message, HostSetSpeedMessage):
            await self._host_set_speed(message.interval_ms)
        elif isinstance(message, HostToggleAutoCallMessage):
            await self._host_toggle_auto_call(enabled=message.enabled)
        elif isinstance(message, HostToggleAllowHighlightMessage):
            self._state = engine.set_allow_highlight(self._state, enabled=message.enabled)
            await self._broadcast_state()
        elif isinstance(message, HostCreateTimeoutMessage):
            await self._host_create_timeout(message.duration_seconds)
        elif isinstance(message, HostEndTimeoutMessage):
            if self._state.phase != GamePhase.TIMEOUT:
                return
            self._timers.stop_countdown()
            await self._end_timeout()
        elif isinstance(message, HostKickPlayerMessage):
            await self._host_kick_player(sender_id, message.player_id)
        elif isinstance(message, HostUpdateSettingsMessage):
            await self._host_update_settings(message)
        else:
            assert_never(message)

    # --- Guards ---

    def _host_reachable(self) -> bool:
        """Whether the current host can still act: connected, or retained and reclaimable."""
        host_id = self._state.host_id
        if not host_id:
            return False
        if host_id in self._connections:
            return True
        host = self._state.get_player(host_id)
        return host is not None and host.persistent_id is not None

    def _require_host(self, sender_id: str) -> None:
        if sender_id != self._state.host_id:
            raise AuthorizationError("Not authorized")

    def _require_player(self, sender_id: str) -> Player:
        player = self._state.get_player(sender_id)
        if player is None:
            raise NotJoinedError("Join the room first")
        return player

    # --- Player commands ---

    async def _handle_join(self, sender_id: str, message: JoinRoomMessage) -> None:
        if sender_id in self._state.players:
            self._state = engine.update_connection(self._state, sender_id, connected=True)
            persistent_id = self._state.players[sender_id].persistent_id
            if persistent_id:
                self._state = update_stats_connection(self._state, persistent_id, connected=True)
            await self._send_private_view(sender_id)
            await self._send(sender_id, GameStateMessage(state=self._state))
            return

        if message.persistent_id is not None:
            existing = self._state.find_player_by_persistent_id(message.persistent_id)
            if existing is not None:
                if existing.connected:
                    # the old socket keeps the seat until its close event arrives
                    raise InvalidActionError("Player is already connected")
                await self._reconnect(sender_id, existing, message)
                return

        if not self._state.host_id:
            self._state = engine.set_host(self._state, sender_id)
        player = engine.create_player(
            sender_id,
            message.player_name,
            is_host=self._state.host_id == sender_id,
            persistent_id=message.persistent_id,
            rng=self._rng,
        )
        self._state = engine.add_player(self._state, player)
        if message.persistent_id is not None:
            self._state = update_player_stats(self._state, message.persistent_id, message.player_name, connected=True)
        logger.info("player joined", room_id=self._room_id, player_id=sender_id, player_name=player.name)

        await self._send_private_view(sender_id)
        await self._broadcast(PlayerJoinedMessage(player=player), exclude=sender_id)
        await self._send(sender_id, GameStateMessage(state=self._state))

    async def _reconnect(self, sender_id: str, existing: Player, message: JoinRoomMessage) -> None:
        """Re-link a disconnected player entity to the incoming connection."""
        old_id = existing.id
        self._state = engine.reconnect_player(self._state, old_id, sender_id)
        if message.persistent_id is not None:
            self._state = update_player_stats(self._state, message.persistent_id, message.player_name, connected=True)
        logger.info(
            "player reconnected",
            room_id=self._room_id,
            old_player_id=old_id,
            player_id=sender_id,
            is_host=self._state.host_id == sender_id,
        )

        await self._send_private_view(sender_id)
        await self._broadcast_state()

    async def _send_private_view(self, player_id: str) -> None:
        player = self._state.players[player_id]
        await self._send(player_id, CardPoolMessage(cards=player.cards))
        await self._send(player_id, ChatHistoryMessage(messages=self._state.chat_messages))

    async def _handle_select_cards(self, sender_id: str, message: SelectCardsMessage) -> None:
        self._require_player(sender_id)
        if self._state.phase not in _CARD_CHANGE_PHASES:
            raise PhaseError("Cannot change cards now")
        self._state = engine.select_cards(self._state, sender_id, message.card_ids)
        await self._broadcast(PlayerUpdatedMessage(player=self._state.players[sender_id]))

    async def _handle_regenerate_cards(self, sender_id: str, message: RegenerateCardsMessage) -> None:
        self._require_player(sender_id)
        if self._state.phase not in _CARD_CHANGE_PHASES:
            raise PhaseError("Cannot regenerate cards now")
        self._state = engine.regenerate_cards(
            self._state,
            sender_id,
            preserve_selected=message.preserve_selected,
            rng=self._rng,
        )
        player = self._state.players[sender_id]
        await self._send(sender_id, CardPoolMessage(cards=player.cards))
        await self._broadcast(PlayerUpdatedMessage(player=player))

    async def _handle_mark_cell(self, sender_id: str, message: MarkCellMessage) -> None:
        if self._state.phase != GamePhase.PLAYING:
            return
        self._require_player(sender_id)
        await self._apply_player_update(
            sender_id,
            engine.mark_cell(self._state, sender_id, message.card_id, message.row, message.col),
        )

    async def _handle_claim_bingo(self, sender_id: str, message: ClaimBingoMessage) -> None:
        if self._state.phase != GamePhase.PLAYING:
            raise PhaseError("Game not in progress")
        validation = engine.validate_claim(self._state, sender_id, message.card_id, message.marked_grid)
        if not validation.valid:
            reason = validation.reason or "Invalid bingo"
            logger.info("claim rejected", room_id=self._room_id, player_id=sender_id, reason=reason)
            await self._broadcast(BingoInvalidMessage(player_id=sender_id, reason=reason))
            return

        self._state = engine.add_winner(self._state, sender_id, message.card_id, message.marked_grid)
        persistent_id = self._state.players[sender_id].persistent_id
        if persistent_id:
            self._state = increment_player_wins(self._state, persistent_id)
        winner = self._state.winners[-1]
        logger.info("claim accepted", room_id=self._room_id, player_id=sender_id, place=winner.place)
        await self._broadcast(BingoValidatedMessage(winner=winner))

        if self._state.phase == GamePhase.FINISHED:
            self._timers.cancel_all()
            logger.info("game finished", room_id=self._room_id, winners=len(self._state.winners))
        await self._broadcast_state()

    async def _apply_player_update(self, player_id: str, new_state: BingoGameState) -> None:
        """Commit a per-player reducer result and announce the player if anything changed."""
        if new_state is self._state:
            return
        self._state = new_state
        await self._broadcast(PlayerUpdatedMessage(player=self._state.players[player_id]))

    async def _post_chat(self, sender_id: str, content: str, message_type: ChatMessageType) -> None:
        player = self._require_player(sender_id)
        self._state, chat_message = add_chat_message(self._state, sender_id, player.name, content, message_type)
        await self._broadcast(ChatPostedMessage(message=chat_message))

    # --- Host commands ---

    async def _host_start_game(self) -> None:
        if self._state.phase != GamePhase.LOBBY:
            raise PhaseError("Game already started")
        with_cards = [p for p in self._state.players.values() if p.selected_card_ids]
        if not with_cards:
            raise PhaseError("No players ready")
        if self._state.settings.require_all_players_ready and any(
            p.connected and not p.ready_to_play for p in with_cards
        ):
            raise PhaseError("Not all players are ready")

        self._state = engine.start_game(self._state)
        self._state = increment_games_played(self._state)
        logger.info("game started", room_id=self._room_id, players=len(with_cards))
        await self._broadcast(GameStartedMessage(state=self._state))
        self._sync_auto_call()

    async def _host_call_next(self) -> None:
        if self._state.phase != GamePhase.PLAYING:
            return
        if not self._state.remaining_numbers:
            raise ResourceExhaustedError("No more numbers")
        await self._call_number()

    async def _call_number(self) -> None:
        self._state = engine.call_next_number(self._state)
        call = self._state.call_history[-1]
        logger.debug("number called", room_id=self._room_id, number=call.number, column=call.column)
        await self._broadcast(NumberCalledMessage(call=call, state=self._state))

    async def _host_pause(self) -> None:
        if self._state.phase != GamePhase.PLAYING:
            return
        self._timers.stop_auto_call()
        self._state = engine.pause_game(self._state)
        logger.info("game paused", room_id=self._room_id)
        await self._broadcast(GamePausedMessage())
        await self._broadcast_state()

    async def _host_resume(self) -> None:
        if self._state.phase != GamePhase.PAUSED:
            return
        self._state = engine.resume_game(self._state)
        logger.info("game resumed", room_id=self._room_id)
        await self._broadcast(GameResumedMessage(state=self._state))
        self._sync_auto_call()

    async def _host_reset(self, *, preserve_card_selections: bool) -> None:
        self._timers.cancel_all()
        self._state = engine.reset_game(
            self._state,
            preserve_card_selections=preserve_card_selections,
            rng=self._rng,
        )
        logger.info("game reset", room_id=self._room_id, preserve_card_selections=preserve_card_selections)
        for player_id, player in list(self._state.players.items()):
            if player_id in self._connections:
                await self._send(player_id, CardPoolMessage(cards=player.cards))
        await self._broadcast(GameResetMessage(state=self._state))

    async def _host_set_pattern(self, sender_id: str, message: HostSetPatternMessage) -> None:
        pattern = resolve_pattern(message.pattern)
        if not any(any(row) for row in pattern.grid):
            raise ProtocolError("Pattern must require at least one cell")
        self._state = engine.update_pattern(self._state, pattern)
        logger.info("pattern changed", room_id=self._room_id, pattern_id=pattern.id)
        await self._broadcast(PatternChangedMessage(pattern=pattern, changed_by=sender_id))
        await self._broadcast_state()

    async def _host_set_speed(self, interval_ms: int) -> None:
        self._state = engine.update_settings(self._state, call_interval=clamp_call_interval(interval_ms))
        await self._broadcast_state()
        self._sync_auto_call()

    async def _host_toggle_auto_call(self, *, enabled: bool) -> None:
        self._state = engine.update_settings(self._state, auto_call=enabled)
        await self._broadcast_state()
        self._sync_auto_call()

    async def _host_create_timeout(self, duration_seconds: int) -> None:
        if self._state.phase != GamePhase.PLAYING:
            return
        self._timers.stop_auto_call()
        now = now_ms()
        self._state = engine.start_timeout(self._state, duration_seconds, now=now)
        end_time = now + duration_seconds * 1000
        logger.info("timeout started", room_id=self._room_id, duration_seconds=duration_seconds)
        await self._broadcast(TimeoutStartedMessage(end_time=end_time))
        await self._broadcast_state()
        self._timers.start_countdown(duration_seconds, self._on_countdown_expired)

    async def _end_timeout(self) -> None:
        self._state = engine.end_timeout(self._state)
        logger.info("timeout ended", room_id=self._room_id)
        await self._broadcast(TimeoutEndedMessage())
        await self._broadcast_state()
        self._sync_auto_call()

    async def _host_kick_player(self, sender_id: str, player_id: str) -> None:
        if player_id == sender_id:
            raise InvalidActionError("Cannot kick yourself")
        player = self._state.get_player(player_id)
        connection = self._connections.get(player_id)
        if player is None and connection is None:
            raise PlayerNotFoundError("Player not found")

        if connection is not None:
            await send_safely(connection, KickedMessage().to_wire())
            del self._connections[player_id]
            self._pending_closes.append((connection, KICK_CLOSE_CODE, "kicked"))
        if player is not None and player.persistent_id:
            self._state = update_stats_connection(self._state, player.persistent_id, connected=False)
        self._state = engine.remove_player(self._state, player_id)
        logger.info("player kicked", room_id=self._room_id, player_id=player_id)
        await self._broadcast(PlayerLeftMessage(player_id=player_id))
        await self._broadcast_state()

    async def _host_update_settings(self, message: HostUpdateSettingsMessage) -> None:
        if self._state.phase != GamePhase.LOBBY:
            raise PhaseError("Settings can only be changed in the lobby")
        changes = message.changes()
        if changes:
            self._state = engine.update_settings(self._state, **changes)
        await self._broadcast_state()

    # --- Timers ---

    def _sync_auto_call(self) -> None:
        """(Re)start the ticker when auto-call should run, stop it otherwise."""
        state = self._state
        if state.settings.auto_call and state.phase == GamePhase.PLAYING and state.remaining_numbers:
            self._timers.start_auto_call(state.settings.call_interval, self._on_auto_call_tick)
        else:
            self._timers.stop_auto_call()

    async def _on_auto_call_tick(self) -> bool:
        """Ticker callback; returns whether the ticker should keep running."""
        async with self._lock:
            state = self._state
            if state.phase != GamePhase.PLAYING or not state.settings.auto_call or not state.remaining_numbers:
                return False
            await self._call_number()
            return bool(self._state.remaining_numbers)

    async def _on_countdown_expired(self) -> None:
        async with self._lock:
            if self._state.phase != GamePhase.TIMEOUT:
                return
            await self._end_timeout()

    # --- Delivery ---

    async def _send(self, connection_id: str, message: WireModel) -> None:
        connection = self._connections.get(connection_id)
        if connection is not None:
            await send_safely(connection, message.to_wire())

    async def _broadcast(self, message: WireModel, exclude: str | None = None) -> None:
        await broadcast_to_connections(self._connections, message.to_wire(), exclude_connection_id=exclude)

    async def _broadcast_state(self) -> None:
        await self._broadcast(GameStateMessage(state=self._state))
