"""
Wire message models.

Inbound commands form a closed discriminated union on ``type``; outbound
notifications are frozen models serialized with camelCase field names.
"""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel

from bingo.logic.enums import ErrorCode, QuickReaction
from bingo.logic.settings import DEFAULT_TIMEOUT_SECONDS, MAX_TIMEOUT_SECONDS, MAX_WINNERS_LIMIT
from bingo.logic.state import BingoGameState, Player
from bingo.logic.types import Card, ChatMessage, Grid, NumberCall, Pattern, WireModel, Winner

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F

MAX_CHAT_LENGTH = 500


class ClientMessageType(StrEnum):
    JOIN_ROOM = "joinRoom"
    SELECT_CARDS = "selectCards"
    REGENERATE_CARDS = "regenerateCards"
    MARK_CELL = "markCell"
    CLAIM_BINGO = "claimBingo"
    TOGGLE_AUTO_MARK = "toggleAutoMark"
    TOGGLE_HIGHLIGHT_CALLED_NUMBERS = "toggleHighlightCalledNumbers"
    PLAYER_READY = "playerReady"
    PLAYER_UNREADY = "playerUnready"
    HOST_START_GAME = "hostStartGame"
    HOST_CALL_NEXT = "hostCallNext"
    HOST_PAUSE = "hostPause"
    HOST_RESUME = "hostResume"
    HOST_RESET = "hostReset"
    HOST_SET_PATTERN = "hostSetPattern"
    HOST_SET_SPEED = "hostSetSpeed"
    HOST_TOGGLE_AUTO_CALL = "hostToggleAutoCall"
    HOST_TOGGLE_ALLOW_HIGHLIGHT = "hostToggleAllowHighlight"
    HOST_CREATE_TIMEOUT = "hostCreateTimeout"
    HOST_END_TIMEOUT = "hostEndTimeout"
    HOST_KICK_PLAYER = "hostKickPlayer"
    HOST_UPDATE_SETTINGS = "hostUpdateSettings"
    SEND_CHAT_MESSAGE = "sendChatMessage"
    SEND_REACTION = "sendReaction"


class ServerMessageType(StrEnum):
    INIT = "init"
    CARD_POOL = "cardPool"
    GAME_STATE = "gameState"
    NUMBER_CALLED = "numberCalled"
    PLAYER_JOINED = "playerJoined"
    PLAYER_LEFT = "playerLeft"
    PLAYER_UPDATED = "playerUpdated"
    BINGO_VALIDATED = "bingoValidated"
    BINGO_INVALID = "bingoInvalid"
    GAME_STARTED = "gameStarted"
    GAME_PAUSED = "gamePaused"
    GAME_RESUMED = "gameResumed"
    GAME_RESET = "gameReset"
    TIMEOUT_STARTED = "timeoutStarted"
    TIMEOUT_ENDED = "timeoutEnded"
    PATTERN_CHANGED = "patternChanged"
    KICKED = "kicked"
    ERROR = "error"
    CHAT_MESSAGE = "chatMessage"
    CHAT_HISTORY = "chatHistory"


# --- Inbound commands ---


class ClientMessage(BaseModel):
    """Base for commands sent by clients; accepts camelCase or snake_case keys."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


_ID_FIELD = Field(min_length=1, max_length=100)


class JoinRoomMessage(ClientMessage):
    type: Literal[ClientMessageType.JOIN_ROOM] = ClientMessageType.JOIN_ROOM
    player_name: str = Field(min_length=1, max_length=50)
    persistent_id: str | None = Field(default=None, min_length=1, max_length=100)

    @field_validator("player_name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("player name must not be blank")
        return stripped


class SelectCardsMessage(ClientMessage):
    type: Literal[ClientMessageType.SELECT_CARDS] = ClientMessageType.SELECT_CARDS
    card_ids: list[Annotated[str, Field(min_length=1, max_length=100)]] = Field(max_length=32)


class RegenerateCardsMessage(ClientMessage):
    type: Literal[ClientMessageType.REGENERATE_CARDS] = ClientMessageType.REGENERATE_CARDS
    preserve_selected: bool = False


class MarkCellMessage(ClientMessage):
    type: Literal[ClientMessageType.MARK_CELL] = ClientMessageType.MARK_CELL
    card_id: str = _ID_FIELD
    row: int = Field(ge=0, lt=5)
    col: int = Field(ge=0, lt=5)


class ClaimBingoMessage(ClientMessage):
    type: Literal[ClientMessageType.CLAIM_BINGO] = ClientMessageType.CLAIM_BINGO
    card_id: str = _ID_FIELD
    marked_grid: Grid


class ToggleAutoMarkMessage(ClientMessage):
    type: Literal[ClientMessageType.TOGGLE_AUTO_MARK] = ClientMessageType.TOGGLE_AUTO_MARK
    enabled: bool


class ToggleHighlightCalledNumbersMessage(ClientMessage):
    type: Literal[ClientMessageType.TOGGLE_HIGHLIGHT_CALLED_NUMBERS] = (
        ClientMessageType.TOGGLE_HIGHLIGHT_CALLED_NUMBERS
    )
    enabled: bool


class PlayerReadyMessage(ClientMessage):
    type: Literal[ClientMessageType.PLAYER_READY] = ClientMessageType.PLAYER_READY


class PlayerUnreadyMessage(ClientMessage):
    type: Literal[ClientMessageType.PLAYER_UNREADY] = ClientMessageType.PLAYER_UNREADY


class HostStartGameMessage(ClientMessage):
    type: Literal[ClientMessageType.HOST_START_GAME] = ClientMessageType.HOST_START_GAME


class HostCallNextMessage(ClientMessage):
    type: Literal[ClientMessageType.HOST_CALL_NEXT] = ClientMessageType.HOST_CALL_NEXT


class HostPauseMessage(ClientMessage):
    type: Literal[ClientMessageType.HOST_PAUSE] = ClientMessageType.HOST_PAUSE


class HostResumeMessage(ClientMessage):
    type: Literal[ClientMessageType.HOST_RESUME] = ClientMessageType.HOST_RESUME


class HostResetMessage(ClientMessage):
    type: Literal[ClientMessageType.HOST_RESET] = ClientMessageType.HOST_RESET
    preserve_card_selections: bool = True


class HostSetPatternMessage(ClientMessage):
    type: Literal[ClientMessageType.HOST_SET_PATTERN] = ClientMessageType.HOST_SET_PATTERN
    pattern: Pattern


class HostSetSpeedMessage(ClientMessage):
    type: Literal[ClientMessageType.HOST_SET_SPEED] = ClientMessageType.HOST_SET_SPEED
    interval_ms: int


class HostToggleAutoCallMessage(ClientMessage):
    type: Literal[ClientMessageType.HOST_TOGGLE_AUTO_CALL] = ClientMessageType.HOST_TOGGLE_AUTO_CALL
    enabled: bool


class HostToggleAllowHighlightMessage(ClientMessage):
    type: Literal[ClientMessageType.HOST_TOGGLE_ALLOW_HIGHLIGHT] = ClientMessageType.HOST_TOGGLE_ALLOW_HIGHLIGHT
    enabled: bool


class HostCreateTimeoutMessage(ClientMessage):
    type: Literal[ClientMessageType.HOST_CREATE_TIMEOUT] = ClientMessageType.HOST_CREATE_TIMEOUT
    duration_seconds: int = Field(default=DEFAULT_TIMEOUT_SECONDS, ge=1, le=MAX_TIMEOUT_SECONDS)


class HostEndTimeoutMessage(ClientMessage):
    type: Literal[ClientMessageType.HOST_END_TIMEOUT] = ClientMessageType.HOST_END_TIMEOUT


class HostKickPlayerMessage(ClientMessage):
    type: Literal[ClientMessageType.HOST_KICK_PLAYER] = ClientMessageType.HOST_KICK_PLAYER
    player_id: str = _ID_FIELD


class HostUpdateSettingsMessage(ClientMessage):
    type: Literal[ClientMessageType.HOST_UPDATE_SETTINGS] = ClientMessageType.HOST_UPDATE_SETTINGS
    allow_multiple_winners: bool | None = None
    max_winners: int | None = Field(default=None, ge=1, le=MAX_WINNERS_LIMIT)
    require_all_players_ready: bool | None = None

    def changes(self) -> dict[str, Any]:
        """Only the settings the host actually supplied."""
        return self.model_dump(exclude={"type"}, exclude_none=True)


class SendChatMessage(ClientMessage):
    type: Literal[ClientMessageType.SEND_CHAT_MESSAGE] = ClientMessageType.SEND_CHAT_MESSAGE
    content: str = Field(min_length=1, max_length=MAX_CHAT_LENGTH)

    @field_validator("content")
    @classmethod
    def _validate_content(cls, v: str) -> str:
        if any((ord(c) < _SPACE_ORD and c not in ("\t", "\n", "\r")) or ord(c) == _DEL_ORD for c in v):
            raise ValueError("content must not contain control characters")
        if not v.strip():
            raise ValueError("content must not be blank")
        return v


class SendReactionMessage(ClientMessage):
    type: Literal[ClientMessageType.SEND_REACTION] = ClientMessageType.SEND_REACTION
    reaction: QuickReaction


ClientCommand = (
    JoinRoomMessage
    | SelectCardsMessage
    | RegenerateCardsMessage
    | MarkCellMessage
    | ClaimBingoMessage
    | ToggleAutoMarkMessage
    | ToggleHighlightCalledNumbersMessage
    | PlayerReadyMessage
    | PlayerUnreadyMessage
    | HostStartGameMessage
    | HostCallNextMessage
    | HostPauseMessage
    | HostResumeMessage
    | HostResetMessage
    | HostSetPatternMessage
    | HostSetSpeedMessage
    | HostToggleAutoCallMessage
    | HostToggleAllowHighlightMessage
    | HostCreateTimeoutMessage
    | HostEndTimeoutMessage
    | HostKickPlayerMessage
    | HostUpdateSettingsMessage
    | SendChatMessage
    | SendReactionMessage
)

HostCommand = (
    HostStartGameMessage
    | HostCallNextMessage
    | HostPauseMessage
    | HostResumeMessage
    | HostResetMessage
    | HostSetPatternMessage
    | HostSetSpeedMessage
    | HostToggleAutoCallMessage
    | HostToggleAllowHighlightMessage
    | HostCreateTimeoutMessage
    | HostEndTimeoutMessage
    | HostKickPlayerMessage
    | HostUpdateSettingsMessage
)

_client_message_adapter: TypeAdapter[ClientCommand] = TypeAdapter(
    Annotated[ClientCommand, Field(discriminator="type")],
)


def parse_client_message(data: dict[str, Any]) -> ClientCommand:
    """Validate a decoded frame into a concrete command model."""
    return _client_message_adapter.validate_python(data)


# --- Outbound notifications ---


class InitMessage(WireModel):
    type: Literal[ServerMessageType.INIT] = ServerMessageType.INIT
    player_id: str
    is_host: bool
    state: BingoGameState


class CardPoolMessage(WireModel):
    type: Literal[ServerMessageType.CARD_POOL] = ServerMessageType.CARD_POOL
    cards: tuple[Card, ...]


class GameStateMessage(WireModel):
    type: Literal[ServerMessageType.GAME_STATE] = ServerMessageType.GAME_STATE
    state: BingoGameState


class NumberCalledMessage(WireModel):
    type: Literal[ServerMessageType.NUMBER_CALLED] = ServerMessageType.NUMBER_CALLED
    call: NumberCall
    state: BingoGameState


class PlayerJoinedMessage(WireModel):
    type: Literal[ServerMessageType.PLAYER_JOINED] = ServerMessageType.PLAYER_JOINED
    player: Player


class PlayerLeftMessage(WireModel):
    type: Literal[ServerMessageType.PLAYER_LEFT] = ServerMessageType.PLAYER_LEFT
    player_id: str


class PlayerUpdatedMessage(WireModel):
    type: Literal[ServerMessageType.PLAYER_UPDATED] = ServerMessageType.PLAYER_UPDATED
    player: Player


class BingoValidatedMessage(WireModel):
    type: Literal[ServerMessageType.BINGO_VALIDATED] = ServerMessageType.BINGO_VALIDATED
    winner: Winner


class BingoInvalidMessage(WireModel):
    type: Literal[ServerMessageType.BINGO_INVALID] = ServerMessageType.BINGO_INVALID
    player_id: str
    reason: str


class GameStartedMessage(WireModel):
    type: Literal[ServerMessageType.GAME_STARTED] = ServerMessageType.GAME_STARTED
    state: BingoGameState


class GamePausedMessage(WireModel):
    type: Literal[ServerMessageType.GAME_PAUSED] = ServerMessageType.GAME_PAUSED


class GameResumedMessage(WireModel):
    type: Literal[ServerMessageType.GAME_RESUMED] = ServerMessageType.GAME_RESUMED
    state: BingoGameState


class GameResetMessage(WireModel):
    type: Literal[ServerMessageType.GAME_RESET] = ServerMessageType.GAME_RESET
    state: BingoGameState


class TimeoutStartedMessage(WireModel):
    type: Literal[ServerMessageType.TIMEOUT_STARTED] = ServerMessageType.TIMEOUT_STARTED
    end_time: int


class TimeoutEndedMessage(WireModel):
    type: Literal[ServerMessageType.TIMEOUT_ENDED] = ServerMessageType.TIMEOUT_ENDED


class PatternChangedMessage(WireModel):
    type: Literal[ServerMessageType.PATTERN_CHANGED] = ServerMessageType.PATTERN_CHANGED
    pattern: Pattern
    changed_by: str


class KickedMessage(WireModel):
    type: Literal[ServerMessageType.KICKED] = ServerMessageType.KICKED


class ErrorMessage(WireModel):
    type: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    code: ErrorCode
    message: str


class ChatPostedMessage(WireModel):
    type: Literal[ServerMessageType.CHAT_MESSAGE] = ServerMessageType.CHAT_MESSAGE
    message: ChatMessage


class ChatHistoryMessage(WireModel):
    type: Literal[ServerMessageType.CHAT_HISTORY] = ServerMessageType.CHAT_HISTORY
    messages: tuple[ChatMessage, ...]
