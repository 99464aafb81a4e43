"""
Immutable room state.

All models are frozen; reducers produce new instances via model_copy and
rebuild any mapping they change instead of mutating it, so a snapshot
already broadcast to clients never changes after the fact.
"""

from pydantic import Field, SerializationInfo, computed_field, field_serializer

from bingo.logic.enums import GamePhase
from bingo.logic.patterns import DEFAULT_PATTERN
from bingo.logic.settings import GameSettings
from bingo.logic.types import Card, ChatMessage, Grid, NumberCall, Pattern, PlayerStats, WireModel, Winner


class Player(WireModel):
    """
    A participant in the room.

    Keyed by the current connection id; ``persistent_id`` links the entity
    to a replacement connection after a reconnect. It is a reclaim
    credential, so it never leaves the server.
    """

    id: str
    persistent_id: str | None = Field(default=None, exclude=True)
    name: str
    is_host: bool = False
    connected: bool = True
    cards: tuple[Card, ...] = ()
    selected_card_ids: tuple[str, ...] = ()
    marked_cells: dict[str, Grid] = Field(default_factory=dict)
    auto_mark: bool = False
    ready_to_play: bool = False
    highlight_called_numbers: bool = True

    def get_card(self, card_id: str) -> Card | None:
        for card in self.cards:
            if card.id == card_id:
                return card
        return None


class BingoGameState(WireModel):
    """
    Complete authoritative state of one room's game session.

    The draw order itself is never serialized; clients only see how many
    numbers remain.
    """

    room_id: str
    phase: GamePhase = GamePhase.LOBBY
    host_id: str = ""
    players: dict[str, Player] = Field(default_factory=dict)
    called_numbers: tuple[int, ...] = ()
    remaining_numbers: tuple[int, ...] = Field(default=(), exclude=True)
    current_number: int | None = None
    call_history: tuple[NumberCall, ...] = ()
    settings: GameSettings = Field(default_factory=GameSettings)
    current_pattern: Pattern = DEFAULT_PATTERN
    winners: tuple[Winner, ...] = ()
    last_call_time: int = 0
    timeout_end_time: int | None = None
    chat_messages: tuple[ChatMessage, ...] = ()
    player_stats: dict[str, PlayerStats] = Field(default_factory=dict)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def numbers_remaining(self) -> int:
        return len(self.remaining_numbers)

    @field_serializer("player_stats")
    def _serialize_player_stats(self, player_stats: dict[str, PlayerStats], info: SerializationInfo) -> list[dict]:
        # keys are persistent ids; clients get the entries only
        return [stats.model_dump(mode=info.mode, by_alias=info.by_alias) for stats in player_stats.values()]

    def get_player(self, player_id: str) -> Player | None:
        return self.players.get(player_id)

    def find_player_by_persistent_id(self, persistent_id: str) -> Player | None:
        for player in self.players.values():
            if player.persistent_id == persistent_id:
                return player
        return None

    def has_winner(self, player_id: str) -> bool:
        return any(winner.player_id == player_id for winner in self.winners)
