"""Room game rules and the fixed dimensions of a bingo session."""

from pydantic import Field

from bingo.logic.types import WireModel

GRID_SIZE = 5
CENTER = GRID_SIZE // 2
TOTAL_NUMBERS = 75
NUMBERS_PER_COLUMN = TOTAL_NUMBERS // GRID_SIZE

CARD_POOL_SIZE = 8
MAX_SELECTED_CARDS = 4

MIN_CALL_INTERVAL_MS = 2000
MAX_CALL_INTERVAL_MS = 10000
DEFAULT_CALL_INTERVAL_MS = 5000

DEFAULT_TIMEOUT_SECONDS = 60
MAX_TIMEOUT_SECONDS = 3600

MAX_CHAT_MESSAGES = 100
MAX_WINNERS_LIMIT = 10


class GameSettings(WireModel):
    """
    Host-controlled rules for one room.

    Defaults match a freshly created room.
    """

    auto_call: bool = False
    call_interval: int = Field(default=DEFAULT_CALL_INTERVAL_MS, ge=MIN_CALL_INTERVAL_MS, le=MAX_CALL_INTERVAL_MS)
    allow_multiple_winners: bool = True
    max_winners: int = Field(default=3, ge=1, le=MAX_WINNERS_LIMIT)
    require_all_players_ready: bool = False
    allow_highlight_called_numbers: bool = True


def clamp_call_interval(interval_ms: int) -> int:
    """Clamp an auto-call interval into the supported range."""
    return max(MIN_CALL_INTERVAL_MS, min(MAX_CALL_INTERVAL_MS, interval_ms))
