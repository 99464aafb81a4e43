"""
Pydantic models for bingo data structures that cross component boundaries.

Every model is frozen and serializes with camelCase aliases, so a
snapshot handed to the transport can be dumped straight onto the wire.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from bingo.logic.enums import BingoColumn, ChatMessageType, PatternType

FREE = "FREE"

CellValue = int | Literal["FREE"]
GridRow = tuple[bool, bool, bool, bool, bool]
Grid = tuple[GridRow, GridRow, GridRow, GridRow, GridRow]
CardRow = tuple[CellValue, CellValue, CellValue, CellValue, CellValue]
CardGrid = tuple[CardRow, CardRow, CardRow, CardRow, CardRow]


class WireModel(BaseModel):
    """Frozen model exchanged with clients using camelCase field names."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Card(WireModel):
    id: str
    grid: CardGrid


class NumberCall(WireModel):
    number: int = Field(ge=1, le=75)
    column: BingoColumn
    timestamp: int


class Pattern(WireModel):
    """
    A win condition.

    Symbolic presets (lines, postage stamp) are matched by id; every other
    pattern requires the cells flagged in ``grid``.
    """

    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=100)
    name_es: str | None = Field(default=None, max_length=100)
    type: PatternType = PatternType.CUSTOM
    grid: Grid
    description: str | None = Field(default=None, max_length=500)
    description_es: str | None = Field(default=None, max_length=500)


class Winner(WireModel):
    player_id: str
    player_name: str
    card_id: str
    place: int
    timestamp: int
    winning_pattern: Grid


class ChatMessage(WireModel):
    id: str
    player_id: str
    player_name: str
    type: ChatMessageType
    content: str
    timestamp: int


class PlayerStats(WireModel):
    """Per-identity counters that outlive any single connection."""

    persistent_id: str = Field(exclude=True)
    player_name: str
    wins: int = 0
    games_played: int = 0
    connected: bool = True


class ClaimValidation(BaseModel):
    """Outcome of checking a bingo claim against the authoritative state."""

    model_config = ConfigDict(frozen=True)

    valid: bool
    reason: str | None = None
