import random
from collections.abc import Iterable

import pytest

from bingo.logic import engine
from bingo.logic.enums import GamePhase
from bingo.logic.patterns import grid_from_cells
from bingo.logic.settings import CENTER, GRID_SIZE, NUMBERS_PER_COLUMN
from bingo.logic.state import BingoGameState, Player
from bingo.logic.types import FREE, Card, Grid
from bingo.messaging.router import MessageRouter
from bingo.server.app import create_app
from bingo.server.settings import BingoServerSettings
from bingo.session.manager import SessionManager
from bingo.tests.mocks import MockConnection

# ============================================================================
# Test State Builder Helpers
# ============================================================================


def make_card(card_id: str = "card_a") -> Card:
    """A card with predictable numbers: column c, row r holds c*15 + r + 1."""
    grid = tuple(
        tuple(
            FREE if (row == CENTER and col == CENTER) else col * NUMBERS_PER_COLUMN + row + 1
            for col in range(GRID_SIZE)
        )
        for row in range(GRID_SIZE)
    )
    return Card(id=card_id, grid=grid)


def marks(*cells: tuple[int, int], free: bool = True) -> Grid:
    """Marked grid with the given cells (and the FREE center unless disabled)."""
    wanted: list[tuple[int, int]] = list(cells)
    if free:
        wanted.append((CENTER, CENTER))
    return grid_from_cells(wanted)


def numbers_at(card: Card, cells: Iterable[tuple[int, int]]) -> tuple[int, ...]:
    return tuple(card.grid[r][c] for r, c in cells if card.grid[r][c] != FREE)


def create_game_state(
    *,
    players: Iterable[Player] = (),
    phase: GamePhase = GamePhase.LOBBY,
    called: Iterable[int] = (),
    host_id: str = "",
    rng: random.Random | None = None,
) -> BingoGameState:
    """Create a BingoGameState with the given numbers already drawn."""
    state = engine.create_initial_state("test-room", host_id=host_id, rng=rng or random.Random(0))
    called_numbers = tuple(called)
    remaining = tuple(n for n in state.remaining_numbers if n not in called_numbers)
    return state.model_copy(
        update={
            "phase": phase,
            "players": {p.id: p for p in players},
            "called_numbers": called_numbers,
            "remaining_numbers": remaining,
            "current_number": called_numbers[-1] if called_numbers else None,
        },
    )


def create_player(
    player_id: str = "p1",
    name: str | None = None,
    *,
    card: Card | None = None,
    selected: bool = True,
    persistent_id: str | None = None,
    **fields: object,
) -> Player:
    """A player holding one predictable card, selected with empty marks by default."""
    card = card or make_card()
    player = Player(
        id=player_id,
        name=name if name is not None else f"Player {player_id}",
        persistent_id=persistent_id,
        cards=(card,),
    )
    if selected:
        player = player.model_copy(
            update={"selected_card_ids": (card.id,), "marked_cells": {card.id: marks()}},
        )
    return player.model_copy(update=fields)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def session_manager(rng):
    return SessionManager(max_rooms=5, room_ttl_seconds=60, rng=rng)


@pytest.fixture
def message_router(session_manager):
    return MessageRouter(session_manager)


@pytest.fixture
def mock_connection():
    return MockConnection()


@pytest.fixture
def app(session_manager, message_router):
    settings = BingoServerSettings(max_rooms=5, room_ttl_seconds=60, cors_origins=["http://localhost:5173"])
    return create_app(settings=settings, session_manager=session_manager, message_router=message_router)
