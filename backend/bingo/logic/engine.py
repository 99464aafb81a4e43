"""
Pure state-transition functions for a bingo room.

Each reducer takes the current immutable BingoGameState and returns a new
one (or the same object when the command is a no-op). Phase gating and
authorization are the coordinator's job; reducers only enforce the data
invariants of the session. Timestamps default to the wall clock and can be
pinned with ``now``; card generation accepts an optional random source.
"""

import random

from bingo.logic.cards import (
    column_for_number,
    empty_marked_grid,
    generate_card_pool,
    generate_shuffled_numbers,
)
from bingo.logic.enums import GamePhase
from bingo.logic.patterns import matches, validate_marks, winning_cells
from bingo.logic.settings import CARD_POOL_SIZE, GRID_SIZE, MAX_SELECTED_CARDS
from bingo.logic.state import BingoGameState, Player
from bingo.logic.state_utils import replace_players, update_player
from bingo.logic.types import FREE, ClaimValidation, Grid, NumberCall, Pattern, Winner
from bingo.logic.utils import now_ms

REASON_PLAYER_NOT_FOUND = "Player not found"
REASON_CARD_NOT_FOUND = "Card not found"
REASON_CARD_NOT_SELECTED = "Card not selected for play"
REASON_INVALID_MARKS = "Invalid marked cells - numbers not called"
REASON_PATTERN_INCOMPLETE = "Pattern not completed"
REASON_ALREADY_WON = "Already won"
REASON_MAX_WINNERS = "Maximum winners reached"


def _now(now: int | None) -> int:
    return now if now is not None else now_ms()


def create_initial_state(room_id: str, host_id: str = "", rng: random.Random | None = None) -> BingoGameState:
    """A fresh lobby with a newly shuffled draw order."""
    return BingoGameState(
        room_id=room_id,
        host_id=host_id,
        remaining_numbers=generate_shuffled_numbers(rng),
    )


def create_player(
    player_id: str,
    name: str,
    *,
    is_host: bool = False,
    persistent_id: str | None = None,
    rng: random.Random | None = None,
) -> Player:
    return Player(
        id=player_id,
        name=name,
        persistent_id=persistent_id,
        is_host=is_host,
        cards=generate_card_pool(CARD_POOL_SIZE, rng),
    )


# --- Players ---


def add_player(state: BingoGameState, player: Player) -> BingoGameState:
    return replace_players(state, {**state.players, player.id: player})


def remove_player(state: BingoGameState, player_id: str) -> BingoGameState:
    if player_id not in state.players:
        return state
    players = {pid: p for pid, p in state.players.items() if pid != player_id}
    return replace_players(state, players)


def update_connection(state: BingoGameState, player_id: str, *, connected: bool) -> BingoGameState:
    if player_id not in state.players:
        return state
    return update_player(state, player_id, connected=connected)


def set_host(state: BingoGameState, host_id: str) -> BingoGameState:
    """Point host identity at ``host_id`` and keep per-player flags in sync."""
    players = {pid: p.model_copy(update={"is_host": pid == host_id}) for pid, p in state.players.items()}
    return state.model_copy(update={"host_id": host_id, "players": players})


def reconnect_player(state: BingoGameState, old_player_id: str, new_player_id: str) -> BingoGameState:
    """
    Re-key a retained player entity under a new connection id.

    Cards, selection, marks and ready flag are preserved. Host identity
    follows the entity.
    """
    player = state.players.get(old_player_id)
    if player is None:
        return state
    relinked = player.model_copy(update={"id": new_player_id, "connected": True})
    players = {pid: p for pid, p in state.players.items() if pid != old_player_id}
    players[new_player_id] = relinked
    new_state = replace_players(state, players)
    if state.host_id == old_player_id:
        new_state = new_state.model_copy(update={"host_id": new_player_id})
    return new_state


# --- Cards ---


def select_cards(state: BingoGameState, player_id: str, card_ids: list[str]) -> BingoGameState:
    """
    Choose which pool cards a player plays.

    Ids outside the player's pool are dropped and the selection is silently
    truncated to the maximum; marks are re-initialized for exactly the
    selected cards.
    """
    player = state.players.get(player_id)
    if player is None:
        return state
    owned = {card.id for card in player.cards}
    valid: list[str] = []
    for card_id in card_ids:
        if card_id in owned and card_id not in valid:
            valid.append(card_id)
    selected = tuple(valid[:MAX_SELECTED_CARDS])
    return update_player(
        state,
        player_id,
        selected_card_ids=selected,
        marked_cells={card_id: empty_marked_grid() for card_id in selected},
    )


def regenerate_cards(
    state: BingoGameState,
    player_id: str,
    *,
    preserve_selected: bool = False,
    rng: random.Random | None = None,
) -> BingoGameState:
    player = state.players.get(player_id)
    if player is None:
        return state
    if preserve_selected and player.selected_card_ids:
        kept = tuple(card for card in player.cards if card.id in player.selected_card_ids)
        fresh = generate_card_pool(CARD_POOL_SIZE - len(kept), rng)
        return update_player(state, player_id, cards=kept + fresh)
    return update_player(
        state,
        player_id,
        cards=generate_card_pool(CARD_POOL_SIZE, rng),
        selected_card_ids=(),
        marked_cells={},
        ready_to_play=False,
    )


def _toggle_cell(grid: Grid, row: int, col: int) -> Grid:
    return tuple(
        tuple((not cell) if (r == row and c == col) else cell for c, cell in enumerate(cells))
        for r, cells in enumerate(grid)
    )


def mark_cell(state: BingoGameState, player_id: str, card_id: str, row: int, col: int) -> BingoGameState:
    """
    Toggle a mark on a selected card.

    No-op for the FREE cell, which stays marked, and for numbers not yet called.
    """
    if not (0 <= row < GRID_SIZE and 0 <= col < GRID_SIZE):
        return state
    player = state.players.get(player_id)
    if player is None:
        return state
    grid = player.marked_cells.get(card_id)
    card = player.get_card(card_id)
    if grid is None or card is None:
        return state
    value = card.grid[row][col]
    if value == FREE or value not in state.called_numbers:
        return state
    marked_cells = {**player.marked_cells, card_id: _toggle_cell(grid, row, col)}
    return update_player(state, player_id, marked_cells=marked_cells)


def _auto_marked(player: Player, number: int) -> Player:
    marked_cells = dict(player.marked_cells)
    for card_id in player.selected_card_ids:
        card = player.get_card(card_id)
        grid = marked_cells.get(card_id)
        if card is None or grid is None:
            continue
        marked_cells[card_id] = tuple(
            tuple(cell or card.grid[r][c] == number for c, cell in enumerate(cells)) for r, cells in enumerate(grid)
        )
    return player.model_copy(update={"marked_cells": marked_cells})


def auto_mark_number(state: BingoGameState, number: int) -> BingoGameState:
    """Mark ``number`` on every selected card of players with auto-mark on."""
    players = {pid: _auto_marked(p, number) if p.auto_mark else p for pid, p in state.players.items()}
    return replace_players(state, players)


def toggle_auto_mark(state: BingoGameState, player_id: str, *, enabled: bool) -> BingoGameState:
    if player_id not in state.players:
        return state
    return update_player(state, player_id, auto_mark=enabled)


def toggle_highlight_called_numbers(state: BingoGameState, player_id: str, *, enabled: bool) -> BingoGameState:
    """Set a player's highlight preference; enabling is refused while the host disallows it."""
    if player_id not in state.players:
        return state
    if enabled and not state.settings.allow_highlight_called_numbers:
        return state
    return update_player(state, player_id, highlight_called_numbers=enabled)


def set_ready(state: BingoGameState, player_id: str, *, ready: bool) -> BingoGameState:
    """Confirm or withdraw readiness. Confirming requires a non-empty selection."""
    player = state.players.get(player_id)
    if player is None:
        return state
    if ready and not player.selected_card_ids:
        return state
    return update_player(state, player_id, ready_to_play=ready)


# --- Calling ---


def call_next_number(state: BingoGameState, now: int | None = None) -> BingoGameState:
    """Draw the head of the draw order; no-op once it is exhausted."""
    if not state.remaining_numbers:
        return state
    number, *remaining = state.remaining_numbers
    timestamp = _now(now)
    call = NumberCall(number=number, column=column_for_number(number), timestamp=timestamp)
    new_state = state.model_copy(
        update={
            "current_number": number,
            "called_numbers": (*state.called_numbers, number),
            "remaining_numbers": tuple(remaining),
            "call_history": (*state.call_history, call),
            "last_call_time": timestamp,
        },
    )
    return auto_mark_number(new_state, number)


# --- Claims ---


def validate_claim(state: BingoGameState, player_id: str, card_id: str, marked: Grid) -> ClaimValidation:
    """
    Check a bingo claim against the authoritative state.

    Checks run in a fixed order and the first failure is reported.
    """
    player = state.players.get(player_id)
    if player is None:
        return ClaimValidation(valid=False, reason=REASON_PLAYER_NOT_FOUND)
    card = player.get_card(card_id)
    if card is None:
        return ClaimValidation(valid=False, reason=REASON_CARD_NOT_FOUND)
    if card_id not in player.selected_card_ids:
        return ClaimValidation(valid=False, reason=REASON_CARD_NOT_SELECTED)
    if not validate_marks(card, marked, state.called_numbers):
        return ClaimValidation(valid=False, reason=REASON_INVALID_MARKS)
    if not matches(marked, state.current_pattern):
        return ClaimValidation(valid=False, reason=REASON_PATTERN_INCOMPLETE)
    if state.has_winner(player_id):
        return ClaimValidation(valid=False, reason=REASON_ALREADY_WON)
    if len(state.winners) >= state.settings.max_winners:
        return ClaimValidation(valid=False, reason=REASON_MAX_WINNERS)
    return ClaimValidation(valid=True)


def add_winner(
    state: BingoGameState,
    player_id: str,
    card_id: str,
    marked: Grid,
    now: int | None = None,
) -> BingoGameState:
    """Record a validated claim; finishes the game when no more winners are allowed."""
    player = state.players.get(player_id)
    if player is None:
        return state
    winner = Winner(
        player_id=player_id,
        player_name=player.name,
        card_id=card_id,
        place=len(state.winners) + 1,
        timestamp=_now(now),
        winning_pattern=winning_cells(marked, state.current_pattern),
    )
    winners = (*state.winners, winner)
    settings = state.settings
    finished = not settings.allow_multiple_winners or len(winners) >= settings.max_winners
    return state.model_copy(
        update={
            "winners": winners,
            "phase": GamePhase.FINISHED if finished else state.phase,
        },
    )


# --- Phases ---


def start_game(state: BingoGameState, now: int | None = None) -> BingoGameState:
    return state.model_copy(update={"phase": GamePhase.PLAYING, "last_call_time": _now(now)})


def pause_game(state: BingoGameState) -> BingoGameState:
    return state.model_copy(update={"phase": GamePhase.PAUSED})


def resume_game(state: BingoGameState, now: int | None = None) -> BingoGameState:
    return state.model_copy(update={"phase": GamePhase.PLAYING, "last_call_time": _now(now)})


def start_timeout(state: BingoGameState, duration_seconds: int, now: int | None = None) -> BingoGameState:
    return state.model_copy(
        update={"phase": GamePhase.TIMEOUT, "timeout_end_time": _now(now) + duration_seconds * 1000},
    )


def end_timeout(state: BingoGameState, now: int | None = None) -> BingoGameState:
    return state.model_copy(
        update={"phase": GamePhase.PLAYING, "timeout_end_time": None, "last_call_time": _now(now)},
    )


def _reset_player(player: Player, *, preserve_selection: bool, rng: random.Random | None) -> Player:
    if preserve_selection and player.selected_card_ids:
        return player.model_copy(
            update={
                "marked_cells": {card_id: empty_marked_grid() for card_id in player.selected_card_ids},
                "ready_to_play": True,
            },
        )
    return player.model_copy(
        update={
            "cards": generate_card_pool(CARD_POOL_SIZE, rng),
            "selected_card_ids": (),
            "marked_cells": {},
            "ready_to_play": False,
        },
    )


def reset_game(
    state: BingoGameState,
    *,
    preserve_card_selections: bool = True,
    rng: random.Random | None = None,
) -> BingoGameState:
    """
    Return to the lobby with a fresh draw order.

    Players who keep their selection stay ready with wiped marks; everyone
    else gets a new pool and must select again.
    """
    players = {
        pid: _reset_player(p, preserve_selection=preserve_card_selections, rng=rng)
        for pid, p in state.players.items()
    }
    return state.model_copy(
        update={
            "phase": GamePhase.LOBBY,
            "players": players,
            "called_numbers": (),
            "remaining_numbers": generate_shuffled_numbers(rng),
            "current_number": None,
            "call_history": (),
            "winners": (),
            "last_call_time": 0,
            "timeout_end_time": None,
        },
    )


# --- Settings ---


def update_settings(state: BingoGameState, **changes: object) -> BingoGameState:
    """Shallow-merge changes into the room settings."""
    settings = state.settings.model_copy(update=changes)
    return state.model_copy(update={"settings": settings})


def set_allow_highlight(state: BingoGameState, *, enabled: bool) -> BingoGameState:
    """Toggle the highlight permission; revoking it switches every player's highlight off."""
    new_state = update_settings(state, allow_highlight_called_numbers=enabled)
    if enabled:
        return new_state
    players = {pid: p.model_copy(update={"highlight_called_numbers": False}) for pid, p in new_state.players.items()}
    return replace_players(new_state, players)


def update_pattern(state: BingoGameState, pattern: Pattern) -> BingoGameState:
    return state.model_copy(update={"current_pattern": pattern})
