"""
Immutable state update utilities using Pydantic model_copy.

These helpers never mutate their input: changed mappings are rebuilt and
every update returns a new state object.
"""

from bingo.logic.state import BingoGameState, Player
from bingo.logic.types import PlayerStats

_PLAYER_FIELDS = set(Player.model_fields)


def update_player(state: BingoGameState, player_id: str, **updates: object) -> BingoGameState:
    """
    Return new state with the given fields replaced on one player.

    Raises:
        KeyError: If the player does not exist
        ValueError: If an update names an unknown field

    """
    invalid_fields = set(updates) - _PLAYER_FIELDS
    if invalid_fields:
        raise ValueError(f"Invalid player fields: {invalid_fields}")
    player = state.players[player_id]
    players = {**state.players, player_id: player.model_copy(update=updates)}
    return state.model_copy(update={"players": players})


def replace_players(state: BingoGameState, players: dict[str, Player]) -> BingoGameState:
    return state.model_copy(update={"players": players})


def update_stats(state: BingoGameState, stats: PlayerStats) -> BingoGameState:
    player_stats = {**state.player_stats, stats.persistent_id: stats}
    return state.model_copy(update={"player_stats": player_stats})
