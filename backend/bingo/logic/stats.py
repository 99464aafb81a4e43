"""
Per-identity player statistics.

Stats are keyed by persistent id rather than connection id, so they
survive a reconnect under a new connection.
"""

from bingo.logic.state import BingoGameState
from bingo.logic.state_utils import update_stats
from bingo.logic.types import PlayerStats


def update_player_stats(
    state: BingoGameState,
    persistent_id: str,
    player_name: str,
    *,
    connected: bool,
) -> BingoGameState:
    """Create stats for a new identity, or refresh name and connectivity of a known one."""
    existing = state.player_stats.get(persistent_id)
    if existing is None:
        stats = PlayerStats(persistent_id=persistent_id, player_name=player_name, connected=connected)
    else:
        stats = existing.model_copy(update={"player_name": player_name, "connected": connected})
    return update_stats(state, stats)


def update_stats_connection(state: BingoGameState, persistent_id: str, *, connected: bool) -> BingoGameState:
    existing = state.player_stats.get(persistent_id)
    if existing is None:
        return state
    return update_stats(state, existing.model_copy(update={"connected": connected}))


def increment_games_played(state: BingoGameState) -> BingoGameState:
    """Count a game for every identified player holding a card selection."""
    player_stats = dict(state.player_stats)
    for player in state.players.values():
        if not player.persistent_id or not player.selected_card_ids:
            continue
        stats = player_stats.get(player.persistent_id)
        if stats is not None:
            player_stats[player.persistent_id] = stats.model_copy(update={"games_played": stats.games_played + 1})
    return state.model_copy(update={"player_stats": player_stats})


def increment_player_wins(state: BingoGameState, persistent_id: str) -> BingoGameState:
    existing = state.player_stats.get(persistent_id)
    if existing is None:
        return state
    return update_stats(state, existing.model_copy(update={"wins": existing.wins + 1}))
