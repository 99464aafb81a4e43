import random

import pytest

from bingo.logic import engine
from bingo.logic.enums import GamePhase
from bingo.logic.patterns import get_pattern_by_id
from bingo.logic.settings import CARD_POOL_SIZE, MAX_SELECTED_CARDS
from bingo.tests.conftest import create_game_state, create_player, make_card, marks, numbers_at

CORNERS = [(0, 0), (0, 4), (4, 0), (4, 4)]
TOP_ROW = [(0, c) for c in range(5)]


class TestCreate:
    def test_initial_state_is_an_empty_lobby(self):
        state = engine.create_initial_state("room-1", rng=random.Random(1))

        assert state.phase == GamePhase.LOBBY
        assert state.players == {}
        assert state.called_numbers == ()
        assert sorted(state.remaining_numbers) == list(range(1, 76))
        assert state.current_pattern.id == "any-line"
        assert state.settings.call_interval == 5000

    def test_player_gets_a_full_pool_and_no_selection(self):
        player = engine.create_player("p1", "Ana", rng=random.Random(2))

        assert len(player.cards) == CARD_POOL_SIZE
        assert player.selected_card_ids == ()
        assert player.connected is True
        assert player.highlight_called_numbers is True


class TestPlayers:
    def test_add_and_remove(self):
        state = engine.add_player(create_game_state(), create_player("p1"))
        assert "p1" in state.players

        state = engine.remove_player(state, "p1")
        assert state.players == {}

    def test_remove_unknown_is_noop(self):
        state = create_game_state()
        assert engine.remove_player(state, "ghost") is state

    def test_set_host_syncs_flags(self):
        state = create_game_state(players=[create_player("p1"), create_player("p2")])
        state = engine.set_host(state, "p2")

        assert state.host_id == "p2"
        assert state.players["p2"].is_host
        assert not state.players["p1"].is_host

    def test_reconnect_rekeys_and_preserves_everything(self):
        player = create_player("old", persistent_id="ident", ready_to_play=True)
        state = engine.update_connection(
            create_game_state(players=[player], host_id="old"),
            "old",
            connected=False,
        )

        state = engine.reconnect_player(state, "old", "new")

        assert "old" not in state.players
        relinked = state.players["new"]
        assert relinked.connected is True
        assert relinked.cards == player.cards
        assert relinked.selected_card_ids == player.selected_card_ids
        assert relinked.marked_cells == player.marked_cells
        assert relinked.ready_to_play is True
        assert state.host_id == "new"


class TestSelectCards:
    def _state(self):
        pool = tuple(make_card(f"card_{i}") for i in range(6))
        player = create_player("p1", selected=False).model_copy(update={"cards": pool})
        return create_game_state(players=[player])

    def test_filters_unknown_and_duplicate_ids(self):
        state = engine.select_cards(self._state(), "p1", ["card_1", "bogus", "card_1", "card_3"])

        assert state.players["p1"].selected_card_ids == ("card_1", "card_3")
        assert set(state.players["p1"].marked_cells) == {"card_1", "card_3"}

    def test_truncates_to_maximum(self):
        state = engine.select_cards(self._state(), "p1", [f"card_{i}" for i in range(6)])

        assert len(state.players["p1"].selected_card_ids) == MAX_SELECTED_CARDS

    def test_marks_reinitialized_with_free_center(self):
        state = engine.select_cards(self._state(), "p1", ["card_2"])

        assert state.players["p1"].marked_cells["card_2"] == marks()


class TestRegenerateCards:
    def test_full_regeneration_clears_selection(self, rng):
        state = create_game_state(players=[create_player("p1", ready_to_play=True)])

        state = engine.regenerate_cards(state, "p1", rng=rng)

        player = state.players["p1"]
        assert len(player.cards) == CARD_POOL_SIZE
        assert player.selected_card_ids == ()
        assert player.marked_cells == {}
        assert player.ready_to_play is False

    def test_preserve_selected_keeps_selected_cards(self, rng):
        card = make_card("card_keep")
        state = create_game_state(players=[create_player("p1", card=card)])

        state = engine.regenerate_cards(state, "p1", preserve_selected=True, rng=rng)

        player = state.players["p1"]
        assert player.cards[0] == card
        assert len(player.cards) == CARD_POOL_SIZE
        assert player.selected_card_ids == ("card_keep",)


class TestMarkCell:
    def test_marks_called_number(self):
        state = create_game_state(players=[create_player("p1")], phase=GamePhase.PLAYING, called=[1])

        state = engine.mark_cell(state, "p1", "card_a", 0, 0)

        assert state.players["p1"].marked_cells["card_a"][0][0] is True

    def test_second_mark_toggles_off(self):
        state = create_game_state(players=[create_player("p1")], phase=GamePhase.PLAYING, called=[1])

        state = engine.mark_cell(engine.mark_cell(state, "p1", "card_a", 0, 0), "p1", "card_a", 0, 0)

        assert state.players["p1"].marked_cells["card_a"][0][0] is False

    def test_uncalled_number_is_noop(self):
        state = create_game_state(players=[create_player("p1")], phase=GamePhase.PLAYING, called=[2])

        assert engine.mark_cell(state, "p1", "card_a", 0, 0) is state

    def test_free_cell_stays_marked(self):
        state = create_game_state(players=[create_player("p1")], phase=GamePhase.PLAYING)

        assert engine.mark_cell(state, "p1", "card_a", 2, 2) is state
        assert state.players["p1"].marked_cells["card_a"][2][2] is True

    @pytest.mark.parametrize(("row", "col"), [(-1, 0), (0, 5), (7, 7)])
    def test_out_of_range_is_noop(self, row, col):
        state = create_game_state(players=[create_player("p1")], called=[1])

        assert engine.mark_cell(state, "p1", "card_a", row, col) is state

    def test_unselected_card_is_noop(self):
        state = create_game_state(players=[create_player("p1", selected=False)], called=[1])

        assert engine.mark_cell(state, "p1", "card_a", 0, 0) is state


class TestCallNextNumber:
    def test_moves_head_of_draw_order(self):
        state = create_game_state(phase=GamePhase.PLAYING)
        head = state.remaining_numbers[0]

        state = engine.call_next_number(state, now=1000)

        assert state.current_number == head
        assert state.called_numbers == (head,)
        assert head not in state.remaining_numbers
        assert state.numbers_remaining == 74
        assert state.call_history[-1].number == head
        assert state.call_history[-1].timestamp == 1000
        assert state.last_call_time == 1000

    def test_exhausted_draw_is_noop(self):
        state = create_game_state(phase=GamePhase.PLAYING, called=range(1, 76))

        assert engine.call_next_number(state) is state

    def test_auto_mark_only_for_opted_in_players(self):
        card = make_card()
        auto = create_player("auto", card=card, auto_mark=True)
        manual = create_player("manual", card=card)
        state = create_game_state(players=[auto, manual], phase=GamePhase.PLAYING)
        state = state.model_copy(update={"remaining_numbers": (16, *state.remaining_numbers[:3])})

        state = engine.call_next_number(state)

        assert state.players["auto"].marked_cells["card_a"][0][1] is True
        assert state.players["manual"].marked_cells["card_a"][0][1] is False

    def test_call_column_matches_number(self):
        state = create_game_state(phase=GamePhase.PLAYING)
        state = state.model_copy(update={"remaining_numbers": (70, 3)})

        state = engine.call_next_number(state)

        assert state.call_history[-1].column == "O"


class TestPreferences:
    def test_ready_requires_selection(self):
        state = create_game_state(players=[create_player("p1", selected=False)])

        assert engine.set_ready(state, "p1", ready=True) is state

    def test_ready_and_unready(self):
        state = create_game_state(players=[create_player("p1")])

        state = engine.set_ready(state, "p1", ready=True)
        assert state.players["p1"].ready_to_play
        state = engine.set_ready(state, "p1", ready=False)
        assert not state.players["p1"].ready_to_play

    def test_toggle_auto_mark(self):
        state = engine.toggle_auto_mark(create_game_state(players=[create_player("p1")]), "p1", enabled=True)

        assert state.players["p1"].auto_mark

    def test_highlight_cannot_be_enabled_when_disallowed(self):
        state = create_game_state(players=[create_player("p1")])
        state = engine.set_allow_highlight(state, enabled=False)

        assert state.players["p1"].highlight_called_numbers is False
        assert engine.toggle_highlight_called_numbers(state, "p1", enabled=True) is state

    def test_highlight_toggle_when_allowed(self):
        state = create_game_state(players=[create_player("p1")])

        state = engine.toggle_highlight_called_numbers(state, "p1", enabled=False)

        assert state.players["p1"].highlight_called_numbers is False


class TestPhases:
    def test_timeout_round_trip(self):
        state = create_game_state(phase=GamePhase.PLAYING)

        state = engine.start_timeout(state, 30, now=10_000)
        assert state.phase == GamePhase.TIMEOUT
        assert state.timeout_end_time == 40_000

        state = engine.end_timeout(state, now=20_000)
        assert state.phase == GamePhase.PLAYING
        assert state.timeout_end_time is None
        assert state.last_call_time == 20_000

    def test_pause_and_resume(self):
        state = engine.pause_game(create_game_state(phase=GamePhase.PLAYING))
        assert state.phase == GamePhase.PAUSED

        assert engine.resume_game(state).phase == GamePhase.PLAYING

    def test_reset_preserving_selections(self, rng):
        player = create_player("p1").model_copy(update={"marked_cells": {"card_a": marks((0, 0))}})
        state = create_game_state(players=[player], phase=GamePhase.FINISHED, called=[1, 2, 3])

        state = engine.reset_game(state, preserve_card_selections=True, rng=rng)

        reset = state.players["p1"]
        assert state.phase == GamePhase.LOBBY
        assert state.called_numbers == ()
        assert sorted(state.remaining_numbers) == list(range(1, 76))
        assert state.winners == ()
        assert reset.cards == player.cards
        assert reset.selected_card_ids == ("card_a",)
        assert reset.marked_cells == {"card_a": marks()}
        assert reset.ready_to_play is True

    def test_reset_without_preserving(self, rng):
        state = create_game_state(players=[create_player("p1")], phase=GamePhase.FINISHED)

        state = engine.reset_game(state, preserve_card_selections=False, rng=rng)

        reset = state.players["p1"]
        assert len(reset.cards) == CARD_POOL_SIZE
        assert reset.selected_card_ids == ()
        assert reset.ready_to_play is False

    def test_update_settings_merges(self):
        state = engine.update_settings(create_game_state(), max_winners=1)

        assert state.settings.max_winners == 1
        assert state.settings.allow_multiple_winners is True

    def test_update_pattern(self):
        pattern = get_pattern_by_id("blackout")
        state = engine.update_pattern(create_game_state(), pattern)

        assert state.current_pattern == pattern


class TestScenarios:
    def test_calling_every_number_never_finishes(self, rng):
        pool = tuple(make_card(f"card_{i}") for i in range(4))
        players = [
            create_player(pid, selected=False).model_copy(update={"cards": pool})
            for pid in ("p1", "p2")
        ]
        state = create_game_state(players=players, rng=rng)
        for pid in ("p1", "p2"):
            state = engine.select_cards(state, pid, ["card_0", "card_1"])

        state = engine.start_game(state)
        assert state.phase == GamePhase.PLAYING
        for _ in range(75):
            state = engine.call_next_number(state)
            called = state.called_numbers
            assert len(called) + state.numbers_remaining == 75
            assert len(set(called)) == len(called)

        assert state.remaining_numbers == ()
        assert state.numbers_remaining == 0
        assert state.phase == GamePhase.PLAYING

    def test_four_corners_claim_with_room_for_more_winners(self):
        card = make_card()
        state = create_game_state(
            players=[create_player("p1", card=card)],
            phase=GamePhase.PLAYING,
            called=numbers_at(card, CORNERS),
        )
        state = engine.update_pattern(state, get_pattern_by_id("four-corners"))
        marked = marks(*CORNERS)

        assert engine.validate_claim(state, "p1", "card_a", marked).valid
        state = engine.add_winner(state, "p1", "card_a", marked, now=5)

        winner = state.winners[0]
        assert winner.place == 1
        assert winner.player_name == "Player p1"
        assert winner.timestamp == 5
        assert winner.winning_pattern == get_pattern_by_id("four-corners").grid
        assert state.phase == GamePhase.PLAYING

    def test_single_winner_finishes_and_blocks_later_claims(self):
        card = make_card()
        state = create_game_state(
            players=[create_player("p1", card=card), create_player("p2", card=card)],
            phase=GamePhase.PLAYING,
            called=numbers_at(card, TOP_ROW),
        )
        state = engine.update_settings(state, max_winners=1)
        marked = marks(*TOP_ROW)

        state = engine.add_winner(state, "p1", "card_a", marked)

        assert state.phase == GamePhase.FINISHED
        result = engine.validate_claim(state, "p2", "card_a", marked)
        assert not result.valid
        assert result.reason == "Maximum winners reached"

    def test_single_winner_mode_finishes_on_first_claim(self):
        state = create_game_state(players=[create_player("p1")], phase=GamePhase.PLAYING)
        state = engine.update_settings(state, allow_multiple_winners=False)

        state = engine.add_winner(state, "p1", "card_a", marks())

        assert state.phase == GamePhase.FINISHED

    def test_third_winner_finishes_default_game(self):
        players = [create_player(f"p{i}") for i in range(3)]
        state = create_game_state(players=players, phase=GamePhase.PLAYING)

        for i in range(3):
            state = engine.add_winner(state, f"p{i}", "card_a", marks())

        assert [w.place for w in state.winners] == [1, 2, 3]
        assert state.phase == GamePhase.FINISHED
