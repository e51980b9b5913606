import pytest

from engine.cards import full_deck
from engine.errors import HandAborted, IllegalAction, InvalidInput
from engine.models import SHOW_BLUFF_WINDOW_MS, ActionType, Phase, SeatStatus, Variant
from engine.seating import cut_winner
from engine.variants import spec_for

from .helpers import (
    assert_table_invariants,
    check_or_call_round,
    deal_order,
    make_engine,
    perform_actions,
    play_passively,
    stand_pat_round,
)


def test_heads_up_raise_fold():
    engine = make_engine((1_000, 1_000))
    events = engine.deal(0)
    table = engine.table
    assert table.dealer_seat == 0
    assert table.small_blind_seat == 0 and table.big_blind_seat == 1
    assert table.active_seat == 0
    assert events[0]["ev"] == "START_HAND"

    events = perform_actions(engine, [(0, ActionType.RAISE, 60), (1, ActionType.FOLD, None)], now=1_000)
    assert table.phase == Phase.SHOWDOWN
    assert [seat.chips for seat in table.occupied()] == [1_020, 980]
    assert table.pot == 0
    assert table.last_result["uncontested"]
    assert table.last_result["winners"][0]["amount"] == 80
    assert table.show_bluff_deadline == 1_000 + SHOW_BLUFF_WINDOW_MS
    assert not any(seat.hand_revealed for seat in table.occupied())
    assert any(e["ev"] == "POT_AWARD" and e.get("uncontested") for e in events)
    assert_table_invariants(table, 2_000)


def test_show_bluff_window_blocks_next_hand():
    engine = make_engine((1_000, 1_000))
    engine.deal(0)
    perform_actions(engine, [(0, ActionType.RAISE, 60), (1, ActionType.FOLD, None)], now=1_000)
    with pytest.raises(IllegalAction):
        engine.start_next_hand(2_000)
    engine.start_next_hand(1_000 + SHOW_BLUFF_WINDOW_MS)
    assert engine.table.phase == Phase.IDLE
    assert all(not seat.hand for seat in engine.table.occupied())
    assert_table_invariants(engine.table, 2_000)


def test_winner_can_show_the_bluff():
    engine = make_engine((1_000, 1_000))
    engine.deal(0)
    perform_actions(engine, [(0, ActionType.RAISE, 60), (1, ActionType.FOLD, None)], now=1_000)
    events = engine.reveal_hand(0, 1_500)
    assert events[0]["ev"] == "REVEAL"
    assert engine.table.seat(0).hand_revealed
    assert engine.table.show_bluff_deadline is None
    with pytest.raises(IllegalAction):
        engine.reveal_hand(1, 1_500)
    engine.start_next_hand(1_600)
    assert engine.table.phase == Phase.IDLE


def test_button_moves_between_hands():
    engine = make_engine((1_000, 1_000, 1_000))
    engine.deal(0)
    play_passively(engine)
    engine.start_next_hand(0)
    engine.deal(0)
    assert engine.table.hand_number == 2
    assert engine.table.dealer_seat == 1
    assert (engine.table.small_blind_seat, engine.table.big_blind_seat) == (2, 0)


def test_triple_draw_split_pot():
    initial = {
        1: ["Kc", "Qc", "4c", "3d", "2s"],
        2: ["Kd", "Qd", "4h", "3s", "2d"],
        3: ["Ks", "Qs", "Th", "9h", "8h"],
        0: ["Kh", "Qh", "Tc", "9c", "8c"],
    }
    first_draw = ["7h", "Jc", "7d", "Jd", "9s", "9d", "8s", "8d"]
    second_draw = ["5h", "5c", "6s", "6h"]
    deck = deal_order(initial, [1, 2, 3, 0]) + first_draw + second_draw
    engine = make_engine((1_000,) * 4, decks={1: deck})
    engine.deal(0)
    table = engine.table
    check_or_call_round(engine)
    assert table.pot == 80
    assert table.phase == Phase.DRAW_1
    for seat_idx in (1, 2, 3, 0):
        engine.submit_draw(seat_idx, [0, 1], 0)
    check_or_call_round(engine)
    assert table.phase == Phase.DRAW_2
    for seat_idx, index in ((1, 1), (2, 1), (3, 0), (0, 0)):
        engine.submit_draw(seat_idx, [index], 0)
    assert [card.label for card in table.seat(1).hand] == ["7h", "5h", "4c", "3d", "2s"]
    assert [card.label for card in table.seat(2).hand] == ["7d", "5c", "4h", "3s", "2d"]
    play_passively(engine)

    assert table.phase == Phase.SHOWDOWN
    assert [seat.chips for seat in table.occupied()] == [980, 1_020, 1_020, 980]
    assert [w["amount"] for w in table.last_result["winners"]] == [40, 40]
    assert table.seat(1).hand_revealed and table.seat(2).hand_revealed
    assert not table.seat(0).hand_revealed and not table.seat(3).hand_revealed
    assert_table_invariants(table, 4_000)


def test_discards_reshuffle_when_the_deck_runs_low():
    engine = make_engine((1_000,) * 6)
    engine.deal(0)
    table = engine.table
    check_or_call_round(engine)
    assert table.phase == Phase.DRAW_1
    while table.phase == Phase.DRAW_1:
        engine.submit_draw(table.active_seat, [0, 1, 2, 3, 4], 0)
        assert_table_invariants(table, 6_000)
    assert table.deck.reshuffles >= 1
    play_passively(engine)
    assert table.phase == Phase.SHOWDOWN
    assert_table_invariants(table, 6_000)


def test_draw_validation():
    engine = make_engine((1_000, 1_000))
    engine.deal(0)
    check_or_call_round(engine)
    seat_idx = engine.table.active_seat
    with pytest.raises(InvalidInput):
        engine.submit_draw(seat_idx, [0, 0], 0)
    with pytest.raises(InvalidInput):
        engine.submit_draw(seat_idx, [7], 0)
    with pytest.raises(IllegalAction):
        engine.submit_draw(1 - seat_idx, [], 0)
    with pytest.raises(IllegalAction):
        engine.bet_action(seat_idx, ActionType.CHECK, None, 0)


def test_single_draw_has_one_draw_round():
    engine = make_engine((1_000, 1_000), variant=Variant.SINGLE_DRAW_27)
    engine.deal(0)
    check_or_call_round(engine)
    assert engine.table.phase == Phase.DRAW_1
    stand_pat_round(engine)
    assert engine.table.phase == Phase.BETTING_2
    check_or_call_round(engine)
    assert engine.table.phase == Phase.SHOWDOWN


def test_variant_capabilities():
    triple, single, holdem = (spec_for(v) for v in (Variant.LOWBALL_27, Variant.SINGLE_DRAW_27, Variant.HOLDEM))
    assert (triple.draw_rounds, single.draw_rounds, holdem.draw_rounds) == (3, 1, 0)
    assert triple.has_draw and not triple.has_community
    assert holdem.has_community and not holdem.has_draw
    assert len(triple.betting_rounds()) == 4
    assert holdem.betting_rounds()[0] == Phase.BETTING_PREFLOP
    assert holdem.cards_per_hand == 2


def test_deck_underflow_aborts_and_refunds():
    top = [card.label for card in full_deck()[:20]]
    engine = make_engine((1_000,) * 4, decks={1: top}, truncate=True)
    engine.deal(0)
    check_or_call_round(engine)
    assert engine.table.pot == 80
    with pytest.raises(HandAborted) as excinfo:
        engine.submit_draw(engine.table.active_seat, [0, 1], 0)
    table = engine.table
    assert excinfo.value.events[0]["ev"] == "HAND_ABORTED"
    assert excinfo.value.events[0]["refunds"] == {0: 20, 1: 20, 2: 20, 3: 20}
    assert table.phase == Phase.IDLE
    assert table.pot == 0
    assert [seat.chips for seat in table.occupied()] == [1_000] * 4
    assert all(not seat.hand for seat in table.occupied())
    assert table.history[-1]["aborted"]
    assert_table_invariants(table, 4_000)


def test_cut_for_dealer_picks_highest_card():
    engine = make_engine((1_000,) * 3, cut_for_dealer=True)
    events = engine.deal(0)
    table = engine.table
    assert table.phase == Phase.CUT_FOR_DEALER
    assert events[0]["ev"] == "CUT_FOR_DEALER"
    assert sorted(table.cut_cards) == [0, 1, 2]
    expected = cut_winner(table.cut_cards)

    engine.resolve_cut_for_dealer(0)
    assert table.dealer_seat == expected
    assert table.phase == Phase.BETTING_1
    assert table.hand_number == 1
    assert_table_invariants(table, 3_000)


def test_sit_out_takes_effect_after_the_hand():
    engine = make_engine((1_000,) * 3)
    engine.deal(0)
    events = engine.request_sit_out(2)
    assert events == [{"ev": "SIT_OUT_PENDING", "seat": 2}]
    assert engine.table.seat(2).status != SeatStatus.SITTING_OUT
    play_passively(engine)
    engine.start_next_hand(0)
    assert engine.table.seat(2).status == SeatStatus.SITTING_OUT
    engine.deal(0)
    assert not engine.table.seat(2).hand
    assert len(engine.table.seat(0).hand) == 5
    engine.cancel_sit_out(2)
    assert engine.table.seat(2).joined_mid_hand


def test_mid_hand_join_waits_for_next_hand():
    engine = make_engine((1_000, 1_000), seats=3)
    engine.deal(0)
    seat = engine.join("late", "Late", 500)
    assert seat.status == SeatStatus.SITTING_OUT
    assert seat.joined_mid_hand
    assert not seat.hand
    with pytest.raises(IllegalAction):
        engine.join("late", "Late", 500)
    play_passively(engine)
    engine.start_next_hand(0)
    assert engine.table.seat(seat.seat).status == SeatStatus.ACTIVE
    engine.deal(0)
    assert len(engine.table.seat(seat.seat).hand) == 5


def test_leave_and_kick_rules():
    engine = make_engine((1_000, 1_000), seats=3)
    bot = engine.join("bot-1", "Bot 1", 1_000, is_bot=True, bot_difficulty="easy")
    with pytest.raises(IllegalAction):
        engine.kick(0)
    engine.deal(0)
    with pytest.raises(IllegalAction):
        engine.leave(0)
    with pytest.raises(IllegalAction):
        engine.kick(bot.seat)
    play_passively(engine)
    engine.start_next_hand(0)
    engine.kick(bot.seat)
    assert engine.table.seats[bot.seat] is None
    left = engine.leave(1)
    assert left.uid == "p1"
    assert not engine.can_deal()


def test_busted_seat_is_eliminated_and_can_rebuy():
    hands = {0: ["As", "Ad"], 1: ["7c", "2d"]}
    board = ["3h", "8s", "9c", "Jh", "4d"]
    engine = make_engine((1_000, 300), variant=Variant.HOLDEM, decks={1: deal_order(hands, [1, 0]) + board})
    engine.deal(0)
    perform_actions(engine, [(0, ActionType.ALL_IN, None), (1, ActionType.CALL, None)])
    table = engine.table
    assert table.seat(1).chips == 0
    assert table.seat(1).status == SeatStatus.ELIMINATED
    engine.start_next_hand(0)
    assert not engine.can_deal()
    engine.join("p1", "Player 1", 400)
    assert table.seat(1).status == SeatStatus.ACTIVE
    assert engine.can_deal()


def test_all_in_skips_remaining_draws_and_shows_every_contender():
    engine = make_engine((500, 1_000))
    engine.deal(0)
    table = engine.table
    dealt = {seat.seat: list(seat.hand) for seat in table.occupied()}
    perform_actions(engine, [(0, ActionType.ALL_IN, None), (1, ActionType.CALL, None)])
    assert table.phase == Phase.SHOWDOWN
    assert table.all_in_showdown
    assert table.deck.discards == []
    assert {seat.seat: seat.hand for seat in table.occupied()} == dealt
    assert all(seat.hand_revealed for seat in table.occupied())
    assert table.seat(1).chips >= 500
    assert_table_invariants(table, 1_500)
