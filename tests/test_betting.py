import pytest

from engine.errors import IllegalAction, InsufficientChips, InvalidInput
from engine.models import ActionType, BettingType, Phase, SeatStatus, Variant

from .helpers import check_or_call_round, make_engine, perform_actions, stand_pat_round


def holdem(chips=(1_000, 1_000, 1_000), **kwargs):
    engine = make_engine(chips, variant=Variant.HOLDEM, **kwargs)
    engine.deal(0)
    return engine


def test_first_hand_button_and_blinds():
    engine = holdem()
    table = engine.table
    assert table.dealer_seat == 0
    assert (table.small_blind_seat, table.big_blind_seat) == (1, 2)
    assert table.phase == Phase.BETTING_PREFLOP
    assert table.active_seat == 0
    assert table.pot == 30
    assert table.current_bet == 20


def test_min_raise_tracks_last_increment():
    engine = holdem()
    perform_actions(engine, [(0, ActionType.RAISE, 60)])
    window = engine.legal_actions(1)
    assert window.min_raise_to == 100
    assert window.call_amount == 50
    with pytest.raises(IllegalAction):
        engine.bet_action(1, ActionType.RAISE, 90, 0)


def test_big_blind_keeps_option_after_limps():
    engine = holdem()
    perform_actions(engine, [(0, ActionType.CALL, None), (1, ActionType.CALL, None)])
    assert engine.table.active_seat == 2
    legal = engine.legal_actions(2).legal
    assert ActionType.CHECK in legal
    assert ActionType.RAISE in legal
    engine.bet_action(2, ActionType.CHECK, None, 0)
    assert engine.table.phase == Phase.BETTING_FLOP
    assert len(engine.table.community_cards) == 3


def test_short_all_in_does_not_reopen_raising():
    engine = holdem((1_000, 150, 1_000))
    perform_actions(
        engine,
        [
            (0, ActionType.RAISE, 100),
            (1, ActionType.ALL_IN, None),
            (2, ActionType.CALL, None),
        ],
    )
    assert engine.table.current_bet == 150
    assert engine.table.active_seat == 0
    legal = engine.legal_actions(0).legal
    assert legal == [ActionType.FOLD, ActionType.CALL]


def test_full_raise_reopens_action():
    engine = holdem()
    perform_actions(engine, [(0, ActionType.CALL, None), (1, ActionType.CALL, None), (2, ActionType.RAISE, 60)])
    assert engine.table.active_seat == 0
    assert ActionType.RAISE in engine.legal_actions(0).legal


def test_pot_limit_caps_raise_at_pot():
    engine = holdem(betting_type=BettingType.POT_LIMIT)
    window = engine.legal_actions(0)
    # Call 20 makes the pot 50; raising the pot is 20 + 50.
    assert window.max_raise_to == 70
    with pytest.raises(IllegalAction):
        engine.bet_action(0, ActionType.RAISE, 80, 0)
    engine.bet_action(0, ActionType.RAISE, 70, 0)
    assert engine.table.current_bet == 70


def test_fixed_limit_sizes_and_raise_cap():
    engine = make_engine((1_000, 1_000, 1_000), betting_type=BettingType.FIXED_LIMIT)
    engine.deal(0)
    window = engine.legal_actions(0)
    assert window.min_raise_to == window.max_raise_to == 40
    perform_actions(
        engine,
        [
            (0, ActionType.RAISE, 40),
            (1, ActionType.RAISE, 60),
            (2, ActionType.RAISE, 80),
            (0, ActionType.RAISE, 100),
        ],
    )
    assert engine.table.raises_this_round == 4
    assert ActionType.RAISE not in engine.legal_actions(1).legal


def test_fixed_limit_big_bet_in_late_rounds():
    engine = make_engine((1_000, 1_000, 1_000), betting_type=BettingType.FIXED_LIMIT)
    engine.deal(0)
    check_or_call_round(engine)
    stand_pat_round(engine)
    check_or_call_round(engine)
    stand_pat_round(engine)
    assert engine.table.phase == Phase.BETTING_3
    seat_idx = engine.table.active_seat
    window = engine.legal_actions(seat_idx)
    assert ActionType.BET in window.legal
    assert window.min_raise_to == 40


def test_both_blinds_short_set_the_price():
    engine = holdem((1_000, 5, 15))
    assert engine.table.current_bet == 15
    assert engine.table.seat(1).status == SeatStatus.ALL_IN
    assert engine.table.seat(2).status == SeatStatus.ALL_IN
    assert engine.legal_actions(0).call_amount == 15


def test_short_big_blind_alone_keeps_full_price():
    engine = holdem((1_000, 1_000, 15))
    assert engine.table.current_bet == 20
    assert engine.table.seat(2).total_contribution == 15


def test_rejects_bad_bets():
    engine = holdem()
    with pytest.raises(IllegalAction):
        engine.bet_action(1, ActionType.CALL, None, 0)
    with pytest.raises(IllegalAction):
        engine.bet_action(0, ActionType.BET, 100, 0)
    with pytest.raises(IllegalAction):
        engine.bet_action(0, ActionType.CHECK, None, 0)
    with pytest.raises(InvalidInput):
        engine.bet_action(0, ActionType.RAISE, "lots", 0)
    with pytest.raises(InsufficientChips):
        engine.bet_action(0, ActionType.RAISE, 5_000, 0)
    assert engine.table.active_seat == 0
    assert engine.table.pot == 30
