import random

from bots.adapter import BotDriver
from bots.baseline import BaselineStrategy, hand_from_view
from engine.cards import parse_cards
from engine.models import ActionType

from .helpers import make_service


def test_discard_drops_high_cards_and_pairs():
    strategy = BaselineStrategy("medium", rng=random.Random(1))
    hand = parse_cards(["Kh", "7d", "7c", "3s", "2h"])
    assert strategy.decide_discard({}, hand) == [0, 2]
    assert BaselineStrategy("easy").decide_discard({}, parse_cards(["Th", "8d", "6c", "4s", "2h"])) == []
    assert BaselineStrategy("hard").decide_discard({}, parse_cards(["9h", "8d", "6c", "4s", "2h"])) == [0]


def test_forced_fold_when_nothing_else_is_legal():
    strategy = BaselineStrategy()
    action, amount = strategy.decide_bet({}, [], {"legal": ["FOLD"]})
    assert (action, amount) == (ActionType.FOLD, None)


def test_raise_sizes_stay_inside_the_window():
    options = {"legal": ["FOLD", "CALL", "RAISE", "ALL_IN"], "callAmount": 20, "minRaiseTo": 40, "maxRaiseTo": 400}
    view = {"config": {"variant": "holdem"}, "phase": "BETTING_PREFLOP"}
    hand = parse_cards(["As", "Ah"])
    for seed in range(50):
        action, amount = BaselineStrategy("hard", rng=random.Random(seed)).decide_bet(view, hand, options)
        assert action == ActionType.RAISE
        assert 40 <= amount <= 400


def test_weak_hand_gives_up_against_a_big_bet():
    options = {"legal": ["FOLD", "CALL"], "callAmount": 500, "allInTo": 600}
    view = {"config": {"variant": "holdem"}, "phase": "BETTING_PREFLOP"}
    action, _ = BaselineStrategy(rng=random.Random(3)).decide_bet(view, parse_cards(["7c", "2d"]), options)
    assert action == ActionType.FOLD


def test_fallbacks():
    assert BotDriver._fallback({"draw": True}) == ("submitDraw", {"indices": []})
    assert BotDriver._fallback({"legal": ["FOLD", "CHECK"]}) == ("betAction", {"action": "CHECK"})
    assert BotDriver._fallback({"legal": ["FOLD", "CALL"]}) == ("betAction", {"action": "FOLD"})


def test_driver_plays_the_bot_seat_through_the_service():
    service = make_service({"alice": 5_000})
    service.create_table("alice", {"tableId": "T1", "config": {"maxPlayers": 2}})
    service.submit("T1", "alice", "joinAsPlayer", {"buyIn": 1_000})
    service.submit("T1", "alice", "addBot", {"difficulty": "medium"})
    driver = BotDriver(service, rng=random.Random(11))
    assert driver.act("T1") is None

    service.submit("T1", "alice", "deal")
    assert driver.pending_bot("T1") is None
    service.submit("T1", "alice", "betAction", {"action": "CALL"})
    bot_seat = driver.pending_bot("T1")
    assert bot_seat is not None and bot_seat["isBot"]

    view, _ = service.view("T1", bot_seat["uid"])
    assert len(hand_from_view(view, bot_seat["uid"])) == 5
    result = driver.act("T1")
    assert result is not None and result.committed
    assert bot_seat["uid"] in driver.strategies
