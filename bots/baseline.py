from __future__ import annotations

import random
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from engine.cards import RANK_VALUE, Card, parse_cards
from engine.evaluator import LOWBALL
from engine.models import ActionType, Phase

_AGGRESSION = {"easy": 0.6, "medium": 1.0, "hard": 1.25}
# Highest card a lowball bot keeps; everything above it (and every pair) is drawn.
_KEEP_UP_TO = {"easy": 10, "medium": 9, "hard": 8}
_PHASE_BONUS = {
    Phase.BETTING_FLOP.value: 0.05,
    Phase.BETTING_TURN.value: 0.1,
    Phase.BETTING_RIVER.value: 0.12,
    Phase.BETTING_3.value: 0.05,
    Phase.BETTING_4.value: 0.1,
}


def _rough_holdem_strength(hole: Sequence[Card]) -> int:
    """Very rough proxy for hold'em starting hand quality."""
    if len(hole) < 2:
        return 0
    values = [card.value for card in hole]
    score = sum(values)
    if values[0] == values[1]:
        score += 14
    else:
        gap = abs(values[0] - values[1])
        if gap == 1:
            score += 4
        elif gap == 2:
            score += 2
    if hole[0].suit == hole[1].suit:
        score += 3
    if min(values) >= 11:
        score += 2
    return score


def _rough_lowball_strength(hand: Sequence[Card]) -> int:
    """Lower, unpaired, unsuited-run hands score higher (roughly 0..45)."""
    if len(hand) != 5:
        return 0
    value = LOWBALL.evaluate(list(hand))
    if value.score[0] != 1:
        return 5
    top = value.components[0]
    return max(0, 45 - 3 * (top - 7))


def _choose_raise_amount(rng: random.Random, min_to: int, max_to: Optional[int], facing_bet: bool) -> int:
    if max_to is None or max_to <= min_to:
        return min_to
    span = max_to - min_to
    roll = rng.random()
    if facing_bet:
        if roll < 0.2:
            return min_to
        if roll > 0.85:
            return max_to
    else:
        if roll < 0.35:
            return min_to
        if roll > 0.9:
            return max_to
    return min_to + int(span * rng.random())


class BaselineStrategy:
    """Demo bot: mixes random raises with a bias toward stronger holdings."""

    def __init__(self, difficulty: str = "medium", rng: Optional[random.Random] = None) -> None:
        self.difficulty = difficulty if difficulty in _AGGRESSION else "medium"
        self.rng = rng or random.Random()

    def strength(self, view: Mapping[str, Any], hand: Sequence[Card]) -> int:
        if (view.get("config") or {}).get("variant") == "holdem":
            return _rough_holdem_strength(hand)
        return _rough_lowball_strength(hand)

    def _should_raise(self, strength: int, phase: str, facing_bet: bool) -> bool:
        base = 0.2 if facing_bet else 0.35
        scaled = min(strength / 45.0, 0.45)
        probability = min(0.85, (base + _PHASE_BONUS.get(phase, 0.0) + scaled) * _AGGRESSION[self.difficulty])
        if strength >= 36:
            return True
        return self.rng.random() < probability

    def decide_bet(
        self,
        view: Mapping[str, Any],
        hand: Sequence[Card],
        options: Mapping[str, Any],
    ) -> Tuple[ActionType, Optional[int]]:
        legal = [ActionType(name) for name in options.get("legal", [])]
        if legal == [ActionType.FOLD]:
            return ActionType.FOLD, None
        call_amount = int(options.get("callAmount") or 0)
        facing_bet = call_amount > 0
        strength = self.strength(view, hand)

        for raising in (ActionType.BET, ActionType.RAISE):
            if raising in legal and hand and self._should_raise(strength, str(view.get("phase")), facing_bet):
                min_to = int(options["minRaiseTo"])
                amount = _choose_raise_amount(self.rng, min_to, options.get("maxRaiseTo"), facing_bet)
                return raising, amount

        if ActionType.CHECK in legal:
            return ActionType.CHECK, None
        if ActionType.CALL in legal:
            # Weak hands give up against large bets.
            stack = call_amount + int(options.get("allInTo") or 0)
            if strength < 12 and stack and call_amount * 3 > stack:
                return ActionType.FOLD, None
            return ActionType.CALL, None
        if ActionType.ALL_IN in legal and strength >= 30:
            return ActionType.ALL_IN, None
        return ActionType.FOLD, None

    def decide_discard(self, view: Mapping[str, Any], hand: Sequence[Card]) -> List[int]:
        keep_up_to = _KEEP_UP_TO[self.difficulty]
        discards: List[int] = []
        seen: Dict[str, int] = {}
        # The first card of each rank stays; later duplicates are drawn.
        for idx, card in enumerate(hand):
            if RANK_VALUE[card.rank] > keep_up_to or card.rank in seen:
                discards.append(idx)
            else:
                seen[card.rank] = idx
        return discards


def hand_from_view(view: Mapping[str, Any], uid: str) -> List[Card]:
    for seat in view.get("seats") or []:
        if seat and seat.get("uid") == uid:
            return parse_cards(seat.get("hand") or [])
    return []
