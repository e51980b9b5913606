from __future__ import annotations

import itertools
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .cards import RANK_VALUE, Card
from .errors import InvalidInput

# Both evaluators produce a HandValue; callers only ever rank hands through the
# evaluator's compare(), which returns -1 when the first hand wins, 1 when the
# second does and 0 on an exact tie. Lowball scores rank low-to-high, hold'em
# scores high-to-low, and that difference stays inside this module.

_RANK_NAMES = {
    2: "Two", 3: "Three", 4: "Four", 5: "Five", 6: "Six", 7: "Seven", 8: "Eight",
    9: "Nine", 10: "Ten", 11: "Jack", 12: "Queen", 13: "King", 14: "Ace",
}
_RANK_PLURALS = {value: f"{name}s" if value != 6 else "Sixes" for value, name in _RANK_NAMES.items()}
_RANK_CHARS = {value: rank for rank, value in RANK_VALUE.items()}


@dataclass(frozen=True)
class HandValue:
    score: Tuple[int, ...]
    category_name: str
    description: str
    components: Tuple[int, ...]

    def to_dict(self) -> Dict[str, object]:
        return {
            "score": list(self.score),
            "categoryName": self.category_name,
            "description": self.description,
            "components": list(self.components),
        }


def _rank_string(values: Iterable[int]) -> str:
    return "-".join(_RANK_CHARS[value] for value in values)


def _cmp(a: Tuple[int, ...], b: Tuple[int, ...]) -> int:
    return (a > b) - (a < b)


class LowballEvaluator:
    """2-7 lowball: aces always high, straights and flushes count against you."""

    HIGH_CARD = 1
    PAIR = 2
    TWO_PAIR = 3
    TRIPS = 4
    STRAIGHT = 5
    FLUSH = 6
    FULL_HOUSE = 7
    QUADS = 8
    STRAIGHT_FLUSH = 9

    CATEGORY_NAMES = {
        HIGH_CARD: "High Card",
        PAIR: "Pair",
        TWO_PAIR: "Two Pair",
        TRIPS: "Three of a Kind",
        STRAIGHT: "Straight",
        FLUSH: "Flush",
        FULL_HOUSE: "Full House",
        QUADS: "Four of a Kind",
        STRAIGHT_FLUSH: "Straight Flush",
    }

    def evaluate(self, cards: Sequence[Card]) -> HandValue:
        if len(cards) != 5:
            raise InvalidInput("A lowball hand must have exactly 5 cards")
        values = sorted((card.value for card in cards), reverse=True)
        counts = Counter(values)
        is_flush = len({card.suit for card in cards}) == 1
        # No wheel: A-2-3-4-5 is just ace-high.
        is_straight = len(counts) == 5 and values[0] - values[4] == 4
        shape = sorted(counts.values(), reverse=True)

        if is_straight and is_flush:
            category = self.STRAIGHT_FLUSH
        elif shape[0] == 4:
            category = self.QUADS
        elif shape == [3, 2]:
            category = self.FULL_HOUSE
        elif is_flush:
            category = self.FLUSH
        elif is_straight:
            category = self.STRAIGHT
        elif shape[0] == 3:
            category = self.TRIPS
        elif shape[:2] == [2, 2]:
            category = self.TWO_PAIR
        elif shape[0] == 2:
            category = self.PAIR
        else:
            category = self.HIGH_CARD

        # Grouped cards first (bigger groups are worse), then higher ranks first.
        components = tuple(sorted(values, key=lambda value: (counts[value], value), reverse=True))
        name = self.CATEGORY_NAMES[category]
        display = _rank_string(values)
        description = display if category == self.HIGH_CARD else f"{name}, {display}"
        return HandValue(
            score=(category,) + components,
            category_name=name,
            description=description,
            components=components,
        )

    def compare(self, a: HandValue, b: HandValue) -> int:
        return _cmp(a.score, b.score)

    def is_number_one(self, cards: Sequence[Card]) -> bool:
        """7-5-4-3-2 in at least two suits, the best possible 2-7 hand."""
        value = self.evaluate(cards)
        return value.score == (self.HIGH_CARD, 7, 5, 4, 3, 2)


class HoldemEvaluator:
    """Best five of five to seven cards, standard high ranking."""

    HIGH_CARD = 0
    PAIR = 1
    TWO_PAIR = 2
    TRIPS = 3
    STRAIGHT = 4
    FLUSH = 5
    FULL_HOUSE = 6
    QUADS = 7
    STRAIGHT_FLUSH = 8
    ROYAL_FLUSH = 9

    CATEGORY_NAMES = {
        HIGH_CARD: "High Card",
        PAIR: "Pair",
        TWO_PAIR: "Two Pair",
        TRIPS: "Three of a Kind",
        STRAIGHT: "Straight",
        FLUSH: "Flush",
        FULL_HOUSE: "Full House",
        QUADS: "Four of a Kind",
        STRAIGHT_FLUSH: "Straight Flush",
        ROYAL_FLUSH: "Royal Flush",
    }

    def evaluate(self, cards: Sequence[Card]) -> HandValue:
        if not 5 <= len(cards) <= 7:
            raise InvalidInput("A hold'em hand is evaluated from 5 to 7 cards")
        best: Optional[Tuple[int, ...]] = None
        for combo in itertools.combinations(cards, 5):
            score = self._evaluate_five(combo)
            if best is None or score > best:
                best = score
        assert best is not None
        category = best[0]
        components = best[1:]
        name = self.CATEGORY_NAMES[category]
        return HandValue(
            score=best,
            category_name=name,
            description=self._describe(category, components),
            components=components,
        )

    def compare(self, a: HandValue, b: HandValue) -> int:
        # Higher hold'em scores win, so the ordering is flipped.
        return _cmp(b.score, a.score)

    def _evaluate_five(self, cards: Sequence[Card]) -> Tuple[int, ...]:
        ranks = sorted((card.value for card in cards), reverse=True)
        is_flush = len({card.suit for card in cards}) == 1
        straight_high = _straight_high(ranks)

        counts = Counter(ranks)
        ordered = sorted(counts.items(), key=lambda item: (item[1], item[0]), reverse=True)
        shape = [count for _, count in ordered]
        grouped = [rank for rank, _ in ordered]

        if straight_high and is_flush:
            if straight_high == 14:
                return (self.ROYAL_FLUSH, 14)
            return (self.STRAIGHT_FLUSH, straight_high)
        if shape[0] == 4:
            return (self.QUADS,) + tuple(grouped)
        if shape[:2] == [3, 2]:
            return (self.FULL_HOUSE,) + tuple(grouped)
        if is_flush:
            return (self.FLUSH,) + tuple(ranks)
        if straight_high:
            return (self.STRAIGHT, straight_high)
        if shape[0] == 3:
            return (self.TRIPS,) + tuple(grouped)
        if shape[:2] == [2, 2]:
            return (self.TWO_PAIR,) + tuple(grouped)
        if shape[0] == 2:
            return (self.PAIR,) + tuple(grouped)
        return (self.HIGH_CARD,) + tuple(ranks)

    def _describe(self, category: int, components: Tuple[int, ...]) -> str:
        if category == self.ROYAL_FLUSH:
            return "Royal Flush"
        if category in (self.STRAIGHT_FLUSH, self.STRAIGHT):
            return f"{self.CATEGORY_NAMES[category]}, {_RANK_NAMES[components[0]]} high"
        if category == self.QUADS:
            return f"Four of a Kind, {_RANK_PLURALS[components[0]]}"
        if category == self.FULL_HOUSE:
            return f"Full House, {_RANK_PLURALS[components[0]]} full of {_RANK_PLURALS[components[1]]}"
        if category == self.FLUSH:
            return f"Flush, {_RANK_NAMES[components[0]]} high"
        if category == self.TRIPS:
            return f"Three of a Kind, {_RANK_PLURALS[components[0]]}"
        if category == self.TWO_PAIR:
            return f"Two Pair, {_RANK_PLURALS[components[0]]} and {_RANK_PLURALS[components[1]]}"
        if category == self.PAIR:
            return f"Pair of {_RANK_PLURALS[components[0]]}"
        return f"High Card, {_RANK_NAMES[components[0]]}"


def _straight_high(ranks: List[int]) -> Optional[int]:
    distinct = sorted(set(ranks))
    if len(distinct) != 5:
        return None
    if distinct[-1] - distinct[0] == 4:
        return distinct[-1]
    if distinct == [2, 3, 4, 5, 14]:  # Wheel: the ace plays low.
        return 5
    return None


LOWBALL = LowballEvaluator()
HOLDEM = HoldemEvaluator()
