from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Sequence, Tuple, Union

from .cards import Card
from .evaluator import HOLDEM, LOWBALL, HandValue, HoldemEvaluator, LowballEvaluator
from .models import Phase, Variant

Evaluator = Union[LowballEvaluator, HoldemEvaluator]


@dataclass(frozen=True)
class VariantSpec:
    """Capability record for one game: what is dealt, in which order, and how hands rank."""

    variant: Variant
    cards_per_hand: int
    phases: Tuple[Phase, ...]
    evaluator: Evaluator
    big_bet_rounds: FrozenSet[Phase] = frozenset()
    community_deals: Dict[Phase, int] = field(default_factory=dict)

    @property
    def has_community(self) -> bool:
        return bool(self.community_deals)

    @property
    def has_draw(self) -> bool:
        return any(phase.is_draw for phase in self.phases)

    @property
    def draw_rounds(self) -> int:
        return sum(1 for phase in self.phases if phase.is_draw)

    @property
    def opening_round(self) -> Phase:
        return self.phases[0]

    def next_phase(self, phase: Phase) -> Phase:
        idx = self.phases.index(phase)
        return self.phases[idx + 1] if idx + 1 < len(self.phases) else Phase.SHOWDOWN

    def betting_rounds(self) -> List[Phase]:
        return [phase for phase in self.phases if phase.is_betting]

    def evaluate(self, hand: Sequence[Card], community: Sequence[Card]) -> HandValue:
        return self.evaluator.evaluate(list(hand) + list(community))

    def compare(self, a: HandValue, b: HandValue) -> int:
        return self.evaluator.compare(a, b)


TRIPLE_DRAW = VariantSpec(
    variant=Variant.LOWBALL_27,
    cards_per_hand=5,
    phases=(
        Phase.BETTING_1,
        Phase.DRAW_1,
        Phase.BETTING_2,
        Phase.DRAW_2,
        Phase.BETTING_3,
        Phase.DRAW_3,
        Phase.BETTING_4,
        Phase.SHOWDOWN,
    ),
    evaluator=LOWBALL,
    big_bet_rounds=frozenset({Phase.BETTING_3, Phase.BETTING_4}),
)

SINGLE_DRAW = VariantSpec(
    variant=Variant.SINGLE_DRAW_27,
    cards_per_hand=5,
    phases=(Phase.BETTING_1, Phase.DRAW_1, Phase.BETTING_2, Phase.SHOWDOWN),
    evaluator=LOWBALL,
    big_bet_rounds=frozenset({Phase.BETTING_2}),
)

HOLDEM_SPEC = VariantSpec(
    variant=Variant.HOLDEM,
    cards_per_hand=2,
    phases=(
        Phase.BETTING_PREFLOP,
        Phase.FLOP,
        Phase.BETTING_FLOP,
        Phase.TURN,
        Phase.BETTING_TURN,
        Phase.RIVER,
        Phase.BETTING_RIVER,
        Phase.SHOWDOWN,
    ),
    evaluator=HOLDEM,
    big_bet_rounds=frozenset({Phase.BETTING_TURN, Phase.BETTING_RIVER}),
    community_deals={Phase.FLOP: 3, Phase.TURN: 1, Phase.RIVER: 1},
)

VARIANTS: Dict[Variant, VariantSpec] = {
    Variant.LOWBALL_27: TRIPLE_DRAW,
    Variant.SINGLE_DRAW_27: SINGLE_DRAW,
    Variant.HOLDEM: HOLDEM_SPEC,
}


def spec_for(variant: Variant) -> VariantSpec:
    return VARIANTS[variant]
