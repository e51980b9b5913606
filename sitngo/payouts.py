from __future__ import annotations

import math
from typing import Dict, List, Optional, Sequence

from engine.errors import InvalidInput
from engine.models import PayoutType

STANDARD_PAYOUTS: Dict[int, List[float]] = {
    2: [1.0],
    3: [1.0],
    4: [0.65, 0.35],
    5: [0.65, 0.35],
    6: [0.5, 0.3, 0.2],
}

TOLERANCE = 0.01


def validate_custom(fractions: Optional[Sequence[float]], players: Optional[int] = None) -> List[float]:
    if not fractions:
        raise InvalidInput("Custom payouts need at least one place")
    values = [float(f) for f in fractions]
    if any(math.isnan(f) or f < 0 for f in values):
        raise InvalidInput("Payout fractions must be non-negative")
    if abs(sum(values) - 1.0) > TOLERANCE:
        raise InvalidInput("Payout fractions must sum to 1")
    if players is not None and len(values) > players:
        raise InvalidInput(f"{len(values)} paid places for {players} players")
    return values


def prize_structure(payout_type: PayoutType, players: int, custom: Optional[Sequence[float]] = None) -> List[float]:
    if payout_type == PayoutType.WINNER_TAKE_ALL:
        return [1.0]
    if payout_type == PayoutType.CUSTOM:
        return validate_custom(custom, players)
    clamped = max(2, min(players, max(STANDARD_PAYOUTS)))
    return list(STANDARD_PAYOUTS[clamped])


def distribute(prize_pool: int, structure: Sequence[float], finishers: Sequence[Dict[str, object]]) -> List[Dict[str, object]]:
    """Pay `finishers` (ordered 1st, 2nd, ...) from the pool.

    Each place gets floor(pool * fraction); whatever rounding leaves over goes
    to first place so the whole pool is always paid out.
    """
    payouts: List[Dict[str, object]] = []
    paid = 0
    for position, (fraction, finisher) in enumerate(zip(structure, finishers), start=1):
        amount = int(math.floor(prize_pool * fraction))
        paid += amount
        payouts.append({"position": position, "uid": finisher["uid"], "seat": finisher.get("seat"), "amount": amount})
    if payouts:
        payouts[0]["amount"] += prize_pool - paid
    return payouts
