from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from .models import Seat, SeatStatus, Table

# Chip ledger for one table. While a hand runs the pot is just the sum of every
# seat's total_contribution; side pots are only materialised at hand end.


@dataclass
class SidePot:
    amount: int
    cap: int
    eligible: List[int]
    winners: List[int] = field(default_factory=list)
    shares: Dict[int, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "amount": self.amount,
            "cap": self.cap,
            "eligible": list(self.eligible),
            "winners": list(self.winners),
            "shares": {str(seat): amount for seat, amount in self.shares.items()},
        }


def commit_chips(table: Table, seat: Seat, amount: int, *, dead: bool = False) -> int:
    """Move up to `amount` chips from a seat's stack into the pot.

    Dead money (antes) counts toward total_contribution but not the round bet.
    A seat that runs out of chips is all-in for the rest of the hand.
    """
    amount = max(0, min(amount, seat.chips))
    seat.chips -= amount
    if not dead:
        seat.current_round_bet += amount
    seat.total_contribution += amount
    table.pot += amount
    if seat.chips == 0 and seat.status == SeatStatus.ACTIVE:
        seat.status = SeatStatus.ALL_IN
    return amount


def build_side_pots(table: Table) -> List[SidePot]:
    contributors = [seat for seat in table.occupied() if seat.total_contribution > 0]
    caps = sorted({seat.total_contribution for seat in contributors})
    pots: List[SidePot] = []
    previous = 0
    for cap in caps:
        amount = sum(
            min(seat.total_contribution, cap) - min(seat.total_contribution, previous) for seat in contributors
        )
        eligible = [seat.seat for seat in contributors if seat.in_hand and seat.total_contribution >= cap]
        if not eligible:
            # Nobody still contending reached this level; it goes back to whoever funded it.
            eligible = [seat.seat for seat in contributors if seat.total_contribution >= cap]
        if pots and pots[-1].eligible == eligible:
            pots[-1].amount += amount
            pots[-1].cap = cap
        else:
            pots.append(SidePot(amount=amount, cap=cap, eligible=eligible))
        previous = cap
    return pots


def clockwise_from_dealer(table: Table, seats: Sequence[int]) -> List[int]:
    """Order seat indices starting with the first seat left of the button."""
    size = len(table.seats)
    dealer = table.dealer_seat if table.dealer_seat is not None else size - 1
    return sorted(seats, key=lambda idx: (idx - dealer - 1) % size)


def award_pots(
    table: Table,
    pots: List[SidePot],
    rank: Callable[[List[int]], List[int]],
) -> Dict[int, int]:
    """Split each pot between the best eligible seats and credit their stacks.

    `rank(eligible)` returns the subset of seats holding the best hand. The
    whole odd-chip remainder goes to the first winner clockwise from the dealer.
    """
    won: Dict[int, int] = {}
    for pot in pots:
        if pot.amount <= 0:
            continue
        winners = clockwise_from_dealer(table, rank(pot.eligible))
        share, remainder = divmod(pot.amount, len(winners))
        for idx, seat_idx in enumerate(winners):
            payout = share + (remainder if idx == 0 else 0)
            pot.shares[seat_idx] = payout
            table.seat(seat_idx).chips += payout
            won[seat_idx] = won.get(seat_idx, 0) + payout
        pot.winners = winners
    return won


def refund_contributions(table: Table) -> Dict[int, int]:
    refunds: Dict[int, int] = {}
    for seat in table.occupied():
        if seat.total_contribution:
            seat.chips += seat.total_contribution
            refunds[seat.seat] = seat.total_contribution
    return refunds


def clear_ledger(table: Table, pots: Optional[List[SidePot]] = None) -> None:
    for seat in table.occupied():
        seat.current_round_bet = 0
        seat.total_contribution = 0
    table.pot = 0
    table.side_pots = [pot.to_dict() for pot in pots] if pots is not None else None
