from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from .errors import IllegalAction, InsufficientChips, InvalidInput
from .models import ActionType, BettingType, Seat, SeatStatus, Table
from .pots import commit_chips
from .seating import next_seat
from .variants import VariantSpec


@dataclass
class ActionWindow:
    """What the acting seat may do, plus the helper numbers a client needs."""

    legal: List[ActionType]
    call_amount: int
    min_raise_to: Optional[int]
    max_raise_to: Optional[int]
    all_in_to: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "legal": [action.value for action in self.legal],
            "callAmount": self.call_amount,
            "minRaiseTo": self.min_raise_to,
            "maxRaiseTo": self.max_raise_to,
            "allInTo": self.all_in_to,
        }


def bet_increment(table: Table, spec: VariantSpec) -> int:
    """Fixed-limit bet size for the current round: small bet early, big bet late."""
    if table.phase in spec.big_bet_rounds:
        return table.big_blind * 2
    return table.big_blind


def _raise_bounds(table: Table, spec: VariantSpec, seat: Seat) -> tuple[int, int]:
    call_amount = max(0, table.current_bet - seat.current_round_bet)
    stack_cap = seat.chips + seat.current_round_bet
    betting_type = table.config.betting_type
    if betting_type == BettingType.FIXED_LIMIT:
        step = bet_increment(table, spec)
        min_to = table.current_bet + step
        max_to = min_to
    else:
        min_to = table.current_bet + max(table.last_raise_size, table.big_blind)
        if betting_type == BettingType.POT_LIMIT:
            # Pot after the hypothetical call, added on top of the call.
            max_to = table.current_bet + table.pot + call_amount
        else:
            max_to = stack_cap
    return min_to, min(max_to, stack_cap)


def may_raise(table: Table, seat: Seat) -> bool:
    if seat.has_acted:
        # Only reached again through short all-ins, which do not reopen raising.
        return False
    if table.config.betting_type == BettingType.FIXED_LIMIT and table.raises_this_round >= table.config.raise_cap:
        return False
    return True


def legal_actions(table: Table, spec: VariantSpec, seat_idx: int) -> ActionWindow:
    seat = table.seat(seat_idx)
    if not seat.can_act:
        raise IllegalAction("Seat not active")

    call_amount = max(0, table.current_bet - seat.current_round_bet)
    all_in_to = seat.chips + seat.current_round_bet
    legal: List[ActionType] = [ActionType.FOLD]
    if call_amount == 0:
        legal.append(ActionType.CHECK)
    else:
        legal.append(ActionType.CALL)

    min_to: Optional[int] = None
    max_to: Optional[int] = None
    raising = may_raise(table, seat) and seat.chips > call_amount
    if raising:
        min_to, max_to = _raise_bounds(table, spec, seat)
        if max_to >= min_to:
            legal.append(ActionType.BET if table.current_bet == 0 else ActionType.RAISE)
        else:
            # Not enough behind for a full raise: only the short all-in remains.
            min_to = max_to = all_in_to

    if all_in_to <= table.current_bet or (raising and all_in_to <= (max_to or 0)):
        legal.append(ActionType.ALL_IN)

    return ActionWindow(
        legal=legal,
        call_amount=min(call_amount, seat.chips),
        min_raise_to=min_to,
        max_raise_to=max_to,
        all_in_to=all_in_to,
    )


def apply_bet(
    table: Table,
    spec: VariantSpec,
    seat_idx: int,
    action: ActionType,
    amount: Optional[int],
) -> List[Dict[str, object]]:
    """Validate and apply one betting action. Turn advancement is the caller's job."""
    seat = table.seat(seat_idx)
    if not seat.can_act:
        raise IllegalAction("Seat not active")
    window = legal_actions(table, spec, seat_idx)
    call_amount = table.current_bet - seat.current_round_bet

    if action == ActionType.FOLD:
        seat.status = SeatStatus.FOLDED
        seat.has_acted = True
        seat.last_action = "Fold"
        return [{"ev": "FOLD", "seat": seat_idx}]

    if action == ActionType.CHECK:
        if call_amount > 0:
            raise IllegalAction("Cannot check when facing a bet")
        seat.has_acted = True
        seat.last_action = "Check"
        return [{"ev": "CHECK", "seat": seat_idx}]

    if action == ActionType.CALL:
        if call_amount <= 0:
            raise IllegalAction("Nothing to call")
        paid = commit_chips(table, seat, call_amount)
        seat.has_acted = True
        seat.last_action = f"Call {paid}" if seat.chips else f"All-in {paid}"
        return [{"ev": "CALL", "seat": seat_idx, "amount": paid}]

    if action == ActionType.ALL_IN:
        if ActionType.ALL_IN not in window.legal:
            raise IllegalAction("All-in exceeds the betting limit")
        if window.all_in_to <= table.current_bet:
            paid = commit_chips(table, seat, seat.chips)
            seat.has_acted = True
            seat.last_action = f"All-in {paid}"
            return [{"ev": "CALL", "seat": seat_idx, "amount": paid, "all_in": True}]
        return _raise_to(table, spec, seat, window.all_in_to, all_in=True)

    if action in (ActionType.BET, ActionType.RAISE):
        target = _coerce_amount(amount)
        if action == ActionType.BET and table.current_bet > 0:
            raise IllegalAction("Cannot bet into an open bet; raise instead")
        if action == ActionType.RAISE and table.current_bet == 0:
            raise IllegalAction("Nothing to raise; bet instead")
        if target > window.all_in_to:
            raise InsufficientChips(f"Raise to {target} exceeds stack of {window.all_in_to}")
        if target <= table.current_bet:
            raise IllegalAction("Raise must exceed current bet")
        if window.min_raise_to is None or window.max_raise_to is None:
            raise IllegalAction("Raising is not allowed for this seat")
        if target > window.max_raise_to:
            raise IllegalAction(f"Raise to {target} exceeds the maximum of {window.max_raise_to}")
        if target < window.min_raise_to and target != window.all_in_to:
            raise IllegalAction("Raise below minimum")
        return _raise_to(table, spec, seat, target, all_in=target == window.all_in_to)

    raise InvalidInput(f"Unsupported action {action}")


def _coerce_amount(amount: object) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidInput("Bet and raise require an integer amount")
    if amount <= 0:
        raise InvalidInput("Amount must be positive")
    return amount


def _raise_to(table: Table, spec: VariantSpec, seat: Seat, target: int, *, all_in: bool) -> List[Dict[str, object]]:
    previous_bet = table.current_bet
    opening = previous_bet == 0
    added = commit_chips(table, seat, target - seat.current_round_bet)
    increment = target - previous_bet
    if table.config.betting_type == BettingType.FIXED_LIMIT:
        full_size = bet_increment(table, spec)
    else:
        full_size = max(table.last_raise_size, table.big_blind)
    full_raise = increment >= full_size

    table.current_bet = target
    if full_raise:
        if table.config.betting_type != BettingType.FIXED_LIMIT:
            table.last_raise_size = increment
        table.raises_this_round += 1
        for other in table.occupied():
            if other.seat != seat.seat and other.can_act:
                other.has_acted = False
    seat.has_acted = True

    verb = "Bet" if opening else "Raise to"
    seat.last_action = f"All-in {target}" if all_in else f"{verb} {target}"
    return [
        {
            "ev": "BET" if opening else "RAISE",
            "seat": seat.seat,
            "amount": added,
            "to": target,
            "all_in": all_in,
            "full_raise": full_raise,
        }
    ]


def needs_action(table: Table, seat: Seat) -> bool:
    return seat.can_act and (not seat.has_acted or seat.current_round_bet < table.current_bet)


def round_complete(table: Table) -> bool:
    actors = [seat for seat in table.occupied() if seat.can_act]
    if not actors:
        return True
    if len(actors) == 1 and len(table.in_hand_seats()) > 1:
        # Nobody left to bet against; the lone seat only has to settle a call.
        return actors[0].current_round_bet >= table.current_bet
    return not any(needs_action(table, seat) for seat in actors)


def next_to_act(table: Table, after: Optional[int]) -> Optional[int]:
    return next_seat(table, after, lambda seat: needs_action(table, seat))


def start_round(table: Table, spec: VariantSpec) -> None:
    """Reset per-round state for a post-opening betting round."""
    for seat in table.occupied():
        seat.reset_for_round()
    table.current_bet = 0
    table.last_raise_size = table.big_blind
    table.raises_this_round = 0
