from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from .errors import IllegalAction, InvalidInput, PriceChanged
from .models import ActionType, PreAction, PreActionType, Table

# Queued intents from seats waiting for their turn. Raise sizes are never
# queueable; everything here resolves to CHECK, CALL or FOLD.


def set_pre_action(table: Table, seat_idx: int, action_type: PreActionType, amount: Optional[int] = None) -> PreAction:
    seat = table.seat(seat_idx)
    if not table.phase.is_betting:
        raise IllegalAction("Pre-actions can only be queued during a betting round")
    if not seat.can_act:
        raise IllegalAction("Seat cannot act this hand")
    if table.active_seat == seat_idx:
        raise IllegalAction("It is already your turn")
    if action_type == PreActionType.CALL:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidInput("CALL pre-action requires a positive integer amount")
    else:
        amount = None
    entry = PreAction(type=action_type, amount=amount)
    table.pre_actions[seat_idx] = entry
    return entry


def clear_pre_action(table: Table, seat_idx: int) -> bool:
    return table.pre_actions.pop(seat_idx, None) is not None


def _cancelled(seat_idx: int, reason: str) -> Dict[str, object]:
    return {"ev": "PRE_ACTION_CANCELLED", "seat": seat_idx, "reason": reason}


def invalidate_for_price(table: Table) -> List[Dict[str, object]]:
    """Drop price-sensitive entries after the table's current bet moved."""
    events: List[Dict[str, object]] = []
    for seat_idx, entry in sorted(table.pre_actions.items()):
        seat = table.seats[seat_idx]
        if seat is None:
            continue
        call_amount = max(0, table.current_bet - seat.current_round_bet)
        stale = (entry.type == PreActionType.CHECK and call_amount > 0) or (
            entry.type == PreActionType.CALL and entry.amount != call_amount
        )
        if stale:
            del table.pre_actions[seat_idx]
            events.append(_cancelled(seat_idx, PriceChanged.kind))
    return events


def invalidate_for_status(table: Table) -> List[Dict[str, object]]:
    """Drop entries of seats that can no longer act (folded, all-in, gone)."""
    events: List[Dict[str, object]] = []
    for seat_idx in sorted(table.pre_actions):
        seat = table.seats[seat_idx]
        if seat is None or not seat.can_act:
            del table.pre_actions[seat_idx]
            events.append(_cancelled(seat_idx, "StatusChanged"))
    return events


def resolve_pre_action(table: Table, seat_idx: int) -> Tuple[Optional[Tuple[ActionType, None]], List[Dict[str, object]]]:
    """Consume the seat's queued entry as its turn opens.

    Returns the action to run through the ordinary betting path, or None when
    the entry was cancelled (or absent) and the seat is on the clock.
    """
    entry = table.pre_actions.pop(seat_idx, None)
    if entry is None:
        return None, []
    seat = table.seat(seat_idx)
    call_amount = max(0, table.current_bet - seat.current_round_bet)

    if entry.type == PreActionType.FOLD:
        return (ActionType.FOLD, None), []
    if entry.type == PreActionType.CHECK_FOLD:
        return ((ActionType.CHECK if call_amount == 0 else ActionType.FOLD), None), []
    if entry.type == PreActionType.CHECK:
        if call_amount == 0:
            return (ActionType.CHECK, None), []
        return None, [_cancelled(seat_idx, PriceChanged.kind)]
    if entry.type == PreActionType.CALL_ANY:
        return ((ActionType.CALL if call_amount > 0 else ActionType.CHECK), None), []
    if entry.type == PreActionType.CALL:
        if call_amount == entry.amount:
            return (ActionType.CALL, None), []
        return None, [_cancelled(seat_idx, PriceChanged.kind)]
    raise InvalidInput(f"Unknown pre-action {entry.type}")
