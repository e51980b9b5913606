from __future__ import annotations

from typing import Optional

from .models import GRACE_PERIOD_MS, ActionType, Table

# Deadlines are plain state. Nothing fires by itself: a timeout only happens
# when some client submits the intent after the deadline has passed.


def arm_turn(table: Table, now: int) -> None:
    table.turn_deadline = now + table.config.turn_time_ms if table.active_seat is not None else None


def is_due(table: Table, now: int, *, by_actor: bool) -> bool:
    if table.active_seat is None or table.turn_deadline is None:
        return False
    # The acting seat may give up its own turn at the deadline; everyone else
    # (other seats, railbirds, the bot handler) waits out the grace period.
    threshold = table.turn_deadline if by_actor else table.turn_deadline + GRACE_PERIOD_MS
    return now >= threshold


def default_bet_action(table: Table) -> ActionType:
    seat = table.seat(table.active_seat)
    return ActionType.CHECK if seat.current_round_bet >= table.current_bet else ActionType.FOLD


def remaining_ms(table: Table, now: int) -> Optional[int]:
    if table.turn_deadline is None:
        return None
    return max(0, table.turn_deadline - now)
