from __future__ import annotations

from typing import List, Tuple

from engine.errors import IllegalAction
from engine.models import TournamentInfo, TournamentState

BLIND_LEVELS = 8


def build_schedule(small_blind: int, big_blind: int, levels: int = BLIND_LEVELS) -> List[List[int]]:
    """Blinds double every level: 10/20, 20/40, ... 1280/2560 for the defaults."""
    return [[small_blind * 2**level, big_blind * 2**level] for level in range(levels)]


def current_blinds(tournament: TournamentInfo) -> Tuple[int, int]:
    schedule = tournament.blind_schedule
    level = min(tournament.blind_timer.current_level, len(schedule) - 1)
    small, big = schedule[level]
    return small, big


def arm_blind_timer(tournament: TournamentInfo, now: int, duration_ms: int) -> None:
    tournament.blind_timer.current_level = 0
    tournament.blind_timer.next_level_at = now + duration_ms


def increase_blind_level(tournament: TournamentInfo, now: int, duration_ms: int) -> bool:
    """Move to the next level once the timer has expired.

    Returns False when the level is not due yet, so duplicate requests from
    several clients leave the table untouched. The last row is sticky.
    """
    if tournament.state != TournamentState.RUNNING:
        raise IllegalAction("Tournament is not running")
    timer = tournament.blind_timer
    if timer.next_level_at is None or now < timer.next_level_at:
        return False
    timer.current_level = min(timer.current_level + 1, len(tournament.blind_schedule) - 1)
    timer.next_level_at = now + duration_ms
    return True
