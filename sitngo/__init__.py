"""Sit-&-Go tournament wrapper: registration, blind levels, eliminations and payouts."""

from .blinds import build_schedule, current_blinds, increase_blind_level
from .payouts import STANDARD_PAYOUTS, distribute, prize_structure, validate_custom
from .wrapper import TournamentDirector, open_tournament

__all__ = [
    "build_schedule",
    "current_blinds",
    "increase_blind_level",
    "STANDARD_PAYOUTS",
    "distribute",
    "prize_structure",
    "validate_custom",
    "TournamentDirector",
    "open_tournament",
]
