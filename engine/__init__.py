"""Table state machine for draw and hold'em poker; pure, clock-free and storage-free."""

from .cards import Card, DeckState, Shuffler, full_deck, parse_card, parse_cards
from .errors import (
    Conflict,
    DeckUnderflow,
    HandAborted,
    IllegalAction,
    InsufficientChips,
    InvalidInput,
    NotAuthorized,
    NotFound,
    PokerError,
    PriceChanged,
    TournamentClosed,
)
from .evaluator import HOLDEM, LOWBALL, HandValue
from .game import GameEngine
from .models import (
    ActionType,
    BettingType,
    Phase,
    PreActionType,
    Seat,
    SeatStatus,
    Table,
    TableConfig,
    TableMode,
    Variant,
)
from .variants import spec_for

__all__ = [
    "Card",
    "DeckState",
    "Shuffler",
    "full_deck",
    "parse_card",
    "parse_cards",
    "Conflict",
    "DeckUnderflow",
    "HandAborted",
    "IllegalAction",
    "InsufficientChips",
    "InvalidInput",
    "NotAuthorized",
    "NotFound",
    "PokerError",
    "PriceChanged",
    "TournamentClosed",
    "HOLDEM",
    "LOWBALL",
    "HandValue",
    "GameEngine",
    "ActionType",
    "BettingType",
    "Phase",
    "PreActionType",
    "Seat",
    "SeatStatus",
    "Table",
    "TableConfig",
    "TableMode",
    "Variant",
    "spec_for",
]
