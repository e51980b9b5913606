from __future__ import annotations

from typing import Dict


class PokerError(Exception):
    """Base for every error an intent can surface to the caller."""

    kind = "PokerError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> Dict[str, str]:
        return {"kind": self.kind, "message": self.message}


class Conflict(PokerError):
    kind = "Conflict"


class IllegalAction(PokerError):
    kind = "IllegalAction"


class InsufficientChips(PokerError):
    kind = "InsufficientChips"


class InvalidInput(PokerError):
    kind = "InvalidInput"


class NotAuthorized(PokerError):
    kind = "NotAuthorized"


class NotFound(PokerError):
    kind = "NotFound"


class DeckUnderflow(PokerError):
    kind = "DeckUnderflow"


class TournamentClosed(PokerError):
    kind = "TournamentClosed"


class PriceChanged(PokerError):
    kind = "PriceChanged"


class HandAborted(DeckUnderflow):
    """Raised after an underflow has been rolled back into a committed IDLE table."""

    def __init__(self, message: str, events) -> None:
        super().__init__(message)
        self.events = events
