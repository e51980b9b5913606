from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence, Union

from .errors import DeckUnderflow, InvalidInput

RANKS = "AKQJT98765432"
SUITS = "hdcs"

RANK_VALUE = {rank: idx for idx, rank in enumerate("23456789TJQKA", start=2)}
# Cut-for-dealer tie-break: spades > hearts > diamonds > clubs.
SUIT_PRIORITY = {"s": 4, "h": 3, "d": 2, "c": 1}


@dataclass(frozen=True)
class Card:
    rank: str
    suit: str

    def __post_init__(self) -> None:
        if self.rank not in RANKS:
            raise InvalidInput(f"Invalid rank: {self.rank}")
        if self.suit not in SUITS:
            raise InvalidInput(f"Invalid suit: {self.suit}")

    @property
    def label(self) -> str:
        return f"{self.rank}{self.suit}"

    @property
    def value(self) -> int:
        return RANK_VALUE[self.rank]

    def to_dict(self) -> Dict[str, str]:
        return {"rank": self.rank, "suit": self.suit}


CardLike = Union[Card, str, Mapping[str, Any]]


def parse_label(label: str) -> Card:
    if len(label) != 2:
        raise InvalidInput(f"Invalid card label: {label}")
    return Card(label[0].upper(), label[1].lower())


def parse_card(raw: CardLike) -> Card:
    if isinstance(raw, Card):
        return raw
    if isinstance(raw, str):
        return parse_label(raw)
    if isinstance(raw, Mapping):
        return Card(str(raw.get("rank", "")), str(raw.get("suit", "")))
    raise InvalidInput(f"Invalid card: {raw!r}")


def parse_cards(raw: Iterable[CardLike]) -> List[Card]:
    return [parse_card(item) for item in raw]


def cards_to_labels(cards: Iterable[Card]) -> List[str]:
    return [card.label for card in cards]


def cards_to_dicts(cards: Iterable[Card]) -> List[Dict[str, str]]:
    return [card.to_dict() for card in cards]


def full_deck() -> List[Card]:
    """The 52 cards in a fixed, unshuffled order."""
    return [Card(rank, suit) for suit in SUITS for rank in RANKS[::-1]]


class HashStream:
    """SHA-256 counter stream used as the shuffle's random source.

    Output is fully determined by the seed material, so a hand can be replayed
    from `(table id, hand number, secret)` while clients, who never see the
    secret, cannot predict it.
    """

    def __init__(self, seed: bytes) -> None:
        self._seed = seed
        self._counter = 0
        self._buffer = b""

    def _take(self, nbytes: int) -> bytes:
        while len(self._buffer) < nbytes:
            block = hashlib.sha256(self._seed + self._counter.to_bytes(8, "big")).digest()
            self._counter += 1
            self._buffer += block
        chunk, self._buffer = self._buffer[:nbytes], self._buffer[nbytes:]
        return chunk

    def randbelow(self, upper: int) -> int:
        if upper <= 0:
            raise ValueError("upper must be positive")
        bits = upper.bit_length()
        nbytes = (bits + 7) // 8
        mask = (1 << bits) - 1
        # Rejection sampling keeps every index equally likely.
        while True:
            candidate = int.from_bytes(self._take(nbytes), "big") & mask
            if candidate < upper:
                return candidate


class Shuffler:
    """Derives per-hand permutations from a server-held secret."""

    def __init__(self, secret: Union[str, bytes]) -> None:
        self._secret = secret.encode() if isinstance(secret, str) else secret

    def stream(self, *context: object) -> HashStream:
        material = hashlib.sha256(self._secret)
        for part in context:
            material.update(b"\x1f")
            material.update(str(part).encode())
        return HashStream(material.digest())

    def shuffle(self, cards: Sequence[Card], *context: object) -> List[Card]:
        shuffled = list(cards)
        rng = self.stream(*context)
        # Fisher-Yates: uniform over all n! orderings.
        for idx in range(len(shuffled) - 1, 0, -1):
            swap = rng.randbelow(idx + 1)
            shuffled[idx], shuffled[swap] = shuffled[swap], shuffled[idx]
        return shuffled


@dataclass
class DeckState:
    live: List[Card] = field(default_factory=list)
    discards: List[Card] = field(default_factory=list)
    reshuffles: int = 0

    def deal_one(self) -> Card:
        return self.deal_many(1)[0]

    def deal_many(self, count: int) -> List[Card]:
        if count < 0:
            raise InvalidInput("Cannot deal a negative number of cards")
        if len(self.live) < count:
            raise DeckUnderflow(f"Cannot deal {count} cards, only {len(self.live)} remaining")
        cards = self.live[:count]
        del self.live[:count]
        return cards

    def return_to_discards(self, cards: Iterable[Card]) -> None:
        self.discards.extend(cards)

    def reshuffle_discards_if_needed(
        self,
        need: int,
        shuffle: Callable[[List[Card], int], List[Card]],
    ) -> bool:
        """Top the live deck up from the discards when fewer than `need` remain.

        The existing live cards keep their order at the front; only the moved
        discards are shuffled and placed behind them.
        """
        if len(self.live) >= need or not self.discards:
            return False
        moved = list(self.discards)
        self.discards.clear()
        self.reshuffles += 1
        self.live.extend(shuffle(moved, self.reshuffles))
        return True

    def to_dict(self) -> Dict[str, object]:
        return {
            "live": cards_to_dicts(self.live),
            "discards": cards_to_dicts(self.discards),
            "reshuffles": self.reshuffles,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DeckState":
        return cls(
            live=parse_cards(data.get("live") or []),
            discards=parse_cards(data.get("discards") or []),
            reshuffles=int(data.get("reshuffles") or 0),
        )


def new_shuffled_deck(shuffler: Shuffler, table_id: str, hand_number: int) -> DeckState:
    return DeckState(live=shuffler.shuffle(full_deck(), table_id, hand_number, "deal"))
