from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from engine.cards import Card, Shuffler, full_deck, parse_cards
from engine.game import GameEngine
from engine.models import ActionType, BettingType, Phase, Table, TableConfig, TableMode, Variant
from host.service import TableService
from host.store import InMemoryStore


class StackedShuffler(Shuffler):
    """Shuffler whose hand decks start with scripted cards.

    `decks` maps a hand number to the labels that should sit on top of that
    hand's deck; the rest of the 52 follow in a fixed order. With
    `truncate=True` only the scripted cards are dealt, which is how tests
    run a deck dry.
    """

    def __init__(self, decks: Optional[Dict[int, Sequence[str]]] = None, *, truncate: bool = False) -> None:
        super().__init__("test-secret")
        self.decks = {hand: parse_cards(labels) for hand, labels in (decks or {}).items()}
        self.truncate = truncate

    def shuffle(self, cards: Sequence[Card], *context: object) -> List[Card]:
        if len(context) == 3 and context[2] == "deal" and context[1] in self.decks:
            top = self.decks[context[1]]  # type: ignore[index]
            if self.truncate:
                return list(top)
            rest = [card for card in full_deck() if card not in top]
            return list(top) + rest
        return super().shuffle(cards, *context)


def make_table(
    *,
    variant: Variant = Variant.LOWBALL_27,
    betting_type: BettingType = BettingType.NO_LIMIT,
    mode: TableMode = TableMode.CASH,
    seats: int = 6,
    table_id: str = "T1",
    **overrides,
) -> Table:
    config = TableConfig(variant=variant, betting_type=betting_type, mode=mode, max_players=seats, **overrides)
    return Table(table_id=table_id, config=config, creator_uid="p0")


def make_engine(
    chips: Iterable[int] = (1_000, 1_000),
    *,
    decks: Optional[Dict[int, Sequence[str]]] = None,
    truncate: bool = False,
    seats: Optional[int] = None,
    **table_kwargs,
) -> GameEngine:
    """Engine with players p0, p1, ... seated in order with the given stacks."""
    stacks = list(chips)
    table = make_table(seats=seats or max(len(stacks), 2), **table_kwargs)
    shuffler = StackedShuffler(decks, truncate=truncate) if decks is not None else Shuffler("test-secret")
    engine = GameEngine(table, shuffler)
    for idx, stack in enumerate(stacks):
        engine.join(f"p{idx}", f"Player {idx}", stack)
    return engine


def deal_order(hands: Dict[int, Sequence[str]], order: Sequence[int]) -> List[str]:
    """Labels in dealing order: one card per seat per round, starting left of the button."""
    rounds = len(next(iter(hands.values())))
    return [hands[seat][r] for r in range(rounds) for seat in order]


def perform_actions(
    engine: GameEngine,
    actions: Iterable[Tuple[int, ActionType, Optional[int]]],
    now: int = 0,
) -> List[Dict[str, object]]:
    """Apply a scripted sequence of (seat, action, amount); returns every event."""
    events: List[Dict[str, object]] = []
    for seat_idx, action, amount in actions:
        events.extend(engine.bet_action(seat_idx, action, amount, now))
    return events


def check_or_call_round(engine: GameEngine, now: int = 0) -> None:
    """Let every seat check or call until the current betting round closes."""
    phase = engine.table.phase
    while engine.table.phase == phase and engine.table.active_seat is not None:
        seat_idx = engine.table.active_seat
        legal = engine.legal_actions(seat_idx).legal
        action = ActionType.CHECK if ActionType.CHECK in legal else ActionType.CALL
        engine.bet_action(seat_idx, action, None, now)


def stand_pat_round(engine: GameEngine, now: int = 0) -> None:
    phase = engine.table.phase
    while engine.table.phase == phase and engine.table.active_seat is not None:
        engine.submit_draw(engine.table.active_seat, [], now)


def play_passively(engine: GameEngine, now: int = 0) -> None:
    """Check/call every betting round and stand pat on every draw until showdown."""
    while engine.table.phase not in (Phase.SHOWDOWN, Phase.IDLE):
        if engine.table.phase.is_draw:
            stand_pat_round(engine, now)
        else:
            check_or_call_round(engine, now)


def all_cards(table: Table) -> List[Card]:
    cards = list(table.deck.live) + list(table.deck.discards) + list(table.community_cards)
    for seat in table.occupied():
        cards.extend(seat.hand)
    return cards


def assert_table_invariants(table: Table, total_chips: int) -> None:
    assert table.total_chips() == total_chips
    cards = all_cards(table)
    assert len(cards) == 52
    assert set(cards) == set(full_deck())
    assert table.pot == sum(seat.total_contribution for seat in table.occupied())
    for seat in table.occupied():
        assert seat.chips >= 0
        assert seat.total_contribution >= seat.current_round_bet >= 0
    if table.active_seat is not None:
        assert table.phase.is_betting or table.phase.is_draw
        assert table.seat(table.active_seat).can_act


class FakeClock:
    def __init__(self, start: int = 1_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


def make_service(balances: Optional[Dict[str, int]] = None, clock: Optional[FakeClock] = None) -> TableService:
    """TableService over an in-memory store with funded wallets and a fake clock."""
    store = InMemoryStore(clock=clock or FakeClock())
    for uid, amount in (balances or {}).items():
        store.deposit(uid, amount)
    return TableService(store, secret_factory=lambda: "test-secret")
