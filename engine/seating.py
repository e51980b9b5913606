from __future__ import annotations

from typing import Callable, Dict, List, Optional, Tuple

from .cards import SUIT_PRIORITY, Card, Shuffler, full_deck
from .errors import IllegalAction
from .models import Seat, SeatStatus, Table
from .pots import commit_chips


def assign_seat(
    table: Table,
    uid: str,
    display_name: str,
    chips: int,
    *,
    is_bot: bool = False,
    bot_difficulty: Optional[str] = None,
) -> Seat:
    """Seat a player in the lowest open chair."""
    existing = table.seat_of(uid)
    if existing is not None:
        return existing
    for idx, seat in enumerate(table.seats):
        if seat is None:
            seat = Seat(
                seat=idx,
                uid=uid,
                display_name=display_name,
                chips=chips,
                is_bot=is_bot,
                bot_difficulty=bot_difficulty,
            )
            table.seats[idx] = seat
            return seat
    raise IllegalAction("Table is full")


def is_dealt_in(seat: Optional[Seat]) -> bool:
    return (
        seat is not None
        and seat.chips > 0
        and seat.status not in (SeatStatus.SITTING_OUT, SeatStatus.ELIMINATED)
        and not seat.joined_mid_hand
    )


def dealt_in_seats(table: Table) -> List[int]:
    return [seat.seat for seat in table.seats if is_dealt_in(seat)]


def next_seat(table: Table, start: Optional[int], predicate: Callable[[Seat], bool]) -> Optional[int]:
    """First seat strictly clockwise of `start` that satisfies `predicate`."""
    size = len(table.seats)
    origin = start if start is not None else size - 1
    for step in range(1, size + 1):
        idx = (origin + step) % size
        seat = table.seats[idx]
        if seat is not None and predicate(seat):
            return idx
    return None


def rotation_from(table: Table, start: int, predicate: Callable[[Seat], bool]) -> List[int]:
    """Every seat satisfying `predicate`, clockwise, beginning at `start` inclusive."""
    size = len(table.seats)
    order = []
    for step in range(size):
        idx = (start + step) % size
        seat = table.seats[idx]
        if seat is not None and predicate(seat):
            order.append(idx)
    return order


def rotate_button(table: Table, dealt: List[int]) -> int:
    if table.dealer_seat is None:
        table.dealer_seat = dealt[0]
    else:
        nxt = next_seat(table, table.dealer_seat, lambda seat: seat.seat in dealt)
        assert nxt is not None
        table.dealer_seat = nxt
    return table.dealer_seat


def blind_seats(table: Table, dealt: List[int]) -> Tuple[int, int]:
    assert table.dealer_seat is not None
    in_hand = lambda seat: seat.seat in dealt  # noqa: E731
    if len(dealt) == 2:
        small = table.dealer_seat
    else:
        small = next_seat(table, table.dealer_seat, in_hand)
    big = next_seat(table, small, in_hand)
    assert small is not None and big is not None
    return small, big


def post_blinds(table: Table, small_blind: int, big_blind: int, ante: int = 0) -> List[Dict[str, object]]:
    """Collect antes and blinds; short stacks post what they have and go all-in.

    current_bet is the full big blind unless both blinds are short, in which
    case it is the larger amount actually posted. last_raise_size always
    starts at the big blind.
    """
    events: List[Dict[str, object]] = []
    sb_seat = table.seat(table.small_blind_seat)
    bb_seat = table.seat(table.big_blind_seat)

    if ante:
        for seat in table.in_hand_seats():
            posted = commit_chips(table, seat, ante, dead=True)
            events.append({"ev": "POST_ANTE", "seat": seat.seat, "amount": posted})

    sb_posted = commit_chips(table, sb_seat, small_blind)
    bb_posted = commit_chips(table, bb_seat, big_blind)
    sb_seat.last_action = f"Small blind {sb_posted}"
    bb_seat.last_action = f"Big blind {bb_posted}"

    sb_short = sb_posted < small_blind
    bb_short = bb_posted < big_blind
    if sb_short and bb_short:
        table.current_bet = max(sb_posted, bb_posted)
    else:
        table.current_bet = big_blind
    table.last_raise_size = big_blind
    table.raises_this_round = 0

    events.append(
        {
            "ev": "POST_BLINDS",
            "sb_seat": sb_seat.seat,
            "bb_seat": bb_seat.seat,
            "sb": sb_posted,
            "bb": bb_posted,
        }
    )
    return events


def cut_for_dealer(table: Table, shuffler: Shuffler, dealt: List[int]) -> Dict[int, Card]:
    """Deal one card per seat from a scratch deck; the hand deck is untouched."""
    scratch = shuffler.shuffle(full_deck(), table.table_id, table.hand_number, "cut")
    table.cut_cards = {seat_idx: scratch[pos] for pos, seat_idx in enumerate(dealt)}
    return dict(table.cut_cards)


def cut_winner(cut_cards: Dict[int, Card]) -> int:
    return max(cut_cards, key=lambda seat: (cut_cards[seat].value, SUIT_PRIORITY[cut_cards[seat].suit]))
