from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from .betting import (
    ActionWindow,
    apply_bet,
    legal_actions,
    needs_action,
    next_to_act,
    round_complete,
    start_round,
)
from .cards import Card, Shuffler, cards_to_labels, new_shuffled_deck
from .errors import DeckUnderflow, HandAborted, IllegalAction, InvalidInput
from .evaluator import HandValue
from .models import (
    SHOW_BLUFF_WINDOW_MS,
    ActionType,
    Phase,
    PreActionType,
    Seat,
    SeatStatus,
    Table,
    TournamentState,
)
from .pots import (
    SidePot,
    award_pots,
    build_side_pots,
    clear_ledger,
    clockwise_from_dealer,
    refund_contributions,
)
from .preactions import (
    clear_pre_action,
    invalidate_for_price,
    invalidate_for_status,
    resolve_pre_action,
    set_pre_action,
)
from .seating import (
    assign_seat,
    blind_seats,
    cut_for_dealer,
    cut_winner,
    dealt_in_seats,
    next_seat,
    post_blinds,
    rotate_button,
    rotation_from,
)
from .timer import arm_turn, default_bet_action, is_due
from .variants import VariantSpec, spec_for

LOGGER = logging.getLogger("kcpoker.engine")

Events = List[Dict[str, object]]
HandEndObserver = Callable[[Table, Dict[str, Any], int], Events]
BlindSource = Callable[[Table], tuple]

MAX_DISCARDS = 5

# GameEngine owns the rules for one table aggregate. It never reads a clock or
# touches storage: callers pass `now` in and persist the table afterwards.


class GameEngine:
    """Hand lifecycle for draw and hold'em tables."""

    def __init__(
        self,
        table: Table,
        shuffler: Shuffler,
        on_hand_end: Optional[HandEndObserver] = None,
        blind_source: Optional[BlindSource] = None,
    ) -> None:
        self.table = table
        self.shuffler = shuffler
        self.on_hand_end = on_hand_end
        self.blind_source = blind_source

    @property
    def spec(self) -> VariantSpec:
        return spec_for(self.table.config.variant)

    # Seat management -------------------------------------------------

    def join(
        self,
        uid: str,
        display_name: str,
        chips: int,
        *,
        is_bot: bool = False,
        bot_difficulty: Optional[str] = None,
    ) -> Seat:
        """Seat a player, or re-buy an existing busted seat.

        Mid-hand joiners keep their chair but sit out until the hand is over.
        """
        if chips <= 0:
            raise InvalidInput("Buy-in must be positive")
        table = self.table
        existing = table.seat_of(uid)
        if existing is not None:
            if existing.chips > 0 and existing.status != SeatStatus.ELIMINATED:
                raise IllegalAction("Already seated")
            existing.chips += chips
            self._seat_between_hands(existing)
            table.log_activity(f"{existing.display_name} re-bought for {chips}")
            return existing
        seat = assign_seat(table, uid, display_name, chips, is_bot=is_bot, bot_difficulty=bot_difficulty)
        self._seat_between_hands(seat)
        table.railbirds = [entry for entry in table.railbirds if entry.get("uid") != uid]
        table.log_activity(f"{display_name} sat down with {chips}")
        return seat

    def _seat_between_hands(self, seat: Seat) -> None:
        if self.table.phase == Phase.IDLE:
            seat.status = SeatStatus.ACTIVE
            seat.joined_mid_hand = False
        else:
            seat.status = SeatStatus.SITTING_OUT
            seat.joined_mid_hand = True

    def kick(self, seat_idx: int) -> Seat:
        seat = self.table.seat(seat_idx)
        if not seat.is_bot:
            raise IllegalAction("Only bots can be removed")
        if self.table.phase != Phase.IDLE:
            raise IllegalAction("Bots can only be removed between hands")
        self.table.seats[seat_idx] = None
        self.table.pre_actions.pop(seat_idx, None)
        self.table.log_activity(f"{seat.display_name} was removed from the table")
        return seat

    def leave(self, seat_idx: int) -> Seat:
        seat = self.table.seat(seat_idx)
        if self.table.phase != Phase.IDLE and seat.status != SeatStatus.SITTING_OUT:
            raise IllegalAction("Cannot leave during a hand")
        if seat.total_contribution:
            raise IllegalAction("Chips still committed to the pot")
        self.table.seats[seat_idx] = None
        self.table.pre_actions.pop(seat_idx, None)
        self.table.log_activity(f"{seat.display_name} left the table")
        return seat

    def request_sit_out(self, seat_idx: int) -> Events:
        seat = self.table.seat(seat_idx)
        if seat.status == SeatStatus.ELIMINATED:
            raise IllegalAction("Seat is eliminated")
        if self.table.phase == Phase.IDLE:
            seat.status = SeatStatus.SITTING_OUT
            seat.pending_sit_out = False
            return [{"ev": "SIT_OUT", "seat": seat_idx}]
        seat.pending_sit_out = True
        return [{"ev": "SIT_OUT_PENDING", "seat": seat_idx}]

    def cancel_sit_out(self, seat_idx: int) -> Events:
        seat = self.table.seat(seat_idx)
        if seat.pending_sit_out:
            seat.pending_sit_out = False
            return [{"ev": "SIT_OUT_CANCELLED", "seat": seat_idx}]
        if seat.status != SeatStatus.SITTING_OUT:
            raise IllegalAction("Seat is not sitting out")
        self._seat_between_hands(seat)
        return [{"ev": "SIT_IN", "seat": seat_idx}]

    # Hand start ------------------------------------------------------

    def can_deal(self) -> bool:
        return self.table.phase == Phase.IDLE and len(dealt_in_seats(self.table)) >= 2

    def deal(self, now: int) -> Events:
        table = self.table
        if table.phase != Phase.IDLE:
            raise IllegalAction(f"Cannot deal during {table.phase.value}")
        tournament = table.tournament
        if tournament is not None and tournament.state != TournamentState.RUNNING:
            raise IllegalAction("Tournament is not running")
        dealt = dealt_in_seats(table)
        if len(dealt) < 2:
            raise IllegalAction("Need at least two players with chips")
        if table.config.uses_cut and table.dealer_seat is None:
            cards = cut_for_dealer(table, self.shuffler, dealt)
            table.phase = Phase.CUT_FOR_DEALER
            table.log_activity("Cutting for the button")
            return [
                {"ev": "CUT_FOR_DEALER", "cards": {seat: card.label for seat, card in sorted(cards.items())}}
            ]
        return self._guarded(now, lambda: self._begin_hand(now, dealt, rotate=True))

    def resolve_cut_for_dealer(self, now: int) -> Events:
        table = self.table
        if table.phase != Phase.CUT_FOR_DEALER:
            raise IllegalAction("No cut for dealer in progress")
        winner = cut_winner(table.cut_cards)
        table.dealer_seat = winner
        table.phase = Phase.IDLE
        card = table.cut_cards[winner]
        table.log_activity(f"{table.seat(winner).display_name} wins the button with {card.label}")
        events: Events = [{"ev": "BUTTON", "seat": winner, "card": card.label}]
        dealt = dealt_in_seats(table)
        if winner not in dealt or len(dealt) < 2:
            return events
        events.extend(self._guarded(now, lambda: self._begin_hand(now, dealt, rotate=False)))
        return events

    def _begin_hand(self, now: int, dealt: List[int], *, rotate: bool) -> Events:
        table = self.table
        spec = self.spec
        table.hand_number += 1
        for seat in table.occupied():
            seat.reset_for_hand()
            if seat.seat in dealt:
                seat.status = SeatStatus.ACTIVE
        table.community_cards = []
        table.side_pots = None
        table.last_result = None
        table.pre_actions = {}
        table.show_bluff_deadline = None
        table.show_bluff_seat = None
        table.all_in_showdown = False
        table.deck = new_shuffled_deck(self.shuffler, table.table_id, table.hand_number)

        if rotate:
            rotate_button(table, dealt)
        small, big = self._blinds()
        table.small_blind = small
        table.big_blind = big
        table.small_blind_seat, table.big_blind_seat = blind_seats(table, dealt)

        table.phase = Phase.DEAL
        assert table.dealer_seat is not None
        order = rotation_from(table, table.dealer_seat + 1, lambda seat: seat.seat in dealt)
        for _ in range(spec.cards_per_hand):
            for seat_idx in order:
                table.seat(seat_idx).hand.append(self._draw_cards(1)[0])

        events: Events = [
            {
                "ev": "START_HAND",
                "handNumber": table.hand_number,
                "button": table.dealer_seat,
                "seats": list(order),
            }
        ]
        events.extend(post_blinds(table, small, big, table.config.ante))
        table.log_activity(f"Hand #{table.hand_number} dealt")

        table.phase = spec.opening_round
        if len(dealt) == 2:
            first = table.dealer_seat
        else:
            first = (table.big_blind_seat + 1) % len(table.seats)
        events.extend(self._open_betting(now, first))
        return events

    def _blinds(self) -> tuple:
        if self.blind_source is not None:
            return self.blind_source(self.table)
        return self.table.config.small_blind, self.table.config.big_blind

    # Card handling ---------------------------------------------------

    def _draw_cards(self, count: int) -> List[Card]:
        table = self.table
        table.deck.reshuffle_discards_if_needed(
            count,
            lambda cards, n: self.shuffler.shuffle(cards, table.table_id, table.hand_number, "reshuffle", n),
        )
        return table.deck.deal_many(count)

    def _guarded(self, now: int, step: Callable[[], Events]) -> Events:
        try:
            return step()
        except HandAborted:
            raise
        except DeckUnderflow as exc:
            events = self._abort_hand(now, exc.message)
            raise HandAborted(exc.message, events) from exc

    def _abort_hand(self, now: int, reason: str) -> Events:
        table = self.table
        LOGGER.error("Hand %s on table %s aborted: %s", table.hand_number, table.table_id, reason)
        refunds = refund_contributions(table)
        clear_ledger(table)
        for seat in table.occupied():
            seat.reset_for_hand()
            if seat.in_hand or seat.status == SeatStatus.FOLDED:
                seat.status = SeatStatus.ACTIVE
        table.community_cards = []
        table.deck = new_shuffled_deck(self.shuffler, table.table_id, table.hand_number + 1)
        table.phase = Phase.IDLE
        table.active_seat = None
        table.turn_deadline = None
        table.pre_actions = {}
        table.record_history({"handNumber": table.hand_number, "aborted": True, "reason": reason})
        table.log_activity(f"Hand #{table.hand_number} aborted: {reason}", now)
        return [{"ev": "HAND_ABORTED", "reason": reason, "refunds": refunds}]

    # Betting ---------------------------------------------------------

    def legal_actions(self, seat_idx: int) -> ActionWindow:
        if not self.table.phase.is_betting:
            raise IllegalAction("No betting round in progress")
        return legal_actions(self.table, self.spec, seat_idx)

    def bet_action(self, seat_idx: int, action: ActionType, amount: Optional[int], now: int) -> Events:
        table = self.table
        if not table.phase.is_betting:
            raise IllegalAction(f"Cannot bet during {table.phase.value}")
        if table.active_seat != seat_idx:
            raise IllegalAction("Not your turn")
        return self._guarded(now, lambda: self._apply_bet(seat_idx, action, amount, now))

    def _apply_bet(
        self,
        seat_idx: int,
        action: ActionType,
        amount: Optional[int],
        now: int,
        *,
        note: Optional[str] = None,
    ) -> Events:
        table = self.table
        previous_bet = table.current_bet
        table.pre_actions.pop(seat_idx, None)
        events = apply_bet(table, self.spec, seat_idx, action, amount)
        seat = table.seat(seat_idx)
        if note:
            seat.last_action = f"{seat.last_action} ({note})"
            for event in events:
                event["note"] = note
        table.log_activity(f"{seat.display_name}: {seat.last_action}", now)

        if table.current_bet != previous_bet:
            events.extend(invalidate_for_price(table))
        events.extend(invalidate_for_status(table))
        events.extend(self._after_action(seat_idx, now))
        return events

    def _after_action(self, seat_idx: int, now: int) -> Events:
        table = self.table
        if len(table.in_hand_seats()) == 1:
            return self._finish_uncontested(now)
        if round_complete(table):
            return self._advance_phase(now)
        table.active_seat = next_to_act(table, seat_idx)
        return self._open_turn(now)

    def _open_betting(self, now: int, first: int) -> Events:
        table = self.table
        if round_complete(table):
            return self._advance_phase(now)
        order = rotation_from(table, first, lambda seat: needs_action(table, seat))
        table.active_seat = order[0] if order else None
        if table.active_seat is None:
            return self._advance_phase(now)
        return self._open_turn(now)

    def _open_turn(self, now: int) -> Events:
        table = self.table
        arm_turn(table, now)
        seat_idx = table.active_seat
        if seat_idx is None or not table.phase.is_betting:
            return []
        queued, events = resolve_pre_action(table, seat_idx)
        if queued is None:
            return events
        action, _ = queued
        events.append({"ev": "PRE_ACTION", "seat": seat_idx, "action": action.value})
        events.extend(self._apply_bet(seat_idx, action, None, now, note="pre-action"))
        return events

    # Pre-actions -----------------------------------------------------

    def set_pre_action(self, seat_idx: int, action_type: PreActionType, amount: Optional[int] = None) -> Events:
        entry = set_pre_action(self.table, seat_idx, action_type, amount)
        return [{"ev": "PRE_ACTION_SET", "seat": seat_idx, **entry.to_dict()}]

    def clear_pre_action(self, seat_idx: int) -> Events:
        self.table.seat(seat_idx)
        if not clear_pre_action(self.table, seat_idx):
            return []
        return [{"ev": "PRE_ACTION_CLEARED", "seat": seat_idx}]

    # Phase progression -----------------------------------------------

    def _betting_closed(self) -> bool:
        return sum(1 for seat in self.table.occupied() if seat.can_act) <= 1

    def _advance_phase(self, now: int) -> Events:
        table = self.table
        spec = self.spec
        events: Events = []
        while True:
            if table.phase == Phase.SHOWDOWN:
                return events
            if self._betting_closed() and (table.phase.is_betting or table.phase.is_draw):
                events.extend(self._run_out(now))
                return events

            nxt = spec.next_phase(table.phase)
            if nxt in spec.community_deals:
                cards = self._draw_cards(spec.community_deals[nxt])
                table.community_cards.extend(cards)
                table.phase = nxt
                events.append({"ev": nxt.value, "cards": cards_to_labels(cards)})
                continue

            if nxt.is_betting:
                start_round(table, spec)
                table.phase = nxt
                events.append({"ev": "ROUND", "phase": nxt.value})
                first = next_seat(table, table.dealer_seat, lambda seat: needs_action(table, seat))
                if first is None:
                    continue
                table.active_seat = first
                events.extend(self._open_turn(now))
                return events

            if nxt.is_draw:
                start_round(table, spec)
                table.phase = nxt
                events.append({"ev": "ROUND", "phase": nxt.value})
                first = next_seat(table, table.dealer_seat, lambda seat: seat.can_act)
                if first is None:
                    continue
                table.active_seat = first
                arm_turn(table, now)
                return events

            events.extend(self._showdown(now, all_in=False))
            return events

    def _run_out(self, now: int) -> Events:
        """No more betting is possible: deal out the board and show down.

        Remaining draws are skipped for everyone, so all-in seats stand pat
        even in multi-way pots. Every contender is revealed, including a
        caller who still has chips behind.
        """
        table = self.table
        spec = self.spec
        events: Events = []
        for seat in table.occupied():
            seat.current_round_bet = 0
        phase = table.phase
        while phase != Phase.SHOWDOWN:
            phase = spec.next_phase(phase)
            if phase in spec.community_deals:
                cards = self._draw_cards(spec.community_deals[phase])
                table.community_cards.extend(cards)
                events.append({"ev": phase.value, "cards": cards_to_labels(cards)})
        events.extend(self._showdown(now, all_in=True))
        return events

    # Draws -----------------------------------------------------------

    def submit_draw(self, seat_idx: int, indices: Sequence[int], now: int) -> Events:
        table = self.table
        if not table.phase.is_draw:
            raise IllegalAction(f"Cannot draw during {table.phase.value}")
        if table.active_seat != seat_idx:
            raise IllegalAction("Not your turn")
        chosen = self._validate_discards(table.seat(seat_idx), indices)
        return self._guarded(now, lambda: self._apply_draw(seat_idx, chosen, now))

    def _validate_discards(self, seat: Seat, indices: Sequence[int]) -> List[int]:
        if isinstance(indices, (str, bytes)) or not isinstance(indices, Sequence):
            raise InvalidInput("Discard indices must be a list")
        chosen: List[int] = []
        for idx in indices:
            if isinstance(idx, bool) or not isinstance(idx, int):
                raise InvalidInput("Discard indices must be integers")
            if not 0 <= idx < len(seat.hand):
                raise InvalidInput(f"Card index {idx} is not in your hand")
            if idx in chosen:
                raise InvalidInput(f"Card index {idx} listed twice")
            chosen.append(idx)
        if len(chosen) > MAX_DISCARDS:
            raise InvalidInput("Cannot discard more than five cards")
        return chosen

    def _apply_draw(self, seat_idx: int, chosen: List[int], now: int, *, note: Optional[str] = None) -> Events:
        table = self.table
        seat = table.seat(seat_idx)
        discarded = [seat.hand[idx] for idx in chosen]
        # Replacements come from the deck before this seat's own discards join the pile.
        replacements = self._draw_cards(len(chosen)) if chosen else []
        for idx, card in zip(chosen, replacements):
            seat.hand[idx] = card
        table.deck.return_to_discards(discarded)
        seat.has_acted = True
        seat.last_action = f"Drew {len(chosen)}" if chosen else "Stood pat"
        if note:
            seat.last_action = f"{seat.last_action} ({note})"
        table.log_activity(f"{seat.display_name}: {seat.last_action}", now)
        events: Events = [{"ev": "DRAW", "seat": seat_idx, "count": len(chosen)}]

        nxt = next_seat(table, seat_idx, lambda other: other.can_act and not other.has_acted)
        if nxt is None:
            events.extend(self._advance_phase(now))
        else:
            table.active_seat = nxt
            arm_turn(table, now)
        return events

    # Timeouts --------------------------------------------------------

    def timeout(
        self,
        now: int,
        caller_seat: Optional[int] = None,
        expected: Optional[Mapping[str, Any]] = None,
    ) -> Events:
        """Apply the default action for an expired turn; a no-op returns []."""
        table = self.table
        seat_idx = table.active_seat
        if seat_idx is None or not (table.phase.is_betting or table.phase.is_draw):
            return []
        if expected:
            if "seat" in expected and expected["seat"] != seat_idx:
                return []
            if "handNumber" in expected and expected["handNumber"] != table.hand_number:
                return []
            if "phase" in expected and expected["phase"] != table.phase.value:
                return []
        if not is_due(table, now, by_actor=caller_seat == seat_idx):
            return []
        if table.phase.is_draw:
            return self._guarded(now, lambda: self._apply_draw(seat_idx, [], now, note="timeout"))
        action = default_bet_action(table)
        return self._guarded(now, lambda: self._apply_bet(seat_idx, action, None, now, note="timeout"))

    # Hand end --------------------------------------------------------

    def _evaluate(self, seat: Seat) -> HandValue:
        return self.spec.evaluate(seat.hand, self.table.community_cards)

    def _best_of(self, values: Dict[int, HandValue], eligible: List[int]) -> List[int]:
        best: List[int] = []
        for seat_idx in eligible:
            if not best:
                best = [seat_idx]
                continue
            verdict = self.spec.compare(values[seat_idx], values[best[0]])
            if verdict < 0:
                best = [seat_idx]
            elif verdict == 0:
                best.append(seat_idx)
        return best

    def _showdown(self, now: int, *, all_in: bool) -> Events:
        table = self.table
        table.phase = Phase.SHOWDOWN
        table.active_seat = None
        table.turn_deadline = None
        table.all_in_showdown = all_in

        contenders = table.in_hand_seats()
        values = {seat.seat: self._evaluate(seat) for seat in contenders}
        pots = build_side_pots(table)
        won = award_pots(
            table,
            pots,
            lambda eligible: self._best_of(values, [s for s in eligible if s in values]) or list(eligible),
        )

        if all_in:
            revealed = {seat.seat for seat in contenders}
        else:
            revealed = {w for pot in pots for w in pot.winners if w in values}
        events: Events = []
        for seat_idx in clockwise_from_dealer(table, list(revealed)):
            seat = table.seat(seat_idx)
            seat.hand_revealed = True
            events.append(
                {
                    "ev": "SHOWDOWN",
                    "seat": seat_idx,
                    "hand": cards_to_labels(seat.hand),
                    "board": cards_to_labels(table.community_cards),
                    "rank": values[seat_idx].category_name,
                    "description": values[seat_idx].description,
                }
            )
        for pot in pots:
            for seat_idx, amount in pot.shares.items():
                events.append({"ev": "POT_AWARD", "seat": seat_idx, "amount": amount})
        events.extend(self._conclude(now, pots, won, values, uncontested=False))
        return events

    def _finish_uncontested(self, now: int) -> Events:
        table = self.table
        winner = table.in_hand_seats()[0]
        table.phase = Phase.SHOWDOWN
        table.active_seat = None
        table.turn_deadline = None
        pots = build_side_pots(table)
        won = award_pots(table, pots, lambda eligible: [winner.seat] if winner.seat in eligible else eligible)
        table.show_bluff_deadline = now + SHOW_BLUFF_WINDOW_MS
        table.show_bluff_seat = winner.seat
        events: Events = [
            {"ev": "POT_AWARD", "seat": seat_idx, "amount": amount, "uncontested": True}
            for seat_idx, amount in won.items()
        ]
        events.extend(self._conclude(now, pots, won, {}, uncontested=True))
        return events

    def _conclude(
        self,
        now: int,
        pots: List[SidePot],
        won: Dict[int, int],
        values: Dict[int, HandValue],
        *,
        uncontested: bool,
    ) -> Events:
        table = self.table
        contributions = {seat.seat: seat.total_contribution for seat in table.occupied() if seat.total_contribution}
        busted = [
            {"seat": seat.seat, "uid": seat.uid, "contribution": contributions.get(seat.seat, 0)}
            for seat in table.occupied()
            if seat.chips == 0 and seat.seat in contributions
        ]
        for entry in busted:
            table.seat(entry["seat"]).status = SeatStatus.ELIMINATED
        clear_ledger(table, pots)
        table.pre_actions = {}

        winners = [
            {
                "seat": seat_idx,
                "uid": table.seat(seat_idx).uid,
                "amount": amount,
                "description": values[seat_idx].description if seat_idx in values else None,
            }
            for seat_idx, amount in sorted(won.items())
        ]
        result = {
            "handNumber": table.hand_number,
            "winners": winners,
            "pot": sum(pot.amount for pot in pots),
            "uncontested": uncontested,
            "allInShowdown": table.all_in_showdown,
            "endedAt": now,
            "busted": busted,
        }
        table.last_result = {key: value for key, value in result.items() if key != "busted"}
        table.record_history(dict(table.last_result))
        for winner in winners:
            table.log_activity(f"{table.seat(winner['seat']).display_name} wins {winner['amount']}", now)

        events: Events = [{"ev": "HAND_END", **table.last_result}]
        for entry in busted:
            events.append({"ev": "ELIMINATED", "seat": entry["seat"]})
        if self.on_hand_end is not None:
            events.extend(self.on_hand_end(table, result, now))
        return events

    # Showdown follow-up ----------------------------------------------

    def reveal_hand(self, seat_idx: int, now: int, show: bool = True) -> Events:
        table = self.table
        if table.phase != Phase.SHOWDOWN:
            raise IllegalAction("Hands can only be shown at showdown")
        seat = table.seat(seat_idx)
        if not seat.hand or seat.status in (SeatStatus.FOLDED, SeatStatus.SITTING_OUT):
            raise IllegalAction("Seat is not a contender in this hand")
        if table.show_bluff_seat == seat_idx:
            table.show_bluff_deadline = None
            table.show_bluff_seat = None
        if not show:
            return [{"ev": "MUCK", "seat": seat_idx}]
        seat.hand_revealed = True
        table.log_activity(f"{seat.display_name} shows {' '.join(cards_to_labels(seat.hand))}", now)
        return [{"ev": "REVEAL", "seat": seat_idx, "hand": cards_to_labels(seat.hand)}]

    def start_next_hand(self, now: int) -> Events:
        table = self.table
        if table.phase != Phase.SHOWDOWN:
            raise IllegalAction("Hand is not over")
        if table.show_bluff_deadline is not None and now < table.show_bluff_deadline:
            raise IllegalAction("Show-bluff window is still open")
        self._reset_between_hands()
        events: Events = [{"ev": "TABLE_IDLE", "handNumber": table.hand_number}]
        tournament = table.tournament
        if tournament is not None and tournament.state == TournamentState.RUNNING and self.can_deal():
            events.extend(self.deal(now))
        return events

    def _reset_between_hands(self) -> None:
        table = self.table
        for seat in table.occupied():
            seat.reset_for_hand()
            if seat.status == SeatStatus.ELIMINATED:
                seat.pending_sit_out = False
                continue
            if seat.pending_sit_out:
                seat.status = SeatStatus.SITTING_OUT
                seat.pending_sit_out = False
            elif seat.joined_mid_hand:
                seat.status = SeatStatus.ACTIVE
                seat.joined_mid_hand = False
            elif seat.status != SeatStatus.SITTING_OUT:
                seat.status = SeatStatus.ACTIVE
        table.community_cards = []
        table.side_pots = None
        table.cut_cards = {}
        table.all_in_showdown = False
        table.show_bluff_deadline = None
        table.show_bluff_seat = None
        table.current_bet = 0
        table.last_raise_size = 0
        table.raises_this_round = 0
        table.deck = new_shuffled_deck(self.shuffler, table.table_id, table.hand_number + 1)
        table.phase = Phase.IDLE

    # Views -----------------------------------------------------------

    def turn_options(self, seat_idx: int) -> Dict[str, object]:
        """Everything a client (or bot) needs to decide the current turn."""
        table = self.table
        if table.active_seat != seat_idx:
            return {"seat": seat_idx, "yourTurn": False}
        if table.phase.is_draw:
            return {"seat": seat_idx, "yourTurn": True, "draw": True, "maxDiscards": MAX_DISCARDS}
        window = self.legal_actions(seat_idx)
        return {"seat": seat_idx, "yourTurn": True, "draw": False, **window.to_dict()}
