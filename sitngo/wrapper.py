from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from engine.errors import IllegalAction, TournamentClosed
from engine.game import Events, GameEngine
from engine.models import (
    Seat,
    Table,
    TableMode,
    TournamentInfo,
    TournamentSeatState,
    TournamentState,
)
from engine.pots import clockwise_from_dealer

from .blinds import arm_blind_timer, build_schedule, current_blinds, increase_blind_level
from .payouts import distribute, prize_structure, validate_custom

LOGGER = logging.getLogger("kcpoker.sitngo")


def open_tournament(table: Table) -> TournamentInfo:
    """Attach a fresh REGISTERING tournament block to an sng table."""
    config = table.config
    if config.custom_payouts is not None:
        validate_custom(config.custom_payouts)
    tournament = TournamentInfo(
        buy_in=config.buy_in,
        seat_states={idx: TournamentSeatState.OPEN for idx in range(len(table.seats))},
        blind_schedule=build_schedule(config.small_blind, config.big_blind),
    )
    table.tournament = tournament
    return tournament


class TournamentDirector:
    """Sit-&-Go rules layered over a GameEngine.

    The director hooks itself into the engine as the hand-end observer and
    as the source of the current blind level.
    """

    def __init__(self, engine: GameEngine) -> None:
        table = engine.table
        if table.config.mode != TableMode.SNG or table.tournament is None:
            raise IllegalAction("Table is not a Sit & Go")
        self.engine = engine
        self.table = table
        self.tournament = table.tournament
        engine.on_hand_end = self.on_hand_end
        engine.blind_source = self.blinds

    # Registration ----------------------------------------------------

    def register(
        self,
        uid: str,
        display_name: str,
        now: int,
        *,
        is_bot: bool = False,
        bot_difficulty: Optional[str] = None,
    ) -> Tuple[Seat, Events]:
        """Seat a registrant. Bots are staked by the house, so every seat adds a buy-in to the pool."""
        tournament = self.tournament
        if tournament.state != TournamentState.REGISTERING:
            raise TournamentClosed("Registration is closed")
        if self.table.seat_of(uid) is not None:
            raise IllegalAction("Already registered")
        seat = self.engine.join(
            uid,
            display_name,
            self.table.config.starting_chips,
            is_bot=is_bot,
            bot_difficulty=bot_difficulty,
        )
        tournament.prize_pool += tournament.buy_in
        tournament.registrations.append(
            {"uid": uid, "displayName": display_name, "seat": seat.seat, "isBot": is_bot, "at": now}
        )
        self.table.railbirds = [entry for entry in self.table.railbirds if entry.get("uid") != uid]
        LOGGER.info("%s registered for %s in seat %s", uid, self.table.table_id, seat.seat)
        events: Events = [{"ev": "REGISTERED", "seat": seat.seat, "uid": uid}]
        if len(self.table.occupied()) == len(self.table.seats):
            events.extend(self.start(now))
        return seat, events

    def register_bot(self, uid: str, display_name: str, difficulty: str, now: int) -> Tuple[Seat, Events]:
        return self.register(uid, display_name, now, is_bot=True, bot_difficulty=difficulty)

    def unregister(self, uid: str) -> None:
        tournament = self.tournament
        if tournament.state != TournamentState.REGISTERING:
            raise TournamentClosed("Tournament already started")
        entry = next((reg for reg in tournament.registrations if reg["uid"] == uid), None)
        if entry is None:
            raise IllegalAction("Not registered")
        tournament.registrations.remove(entry)
        tournament.prize_pool -= tournament.buy_in

    def start(self, now: int) -> Events:
        tournament = self.tournament
        if tournament.state != TournamentState.REGISTERING:
            raise IllegalAction("Tournament already started")
        players = len(self.table.occupied())
        if players < 2:
            raise IllegalAction("Need at least two registered players")
        config = self.table.config
        tournament.prize_structure = prize_structure(config.payout_type, players, config.custom_payouts)
        tournament.state = TournamentState.RUNNING
        tournament.started_at = now
        for idx, seat in enumerate(self.table.seats):
            tournament.seat_states[idx] = TournamentSeatState.ACTIVE if seat else TournamentSeatState.OPEN
        arm_blind_timer(tournament, now, config.blind_level_duration_ms)
        self.table.log_activity(f"Tournament started with {players} players", now)
        LOGGER.info("Tournament %s started: %s players, pool %s", self.table.table_id, players, tournament.prize_pool)
        events: Events = [{"ev": "TOURNAMENT_STARTED", "players": players, "prize_pool": tournament.prize_pool}]
        events.extend(self.engine.deal(now))
        return events

    # Blinds ----------------------------------------------------------

    def blinds(self, table: Table) -> Tuple[int, int]:
        if self.tournament.state == TournamentState.RUNNING and self.tournament.blind_schedule:
            return current_blinds(self.tournament)
        return table.config.small_blind, table.config.big_blind

    def increase_blind_level(self, now: int) -> Events:
        tournament = self.tournament
        if not increase_blind_level(tournament, now, self.table.config.blind_level_duration_ms):
            return []
        small, big = current_blinds(tournament)
        self.table.log_activity(f"Blinds up: {small}/{big}", now)
        return [{"ev": "BLIND_LEVEL", "level": tournament.blind_timer.current_level, "sb": small, "bb": big}]

    # Hand-end observer -----------------------------------------------

    def active_seats(self) -> List[int]:
        return sorted(
            seat for seat, state in self.tournament.seat_states.items() if state == TournamentSeatState.ACTIVE
        )

    def on_hand_end(self, table: Table, result: Dict[str, Any], now: int) -> Events:
        tournament = self.tournament
        if tournament.state != TournamentState.RUNNING:
            return []
        busted = result.get("busted") or []
        if not busted:
            return []
        # Smaller contribution finishes lower; equal stacks go clockwise from the button.
        clockwise = clockwise_from_dealer(table, [entry["seat"] for entry in busted])
        ordered = sorted(busted, key=lambda entry: (entry["contribution"], clockwise.index(entry["seat"])))

        events: Events = []
        remaining = len(self.active_seats())
        for entry in ordered:
            tournament.seat_states[entry["seat"]] = TournamentSeatState.ELIMINATED
            record = {
                "uid": entry["uid"],
                "seat": entry["seat"],
                "position": remaining,
                "handNumber": result.get("handNumber"),
                "at": now,
            }
            tournament.elimination_order.append(record)
            table.log_activity(f"{table.seat(entry['seat']).display_name} finishes in position {remaining}", now)
            events.append({"ev": "TOURNAMENT_ELIMINATION", **record})
            remaining -= 1

        if len(self.active_seats()) <= 1:
            events.extend(self.complete(now))
        return events

    def complete(self, now: int) -> Events:
        tournament = self.tournament
        survivors = self.active_seats()
        finishers: List[Dict[str, object]] = []
        if survivors:
            winner = self.table.seat(survivors[0])
            finishers.append({"uid": winner.uid, "seat": winner.seat})
        for record in reversed(tournament.elimination_order):
            finishers.append({"uid": record["uid"], "seat": record["seat"]})

        tournament.payouts = distribute(tournament.prize_pool, tournament.prize_structure, finishers)
        tournament.state = TournamentState.COMPLETED
        tournament.completed_at = now
        tournament.blind_timer.next_level_at = None
        if finishers:
            self.table.log_activity(f"Tournament won by {finishers[0]['uid']}", now)
        LOGGER.info("Tournament %s completed: %s", self.table.table_id, tournament.payouts)
        return [{"ev": "TOURNAMENT_COMPLETE", "payouts": [dict(p) for p in tournament.payouts]}]

