from __future__ import annotations

import hashlib
import json
import logging
import secrets
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from engine.cards import Shuffler
from engine.errors import (
    Conflict,
    HandAborted,
    IllegalAction,
    InsufficientChips,
    InvalidInput,
    NotAuthorized,
    PokerError,
    TournamentClosed,
)
from engine.game import Events, GameEngine
from engine.models import (
    ActionType,
    Phase,
    PreActionType,
    Seat,
    Table,
    TableConfig,
    TableMode,
    TournamentState,
)
from engine.timestamps import to_millis
from sitngo.wrapper import TournamentDirector, open_tournament

from .projection import project_table
from .store import InMemoryStore, VersionMismatch

LOGGER = logging.getLogger("kcpoker.service")

MAX_ATTEMPTS = 5
BOT_DIFFICULTIES = ("easy", "medium", "hard")


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def _digest(*parts: object) -> str:
    blob = json.dumps(parts, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()


@dataclass
class IntentResult:
    state: Dict[str, Any]
    version: int
    events: Events = field(default_factory=list)
    error: Optional[PokerError] = None
    committed: bool = True

    def to_payload(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"state": self.state, "version": self.version, "events": self.events}
        if self.error is not None:
            payload["error"] = self.error.to_payload()
        return payload


@dataclass
class IntentContext:
    """Everything one handler needs; mutations go to `table` and `wallet_deltas`."""

    table: Table
    engine: GameEngine
    director: Optional[TournamentDirector]
    uid: str
    payload: Dict[str, Any]
    now: int
    wallet_deltas: Dict[str, int] = field(default_factory=dict)
    noop: bool = False

    def move_wallet(self, uid: str, amount: int) -> None:
        self.wallet_deltas[uid] = self.wallet_deltas.get(uid, 0) + amount

    @property
    def seat(self) -> Seat:
        seat = self.table.seat_of(self.uid)
        if seat is None:
            raise NotAuthorized("You are not seated at this table")
        return seat


class TableService:
    """Runs intents against the store: read, copy, compute, compare-and-set."""

    def __init__(
        self,
        store: InMemoryStore,
        secret_factory: Callable[[], str] = lambda: secrets.token_hex(16),
    ) -> None:
        self.store = store
        self.secret_factory = secret_factory
        self.handlers: Dict[str, Callable[[IntentContext], Events]] = {
            "deal": self._deal,
            "resolveCutForDealer": self._resolve_cut,
            "betAction": self._bet_action,
            "submitDraw": self._submit_draw,
            "revealHand": self._reveal_hand,
            "startNextHand": self._start_next_hand,
            "timeout": self._timeout,
            "setPreAction": self._set_pre_action,
            "clearPreAction": self._clear_pre_action,
            "requestSitOut": self._request_sit_out,
            "cancelSitOut": self._cancel_sit_out,
            "joinAsPlayer": self._join_as_player,
            "kickBot": self._kick_bot,
            "addBot": self._add_bot,
            "leaveTable": self._leave_table,
            "increaseBlindLevel": self._increase_blind_level,
            "registerForTournament": self._register,
            "startTournament": self._start_tournament,
            "sendChat": self._send_chat,
        }

    # Public API ------------------------------------------------------

    def create_table(self, uid: str, payload: Optional[Mapping[str, Any]] = None) -> IntentResult:
        payload = dict(payload or {})
        if not uid:
            raise NotAuthorized("Sign in to create a table")
        raw_config = dict(payload.get("config") or {})
        password = payload.get("password")
        raw_config.pop("passwordHash", None)
        config = TableConfig.from_dict(raw_config)
        if password:
            config.password_hash = hash_password(str(password))
        config.validate()

        table_id = str(payload.get("tableId") or uuid.uuid4().hex[:8])
        now = self.store.server_time()
        table = Table(table_id=table_id, config=config, creator_uid=uid, created_at=now)
        if config.mode == TableMode.SNG:
            open_tournament(table)
        table.log_activity(f"Table created by {uid}", now)
        version = self.store.create(table_id, table.to_dict(), self.secret_factory())
        LOGGER.info("Table %s created by %s (%s, %s)", table_id, uid, config.variant.value, config.mode.value)
        return IntentResult(state=project_table(table.to_dict(), uid), version=version)

    def view(self, table_id: str, uid: Optional[str]) -> Tuple[Dict[str, Any], int]:
        document, version = self.store.read(table_id)
        return project_table(document, uid), version

    def turn_options(self, table_id: str, uid: str) -> Dict[str, object]:
        document, _ = self.store.read(table_id)
        table = Table.from_dict(document)
        seat = table.seat_of(uid)
        if seat is None:
            raise NotAuthorized("You are not seated at this table")
        engine, _ = self._engine_for(table)
        return engine.turn_options(seat.seat)

    def submit(
        self,
        table_id: str,
        uid: str,
        intent: str,
        payload: Optional[Mapping[str, Any]] = None,
        version: Optional[int] = None,
    ) -> IntentResult:
        handler = self.handlers.get(intent)
        if handler is None:
            raise InvalidInput(f"Unknown intent {intent!r}")
        if payload is not None and not isinstance(payload, Mapping):
            raise InvalidInput("Payload must be an object")
        payload = dict(payload or {})
        request = _digest(intent, payload)

        for attempt in range(1, MAX_ATTEMPTS + 1):
            document, current = self.store.read(table_id)
            recent = (document.get("recentIntents") or {}).get(uid)
            duplicate = (
                version is not None
                and recent is not None
                and recent.get("request") == request
                and recent.get("baseVersion") == version
            )
            if duplicate:
                LOGGER.debug("Duplicate %s from %s on %s ignored", intent, uid, table_id)
                return IntentResult(state=project_table(document, uid), version=current, committed=False)

            table = Table.from_dict(document)
            engine, director = self._engine_for(table)
            ctx = IntentContext(
                table=table,
                engine=engine,
                director=director,
                uid=uid,
                payload=payload,
                now=self.store.server_time(),
            )
            tournament_state = table.tournament.state if table.tournament else None
            error: Optional[PokerError] = None
            try:
                events = handler(ctx)
            except HandAborted as exc:
                # The rollback itself is a state change every client must see.
                events, error = list(exc.events), exc
            if ctx.noop:
                return IntentResult(state=project_table(document, uid), version=current, committed=False)

            if table.tournament and tournament_state != TournamentState.COMPLETED:
                if table.tournament.state == TournamentState.COMPLETED:
                    self._credit_payouts(ctx)

            # The base version pins the seat, hand and phase the request was made against.
            table.recent_intents[uid] = {"request": request, "baseVersion": version}
            new_document = table.to_dict()
            try:
                new_version = self.store.commit(table_id, new_document, current, ctx.wallet_deltas)
            except VersionMismatch as exc:
                LOGGER.debug("CAS miss on %s (attempt %s): %s", table_id, attempt, exc)
                continue
            LOGGER.info("%s %s by %s -> v%s", table_id, intent, uid, new_version)
            return IntentResult(
                state=project_table(new_document, uid),
                version=new_version,
                events=events,
                error=error,
            )

        LOGGER.warning("Gave up on %s %s after %s attempts", table_id, intent, MAX_ATTEMPTS)
        raise Conflict(f"Table {table_id} is busy, please retry")

    # Plumbing --------------------------------------------------------

    def _engine_for(self, table: Table) -> Tuple[GameEngine, Optional[TournamentDirector]]:
        engine = GameEngine(table, Shuffler(self.store.secret(table.table_id)))
        director = TournamentDirector(engine) if table.tournament is not None else None
        return engine, director

    def _credit_payouts(self, ctx: IntentContext) -> None:
        assert ctx.table.tournament is not None
        # Bot finishers are paid into their own wallets like anyone else.
        for payout in ctx.table.tournament.payouts:
            if payout["amount"]:
                ctx.move_wallet(str(payout["uid"]), int(payout["amount"]))

    def _require_member(self, ctx: IntentContext) -> None:
        if ctx.uid != ctx.table.creator_uid and ctx.table.seat_of(ctx.uid) is None:
            raise NotAuthorized("Only seated players can do that")

    def _require_creator(self, ctx: IntentContext) -> None:
        if ctx.uid != ctx.table.creator_uid:
            raise NotAuthorized("Only the table creator can do that")

    def _check_password(self, ctx: IntentContext) -> None:
        expected = ctx.table.config.password_hash
        if not expected:
            return
        supplied = ctx.payload.get("password")
        if not supplied or hash_password(str(supplied)) != expected:
            raise NotAuthorized("Wrong table password")

    @staticmethod
    def _int_field(payload: Mapping[str, Any], name: str, default: Optional[int] = None) -> Optional[int]:
        value = payload.get(name, default)
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidInput(f"{name} must be an integer")
        return value

    def _display_name(self, ctx: IntentContext) -> str:
        name = ctx.payload.get("displayName")
        if name is not None and not isinstance(name, str):
            raise InvalidInput("displayName must be a string")
        return (name or ctx.uid).strip()[:32] or ctx.uid

    # Hand flow -------------------------------------------------------

    def _deal(self, ctx: IntentContext) -> Events:
        self._require_member(ctx)
        return ctx.engine.deal(ctx.now)

    def _resolve_cut(self, ctx: IntentContext) -> Events:
        self._require_member(ctx)
        return ctx.engine.resolve_cut_for_dealer(ctx.now)

    def _bet_action(self, ctx: IntentContext) -> Events:
        raw = ctx.payload.get("action")
        try:
            action = ActionType(raw)
        except ValueError as exc:
            raise InvalidInput(f"Unknown action {raw!r}") from exc
        amount = ctx.payload.get("amount")
        return ctx.engine.bet_action(ctx.seat.seat, action, amount, ctx.now)

    def _submit_draw(self, ctx: IntentContext) -> Events:
        indices = ctx.payload.get("indices", [])
        return ctx.engine.submit_draw(ctx.seat.seat, indices, ctx.now)

    def _reveal_hand(self, ctx: IntentContext) -> Events:
        show = ctx.payload.get("show", True)
        if not isinstance(show, bool):
            raise InvalidInput("show must be true or false")
        return ctx.engine.reveal_hand(ctx.seat.seat, ctx.now, show=show)

    def _start_next_hand(self, ctx: IntentContext) -> Events:
        self._require_member(ctx)
        return ctx.engine.start_next_hand(ctx.now)

    def _timeout(self, ctx: IntentContext) -> Events:
        seat = ctx.table.seat_of(ctx.uid)
        expected = {key: ctx.payload[key] for key in ("seat", "handNumber", "phase") if key in ctx.payload}
        events = ctx.engine.timeout(ctx.now, seat.seat if seat else None, expected)
        if not events:
            ctx.noop = True
        return events

    def _set_pre_action(self, ctx: IntentContext) -> Events:
        raw = ctx.payload.get("type")
        try:
            action_type = PreActionType(raw)
        except ValueError as exc:
            raise InvalidInput(f"Unknown pre-action {raw!r}") from exc
        amount = self._int_field(ctx.payload, "amount")
        return ctx.engine.set_pre_action(ctx.seat.seat, action_type, amount)

    def _clear_pre_action(self, ctx: IntentContext) -> Events:
        return ctx.engine.clear_pre_action(ctx.seat.seat)

    def _request_sit_out(self, ctx: IntentContext) -> Events:
        return ctx.engine.request_sit_out(ctx.seat.seat)

    def _cancel_sit_out(self, ctx: IntentContext) -> Events:
        return ctx.engine.cancel_sit_out(ctx.seat.seat)

    def _send_chat(self, ctx: IntentContext) -> Events:
        text = ctx.payload.get("text")
        if not isinstance(text, str) or not text.strip():
            raise InvalidInput("Chat message cannot be empty")
        seat = ctx.table.seat_of(ctx.uid)
        sender = seat.display_name if seat else self._display_name(ctx)
        ctx.table.append_chat(
            {"type": "chat", "uid": ctx.uid, "sender": sender, "text": text.strip()[:280], "timestamp": ctx.now}
        )
        return [{"ev": "CHAT", "uid": ctx.uid}]

    # Seating and money -----------------------------------------------

    def _join_as_player(self, ctx: IntentContext) -> Events:
        if ctx.director is not None:
            if ctx.director.tournament.state != TournamentState.REGISTERING:
                return self._add_railbird(ctx)
            return self._register(ctx)
        self._check_password(ctx)
        config = ctx.table.config
        buy_in = self._int_field(ctx.payload, "buyIn", config.buy_in)
        assert buy_in is not None
        if buy_in <= 0:
            raise InvalidInput("Buy-in must be positive")
        if self.store.balance(ctx.uid) < buy_in:
            raise InsufficientChips(f"Buy-in of {buy_in} exceeds your balance")
        seat = ctx.engine.join(ctx.uid, self._display_name(ctx), buy_in)
        ctx.move_wallet(ctx.uid, -buy_in)
        return [{"ev": "JOINED", "seat": seat.seat, "uid": ctx.uid, "chips": seat.chips}]

    def _add_railbird(self, ctx: IntentContext) -> Events:
        if ctx.table.seat_of(ctx.uid) is not None:
            raise IllegalAction("Already seated")
        if not any(entry.get("uid") == ctx.uid for entry in ctx.table.railbirds):
            ctx.table.railbirds.append({"uid": ctx.uid, "displayName": self._display_name(ctx), "since": ctx.now})
        return [{"ev": "RAILBIRD", "uid": ctx.uid}]

    def _register(self, ctx: IntentContext) -> Events:
        director = ctx.director
        if director is None:
            raise IllegalAction("Table is not a Sit & Go")
        if director.tournament.state != TournamentState.REGISTERING:
            raise TournamentClosed("Registration is closed")
        self._check_password(ctx)
        buy_in = director.tournament.buy_in
        offered = self._int_field(ctx.payload, "buyIn", buy_in)
        if offered != buy_in:
            raise InvalidInput(f"Buy-in for this tournament is {buy_in}")
        if self.store.balance(ctx.uid) < buy_in:
            raise InsufficientChips(f"Buy-in of {buy_in} exceeds your balance")
        ctx.move_wallet(ctx.uid, -buy_in)
        _, events = director.register(ctx.uid, self._display_name(ctx), ctx.now)
        return events

    def _start_tournament(self, ctx: IntentContext) -> Events:
        self._require_creator(ctx)
        if ctx.director is None:
            raise IllegalAction("Table is not a Sit & Go")
        return ctx.director.start(ctx.now)

    def _increase_blind_level(self, ctx: IntentContext) -> Events:
        if ctx.director is None:
            raise IllegalAction("Table is not a Sit & Go")
        events = ctx.director.increase_blind_level(ctx.now)
        if not events:
            ctx.noop = True
        return events

    def _add_bot(self, ctx: IntentContext) -> Events:
        self._require_creator(ctx)
        table = ctx.table
        difficulty = ctx.payload.get("difficulty", "medium")
        if difficulty not in BOT_DIFFICULTIES:
            raise InvalidInput(f"Unknown bot difficulty {difficulty!r}")
        number = sum(1 for seat in table.occupied() if seat.is_bot) + 1
        uid = f"bot-{uuid.uuid4().hex[:8]}"
        name = f"Bot {number}"
        if ctx.director is not None:
            _, events = ctx.director.register_bot(uid, name, difficulty, ctx.now)
            # The house stakes the buy-in; the bot wallet opens empty and collects any prize.
            ctx.move_wallet(uid, 0)
            return events
        seat = ctx.engine.join(uid, name, table.config.buy_in, is_bot=True, bot_difficulty=difficulty)
        return [{"ev": "JOINED", "seat": seat.seat, "uid": uid, "chips": seat.chips, "bot": True}]

    def _kick_bot(self, ctx: IntentContext) -> Events:
        self._require_creator(ctx)
        seat_idx = self._int_field(ctx.payload, "seat")
        if seat_idx is None:
            raise InvalidInput("seat is required")
        if ctx.director is not None and ctx.director.tournament.state != TournamentState.REGISTERING:
            raise IllegalAction("Bots cannot be removed once the tournament is running")
        seat = ctx.engine.kick(seat_idx)
        if ctx.director is not None:
            ctx.director.unregister(seat.uid)
        return [{"ev": "KICKED", "seat": seat_idx, "uid": seat.uid}]

    def _leave_table(self, ctx: IntentContext) -> Events:
        seat = ctx.seat
        if ctx.director is not None:
            if ctx.director.tournament.state != TournamentState.REGISTERING:
                raise IllegalAction("Cannot leave a running tournament")
            ctx.engine.leave(seat.seat)
            ctx.director.unregister(seat.uid)
            ctx.move_wallet(seat.uid, ctx.director.tournament.buy_in)
            return [{"ev": "LEFT", "seat": seat.seat, "uid": seat.uid, "refund": ctx.director.tournament.buy_in}]
        ctx.engine.leave(seat.seat)
        if seat.chips:
            ctx.move_wallet(seat.uid, seat.chips)
        return [{"ev": "LEFT", "seat": seat.seat, "uid": seat.uid, "cashOut": seat.chips}]

    # Background duties -----------------------------------------------

    def tick(self, table_id: str, actor: str = "host") -> List[IntentResult]:
        """Fire whatever is due on a table: blind level, overdue turn, cut resolution."""
        document, _ = self.store.read(table_id)
        now = self.store.server_time()
        results: List[IntentResult] = []
        tournament = document.get("tournament") or {}
        next_level_at = to_millis((tournament.get("blindTimer") or {}).get("nextLevelAt"))
        if tournament.get("state") == TournamentState.RUNNING.value and next_level_at is not None and now >= next_level_at:
            results.append(self._quiet_submit(table_id, actor, "increaseBlindLevel"))
        phase = document.get("phase")
        if phase == Phase.CUT_FOR_DEALER.value:
            results.append(self._quiet_submit(table_id, document.get("creatorUid") or actor, "resolveCutForDealer"))
        deadline = to_millis(document.get("turnDeadline"))
        if deadline is not None and now >= deadline:
            results.append(self._quiet_submit(table_id, actor, "timeout"))
        return [result for result in results if result is not None and result.committed]

    def _quiet_submit(self, table_id: str, uid: str, intent: str) -> Optional[IntentResult]:
        try:
            return self.submit(table_id, uid, intent)
        except PokerError as exc:
            LOGGER.debug("Background %s on %s skipped: %s", intent, table_id, exc.message)
            return None
