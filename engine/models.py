from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from .cards import Card, DeckState, cards_to_dicts, parse_card, parse_cards
from .errors import InvalidInput
from .timestamps import to_millis

MAX_SEATS = 6
HISTORY_LIMIT = 20
CHAT_LOG_LIMIT = 100
SHOW_BLUFF_WINDOW_MS = 5_000
GRACE_PERIOD_MS = 2_000
BLIND_LEVEL_DURATION_MS = 5 * 60 * 1000


class Variant(str, Enum):
    LOWBALL_27 = "lowball_27"
    SINGLE_DRAW_27 = "single_draw_27"
    HOLDEM = "holdem"


class BettingType(str, Enum):
    NO_LIMIT = "no_limit"
    POT_LIMIT = "pot_limit"
    FIXED_LIMIT = "fixed_limit"


class TableMode(str, Enum):
    CASH = "cash"
    SNG = "sng"


class SeatStatus(str, Enum):
    ACTIVE = "active"
    FOLDED = "folded"
    ALL_IN = "all-in"
    SITTING_OUT = "sitting_out"
    ELIMINATED = "eliminated"


class Phase(str, Enum):
    IDLE = "IDLE"
    CUT_FOR_DEALER = "CUT_FOR_DEALER"
    DEAL = "DEAL"
    BETTING_1 = "BETTING_1"
    DRAW_1 = "DRAW_1"
    BETTING_2 = "BETTING_2"
    DRAW_2 = "DRAW_2"
    BETTING_3 = "BETTING_3"
    DRAW_3 = "DRAW_3"
    BETTING_4 = "BETTING_4"
    BETTING_PREFLOP = "BETTING_PREFLOP"
    FLOP = "FLOP"
    BETTING_FLOP = "BETTING_FLOP"
    TURN = "TURN"
    BETTING_TURN = "BETTING_TURN"
    RIVER = "RIVER"
    BETTING_RIVER = "BETTING_RIVER"
    SHOWDOWN = "SHOWDOWN"

    @property
    def is_betting(self) -> bool:
        return self.value.startswith("BETTING_")

    @property
    def is_draw(self) -> bool:
        return self.value.startswith("DRAW_")


class ActionType(str, Enum):
    FOLD = "FOLD"
    CHECK = "CHECK"
    CALL = "CALL"
    BET = "BET"
    RAISE = "RAISE"
    ALL_IN = "ALL_IN"


class PreActionType(str, Enum):
    CHECK = "CHECK"
    CHECK_FOLD = "CHECK_FOLD"
    CALL = "CALL"
    CALL_ANY = "CALL_ANY"
    FOLD = "FOLD"


class PayoutType(str, Enum):
    WINNER_TAKE_ALL = "winner_take_all"
    STANDARD = "standard"
    CUSTOM = "custom"


class TournamentState(str, Enum):
    REGISTERING = "REGISTERING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"


class TournamentSeatState(str, Enum):
    OPEN = "OPEN"
    ACTIVE = "ACTIVE"
    ELIMINATED = "ELIMINATED"


def _enum(enum_cls, raw: Any, field_name: str):
    try:
        return enum_cls(raw)
    except ValueError as exc:
        raise InvalidInput(f"Invalid {field_name}: {raw!r}") from exc


def _int_keys(raw: Optional[Mapping[str, Any]]) -> Dict[int, Any]:
    return {int(key): value for key, value in (raw or {}).items()}


@dataclass
class TableConfig:
    variant: Variant = Variant.LOWBALL_27
    betting_type: BettingType = BettingType.NO_LIMIT
    mode: TableMode = TableMode.CASH
    max_players: int = MAX_SEATS
    turn_time_ms: int = 45_000
    small_blind: int = 10
    big_blind: int = 20
    ante: int = 0
    buy_in: int = 1_000
    starting_chips: int = 1_000
    raise_cap: int = 4
    cut_for_dealer: Optional[bool] = None
    payout_type: PayoutType = PayoutType.STANDARD
    custom_payouts: Optional[List[float]] = None
    blind_level_duration_ms: int = BLIND_LEVEL_DURATION_MS
    password_hash: Optional[str] = None

    @property
    def uses_cut(self) -> bool:
        if self.cut_for_dealer is None:
            return self.mode == TableMode.SNG
        return self.cut_for_dealer

    def validate(self) -> None:
        if not 2 <= self.max_players <= MAX_SEATS:
            raise InvalidInput(f"maxPlayers must be between 2 and {MAX_SEATS}")
        if self.small_blind <= 0 or self.big_blind < self.small_blind:
            raise InvalidInput("Blinds must be positive with big blind >= small blind")
        if self.ante < 0:
            raise InvalidInput("Ante cannot be negative")
        if self.turn_time_ms <= 0:
            raise InvalidInput("turnTimeMs must be positive")
        if self.buy_in <= 0 or self.starting_chips <= 0:
            raise InvalidInput("Buy-in and starting chips must be positive")
        if self.raise_cap < 1:
            raise InvalidInput("raiseCap must be at least 1")

    def to_dict(self) -> Dict[str, object]:
        return {
            "variant": self.variant.value,
            "bettingType": self.betting_type.value,
            "mode": self.mode.value,
            "maxPlayers": self.max_players,
            "turnTimeMs": self.turn_time_ms,
            "smallBlind": self.small_blind,
            "bigBlind": self.big_blind,
            "ante": self.ante,
            "buyIn": self.buy_in,
            "startingChips": self.starting_chips,
            "raiseCap": self.raise_cap,
            "cutForDealer": self.cut_for_dealer,
            "payoutType": self.payout_type.value,
            "customPayouts": list(self.custom_payouts) if self.custom_payouts is not None else None,
            "blindLevelDurationMs": self.blind_level_duration_ms,
            "passwordHash": self.password_hash,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TableConfig":
        defaults = cls()
        try:
            return cls(
                variant=_enum(Variant, data.get("variant", defaults.variant.value), "variant"),
                betting_type=_enum(BettingType, data.get("bettingType", defaults.betting_type.value), "bettingType"),
                mode=_enum(TableMode, data.get("mode", defaults.mode.value), "mode"),
                max_players=int(data.get("maxPlayers", defaults.max_players)),
                turn_time_ms=int(data.get("turnTimeMs", defaults.turn_time_ms)),
                small_blind=int(data.get("smallBlind", defaults.small_blind)),
                big_blind=int(data.get("bigBlind", defaults.big_blind)),
                ante=int(data.get("ante", defaults.ante)),
                buy_in=int(data.get("buyIn", defaults.buy_in)),
                starting_chips=int(data.get("startingChips", defaults.starting_chips)),
                raise_cap=int(data.get("raiseCap", defaults.raise_cap)),
                cut_for_dealer=data.get("cutForDealer"),
                payout_type=_enum(PayoutType, data.get("payoutType", defaults.payout_type.value), "payoutType"),
                custom_payouts=(
                    [float(x) for x in data["customPayouts"]] if data.get("customPayouts") is not None else None
                ),
                blind_level_duration_ms=int(data.get("blindLevelDurationMs", defaults.blind_level_duration_ms)),
                password_hash=data.get("passwordHash"),
            )
        except (TypeError, ValueError) as exc:
            raise InvalidInput(f"Malformed table config: {exc}") from exc


@dataclass
class Seat:
    seat: int
    uid: str
    display_name: str
    chips: int
    is_bot: bool = False
    bot_difficulty: Optional[str] = None
    status: SeatStatus = SeatStatus.ACTIVE
    hand: List[Card] = field(default_factory=list)
    hand_revealed: bool = False
    current_round_bet: int = 0
    total_contribution: int = 0
    has_acted: bool = False
    last_action: Optional[str] = None
    pending_sit_out: bool = False
    joined_mid_hand: bool = False

    @property
    def in_hand(self) -> bool:
        """Still contending for the pot (active or all-in)."""
        return self.status in (SeatStatus.ACTIVE, SeatStatus.ALL_IN)

    @property
    def can_act(self) -> bool:
        return self.status == SeatStatus.ACTIVE and self.chips > 0

    def reset_for_hand(self) -> None:
        self.hand = []
        self.hand_revealed = False
        self.current_round_bet = 0
        self.total_contribution = 0
        self.has_acted = False
        self.last_action = None

    def reset_for_round(self) -> None:
        self.current_round_bet = 0
        self.has_acted = False

    def to_dict(self) -> Dict[str, object]:
        return {
            "seat": self.seat,
            "uid": self.uid,
            "displayName": self.display_name,
            "isBot": self.is_bot,
            "botDifficulty": self.bot_difficulty,
            "chips": self.chips,
            "status": self.status.value,
            "hand": cards_to_dicts(self.hand),
            "handRevealed": self.hand_revealed,
            "currentRoundBet": self.current_round_bet,
            "totalContribution": self.total_contribution,
            "hasActed": self.has_acted,
            "lastAction": self.last_action,
            "pendingSitOut": self.pending_sit_out,
            "joinedMidHand": self.joined_mid_hand,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Seat":
        return cls(
            seat=int(data["seat"]),
            uid=str(data["uid"]),
            display_name=str(data.get("displayName") or data["uid"]),
            chips=int(data.get("chips", 0)),
            is_bot=bool(data.get("isBot", False)),
            bot_difficulty=data.get("botDifficulty"),
            status=_enum(SeatStatus, data.get("status", SeatStatus.ACTIVE.value), "status"),
            hand=parse_cards(data.get("hand") or []),
            hand_revealed=bool(data.get("handRevealed", False)),
            current_round_bet=int(data.get("currentRoundBet", 0)),
            total_contribution=int(data.get("totalContribution", 0)),
            has_acted=bool(data.get("hasActed", False)),
            last_action=data.get("lastAction"),
            pending_sit_out=bool(data.get("pendingSitOut", False)),
            joined_mid_hand=bool(data.get("joinedMidHand", False)),
        )


@dataclass
class PreAction:
    type: PreActionType
    amount: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        return {"type": self.type.value, "amount": self.amount}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PreAction":
        amount = data.get("amount")
        return cls(
            type=_enum(PreActionType, data.get("type"), "pre-action type"),
            amount=int(amount) if amount is not None else None,
        )


@dataclass
class BlindTimer:
    current_level: int = 0
    next_level_at: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        return {"currentLevel": self.current_level, "nextLevelAt": self.next_level_at}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BlindTimer":
        return cls(
            current_level=int(data.get("currentLevel", 0)),
            next_level_at=to_millis(data.get("nextLevelAt")),
        )


@dataclass
class TournamentInfo:
    state: TournamentState = TournamentState.REGISTERING
    buy_in: int = 0
    prize_pool: int = 0
    registrations: List[Dict[str, Any]] = field(default_factory=list)
    seat_states: Dict[int, TournamentSeatState] = field(default_factory=dict)
    blind_timer: BlindTimer = field(default_factory=BlindTimer)
    blind_schedule: List[List[int]] = field(default_factory=list)
    elimination_order: List[Dict[str, Any]] = field(default_factory=list)
    prize_structure: List[float] = field(default_factory=list)
    payouts: List[Dict[str, Any]] = field(default_factory=list)
    started_at: Optional[int] = None
    completed_at: Optional[int] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "state": self.state.value,
            "buyIn": self.buy_in,
            "prizePool": self.prize_pool,
            "registrations": [dict(entry) for entry in self.registrations],
            "seatStates": {str(seat): state.value for seat, state in self.seat_states.items()},
            "blindTimer": self.blind_timer.to_dict(),
            "blindSchedule": [list(row) for row in self.blind_schedule],
            "eliminationOrder": [dict(entry) for entry in self.elimination_order],
            "prizeStructure": list(self.prize_structure),
            "payouts": [dict(entry) for entry in self.payouts],
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TournamentInfo":
        return cls(
            state=_enum(TournamentState, data.get("state", TournamentState.REGISTERING.value), "tournament state"),
            buy_in=int(data.get("buyIn", 0)),
            prize_pool=int(data.get("prizePool", 0)),
            registrations=[dict(entry) for entry in data.get("registrations") or []],
            seat_states={
                seat: _enum(TournamentSeatState, value, "seat state")
                for seat, value in _int_keys(data.get("seatStates")).items()
            },
            blind_timer=BlindTimer.from_dict(data.get("blindTimer") or {}),
            blind_schedule=[[int(x) for x in row] for row in data.get("blindSchedule") or []],
            elimination_order=[dict(entry) for entry in data.get("eliminationOrder") or []],
            prize_structure=[float(x) for x in data.get("prizeStructure") or []],
            payouts=[dict(entry) for entry in data.get("payouts") or []],
            started_at=to_millis(data.get("startedAt")),
            completed_at=to_millis(data.get("completedAt")),
        )


@dataclass
class Table:
    """The whole table aggregate; seats are addressed by index, never by reference."""

    table_id: str
    config: TableConfig
    creator_uid: str = ""
    seats: List[Optional[Seat]] = field(default_factory=list)
    deck: DeckState = field(default_factory=DeckState)
    phase: Phase = Phase.IDLE
    dealer_seat: Optional[int] = None
    small_blind_seat: Optional[int] = None
    big_blind_seat: Optional[int] = None
    active_seat: Optional[int] = None
    small_blind: int = 0
    big_blind: int = 0
    current_bet: int = 0
    last_raise_size: int = 0
    raises_this_round: int = 0
    pot: int = 0
    side_pots: Optional[List[Dict[str, Any]]] = None
    community_cards: List[Card] = field(default_factory=list)
    turn_deadline: Optional[int] = None
    show_bluff_deadline: Optional[int] = None
    show_bluff_seat: Optional[int] = None
    all_in_showdown: bool = False
    pre_actions: Dict[int, PreAction] = field(default_factory=dict)
    cut_cards: Dict[int, Card] = field(default_factory=dict)
    hand_number: int = 0
    last_result: Optional[Dict[str, Any]] = None
    history: List[Dict[str, Any]] = field(default_factory=list)
    tournament: Optional[TournamentInfo] = None
    chat_log: List[Dict[str, Any]] = field(default_factory=list)
    railbirds: List[Dict[str, Any]] = field(default_factory=list)
    recent_intents: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    created_at: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.seats:
            self.seats = [None] * self.config.max_players

    # Seat helpers ----------------------------------------------------
    def seat(self, seat_idx: Optional[int]) -> Seat:
        if seat_idx is None or not 0 <= seat_idx < len(self.seats):
            raise InvalidInput(f"No such seat: {seat_idx}")
        seat = self.seats[seat_idx]
        if seat is None:
            raise InvalidInput(f"Seat {seat_idx} is empty")
        return seat

    def occupied(self) -> List[Seat]:
        return [seat for seat in self.seats if seat is not None]

    def seat_of(self, uid: str) -> Optional[Seat]:
        for seat in self.seats:
            if seat is not None and seat.uid == uid:
                return seat
        return None

    def in_hand_seats(self) -> List[Seat]:
        return [seat for seat in self.seats if seat is not None and seat.in_hand]

    def total_chips(self) -> int:
        return sum(seat.chips for seat in self.occupied()) + self.pot

    def append_chat(self, entry: Dict[str, Any]) -> None:
        self.chat_log.append(entry)
        if len(self.chat_log) > CHAT_LOG_LIMIT:
            del self.chat_log[: len(self.chat_log) - CHAT_LOG_LIMIT]

    def log_activity(self, text: str, now: Optional[int] = None) -> None:
        self.append_chat({"type": "activity", "text": text, "timestamp": now})

    def record_history(self, summary: Dict[str, Any]) -> None:
        self.history.append(summary)
        if len(self.history) > HISTORY_LIMIT:
            del self.history[: len(self.history) - HISTORY_LIMIT]

    # Document mapping ------------------------------------------------
    def to_dict(self) -> Dict[str, object]:
        return {
            "tableId": self.table_id,
            "creatorUid": self.creator_uid,
            "config": self.config.to_dict(),
            "seats": [seat.to_dict() if seat else None for seat in self.seats],
            "deck": self.deck.to_dict(),
            "phase": self.phase.value,
            "dealerSeat": self.dealer_seat,
            "smallBlindSeat": self.small_blind_seat,
            "bigBlindSeat": self.big_blind_seat,
            "activeSeat": self.active_seat,
            "smallBlind": self.small_blind,
            "bigBlind": self.big_blind,
            "currentBet": self.current_bet,
            "lastRaiseSize": self.last_raise_size,
            "raisesThisRound": self.raises_this_round,
            "pot": self.pot,
            "sidePots": [dict(pot) for pot in self.side_pots] if self.side_pots is not None else None,
            "communityCards": cards_to_dicts(self.community_cards),
            "turnDeadline": self.turn_deadline,
            "showBluffDeadline": self.show_bluff_deadline,
            "showBluffSeat": self.show_bluff_seat,
            "allInShowdown": self.all_in_showdown,
            "preActions": {str(seat): action.to_dict() for seat, action in self.pre_actions.items()},
            "cutCards": {str(seat): card.to_dict() for seat, card in self.cut_cards.items()},
            "handNumber": self.hand_number,
            "lastResult": self.last_result,
            "history": list(self.history),
            "tournament": self.tournament.to_dict() if self.tournament else None,
            "chatLog": list(self.chat_log),
            "railbirds": [dict(entry) for entry in self.railbirds],
            "recentIntents": {uid: dict(entry) for uid, entry in self.recent_intents.items()},
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Table":
        config = TableConfig.from_dict(data.get("config") or {})
        raw_seats = data.get("seats") or []
        tournament = data.get("tournament")
        return cls(
            table_id=str(data["tableId"]),
            config=config,
            creator_uid=str(data.get("creatorUid") or ""),
            seats=[Seat.from_dict(raw) if raw else None for raw in raw_seats] or [None] * config.max_players,
            deck=DeckState.from_dict(data.get("deck") or {}),
            phase=_enum(Phase, data.get("phase", Phase.IDLE.value), "phase"),
            dealer_seat=data.get("dealerSeat"),
            small_blind_seat=data.get("smallBlindSeat"),
            big_blind_seat=data.get("bigBlindSeat"),
            active_seat=data.get("activeSeat"),
            small_blind=int(data.get("smallBlind", 0)),
            big_blind=int(data.get("bigBlind", 0)),
            current_bet=int(data.get("currentBet", 0)),
            last_raise_size=int(data.get("lastRaiseSize", 0)),
            raises_this_round=int(data.get("raisesThisRound", 0)),
            pot=int(data.get("pot", 0)),
            side_pots=[dict(pot) for pot in data["sidePots"]] if data.get("sidePots") is not None else None,
            community_cards=parse_cards(data.get("communityCards") or []),
            turn_deadline=to_millis(data.get("turnDeadline")),
            show_bluff_deadline=to_millis(data.get("showBluffDeadline")),
            show_bluff_seat=data.get("showBluffSeat"),
            all_in_showdown=bool(data.get("allInShowdown", False)),
            pre_actions={
                seat: PreAction.from_dict(raw) for seat, raw in _int_keys(data.get("preActions")).items()
            },
            cut_cards={seat: parse_card(raw) for seat, raw in _int_keys(data.get("cutCards")).items()},
            hand_number=int(data.get("handNumber", 0)),
            last_result=data.get("lastResult"),
            history=list(data.get("history") or []),
            tournament=TournamentInfo.from_dict(tournament) if tournament else None,
            chat_log=list(data.get("chatLog") or []),
            railbirds=[dict(entry) for entry in data.get("railbirds") or []],
            recent_intents={uid: dict(entry) for uid, entry in (data.get("recentIntents") or {}).items()},
            created_at=to_millis(data.get("createdAt")),
        )
