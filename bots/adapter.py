from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

from engine.cards import Card
from engine.errors import PokerError
from engine.models import ActionType, Phase
from host.service import IntentResult, TableService

from .baseline import BaselineStrategy, hand_from_view

LOGGER = logging.getLogger("kcpoker.bots")


class BotStrategy(Protocol):
    """What the table needs from a bot: a bet decision and a discard decision."""

    def decide_bet(
        self,
        view: Mapping[str, Any],
        hand: Sequence[Card],
        options: Mapping[str, Any],
    ) -> Tuple[ActionType, Optional[int]]: ...

    def decide_discard(self, view: Mapping[str, Any], hand: Sequence[Card]) -> List[int]: ...


class BotDriver:
    """Turns strategy decisions into ordinary intents for seated bots.

    Bots get no shortcuts: they see their own projection and submit through
    the same service path as people, so every rule and CAS check applies.
    """

    def __init__(self, service: TableService, rng: Optional[random.Random] = None) -> None:
        self.service = service
        self.rng = rng or random.Random()
        self.strategies: Dict[str, BotStrategy] = {}

    def strategy_for(self, uid: str, difficulty: Optional[str]) -> BotStrategy:
        if uid not in self.strategies:
            self.strategies[uid] = BaselineStrategy(difficulty or "medium", rng=random.Random(self.rng.random()))
        return self.strategies[uid]

    def pending_bot(self, table_id: str) -> Optional[Dict[str, Any]]:
        document, _ = self.service.store.read(table_id)
        active = document.get("activeSeat")
        if active is None:
            return None
        phase = Phase(document.get("phase"))
        if not (phase.is_betting or phase.is_draw):
            return None
        seat = (document.get("seats") or [])[active]
        if not seat or not seat.get("isBot"):
            return None
        return seat

    def act(self, table_id: str) -> Optional[IntentResult]:
        """Play one turn for the bot on the clock, if any."""
        seat = self.pending_bot(table_id)
        if seat is None:
            return None
        uid = seat["uid"]
        view, version = self.service.view(table_id, uid)
        hand = hand_from_view(view, uid)
        strategy = self.strategy_for(uid, seat.get("botDifficulty"))
        options = self.service.turn_options(table_id, uid)
        if not options.get("yourTurn"):
            return None

        if options.get("draw"):
            intent, payload = "submitDraw", {"indices": strategy.decide_discard(view, hand)}
        else:
            action, amount = strategy.decide_bet(view, hand, options)
            payload = {"action": action.value}
            if amount is not None:
                payload["amount"] = amount
            intent = "betAction"

        try:
            return self.service.submit(table_id, uid, intent, payload, version=version)
        except PokerError as exc:
            LOGGER.warning("Bot %s %s rejected (%s); falling back", uid, payload, exc.message)
        fallback = self._fallback(options)
        try:
            return self.service.submit(table_id, uid, fallback[0], fallback[1], version=version)
        except PokerError as exc:
            LOGGER.warning("Bot %s fallback rejected: %s", uid, exc.message)
            return None

    @staticmethod
    def _fallback(options: Mapping[str, Any]) -> Tuple[str, Dict[str, Any]]:
        if options.get("draw"):
            return "submitDraw", {"indices": []}
        legal = options.get("legal") or []
        action = ActionType.CHECK if ActionType.CHECK.value in legal else ActionType.FOLD
        return "betAction", {"action": action.value}
