from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

import websockets
from websockets.server import WebSocketServerProtocol

from bots.adapter import BotDriver
from engine.errors import PokerError
from engine.models import Phase, Seat, TableMode
from engine.seating import is_dealt_in
from engine.timestamps import to_millis

from .service import IntentResult, TableService

LOGGER = logging.getLogger("kcpoker.host")

# HostServer glues the table service to WebSocket clients.
# Every network concern lives here; the service and engine stay transport-free.


@dataclass
class ClientSession:
    uid: str
    websocket: WebSocketServerProtocol
    tables: Set[str] = field(default_factory=set)


class HostServer:
    def __init__(
        self,
        service: TableService,
        *,
        tick_ms: int = 500,
        next_hand_delay_ms: int = 3_000,
        auto_deal: bool = True,
        bots: Optional[BotDriver] = None,
    ) -> None:
        self.service = service
        self.bots = bots or BotDriver(service)
        self.tick_ms = tick_ms
        self.next_hand_delay_ms = next_hand_delay_ms
        self.auto_deal = auto_deal
        self.sessions: Dict[WebSocketServerProtocol, ClientSession] = {}
        self.lock = asyncio.Lock()

    async def start(self, host: str = "0.0.0.0", port: int = 8765) -> None:
        async with websockets.serve(self._handle_connection, host, port):
            LOGGER.info("Host server listening on %s:%s", host, port)
            ticker = asyncio.create_task(self._ticker())
            try:
                await asyncio.Future()
            finally:
                ticker.cancel()

    async def _handle_connection(self, websocket: WebSocketServerProtocol) -> None:
        # First message must be "hello" so we know who we are talking to.
        hello = await self._read_message(websocket)
        if hello is None or hello.get("type") != "hello":
            await self._send_error(websocket, kind="BadHello", msg="Expected hello")
            await websocket.close()
            return
        uid_raw = hello.get("uid")
        uid = uid_raw.strip() if isinstance(uid_raw, str) else ""
        if not uid:
            await self._send_error(websocket, kind="InvalidInput", msg="uid required")
            await websocket.close()
            return

        session = ClientSession(uid=uid, websocket=websocket)
        self.sessions[websocket] = session
        LOGGER.info("Client %s connected", uid)
        await self._send_json(websocket, "welcome", {"uid": uid, "tables": self.service.store.table_ids()})

        try:
            async for raw in websocket:
                await self._handle_message(session, self._decode(raw))
        except websockets.ConnectionClosed:
            pass
        finally:
            self.sessions.pop(websocket, None)
            LOGGER.info("Client %s disconnected", uid)

    async def _handle_message(self, session: ClientSession, message: Dict[str, Any]) -> None:
        msg_type = message.get("type")
        if msg_type == "intent":
            await self._handle_intent(session, message)
        elif msg_type == "subscribe":
            await self._handle_subscribe(session, message)
        else:
            await self._send_error(session.websocket, kind="UnknownType", msg="Unsupported message type")

    async def _handle_subscribe(self, session: ClientSession, message: Dict[str, Any]) -> None:
        table_id = message.get("tableId")
        try:
            state, version = self.service.view(str(table_id), session.uid)
        except PokerError as exc:
            await self._send_error(session.websocket, kind=exc.kind, msg=exc.message)
            return
        session.tables.add(str(table_id))
        await self._send_json(session.websocket, "state", {"tableId": table_id, "version": version, "state": state})

    async def _handle_intent(self, session: ClientSession, message: Dict[str, Any]) -> None:
        request_id = message.get("requestId")
        intent = message.get("intent")
        table_id = message.get("tableId")
        payload = message.get("payload") or {}
        version = message.get("version")
        if not isinstance(intent, str) or (intent != "createTable" and not isinstance(table_id, str)):
            await self._send_error(
                session.websocket, kind="InvalidInput", msg="intent and tableId required", request_id=request_id
            )
            return
        if version is not None and (isinstance(version, bool) or not isinstance(version, int)):
            await self._send_error(
                session.websocket, kind="InvalidInput", msg="version must be an integer", request_id=request_id
            )
            return

        try:
            async with self.lock:
                if intent == "createTable":
                    result = self.service.create_table(session.uid, payload)
                    table_id = str(result.state["tableId"])
                else:
                    result = self.service.submit(table_id, session.uid, intent, payload, version)
        except PokerError as exc:
            LOGGER.warning("Rejected %s on %s from %s: %s (%s)", intent, table_id, session.uid, exc.message, exc.kind)
            await self._send_error(session.websocket, kind=exc.kind, msg=exc.message, request_id=request_id)
            return

        session.tables.add(table_id)
        reply: Dict[str, object] = {
            "requestId": request_id,
            "tableId": table_id,
            "version": result.version,
            "events": result.events,
        }
        if result.error is not None:
            reply["error"] = result.error.to_payload()
        await self._send_json(session.websocket, "result", reply)
        if result.committed:
            await self._publish_table(table_id)

    async def _publish_table(self, table_id: str) -> None:
        # Every subscriber gets its own projection; hands never leak through a broadcast.
        for session in list(self.sessions.values()):
            if table_id not in session.tables:
                continue
            state, version = self.service.view(table_id, session.uid)
            await self._send_json(session.websocket, "state", {"tableId": table_id, "version": version, "state": state})

    # Background duties -----------------------------------------------

    async def _ticker(self) -> None:
        while True:
            await asyncio.sleep(self.tick_ms / 1000)
            try:
                await self.run_duties()
            except Exception:  # keep the ticker alive; the next tick retries
                LOGGER.exception("Background duties failed")

    async def run_duties(self) -> List[str]:
        """One pass over every table; returns the ids that changed."""
        changed: List[str] = []
        for table_id in self.service.store.table_ids():
            async with self.lock:
                results = self.service.tick(table_id)
                bot_result = self.bots.act(table_id)
                if bot_result is not None and bot_result.committed:
                    results.append(bot_result)
                pacing = self._advance_between_hands(table_id)
                if pacing is not None:
                    results.append(pacing)
            if results:
                changed.append(table_id)
                await self._publish_table(table_id)
        return changed

    def _advance_between_hands(self, table_id: str) -> Optional[IntentResult]:
        document, _ = self.service.store.read(table_id)
        now = self.service.store.server_time()
        creator = document.get("creatorUid") or "host"
        phase = document.get("phase")
        if phase == Phase.SHOWDOWN.value:
            ended_at = to_millis((document.get("lastResult") or {}).get("endedAt"))
            bluff_deadline = to_millis(document.get("showBluffDeadline"))
            if ended_at is None or now < ended_at + self.next_hand_delay_ms:
                return None
            if bluff_deadline is not None and now < bluff_deadline:
                return None
            return self._quiet(table_id, creator, "startNextHand")
        if phase == Phase.IDLE.value and self.auto_deal:
            if (document.get("config") or {}).get("mode") != TableMode.CASH.value:
                return None
            seats = [Seat.from_dict(raw) for raw in document.get("seats") or [] if raw]
            if sum(1 for seat in seats if is_dealt_in(seat)) < 2:
                return None
            return self._quiet(table_id, creator, "deal")
        return None

    def _quiet(self, table_id: str, uid: str, intent: str) -> Optional[IntentResult]:
        try:
            return self.service.submit(table_id, uid, intent)
        except PokerError as exc:
            LOGGER.debug("Skipped %s on %s: %s", intent, table_id, exc.message)
            return None

    # Wire helpers ----------------------------------------------------

    async def _send_json(self, websocket: WebSocketServerProtocol, msg_type: str, payload: Dict[str, object]) -> None:
        try:
            await websocket.send(self._envelope(msg_type, payload))
        except websockets.ConnectionClosed:
            pass

    async def _send_error(
        self,
        websocket: WebSocketServerProtocol,
        kind: str,
        msg: str,
        request_id: Optional[object] = None,
    ) -> None:
        payload: Dict[str, object] = {"kind": kind, "msg": msg}
        if request_id is not None:
            payload["requestId"] = request_id
        await self._send_json(websocket, "error", payload)

    def _envelope(self, msg_type: str, payload: Dict[str, object]) -> str:
        body = {"type": msg_type, "v": 1, "ts": datetime.now(timezone.utc).isoformat()}
        body.update(payload)
        return json.dumps(body)

    async def _read_message(self, websocket: WebSocketServerProtocol) -> Optional[Dict[str, Any]]:
        try:
            raw = await asyncio.wait_for(websocket.recv(), timeout=5)
        except (asyncio.TimeoutError, websockets.ConnectionClosed):
            return None
        return self._decode(raw)

    def _decode(self, raw: Any) -> Dict[str, Any]:
        try:
            message = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            return {}
        return message if isinstance(message, dict) else {}
