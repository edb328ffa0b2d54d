
from __future__ import annotations

import asyncio
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from fastapi import WebSocket

from calculations.models import NotificationBatch, ResultSet

from .config import Settings
from .filters import SubscriberPreferences, ValidationError, notifications_for
from .transform import full_update, notifications_to_wire, summary_to_wire

logger = logging.getLogger("server")


def encode(event: str, data: Dict[str, Any]) -> str:
    return json.dumps({"event": event, "data": data}, ensure_ascii=False)


class Hub:
    """
    Subscriber registry: one preference record per connection id, created on
    connect and dropped on disconnect. Fans out full updates and per-subscriber
    filtered notifications.
    """
    def __init__(self, settings: Settings, *, clock: Optional[Callable[[], datetime]] = None):
        self.settings = settings
        self.connections: Dict[str, WebSocket] = {}
        self.prefs: Dict[str, SubscriberPreferences] = {}
        self.lock = asyncio.Lock()
        self._clock = clock

    def _now(self) -> Optional[datetime]:
        return self._clock() if self._clock else None

    def _debug(self, msg: str, *args: Any) -> None:
        if self.settings.ws_debug:
            logger.info("[ws] " + msg, *args)

    def default_preferences(self) -> SubscriberPreferences:
        return SubscriberPreferences(ev_change_threshold=self.settings.ev_change_threshold)

    async def connect(self, ws: WebSocket) -> str:
        await ws.accept()
        sid = uuid.uuid4().hex
        async with self.lock:
            self.connections[sid] = ws
            self.prefs[sid] = self.default_preferences()
        logger.info("subscriber connected: %s (%d total)", sid, len(self.connections))
        return sid

    async def disconnect(self, sid: str) -> None:
        async with self.lock:
            self.connections.pop(sid, None)
            self.prefs.pop(sid, None)
        logger.info("subscriber disconnected: %s", sid)

    async def set_preferences(self, sid: str, message: Dict[str, Any]) -> Optional[SubscriberPreferences]:
        async with self.lock:
            current = self.prefs.get(sid)
            if current is None:
                return None
            updated = current.updated(message)
            self.prefs[sid] = updated
        logger.info(
            "subscriber %s updated preferences: %d bookmakers",
            sid, len(updated.selected_bookmakers),
        )
        return updated

    async def send(self, sid: str, event: str, data: Dict[str, Any]) -> bool:
        async with self.lock:
            ws = self.connections.get(sid)
        if ws is None:
            return False
        try:
            await ws.send_text(encode(event, data))
        except Exception as e:
            logger.warning("send %s to %s failed: %s", event, sid, e)
            await self.disconnect(sid)
            return False
        return True

    async def send_current(self, sid: str, result: ResultSet) -> bool:
        return await self.send(sid, "full-update", full_update(result))

    async def _deliver(self, messages: Dict[str, str]) -> int:
        """Send pre-encoded text per subscriber id; sockets that fail are dropped."""
        async with self.lock:
            targets = [(sid, self.connections[sid]) for sid in messages if sid in self.connections]
        dead: List[str] = []
        sent = 0
        for sid, ws in targets:
            try:
                await ws.send_text(messages[sid])
                sent += 1
            except Exception as e:
                self._debug("send to %s failed: %s", sid, e)
                dead.append(sid)
        if dead:
            async with self.lock:
                for sid in dead:
                    self.connections.pop(sid, None)
                    self.prefs.pop(sid, None)
            logger.info("dropped %d dead subscriber(s)", len(dead))
        return sent

    async def broadcast(self, event: str, data: Dict[str, Any]) -> int:
        text = encode(event, data)
        async with self.lock:
            sids = list(self.connections)
        return await self._deliver({sid: text for sid in sids})

    async def publish_full_update(self, result: ResultSet) -> int:
        sent = await self.broadcast("full-update", full_update(result))
        self._debug("full-update sent to %d subscriber(s)", sent)
        return sent

    async def dispatch_notifications(self, batch: NotificationBatch) -> int:
        """
        Send `ev-notifications` to each subscriber with at least one notification
        surviving its preferences, then a summary to everyone. No-op for an empty batch.
        """
        if not batch.total():
            return 0
        now = self._now()
        async with self.lock:
            prefs = dict(self.prefs)
        messages: Dict[str, str] = {}
        for sid, p in prefs.items():
            mine = notifications_for(batch, p)
            if mine is not None:
                messages[sid] = encode("ev-notifications", notifications_to_wire(mine, now))
        sent = await self._deliver(messages)
        logger.info(
            "sent notifications to %d/%d subscriber(s): %s",
            sent, len(prefs), batch.counts(),
        )
        await self.broadcast("ev-update-summary", summary_to_wire(batch, now))
        return sent

    async def handle_message(self, sid: str, text: str, current: Callable[[], ResultSet]) -> None:
        """Dispatch one inbound subscriber message."""
        try:
            msg = json.loads(text)
        except ValueError:
            self._debug("ignoring non-JSON message from %s", sid)
            return
        if not isinstance(msg, dict):
            return
        event = str(msg.get("event") or "")
        data = msg.get("data") or {}
        if event == "set-preferences":
            try:
                await self.set_preferences(sid, data)
            except ValidationError as e:
                await self.send(sid, "error", {"error": str(e)})
        elif event == "get-current-data":
            await self.send_current(sid, current())
        else:
            self._debug("unknown event %r from %s", event, sid)
