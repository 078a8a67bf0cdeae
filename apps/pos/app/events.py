from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, Iterable, Optional

from fastapi import WebSocket

_log = logging.getLogger("cafepos.events")

ORDERS_UPDATED = "orders-updated"
MENU_UPDATED = "menu-updated"
TABLES_ADDED = "tables-added"
TABLES_UPDATED = "tables-updated"
CATEGORIES_UPDATED = "categories-updated"
SETTINGS_UPDATED = "settings-updated"
DATABASE_CLEARED = "database-cleared"

TOPICS = frozenset(
    {
        ORDERS_UPDATED,
        MENU_UPDATED,
        TABLES_ADDED,
        TABLES_UPDATED,
        CATEGORIES_UPDATED,
        SETTINGS_UPDATED,
        DATABASE_CLEARED,
    }
)

Listener = Callable[[Dict[str, Any]], None]


def parse_topics(raw: str | None) -> Optional[frozenset]:
    """Turn "a,b" into a topic filter; empty means every topic."""
    wanted = {t.strip() for t in (raw or "").split(",") if t.strip()}
    if not wanted:
        return None
    return frozenset(wanted & TOPICS)


class EventBus:
    """
    Best-effort fan-out of change notifications to every connected UI surface.

    Publishing never raises into the caller. Route handlers run in worker
    threads, so socket delivery is handed to the event loop bound at startup;
    without a bound loop only in-process listeners and the log see the event.
    """

    def __init__(self) -> None:
        self._sockets: Dict[WebSocket, Optional[frozenset]] = {}
        self._listeners: list[tuple[Listener, Optional[frozenset]]] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def bind_loop(self, loop: Optional[asyncio.AbstractEventLoop]) -> None:
        self._loop = loop

    def subscribe(self, listener: Listener, topics: Iterable[str] | None = None) -> Callable[[], None]:
        entry = (listener, frozenset(topics) if topics else None)
        self._listeners.append(entry)

        def _unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return _unsubscribe

    def attach(self, ws: WebSocket, topics: Optional[frozenset] = None) -> None:
        self._sockets[ws] = topics

    def detach(self, ws: WebSocket) -> None:
        self._sockets.pop(ws, None)

    def publish(self, topic: str) -> None:
        if topic not in TOPICS:
            _log.warning("events: unknown topic %s dropped", topic)
            return
        msg = {"type": topic, "ts_ms": int(time.time() * 1000)}
        _log.info("event", extra={"event": msg})
        for listener, topics in list(self._listeners):
            if topics is not None and topic not in topics:
                continue
            try:
                listener(msg)
            except Exception as e:
                _log.warning("events: listener failed for %s: %s", topic, e)
        if not self._sockets or self._loop is None:
            return
        try:
            asyncio.run_coroutine_threadsafe(self._broadcast(msg), self._loop)
        except RuntimeError as e:
            # loop already closed (shutdown in progress)
            _log.warning("events: broadcast of %s skipped: %s", topic, e)

    async def _broadcast(self, msg: Dict[str, Any]) -> None:
        for ws, topics in list(self._sockets.items()):
            if topics is not None and msg["type"] not in topics:
                continue
            try:
                await ws.send_json(msg)
            except Exception as e:
                _log.info("events: dropping socket after send failure: %s", e)
                self.detach(ws)
