"""
Publish / subscribe fan-out of ServerState snapshots.

Observers are async callables taking the full state dict (e.g. a WebSocket's
``send_json`` wrapped by the /ws route).  Every publish sends the complete
state, never a diff.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from src.core.logging import get_logger

logger = get_logger(__name__)

Observer = Callable[[dict[str, Any]], Awaitable[None]]


class StateBroadcaster:
    def __init__(self) -> None:
        self._observers: list[Observer] = []

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def subscribe(self, observer: Observer) -> None:
        if observer not in self._observers:
            self._observers.append(observer)
            logger.info("Observer subscribed (total=%d)", len(self._observers))

    def unsubscribe(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)
            logger.info("Observer unsubscribed (total=%d)", len(self._observers))

    async def publish(self, state: dict[str, Any]) -> None:
        """Send *state* to every observer; observers that fail are dropped."""
        observers = list(self._observers)
        if not observers:
            return
        results = await asyncio.gather(
            *(observer(state) for observer in observers), return_exceptions=True
        )
        for observer, result in zip(observers, results):
            if isinstance(result, Exception):
                logger.warning("Dropping observer after publish error: %s", result)
                self.unsubscribe(observer)
