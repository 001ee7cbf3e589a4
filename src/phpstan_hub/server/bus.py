"""Fan-out of status payloads to every connected browser tab."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    """Anything that can receive a text frame, e.g. a Starlette WebSocket."""

    async def send_text(self, data: str) -> None: ...


class BroadcastBus:
    """Holds the currently-open push connections.

    Only touched from the event loop, so no lock is needed. Registration has
    set semantics: subscribing the same connection twice keeps a single entry
    and a single delivery. A connection whose send fails is dropped on the
    spot, so the registry always mirrors the sockets that are actually open.
    """

    def __init__(self) -> None:
        # dict keeps registration order; values unused
        self._subscribers: dict[Any, None] = {}

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, connection: Any) -> bool:
        return connection in self._subscribers

    def subscribe(self, connection: Subscriber) -> None:
        """Register *connection*; a no-op if it is already registered."""
        self._subscribers.setdefault(connection, None)
        logger.debug("Subscriber connected (%d open)", len(self._subscribers))

    def unsubscribe(self, connection: Subscriber) -> None:
        """Remove *connection*; safe for unknown or already-removed ones."""
        if self._subscribers.pop(connection, 0) is None:
            logger.debug("Subscriber disconnected (%d open)", len(self._subscribers))

    async def broadcast(self, message: str) -> int:
        """Send *message* to every subscriber.

        Returns the number of successful deliveries. Failures never propagate
        to the caller; the failing subscriber is unsubscribed instead.
        """
        targets = list(self._subscribers)
        if not targets:
            return 0

        results = await asyncio.gather(
            *(connection.send_text(message) for connection in targets),
            return_exceptions=True,
        )

        delivered = 0
        for connection, result in zip(targets, results):
            if isinstance(result, BaseException):
                logger.debug("Dropping subscriber after failed send: %r", result)
                self.unsubscribe(connection)
            else:
                delivered += 1
        return delivered

    async def close_all(self) -> None:
        """Close and forget every subscriber (used on shutdown)."""
        targets = list(self._subscribers)
        self._subscribers.clear()
        for connection in targets:
            close = getattr(connection, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as exc:
                logger.debug("Error closing subscriber: %s", exc)
