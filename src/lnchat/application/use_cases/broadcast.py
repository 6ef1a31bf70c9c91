"""Fan-out of live events to connected feed subscribers."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol, Union

from ...domain.errors import BroadcastDeliveryError
from ..dtos import NewCommentEvent, PresenceCountEvent

logger = logging.getLogger(__name__)

LiveEvent = Union[NewCommentEvent, PresenceCountEvent]


class Subscriber(Protocol):
    """Anything that can receive a JSON document (e.g. a FastAPI WebSocket)."""

    async def send_json(self, data: Any) -> None: ...


class BroadcastHub:
    """Owns the subscriber set; every mutation goes through its lock."""

    def __init__(self, *, send_timeout: float = 5.0) -> None:
        self.send_timeout = send_timeout
        self._subscribers: set[Subscriber] = set()
        self._lock = asyncio.Lock()

    def count(self) -> int:
        return len(self._subscribers)

    async def subscribe(self, subscriber: Subscriber) -> Subscriber:
        """Register a subscriber and announce the new presence count to all."""
        async with self._lock:
            self._subscribers.add(subscriber)
            count = len(self._subscribers)
        logger.info("Subscriber connected. Total subscribers: %d", count)
        await self.publish(PresenceCountEvent(data=count))
        return subscriber

    async def unsubscribe(self, subscriber: Subscriber) -> None:
        """Remove a subscriber and announce the new presence count."""
        async with self._lock:
            if subscriber not in self._subscribers:
                return
            self._subscribers.discard(subscriber)
            count = len(self._subscribers)
        logger.info("Subscriber disconnected. Total subscribers: %d", count)
        await self.publish(PresenceCountEvent(data=count))

    async def _deliver(self, subscriber: Subscriber, payload: dict[str, Any]) -> None:
        try:
            await asyncio.wait_for(
                subscriber.send_json(payload), timeout=self.send_timeout
            )
        except asyncio.TimeoutError as e:
            raise BroadcastDeliveryError(
                f"send timed out after {self.send_timeout}s"
            ) from e
        except Exception as e:
            raise BroadcastDeliveryError(str(e)) from e

    async def publish(self, event: LiveEvent) -> None:
        """Deliver an event to every subscriber.

        A subscriber whose send fails or outlasts ``send_timeout`` is dropped;
        the others are unaffected and the reduced presence count is published
        afterwards.
        """
        payload = event.model_dump(mode="json")
        async with self._lock:
            targets = list(self._subscribers)

        dropped = []
        for subscriber in targets:
            try:
                await self._deliver(subscriber, payload)
            except BroadcastDeliveryError as e:
                logger.warning("Dropping subscriber after failed send: %s", e)
                dropped.append(subscriber)

        if not dropped:
            return
        async with self._lock:
            for subscriber in dropped:
                self._subscribers.discard(subscriber)
            count = len(self._subscribers)
        await self.publish(PresenceCountEvent(data=count))
