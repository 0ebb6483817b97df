"""Notification sinks: where committed state changes are delivered.

The core calls `notify` once per transition and never retries. Delivery
guarantees belong to the sink.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any

import structlog

from swiftqueue.core.modules.event.models import EventType, QueueEvent

logger = structlog.get_logger(__name__)


class NotificationSink(ABC):
    @abstractmethod
    def notify(self, event: QueueEvent) -> None:
        """Accept an event without blocking."""


class NullSink(NotificationSink):
    """Discards every event."""

    def notify(self, event: QueueEvent) -> None:
        pass


class Subscription:
    """A subscriber's buffered event stream plus the token codes it follows."""

    def __init__(self, maxsize: int) -> None:
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self.codes: set[str] = set()

    async def get(self) -> dict[str, Any]:
        return await self.queue.get()


class EventHub(NotificationSink):
    """In-process broadcast to connected subscribers (best effort).

    Every subscriber receives every event. Subscribers following a token
    also get a targeted `your_token_called` message when it is called.
    A subscriber whose buffer is full misses the message.
    """

    def __init__(self, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._subscriptions: set[Subscription] = set()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self) -> Subscription:
        subscription = Subscription(self._queue_size)
        self._subscriptions.add(subscription)
        logger.debug("event_subscriber_added", subscribers=len(self._subscriptions))
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        self._subscriptions.discard(subscription)
        logger.debug("event_subscriber_removed", subscribers=len(self._subscriptions))

    def notify(self, event: QueueEvent) -> None:
        message = {"event": event.type.value, "data": event.model_dump(mode="json", by_alias=True)}
        targeted = self._targeted_message(event)
        for subscription in list(self._subscriptions):
            self._offer(subscription, message)
            if targeted is not None and event.token is not None and event.token.code in subscription.codes:
                self._offer(subscription, targeted)

    def _targeted_message(self, event: QueueEvent) -> dict[str, Any] | None:
        if event.type != EventType.TOKEN_CALLED or event.token is None:
            return None
        counter_number = event.counter.number if event.counter is not None else event.token.counter_id
        return {
            "event": "your_token_called",
            "data": {
                "code": event.token.code,
                "counter_number": counter_number,
                "message": f"Your token {event.token.code} is now being served at Counter {counter_number}",
                "timestamp": event.timestamp.isoformat(),
            },
        }

    def _offer(self, subscription: Subscription, message: dict[str, Any]) -> None:
        try:
            subscription.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning("event_dropped", event_type=message["event"], reason="subscriber_queue_full")
