"""
In-process live-query bus.

Callers register interest in one or more topics and receive a stream of
change events; every subscription is an explicit handle that must be
unsubscribed (or used as an async context manager) so no listener outlives
its caller.

Topics used by the services:
- notifications:{user_id}
- connection_requests:{user_id}
- connections:{user_id}
- plan:{plan_id}
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Set

from crewmate.config import get_settings
from crewmate.core.clock import utcnow

logger = logging.getLogger(__name__)


def notifications_topic(user_id: int) -> str:
    return f"notifications:{user_id}"


def connection_requests_topic(user_id: int) -> str:
    return f"connection_requests:{user_id}"


def connections_topic(user_id: int) -> str:
    return f"connections:{user_id}"


def plan_topic(plan_id: int) -> str:
    return f"plan:{plan_id}"


@dataclass
class Event:
    """A single change notification delivered to subscribers"""
    topic: str
    kind: str
    payload: Dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=utcnow)


class Subscription:
    """Handle for a live subscription; iterate it or await next()."""

    def __init__(self, bus: "EventBus", topics: Set[str], queue_size: int):
        self._bus = bus
        self.topics = frozenset(topics)
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def _deliver(self, event: Event) -> None:
        if self._closed:
            return
        if self._queue.full():
            # Slow consumer: keep the newest state, drop the oldest event
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(event)

    async def next(self, timeout: Optional[float] = None) -> Event:
        """
        Wait for the next event.

        Raises:
            asyncio.TimeoutError: no event within timeout
            RuntimeError: subscription already closed
        """
        if self._closed and self._queue.empty():
            raise RuntimeError("Subscription is closed")
        if timeout is None:
            return await self._queue.get()
        return await asyncio.wait_for(self._queue.get(), timeout)

    def pending(self) -> int:
        return self._queue.qsize()

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bus._detach(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> Event:
        if self._closed:
            raise StopAsyncIteration
        return await self.next()

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()


class EventBus:
    """
    Topic-based publish/subscribe bus.

    publish() never blocks and never raises into the writer: a failing or
    saturated subscriber only affects itself.
    """

    def __init__(self, queue_size: int = 100):
        self.queue_size = queue_size
        self._subscriptions: Dict[str, Set[Subscription]] = {}

    def subscribe(self, *topics: str) -> Subscription:
        if not topics:
            raise ValueError("At least one topic is required")
        subscription = Subscription(self, set(topics), self.queue_size)
        for topic in subscription.topics:
            self._subscriptions.setdefault(topic, set()).add(subscription)
        logger.debug(f"Subscribed to {sorted(subscription.topics)}")
        return subscription

    def _detach(self, subscription: Subscription) -> None:
        for topic in subscription.topics:
            subscribers = self._subscriptions.get(topic)
            if not subscribers:
                continue
            subscribers.discard(subscription)
            if not subscribers:
                del self._subscriptions[topic]

    def publish(self, topic: str, kind: str, **payload: Any) -> int:
        """Deliver an event to every subscriber of topic; returns the receiver count."""
        subscribers = list(self._subscriptions.get(topic, ()))
        if not subscribers:
            return 0
        event = Event(topic=topic, kind=kind, payload=payload)
        for subscription in subscribers:
            subscription._deliver(event)
        return len(subscribers)

    def subscriber_count(self, topic: Optional[str] = None) -> int:
        if topic is not None:
            return len(self._subscriptions.get(topic, ()))
        return len({s for subs in self._subscriptions.values() for s in subs})


# Global bus instance
event_bus = EventBus(queue_size=get_settings().events.subscriber_queue_size)


def get_event_bus() -> EventBus:
    """Get the application event bus"""
    return event_bus
