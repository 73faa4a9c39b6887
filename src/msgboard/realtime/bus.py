"""In-process event bus — topic pub/sub between services and WebSockets.

Learn: The bus is fire-and-forget. publish() is a plain synchronous call:
it drops the payload into every current subscriber's queue with
put_nowait() and returns, so a mutation never waits on a slow client.
If no one is listening, the payload is discarded. Clients that join later
can query the API to catch up; there is no replay.

Each subscriber owns its own FIFO queue (fan-out, not work-queue
semantics), which is what gives per-topic ordering: payloads land in
every queue in publish order, and each consumer drains its queue in order.

Buffering: with queue_size=0 a subscriber's queue is unbounded, so a
consumer that never reads grows without limit. A positive queue_size caps
it and drops the oldest pending payload on overflow.
"""

import asyncio
import uuid
from enum import Enum
from typing import Any, Optional

import structlog

from msgboard.errors import BusClosedError, TransportError

logger = structlog.get_logger()


class Topic(str, Enum):
    """One topic per kind of mutation."""

    MESSAGE_ADDED = "messageAdded"
    MESSAGE_UPDATED = "messageUpdated"
    MESSAGE_DELETED = "messageDeleted"


_CLOSED = object()


class Subscription:
    """A live registration on one topic.

    Iterate it to receive payloads (the iteration never ends on its own),
    or use it as an async context manager to close it on exit. Closing
    unregisters from the bus and drops anything still queued.
    """

    def __init__(self, bus: "EventBus", topic: Topic, queue_size: int = 0):
        self.id = uuid.uuid4().hex
        self.topic = topic
        self.dropped = 0
        self._bus = bus
        self._queue_size = queue_size
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        """Payloads delivered but not yet consumed."""
        return self._queue.qsize()

    def deliver(self, payload: Any) -> None:
        """Enqueue a payload without suspending. Raises TransportError if closed."""
        if self._closed:
            raise TransportError(f"subscription {self.id} is closed")
        if self._queue_size and self._queue.qsize() >= self._queue_size:
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(payload)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bus._unregister(self)
        # Pending deliveries are dropped; the sentinel wakes a waiting reader
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Any:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()


class EventBus:
    """Decouples mutation publishers from subscription consumers.

    Constructed once per process (see main.create_app) and passed explicitly
    to the services and the gateway. close() at shutdown ends every open
    subscription.
    """

    def __init__(self, queue_size: int = 0):
        self.queue_size = queue_size
        self._subscribers: dict[Topic, list[Subscription]] = {t: [] for t in Topic}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, topic: Topic | str) -> Subscription:
        """Register a new subscriber. Only payloads published from now on are seen."""
        if self._closed:
            raise BusClosedError("event bus is closed")
        topic = Topic(topic)
        subscription = Subscription(self, topic, self.queue_size)
        self._subscribers[topic].append(subscription)
        logger.debug("bus.subscribed", topic=topic.value, subscription=subscription.id)
        return subscription

    def publish(self, topic: Topic | str, payload: Any) -> int:
        """Deliver payload to every current subscriber of topic.

        Returns how many subscribers it reached. Never suspends and never
        raises for delivery problems: a subscriber that can't take the
        payload is unregistered and the rest still get it.
        """
        if self._closed:
            return 0
        topic = Topic(topic)
        # Snapshot: subscribers may unregister while we iterate
        subscribers = tuple(self._subscribers[topic])
        delivered = 0
        for subscription in subscribers:
            try:
                subscription.deliver(payload)
            except TransportError as e:
                self._unregister(subscription)
                logger.warning(
                    "bus.delivery_failed",
                    topic=topic.value,
                    subscription=subscription.id,
                    error=str(e),
                )
                continue
            delivered += 1
        logger.debug("bus.published", topic=topic.value, delivered=delivered)
        return delivered

    def subscriber_count(self, topic: Optional[Topic | str] = None) -> int:
        if topic is not None:
            return len(self._subscribers[Topic(topic)])
        return sum(len(subs) for subs in self._subscribers.values())

    def close(self) -> None:
        """Close every subscription and refuse new ones."""
        if self._closed:
            return
        self._closed = True
        count = self.subscriber_count()
        for subs in self._subscribers.values():
            for subscription in tuple(subs):
                subscription.close()
        logger.info("bus.closed", subscriptions_closed=count)

    def _unregister(self, subscription: Subscription) -> None:
        try:
            self._subscribers[subscription.topic].remove(subscription)
        except ValueError:
            pass  # already gone
