"""In-memory registry of clients holding open streaming connections.

Each streaming request registers a :class:`Subscription` (a bounded queue bound
to the event loop serving that request) under a key such as a user id. Writers
call :meth:`SubscriberRegistry.publish` from any thread; the event is handed to
every subscription registered under the key without ever blocking the writer.
When a subscriber's queue is full the event is dropped for that subscriber
only. Live delivery is best-effort: a client that misses an event sees it on
its next regular fetch.

The registry is an arena of handles indexed by ``(key, connection_id)`` and
split into lock stripes, so publishers for different users never contend on a
shared lock.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from collections.abc import Hashable
from dataclasses import dataclass, field
from typing import Any

from flock.core.settings import settings

logger = logging.getLogger(__name__)

_CLOSED = object()


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class Subscription:
    """One live connection's registered queue.

    Iterate it with ``async for`` on the loop that created it; iteration ends
    once the subscription is closed.
    """

    def __init__(
        self,
        key: Hashable,
        connection_id: int,
        loop: asyncio.AbstractEventLoop,
        maxsize: int,
    ) -> None:
        self.key = key
        self.connection_id = connection_id
        self.dropped = 0
        self.closed = False
        self._loop = loop
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=maxsize)

    def __repr__(self) -> str:
        return f"Subscription(key={self.key!r}, connection_id={self.connection_id})"

    def offer(self, event: Any) -> bool:
        """Enqueue ``event`` without waiting. Must run on the subscription's loop."""
        if self.closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1
            logger.debug("Dropped live event for %r: queue full", self)
            return False
        return True

    def deliver(self, event: Any) -> None:
        """Hand ``event`` to the subscription from any thread."""
        if _running_loop() is self._loop:
            self.offer(event)
            return
        try:
            self._loop.call_soon_threadsafe(self.offer, event)
        except RuntimeError:
            # The serving loop is gone; the connection is being torn down.
            self.dropped += 1

    def close(self) -> None:
        """End iteration for the consumer. Safe to call from any thread, more than once."""
        if _running_loop() is self._loop:
            self._close_on_loop()
            return
        try:
            self._loop.call_soon_threadsafe(self._close_on_loop)
        except RuntimeError:
            self.closed = True

    def _close_on_loop(self) -> None:
        if self.closed:
            return
        self.closed = True
        # Make room for the sentinel; pending events are lost on close anyway.
        while self._queue.full():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    async def get(self) -> Any:
        """Wait for the next event; raises ``StopAsyncIteration`` once closed."""
        item = await self._queue.get()
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            raise StopAsyncIteration
        return item

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Any:
        return await self.get()


@dataclass
class _Stripe:
    lock: threading.Lock = field(default_factory=threading.Lock)
    handles: dict[Hashable, dict[int, Subscription]] = field(default_factory=dict)


class SubscriberRegistry:
    """Concurrency-safe mapping from a key to its live subscriptions."""

    def __init__(
        self,
        name: str,
        *,
        stripes: int | None = None,
        queue_size: int | None = None,
    ) -> None:
        self.name = name
        self._stripes = [_Stripe() for _ in range(max(1, stripes or settings.live_registry_stripes))]
        self._queue_size = queue_size or settings.live_queue_size
        self._connection_ids = itertools.count(1)

    def _stripe(self, key: Hashable) -> _Stripe:
        return self._stripes[hash(key) % len(self._stripes)]

    def subscribe(self, key: Hashable) -> Subscription:
        """Register a new subscription for ``key`` on the running event loop."""
        subscription = Subscription(
            key,
            next(self._connection_ids),
            asyncio.get_running_loop(),
            self._queue_size,
        )
        stripe = self._stripe(key)
        with stripe.lock:
            stripe.handles.setdefault(key, {})[subscription.connection_id] = subscription
        logger.debug("%s: registered %r", self.name, subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """Remove ``subscription`` and close it. Returns False if it was not registered."""
        stripe = self._stripe(subscription.key)
        with stripe.lock:
            handles = stripe.handles.get(subscription.key)
            removed = handles.pop(subscription.connection_id, None) if handles else None
            if handles is not None and not handles:
                del stripe.handles[subscription.key]
        subscription.close()
        if removed is not None:
            logger.debug("%s: unregistered %r", self.name, subscription)
        return removed is not None

    def publish(self, key: Hashable, event: Any) -> int:
        """Hand ``event`` to every subscription of ``key``; returns how many there were."""
        stripe = self._stripe(key)
        with stripe.lock:
            subscriptions = list(stripe.handles.get(key, {}).values())
        for subscription in subscriptions:
            subscription.deliver(event)
        return len(subscriptions)

    def subscriber_count(self, key: Hashable | None = None) -> int:
        """Return the number of live subscriptions, for one key or overall."""
        if key is not None:
            stripe = self._stripe(key)
            with stripe.lock:
                return len(stripe.handles.get(key, {}))
        total = 0
        for stripe in self._stripes:
            with stripe.lock:
                total += sum(len(handles) for handles in stripe.handles.values())
        return total

    def close_all(self) -> None:
        """Unregister and close every subscription (server shutdown)."""
        closing: list[Subscription] = []
        for stripe in self._stripes:
            with stripe.lock:
                for handles in stripe.handles.values():
                    closing.extend(handles.values())
                stripe.handles.clear()
        for subscription in closing:
            subscription.close()


@dataclass
class LiveHub:
    """The three live channels: timelines and notifications by user, comments by post."""

    timeline: SubscriberRegistry = field(default_factory=lambda: SubscriberRegistry("timeline"))
    notifications: SubscriberRegistry = field(
        default_factory=lambda: SubscriberRegistry("notifications")
    )
    comments: SubscriberRegistry = field(default_factory=lambda: SubscriberRegistry("comments"))

    def close_all(self) -> None:
        for registry in (self.timeline, self.notifications, self.comments):
            registry.close_all()


_hub = LiveHub()


def get_live_hub() -> LiveHub:
    """Return the process-wide live hub."""
    return _hub


def set_live_hub(hub: LiveHub) -> None:
    """Replace the process-wide live hub (used in tests)."""
    global _hub
    _hub = hub
