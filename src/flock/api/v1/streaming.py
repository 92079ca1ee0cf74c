"""Server-sent event responses backed by the live subscriber registry."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Hashable
from typing import Any

from fastapi import Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from flock.core.settings import settings
from flock.services.live import SubscriberRegistry, Subscription

logger = logging.getLogger(__name__)

EVENT_STREAM = "text/event-stream"
KEEPALIVE = ":\n\n"


def wants_event_stream(request: Request) -> bool:
    """Return True when the client asked for a text event stream."""
    return EVENT_STREAM in request.headers.get("accept", "")


def sse_format(event: Any) -> str:
    """Frame one event as a single ``data:`` line of JSON."""
    if isinstance(event, BaseModel):
        payload = event.model_dump_json()
    else:
        payload = json.dumps(event, default=str)
    return f"data: {payload}\n\n"


async def sse_events(
    request: Request,
    registry: SubscriberRegistry,
    key: Hashable,
    keepalive: float | None = None,
) -> AsyncIterator[str]:
    """Subscribe to ``key`` and drain its events into SSE frames until the client goes away.

    The subscription only exists while this generator runs, so it is
    unregistered on every exit path: client disconnect, task cancellation, or
    the registry closing it at shutdown. A response whose body never starts
    leaves nothing behind.
    """
    interval = keepalive if keepalive is not None else settings.sse_keepalive_seconds
    subscription: Subscription | None = None
    try:
        subscription = registry.subscribe(key)
        while True:
            if await request.is_disconnected():
                break
            try:
                event = await asyncio.wait_for(subscription.get(), timeout=interval)
            except asyncio.TimeoutError:
                yield KEEPALIVE
                continue
            except StopAsyncIteration:
                break
            yield sse_format(event)
    finally:
        if subscription is not None:
            registry.unsubscribe(subscription)
        logger.debug("%s: stream for %r ended", registry.name, key)


def event_stream_response(
    request: Request, registry: SubscriberRegistry, key: Hashable
) -> StreamingResponse:
    """Stream the events published under ``key`` to the client."""
    return StreamingResponse(
        sse_events(request, registry, key),
        media_type=EVENT_STREAM,
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
