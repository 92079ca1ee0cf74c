# mypy: ignore-errors
"""Tests for server-sent event framing and stream lifetime."""

import asyncio
import json
from datetime import datetime, timezone

import pytest
from fastapi import status
from starlette.requests import Request

from flock.api.v1.streaming import (
    KEEPALIVE,
    event_stream_response,
    sse_events,
    sse_format,
    wants_event_stream,
)
from flock.schemas import NotificationOut
from flock.services.live import SubscriberRegistry


class _FakeRequest:
    def __init__(self, disconnected: bool = False) -> None:
        self.disconnected = disconnected

    async def is_disconnected(self) -> bool:
        return self.disconnected


def _request_with_accept(accept: str) -> Request:
    return Request({"type": "http", "headers": [(b"accept", accept.encode())]})


@pytest.mark.parametrize(
    ("accept", "expected"),
    [
        ("text/event-stream", True),
        ("application/json, text/event-stream", True),
        ("application/json", False),
        ("", False),
    ],
)
def test_wants_event_stream(accept, expected) -> None:
    assert wants_event_stream(_request_with_accept(accept)) is expected


def test_sse_format_frames_models_and_dicts() -> None:
    issued_at = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    notification = NotificationOut(
        id=1, actors=["bob"], type="follow", read=False, issued_at=issued_at
    )

    frame = sse_format(notification)
    assert frame.startswith("data: ")
    assert frame.endswith("\n\n")
    assert json.loads(frame[len("data: "):])["actors"] == ["bob"]

    assert sse_format({"n": 1}) == 'data: {"n": 1}\n\n'


async def _start(stream, registry: SubscriberRegistry, key) -> asyncio.Task:
    """Begin pulling the first frame and wait until the stream has subscribed."""
    first = asyncio.ensure_future(stream.__anext__())
    for _ in range(100):
        if registry.subscriber_count(key):
            break
        await asyncio.sleep(0)
    assert registry.subscriber_count(key) == 1
    return first


@pytest.mark.asyncio
async def test_events_are_streamed_in_order() -> None:
    registry = SubscriberRegistry("test")
    stream = sse_events(_FakeRequest(), registry, 1, keepalive=5)

    first = await _start(stream, registry, 1)
    registry.publish(1, {"n": 1})
    registry.publish(1, {"n": 2})
    assert await first == 'data: {"n": 1}\n\n'
    assert await stream.__anext__() == 'data: {"n": 2}\n\n'

    await stream.aclose()
    assert registry.subscriber_count() == 0


@pytest.mark.asyncio
async def test_idle_stream_sends_keepalive() -> None:
    registry = SubscriberRegistry("test")
    stream = sse_events(_FakeRequest(), registry, 1, keepalive=0.01)

    assert await stream.__anext__() == KEEPALIVE
    await stream.aclose()
    assert registry.subscriber_count() == 0


@pytest.mark.asyncio
async def test_disconnected_client_is_unsubscribed() -> None:
    registry = SubscriberRegistry("test")

    frames = [frame async for frame in sse_events(_FakeRequest(disconnected=True), registry, 1)]
    assert frames == []
    assert registry.subscriber_count() == 0


@pytest.mark.asyncio
async def test_stream_ends_when_registry_closes() -> None:
    registry = SubscriberRegistry("test")
    stream = sse_events(_FakeRequest(), registry, 1, keepalive=5)

    first = await _start(stream, registry, 1)
    registry.publish(1, {"n": 1})
    assert await first == 'data: {"n": 1}\n\n'
    registry.close_all()
    assert [frame async for frame in stream] == []


@pytest.mark.asyncio
async def test_cancelled_stream_is_unsubscribed() -> None:
    registry = SubscriberRegistry("test")
    stream = sse_events(_FakeRequest(), registry, 1, keepalive=5)

    first = await _start(stream, registry, 1)
    first.cancel()
    with pytest.raises(asyncio.CancelledError):
        await first
    await stream.aclose()
    assert registry.subscriber_count() == 0


@pytest.mark.asyncio
async def test_unstarted_response_leaves_no_subscription() -> None:
    registry = SubscriberRegistry("test")

    response = event_stream_response(_FakeRequest(), registry, 1)
    assert response.media_type == "text/event-stream"
    assert response.headers["cache-control"] == "no-cache"
    assert registry.subscriber_count() == 0

    # The body is dropped without ever being iterated, as when the send fails.
    await response.body_iterator.aclose()
    assert registry.subscriber_count() == 0


def test_anonymous_streams_are_rejected(client) -> None:
    headers = {"Accept": "text/event-stream"}
    assert client.get("/api/v1/timeline", headers=headers).status_code == status.HTTP_401_UNAUTHORIZED
    assert (
        client.get("/api/v1/notifications", headers=headers).status_code
        == status.HTTP_401_UNAUTHORIZED
    )
    assert (
        client.get("/api/v1/posts/999/comments", headers=headers).status_code
        == status.HTTP_404_NOT_FOUND
    )
