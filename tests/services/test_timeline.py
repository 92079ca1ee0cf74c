"""Tests for publishing posts and timeline fan-out."""

import asyncio
import logging

import pytest
from sqlalchemy import func, select

from flock.models import Notification, Post, TimelineItem
from flock.services.errors import (
    InvalidContentError,
    InvalidSpoilerError,
    UnauthenticatedError,
)
from flock.services.timeline import create_post, fanout_post, timeline


def test_create_post_returns_author_timeline_item(db_session, alice) -> None:
    item = create_post(db_session, alice.id, "  first post  ", spoiler_of=" plot ", nsfw=True)

    assert item.post.content == "first post"
    assert item.post.spoiler_of == "plot"
    assert item.post.nsfw is True
    assert item.post.mine is True
    assert item.post.subscribed is True
    assert item.post.user.username == "alice"

    row = db_session.get(TimelineItem, item.id)
    assert (row.user_id, row.post_id) == (alice.id, item.post.id)


def test_fanout_reaches_each_follower_once(db_session, dispatcher, follow, alice, bob, carol) -> None:
    follow(bob, alice)
    follow(carol, alice)

    item = create_post(db_session, alice.id, "hello followers")
    dispatcher.join()

    rows = db_session.execute(
        select(TimelineItem.user_id, TimelineItem.post_id).order_by(TimelineItem.user_id)
    ).all()
    assert sorted(rows) == sorted(
        [(alice.id, item.post.id), (bob.id, item.post.id), (carol.id, item.post.id)]
    )


def test_fanout_skips_non_followers(db_session, dispatcher, follow, alice, bob, carol) -> None:
    follow(bob, alice)
    create_post(db_session, alice.id, "only bob sees this")
    dispatcher.join()

    assert [i.post.content for i in timeline(db_session, bob.id)] == ["only bob sees this"]
    assert timeline(db_session, carol.id) == []


@pytest.mark.parametrize(
    ("content", "spoiler_of", "error"),
    [
        ("", None, InvalidContentError),
        ("   ", None, InvalidContentError),
        ("x" * 481, None, InvalidContentError),
        ("fine", "", InvalidSpoilerError),
        ("fine", "  ", InvalidSpoilerError),
        ("fine", "s" * 65, InvalidSpoilerError),
    ],
)
def test_create_post_validation(db_session, alice, content, spoiler_of, error) -> None:
    with pytest.raises(error):
        create_post(db_session, alice.id, content, spoiler_of=spoiler_of)
    assert db_session.scalar(select(func.count()).select_from(Post)) == 0


def test_create_post_accepts_limits(db_session, alice) -> None:
    item = create_post(db_session, alice.id, "é" * 480, spoiler_of="s" * 64)
    assert len(item.post.content) == 480


def test_create_post_requires_user(db_session) -> None:
    with pytest.raises(UnauthenticatedError):
        create_post(db_session, None, "anonymous")


def test_timeline_backward_pagination(db_session, alice) -> None:
    created = [create_post(db_session, alice.id, f"post {n}") for n in range(5)]

    first_page = timeline(db_session, alice.id, last=2)
    assert [i.id for i in first_page] == [created[4].id, created[3].id]

    second_page = timeline(db_session, alice.id, last=2, before=first_page[-1].id)
    assert [i.id for i in second_page] == [created[2].id, created[1].id]

    third_page = timeline(db_session, alice.id, last=2, before=second_page[-1].id)
    assert [i.id for i in third_page] == [created[0].id]


@pytest.mark.background_failures
def test_fanout_failure_is_logged_and_post_kept(
    db_session, dispatcher, mocker, caplog, follow, alice, bob, carol
) -> None:
    follow(bob, alice)
    mocker.patch(
        "flock.services.timeline.queries.FANOUT_POST",
        select(func.missing_function()),
    )

    with caplog.at_level(logging.ERROR, logger="flock.services.dispatch"):
        item = create_post(db_session, alice.id, "still here @carol")
        dispatcher.join()

    assert "fanout_post" in caplog.text
    db_session.expire_all()
    assert db_session.get(Post, item.post.id) is not None
    assert timeline(db_session, bob.id) == []

    # Mentions are delivered even though fan-out failed.
    mentions = db_session.scalars(
        select(Notification).where(Notification.user_id == carol.id)
    ).all()
    assert [(n.type, n.post_id, n.actors) for n in mentions] == [
        ("mention", item.post.id, ["alice"])
    ]


def test_fanout_of_missing_post_is_a_no_op(db_session) -> None:
    assert fanout_post(db_session, 12345) == 0


@pytest.mark.asyncio
async def test_fanout_pushes_to_streaming_followers(
    db_session, dispatcher, live_hub, follow, alice, bob
) -> None:
    follow(bob, alice)
    subscription = live_hub.timeline.subscribe(bob.id)

    item = create_post(db_session, alice.id, "live!")
    await asyncio.to_thread(dispatcher.join)

    event = await asyncio.wait_for(subscription.get(), timeout=2)
    assert event.post.id == item.post.id
    assert event.post.content == "live!"
    assert event.id != item.id
    live_hub.timeline.unsubscribe(subscription)
