# mypy: ignore-errors
"""Tests for notification endpoints."""

from fastapi import status

from tests.conftest import auth_headers


def test_follow_notification_lifecycle(client, dispatcher, alice, bob, carol, alice_auth) -> None:
    client.post("/api/v1/users/alice/toggle_follow", headers=auth_headers(bob))
    dispatcher.join()
    client.post("/api/v1/users/alice/toggle_follow", headers=auth_headers(carol))
    dispatcher.join()

    assert client.get("/api/v1/notifications/has_unread", headers=alice_auth).json() == {
        "has_unread": True
    }
    listed = client.get("/api/v1/notifications", headers=alice_auth).json()
    assert len(listed) == 1
    assert listed[0]["type"] == "follow"
    assert listed[0]["actors"] == ["carol", "bob"]
    assert listed[0]["post_id"] is None

    response = client.post(
        f"/api/v1/notifications/{listed[0]['id']}/mark_as_read", headers=alice_auth
    )
    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert client.get("/api/v1/notifications/has_unread", headers=alice_auth).json() == {
        "has_unread": False
    }


def test_mark_someone_elses_notification(client, dispatcher, alice, bob, alice_auth) -> None:
    client.post("/api/v1/users/bob/toggle_follow", headers=alice_auth)
    dispatcher.join()
    (notification,) = client.get("/api/v1/notifications", headers=auth_headers(bob)).json()

    response = client.post(
        f"/api/v1/notifications/{notification['id']}/mark_as_read", headers=alice_auth
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_mark_all_notifications_as_read(client, dispatcher, alice, bob, alice_auth, bob_auth) -> None:
    client.post("/api/v1/users/bob/toggle_follow", headers=alice_auth)
    dispatcher.join()

    response = client.post("/api/v1/mark_notifications_as_read", headers=bob_auth)
    assert response.status_code == status.HTTP_204_NO_CONTENT
    listed = client.get("/api/v1/notifications", headers=bob_auth).json()
    assert [n["read"] for n in listed] == [True]


def test_notifications_require_auth(client) -> None:
    assert client.get("/api/v1/notifications").status_code == status.HTTP_401_UNAUTHORIZED
    assert (
        client.get("/api/v1/notifications/has_unread").status_code
        == status.HTTP_401_UNAUTHORIZED
    )
    assert (
        client.post("/api/v1/mark_notifications_as_read").status_code
        == status.HTTP_401_UNAUTHORIZED
    )
