# mypy: ignore-errors
"""Tests for post, comment and timeline endpoints."""

from fastapi import status

from tests.conftest import auth_headers


def _publish(client, headers, content="Test post content", **extra) -> dict:
    response = client.post("/api/v1/posts", json={"content": content, **extra}, headers=headers)
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


def test_create_post_success(client, alice, alice_auth) -> None:
    data = _publish(client, alice_auth, spoiler_of="ending", nsfw=True)
    assert data["post"]["content"] == "Test post content"
    assert data["post"]["spoiler_of"] == "ending"
    assert data["post"]["nsfw"] is True
    assert data["post"]["mine"] is True
    assert data["post"]["user"]["username"] == "alice"

    response = client.get(f"/api/v1/posts/{data['post']['id']}")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["mine"] is False


def test_create_post_rejects_bad_input(client, alice_auth) -> None:
    response = client.post("/api/v1/posts", json={"content": "   "}, headers=alice_auth)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT
    assert response.json()["detail"] == "invalid content"

    response = client.post(
        "/api/v1/posts", json={"content": "ok", "spoiler_of": "x" * 65}, headers=alice_auth
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_CONTENT
    assert response.json()["detail"] == "invalid spoiler"


def test_create_post_requires_auth(client) -> None:
    response = client.post("/api/v1/posts", json={"content": "hi"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_get_missing_post(client) -> None:
    assert client.get("/api/v1/posts/404").status_code == status.HTTP_404_NOT_FOUND


def test_timeline_after_fanout(client, dispatcher, follow, alice, bob, alice_auth, bob_auth) -> None:
    follow(bob, alice)
    created = [_publish(client, alice_auth, f"post {n}") for n in range(5)]
    dispatcher.join()

    page = client.get("/api/v1/timeline", params={"last": 2}, headers=bob_auth).json()
    assert [item["post"]["id"] for item in page] == [
        created[4]["post"]["id"],
        created[3]["post"]["id"],
    ]

    older = client.get(
        "/api/v1/timeline", params={"last": 2, "before": page[-1]["id"]}, headers=bob_auth
    ).json()
    assert [item["post"]["id"] for item in older] == [
        created[2]["post"]["id"],
        created[1]["post"]["id"],
    ]
    assert client.get("/api/v1/timeline").status_code == status.HTTP_401_UNAUTHORIZED


def test_toggle_post_like(client, alice, bob_auth, alice_auth) -> None:
    post_id = _publish(client, alice_auth)["post"]["id"]

    liked = client.post(f"/api/v1/posts/{post_id}/toggle_like", headers=bob_auth)
    assert liked.json() == {"liked": True, "likes_count": 1}
    assert client.get(f"/api/v1/posts/{post_id}", headers=bob_auth).json()["liked"] is True

    unliked = client.post(f"/api/v1/posts/{post_id}/toggle_like", headers=bob_auth)
    assert unliked.json() == {"liked": False, "likes_count": 0}

    missing = client.post("/api/v1/posts/999/toggle_like", headers=bob_auth)
    assert missing.status_code == status.HTTP_404_NOT_FOUND


def test_comments_flow(client, dispatcher, alice, bob, alice_auth, bob_auth) -> None:
    post_id = _publish(client, alice_auth)["post"]["id"]

    response = client.post(
        f"/api/v1/posts/{post_id}/comments", json={"content": "first!"}, headers=bob_auth
    )
    assert response.status_code == status.HTTP_201_CREATED
    comment = response.json()
    assert comment["mine"] is True
    assert comment["user"]["username"] == "bob"
    dispatcher.join()

    post = client.get(f"/api/v1/posts/{post_id}", headers=bob_auth).json()
    assert post["comments_count"] == 1
    assert post["subscribed"] is True

    like = client.post(f"/api/v1/comments/{comment['id']}/toggle_like", headers=alice_auth)
    assert like.json() == {"liked": True, "likes_count": 1}

    listed = client.get(f"/api/v1/posts/{post_id}/comments", headers=alice_auth).json()
    assert [(c["content"], c["liked"], c["mine"]) for c in listed] == [("first!", True, False)]

    unsubscribed = client.post(f"/api/v1/posts/{post_id}/toggle_subscription", headers=bob_auth)
    assert unsubscribed.json() == {"subscribed": False}


def test_comment_on_missing_post(client, bob_auth) -> None:
    response = client.post("/api/v1/posts/999/comments", json={"content": "hi"}, headers=bob_auth)
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert client.get("/api/v1/posts/999/comments").status_code == status.HTTP_404_NOT_FOUND


def test_user_posts_pagination(client, alice, alice_auth) -> None:
    ids = [_publish(client, alice_auth, f"post {n}")["post"]["id"] for n in range(3)]

    page = client.get("/api/v1/users/alice/posts", params={"last": 2}).json()
    assert [p["id"] for p in page] == [ids[2], ids[1]]
    page = client.get("/api/v1/users/alice/posts", params={"before": ids[1]}).json()
    assert [p["id"] for p in page] == [ids[0]]


def test_comment_like_on_missing_comment(client, alice) -> None:
    response = client.post("/api/v1/comments/12/toggle_like", headers=auth_headers(alice))
    assert response.status_code == status.HTTP_404_NOT_FOUND
