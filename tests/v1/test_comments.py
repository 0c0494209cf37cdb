"""Tests for comment endpoints."""

from fastapi import status


def _post_with_comment(client, author_headers, commenter_headers):
    post = client.post(
        "/api/social/posts", json={"content": "Breakfast smoothie"}, headers=author_headers
    ).json()
    comment = client.post(
        f"/api/social/posts/{post['id']}/comments",
        json={"content": "Which protein powder?"},
        headers=commenter_headers,
    ).json()
    return post, comment


def test_toggle_comment_like(client, alice_headers, bob_headers) -> None:
    post, comment = _post_with_comment(client, alice_headers, bob_headers)
    url = f"/api/social/comments/{comment['id']}/like"

    assert client.post(url, headers=alice_headers).json() == {"liked": True}
    listed = client.get(f"/api/social/posts/{post['id']}/comments", headers=alice_headers).json()
    assert listed[0]["likesCount"] == 1
    assert listed[0]["likedByMe"] is True

    assert client.post(url, headers=alice_headers).json() == {"liked": False}


def test_like_missing_comment(client, alice_headers) -> None:
    response = client.post("/api/social/comments/31337/like", headers=alice_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_update_comment(client, alice_headers, bob_headers) -> None:
    _, comment = _post_with_comment(client, alice_headers, bob_headers)
    url = f"/api/social/comments/{comment['id']}"

    assert client.patch(url, json={"content": "edit"}, headers=alice_headers).status_code == 403
    response = client.patch(url, json={"content": "Which brand of whey?"}, headers=bob_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["content"] == "Which brand of whey?"


def test_delete_comment_cascades(client, alice_headers, bob_headers, carol_headers) -> None:
    post, comment = _post_with_comment(client, alice_headers, bob_headers)
    client.post(f"/api/social/comments/{comment['id']}/like", headers=carol_headers)

    forbidden = client.delete(f"/api/social/comments/{comment['id']}", headers=carol_headers)
    assert forbidden.status_code == status.HTTP_403_FORBIDDEN

    response = client.delete(f"/api/social/comments/{comment['id']}", headers=bob_headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT

    detail = client.get(f"/api/social/posts/{post['id']}", headers=alice_headers).json()
    assert detail["commentsCount"] == 0
    liked = client.post(f"/api/social/comments/{comment['id']}/like", headers=carol_headers)
    assert liked.status_code == status.HTTP_404_NOT_FOUND
