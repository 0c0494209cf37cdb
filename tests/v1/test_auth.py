"""Tests for bearer authentication on the social API."""

from datetime import timedelta

import pytest
from fastapi import status

from nutri_social.core.security import create_access_token, decode_access_token

PROTECTED = [
    ("get", "/api/social/posts"),
    ("post", "/api/social/posts"),
    ("post", "/api/social/posts/1/like"),
    ("get", "/api/social/posts/1/comments"),
    ("post", "/api/social/comments/1/like"),
    ("get", "/api/social/challenges"),
    ("get", "/api/social/challenges/active"),
    ("post", "/api/social/challenges/1/join"),
    ("get", "/api/social/recipes"),
    ("post", "/api/social/recipes/1/favorite"),
    ("post", "/api/social/recipes/1/rate"),
    ("get", "/api/social/users"),
    ("post", "/api/social/users/1/follow"),
    ("get", "/api/social/users/1/followers"),
    ("get", "/api/social/users/1/following"),
    ("get", "/api/social/users/1/is-following"),
]


@pytest.mark.parametrize(("method", "path"), PROTECTED)
def test_requires_authentication(client, method, path) -> None:
    response = client.request(method, path)

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.headers["www-authenticate"] == "Bearer"


def test_invalid_token(client) -> None:
    response = client.get("/api/social/posts", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_expired_token(client, alice) -> None:
    token = create_access_token(alice.id, expires_delta=timedelta(minutes=-5))

    response = client.get("/api/social/posts", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_token_for_deleted_user(client) -> None:
    token = create_access_token(987654)

    response = client.get("/api/social/posts", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "User not found"


def test_token_round_trip() -> None:
    assert decode_access_token(create_access_token(42)) == 42
    assert decode_access_token("garbage") is None
