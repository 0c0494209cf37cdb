# tests/test_health.py
from typing import Any


def test_health_responds(client: Any) -> None:
    """Health endpoint answers without authentication."""
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_root_describes_api(client: Any) -> None:
    r = client.get("/")
    assert r.status_code == 200
    assert r.json()["name"] == "NutriSocial API"
