# tests/test_health.py
from typing import Any

from fastapi import status


def test_health(client: Any) -> None:
    """Health check answers ok."""
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


def test_root_describes_service(client: Any) -> None:
    """The root endpoint names the service and its docs."""
    data = client.get("/").json()
    assert data["name"]
    assert data["docs"] == "/docs"
