# tests/test_health.py
from fastapi import status
from fastapi.testclient import TestClient


def test_health_check(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


def test_root_describes_api(client: TestClient) -> None:
    """The root endpoint names the API and points at the docs."""
    response = client.get("/")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["name"].endswith("API")
    assert data["docs"] == "/docs"


def test_unexpected_error_returns_internal_error(app, auth_token, mocker, caplog) -> None:
    """Exceptions the services do not map are logged and rendered as a bare 500."""
    mocker.patch(
        "chatline.services.accounts.list_contacts",
        side_effect=RuntimeError("database exploded"),
    )

    with TestClient(app, raise_server_exceptions=False) as test_client:
        response = test_client.get("/api/users", headers=auth_token)

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"detail": "Internal server error"}
    assert "database exploded" in caplog.text
