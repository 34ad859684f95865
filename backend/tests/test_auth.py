from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from hrdesk.config import settings
from hrdesk.token_utils import create_token


def test_healthz_is_open(client: TestClient):
    resp = client.get("/healthz")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_protected_routes_require_token(client: TestClient):
    for path in ("/feed", "/changes", "/records/vacation_requests", "/equipment", "/news"):
        assert client.get(path).status_code == 401
    assert client.get("/feed", headers={"Authorization": "Bearer not-a-token"}).status_code == 401


def test_wrong_password(client: TestClient):
    resp = client.post("/auth/login", json={"password": "incorrecta"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Contraseña incorrecta"


def test_login_and_logout(client: TestClient):
    login = client.post("/auth/login", json={"password": settings.access_password})
    assert login.status_code == 200
    assert login.json()["expires_at"] is not None
    headers = {"Authorization": f"Bearer {login.json()['token']}"}

    assert client.get("/feed", headers=headers).status_code == 200
    assert client.post("/auth/logout", headers=headers).status_code == 204
    assert client.get("/feed", headers=headers).status_code == 401


def test_expired_token_is_rejected(client: TestClient, session: Session):
    _, value = create_token(session, ttl_minutes=-5)
    assert client.get("/feed", headers={"Authorization": f"Bearer {value}"}).status_code == 401


def test_token_without_expiry(client: TestClient, session: Session):
    token, value = create_token(session, ttl_minutes=0)
    assert token.expires_at is None
    assert client.get("/feed", headers={"Authorization": f"Bearer {value}"}).status_code == 200


def test_change_versions_advance_on_writes(auth_client: TestClient):
    before = auth_client.get("/changes").json()["versions"]
    assert set(before) == {
        "vacation_requests",
        "travel_notifications",
        "it_equipment_requests",
        "news_updates",
        "equipos_ti",
    }

    auth_client.post("/news", json={"title": "Aviso", "published_for": "2024-02-10"})

    after = auth_client.get("/changes").json()["versions"]
    assert after["news_updates"] == before["news_updates"] + 1
    assert after["equipos_ti"] == before["equipos_ti"]
