"""End-to-end tests for the JSON API through FastAPI's TestClient."""
from __future__ import annotations

import re
from dataclasses import replace
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from cardauth.app import create_app
from cardauth.domain.entities import RiskDecision
from cardauth.domain.errors import InfrastructureError
from cardauth.services.risk_service import StaticRiskClassifier
from cardauth.services.session_service import SESSION_COOKIE_NAME

JOHN = {"name": "John", "lastname": "Doe", "email": "john.doe@example.com", "password": "password123"}


@pytest.fixture()
def make_client(settings, db, hasher):
    clients = []

    def _make(fraudulent: bool = False, classifier=None, **overrides) -> TestClient:
        app = create_app(
            settings=replace(settings, **overrides),
            database=db,
            risk_classifier=classifier or StaticRiskClassifier(fraudulent=fraudulent),
            hasher=hasher,
        )
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture()
def client(make_client):
    return make_client()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Request-ID"]


def test_register_and_duplicate(client):
    response = client.post("/auth/register", json=JOHN)
    assert response.status_code == 201
    assert response.json()["message"] == "User registered successfully"

    response = client.post("/auth/register", json={**JOHN, "name": "Jane", "password": "password456"})
    assert response.status_code == 409
    assert response.json() == {"status": "duplicate-email", "detail": "Email already exists"}


def test_register_rejects_blank_fields(client):
    response = client.post("/auth/register", json={**JOHN, "name": "  "})
    assert response.status_code == 422


def test_login_success_sets_session(client):
    client.post("/auth/register", json=JOHN)
    response = client.post(
        "/auth/login",
        json={"email": JOHN["email"], "password": JOHN["password"], "location": "Lisbon"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "success"
    assert body["token"]
    assert response.cookies.get(SESSION_COOKIE_NAME) == body["token"]


def test_bad_credentials_and_fraud_look_the_same(make_client):
    client = make_client()
    client.post("/auth/register", json=JOHN)
    wrong_password = client.post("/auth/login", json={"email": JOHN["email"], "password": "wrongpassword"})
    unknown_email = client.post("/auth/login", json={"email": "ghost@example.com", "password": "wrongpassword"})

    fraud_client = make_client(fraudulent=True)
    fraud = fraud_client.post("/auth/login", json={"email": JOHN["email"], "password": JOHN["password"]})

    for response in (wrong_password, unknown_email, fraud):
        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid email or password"}
    assert SESSION_COOKIE_NAME not in fraud.cookies


def test_card_requires_session(client):
    assert client.get("/cards/me").status_code == 401
    assert client.get("/cards/me", headers={"Authorization": "Bearer nope"}).status_code == 401


def test_card_is_created_once_and_hides_cvv(client):
    client.post("/auth/register", json={"name": "Alice", "lastname": "Smith", "email": "alice.smith@example.com", "password": "password123"})
    token = client.post("/auth/login", json={"email": "alice.smith@example.com", "password": "password123"}).json()["token"]
    headers = {"Authorization": f"Bearer {token}"}

    first = client.get("/cards/me", headers=headers)
    assert first.status_code == 200
    card = first.json()
    assert set(card) == {"cardNumber", "cardholderName", "expiryDate"}
    assert len(card["cardNumber"]) == 16
    assert card["cardholderName"] == "Alice Smith"

    second = client.get("/cards/me", headers=headers)
    assert second.json()["cardNumber"] == card["cardNumber"]


def test_logout_invalidates_session_and_is_idempotent(client):
    client.post("/auth/register", json=JOHN)
    token = client.post("/auth/login", json={"email": JOHN["email"], "password": JOHN["password"]}).json()["token"]
    headers = {"Authorization": f"Bearer {token}"}

    assert client.post("/auth/logout", headers=headers).status_code == 204
    assert client.get("/cards/me", headers=headers).status_code == 401
    assert client.post("/auth/logout", headers=headers).status_code == 204
    assert client.post("/auth/logout").status_code == 204


def test_infrastructure_error_is_generic_503(client, monkeypatch):
    def boom(*args, **kwargs):
        raise InfrastructureError("create_user failed: connection refused to db.internal:5432")

    monkeypatch.setattr(client.app.state.auth_service.users, "create_user", boom)
    response = client.post("/auth/register", json=JOHN)
    assert response.status_code == 503
    assert response.json() == {"detail": "Service temporarily unavailable"}


def test_login_is_rate_limited(client):
    statuses = [
        client.post("/auth/login", json={"email": "ghost@example.com", "password": "x"}).status_code
        for _ in range(11)
    ]
    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429


def test_rotating_forwarded_for_does_not_bypass_login_limit(client):
    statuses = [
        client.post(
            "/auth/login",
            json={"email": "ghost@example.com", "password": "x"},
            headers={"X-Forwarded-For": f"198.51.100.{i}"},
        ).status_code
        for i in range(11)
    ]
    assert statuses[:10] == [401] * 10
    assert statuses[10] == 429


def test_forwarded_for_is_honoured_behind_trusted_proxy(make_client):
    client = make_client(trust_proxy_headers=True)

    def attempt(ip):
        return client.post(
            "/auth/login",
            json={"email": "ghost@example.com", "password": "x"},
            headers={"X-Forwarded-For": f"{ip}, 10.0.0.1"},
        ).status_code

    assert [attempt("198.51.100.7") for _ in range(10)] == [401] * 10
    assert attempt("198.51.100.7") == 429
    assert attempt("203.0.113.9") == 401


def test_rate_limits_are_per_app(make_client):
    first = make_client()
    for _ in range(10):
        first.post("/auth/login", json={"email": "ghost@example.com", "password": "x"})
    assert first.post("/auth/login", json={"email": "ghost@example.com", "password": "x"}).status_code == 429

    second = make_client()
    assert second.post("/auth/login", json={"email": "ghost@example.com", "password": "x"}).status_code == 401


def test_session_cookie_follows_app_settings(make_client):
    client = make_client(app_env="prod", session_ttl_seconds=600)
    client.post("/auth/register", json=JOHN)
    response = client.post("/auth/login", json={"email": JOHN["email"], "password": JOHN["password"]})
    assert response.status_code == 200

    cookie = response.headers["set-cookie"]
    assert cookie.startswith(f"{SESSION_COOKIE_NAME}=")
    assert "secure" in cookie.lower()
    assert "httponly" in cookie.lower()
    max_age = int(re.search(r"Max-Age=(\d+)", cookie, re.IGNORECASE).group(1))
    assert 590 <= max_age <= 600


def test_session_cookie_is_not_secure_outside_prod(client):
    client.post("/auth/register", json=JOHN)
    response = client.post("/auth/login", json={"email": JOHN["email"], "password": JOHN["password"]})
    assert "secure" not in response.headers["set-cookie"].lower()


def test_login_hour_comes_from_server_clock(make_client):
    seen = []

    class RecordingClassifier:
        def score(self, features):
            seen.append(features)
            return RiskDecision(fraudulent=False)

    client = make_client(classifier=RecordingClassifier())
    client.post("/auth/register", json=JOHN)
    before = datetime.now(timezone.utc)
    claimed = before.replace(hour=(before.hour + 12) % 24)
    response = client.post(
        "/auth/login",
        json={"email": JOHN["email"], "password": JOHN["password"], "login_time": claimed.isoformat()},
    )
    after = datetime.now(timezone.utc)

    assert response.status_code == 200
    assert len(seen) == 1
    assert seen[0].hour in {before.hour, after.hour}
    assert seen[0].hour != claimed.hour
