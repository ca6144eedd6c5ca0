"""
tests/test_api_routes.py -- Integration tests for the SecretKeeper HTTP API.

Covers:
  - register/login: token in body, Authorization header and cookie; 409 on
    duplicate; identical 401 for unknown login and wrong password
  - the Auth Gate on every secret route: 401 without a session, 401 after
    token expiry, Authorization header echoed on success
  - credentials, notes and cards end to end, including 204 on no data
  - request validation (422), including the 72-byte bcrypt password limit,
    and non-object bodies (400)
  - corrupt stored values answer a generic 500 without leaking details
  - health endpoint and TrustedHost rejection
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from api.main import app

SECRET_ROUTES = [
    "/api/v1/save/credentials",
    "/api/v1/get/credentials",
    "/api/v1/update/credentials",
    "/api/v1/delete/credentials",
    "/api/v1/save/note",
    "/api/v1/get/note",
    "/api/v1/update/note",
    "/api/v1/delete/note",
    "/api/v1/save/card",
    "/api/v1/get/card",
    "/api/v1/delete/card",
]


def _register(client: TestClient, login: str, password: str = "pw1"):
    resp = client.post("/api/v1/auth/register", json={"login": login, "password": password})
    assert resp.status_code == 200, resp.text
    return resp


# ---------------------------------------------------------------------------
# Register / login
# ---------------------------------------------------------------------------


def test_register_issues_session(api_client):
    client, _ = api_client
    resp = _register(client, "alice")

    data = resp.json()
    assert data["username"] == "alice"
    assert data["token_type"] == "bearer"
    assert data["expires_in"] == 3600
    assert resp.headers["Authorization"] == f"Bearer {data['access_token']}"
    assert resp.headers["Cache-Control"] == "no-store"
    set_cookie = resp.headers["set-cookie"].lower()
    assert "token=" in set_cookie
    assert "httponly" in set_cookie
    assert app.state.sessions.get("alice") == f"Bearer {data['access_token']}"


def test_register_duplicate_returns_409(api_client):
    client, _ = api_client
    _register(client, "dup-user")
    resp = client.post("/api/v1/auth/register", json={"login": "dup-user", "password": "other"})
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "duplicate_user"


def test_login_success(api_client):
    client, _ = api_client
    _register(client, "login-ok")
    resp = client.post("/api/v1/auth/login", json={"login": "login-ok", "password": "pw1"})
    assert resp.status_code == 200
    assert resp.json()["username"] == "login-ok"
    assert resp.headers["Authorization"].startswith("Bearer ")


def test_login_failures_are_indistinguishable(api_client):
    client, _ = api_client
    _register(client, "login-bad")
    session_before = app.state.sessions.get("login-bad")
    wrong_pw = client.post("/api/v1/auth/login", json={"login": "login-bad", "password": "nope"})
    unknown = client.post("/api/v1/auth/login", json={"login": "ghost", "password": "nope"})

    assert wrong_pw.status_code == unknown.status_code == 401
    assert wrong_pw.json() == unknown.json()
    assert wrong_pw.json()["error"]["code"] == "bad_credentials"
    assert "Authorization" not in wrong_pw.headers
    assert wrong_pw.headers["Cache-Control"] == unknown.headers["Cache-Control"] == "no-store"
    assert app.state.sessions.get("ghost") is None
    assert app.state.sessions.get("login-bad") == session_before


def test_multibyte_password_at_byte_limit_registers(api_client):
    client, _ = api_client
    password = "\u20ac" * 24  # 72 bytes in UTF-8
    _register(client, "euro-ok", password=password)
    resp = client.post("/api/v1/auth/login", json={"login": "euro-ok", "password": password})
    assert resp.status_code == 200


def test_multibyte_password_over_byte_limit_is_rejected(api_client):
    client, _ = api_client
    resp = client.post("/api/v1/auth/register", json={"login": "euro-long", "password": "\u20ac" * 25})
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "validation_error"
    assert "72 bytes" in resp.json()["error"]["detail"]


@pytest.mark.parametrize(
    "body",
    [{"login": "", "password": "pw1"}, {"login": "x", "password": ""}, {"login": "x"}, {"login": "x", "password": "p" * 65}],
)
def test_register_validation(api_client, body):
    client, _ = api_client
    resp = client.post("/api/v1/auth/register", json=body)
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "validation_error"


# ---------------------------------------------------------------------------
# Auth Gate
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("path", SECRET_ROUTES)
def test_secret_routes_require_session(api_client, path):
    client, _ = api_client
    resp = client.post(path, json={"user_name": "never-logged-in"})
    assert resp.status_code == 401
    assert resp.json()["error"]["code"] == "unauthenticated"


def test_missing_user_name_is_unauthenticated(api_client):
    client, _ = api_client
    resp = client.post("/api/v1/get/note", json={"title": "wifi"})
    assert resp.status_code == 401


def test_non_object_body_is_bad_request(api_client):
    client, _ = api_client
    resp = client.post("/api/v1/get/note", json=["alice"])
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "bad_request"


def test_success_echoes_authorization_header(api_client):
    client, _ = api_client
    token = _register(client, "echo").json()["access_token"]
    resp = client.post(
        "/api/v1/save/note",
        json={"user_name": "echo", "title": "t", "content": "c"},
    )
    assert resp.status_code == 200
    assert resp.headers["Authorization"] == f"Bearer {token}"


def test_expired_session_is_rejected_until_next_login(api_client):
    client, clock = api_client
    start = clock.now
    _register(client, "expiring")
    try:
        clock.advance(hours=1)
        resp = client.post("/api/v1/get/note", json={"user_name": "expiring"})
        assert resp.status_code == 401

        client.post("/api/v1/auth/login", json={"login": "expiring", "password": "pw1"})
        resp = client.post("/api/v1/get/note", json={"user_name": "expiring"})
        assert resp.status_code == 204
    finally:
        clock.now = start


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


def test_credentials_flow(api_client):
    client, _ = api_client
    _register(client, "cred-user")

    resp = client.post("/api/v1/get/credentials", json={"user_name": "cred-user"})
    assert resp.status_code == 204
    assert resp.content == b""

    resp = client.post(
        "/api/v1/save/credentials",
        json={"user_name": "cred-user", "login": "mail", "password": "s3cret", "metadata": "personal"},
    )
    assert resp.status_code == 200
    client.post("/api/v1/save/credentials", json={"user_name": "cred-user", "login": "bank", "password": "b4nk"})

    resp = client.post("/api/v1/get/credentials", json={"user_name": "cred-user"})
    assert resp.status_code == 200
    assert resp.json() == [
        {"user_name": "cred-user", "login": "mail", "password": "s3cret", "metadata": "personal"},
        {"user_name": "cred-user", "login": "bank", "password": "b4nk", "metadata": None},
    ]

    resp = client.post(
        "/api/v1/update/credentials",
        json={"user_name": "cred-user", "login": "mail", "password": "n3w"},
    )
    assert resp.status_code == 200
    resp = client.post("/api/v1/get/credentials", json={"user_name": "cred-user", "login": "mail"})
    assert [c["password"] for c in resp.json()] == ["n3w"]

    resp = client.post("/api/v1/delete/credentials", json={"user_name": "cred-user", "login": "mail"})
    assert resp.status_code == 200
    assert resp.json()["message"] == "credentials for user 'cred-user' with login 'mail' were successfully deleted"

    resp = client.post("/api/v1/delete/credentials", json={"user_name": "cred-user"})
    assert resp.json()["message"] == "credentials for user 'cred-user' were successfully deleted"
    assert client.post("/api/v1/get/credentials", json={"user_name": "cred-user"}).status_code == 204


def test_update_missing_credentials_is_no_data(api_client):
    client, _ = api_client
    _register(client, "cred-missing")
    resp = client.post(
        "/api/v1/update/credentials",
        json={"user_name": "cred-missing", "login": "nothing", "password": "x"},
    )
    assert resp.status_code == 204


def test_save_credentials_requires_password(api_client):
    client, _ = api_client
    _register(client, "cred-invalid")
    resp = client.post("/api/v1/save/credentials", json={"user_name": "cred-invalid", "login": "mail"})
    assert resp.status_code == 422


def test_records_are_scoped_to_the_claimed_user(api_client):
    client, _ = api_client
    _register(client, "owner")
    _register(client, "other")
    client.post("/api/v1/save/credentials", json={"user_name": "owner", "login": "mail", "password": "p"})
    resp = client.post("/api/v1/get/credentials", json={"user_name": "other"})
    assert resp.status_code == 204


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


def test_notes_flow(api_client):
    client, _ = api_client
    _register(client, "note-user")

    client.post("/api/v1/save/note", json={"user_name": "note-user", "title": "wifi", "content": "pa55"})
    client.post("/api/v1/save/note", json={"user_name": "note-user", "title": "empty"})

    resp = client.post("/api/v1/get/note", json={"user_name": "note-user"})
    assert [(n["title"], n["content"]) for n in resp.json()] == [("wifi", "pa55"), ("empty", "")]

    resp = client.post("/api/v1/update/note", json={"user_name": "note-user", "title": "wifi", "content": "n3w"})
    assert resp.status_code == 200
    resp = client.post("/api/v1/get/note", json={"user_name": "note-user", "title": "wifi"})
    assert resp.json()[0]["content"] == "n3w"

    resp = client.post("/api/v1/update/note", json={"user_name": "note-user", "title": "ghost", "content": "x"})
    assert resp.status_code == 204

    resp = client.post("/api/v1/delete/note", json={"user_name": "note-user", "title": "wifi"})
    assert resp.json()["message"] == "notes for user 'note-user' with title 'wifi' were successfully deleted"
    resp = client.post("/api/v1/get/note", json={"user_name": "note-user"})
    assert [n["title"] for n in resp.json()] == ["empty"]


def test_update_note_requires_content(api_client):
    client, _ = api_client
    _register(client, "note-invalid")
    resp = client.post("/api/v1/update/note", json={"user_name": "note-invalid", "title": "wifi"})
    assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Cards
# ---------------------------------------------------------------------------


def test_cards_flow(api_client):
    client, _ = api_client
    _register(client, "card-user")
    card = {
        "user_name": "card-user",
        "bank_name": "alpha",
        "number": "1111222233334444",
        "cv": "123",
        "password": "1243",
    }
    assert client.post("/api/v1/save/card", json=card).status_code == 200
    client.post("/api/v1/save/card", json={**card, "bank_name": "beta", "number": "5555666677778888"})

    resp = client.post("/api/v1/get/card", json={"user_name": "card-user", "bank_name": "alpha"})
    assert resp.json() == [{**card, "metadata": None}]

    resp = client.post("/api/v1/delete/card", json={"user_name": "card-user", "bank_name": "alpha"})
    assert resp.json()["message"] == "cards of 'alpha' bank for user 'card-user' were successfully deleted"

    resp = client.post("/api/v1/delete/card", json={"user_name": "card-user", "number": "5555666677778888"})
    assert resp.json()["message"] == (
        "cards with number '5555666677778888' for user 'card-user' were successfully deleted"
    )
    assert client.post("/api/v1/get/card", json={"user_name": "card-user"}).status_code == 204


@pytest.mark.parametrize(
    "override",
    [{"number": "1234"}, {"number": "111122223333444a"}, {"cv": "12"}, {"cv": "1234"}, {"bank_name": ""}],
)
def test_save_card_validation(api_client, override):
    client, _ = api_client
    if app.state.sessions.get("card-invalid") is None:
        _register(client, "card-invalid")
    card = {
        "user_name": "card-invalid",
        "bank_name": "alpha",
        "number": "1111222233334444",
        "cv": "123",
        "password": "1243",
    }
    resp = client.post("/api/v1/save/card", json={**card, **override})
    assert resp.status_code == 422


def test_no_card_update_route(api_client):
    client, _ = api_client
    resp = client.post("/api/v1/update/card", json={"user_name": "alice"})
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Server errors
# ---------------------------------------------------------------------------


def test_corrupt_stored_value_returns_generic_500(api_client):
    client, _ = api_client
    _register(client, "corrupt")
    client.post("/api/v1/save/note", json={"user_name": "corrupt", "title": "wifi", "content": "pa55"})
    with app.state.vault.engine.connect() as conn:
        conn.execute(
            text("UPDATE notes SET content = :value WHERE user_name = :user"),
            {"value": "***not base64***", "user": "corrupt"},
        )
        conn.commit()

    # Plain client (no lifespan) reuses app.state from the fixture.
    lenient = TestClient(app, base_url="http://localhost", raise_server_exceptions=False)
    resp = lenient.post("/api/v1/get/note", json={"user_name": "corrupt"})
    assert resp.status_code == 500
    assert resp.json()["error"] == {
        "code": "internal_error",
        "message": "An unexpected error occurred.",
        "detail": None,
    }


# ---------------------------------------------------------------------------
# Health and host checks
# ---------------------------------------------------------------------------


def test_health(api_client):
    client, _ = api_client
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["components"] == {"app": "ok", "database": "ok"}


def test_untrusted_host_rejected(api_client):
    client, _ = api_client
    resp = client.get("/api/v1/health", headers={"host": "evil.example.com"})
    assert resp.status_code == 400
