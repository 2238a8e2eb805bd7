from __future__ import annotations

from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from moodflix.api.app import create_app
from moodflix.api.session import decode_token, issue_token
from moodflix.core.models import User
from moodflix.core.users import InvalidCredentials, verify_google_id_token

ALICE = {"first_name": "Alice", "last_name": "Smith", "email": "Alice@Example.com", "password": "secret123"}


def _client(tmp_path: Path, monkeypatch) -> TestClient:
    monkeypatch.setenv("MOODFLIX_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("MOODFLIX_DB", raising=False)
    monkeypatch.setenv("MOODFLIX_RL_GLOBAL", "1000")
    monkeypatch.setenv("MOODFLIX_SESSION_SECRET", "test-secret")
    return TestClient(create_app())


def test_signup_then_login_returns_token(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)

    r = client.post("/api/auth/signup", json=ALICE)
    assert r.status_code == 201
    user = r.json()["user"]
    assert user["email"] == "alice@example.com"
    assert user["name"] == "Alice Smith"
    assert "password_hash" not in user

    r = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "secret123"})
    assert r.status_code == 200
    token = r.json()["token"]

    r = client.get("/api/auth/session", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200
    assert r.json()["user"]["id"] == user["id"]


def test_signup_rejects_duplicates_and_bad_input(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    assert client.post("/api/auth/signup", json=ALICE).status_code == 201

    dup = client.post("/api/auth/signup", json={**ALICE, "email": "alice@example.com"})
    assert dup.status_code == 409
    assert dup.json() == {"error": "User already exists"}

    short = client.post("/api/auth/signup", json={**ALICE, "email": "bob@example.com", "password": "123"})
    assert short.status_code == 400
    assert "at least 6" in short.json()["error"]

    missing = client.post("/api/auth/signup", json={"email": "carol@example.com"})
    assert missing.status_code == 400
    assert missing.json() == {"error": "All fields are required"}

    bad_email = client.post("/api/auth/signup", json={**ALICE, "email": "not-an-email"})
    assert bad_email.status_code == 400


def test_login_with_wrong_password_is_401(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    client.post("/api/auth/signup", json=ALICE)

    r = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "wrong-pass"})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid password"}


def test_session_is_null_for_anonymous_or_garbage_tokens(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)

    assert client.get("/api/auth/session").json() == {"user": None}
    r = client.get("/api/auth/session", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 200
    assert r.json() == {"user": None}


def test_protected_routes_require_a_token(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)

    for method, url in [
        ("GET", "/api/watchlist"),
        ("POST", "/api/watchlist"),
        ("DELETE", "/api/watchlist"),
        ("GET", "/api/watchlist/stats"),
        ("GET", "/api/activity"),
        ("GET", "/api/profile/stats"),
    ]:
        r = client.request(method, url)
        assert r.status_code == 401, url
        assert r.json() == {"error": "Unauthorized"}


def test_tokens_expire(monkeypatch) -> None:
    monkeypatch.setenv("MOODFLIX_SESSION_SECRET", "test-secret")
    user = User(email="a@example.com", first_name="A", last_name="B", id="u1")

    fresh = decode_token(issue_token(user))
    assert fresh is not None and fresh.user_id == "u1"

    expired = issue_token(user, now=0)
    assert decode_token(expired) is None


def test_google_sign_in_creates_then_reuses_user(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    claims = {
        "sub": "g-123",
        "email": "gina@example.com",
        "given_name": "Gina",
        "family_name": "Lopez",
        "picture": "https://example.com/g.png",
    }
    monkeypatch.setattr("moodflix.api.routes.verify_google_id_token", lambda token: claims)

    r1 = client.post("/api/auth/oauth/google", json={"id_token": "abc"})
    assert r1.status_code == 200
    r2 = client.post("/api/auth/oauth/google", json={"id_token": "abc"})
    assert r2.json()["user"]["id"] == r1.json()["user"]["id"]
    assert r1.json()["user"]["avatar"] == "https://example.com/g.png"


def test_verify_google_id_token_checks_audience(monkeypatch) -> None:
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "my-client")

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["id_token"] == "tok"
        return httpx.Response(200, json={"aud": "someone-else", "sub": "1", "email": "x@example.com"})

    with pytest.raises(InvalidCredentials):
        verify_google_id_token("tok", client=httpx.Client(transport=httpx.MockTransport(handler)))

    verified = {"aud": "my-client", "sub": "1", "email": "x@example.com", "email_verified": "true"}
    ok = httpx.MockTransport(lambda r: httpx.Response(200, json=verified))
    assert verify_google_id_token("tok", client=httpx.Client(transport=ok))["sub"] == "1"


def test_verify_google_id_token_requires_verified_email(monkeypatch) -> None:
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "my-client")
    claims = {"aud": "my-client", "sub": "1", "email": "x@example.com", "email_verified": "false"}
    unverified = httpx.MockTransport(lambda r: httpx.Response(200, json=claims))

    with pytest.raises(InvalidCredentials):
        verify_google_id_token("tok", client=httpx.Client(transport=unverified))


def test_google_sign_in_with_unverified_email_does_not_take_over_account(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "my-client")
    victim = {**ALICE, "email": "victim@example.com"}
    assert client.post("/api/auth/signup", json=victim).status_code == 201

    claims = {"aud": "my-client", "sub": "attacker-gid", "email": "victim@example.com", "email_verified": "false"}
    tokeninfo = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, json=claims)))
    monkeypatch.setattr(
        "moodflix.api.routes.verify_google_id_token",
        lambda token: verify_google_id_token(token, client=tokeninfo),
    )

    r = client.post("/api/auth/oauth/google", json={"id_token": "forged"})
    assert r.status_code == 401
    assert "token" not in r.json()

    r = client.post("/api/auth/login", json={"email": "victim@example.com", "password": "secret123"})
    assert r.status_code == 200
    doc = client.app.state.store.find_one("users", email="victim@example.com")
    assert doc.get("google_id") is None
