import os
from datetime import datetime, timezone

# Ensure SESSION_SECRET exists before importing portal.main (it calls require_session_secret() at import time).
os.environ.setdefault("SESSION_SECRET", "test_session_secret")

import httpx
import pytest
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from portal.auth.session import SessionToken, encode_session_token, enrich
from portal.core import config as app_config
from portal.schemas.identity import InternalUser
from portal.services import api_client

BACKEND_BASE_URL = "http://backend.test"


class StubBackend:
    """
    In-memory stand-in for the backend identity service.

    Upserts on (provider, provider_account_id) and links by email, the way the
    real service does, so repeated syncs resolve to the same user.
    """

    def __init__(self) -> None:
        self.users: dict[int, dict] = {}
        self.identities: dict[tuple[str, str], int] = {}
        self.sync_calls: list[dict] = []
        self._next_id = 1
        self.app = self._build_app()

    def add_user(self, user_id: int, email: str, name: str | None = None) -> dict:
        user = {
            "id": user_id,
            "email": email,
            "name": name,
            "created_at": datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc).isoformat(),
        }
        self.users[user_id] = user
        self._next_id = max(self._next_id, user_id + 1)
        return user

    def _build_app(self) -> FastAPI:
        app = FastAPI()

        @app.post("/auth/oauth/callback")
        def oauth_callback(payload: dict):
            self.sync_calls.append(payload)
            if not payload.get("provider") or not payload.get("provider_account_id"):
                raise HTTPException(status_code=400, detail="provider and provider_account_id are required")

            key = (payload["provider"], payload["provider_account_id"])
            if key in self.identities:
                return {"user": self.users[self.identities[key]], "is_new_user": False}

            email = payload["email"].strip().lower()
            user = next((u for u in self.users.values() if u["email"] == email), None)
            if user is None:
                user = self.add_user(self._next_id, email, payload.get("name") or None)
            self.identities[key] = user["id"]
            return JSONResponse(status_code=201, content={"user": user, "is_new_user": True})

        @app.get("/users")
        def list_users():
            return [self.users[k] for k in sorted(self.users)]

        @app.get("/users/{user_id}")
        def get_user(user_id: int):
            if user_id not in self.users:
                raise HTTPException(status_code=404, detail="user not found")
            return self.users[user_id]

        return app


@pytest.fixture()
def stub_backend(monkeypatch):
    """Route the API client to an in-memory backend."""
    backend = StubBackend()
    monkeypatch.setattr(
        api_client,
        "_client",
        lambda: TestClient(backend.app, base_url=BACKEND_BASE_URL),
    )
    return backend


@pytest.fixture()
def backend_transport(monkeypatch):
    """
    Route the API client through an httpx.MockTransport handler.

    Usage:
        backend_transport(lambda request: httpx.Response(500))
    """

    def _use(handler):
        monkeypatch.setattr(
            api_client,
            "_client",
            lambda: httpx.Client(base_url=BACKEND_BASE_URL, transport=httpx.MockTransport(handler)),
        )

    return _use


@pytest.fixture(autouse=True)
def _reset_mutable_settings():
    """
    Tests sometimes tweak global settings (app_config.settings.*). Because that object is
    process-global, we must restore values after each test to avoid cross-test coupling.
    """
    keys = [
        "PROTECTED_PATH_PREFIXES",
        "LOGIN_PATH",
        "POST_LOGIN_PATH",
        "PROFILE_LOOKUP_MODE",
        "SESSION_MAX_AGE_MINUTES",
        "SESSION_COOKIE_SECURE",
        "GITHUB_CLIENT_ID",
        "GITHUB_CLIENT_SECRET",
        "PUBLIC_BASE_URL",
    ]
    original = {k: getattr(app_config.settings, k) for k in keys}
    app_config.settings.SESSION_COOKIE_SECURE = False
    app_config.settings.GITHUB_CLIENT_ID = "test-client-id"
    app_config.settings.GITHUB_CLIENT_SECRET = "test-client-secret"
    app_config.settings.PUBLIC_BASE_URL = "http://testserver"
    try:
        yield
    finally:
        for k, v in original.items():
            setattr(app_config.settings, k, v)


@pytest.fixture()
def app():
    app_config.settings.SESSION_SECRET = app_config.settings.SESSION_SECRET or "test_session_secret"
    import portal.main as main

    return main.app


@pytest.fixture()
def client(app):
    with TestClient(app, follow_redirects=False) as c:
        yield c


def _make_user(user_id: int = 42, email: str = "member@example.com", name: str | None = "Member") -> InternalUser:
    return InternalUser(
        id=user_id,
        email=email,
        name=name,
        created_at=datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc),
    )


@pytest.fixture()
def session_cookie():
    """Encoded, validly signed session cookie value for an internal user."""

    def _make(user_id: int = 42, **kwargs) -> str:
        token = enrich(SessionToken.anonymous(), _make_user(user_id, **kwargs))
        return encode_session_token(token)

    return _make


@pytest.fixture()
def make_user():
    return _make_user


@pytest.fixture()
def sign_in(session_cookie):
    """
    Put a session cookie for ``user_id`` on a TestClient.

    The cookie is stored under the domain the cookie jar uses for responses
    from "testserver", so later Set-Cookie headers overwrite or delete it.
    """

    def _sign_in(c: TestClient, user_id: int = 42, **kwargs) -> None:
        c.cookies.set(
            app_config.settings.SESSION_COOKIE_NAME,
            session_cookie(user_id, **kwargs),
            domain="testserver.local",
        )

    return _sign_in
