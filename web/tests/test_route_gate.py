from __future__ import annotations

from datetime import timedelta

import pytest

from portal.auth.session import SessionToken, enrich
from portal.core import config as app_config
from portal.core.security import now_utc, sign_token
from portal.middleware.route_gate import GateDecision, decide, is_protected_path


@pytest.mark.parametrize(
    "path,expected",
    [
        ("/me", True),
        ("/me/", True),
        ("/me/profile", True),
        ("/me/settings/security", True),
        ("/media", False),
        ("/", False),
        ("/login", False),
        ("/auth/callback/github", False),
        ("/api/bff/me", False),
    ],
)
def test_is_protected_path(path, expected):
    assert is_protected_path(path) is expected


def test_custom_prefixes(monkeypatch):
    monkeypatch.setattr(app_config.settings, "PROTECTED_PATH_PREFIXES", ["/members", "/billing"])

    assert is_protected_path("/members/area") is True
    assert is_protected_path("/billing") is True
    assert is_protected_path("/me") is False


def test_login_path_never_protected(monkeypatch):
    monkeypatch.setattr(app_config.settings, "PROTECTED_PATH_PREFIXES", ["/"])

    assert is_protected_path("/anything") is True
    assert is_protected_path("/login") is False


@pytest.mark.parametrize("path", ["/auth/signin/github", "/auth/callback/github", "/auth/session", "/health"])
def test_sign_in_flow_never_protected(monkeypatch, path):
    monkeypatch.setattr(app_config.settings, "PROTECTED_PATH_PREFIXES", ["/"])

    assert is_protected_path(path) is False
    assert decide(path, SessionToken.anonymous()) is GateDecision.ALLOW


def test_bypass_matches_whole_segments(monkeypatch):
    monkeypatch.setattr(app_config.settings, "PROTECTED_PATH_PREFIXES", ["/"])

    assert is_protected_path("/authors") is True
    assert is_protected_path("/healthz") is True


def test_signin_reachable_when_everything_is_protected(client, monkeypatch):
    monkeypatch.setattr(app_config.settings, "PROTECTED_PATH_PREFIXES", ["/"])

    res = client.get("/auth/signin/github")

    assert res.status_code == 302
    assert res.headers["location"].startswith("https://github.com/")
    assert client.get("/me").headers["location"] == "/login"


@pytest.mark.parametrize("path", ["/", "/login", "/health", "/media"])
def test_unprotected_paths_allowed_regardless_of_session(path, make_user):
    enriched = enrich(SessionToken.anonymous(), make_user(42))

    assert decide(path, SessionToken.anonymous()) is GateDecision.ALLOW
    assert decide(path, enriched) is GateDecision.ALLOW


@pytest.mark.parametrize("path", ["/me", "/me/profile"])
def test_protected_paths_require_session(path, make_user):
    enriched = enrich(SessionToken.anonymous(), make_user(42))

    assert decide(path, SessionToken.anonymous()) is GateDecision.REDIRECT_LOGIN
    assert decide(path, enriched) is GateDecision.ALLOW


def test_expired_session_is_redirected():
    expired = SessionToken(
        internal_user_id="42",
        issued_at=now_utc() - timedelta(days=31),
        expires_at=now_utc() - timedelta(days=1),
    )

    assert decide("/me/profile", expired) is GateDecision.REDIRECT_LOGIN


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


def test_unprotected_page_without_cookie(client):
    # Scenario C
    res = client.get("/")

    assert res.status_code == 200
    assert "Sign in" in res.text


def test_protected_page_without_cookie_redirects(client):
    res = client.get("/me")

    assert res.status_code == 302
    assert res.headers["location"] == "/login"


def test_expired_cookie_on_nested_path_redirects(client):
    # Scenario D
    raw = sign_token(
        {"sub": "42"},
        purpose="session",
        issued_at=now_utc() - timedelta(hours=2),
        expires_in=timedelta(hours=1),
    )
    client.cookies.set(app_config.settings.SESSION_COOKIE_NAME, raw)

    res = client.get("/me/profile")

    assert res.status_code == 302
    assert res.headers["location"] == "/login"


def test_malformed_cookie_redirects(client):
    client.cookies.set(app_config.settings.SESSION_COOKIE_NAME, "garbage")

    res = client.get("/me")

    assert res.status_code == 302
    assert res.headers["location"] == "/login"


def test_cookie_signed_with_other_secret_redirects(client, session_cookie):
    original = app_config.settings.SESSION_SECRET
    app_config.settings.SESSION_SECRET = "another-secret"
    try:
        forged = session_cookie(42)
    finally:
        app_config.settings.SESSION_SECRET = original

    client.cookies.set(app_config.settings.SESSION_COOKIE_NAME, forged)
    res = client.get("/me")

    assert res.status_code == 302


def test_valid_cookie_passes_gate(client, stub_backend, sign_in):
    stub_backend.add_user(42, "member@example.com", "Member")
    sign_in(client, 42)

    res = client.get("/me")

    assert res.status_code == 200
    assert "member@example.com" in res.text
