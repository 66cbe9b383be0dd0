# portal/auth/github.py
"""
GitHub OAuth round-trip.

Responsibilities:
- Build the authorize redirect and bind a random state to the browser via a
  short-lived signed cookie
- Verify the echoed state
- Exchange the authorization code and read the profile plus the primary
  verified email

Nothing here touches the backend identity service or the session cookie.
"""
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any
from urllib.parse import urlencode

import httpx
from fastapi import Response

from portal.auth.identity import ExternalIdentity
from portal.core.config import settings
from portal.core.security import TokenError, generate_state, sign_token, states_match, verify_token_purpose

logger = logging.getLogger(__name__)

PROVIDER = "github"
AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
TOKEN_URL = "https://github.com/login/oauth/access_token"
USER_URL = "https://api.github.com/user"
EMAILS_URL = "https://api.github.com/user/emails"
GITHUB_TIMEOUT = 10.0

STATE_PURPOSE = "oauth_state"


class ProviderNotConfiguredError(Exception):
    """Raised when the GitHub client id/secret are not configured."""


class ProviderExchangeError(Exception):
    """Raised when the provider round-trip cannot be completed."""


class OAuthStateError(Exception):
    """Raised when the state echoed by the provider does not match the browser's cookie."""


def _require_github_config() -> None:
    if not settings.GITHUB_CLIENT_ID:
        raise ProviderNotConfiguredError("GITHUB_CLIENT_ID is not configured")
    if not settings.GITHUB_CLIENT_SECRET:
        raise ProviderNotConfiguredError("GITHUB_CLIENT_SECRET is not configured")


# -------------------------
# State
# -------------------------
def issue_state(response: Response, state: str | None = None) -> str:
    state = state or generate_state()
    cookie = sign_token(
        {"state": state, "provider": PROVIDER},
        purpose=STATE_PURPOSE,
        expires_in=timedelta(seconds=settings.OAUTH_STATE_MAX_AGE_SECONDS),
    )
    response.set_cookie(
        key=settings.OAUTH_STATE_COOKIE_NAME,
        value=cookie,
        max_age=settings.OAUTH_STATE_MAX_AGE_SECONDS,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/auth",
    )
    return state


def verify_state(cookie_value: str | None, received: str | None) -> None:
    if not cookie_value or not received:
        raise OAuthStateError("Missing OAuth state")
    try:
        payload = verify_token_purpose(cookie_value, STATE_PURPOSE)
    except TokenError as exc:
        raise OAuthStateError("Invalid OAuth state cookie") from exc
    if payload.get("provider") != PROVIDER:
        raise OAuthStateError("OAuth state issued for another provider")
    if not states_match(str(payload.get("state") or ""), received):
        raise OAuthStateError("OAuth state mismatch")


def clear_state(response: Response) -> None:
    response.delete_cookie(key=settings.OAUTH_STATE_COOKIE_NAME, path="/auth")


# -------------------------
# Round-trip
# -------------------------
def build_authorize_url(state: str) -> str:
    _require_github_config()
    query = urlencode(
        {
            "client_id": settings.GITHUB_CLIENT_ID,
            "redirect_uri": settings.oauth_redirect_uri(PROVIDER),
            "scope": settings.GITHUB_SCOPE,
            "state": state,
        }
    )
    return f"{AUTHORIZE_URL}?{query}"


def exchange_code(code: str) -> str:
    """Trade an authorization code for a provider access token."""
    _require_github_config()
    try:
        response = httpx.post(
            TOKEN_URL,
            data={
                "client_id": settings.GITHUB_CLIENT_ID,
                "client_secret": settings.GITHUB_CLIENT_SECRET,
                "code": code,
                "redirect_uri": settings.oauth_redirect_uri(PROVIDER),
            },
            headers={"Accept": "application/json"},
            timeout=GITHUB_TIMEOUT,
        )
    except httpx.HTTPError as exc:
        raise ProviderExchangeError("Unable to reach GitHub") from exc

    try:
        payload = response.json()
    except ValueError as exc:
        raise ProviderExchangeError("Invalid token response from GitHub") from exc

    access_token = payload.get("access_token") if isinstance(payload, dict) else None
    if response.status_code != 200 or not access_token:
        error = payload.get("error") if isinstance(payload, dict) else None
        raise ProviderExchangeError(f"GitHub code exchange failed: {error or response.status_code}")
    return access_token


def _github_get(url: str, access_token: str) -> Any:
    try:
        response = httpx.get(
            url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/vnd.github+json",
            },
            timeout=GITHUB_TIMEOUT,
        )
    except httpx.HTTPError as exc:
        raise ProviderExchangeError("Unable to reach GitHub") from exc
    if response.status_code != 200:
        raise ProviderExchangeError(f"GitHub returned {response.status_code} for {url}")
    try:
        return response.json()
    except ValueError as exc:
        raise ProviderExchangeError("Invalid JSON from GitHub") from exc


def _primary_email(emails: Any) -> str | None:
    if not isinstance(emails, list):
        return None
    for entry in emails:
        if isinstance(entry, dict) and entry.get("primary") and entry.get("verified"):
            return entry.get("email")
    return None


def fetch_identity(access_token: str) -> ExternalIdentity:
    profile = _github_get(USER_URL, access_token)
    if not isinstance(profile, dict):
        raise ProviderExchangeError("Unexpected GitHub profile payload")

    try:
        email = _primary_email(_github_get(EMAILS_URL, access_token))
    except ProviderExchangeError as exc:
        # Missing user:email scope; fall back to the public profile email.
        logger.info("GitHub email lookup failed: %s", exc)
        email = None

    return ExternalIdentity.from_github(profile, email=email)
