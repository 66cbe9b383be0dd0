# portal/auth/session.py
"""
Session token model and enrichment.

A SessionToken is either anonymous or enriched with the id of an internal user
returned by the backend identity service. Tokens are immutable: enrichment and
sign-out return new values. On the wire the token is a signed JWT stored in an
HttpOnly cookie; the JWT signature is the token's signature.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import Response

from portal.core.config import settings
from portal.core.security import TokenError, TokenExpiredError, now_utc, sign_token, verify_token_purpose
from portal.schemas.identity import InternalUser, SessionOut, SessionUserOut

logger = logging.getLogger(__name__)

SESSION_PURPOSE = "session"


class SessionTokenError(Exception):
    """Raised when a session cookie cannot be turned back into a SessionToken."""


@dataclass(frozen=True)
class SessionToken:
    internal_user_id: str | None = None
    email: str | None = None
    name: str | None = None
    issued_at: datetime | None = None
    expires_at: datetime | None = None

    @classmethod
    def anonymous(cls) -> SessionToken:
        return cls()

    @property
    def is_authenticated(self) -> bool:
        return self.internal_user_id is not None

    def is_expired(self, at: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (at or now_utc()) >= self.expires_at

    def to_session(self) -> SessionOut | None:
        """Client-facing projection; None for anonymous tokens."""
        if not self.is_authenticated or self.expires_at is None:
            return None
        return SessionOut(
            user=SessionUserOut(id=self.internal_user_id, name=self.name, email=self.email),
            expires=self.expires_at,
        )


def enrich(session: SessionToken, user: InternalUser) -> SessionToken:
    """
    Attach the internal user id to the session.

    Same id and still valid: the token is returned unchanged. Any other case
    issues a fresh token built only from ``user``; nothing from the previous
    token is carried over.
    """
    user_id = str(user.id)
    if session.internal_user_id == user_id and not session.is_expired():
        return session

    issued_at = now_utc().replace(microsecond=0)
    return SessionToken(
        internal_user_id=user_id,
        email=user.email,
        name=user.name,
        issued_at=issued_at,
        expires_at=issued_at + timedelta(minutes=settings.SESSION_MAX_AGE_MINUTES),
    )


def sign_out() -> SessionToken:
    return SessionToken.anonymous()


# -------------------------
# Encoding
# -------------------------
def encode_session_token(token: SessionToken) -> str:
    if not token.is_authenticated or token.issued_at is None or token.expires_at is None:
        raise ValueError("Only enriched session tokens can be encoded")

    claims = {"sub": token.internal_user_id}
    if token.email:
        claims["email"] = token.email
    if token.name:
        claims["name"] = token.name
    return sign_token(
        claims,
        purpose=SESSION_PURPOSE,
        issued_at=token.issued_at,
        expires_in=token.expires_at - token.issued_at,
    )


def decode_session_token(raw: str) -> SessionToken:
    try:
        payload = verify_token_purpose(raw, SESSION_PURPOSE)
    except TokenExpiredError as exc:
        raise SessionTokenError("Session has expired") from exc
    except TokenError as exc:
        raise SessionTokenError("Invalid session") from exc

    sub = str(payload.get("sub") or "").strip()
    if not sub:
        raise SessionTokenError("Session missing subject")

    try:
        issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc)
        expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)
    except (KeyError, TypeError, ValueError) as exc:
        raise SessionTokenError("Session missing timestamps") from exc

    return SessionToken(
        internal_user_id=sub,
        email=payload.get("email"),
        name=payload.get("name"),
        issued_at=issued_at,
        expires_at=expires_at,
    )


def read_session(raw: str | None) -> SessionToken:
    """Decode a cookie value; missing, expired and malformed all read as anonymous."""
    if not raw:
        return SessionToken.anonymous()
    try:
        return decode_session_token(raw)
    except SessionTokenError as exc:
        logger.info("Ignoring session cookie: %s", exc)
        return SessionToken.anonymous()


# -------------------------
# Cookie helpers
# -------------------------
def set_session_cookie(response: Response, token: SessionToken) -> None:
    max_age = int((token.expires_at - now_utc()).total_seconds()) if token.expires_at else 0
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=encode_session_token(token),
        max_age=max(0, max_age),
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite=settings.SESSION_COOKIE_SAMESITE,
        domain=settings.SESSION_COOKIE_DOMAIN,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        domain=settings.SESSION_COOKIE_DOMAIN,
        path="/",
        secure=settings.SESSION_COOKIE_SECURE,
        httponly=True,
        samesite=settings.SESSION_COOKIE_SAMESITE,
    )


def write_session_cookie(response: Response, token: SessionToken) -> None:
    """Persist ``token`` on the response; an anonymous token deletes the cookie."""
    if token.is_authenticated:
        set_session_cookie(response, token)
    else:
        clear_session_cookie(response)
