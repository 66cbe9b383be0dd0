from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
import hmac
import secrets

from jose import ExpiredSignatureError, JWTError, jwt

from portal.core.config import settings


class TokenError(ValueError):
    """Raised when a signed token is malformed, tampered with, or has the wrong purpose."""


class TokenExpiredError(TokenError):
    """Raised when a signed token is past its exp claim."""


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _require_session_secret() -> None:
    if not settings.SESSION_SECRET or not settings.SESSION_SECRET.strip():
        raise RuntimeError("SESSION_SECRET must be set (sessions are signed).")


# -------------------------
# Signed token helpers
# -------------------------
def sign_token(claims: dict[str, Any], *, purpose: str, expires_in: timedelta, issued_at: datetime | None = None) -> str:
    """
    Sign `claims` as a JWT tagged with `purpose`.

    iat/exp are always set from issued_at (default: now) and expires_in.
    """
    _require_session_secret()

    iat = issued_at or now_utc()
    exp = iat + expires_in
    payload = {
        **claims,
        "purpose": purpose,
        "iat": int(iat.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.SESSION_SECRET, algorithm=settings.SESSION_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    _require_session_secret()
    # Let callers decide how to handle JWTError
    return jwt.decode(token, settings.SESSION_SECRET, algorithms=[settings.SESSION_ALGORITHM])


def verify_token_purpose(token: str, expected_purpose: str) -> dict[str, Any]:
    try:
        payload = decode_token(token)
    except ExpiredSignatureError:
        raise TokenExpiredError("Token has expired")
    except JWTError:
        raise TokenError("Invalid token")

    if payload.get("purpose") != expected_purpose:
        raise TokenError("Invalid token purpose")

    return payload


# -------------------------
# OAuth state helpers
# -------------------------
def generate_state() -> str:
    """Random value bound to the browser via a signed cookie and echoed by the provider."""
    return secrets.token_urlsafe(32)


def states_match(expected: str, received: str) -> bool:
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))
