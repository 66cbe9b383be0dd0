from __future__ import annotations

import enum
import logging

from fastapi import FastAPI, Request
from fastapi.responses import RedirectResponse

from portal.auth.session import SessionToken, read_session
from portal.core.config import settings

logger = logging.getLogger(__name__)


# Sign-in flow and liveness stay reachable whatever PROTECTED_PATH_PREFIXES says.
GATE_BYPASS_PREFIXES = (
    "/auth",
    "/health",
)


def _is_gate_bypass_path(path: str) -> bool:
    if path == settings.LOGIN_PATH.rstrip("/"):
        return True
    return any(path == prefix or path.startswith(prefix + "/") for prefix in GATE_BYPASS_PREFIXES)


class GateDecision(str, enum.Enum):
    ALLOW = "allow"
    REDIRECT_LOGIN = "redirect_login"


def is_protected_path(path: str) -> bool:
    """Prefix match on whole path segments: /me and /me/profile, not /media."""
    path = "/" + path.strip("/")
    if _is_gate_bypass_path(path):
        return False
    for prefix in settings.PROTECTED_PATH_PREFIXES:
        if prefix == "/":
            return True
        if path == prefix or path.startswith(prefix + "/"):
            return True
    return False


def decide(path: str, session: SessionToken) -> GateDecision:
    if not is_protected_path(path):
        return GateDecision.ALLOW
    if session.is_authenticated and not session.is_expired():
        return GateDecision.ALLOW
    return GateDecision.REDIRECT_LOGIN


def register_route_gate(app: FastAPI) -> None:
    @app.middleware("http")
    async def route_gate_middleware(request: Request, call_next):
        """
        Gate protected paths on a valid session cookie.

        The cookie is decoded locally; an expired, malformed or missing cookie
        all read as anonymous. The decoded session is stored on
        request.state.session for the handlers.
        """
        session = read_session(request.cookies.get(settings.SESSION_COOKIE_NAME))
        request.state.session = session

        # Allow CORS preflight to flow through CORSMiddleware unchanged
        if request.method.upper() == "OPTIONS":
            return await call_next(request)

        if decide(request.url.path, session) is GateDecision.REDIRECT_LOGIN:
            logger.debug("Redirecting unauthenticated request for %s", request.url.path)
            return RedirectResponse(url=settings.LOGIN_PATH, status_code=302)

        return await call_next(request)


def current_session(request: Request) -> SessionToken:
    """FastAPI dependency returning the session decoded by the route gate."""
    session = getattr(request.state, "session", None)
    if isinstance(session, SessionToken):
        return session
    return read_session(request.cookies.get(settings.SESSION_COOKIE_NAME))
