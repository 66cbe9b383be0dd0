from __future__ import annotations

from html import escape

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse, RedirectResponse

from portal.auth.session import SessionToken
from portal.core.config import settings
from portal.middleware.route_gate import current_session
from portal.services.profile import try_get_profile

router = APIRouter(tags=["pages"])

LOGIN_ERROR_MESSAGES = {
    "Configuration": "Sign-in is temporarily unavailable.",
    "OAuthCallback": "Sign-in failed. Please try again.",
    "AccessDenied": "Sign-in failed. Please try again.",
}


def _page(title: str, body: str) -> HTMLResponse:
    return HTMLResponse(
        "<!doctype html><html><head>"
        f"<meta charset=\"utf-8\"><title>{escape(title)}</title>"
        f"</head><body><main>{body}</main></body></html>"
    )


@router.get("/", response_class=HTMLResponse)
def home(session: SessionToken = Depends(current_session)):
    if session.is_authenticated:
        who = escape(session.name or session.email or session.internal_user_id)
        body = (
            f"<p>Signed in as {who}</p>"
            f"<a href=\"{escape(settings.POST_LOGIN_PATH)}\">My page</a>"
            "<form method=\"post\" action=\"/auth/signout\"><button type=\"submit\">Sign out</button></form>"
        )
    else:
        body = f"<a href=\"{escape(settings.LOGIN_PATH)}\">Sign in</a>"
    return _page("Home", body)


@router.get("/login", response_class=HTMLResponse)
def login(error: str | None = None):
    message = LOGIN_ERROR_MESSAGES.get(error, LOGIN_ERROR_MESSAGES["OAuthCallback"]) if error else None
    body = "<h1>Sign in</h1>"
    if message:
        body += f"<p role=\"alert\">{escape(message)}</p>"
    body += "<a href=\"/auth/signin/github\">Sign in with GitHub</a>"
    return _page("Sign in", body)


@router.get("/me", response_class=HTMLResponse)
def me(session: SessionToken = Depends(current_session)):
    if not session.is_authenticated:
        return RedirectResponse(url=settings.LOGIN_PATH, status_code=302)

    user = try_get_profile(session.internal_user_id)
    if user is None:
        return _page("My page", "<h1>My page</h1><p role=\"alert\">Could not load profile.</p>")

    body = (
        "<h1>My page</h1><dl>"
        f"<dt>User ID</dt><dd>{user.id}</dd>"
        f"<dt>Name</dt><dd>{escape(user.name or 'Not set')}</dd>"
        f"<dt>Email</dt><dd>{escape(user.email)}</dd>"
        f"<dt>Joined</dt><dd>{user.created_at.date().isoformat()}</dd>"
        "</dl>"
    )
    return _page("My page", body)
