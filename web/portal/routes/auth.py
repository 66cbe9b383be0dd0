from __future__ import annotations

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse

from portal.auth import github
from portal.auth.callback import complete_sign_in
from portal.auth.session import SessionToken, sign_out, write_session_cookie
from portal.core.config import settings
from portal.core.security import generate_state
from portal.middleware.route_gate import current_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

# Error codes surfaced on the login page; never the underlying detail.
ERROR_CONFIGURATION = "Configuration"
ERROR_OAUTH_CALLBACK = "OAuthCallback"
ERROR_ACCESS_DENIED = "AccessDenied"


def _require_known_provider(provider: str) -> None:
    if provider != github.PROVIDER:
        raise HTTPException(status_code=404, detail="Unknown sign-in provider")


def _login_redirect(error: str) -> RedirectResponse:
    url = f"{settings.LOGIN_PATH}?{urlencode({'error': error})}"
    response = RedirectResponse(url=url, status_code=302)
    write_session_cookie(response, sign_out())
    github.clear_state(response)
    return response


@router.get("/signin/{provider}")
def signin(provider: str):
    _require_known_provider(provider)

    state = generate_state()
    try:
        authorize_url = github.build_authorize_url(state)
    except github.ProviderNotConfiguredError as exc:
        logger.error("Sign-in unavailable: %s", exc)
        return _login_redirect(ERROR_CONFIGURATION)

    response = RedirectResponse(url=authorize_url, status_code=302)
    github.issue_state(response, state)
    return response


@router.get("/callback/{provider}")
def oauth_callback(
    provider: str,
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    session: SessionToken = Depends(current_session),
):
    _require_known_provider(provider)

    try:
        github.verify_state(request.cookies.get(settings.OAUTH_STATE_COOKIE_NAME), state)
    except github.OAuthStateError as exc:
        logger.warning("Rejected %s callback: %s", provider, exc)
        return _login_redirect(ERROR_OAUTH_CALLBACK)

    if error or not code:
        logger.info("Provider %s returned no code (error=%s)", provider, error)
        return _login_redirect(ERROR_ACCESS_DENIED if error == "access_denied" else ERROR_OAUTH_CALLBACK)

    try:
        access_token = github.exchange_code(code)
        identity = github.fetch_identity(access_token)
    except github.ProviderNotConfiguredError as exc:
        logger.error("Sign-in unavailable: %s", exc)
        return _login_redirect(ERROR_CONFIGURATION)
    except github.ProviderExchangeError as exc:
        logger.warning("Provider %s round-trip failed: %s", provider, exc)
        return _login_redirect(ERROR_OAUTH_CALLBACK)

    outcome = complete_sign_in(identity, session)
    if not outcome.ok:
        return _login_redirect(ERROR_ACCESS_DENIED)

    response = RedirectResponse(url=settings.POST_LOGIN_PATH, status_code=302)
    write_session_cookie(response, outcome.session)
    github.clear_state(response)
    return response


@router.post("/signout")
def signout():
    response = RedirectResponse(url="/", status_code=303)
    write_session_cookie(response, sign_out())
    return response


@router.get("/session")
def get_session(session: SessionToken = Depends(current_session)):
    view = session.to_session()
    if view is None:
        return {}
    return view.model_dump(mode="json")
