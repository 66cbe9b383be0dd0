# portal/services/identity_sync.py
"""
Exchange a verified external identity for an internal user record.

The backend upserts on (provider, provider_account_id), so repeated calls for
the same account resolve to the same user id. This module makes exactly one
call per invocation and never retries.
"""
from __future__ import annotations

import logging

from pydantic import ValidationError

from portal.schemas.identity import InternalUser, OAuthCallbackIn, OAuthCallbackOut
from portal.services.api_client import ApiClientError, api_post

logger = logging.getLogger(__name__)

SYNC_PATH = "/auth/oauth/callback"
# 201 when the backend provisions the user on first sign-in.
SYNC_OK_STATUSES = frozenset({200, 201})


class IdentitySyncError(Exception):
    """Raised when the backend could not map the external identity to a user."""


def sync_user(provider: str, provider_account_id: str, email: str, name: str | None = None) -> InternalUser:
    """
    Create or retrieve the internal user for an external account.

    Raises:
        IdentitySyncError: on network failure, timeout, non-success status or
            a body that does not match the expected shape. The message is
            generic; the detail only goes to the log.
    """
    body = OAuthCallbackIn(
        provider=provider,
        provider_account_id=provider_account_id,
        email=email,
        name=name or "",
    )

    try:
        response = api_post(SYNC_PATH, body.model_dump(), ok_statuses=SYNC_OK_STATUSES)
    except ApiClientError as exc:
        logger.error(
            "Failed to sync user with backend (provider=%s account=%s status=%s): %s %s",
            provider,
            provider_account_id,
            exc.status_code,
            exc,
            exc.body or "",
        )
        raise IdentitySyncError("Unable to sign in") from exc

    try:
        payload = OAuthCallbackOut.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        logger.error(
            "Malformed sync response from backend (provider=%s account=%s): %s",
            provider,
            provider_account_id,
            exc,
        )
        raise IdentitySyncError("Unable to sign in") from exc

    if payload.is_new_user:
        logger.info("Provisioned internal user %s for %s account", payload.user.id, provider)
    return payload.user
