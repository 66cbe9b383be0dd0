# portal/auth/callback.py
"""
Sign-in orchestration for a completed provider round-trip.

The caller has already verified provider trust (state, code exchange). This
module only decides whether the returned identity is usable, syncs it with
the backend, and enriches the session. Every failure is terminal for the
current callback: the incoming session is handed back untouched.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass

from portal.auth.identity import ExternalIdentity
from portal.auth.session import SessionToken, enrich
from portal.services.identity_sync import IdentitySyncError, sync_user

logger = logging.getLogger(__name__)


class ProviderCallbackInvalid(Exception):
    """The provider result carries no account link or no email."""


class SignInResult(str, enum.Enum):
    OK = "ok"
    INVALID_CALLBACK = "invalid_callback"
    SYNC_FAILED = "sync_failed"


@dataclass(frozen=True)
class SignInOutcome:
    result: SignInResult
    session: SessionToken

    @property
    def ok(self) -> bool:
        return self.result is SignInResult.OK


def _require_linkable(identity: ExternalIdentity | None) -> ExternalIdentity:
    if identity is None:
        raise ProviderCallbackInvalid("Provider callback has no identity")
    if not identity.is_linkable:
        raise ProviderCallbackInvalid("Provider identity has no account link or email")
    return identity


def complete_sign_in(identity: ExternalIdentity | None, session: SessionToken) -> SignInOutcome:
    try:
        identity = _require_linkable(identity)
    except ProviderCallbackInvalid as exc:
        logger.warning("Rejected provider callback: %s %s", exc, identity.to_debug_dict() if identity else {})
        return SignInOutcome(result=SignInResult.INVALID_CALLBACK, session=session)

    try:
        user = sync_user(
            identity.provider,
            identity.provider_account_id,
            identity.email,
            identity.display_name,
        )
    except IdentitySyncError:
        # Already logged with context by the sync client.
        return SignInOutcome(result=SignInResult.SYNC_FAILED, session=session)

    enriched = enrich(session, user)
    logger.info("Signed in internal user %s via %s", enriched.internal_user_id, identity.provider)
    return SignInOutcome(result=SignInResult.OK, session=enriched)
