# portal/services/profile.py
"""
Resolve an internal user id to profile fields.

The backend only guarantees a list endpoint (GET /users), so the default mode
fetches the list and filters by id. PROFILE_LOOKUP_MODE=direct switches to
GET /users/{id} for backends that expose it. A missing id is a miss, not an
error.
"""
from __future__ import annotations

import logging
from typing import Optional

from pydantic import TypeAdapter, ValidationError

from portal.core.config import settings
from portal.schemas.identity import InternalUser
from portal.services.api_client import ApiClientError, api_get

logger = logging.getLogger(__name__)

_user_list = TypeAdapter(list[InternalUser])


class ProfileLookupError(Exception):
    """Raised when the backend could not be asked (transport failure, bad status, bad body)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _parse_user_id(user_id: str | int) -> Optional[int]:
    try:
        return int(user_id)
    except (TypeError, ValueError):
        return None


def _lookup_in_list(user_id: int) -> Optional[InternalUser]:
    try:
        response = api_get("/users")
    except ApiClientError as exc:
        raise ProfileLookupError(str(exc), status_code=exc.status_code) from exc

    try:
        users = _user_list.validate_python(response.json())
    except (ValueError, ValidationError) as exc:
        raise ProfileLookupError("Malformed user list from backend") from exc

    return next((u for u in users if u.id == user_id), None)


def _lookup_direct(user_id: int) -> Optional[InternalUser]:
    try:
        response = api_get(f"/users/{user_id}", ok_statuses=frozenset({200, 404}))
    except ApiClientError as exc:
        raise ProfileLookupError(str(exc), status_code=exc.status_code) from exc

    if response.status_code == 404:
        return None
    try:
        return InternalUser.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        raise ProfileLookupError("Malformed user from backend") from exc


def get_profile(user_id: str | int) -> Optional[InternalUser]:
    """
    Return the internal user for ``user_id`` or None when it does not exist.

    Raises:
        ProfileLookupError: when the backend call itself fails.
    """
    parsed = _parse_user_id(user_id)
    if parsed is None:
        return None

    if settings.PROFILE_LOOKUP_MODE == "direct":
        return _lookup_direct(parsed)
    return _lookup_in_list(parsed)


def try_get_profile(user_id: str | int) -> Optional[InternalUser]:
    """Page helper: any failure reads as a miss."""
    try:
        return get_profile(user_id)
    except ProfileLookupError as exc:
        logger.warning("Profile lookup failed for user %s: %s", user_id, exc)
        return None
