from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from portal.auth.session import SessionToken
from portal.middleware.route_gate import current_session
from portal.schemas.identity import InternalUser
from portal.services.profile import ProfileLookupError, get_profile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bff", tags=["bff"])


@router.get("/me", response_model=InternalUser)
def bff_me(session: SessionToken = Depends(current_session)):
    if not session.is_authenticated:
        raise HTTPException(status_code=401, detail="Unauthorized")

    try:
        user = get_profile(session.internal_user_id)
    except ProfileLookupError as exc:
        if exc.status_code is not None:
            raise HTTPException(status_code=exc.status_code, detail="Failed to fetch user")
        logger.error("Error fetching user %s from backend: %s", session.internal_user_id, exc)
        raise HTTPException(status_code=500, detail="Internal server error")

    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user
