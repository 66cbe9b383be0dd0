"""
Pydantic schemas for the backend identity service contract and the
client-facing session view.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class OAuthCallbackIn(BaseModel):
    """Body of POST /auth/oauth/callback on the backend."""

    provider: str
    provider_account_id: str
    email: str
    name: str = ""


class InternalUser(BaseModel):
    id: int
    email: str
    name: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(extra="ignore")


class OAuthCallbackOut(BaseModel):
    user: InternalUser
    is_new_user: bool = False


class SessionUserOut(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None


class SessionOut(BaseModel):
    user: SessionUserOut
    expires: datetime
