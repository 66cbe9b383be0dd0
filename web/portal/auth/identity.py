# portal/auth/identity.py
"""
External identity model.

An ExternalIdentity is what the OAuth provider asserted about the user at the
end of a provider round-trip. It lives only for the duration of the callback:
it is handed to the sign-in orchestrator and then dropped. It is never written
into the session cookie.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ExternalIdentity:
    """
    Identity asserted by the OAuth provider.

    Attributes:
        provider: Provider name, e.g. ``"github"``.
        provider_account_id: Provider-scoped, stable account id (stringified).
        email: Primary verified email if the provider returned one, else ``None``.
        display_name: Human readable name; empty when the provider has none.
    """

    provider: str
    provider_account_id: str
    email: str | None = None
    display_name: str = ""

    @classmethod
    def from_github(cls, profile: dict[str, Any], email: str | None = None) -> ExternalIdentity:
        """
        Build an identity from a GitHub ``/user`` payload.

        Args:
            profile: JSON body of ``GET https://api.github.com/user``.
            email: Primary verified email from ``/user/emails``; falls back to
                   the public profile email.
        """
        account_id = profile.get("id")
        resolved = email or profile.get("email")
        return cls(
            provider="github",
            provider_account_id=str(account_id) if account_id is not None else "",
            email=resolved.strip().lower() if resolved else None,
            display_name=(profile.get("name") or profile.get("login") or "").strip(),
        )

    @property
    def is_linkable(self) -> bool:
        """True when the identity carries enough to be matched to an internal user."""
        return bool(self.provider and self.provider_account_id and self.email)

    def to_debug_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "provider_account_id": self.provider_account_id,
            "has_email": bool(self.email),
        }
