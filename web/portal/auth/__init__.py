# portal/auth/__init__.py
"""
Authentication modules for the members portal.

This package contains:
- identity.py: External identity asserted by the OAuth provider
- github.py: GitHub OAuth round-trip (state, code exchange, profile)
- session.py: Session token model, enrichment and cookie encoding
- callback.py: Sign-in orchestration (validate, sync, enrich)
"""
from portal.auth.identity import ExternalIdentity
from portal.auth.session import SessionToken

__all__ = ["ExternalIdentity", "SessionToken"]
