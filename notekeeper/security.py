"""
NoteKeeper Backend — Access Token Handling
============================================

What:  Issue and verify the JWT bearer tokens that identify a note owner.
How:   python-jose HS256 (configurable) tokens; the `sub` claim is the owner id.
Who:   decode_access_token() is used by the get_current_owner dependency;
       create_access_token() by the identity provider integration and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from notekeeper.config import settings


def create_access_token(owner_id: str, extra_claims: Optional[Dict[str, Any]] = None) -> str:
    """Create a signed access token for `owner_id`."""
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": str(owner_id),
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_expiry_minutes),
    }
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and validate a token. Returns the claims, or None if invalid or expired."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
