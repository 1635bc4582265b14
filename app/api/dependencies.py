"""LeadLaunch — Shared Route Dependencies."""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.errors import AuthError
from app.services.auth_service import AuthContext, decode_session_token

_bearer_scheme = HTTPBearer(auto_error=False)


async def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthContext:
    """Require ``Authorization: Bearer <token>`` and return the caller."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise AuthError("Missing token")

    ctx = decode_session_token(credentials.credentials)
    if ctx is None:
        raise AuthError("Invalid token")
    return ctx
