"""
Request dependencies: bearer authentication and role gates.
"""

from typing import Any, Dict, Optional

from fastapi import Depends, Header

from app.core.exceptions import AuthError, ForbiddenError
from app.services.storage import get_user_store
from app.utils.security import decode_access_token


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Accept both `Bearer <token>` and a bare token."""
    if not authorization:
        return None
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() == "bearer":
        return token.strip() or None
    return authorization.strip()


async def resolve_user(token: Optional[str]) -> Dict[str, Any]:
    if not token:
        raise AuthError("No token, authorization denied")
    claims = decode_access_token(token)
    user = await get_user_store().get(claims["sub"])
    if user is None:
        raise AuthError("Token is not valid")
    if not user.get("is_active", True):
        raise AuthError("Account is deactivated")
    return user


async def get_current_user(authorization: Optional[str] = Header(None)) -> Dict[str, Any]:
    return await resolve_user(bearer_token(authorization))


def require_roles(*roles: str):
    """Dependency factory: 403 unless the caller holds one of `roles`."""

    async def _check(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        if user.get("role") not in roles:
            raise ForbiddenError(f"Role '{user.get('role')}' is not authorized to access this route")
        return user

    return _check
