"""
Bearer credential helpers.

Tokens are HS256 JWTs with `sub` = user id and `role`. Issuance belongs to
the auth service; create_access_token exists for seeding and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import logging

from jose import ExpiredSignatureError, JWTError, jwt

from app.core.exceptions import AuthError
from app.core.settings import settings

logger = logging.getLogger(__name__)


def create_access_token(user_id: str, role: str, expires_minutes: Optional[int] = None) -> str:
    if expires_minutes is None:
        expires_minutes = settings.JWT_EXPIRE_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    claims = {"sub": user_id, "role": role, "exp": expire}
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Verify signature and expiry.

    Raises:
        AuthError: expired, malformed, or missing `sub`
    """
    try:
        claims = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise AuthError("Token has expired")
    except JWTError as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise AuthError("Token is not valid")

    if not claims.get("sub"):
        raise AuthError("Token is not valid")
    return claims
