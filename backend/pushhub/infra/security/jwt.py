"""JWT access tokens for the HTTP API."""
from datetime import timedelta
from typing import Any, Optional

import jwt

from pushhub.domain.common.types import utc_now
from pushhub.settings import settings


def create_access_token(
    subject: str, roles: Optional[list[str]] = None, expires_delta: Optional[timedelta] = None
) -> str:
    """Create a signed access token for `subject`."""
    expire = utc_now() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    payload = {"sub": subject, "type": "access", "roles": roles or [], "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def decode_token(token: str) -> Optional[dict[str, Any]]:
    """Decode and verify a token. Returns None when invalid or expired."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except jwt.PyJWTError:
        return None
