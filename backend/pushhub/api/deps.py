"""API dependencies."""
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel

from pushhub.infra.security.jwt import decode_token
from pushhub.services.push_service import PushService

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/v1/auth/login")


class CurrentUser(BaseModel):
    """Authenticated caller, taken from the access token claims."""

    id: str
    roles: list[str] = []

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles


def get_push_service(request: Request) -> PushService:
    """Push service built at startup (see main.lifespan)."""
    service = getattr(request.app.state, "push_service", None)
    if service is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Push service not started")
    return service


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    """Get current authenticated user."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(token)
    if payload is None:
        raise credentials_exception

    user_id: str = payload.get("sub")
    token_type: str = payload.get("type")
    if user_id is None or token_type != "access":
        raise credentials_exception

    return CurrentUser(id=user_id, roles=payload.get("roles") or [])


async def require_admin(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """Reject callers without the admin role."""
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return current_user
