from datetime import datetime

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from booking_engine.core.db import get_session
from booking_engine.core.security import Actor, decode_access_token
from booking_engine.core.timezones import utc_now

__all__ = ["get_session", "get_current_actor", "require_pro", "require_client", "get_now"]

security = HTTPBearer(auto_error=False)


def get_now() -> datetime:
    """Request clock; overridden in tests to pin "now"."""
    return utc_now()


async def get_current_actor(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> Actor:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or invalid authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )
    decoded = decode_access_token(credentials.credentials)
    if not decoded:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    subject, role = decoded
    try:
        profile_id = int(subject)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Actor(role=role, profile_id=profile_id)


async def require_pro(actor: Actor = Depends(get_current_actor)) -> Actor:
    if actor.role != "PRO":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Professionals only")
    return actor


async def require_client(actor: Actor = Depends(get_current_actor)) -> Actor:
    if actor.role != "CLIENT":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Clients only")
    return actor
