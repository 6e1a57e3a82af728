from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from booking_engine.core.config import settings

ROLES = ("PRO", "CLIENT")


@dataclass(frozen=True)
class Actor:
    """Authenticated caller: a professional or a client profile."""

    role: str
    profile_id: int

    @property
    def is_pro(self) -> bool:
        return self.role == "PRO"


def create_access_token(subject: str | int, role: str) -> str:
    """Issue an access token for a professional or client profile.

    Production tokens come from the auth service; this is used by local
    tooling and tests and produces the same claims.
    """
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode = {"sub": str(subject), "role": role, "exp": expire, "type": "access"}
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> tuple[str, str] | None:
    """Returns (profile_id_str, role) or None."""
    try:
        payload = jwt.decode(
            token, settings.secret_key, algorithms=[settings.algorithm]
        )
    except JWTError:
        return None
    if payload.get("type") != "access":
        return None
    sub = payload.get("sub")
    role = payload.get("role")
    if not sub or role not in ROLES:
        return None
    return str(sub), role
