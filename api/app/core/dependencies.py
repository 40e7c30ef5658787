"""FastAPI dependencies for injection into route handlers."""

from datetime import datetime

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import ADMIN_ROLE, decode_token
from app.core.database import get_db
from app.services.club_time import club_now
from app.services.rules_config import RuleConfig, load_rule_config

bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Require a valid admin bearer token. Returns the admin's email."""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    try:
        payload = decode_token(credentials.credentials)
        if payload.get("type") != "access":
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")
        subject = payload["sub"]
    except (JWTError, KeyError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    if payload.get("role") != ADMIN_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return subject


# ---------------------------------------------------------------------------
# Request context
# ---------------------------------------------------------------------------

def get_now() -> datetime:
    """Current club-local time. Overridden in tests to pin the clock."""
    return club_now()


async def get_rule_config(db: AsyncSession = Depends(get_db)) -> RuleConfig:
    """The rulebook, loaded once for this request."""
    return await load_rule_config(db)


def client_ip(request: Request) -> str | None:
    """Originating address, honouring a reverse proxy's forwarding headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None
