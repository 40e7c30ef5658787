"""Admin authentication: password hashing and JWT token management.

Members never log in; only the club administrator holds a token. The admin
account is configured through settings (CS_ADMIN_EMAIL and a bcrypt hash
in CS_ADMIN_PASSWORD_HASH).
"""

import hmac
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ADMIN_ROLE = "admin"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def authenticate_admin(email: str, password: str) -> bool:
    """Check credentials against the configured admin account."""
    if not settings.admin_password_hash:
        return False
    if not hmac.compare_digest(email.strip().lower(), settings.admin_email.lower()):
        return False
    return verify_password(password, settings.admin_password_hash)


def create_access_token(subject: str, extra: dict | None = None) -> str:
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {"sub": subject, "exp": expire, "type": "access"}
    if extra:
        payload.update(extra)
    return jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)


def create_admin_token() -> str:
    return create_access_token(settings.admin_email, {"role": ADMIN_ROLE})


def decode_token(token: str) -> dict:
    """Decode and validate a JWT. Raises JWTError on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise
