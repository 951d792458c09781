"""Password hashing (bcrypt) and JWT access tokens carrying the user id and role name."""

from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt

from app.core.config import settings

BCRYPT_ROUNDS = 12
# bcrypt ignores input past 72 bytes
BCRYPT_MAX_BYTES = 72

EMAIL_MAX_LEN = 150
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128

TOKEN_TYPE = "access"


def normalize_email(email: str) -> str:
    """Emails are the login identifier and are stored trimmed and lowercased."""
    return email.strip().lower()


def hash_password(plain_password: str) -> str:
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """False for a wrong password or a stored value that is not a bcrypt hash."""
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def create_access_token(sub: str | int, role: str) -> str:
    """
    Signed JWT with sub (user id), role name, type, iat and exp.

    The role claim is informational; authorization always reads the current
    role through the permission resolver.
    """
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": str(sub),
        "role": role,
        "type": TOKEN_TYPE,
        "iat": now,
        "exp": now + timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET.get_secret_value(), algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify signature and expiry; raises jwt.PyJWTError for anything that is not a valid access token."""
    payload = jwt.decode(
        token,
        settings.JWT_SECRET.get_secret_value(),
        algorithms=[settings.JWT_ALGORITHM],
        options={"require": ["exp", "sub"]},
    )
    if payload.get("type") != TOKEN_TYPE:
        raise jwt.InvalidTokenError("Not an access token")
    return payload
