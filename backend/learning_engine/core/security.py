"""
Adaptive Learning Engine - Security Module
JWT verification and the authenticated actor model
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from jose import JWTError, jwt

from learning_engine.core.config import settings


class Role(str, Enum):
    """Roles recognised by the capability table."""
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an engine operation."""
    user_id: str
    role: Role


def create_access_token(
    subject: str,
    role: Role,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Create a JWT access token.

    Tokens are normally minted by the identity service; this helper exists
    for tooling and tests that need to speak to the API directly.
    """
    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": str(subject),
        "role": role.value,
        "exp": now + (expires_delta or timedelta(minutes=30)),
        "iat": now,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict[str, Any] | None:
    """
    Decode and validate a JWT token.

    Returns:
        Decoded token payload or None if invalid
    """
    try:
        return jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        return None


def actor_from_token(token: str) -> Actor | None:
    """Verify an access token and build the actor from its claims."""
    payload = decode_token(token)
    if payload is None or payload.get("type") != "access":
        return None

    subject = payload.get("sub")
    try:
        role = Role(payload.get("role", Role.STUDENT.value))
    except ValueError:
        return None

    if not subject:
        return None
    return Actor(user_id=subject, role=role)
