"""Account authentication: bcrypt credentials, JWT issue/decode, FastAPI guards.

The authenticated principal is rebuilt from the bearer token on every request
as a ``CurrentUser``; nothing about the caller is kept in module state.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
from fastapi import Depends, Header
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agentmart.config import settings
from agentmart.core.exceptions import ForbiddenError, UnauthorizedError
from agentmart.database import get_db
from agentmart.models.user import ROLE_ADMIN, User


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


def create_user_token(user_id: str, email: str, role: str) -> str:
    """Create a signed JWT carrying the user's id, email and role."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "jti": str(uuid.uuid4()),
        "exp": now + timedelta(hours=settings.jwt_expire_hours),
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> CurrentUser:
    """Decode and validate a JWT. Raises UnauthorizedError on any failure."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise UnauthorizedError("Invalid or expired token") from exc
    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Token missing subject")
    return CurrentUser(id=user_id, email=payload.get("email", ""), role=payload.get("role", ""))


async def get_current_user(
    authorization: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
) -> CurrentUser:
    """FastAPI dependency: the caller identified by ``Authorization: Bearer <token>``.

    The role is read from the database rather than the token, so a role
    change takes effect on the next request.
    """
    if not authorization:
        raise UnauthorizedError("Missing Authorization header")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthorizedError("Authorization header must be: Bearer <token>")
    claims = decode_token(parts[1])

    row = (await db.execute(select(User.email, User.role).where(User.id == claims.id))).first()
    if row is None:
        raise UnauthorizedError("User no longer exists")
    return CurrentUser(id=claims.id, email=row.email, role=row.role)


def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    """FastAPI dependency that only lets ADMIN principals through."""
    if not user.is_admin:
        raise ForbiddenError("Access denied. Admin role required.")
    return user
