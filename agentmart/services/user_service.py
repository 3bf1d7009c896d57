"""Account management: registration, login, profile CRUD, owned agents."""
import logging

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from agentmart.core.auth import CurrentUser, create_user_token, hash_password, verify_password
from agentmart.core.exceptions import (
    ConflictError,
    ForbiddenError,
    UnauthorizedError,
    UserNotFoundError,
    ValidationError,
)
from agentmart.models.agent import Agent
from agentmart.models.user import ROLE_USER, User
from agentmart.schemas.user import UserLoginRequest, UserRegisterRequest, UserUpdateRequest

logger = logging.getLogger(__name__)

_ADMIN_ONLY_FIELDS = {"role", "token_balance"}


def _normalize_email(email: str) -> str:
    return email.lower().strip()


async def find_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == _normalize_email(email)))
    return result.scalar_one_or_none()


async def register_user(db: AsyncSession, req: UserRegisterRequest) -> User:
    """Register a new ordinary account with a zero token balance."""
    if await find_user_by_email(db, req.email):
        raise ValidationError("Email already in use")

    user = User(
        name=req.name.strip(),
        email=_normalize_email(req.email),
        password_hash=hash_password(req.password),
        role=ROLE_USER,
        token_balance=0,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise ValidationError("Email already in use") from exc
    await db.refresh(user)
    logger.info("User registered: %s (%s)", user.id, user.email)
    return user


async def login_user(db: AsyncSession, req: UserLoginRequest) -> tuple[User, str]:
    """Authenticate by email/password. Returns the user and a fresh JWT."""
    user = await find_user_by_email(db, req.email)
    if not user or not verify_password(req.password, user.password_hash):
        raise UnauthorizedError("Invalid credentials")

    token = create_user_token(user.id, user.email, user.role)
    return user, token


async def get_user(db: AsyncSession, user_id: str) -> User:
    """Fetch a user by ID, with owned agents loaded fresh, or raise 404."""
    result = await db.execute(
        select(User)
        .where(User.id == user_id)
        .options(selectinload(User.owned_agents))
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()
    if not user:
        raise UserNotFoundError(user_id)
    return user


async def list_users(
    db: AsyncSession,
    page: int = 1,
    limit: int = 10,
    role: str | None = None,
    query: str | None = None,
) -> tuple[list[User], int]:
    """List users, newest first. ``query`` matches name or email."""
    conditions = []
    if role:
        conditions.append(User.role == role)
    if query:
        pattern = f"%{query}%"
        conditions.append(or_(User.name.ilike(pattern), User.email.ilike(pattern)))

    total = (await db.execute(select(func.count(User.id)).where(*conditions))).scalar() or 0
    stmt = (
        select(User)
        .where(*conditions)
        .order_by(User.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all()), total


async def update_user(
    db: AsyncSession, user_id: str, actor: CurrentUser, req: UserUpdateRequest
) -> User:
    """Update a user. Allowed for the account holder or an admin.

    Role and token balance are admin-only fields.
    """
    if actor.id != user_id and not actor.is_admin:
        raise ForbiddenError("You do not have permission to update this user")

    updates = req.model_dump(exclude_unset=True, exclude_none=True)
    if not actor.is_admin and _ADMIN_ONLY_FIELDS & updates.keys():
        raise ForbiddenError("Only admins can change role or token balance")

    user = await get_user(db, user_id)

    if "email" in updates:
        email = _normalize_email(updates.pop("email"))
        if email != user.email:
            if await find_user_by_email(db, email):
                raise ValidationError("Email already in use")
            user.email = email

    if "password" in updates:
        user.password_hash = hash_password(updates.pop("password"))

    for field, value in updates.items():
        setattr(user, field, value)

    try:
        await db.commit()
    except IntegrityError as exc:
        # Another account claimed the email between the check and the write.
        await db.rollback()
        raise ValidationError("Email already in use") from exc
    await db.refresh(user)
    return user


async def delete_user(db: AsyncSession, user_id: str) -> None:
    user = await get_user(db, user_id)
    await db.delete(user)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        logger.warning("User %s could not be deleted: %s", user_id, exc.orig)
        raise ConflictError("User still has agents, orders or payments") from exc
    logger.info("User deleted: %s", user_id)


async def get_owned_agents(db: AsyncSession, user_id: str) -> list[Agent]:
    user = await get_user(db, user_id)
    return list(user.owned_agents)
