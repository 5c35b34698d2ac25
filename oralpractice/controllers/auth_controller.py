import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from oralpractice.core.clock import utcnow
from oralpractice.core.config import settings
from oralpractice.core.errors import AuthError, Conflict, ValidationError
from oralpractice.core.security import create_access_token, hash_password, verify_password
from oralpractice.models.user import User, UserRole
from oralpractice.schemas.auth import LoginRequest, LoginResponse, MeResponse, RegisterRequest, UserInfo

logger = logging.getLogger(__name__)


def _token_response(user: User) -> LoginResponse:
    return LoginResponse(
        access_token=create_access_token(user.id, user.username, user.role.value),
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserInfo.model_validate(user),
    )


async def login(payload: LoginRequest, db: AsyncSession) -> LoginResponse:
    """
    Username + password login.

    Unknown username and wrong password produce the same 401 so callers
    cannot enumerate accounts; verify_password runs against a dummy hash
    when the user does not exist so timing is identical too.
    """
    result = await db.execute(select(User).where(User.username == payload.username))
    user = result.scalar_one_or_none()

    password_ok = verify_password(payload.password, user.password_hash if user else None)

    if not user or not password_ok:
        logger.info("Failed login for username=%r", payload.username)
        raise AuthError("Invalid username or password")

    user.last_login_at = utcnow()
    db.add(user)
    await db.flush()

    logger.info("User %s (%s) logged in", user.id, user.role.value)
    return _token_response(user)


async def register(payload: RegisterRequest, db: AsyncSession) -> LoginResponse:
    username = payload.username.strip()
    if not username:
        raise ValidationError("Username is required")
    existing = await db.execute(select(User.id).where(User.username == username))
    if existing.scalar_one_or_none() is not None:
        raise Conflict("Username already exists")

    user = User(
        username=username,
        password_hash=hash_password(payload.password),
        role=UserRole.STUDENT,
        real_name=payload.real_name.strip(),
        email=payload.email,
        student_no=payload.student_no,
        class_name=payload.class_name,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info("Registered student %s (%s)", user.id, user.username)
    return _token_response(user)


async def get_me(user: User) -> MeResponse:
    """User is already loaded by the dependency."""
    return MeResponse.model_validate(user)
