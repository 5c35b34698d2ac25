from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from oralpractice.core.database import get_db
from oralpractice.core.errors import AuthError, Forbidden
from oralpractice.core.security import decode_access_token
from oralpractice.models.user import User, UserRole

bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Resolves the caller from `Authorization: Bearer <token>`.

    - no token                      → 401
    - bad signature / expired / junk → 403
    - token for a deleted user      → 403
    """
    if not credentials:
        raise AuthError("Login token required")

    try:
        payload = decode_access_token(credentials.credentials)
        if payload.get("type") != "access":
            raise Forbidden("Invalid or expired token")
        user_id = int(payload["sub"])
    except (JWTError, KeyError, ValueError):
        raise Forbidden("Invalid or expired token")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise Forbidden("Invalid or expired token")

    return user


async def require_teacher(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.TEACHER:
        raise Forbidden("Teacher permission required")
    return user


async def require_student(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.STUDENT:
        raise Forbidden("Student permission required")
    return user
