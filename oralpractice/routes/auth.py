from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from oralpractice.controllers.auth_controller import get_me, login, register
from oralpractice.core.database import get_db
from oralpractice.core.dependencies import get_current_user
from oralpractice.models.user import User
from oralpractice.schemas.auth import LoginRequest, LoginResponse, MeResponse, RegisterRequest

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Login",
    description="""
Authenticate with username + password (students and teachers alike).
Returns a JWT Bearer token to use in all other requests.

**How to use the token:**
Add to request headers: `Authorization: Bearer <your_token>`
    """,
)
async def user_login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    return await login(payload, db)


@router.post(
    "/register",
    response_model=LoginResponse,
    summary="Student self-registration",
    description="Creates a student account and logs it in. Teacher accounts are created by a teacher via /users.",
)
async def student_register(
    payload: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> LoginResponse:
    return await register(payload, db)


@router.get(
    "/me",
    response_model=MeResponse,
    summary="Get Current User",
    description="Returns the authenticated user's profile. Requires Bearer token in header.",
)
async def me(
    current_user: User = Depends(get_current_user),
) -> MeResponse:
    return await get_me(current_user)


@router.post(
    "/logout",
    summary="Logout",
    description="""
JWT tokens are stateless, the server has no session to destroy.
To logout: delete the token from your frontend (sessionStorage/localStorage).
    """,
)
async def logout() -> dict:
    return {"detail": "Logged out. Delete your token on the client side."}
