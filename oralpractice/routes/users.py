from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from oralpractice.controllers import user_controller
from oralpractice.core.database import get_db
from oralpractice.core.dependencies import require_teacher
from oralpractice.models.user import User
from oralpractice.schemas.user import (
    UserCreate,
    UserUpdate,
    UserOut,
    UserListItemOut,
    BatchImportRequest,
    BatchImportResponse,
)

router = APIRouter(prefix="/users", tags=["Users"])


# =========================================================
# TEACHER ONLY: ACCOUNT MANAGEMENT
# =========================================================

@router.get("", response_model=list[UserListItemOut], summary="List all users (Teacher only)")
async def list_users(
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    return await user_controller.list_users(db)


@router.get("/students", response_model=list[UserOut], summary="List students (Teacher only)")
async def list_students(
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    students = await user_controller.list_students(db)
    return [UserOut.model_validate(s) for s in students]


@router.post("", response_model=UserOut, summary="Create user (Teacher only)")
async def create_user(
    payload: UserCreate,
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    user = await user_controller.create_user(db, payload)
    return UserOut.model_validate(user)


@router.put("/{user_id}", response_model=UserOut, summary="Update user (Teacher only)")
async def update_user(
    user_id: int,
    payload: UserUpdate,
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    user = await user_controller.update_user(db, user_id, payload)
    return UserOut.model_validate(user)


@router.delete("/{user_id}", summary="Delete user (Teacher only)")
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    await user_controller.delete_user(db, teacher, user_id)
    return {"message": "User deleted"}


@router.post(
    "/batch-import",
    response_model=BatchImportResponse,
    summary="Batch import students (Teacher only)",
    description="Rows that fail (missing fields, duplicate username) are reported by index; the rest are created.",
)
async def batch_import(
    payload: BatchImportRequest,
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    return await user_controller.batch_import_students(db, payload.students)
