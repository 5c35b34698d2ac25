import logging

from sqlalchemy import select, func, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from oralpractice.core.errors import Conflict, NotFound, ValidationError
from oralpractice.core.security import hash_password
from oralpractice.models.user import User, UserRole
from oralpractice.models.exercise import Exercise
from oralpractice.models.exercise_record import ExerciseRecord
from oralpractice.models.attendance_stats import AttendanceStats
from oralpractice.controllers.exercise_controller import purge_exercises
from oralpractice.controllers.stats_controller import rebuild_attendance_stats
from oralpractice.schemas.user import (
    UserCreate,
    UserUpdate,
    UserListItemOut,
    StudentImportRow,
    BatchImportResponse,
    ImportedRow,
    FailedRow,
)

logger = logging.getLogger(__name__)


async def _username_taken(db: AsyncSession, username: str, exclude_id: int | None = None) -> bool:
    q = select(User.id).where(User.username == username)
    if exclude_id is not None:
        q = q.where(User.id != exclude_id)
    res = await db.execute(q)
    return res.scalar_one_or_none() is not None


async def list_users(db: AsyncSession) -> list[UserListItemOut]:
    """All accounts, newest first, with how many records each student has."""
    q = (
        select(
            User,
            func.count(ExerciseRecord.id).label("exercise_count"),
            func.max(ExerciseRecord.submit_time).label("last_exercise_time"),
        )
        .outerjoin(ExerciseRecord, ExerciseRecord.student_id == User.id)
        .group_by(User.id)
        .order_by(User.created_at.desc(), User.id.desc())
    )
    res = await db.execute(q)

    out = []
    for user, count, last_time in res.all():
        item = UserListItemOut.model_validate(user)
        item.exercise_count = int(count or 0)
        item.last_exercise_time = last_time
        out.append(item)
    return out


async def list_students(db: AsyncSession) -> list[User]:
    res = await db.execute(
        select(User)
        .where(User.role == UserRole.STUDENT)
        .order_by(User.class_name.asc(), User.username.asc())
    )
    return list(res.scalars().all())


async def create_user(db: AsyncSession, payload: UserCreate) -> User:
    username = payload.username.strip()
    if await _username_taken(db, username):
        raise Conflict("Username already exists")

    is_student = payload.role == UserRole.STUDENT
    user = User(
        username=username,
        password_hash=hash_password(payload.password),
        role=payload.role,
        real_name=payload.real_name.strip(),
        email=payload.email,
        student_no=payload.student_no if is_student else None,
        class_name=payload.class_name if is_student else None,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Created %s account %s (%s)", user.role.value, user.id, user.username)
    return user


async def update_user(db: AsyncSession, user_id: int, payload: UserUpdate) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    username = payload.username.strip()
    if await _username_taken(db, username, exclude_id=user_id):
        raise Conflict("Username already exists")

    user.username = username
    user.real_name = payload.real_name.strip()
    user.email = payload.email
    if user.role == UserRole.STUDENT:
        user.student_no = payload.student_no
        user.class_name = payload.class_name

    if payload.password and payload.password.strip():
        if len(payload.password) < 6:
            raise ValidationError("Password must be at least 6 characters")
        user.password_hash = hash_password(payload.password)

    await db.commit()
    await db.refresh(user)
    return user


async def delete_user(db: AsyncSession, acting_user: User, user_id: int) -> None:
    """
    Removes an account and everything hanging off it. For a teacher that
    means their exercises (and every record on them) go too, and the
    affected students get their daily stats recomputed.
    """
    if user_id == acting_user.id:
        raise ValidationError("You cannot delete your own account")

    user = await db.get(User, user_id)
    if not user:
        raise NotFound("User not found")

    affected: set[int] = set()
    if user.role == UserRole.TEACHER:
        res = await db.execute(select(Exercise.id).where(Exercise.teacher_id == user_id))
        affected = await purge_exercises(db, list(res.scalars().all()))
        await db.execute(
            update(ExerciseRecord)
            .where(ExerciseRecord.reviewer_id == user_id)
            .values(reviewer_id=None)
        )

    # explicit so SQLite without FK enforcement stays consistent
    await db.execute(delete(ExerciseRecord).where(ExerciseRecord.student_id == user_id))
    await db.execute(delete(AttendanceStats).where(AttendanceStats.student_id == user_id))
    await db.delete(user)

    for student_id in affected - {user_id}:
        await rebuild_attendance_stats(db, student_id)

    await db.commit()
    logger.info("User %s deleted by %s", user_id, acting_user.id)


async def batch_import_students(db: AsyncSession, rows: list[StudentImportRow]) -> BatchImportResponse:
    """
    Creates student accounts row by row. A failing row is reported with
    its index and does not stop the rest of the import.
    """
    if not rows:
        raise ValidationError("Provide at least one student row")

    success: list[ImportedRow] = []
    failed: list[FailedRow] = []
    seen: set[str] = set()

    for i, row in enumerate(rows):
        username = (row.username or "").strip()
        if not username or not row.password or not (row.real_name or "").strip():
            failed.append(FailedRow(index=i, username=username or None,
                                    error="username, password and real_name are required"))
            continue

        if len(row.password) < 6:
            failed.append(FailedRow(index=i, username=username, error="Password must be at least 6 characters"))
            continue

        if username in seen or await _username_taken(db, username):
            failed.append(FailedRow(index=i, username=username, error="Username already exists"))
            continue

        user = User(
            username=username,
            password_hash=hash_password(row.password),
            role=UserRole.STUDENT,
            real_name=row.real_name.strip(),
            email=row.email or None,
            student_no=row.student_no or None,
            class_name=row.class_name or None,
        )
        db.add(user)
        await db.flush()
        seen.add(username)
        success.append(ImportedRow(index=i, username=username, user_id=user.id))

    await db.commit()
    logger.info("Batch import: %d created, %d failed", len(success), len(failed))

    return BatchImportResponse(
        message=f"Import finished: {len(success)} succeeded, {len(failed)} failed",
        success=success,
        failed=failed,
    )
