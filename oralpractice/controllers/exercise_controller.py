import logging
from datetime import datetime

from sqlalchemy import select, delete, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from oralpractice.core.clock import as_utc, utcnow
from oralpractice.core.errors import Forbidden, NotFound, ValidationError
from oralpractice.models.user import User
from oralpractice.models.exercise import Exercise
from oralpractice.models.exercise_record import ExerciseRecord
from oralpractice.controllers.stats_controller import rebuild_attendance_stats
from oralpractice.schemas.exercise import (
    ExerciseIn,
    ExerciseOut,
    StudentExerciseOut,
    ExerciseAvailability,
)
from oralpractice.schemas.exercise_record import ExerciseRecordOut, TeacherRecordOut

logger = logging.getLogger(__name__)

DIFFICULTY_LEVELS = (1, 2, 3)


def _validated_fields(payload: ExerciseIn) -> dict:
    title = (payload.title or "").strip()
    content = (payload.content or "").strip()
    if not title or not content:
        raise ValidationError("Title and content are required")

    if payload.difficulty_level not in DIFFICULTY_LEVELS:
        raise ValidationError("difficulty_level must be 1, 2 or 3")

    start = as_utc(payload.start_time)
    end = as_utc(payload.end_time)
    if start and end and start > end:
        raise ValidationError("start_time must not be after end_time")

    return {
        "title": title,
        "content": content,
        "difficulty_level": payload.difficulty_level,
        "start_time": start,
        "end_time": end,
        "is_active": payload.is_active,
    }


def to_exercise_out(ex: Exercise) -> ExerciseOut:
    out = ExerciseOut.model_validate(ex)
    out.teacher_name = ex.teacher.real_name if ex.teacher else None
    return out


def availability_status(ex: Exercise, now: datetime, has_record: bool) -> ExerciseAvailability:
    """
    Per-student tag. A prior submission wins over the time window so a
    student always sees what they already did.
    """
    if has_record:
        return ExerciseAvailability.SUBMITTED
    start = as_utc(ex.start_time)
    end = as_utc(ex.end_time)
    if start is not None and now < start:
        return ExerciseAvailability.PENDING
    if end is not None and now > end:
        return ExerciseAvailability.EXPIRED
    return ExerciseAvailability.AVAILABLE


async def _get_owned_exercise(db: AsyncSession, teacher: User, exercise_id: int) -> Exercise:
    ex = await db.get(Exercise, exercise_id)
    if not ex:
        raise NotFound("Exercise not found")
    if ex.teacher_id != teacher.id:
        raise Forbidden("You can only manage your own exercises")
    return ex


# ─────────────────────────────────────────────────────────────
# Teacher side
# ─────────────────────────────────────────────────────────────
async def create_exercise(db: AsyncSession, teacher: User, payload: ExerciseIn) -> ExerciseOut:
    ex = Exercise(teacher_id=teacher.id, **_validated_fields(payload))
    db.add(ex)
    await db.commit()
    await db.refresh(ex)

    logger.info("Teacher %s created exercise %s (%r)", teacher.id, ex.id, ex.title)
    out = ExerciseOut.model_validate(ex)
    out.teacher_name = teacher.real_name
    return out


async def list_teacher_exercises(db: AsyncSession, teacher_id: int) -> list[ExerciseOut]:
    res = await db.execute(
        select(Exercise)
        .where(Exercise.teacher_id == teacher_id)
        .order_by(Exercise.created_at.desc(), Exercise.id.desc())
    )
    return [to_exercise_out(ex) for ex in res.scalars().unique().all()]


async def get_exercise(db: AsyncSession, exercise_id: int) -> ExerciseOut:
    ex = await db.get(Exercise, exercise_id)
    if not ex:
        raise NotFound("Exercise not found")
    return to_exercise_out(ex)


async def update_exercise(db: AsyncSession, teacher: User, exercise_id: int, payload: ExerciseIn) -> ExerciseOut:
    ex = await _get_owned_exercise(db, teacher, exercise_id)
    for field, value in _validated_fields(payload).items():
        setattr(ex, field, value)
    await db.commit()
    await db.refresh(ex)
    return to_exercise_out(ex)


async def purge_exercises(db: AsyncSession, exercise_ids: list[int]) -> set[int]:
    """
    Deletes exercises together with their records. Returns the students
    whose records were removed so their daily stats can be rebuilt.
    Does not commit.
    """
    if not exercise_ids:
        return set()

    res = await db.execute(
        select(ExerciseRecord.student_id)
        .where(ExerciseRecord.exercise_id.in_(exercise_ids))
        .distinct()
    )
    affected = set(res.scalars().all())

    await db.execute(delete(ExerciseRecord).where(ExerciseRecord.exercise_id.in_(exercise_ids)))
    await db.execute(delete(Exercise).where(Exercise.id.in_(exercise_ids)))
    return affected


async def delete_exercise(db: AsyncSession, teacher: User, exercise_id: int) -> None:
    await _get_owned_exercise(db, teacher, exercise_id)

    affected = await purge_exercises(db, [exercise_id])
    for student_id in affected:
        await rebuild_attendance_stats(db, student_id)

    await db.commit()
    logger.info(
        "Teacher %s deleted exercise %s (%d students' stats rebuilt)",
        teacher.id, exercise_id, len(affected),
    )


async def list_exercise_records(db: AsyncSession, teacher: User, exercise_id: int) -> list[TeacherRecordOut]:
    ex = await _get_owned_exercise(db, teacher, exercise_id)

    res = await db.execute(
        select(ExerciseRecord, User)
        .join(User, User.id == ExerciseRecord.student_id)
        .where(ExerciseRecord.exercise_id == exercise_id)
        .order_by(ExerciseRecord.submit_time.desc(), ExerciseRecord.id.desc())
    )
    out = []
    for r, student in res.all():
        out.append(
            TeacherRecordOut.model_validate(
                {
                    **ExerciseRecordOut.model_validate(r).model_dump(),
                    "username": student.username,
                    "real_name": student.real_name,
                    "class_name": student.class_name,
                    "exercise_title": ex.title,
                }
            )
        )
    return out


# ─────────────────────────────────────────────────────────────
# Student side
# ─────────────────────────────────────────────────────────────
async def list_available_exercises(
    db: AsyncSession,
    student_id: int,
    now: datetime | None = None,
) -> list[StudentExerciseOut]:
    """
    Active exercises whose window contains `now`, newest first, each
    tagged with this student's status.
    """
    now = as_utc(now) if now else utcnow()

    res = await db.execute(
        select(Exercise)
        .where(
            Exercise.is_active.is_(True),
            or_(Exercise.start_time.is_(None), Exercise.start_time <= now),
            or_(Exercise.end_time.is_(None), Exercise.end_time >= now),
        )
        .order_by(Exercise.created_at.desc(), Exercise.id.desc())
    )
    exercises = list(res.scalars().unique().all())
    if not exercises:
        return []

    done_res = await db.execute(
        select(ExerciseRecord.exercise_id)
        .where(
            and_(
                ExerciseRecord.student_id == student_id,
                ExerciseRecord.exercise_id.in_([ex.id for ex in exercises]),
            )
        )
        .distinct()
    )
    done = set(done_res.scalars().all())

    out = []
    for ex in exercises:
        base = to_exercise_out(ex).model_dump()
        base["status"] = availability_status(ex, now, ex.id in done)
        out.append(StudentExerciseOut.model_validate(base))
    return out
