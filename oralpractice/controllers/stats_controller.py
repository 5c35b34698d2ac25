from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable

from sqlalchemy import select, delete, func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from oralpractice.core.clock import day_range_utc, local_date, today, utcnow
from oralpractice.core.config import settings
from oralpractice.core.errors import ValidationError
from oralpractice.models.user import User
from oralpractice.models.exercise import Exercise
from oralpractice.models.exercise_record import ExerciseRecord
from oralpractice.models.attendance_stats import AttendanceStats
from oralpractice.schemas.stats import StudentStatsOut, ClassStatsRowOut


def resolve_range(start: date | None, end: date | None) -> tuple[date, date]:
    """Defaults to the last STATS_DEFAULT_DAYS days ending today."""
    end = end or today()
    start = start or (end - timedelta(days=settings.STATS_DEFAULT_DAYS))
    if start > end:
        raise ValidationError("startDate must not be after endDate")
    return start, end


def _aggregate(rows: Iterable[tuple[int, object]]) -> dict:
    """rows: (score, submit_time). Empty input gives all zeros, never None."""
    scores = []
    days = set()
    for score, submit_time in rows:
        scores.append(int(score or 0))
        days.add(local_date(submit_time))

    if not scores:
        return {"total_exercises": 0, "avg_score": 0.0, "max_score": 0, "active_days": 0}

    return {
        "total_exercises": len(scores),
        "avg_score": round(sum(scores) / len(scores), 2),
        "max_score": max(scores),
        "active_days": len(days),
    }


# ─────────────────────────────────────────────────────────────
# Range statistics (computed from records)
# ─────────────────────────────────────────────────────────────
async def student_stats(
    db: AsyncSession,
    student_id: int,
    start: date | None = None,
    end: date | None = None,
) -> StudentStatsOut:
    start, end = resolve_range(start, end)
    lo, hi = day_range_utc(start, end)

    res = await db.execute(
        select(ExerciseRecord.score, ExerciseRecord.submit_time).where(
            ExerciseRecord.student_id == student_id,
            ExerciseRecord.submit_time >= lo,
            ExerciseRecord.submit_time < hi,
        )
    )
    return StudentStatsOut(start_date=start, end_date=end, **_aggregate(res.all()))


async def class_stats(
    db: AsyncSession,
    teacher_id: int,
    start: date | None = None,
    end: date | None = None,
) -> list[ClassStatsRowOut]:
    """
    Per-student aggregates over records on this teacher's exercises.
    Students without a record in range are left out.
    """
    start, end = resolve_range(start, end)
    lo, hi = day_range_utc(start, end)

    res = await db.execute(
        select(ExerciseRecord.student_id, ExerciseRecord.score, ExerciseRecord.submit_time)
        .join(Exercise, Exercise.id == ExerciseRecord.exercise_id)
        .where(
            Exercise.teacher_id == teacher_id,
            ExerciseRecord.submit_time >= lo,
            ExerciseRecord.submit_time < hi,
        )
    )
    by_student: dict[int, list] = defaultdict(list)
    for student_id, score, submit_time in res.all():
        by_student[student_id].append((score, submit_time))

    if not by_student:
        return []

    users_res = await db.execute(select(User).where(User.id.in_(list(by_student))))
    users = {u.id: u for u in users_res.scalars().all()}

    rows = []
    for student_id, records in by_student.items():
        u = users.get(student_id)
        if u is None:
            continue
        rows.append(
            ClassStatsRowOut(
                student_id=student_id,
                username=u.username,
                real_name=u.real_name,
                class_name=u.class_name,
                **_aggregate(records),
            )
        )

    rows.sort(key=lambda r: (-r.avg_score, r.username))
    return rows


# ─────────────────────────────────────────────────────────────
# Daily attendance (materialised)
# ─────────────────────────────────────────────────────────────
def daily_upsert_statement(dialect: str, student_id: int, day: date, score: int):
    """
    INSERT .. ON CONFLICT (student_id, date) DO UPDATE for one submission.
    A single statement, so concurrent submissions on the same day cannot
    lose an increment or lower best_score.
    """
    if dialect == "postgresql":
        insert_fn, greatest = pg_insert, func.greatest
    elif dialect == "sqlite":
        insert_fn, greatest = sqlite_insert, func.max
    else:
        raise NotImplementedError(f"attendance upsert not supported on {dialect}")

    table = AttendanceStats.__table__
    stmt = insert_fn(table).values(
        student_id=student_id,
        date=day,
        exercises_completed=1,
        total_score=score,
        best_score=score,
        updated_at=utcnow(),
    )
    return stmt.on_conflict_do_update(
        index_elements=[table.c.student_id, table.c.date],
        set_={
            "exercises_completed": table.c.exercises_completed + 1,
            "total_score": table.c.total_score + stmt.excluded.total_score,
            "best_score": greatest(table.c.best_score, stmt.excluded.best_score),
            "updated_at": stmt.excluded.updated_at,
        },
    )


async def upsert_daily_stats(db: AsyncSession, student_id: int, day: date, score: int) -> None:
    """Does not commit."""
    dialect = db.get_bind().dialect.name
    await db.execute(daily_upsert_statement(dialect, student_id, day, score))


async def rebuild_attendance_stats(db: AsyncSession, student_id: int) -> None:
    """
    Recomputes every daily row for one student from exercise_records.
    Used after records disappear (exercise deleted). Does not commit.
    """
    res = await db.execute(
        select(ExerciseRecord.score, ExerciseRecord.submit_time).where(
            ExerciseRecord.student_id == student_id
        )
    )
    per_day: dict[date, list[int]] = defaultdict(list)
    for score, submit_time in res.all():
        per_day[local_date(submit_time)].append(int(score or 0))

    await db.execute(delete(AttendanceStats).where(AttendanceStats.student_id == student_id))

    now = utcnow()
    for day, scores in sorted(per_day.items()):
        db.add(
            AttendanceStats(
                student_id=student_id,
                date=day,
                exercises_completed=len(scores),
                total_score=sum(scores),
                best_score=max(scores),
                updated_at=now,
            )
        )
    await db.flush()


async def list_attendance(
    db: AsyncSession,
    student_id: int,
    start: date | None = None,
    end: date | None = None,
) -> list[AttendanceStats]:
    start, end = resolve_range(start, end)
    res = await db.execute(
        select(AttendanceStats)
        .where(
            AttendanceStats.student_id == student_id,
            AttendanceStats.date >= start,
            AttendanceStats.date <= end,
        )
        .order_by(AttendanceStats.date.desc())
    )
    return list(res.scalars().all())
