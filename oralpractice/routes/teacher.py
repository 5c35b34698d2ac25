from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from oralpractice.controllers import record_controller, stats_controller
from oralpractice.core.database import get_db
from oralpractice.core.dependencies import require_teacher
from oralpractice.models.user import User
from oralpractice.schemas.exercise_record import (
    ExerciseRecordOut,
    TeacherRecordOut,
    ReviewIn,
    FeedbackIn,
)
from oralpractice.schemas.stats import ClassStatsRowOut

router = APIRouter(tags=["Teacher Review"])


@router.get(
    "/submissions/pending",
    response_model=list[TeacherRecordOut],
    summary="Submissions on my exercises still awaiting review",
)
async def pending_submissions(
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    return await record_controller.list_pending_submissions(db, teacher.id)


@router.get(
    "/submissions/awaiting-feedback",
    response_model=list[TeacherRecordOut],
    summary="Records on my exercises without teacher feedback",
)
async def awaiting_feedback(
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    return await record_controller.list_awaiting_feedback(db, teacher.id)


@router.post(
    "/submissions/{record_id}/review",
    response_model=ExerciseRecordOut,
    summary="Approve or reject a submission",
    description="Reviewing the same record again overwrites the previous decision.",
)
async def review_submission(
    record_id: int,
    payload: ReviewIn,
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    record = await record_controller.review_record(
        db,
        teacher,
        record_id,
        payload.status,
        payload.teacher_feedback,
        payload.feedback_type,
    )
    return ExerciseRecordOut.model_validate(record)


@router.put(
    "/exercise-records/{record_id}/feedback",
    response_model=ExerciseRecordOut,
    summary="Attach teacher feedback",
    description="Sets the feedback text only; the review status is not changed.",
)
async def add_feedback(
    record_id: int,
    payload: FeedbackIn,
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    record = await record_controller.attach_feedback(db, teacher, record_id, payload.feedback, payload.feedback_type)
    return ExerciseRecordOut.model_validate(record)


@router.get(
    "/class-stats",
    response_model=list[ClassStatsRowOut],
    summary="Per-student statistics on my exercises",
)
async def class_stats(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    return await stats_controller.class_stats(db, teacher.id, start_date, end_date)
