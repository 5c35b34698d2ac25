import logging
import uuid
from datetime import datetime

from sqlalchemy import select, func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from oralpractice.core.audio_storage import AudioStorage
from oralpractice.core.clock import as_utc, local_date, utcnow
from oralpractice.core.config import settings
from oralpractice.core.errors import Forbidden, NotFound, StorageError, ValidationError
from oralpractice.models.user import User
from oralpractice.models.exercise import Exercise
from oralpractice.models.exercise_record import ExerciseRecord, FeedbackType, RecordStatus
from oralpractice.controllers.stats_controller import upsert_daily_stats
from oralpractice.schemas.exercise_record import (
    ExerciseRecordOut,
    SubmitRecordOut,
    MyRecordOut,
    MyFeedbackOut,
    TeacherRecordOut,
    ReviewDecision,
)
from oralpractice.schemas.submission import SubmissionIn, AudioUpload
from oralpractice.services.scoring import (
    Scorer,
    clamp_metric,
    clamp_score,
    evaluate_with_fallback,
)

logger = logging.getLogger(__name__)

SOURCE_CLIENT = "client"


def _validate_audio(audio: AudioUpload | None) -> None:
    if audio is None:
        return
    if not audio.data:
        raise ValidationError("Empty audio file")
    if not (audio.content_type or "").startswith("audio/"):
        raise ValidationError("Only audio files are accepted")
    if len(audio.data) > settings.AUDIO_MAX_BYTES:
        raise ValidationError(f"Audio exceeds {settings.AUDIO_MAX_BYTES} bytes")


# ─────────────────────────────────────────────────────────────
# Submission
# ─────────────────────────────────────────────────────────────
async def submit_record(
    db: AsyncSession,
    student: User,
    exercise_id: int,
    audio: AudioUpload | None,
    inputs: SubmissionIn,
    storage: AudioStorage,
    scorer: Scorer,
    now: datetime | None = None,
) -> SubmitRecordOut:
    """
    Store one attempt.

    Order matters: audio is stored before anything touches the database,
    so a storage failure leaves no record behind. The record insert and
    the daily stats upsert share one commit; if that fails the audio
    object is removed again.
    """
    if not student.is_student:
        raise Forbidden("Student permission required")

    exercise = await db.get(Exercise, exercise_id)
    if not exercise:
        raise NotFound("Exercise not found")
    student_id = student.id

    _validate_audio(audio)
    if audio is None and inputs.score is None:
        raise ValidationError("Provide an audio recording or a score")

    audio_path = None
    if audio is not None:
        audio_path = await storage.save(
            audio.data,
            audio.filename,
            audio.content_type,
            student_id=student_id,
            exercise_id=exercise_id,
        )

    session_id = uuid.uuid4().hex
    warnings: list[str] = []

    try:
        if inputs.score is not None:
            source = SOURCE_CLIENT
            score = clamp_score(inputs.score)
            accuracy = clamp_metric(inputs.accuracy)
            fluency = clamp_metric(inputs.fluency)
            integrity = clamp_metric(inputs.integrity)
            ai_feedback = inputs.ai_feedback
        else:
            result, warnings = await evaluate_with_fallback(
                scorer, audio.data, audio.filename, exercise.content, session_id
            )
            source = result.source
            score = result.score
            accuracy, fluency, integrity = result.accuracy, result.fluency, result.integrity
            ai_feedback = result.feedback
    except Exception:
        # stored audio must not outlive a failed submission
        if audio_path:
            await storage.delete(audio_path)
        raise

    submit_time = as_utc(now) if now else utcnow()
    record = ExerciseRecord(
        student_id=student_id,
        exercise_id=exercise_id,
        audio_path=audio_path,
        session_id=session_id,
        score=score,
        accuracy=accuracy,
        fluency=fluency,
        integrity=integrity,
        ai_feedback=ai_feedback,
        feedback_type=inputs.feedback_type,
        attempt_count=1,
        status=RecordStatus.SUBMITTED,
        submit_time=submit_time,
    )

    try:
        db.add(record)
        await db.flush()
        await upsert_daily_stats(db, student_id, local_date(submit_time), score)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Submission by student %s on exercise %s failed: %s", student_id, exercise_id, e)
        if audio_path:
            await storage.delete(audio_path)
        raise StorageError("Could not save the submission, please retry") from e
    except Exception:
        await db.rollback()
        if audio_path:
            await storage.delete(audio_path)
        raise

    await db.refresh(record)
    logger.info(
        "Record %s: student %s exercise %s score %s (%s)",
        record.id, student_id, exercise_id, score, source,
    )

    return SubmitRecordOut.model_validate(
        {
            **ExerciseRecordOut.model_validate(record).model_dump(),
            "scoring_source": source,
            "warnings": warnings,
        }
    )


async def list_my_records(db: AsyncSession, student_id: int, limit: int = 10) -> list[MyRecordOut]:
    res = await db.execute(
        select(ExerciseRecord, Exercise.title, Exercise.content)
        .join(Exercise, Exercise.id == ExerciseRecord.exercise_id)
        .where(ExerciseRecord.student_id == student_id)
        .order_by(ExerciseRecord.submit_time.desc(), ExerciseRecord.id.desc())
        .limit(max(1, limit))
    )
    return [
        MyRecordOut.model_validate(
            {
                **ExerciseRecordOut.model_validate(r).model_dump(),
                "exercise_title": title,
                "exercise_content": content,
            }
        )
        for r, title, content in res.all()
    ]


async def list_my_feedback(db: AsyncSession, student_id: int) -> list[MyFeedbackOut]:
    """Records a teacher has reviewed or commented on, latest first."""
    reviewer = aliased(User)
    res = await db.execute(
        select(ExerciseRecord, Exercise.title, reviewer.real_name)
        .join(Exercise, Exercise.id == ExerciseRecord.exercise_id)
        .outerjoin(reviewer, reviewer.id == ExerciseRecord.reviewer_id)
        .where(
            ExerciseRecord.student_id == student_id,
            or_(
                ExerciseRecord.teacher_feedback.is_not(None),
                ExerciseRecord.status != RecordStatus.SUBMITTED,
            ),
        )
        .order_by(
            func.coalesce(ExerciseRecord.reviewed_at, ExerciseRecord.submit_time).desc(),
            ExerciseRecord.id.desc(),
        )
    )
    return [
        MyFeedbackOut.model_validate(
            {
                **ExerciseRecordOut.model_validate(r).model_dump(),
                "exercise_title": title,
                "teacher_name": teacher_name,
            }
        )
        for r, title, teacher_name in res.all()
    ]


# ─────────────────────────────────────────────────────────────
# Review / feedback (teacher)
# ─────────────────────────────────────────────────────────────
async def review_record(
    db: AsyncSession,
    reviewer: User,
    record_id: int,
    decision: ReviewDecision,
    feedback_text: str | None,
    feedback_type: FeedbackType = FeedbackType.TEACHER,
    now: datetime | None = None,
) -> ExerciseRecord:
    """
    Approve or reject a record. Reviewing again overwrites the previous
    decision rather than stacking a new one.
    """
    if not reviewer.is_teacher:
        raise Forbidden("Teacher permission required")

    record = await db.get(ExerciseRecord, record_id)
    if not record:
        raise NotFound("Record not found")

    record.status = RecordStatus(decision.value)
    record.reviewer_id = reviewer.id
    record.reviewed_at = as_utc(now) if now else utcnow()
    record.teacher_feedback = (feedback_text or "").strip() or None
    record.feedback_type = feedback_type

    await db.commit()
    await db.refresh(record)
    logger.info("Record %s %s by teacher %s", record.id, record.status.value, reviewer.id)
    return record


async def attach_feedback(
    db: AsyncSession,
    reviewer: User,
    record_id: int,
    feedback_text: str | None,
    feedback_type: FeedbackType = FeedbackType.BOTH,
) -> ExerciseRecord:
    """Sets teacher feedback only; status is left alone."""
    if not reviewer.is_teacher:
        raise Forbidden("Teacher permission required")

    text = (feedback_text or "").strip()
    if not text:
        raise ValidationError("Feedback content is required")

    record = await db.get(ExerciseRecord, record_id)
    if not record:
        raise NotFound("Record not found")

    record.teacher_feedback = text
    record.feedback_type = feedback_type
    await db.commit()
    await db.refresh(record)
    logger.info("Feedback attached to record %s", record.id)
    return record


async def _teacher_records(db: AsyncSession, teacher_id: int, *criteria) -> list[TeacherRecordOut]:
    res = await db.execute(
        select(ExerciseRecord, Exercise.title, User)
        .join(Exercise, Exercise.id == ExerciseRecord.exercise_id)
        .join(User, User.id == ExerciseRecord.student_id)
        .where(Exercise.teacher_id == teacher_id, *criteria)
        .order_by(ExerciseRecord.submit_time.desc(), ExerciseRecord.id.desc())
    )
    return [
        TeacherRecordOut.model_validate(
            {
                **ExerciseRecordOut.model_validate(r).model_dump(),
                "username": student.username,
                "real_name": student.real_name,
                "class_name": student.class_name,
                "exercise_title": title,
            }
        )
        for r, title, student in res.all()
    ]


async def list_pending_submissions(db: AsyncSession, teacher_id: int) -> list[TeacherRecordOut]:
    return await _teacher_records(db, teacher_id, ExerciseRecord.status == RecordStatus.SUBMITTED)


async def list_awaiting_feedback(db: AsyncSession, teacher_id: int) -> list[TeacherRecordOut]:
    return await _teacher_records(db, teacher_id, ExerciseRecord.teacher_feedback.is_(None))
