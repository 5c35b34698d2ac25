from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, UploadFile, File, Form, Query
from sqlalchemy.ext.asyncio import AsyncSession

from oralpractice.controllers import exercise_controller, record_controller, stats_controller
from oralpractice.core.audio_storage import AudioStorage, get_audio_storage
from oralpractice.core.config import settings
from oralpractice.core.database import get_db
from oralpractice.core.dependencies import require_student
from oralpractice.models.user import User
from oralpractice.models.exercise_record import FeedbackType
from oralpractice.schemas.exercise import StudentExerciseOut
from oralpractice.schemas.exercise_record import SubmitRecordOut, MyRecordOut, MyFeedbackOut
from oralpractice.schemas.stats import StudentStatsOut, AttendanceDayOut
from oralpractice.schemas.submission import AudioUpload, SubmissionIn
from oralpractice.services.scoring import Scorer, get_scorer

router = APIRouter(tags=["Student"])


@router.get(
    "/active-exercises",
    response_model=list[StudentExerciseOut],
    summary="Exercises open right now",
    description="Active exercises inside their time window, newest first, tagged with the caller's status.",
)
async def active_exercises(
    db: AsyncSession = Depends(get_db),
    student: User = Depends(require_student),
):
    return await exercise_controller.list_available_exercises(db, student.id)


@router.post(
    "/exercise-records",
    response_model=SubmitRecordOut,
    summary="Submit a recording",
    description="""
Multipart form. `audio` is the recording (audio/*).

If `score` is sent the client-side evaluation is stored as-is (clamped to range);
otherwise the server evaluates the audio. When the evaluation service is down a
provisional score is stored and `warnings` says so.
    """,
)
async def submit_exercise_record(
    exercise_id: int = Form(...),
    audio: UploadFile | None = File(None),
    score: Optional[float] = Form(None),
    accuracy: Optional[float] = Form(None),
    fluency: Optional[float] = Form(None),
    integrity: Optional[float] = Form(None),
    ai_feedback: Optional[str] = Form(None),
    feedback_type: FeedbackType = Form(FeedbackType.AI),
    db: AsyncSession = Depends(get_db),
    student: User = Depends(require_student),
    storage: AudioStorage = Depends(get_audio_storage),
    scorer: Scorer = Depends(get_scorer),
):
    upload = None
    if audio is not None:
        # one byte past the limit is enough to reject oversize files
        data = await audio.read(settings.AUDIO_MAX_BYTES + 1)
        upload = AudioUpload(
            data=data,
            filename=audio.filename or "recording.wav",
            content_type=audio.content_type or "",
        )

    inputs = SubmissionIn(
        score=score,
        accuracy=accuracy,
        fluency=fluency,
        integrity=integrity,
        ai_feedback=ai_feedback,
        feedback_type=feedback_type,
    )
    return await record_controller.submit_record(
        db, student, exercise_id, upload, inputs, storage=storage, scorer=scorer
    )


@router.get("/my-records", response_model=list[MyRecordOut], summary="My latest records")
async def my_records(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    student: User = Depends(require_student),
):
    return await record_controller.list_my_records(db, student.id, limit=limit)


@router.get("/my-feedback", response_model=list[MyFeedbackOut], summary="Teacher feedback on my records")
async def my_feedback(
    db: AsyncSession = Depends(get_db),
    student: User = Depends(require_student),
):
    return await record_controller.list_my_feedback(db, student.id)


@router.get("/my-stats", response_model=StudentStatsOut, summary="My statistics over a date range")
async def my_stats(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    student: User = Depends(require_student),
):
    return await stats_controller.student_stats(db, student.id, start_date, end_date)


@router.get("/my-attendance", response_model=list[AttendanceDayOut], summary="My daily practice log")
async def my_attendance(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    db: AsyncSession = Depends(get_db),
    student: User = Depends(require_student),
):
    rows = await stats_controller.list_attendance(db, student.id, start_date, end_date)
    return [AttendanceDayOut.model_validate(r) for r in rows]
