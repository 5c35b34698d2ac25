from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from oralpractice.controllers import exercise_controller
from oralpractice.core.database import get_db
from oralpractice.core.dependencies import require_teacher
from oralpractice.models.user import User
from oralpractice.schemas.exercise import ExerciseIn, ExerciseOut
from oralpractice.schemas.exercise_record import TeacherRecordOut

router = APIRouter(prefix="/exercises", tags=["Exercises"])


@router.post("", response_model=ExerciseOut, summary="Create exercise (Teacher only)")
async def create_exercise(
    payload: ExerciseIn,
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    return await exercise_controller.create_exercise(db, teacher, payload)


@router.get("", response_model=list[ExerciseOut], summary="List my exercises (Teacher only)")
async def list_exercises(
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    return await exercise_controller.list_teacher_exercises(db, teacher.id)


@router.get("/{exercise_id}", response_model=ExerciseOut, summary="Get exercise")
async def get_exercise(
    exercise_id: int,
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    return await exercise_controller.get_exercise(db, exercise_id)


@router.put("/{exercise_id}", response_model=ExerciseOut, summary="Update exercise (owner only)")
async def update_exercise(
    exercise_id: int,
    payload: ExerciseIn,
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    return await exercise_controller.update_exercise(db, teacher, exercise_id, payload)


@router.delete(
    "/{exercise_id}",
    summary="Delete exercise (owner only)",
    description="Also deletes every record submitted for it and recomputes the affected students' daily stats.",
)
async def delete_exercise(
    exercise_id: int,
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    await exercise_controller.delete_exercise(db, teacher, exercise_id)
    return {"message": "Exercise deleted"}


@router.get(
    "/{exercise_id}/records",
    response_model=list[TeacherRecordOut],
    summary="Records submitted for one exercise (owner only)",
)
async def exercise_records(
    exercise_id: int,
    db: AsyncSession = Depends(get_db),
    teacher: User = Depends(require_teacher),
):
    return await exercise_controller.list_exercise_records(db, teacher, exercise_id)
