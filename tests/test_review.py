from datetime import datetime, timedelta, timezone

import pytest

from oralpractice.controllers import record_controller
from oralpractice.core.errors import Forbidden, NotFound, ValidationError
from oralpractice.models.user import User
from oralpractice.models.exercise_record import RecordStatus, FeedbackType
from oralpractice.schemas.exercise_record import ReviewDecision
from oralpractice.schemas.submission import SubmissionIn

NOW = datetime(2026, 4, 1, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def exercises(sync_engine, users):
    """One exercise per teacher."""
    from sqlalchemy.orm import Session
    from oralpractice.models.exercise import Exercise

    with Session(sync_engine) as s:
        mine = Exercise(teacher_id=users.teacher.id, title="Mine", content="Good morning.")
        theirs = Exercise(teacher_id=users.teacher2.id, title="Theirs", content="Good night.")
        s.add_all([mine, theirs])
        s.commit()
        return mine.id, theirs.id


async def _submit(db, student_id, exercise_id, storage, scorer, score=80, minutes=0):
    student = await db.get(User, student_id)
    return await record_controller.submit_record(
        db, student, exercise_id, None, SubmissionIn(score=score),
        storage=storage, scorer=scorer, now=NOW + timedelta(minutes=minutes),
    )


@pytest.mark.asyncio
async def test_review_sets_status_reviewer_and_feedback(db, users, exercises, storage, scorer):
    rec = await _submit(db, users.student.id, exercises[0], storage, scorer)
    teacher = await db.get(User, users.teacher.id)

    out = await record_controller.review_record(
        db, teacher, rec.id, ReviewDecision.APPROVED, "Clear pronunciation", now=NOW + timedelta(hours=1)
    )

    assert out.status == RecordStatus.APPROVED
    assert out.reviewer_id == users.teacher.id
    assert out.teacher_feedback == "Clear pronunciation"
    assert out.feedback_type == FeedbackType.TEACHER
    assert out.reviewed_at is not None


@pytest.mark.asyncio
async def test_review_twice_is_idempotent(db, users, exercises, storage, scorer):
    rec = await _submit(db, users.student.id, exercises[0], storage, scorer)
    teacher = await db.get(User, users.teacher.id)

    first = await record_controller.review_record(db, teacher, rec.id, ReviewDecision.REJECTED, "Too fast")
    snapshot = (first.status, first.reviewer_id, first.teacher_feedback)
    second = await record_controller.review_record(db, teacher, rec.id, ReviewDecision.REJECTED, "Too fast")

    assert (second.status, second.reviewer_id, second.teacher_feedback) == snapshot


@pytest.mark.asyncio
async def test_review_requires_teacher_and_existing_record(db, users, exercises, storage, scorer):
    rec = await _submit(db, users.student.id, exercises[0], storage, scorer)
    student = await db.get(User, users.student.id)
    teacher = await db.get(User, users.teacher.id)

    with pytest.raises(Forbidden):
        await record_controller.review_record(db, student, rec.id, ReviewDecision.APPROVED, None)
    with pytest.raises(NotFound):
        await record_controller.review_record(db, teacher, 9999, ReviewDecision.APPROVED, None)


@pytest.mark.asyncio
async def test_attach_feedback_leaves_status_alone(db, users, exercises, storage, scorer):
    rec = await _submit(db, users.student.id, exercises[0], storage, scorer)
    teacher = await db.get(User, users.teacher.id)

    out = await record_controller.attach_feedback(db, teacher, rec.id, "  Watch the th sound  ")

    assert out.teacher_feedback == "Watch the th sound"
    assert out.feedback_type == FeedbackType.BOTH
    assert out.status == RecordStatus.SUBMITTED
    assert out.reviewer_id is None


@pytest.mark.asyncio
async def test_attach_feedback_requires_text(db, users, exercises, storage, scorer):
    rec = await _submit(db, users.student.id, exercises[0], storage, scorer)
    teacher = await db.get(User, users.teacher.id)

    for text in (None, "", "   "):
        with pytest.raises(ValidationError):
            await record_controller.attach_feedback(db, teacher, rec.id, text)
    with pytest.raises(NotFound):
        await record_controller.attach_feedback(db, teacher, 9999, "ok")


@pytest.mark.asyncio
async def test_attach_feedback_requires_teacher(db, users, exercises, storage, scorer):
    rec = await _submit(db, users.student.id, exercises[0], storage, scorer)
    student = await db.get(User, users.student.id)

    with pytest.raises(Forbidden):
        await record_controller.attach_feedback(db, student, rec.id, "Sounds great")


@pytest.mark.asyncio
async def test_pending_and_awaiting_lists_are_scoped_to_own_exercises(db, users, exercises, storage, scorer):
    mine, theirs = exercises
    a = await _submit(db, users.student.id, mine, storage, scorer, minutes=0)
    b = await _submit(db, users.student2.id, mine, storage, scorer, minutes=1)
    await _submit(db, users.student.id, theirs, storage, scorer, minutes=2)

    teacher = await db.get(User, users.teacher.id)
    await record_controller.review_record(db, teacher, a.id, ReviewDecision.APPROVED, None)
    await record_controller.attach_feedback(db, teacher, b.id, "Louder please")

    pending = await record_controller.list_pending_submissions(db, users.teacher.id)
    awaiting = await record_controller.list_awaiting_feedback(db, users.teacher.id)

    assert [r.id for r in pending] == [b.id]
    assert pending[0].username == "student2"
    assert [r.id for r in awaiting] == [a.id]


@pytest.mark.asyncio
async def test_my_feedback_lists_reviewed_records_with_teacher_name(db, users, exercises, storage, scorer):
    reviewed = await _submit(db, users.student.id, exercises[0], storage, scorer, minutes=0)
    await _submit(db, users.student.id, exercises[0], storage, scorer, minutes=1)

    teacher = await db.get(User, users.teacher.id)
    await record_controller.review_record(db, teacher, reviewed.id, ReviewDecision.APPROVED, "Well done")

    items = await record_controller.list_my_feedback(db, users.student.id)
    assert [i.id for i in items] == [reviewed.id]
    assert items[0].teacher_name == "Ms Wang"
    assert items[0].exercise_title == "Mine"
