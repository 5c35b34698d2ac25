from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select, func

from oralpractice.controllers import exercise_controller, record_controller
from oralpractice.core.errors import Forbidden, NotFound, ScoringProviderError, StorageError, ValidationError
from oralpractice.models.user import User
from oralpractice.models.exercise_record import ExerciseRecord, RecordStatus, FeedbackType
from oralpractice.models.attendance_stats import AttendanceStats
from oralpractice.schemas.exercise import ExerciseIn
from oralpractice.schemas.submission import AudioUpload, SubmissionIn
from oralpractice.services.scoring import FALLBACK_WARNING, SOURCE_PLACEHOLDER

NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)
WAV = AudioUpload(data=b"RIFF....WAVEfmt fake-audio", filename="take.wav", content_type="audio/wav")


class BrokenStorage:
    def __init__(self):
        self.deleted = []

    async def save(self, data, filename, content_type, student_id, exercise_id):
        raise StorageError("Could not store audio, please retry")

    async def delete(self, path):
        self.deleted.append(path)


class RecordingStorage:
    def __init__(self):
        self.saved = []
        self.deleted = []

    async def save(self, data, filename, content_type, student_id, exercise_id):
        path = f"audio/{student_id}/{exercise_id}/{len(self.saved)}.wav"
        self.saved.append(path)
        return path

    async def delete(self, path):
        self.deleted.append(path)


class DownScorer:
    async def evaluate(self, audio, filename, ref_text, session_id):
        raise ScoringProviderError("SOE HTTP error 503")


@pytest.fixture
def exercise_id(sync_engine, users):
    from sqlalchemy.orm import Session
    from oralpractice.models.exercise import Exercise

    with Session(sync_engine) as s:
        ex = Exercise(teacher_id=users.teacher.id, title="Weather", content="It is sunny today.")
        s.add(ex)
        s.commit()
        return ex.id


async def _count(db, model, *criteria):
    return (await db.execute(select(func.count()).select_from(model).where(*criteria))).scalar_one()


@pytest.mark.asyncio
async def test_submit_with_client_score_creates_record_and_daily_row(db, users, exercise_id, storage, scorer):
    student = await db.get(User, users.student.id)
    out = await record_controller.submit_record(
        db, student, exercise_id, WAV,
        SubmissionIn(score=88, accuracy=90.5, fluency=80, integrity=100, ai_feedback="Nice"),
        storage=storage, scorer=scorer, now=NOW,
    )

    assert out.status == RecordStatus.SUBMITTED
    assert out.attempt_count == 1
    assert out.score == 88
    assert out.accuracy == 90.5
    assert out.scoring_source == "client"
    assert out.warnings == []
    assert out.audio_path.startswith(f"audio/{users.student.id}/{exercise_id}/")
    assert len(out.session_id) == 32

    row = (await db.execute(select(AttendanceStats))).scalar_one()
    assert row.date == date(2026, 3, 10)
    assert (row.exercises_completed, row.total_score, row.best_score) == (1, 88, 88)


@pytest.mark.asyncio
async def test_daily_row_accumulates_and_keeps_best(db, users, exercise_id, storage, scorer):
    student = await db.get(User, users.student.id)
    for i, score in enumerate([70, 95, 60]):
        await record_controller.submit_record(
            db, student, exercise_id, None, SubmissionIn(score=score),
            storage=storage, scorer=scorer, now=NOW + timedelta(minutes=i),
        )

    row = (await db.execute(select(AttendanceStats))).scalar_one()
    assert row.exercises_completed == 3
    assert row.total_score == 225
    assert row.best_score == 95
    assert await _count(db, ExerciseRecord) == 3


def test_daily_upsert_is_a_single_atomic_statement():
    from sqlalchemy.dialects import postgresql
    from oralpractice.controllers.stats_controller import daily_upsert_statement

    stmt = daily_upsert_statement("postgresql", 1, date(2026, 3, 10), 80)
    sql = str(stmt.compile(dialect=postgresql.dialect()))

    assert "ON CONFLICT (student_id, date) DO UPDATE" in sql
    assert "attendance_stats.exercises_completed +" in sql
    assert "greatest(attendance_stats.best_score, excluded.best_score)" in sql


@pytest.mark.asyncio
async def test_next_day_gets_its_own_row(db, users, exercise_id, storage, scorer):
    student = await db.get(User, users.student.id)
    for when in (NOW, NOW + timedelta(days=1)):
        await record_controller.submit_record(
            db, student, exercise_id, None, SubmissionIn(score=80),
            storage=storage, scorer=scorer, now=when,
        )
    assert await _count(db, AttendanceStats) == 2


@pytest.mark.asyncio
async def test_scores_are_clamped(db, users, exercise_id, storage, scorer):
    student = await db.get(User, users.student.id)
    out = await record_controller.submit_record(
        db, student, exercise_id, None, SubmissionIn(score=140, accuracy=-3, fluency=250),
        storage=storage, scorer=scorer, now=NOW,
    )
    assert out.score == 100
    assert out.accuracy == 0
    assert out.fluency == 100


@pytest.mark.asyncio
async def test_server_scoring_when_no_score_given(db, users, exercise_id, storage, scorer):
    student = await db.get(User, users.student.id)
    out = await record_controller.submit_record(
        db, student, exercise_id, WAV, SubmissionIn(), storage=storage, scorer=scorer, now=NOW
    )
    assert out.scoring_source == SOURCE_PLACEHOLDER
    assert 60 <= out.score <= 95
    assert out.ai_feedback
    assert out.warnings == []


@pytest.mark.asyncio
async def test_scoring_outage_falls_back_with_warning(db, users, exercise_id, storage):
    student = await db.get(User, users.student.id)
    out = await record_controller.submit_record(
        db, student, exercise_id, WAV, SubmissionIn(), storage=storage, scorer=DownScorer(), now=NOW
    )
    assert out.scoring_source == SOURCE_PLACEHOLDER
    assert out.warnings == [FALLBACK_WARNING]
    assert await _count(db, ExerciseRecord) == 1


@pytest.mark.asyncio
async def test_storage_failure_leaves_nothing_behind(db, users, exercise_id, scorer):
    student = await db.get(User, users.student.id)
    with pytest.raises(StorageError):
        await record_controller.submit_record(
            db, student, exercise_id, WAV, SubmissionIn(score=80),
            storage=BrokenStorage(), scorer=scorer, now=NOW,
        )
    assert await _count(db, ExerciseRecord) == 0
    assert await _count(db, AttendanceStats) == 0


@pytest.mark.asyncio
async def test_database_failure_removes_stored_audio(db, users, exercise_id, scorer, monkeypatch):
    from sqlalchemy.exc import OperationalError

    async def fail(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr(record_controller, "upsert_daily_stats", fail)
    storage = RecordingStorage()
    student = await db.get(User, users.student.id)

    with pytest.raises(StorageError):
        await record_controller.submit_record(
            db, student, exercise_id, WAV, SubmissionIn(score=80),
            storage=storage, scorer=scorer, now=NOW,
        )
    assert storage.deleted == storage.saved
    assert await _count(db, ExerciseRecord) == 0


@pytest.mark.asyncio
async def test_audio_is_validated(db, users, exercise_id, storage, scorer):
    student = await db.get(User, users.student.id)
    bad_type = AudioUpload(data=b"%PDF", filename="notes.pdf", content_type="application/pdf")
    empty = AudioUpload(data=b"", filename="take.wav", content_type="audio/wav")

    for audio in (bad_type, empty):
        with pytest.raises(ValidationError):
            await record_controller.submit_record(
                db, student, exercise_id, audio, SubmissionIn(score=80),
                storage=storage, scorer=scorer, now=NOW,
            )
    with pytest.raises(ValidationError):
        await record_controller.submit_record(
            db, student, exercise_id, None, SubmissionIn(), storage=storage, scorer=scorer, now=NOW
        )


@pytest.mark.asyncio
async def test_oversize_audio_rejected(db, users, exercise_id, storage, scorer, monkeypatch):
    from oralpractice.core.config import settings

    monkeypatch.setattr(settings, "AUDIO_MAX_BYTES", 8)
    student = await db.get(User, users.student.id)
    with pytest.raises(ValidationError):
        await record_controller.submit_record(
            db, student, exercise_id, WAV, SubmissionIn(score=80),
            storage=storage, scorer=scorer, now=NOW,
        )


@pytest.mark.asyncio
async def test_unknown_exercise_and_wrong_role(db, users, exercise_id, storage, scorer):
    student = await db.get(User, users.student.id)
    teacher = await db.get(User, users.teacher.id)

    with pytest.raises(NotFound):
        await record_controller.submit_record(
            db, student, 9999, None, SubmissionIn(score=80), storage=storage, scorer=scorer, now=NOW
        )
    with pytest.raises(Forbidden):
        await record_controller.submit_record(
            db, teacher, exercise_id, None, SubmissionIn(score=80), storage=storage, scorer=scorer, now=NOW
        )


@pytest.mark.asyncio
async def test_each_attempt_is_its_own_record(db, users, exercise_id, storage, scorer):
    student = await db.get(User, users.student.id)
    first = await record_controller.submit_record(
        db, student, exercise_id, None, SubmissionIn(score=60), storage=storage, scorer=scorer, now=NOW
    )
    second = await record_controller.submit_record(
        db, student, exercise_id, None, SubmissionIn(score=90, feedback_type=FeedbackType.BOTH),
        storage=storage, scorer=scorer, now=NOW + timedelta(minutes=5),
    )

    assert first.id != second.id
    assert first.session_id != second.session_id
    assert second.attempt_count == 1
    assert second.feedback_type == FeedbackType.BOTH

    mine = await record_controller.list_my_records(db, users.student.id, limit=1)
    assert [r.id for r in mine] == [second.id]
    assert mine[0].exercise_title == "Weather"


@pytest.mark.asyncio
async def test_student_sees_submitted_exercise_after_submit(db, users, storage, scorer):
    teacher = await db.get(User, users.teacher.id)
    ex = await exercise_controller.create_exercise(db, teacher, ExerciseIn(title="Intro", content="My name is Tom."))
    student = await db.get(User, users.student.id)

    await record_controller.submit_record(
        db, student, ex.id, None, SubmissionIn(score=80), storage=storage, scorer=scorer
    )

    listed = await exercise_controller.list_available_exercises(db, users.student.id)
    assert listed[0].status.value == "submitted"


@pytest.mark.asyncio
async def test_malformed_vendor_scores_fall_back_and_keep_audio(db, users, exercise_id, storage, audio_root):
    import httpx
    from oralpractice.services.scoring import TencentSoeScorer

    def handler(request):
        return httpx.Response(200, json={"Response": {"SuggestedScore": "n/a"}})

    scorer = TencentSoeScorer(
        secret_id="AKIDtest", secret_key="secret", transport=httpx.MockTransport(handler)
    )
    student = await db.get(User, users.student.id)
    out = await record_controller.submit_record(
        db, student, exercise_id, WAV, SubmissionIn(), storage=storage, scorer=scorer, now=NOW
    )

    assert out.scoring_source == SOURCE_PLACEHOLDER
    assert out.warnings == [FALLBACK_WARNING]
    assert await _count(db, ExerciseRecord) == 1
    assert len([p for p in audio_root.rglob("*") if p.is_file()]) == 1


@pytest.mark.asyncio
async def test_unexpected_scoring_error_removes_stored_audio(db, users, exercise_id, scorer):
    class ExplodingScorer:
        async def evaluate(self, audio, filename, ref_text, session_id):
            raise RuntimeError("boom")

    storage = RecordingStorage()
    student = await db.get(User, users.student.id)

    with pytest.raises(RuntimeError):
        await record_controller.submit_record(
            db, student, exercise_id, WAV, SubmissionIn(), storage=storage, scorer=ExplodingScorer(), now=NOW
        )
    assert storage.saved and storage.deleted == storage.saved
    assert await _count(db, ExerciseRecord) == 0
