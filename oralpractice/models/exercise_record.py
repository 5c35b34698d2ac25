from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, ForeignKey, Float, Index
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import enum

from oralpractice.core.database import Base
from oralpractice.models.user import User
from oralpractice.models.exercise import Exercise


class RecordStatus(str, enum.Enum):
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


class FeedbackType(str, enum.Enum):
    AI = "ai"
    TEACHER = "teacher"
    BOTH = "both"


def _values(e):
    return [m.value for m in e]


class ExerciseRecord(Base):
    __tablename__ = "exercise_records"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    exercise_id = Column(Integer, ForeignKey("exercises.id", ondelete="CASCADE"), nullable=False, index=True)

    audio_path = Column(String(500), nullable=True)
    # opaque correlation token, also sent to the scoring vendor
    session_id = Column(String(64), nullable=False, unique=True)

    score = Column(Integer, nullable=False, default=0)
    accuracy = Column(Float, nullable=False, default=0.0)
    fluency = Column(Float, nullable=False, default=0.0)
    integrity = Column(Float, nullable=False, default=0.0)

    ai_feedback = Column(Text, nullable=True)
    teacher_feedback = Column(Text, nullable=True)
    feedback_type = Column(
        Enum(FeedbackType, name="feedback_type_enum", values_callable=_values),
        nullable=False,
        default=FeedbackType.AI,
    )

    attempt_count = Column(Integer, nullable=False, default=1)
    status = Column(
        Enum(RecordStatus, name="record_status_enum", values_callable=_values),
        nullable=False,
        default=RecordStatus.SUBMITTED,
    )

    submit_time = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    # set together, only by a teacher review
    reviewer_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    student = relationship(User, foreign_keys=[student_id])
    reviewer = relationship(User, foreign_keys=[reviewer_id])
    exercise = relationship(Exercise, back_populates="records")


Index("ix_exercise_records_student_submit", ExerciseRecord.student_id, ExerciseRecord.submit_time)
