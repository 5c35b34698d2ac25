from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from oralpractice.core.database import Base
from oralpractice.models.user import User


class AttendanceStats(Base):
    """
    Per-student, per-day rollup of submissions. A materialised cache that
    can be rebuilt from exercise_records at any time.
    """
    __tablename__ = "attendance_stats"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)

    exercises_completed = Column(Integer, nullable=False, default=0)
    total_score = Column(Integer, nullable=False, default=0)
    best_score = Column(Integer, nullable=False, default=0)

    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    student = relationship(User)

    __table_args__ = (
        UniqueConstraint("student_id", "date", name="uq_attendance_student_date"),
    )
