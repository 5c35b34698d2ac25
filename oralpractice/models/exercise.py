from __future__ import annotations

from typing import List, Optional, TYPE_CHECKING
from datetime import datetime, timezone

from sqlalchemy import (
    String,
    Integer,
    Text,
    Boolean,
    DateTime,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from oralpractice.core.database import Base
from oralpractice.models.user import User

if TYPE_CHECKING:
    from oralpractice.models.exercise_record import ExerciseRecord


class Exercise(Base):
    __tablename__ = "exercises"

    __table_args__ = (
        CheckConstraint("difficulty_level BETWEEN 1 AND 3", name="ck_exercises_difficulty"),
        Index("ix_exercises_teacher_created", "teacher_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    teacher_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    # reference text the student reads aloud
    content: Mapped[str] = mapped_column(Text, nullable=False)
    difficulty_level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # availability window, both ends optional (UTC)
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    teacher: Mapped["User"] = relationship("User", lazy="joined")

    # records are removed in bulk by delete_exercise before the row itself
    records: Mapped[List["ExerciseRecord"]] = relationship(
        "ExerciseRecord",
        back_populates="exercise",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
