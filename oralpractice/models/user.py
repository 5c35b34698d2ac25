from __future__ import annotations

from enum import Enum
from typing import Optional
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, Text, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from oralpractice.core.database import Base


class UserRole(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"


class User(Base):
    """
    Students and teachers share one table; `role` decides which routes a
    token may call. Role is fixed once the account exists.
    """
    __tablename__ = "users"

    id:            Mapped[int]                = mapped_column(Integer, primary_key=True, autoincrement=True)
    username:      Mapped[str]                = mapped_column(String(80), unique=True, index=True, nullable=False)
    password_hash: Mapped[str]                = mapped_column(Text, nullable=False)
    role:          Mapped[UserRole]           = mapped_column(
        SAEnum(UserRole, name="user_role_enum", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )
    real_name:     Mapped[str]                = mapped_column(String(120), nullable=False, default="")
    email:         Mapped[Optional[str]]      = mapped_column(String(255), nullable=True)

    # student-only details
    student_no:    Mapped[Optional[str]]      = mapped_column(String(40), nullable=True)
    class_name:    Mapped[Optional[str]]      = mapped_column(String(80), nullable=True)

    created_at:    Mapped[datetime]           = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.TEACHER

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r} role={self.role.value}>"
