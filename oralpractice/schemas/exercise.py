from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class ExerciseAvailability(str, Enum):
    SUBMITTED = "submitted"
    PENDING = "pending"
    EXPIRED = "expired"
    AVAILABLE = "available"


class ExerciseIn(BaseModel):
    # required-ness of title/content is checked by the controller (400, not 422)
    title: Optional[str] = Field(None, max_length=200)
    content: Optional[str] = None
    difficulty_level: int = 1
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    is_active: bool = True


class ExerciseOut(BaseModel):
    id: int
    teacher_id: int
    teacher_name: Optional[str] = None
    title: str
    content: str
    difficulty_level: int
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StudentExerciseOut(ExerciseOut):
    status: ExerciseAvailability
