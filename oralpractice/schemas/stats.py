from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import date, datetime


class StudentStatsOut(BaseModel):
    start_date: date
    end_date: date
    total_exercises: int
    avg_score: float
    max_score: int
    active_days: int


class ClassStatsRowOut(BaseModel):
    student_id: int
    username: str
    real_name: str
    class_name: Optional[str] = None
    total_exercises: int
    avg_score: float
    max_score: int
    active_days: int


class AttendanceDayOut(BaseModel):
    date: date
    exercises_completed: int
    total_score: int
    best_score: int
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
