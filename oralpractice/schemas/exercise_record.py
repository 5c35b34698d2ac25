from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

from oralpractice.models.exercise_record import RecordStatus, FeedbackType


class ReviewDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class ExerciseRecordOut(BaseModel):
    id: int
    student_id: int
    exercise_id: int
    audio_path: Optional[str] = None
    session_id: str
    score: int
    accuracy: float
    fluency: float
    integrity: float
    ai_feedback: Optional[str] = None
    teacher_feedback: Optional[str] = None
    feedback_type: FeedbackType
    attempt_count: int
    status: RecordStatus
    submit_time: datetime
    reviewer_id: Optional[int] = None
    reviewed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SubmitRecordOut(ExerciseRecordOut):
    scoring_source: str
    # non-fatal problems, e.g. scoring vendor outage
    warnings: List[str] = []


class MyRecordOut(ExerciseRecordOut):
    exercise_title: str
    exercise_content: str


class TeacherRecordOut(ExerciseRecordOut):
    username: str
    real_name: str
    class_name: Optional[str] = None
    exercise_title: str


class MyFeedbackOut(ExerciseRecordOut):
    exercise_title: str
    teacher_name: Optional[str] = None


class ReviewIn(BaseModel):
    status: ReviewDecision
    teacher_feedback: Optional[str] = Field(None, max_length=4000)
    feedback_type: FeedbackType = FeedbackType.TEACHER


class FeedbackIn(BaseModel):
    feedback: Optional[str] = Field(None, max_length=4000)
    feedback_type: FeedbackType = FeedbackType.BOTH


class EvaluationOut(BaseModel):
    score: int
    accuracy: float
    fluency: float
    integrity: float
    feedback: str
    source: str
    warnings: List[str] = []
