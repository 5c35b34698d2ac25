from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, Field

from oralpractice.models.exercise_record import FeedbackType


@dataclass
class AudioUpload:
    """Raw upload as read from the multipart body."""
    data: bytes
    filename: str
    content_type: str


class SubmissionIn(BaseModel):
    # Score fields are optional: when score is absent the server evaluates the audio
    score: Optional[float] = None
    accuracy: Optional[float] = None
    fluency: Optional[float] = None
    integrity: Optional[float] = None
    ai_feedback: Optional[str] = Field(None, max_length=4000)
    feedback_type: FeedbackType = FeedbackType.AI
