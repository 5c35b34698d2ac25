import uuid

from fastapi import APIRouter, Depends, UploadFile, File, Form

from oralpractice.core.config import settings
from oralpractice.core.dependencies import get_current_user
from oralpractice.core.errors import ValidationError
from oralpractice.models.user import User
from oralpractice.schemas.exercise_record import EvaluationOut
from oralpractice.services.scoring import Scorer, get_scorer, evaluate_with_fallback

router = APIRouter(tags=["Scoring"])


@router.post(
    "/evaluate",
    response_model=EvaluationOut,
    summary="Evaluate a recording without saving it",
    description="Practice mode: returns scores for `audio` read against `text`. Nothing is stored.",
)
async def evaluate(
    audio: UploadFile = File(...),
    text: str = Form(...),
    user: User = Depends(get_current_user),
    scorer: Scorer = Depends(get_scorer),
):
    if not text.strip():
        raise ValidationError("Reference text is required")
    if not (audio.content_type or "").startswith("audio/"):
        raise ValidationError("Only audio files are accepted")

    data = await audio.read(settings.AUDIO_MAX_BYTES + 1)
    if not data:
        raise ValidationError("Empty audio file")
    if len(data) > settings.AUDIO_MAX_BYTES:
        raise ValidationError(f"Audio exceeds {settings.AUDIO_MAX_BYTES} bytes")

    result, warnings = await evaluate_with_fallback(
        scorer, data, audio.filename or "recording.wav", text.strip(), uuid.uuid4().hex
    )
    return EvaluationOut(**result.as_dict(), warnings=warnings)
