"""
Speech evaluation.

Two scorers share one interface:

* ``TencentSoeScorer`` calls Tencent Cloud SOE with a TC3-signed request.
* ``PlaceholderScorer`` derives a stable score locally from the audio bytes
  and reference text. It is the configured scorer in development and the
  fallback whenever the vendor call fails.

``evaluate_with_fallback`` is what callers use: it never raises on vendor
trouble, it returns the placeholder result plus a warning instead.
"""
import base64
import hashlib
import logging
from dataclasses import dataclass, asdict
from typing import Protocol

import httpx

from oralpractice.core.config import settings
from oralpractice.core.errors import ScoringProviderError
from oralpractice.core.tc3_sign import encode_payload, sign_request

logger = logging.getLogger(__name__)

SOURCE_TENCENT = "tencent"
SOURCE_PLACEHOLDER = "placeholder"

FALLBACK_WARNING = "Speech evaluation service unavailable; a provisional score was recorded"


@dataclass
class ScoringResult:
    score: int
    accuracy: float
    fluency: float
    integrity: float
    feedback: str
    source: str

    def as_dict(self) -> dict:
        return asdict(self)


class Scorer(Protocol):
    async def evaluate(self, audio: bytes, filename: str, ref_text: str, session_id: str) -> ScoringResult: ...


def clamp_score(value) -> int:
    return max(0, min(100, int(round(float(value or 0)))))


def clamp_metric(value) -> float:
    return round(max(0.0, min(100.0, float(value or 0))), 1)


def feedback_for(score: int) -> str:
    if score >= 90:
        return f"Pronunciation score {score}. Excellent, keep it up!"
    if score >= 75:
        return f"Pronunciation score {score}. Good work, keep practising."
    if score >= 60:
        return f"Pronunciation score {score}. Pay attention to unclear words and try again."
    return f"Pronunciation score {score}. Listen to the reference and practise slowly."


# ─────────────────────────────────────────────────────────────
# Local placeholder
# ─────────────────────────────────────────────────────────────
class PlaceholderScorer:
    async def evaluate(self, audio: bytes, filename: str, ref_text: str, session_id: str) -> ScoringResult:
        digest = hashlib.sha256((audio or b"") + (ref_text or "").encode("utf-8")).digest()

        score = 60 + digest[0] % 36

        def near(b: int) -> float:
            return clamp_metric(score + (b % 11) - 5)

        return ScoringResult(
            score=score,
            accuracy=near(digest[1]),
            fluency=near(digest[2]),
            integrity=near(digest[3]),
            feedback=feedback_for(score),
            source=SOURCE_PLACEHOLDER,
        )


# ─────────────────────────────────────────────────────────────
# Tencent Cloud SOE
# ─────────────────────────────────────────────────────────────
def voice_file_type(filename: str) -> int:
    name = (filename or "").lower()
    if name.endswith(".pcm"):
        return 1
    if name.endswith(".wav"):
        return 2
    if name.endswith(".mp3"):
        return 3
    if name.endswith(".speex") or name.endswith(".spx"):
        return 4
    return 2


def eval_mode(ref_text: str) -> int:
    words = [x for x in (ref_text or "").split() if x]
    if len(words) <= 16:
        return 1  # sentence
    return 2  # paragraph


class TencentSoeScorer:
    SERVICE = "soe"
    ACTION = "TransmitOralProcessWithInit"

    def __init__(
        self,
        secret_id: str,
        secret_key: str,
        app_id: str = "",
        region: str = "",
        host: str = "soe.tencentcloudapi.com",
        version: str = "2018-07-24",
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.secret_id = (secret_id or "").strip()
        self.secret_key = (secret_key or "").strip()
        self.app_id = (app_id or "").strip()
        self.region = (region or "").strip()
        self.host = host
        self.version = version
        self.timeout = timeout
        self.transport = transport

    def build_payload(self, audio: bytes, filename: str, ref_text: str, session_id: str) -> dict:
        payload = {
            "SeqId": 1,
            "IsEnd": 1,
            "VoiceFileType": voice_file_type(filename),
            "VoiceEncodeType": 1,
            "UserVoiceData": base64.b64encode(audio).decode("utf-8"),
            "SessionId": session_id,
            "RefText": (ref_text or "").strip(),
            "WorkMode": 1,  # one-shot
            "EvalMode": eval_mode(ref_text),
            "ScoreCoeff": 1.0,
            "ServerType": 0,  # English
        }
        if self.app_id:
            payload["SoeAppId"] = self.app_id
        return payload

    async def evaluate(self, audio: bytes, filename: str, ref_text: str, session_id: str) -> ScoringResult:
        if not self.secret_id or not self.secret_key:
            raise ScoringProviderError("Speech evaluation credentials are not configured")
        if not audio:
            raise ScoringProviderError("No audio to evaluate")

        payload_str = encode_payload(self.build_payload(audio, filename, ref_text, session_id))
        headers = sign_request(
            secret_id=self.secret_id,
            secret_key=self.secret_key,
            service=self.SERVICE,
            host=self.host,
            action=self.ACTION,
            version=self.version,
            region=self.region,
            payload_str=payload_str,
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                r = await client.post(
                    f"https://{self.host}",
                    headers=headers,
                    content=payload_str.encode("utf-8"),
                )
        except httpx.HTTPError as e:
            raise ScoringProviderError(f"SOE request failed: {e}") from e

        if r.status_code >= 400:
            raise ScoringProviderError(f"SOE HTTP error {r.status_code}")

        try:
            raw = r.json()
        except ValueError as e:
            raise ScoringProviderError("SOE returned invalid JSON") from e

        response = raw.get("Response") if isinstance(raw, dict) else None
        if not isinstance(response, dict):
            raise ScoringProviderError("SOE returned an unexpected body")

        if isinstance(response.get("Error"), dict):
            err = response["Error"]
            raise ScoringProviderError(f"SOE API error {err.get('Code')}: {err.get('Message')}")

        try:
            score = clamp_score(response.get("SuggestedScore"))
            accuracy = clamp_metric(response.get("PronAccuracy"))
            # PronFluency and PronCompletion come back as 0..1
            fluency = clamp_metric(float(response.get("PronFluency") or 0) * 100)
            integrity = clamp_metric(float(response.get("PronCompletion") or 0) * 100)
        except (TypeError, ValueError) as e:
            raise ScoringProviderError(f"SOE returned malformed scores: {e}") from e

        return ScoringResult(
            score=score,
            accuracy=accuracy,
            fluency=fluency,
            integrity=integrity,
            feedback=feedback_for(score),
            source=SOURCE_TENCENT,
        )


def get_scorer() -> Scorer:
    """FastAPI dependency: scorer picked by SCORING_PROVIDER."""
    if settings.SCORING_PROVIDER == "tencent":
        return TencentSoeScorer(
            secret_id=settings.TENCENT_SECRET_ID,
            secret_key=settings.TENCENT_SECRET_KEY,
            app_id=settings.TENCENT_APP_ID,
            region=settings.TENCENT_REGION,
            host=settings.TENCENT_SOE_ENDPOINT,
            version=settings.TENCENT_SOE_VERSION,
            timeout=settings.TENCENT_SOE_TIMEOUT,
        )
    return PlaceholderScorer()


async def evaluate_with_fallback(
    scorer: Scorer,
    audio: bytes,
    filename: str,
    ref_text: str,
    session_id: str,
) -> tuple[ScoringResult, list[str]]:
    try:
        return await scorer.evaluate(audio, filename, ref_text, session_id), []
    except ScoringProviderError as e:
        logger.warning("Scoring provider failed for session %s: %s", session_id, e.message)
        result = await PlaceholderScorer().evaluate(audio, filename, ref_text, session_id)
        return result, [FALLBACK_WARNING]
