import logging
import uuid
from io import BytesIO
from pathlib import Path
from typing import Protocol

import anyio
from minio.error import S3Error

from oralpractice.core.config import settings
from oralpractice.core.errors import StorageError
from oralpractice.core.minio_client import get_minio, ensure_bucket

logger = logging.getLogger(__name__)


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else "wav"


def build_object_key(student_id: int, exercise_id: int, filename: str) -> str:
    # audio/{student_id}/{exercise_id}/{uuid}.ext
    return f"audio/{student_id}/{exercise_id}/{uuid.uuid4().hex}.{_extension(filename)}"


class AudioStorage(Protocol):
    async def save(
        self,
        data: bytes,
        filename: str,
        content_type: str,
        student_id: int,
        exercise_id: int,
    ) -> str: ...

    async def delete(self, path: str) -> None: ...


class LocalAudioStorage:
    """Writes recordings under a directory on the API host."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    async def save(self, data, filename, content_type, student_id, exercise_id) -> str:
        key = build_object_key(student_id, exercise_id, filename)
        target = self.root / key
        try:
            await anyio.to_thread.run_sync(lambda: target.parent.mkdir(parents=True, exist_ok=True))
            await anyio.to_thread.run_sync(target.write_bytes, data)
        except OSError as e:
            logger.error("Local audio write failed for %s: %s", key, e)
            raise StorageError("Could not store audio, please retry") from e
        return key

    async def delete(self, path: str) -> None:
        target = self.root / path
        try:
            await anyio.to_thread.run_sync(lambda: target.unlink(missing_ok=True))
        except OSError as e:
            logger.warning("Could not remove orphaned audio %s: %s", path, e)


class MinioAudioStorage:
    """
    Uploads recordings to MinIO. The SDK is sync, so calls run in a worker
    thread.
    """

    def __init__(self, bucket: str, public_base: str | None = None):
        self.bucket = bucket
        self.public_base = (public_base or "").rstrip("/")

    def _put(self, key: str, data: bytes, content_type: str) -> None:
        client = get_minio()
        ensure_bucket(client, self.bucket)
        client.put_object(
            self.bucket,
            key,
            BytesIO(data),
            length=len(data),
            content_type=content_type or "application/octet-stream",
        )

    async def save(self, data, filename, content_type, student_id, exercise_id) -> str:
        key = build_object_key(student_id, exercise_id, filename)
        try:
            await anyio.to_thread.run_sync(self._put, key, data, content_type)
        except (S3Error, OSError) as e:
            logger.error("MinIO upload failed for %s: %s", key, e)
            raise StorageError("Could not store audio, please retry") from e

        if self.public_base:
            return f"{self.public_base}/{self.bucket}/{key}"
        return key

    async def delete(self, path: str) -> None:
        key = path
        prefix = f"{self.public_base}/{self.bucket}/" if self.public_base else ""
        if prefix and key.startswith(prefix):
            key = key[len(prefix):]
        try:
            await anyio.to_thread.run_sync(lambda: get_minio().remove_object(self.bucket, key))
        except (S3Error, OSError) as e:
            logger.warning("Could not remove orphaned audio %s: %s", key, e)


def get_audio_storage() -> AudioStorage:
    """FastAPI dependency: storage backend picked by AUDIO_STORAGE_BACKEND."""
    if settings.AUDIO_STORAGE_BACKEND == "minio":
        return MinioAudioStorage(settings.MINIO_BUCKET_AUDIO, settings.MINIO_PUBLIC_BASE)
    return LocalAudioStorage(settings.AUDIO_UPLOAD_DIR)
