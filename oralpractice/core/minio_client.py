from minio import Minio
from minio.error import S3Error

from oralpractice.core.config import settings
from oralpractice.core.errors import StorageError


def get_minio() -> Minio:
    return Minio(
        endpoint=settings.MINIO_ENDPOINT.strip(),
        access_key=settings.MINIO_ACCESS_KEY.strip(),
        secret_key=settings.MINIO_SECRET_KEY.strip(),
        secure=settings.MINIO_SECURE,  # keep false for http
    )


def ensure_bucket(client: Minio, bucket: str) -> None:
    try:
        if not client.bucket_exists(bucket):
            client.make_bucket(bucket)
    except S3Error as e:
        raise StorageError(f"Audio bucket unavailable: {e.code}") from e
