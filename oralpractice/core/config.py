from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    All config comes from .env file (or the process environment).
    Change values in .env - they automatically apply everywhere.
    """

    # ── Database ──────────────────────────────────────────
    DATABASE_URL: str            # asyncpg (or aiosqlite) - used by FastAPI
    DATABASE_SYNC_URL: str = ""  # psycopg2 - used only by Alembic

    # ── JWT ───────────────────────────────────────────────
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # ── CORS ──────────────────────────────────────────────
    ALLOWED_ORIGINS: str = "http://localhost:5173"

    # ── App ───────────────────────────────────────────────
    APP_ENV: str = "production"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Calendar days for attendance + stats are cut in this zone
    APP_TIMEZONE: str = "UTC"
    STATS_DEFAULT_DAYS: int = 30

    # ── Audio storage ─────────────────────────────────────
    AUDIO_STORAGE_BACKEND: str = "local"  # "local" | "minio"
    AUDIO_UPLOAD_DIR: str = "uploads"
    AUDIO_MAX_BYTES: int = 10 * 1024 * 1024

    MINIO_ENDPOINT: str = "127.0.0.1:9000"
    MINIO_ACCESS_KEY: str = ""
    MINIO_SECRET_KEY: str = ""
    MINIO_SECURE: bool = False
    MINIO_BUCKET_AUDIO: str = "oral-practice-audio"
    MINIO_PUBLIC_BASE: str | None = None  # optional (if you want public file links)

    # ── Speech evaluation ─────────────────────────────────
    # "tencent" | "mock"; mock skips the vendor and uses the local placeholder
    SCORING_PROVIDER: str = "tencent"
    TENCENT_SECRET_ID: str = ""
    TENCENT_SECRET_KEY: str = ""
    TENCENT_APP_ID: str = ""
    TENCENT_REGION: str = "ap-beijing"
    TENCENT_SOE_ENDPOINT: str = "soe.tencentcloudapi.com"
    TENCENT_SOE_VERSION: str = "2018-07-24"
    TENCENT_SOE_TIMEOUT: float = 20.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def origins_list(self) -> list[str]:
        """Splits comma-separated ALLOWED_ORIGINS into a list."""
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()


# Single instance used across the entire app
settings = get_settings()
