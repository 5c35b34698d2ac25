"""
Shared fixtures.

Every test gets its own SQLite file. Tables are created through a plain
sync engine so no event loop is touched outside the test itself; the app
and the controllers talk to the same file through aiosqlite.
"""
import os
import tempfile
from types import SimpleNamespace

_TMP = tempfile.mkdtemp(prefix="oralpractice-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP}/import.db"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["APP_TIMEZONE"] = "UTC"
os.environ["SCORING_PROVIDER"] = "mock"
os.environ["AUDIO_STORAGE_BACKEND"] = "local"
os.environ["AUDIO_UPLOAD_DIR"] = os.path.join(_TMP, "uploads")
os.environ["DEBUG"] = "false"

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from oralpractice.core.audio_storage import LocalAudioStorage, get_audio_storage
from oralpractice.core.database import Base, get_db
from oralpractice.core.security import create_access_token, hash_password
from oralpractice.models.user import User, UserRole
from oralpractice.models import exercise, exercise_record, attendance_stats  # noqa: F401  (register tables)
from oralpractice.services.scoring import PlaceholderScorer, get_scorer

PASSWORD = "123456"
# bcrypt is slow; every seeded account shares one hash
_PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "test.db"


@pytest.fixture
def sync_engine(db_path):
    engine = create_engine(f"sqlite:///{db_path}", poolclass=NullPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(sync_engine, db_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def audio_root(tmp_path):
    return tmp_path / "audio"


@pytest.fixture
def storage(audio_root):
    return LocalAudioStorage(audio_root)


@pytest.fixture
def scorer():
    return PlaceholderScorer()


def _add_user(engine, username: str, role: UserRole, **extra) -> SimpleNamespace:
    with Session(engine) as s:
        user = User(
            username=username,
            password_hash=_PASSWORD_HASH,
            role=role,
            real_name=extra.pop("real_name", username.title()),
            **extra,
        )
        s.add(user)
        s.commit()
        token = create_access_token(user.id, user.username, role.value)
        return SimpleNamespace(
            id=user.id,
            username=user.username,
            role=role,
            token=token,
            headers={"Authorization": f"Bearer {token}"},
        )


@pytest.fixture
def users(sync_engine):
    """teacher1/teacher2 and student1/student2, password 123456."""
    return SimpleNamespace(
        teacher=_add_user(sync_engine, "teacher1", UserRole.TEACHER, real_name="Ms Wang"),
        teacher2=_add_user(sync_engine, "teacher2", UserRole.TEACHER, real_name="Mr Li"),
        student=_add_user(sync_engine, "student1", UserRole.STUDENT, class_name="Class 1", student_no="S1"),
        student2=_add_user(sync_engine, "student2", UserRole.STUDENT, class_name="Class 1", student_no="S2"),
    )


@pytest.fixture
def client(session_factory, storage, scorer):
    from oralpractice.main import app

    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_audio_storage] = lambda: storage
    app.dependency_overrides[get_scorer] = lambda: scorer
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
