import pytest

from oralpractice.core import audio_storage
from oralpractice.core.audio_storage import LocalAudioStorage, MinioAudioStorage, build_object_key
from oralpractice.core.errors import StorageError


def test_object_key_layout():
    key = build_object_key(7, 3, "Take One.MP3")
    prefix, student, exercise, name = key.split("/")
    assert (prefix, student, exercise) == ("audio", "7", "3")
    assert name.endswith(".mp3")
    assert build_object_key(7, 3, "noext").endswith(".wav")


@pytest.mark.asyncio
async def test_local_save_and_delete(tmp_path):
    storage = LocalAudioStorage(tmp_path)
    key = await storage.save(b"abc", "a.wav", "audio/wav", student_id=1, exercise_id=2)

    assert (tmp_path / key).read_bytes() == b"abc"

    await storage.delete(key)
    assert not (tmp_path / key).exists()
    # deleting twice is harmless
    await storage.delete(key)


@pytest.mark.asyncio
async def test_local_write_failure_is_storage_error(tmp_path):
    blocker = tmp_path / "blocked"
    blocker.write_text("not a directory")
    storage = LocalAudioStorage(blocker)

    with pytest.raises(StorageError):
        await storage.save(b"abc", "a.wav", "audio/wav", student_id=1, exercise_id=2)


class FakeMinio:
    def __init__(self, fail=False):
        self.fail = fail
        self.objects = {}

    def bucket_exists(self, bucket):
        return True

    def put_object(self, bucket, key, data, length, content_type):
        if self.fail:
            raise OSError("connection refused")
        self.objects[(bucket, key)] = (data.read(), content_type)

    def remove_object(self, bucket, key):
        self.objects.pop((bucket, key), None)


@pytest.mark.asyncio
async def test_minio_upload_and_public_url(monkeypatch):
    fake = FakeMinio()
    monkeypatch.setattr(audio_storage, "get_minio", lambda: fake)
    storage = MinioAudioStorage("oral-audio", public_base="https://cdn.example.com/")

    url = await storage.save(b"xyz", "a.wav", "audio/wav", student_id=4, exercise_id=9)

    assert url.startswith("https://cdn.example.com/oral-audio/audio/4/9/")
    key = url[len("https://cdn.example.com/oral-audio/"):]
    assert fake.objects[("oral-audio", key)] == (b"xyz", "audio/wav")

    await storage.delete(url)
    assert fake.objects == {}


@pytest.mark.asyncio
async def test_minio_failure_is_storage_error(monkeypatch):
    monkeypatch.setattr(audio_storage, "get_minio", lambda: FakeMinio(fail=True))
    storage = MinioAudioStorage("oral-audio")

    with pytest.raises(StorageError):
        await storage.save(b"xyz", "a.wav", "audio/wav", student_id=4, exercise_id=9)
