from pathlib import Path

import pytest

from arena.errors import InvalidRequest
from arena.services.storage import (
    MAX_IMAGE_BYTES,
    LocalBlobStorage,
    S3BlobStorage,
    avatar_path,
    banner_path,
    submission_file_path,
    validate_image,
)


@pytest.mark.anyio
async def test_local_storage_put_and_delete(tmp_path: Path):
    storage = LocalBlobStorage(base_path=str(tmp_path / "blobs"), public_base_url="/blobs/")

    result = await storage.put(b"\x89PNG data", "challenges/c1/banner/1.png", "image/png")

    saved = tmp_path / "blobs" / "challenges" / "c1" / "banner" / "1.png"
    assert saved.read_bytes() == b"\x89PNG data"
    assert result.backend == "local"
    assert result.size == 9
    assert result.url == "/blobs/challenges/c1/banner/1.png"

    await storage.delete(result.path)
    assert not saved.exists()


@pytest.mark.anyio
async def test_local_storage_refuses_paths_outside_its_root(tmp_path: Path):
    storage = LocalBlobStorage(base_path=str(tmp_path / "blobs"))
    with pytest.raises(InvalidRequest):
        await storage.put(b"x", "../escape.txt")


def test_image_validation():
    validate_image("image/webp", 1024)
    with pytest.raises(InvalidRequest):
        validate_image("application/pdf", 10)
    with pytest.raises(InvalidRequest):
        validate_image("image/png", MAX_IMAGE_BYTES + 1)


def test_path_helpers():
    assert banner_path("c1", "image/jpeg").startswith("challenges/c1/banner/")
    assert banner_path("c1", "image/jpeg").endswith(".jpg")
    assert avatar_path("github:7", "image/gif").startswith("users/github_7/avatar/")
    path = submission_file_path("c1", "u1", "../../solution notes.zip")
    assert path.startswith("challenges/c1/submissions/u1/")
    assert path.endswith("_solution_notes.zip")


def test_paths_are_unique_per_call():
    assert banner_path("c1", "image/png") != banner_path("c1", "image/png")
    assert len({avatar_path("u1", "image/png") for _ in range(50)}) == 50


class _RecordingS3:
    def __init__(self):
        self.objects = {}

    def put_object(self, Bucket, Key, Body, **extra):
        self.objects[(Bucket, Key)] = (Body, extra)

    def delete_object(self, Bucket, Key):
        self.objects.pop((Bucket, Key), None)


@pytest.mark.anyio
async def test_s3_storage_uses_bucket_and_public_url(monkeypatch):
    monkeypatch.delenv("BLOB_PUBLIC_BASE_URL", raising=False)
    monkeypatch.setenv("BLOB_S3_ENDPOINT", "https://s3.example.com")
    client = _RecordingS3()
    storage = S3BlobStorage(bucket="arena", client=client)

    result = await storage.put(b"img", "users/u1/avatar/1.png", "image/png")

    assert client.objects[("arena", "users/u1/avatar/1.png")] == (b"img", {"ContentType": "image/png"})
    assert result.url == "https://s3.example.com/arena/users/u1/avatar/1.png"

    await storage.delete(result.path)
    assert client.objects == {}


def test_s3_storage_requires_a_bucket(monkeypatch):
    monkeypatch.delenv("BLOB_S3_BUCKET", raising=False)
    with pytest.raises(RuntimeError):
        S3BlobStorage(client=_RecordingS3())
