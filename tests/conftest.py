"""Pytest configuration and shared fixtures."""

from pathlib import Path
from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient
from tenacity import wait_none

from eduvideo.content.database import configure_database, init_db
from eduvideo.content.writer import ContentRecordWriter
from eduvideo.core.exceptions import UploadError
from eduvideo.services.chunked_upload import ChunkedUploadService
from eduvideo.services.cloud_uploader import CloudUploader
from eduvideo.services.publisher import VideoPublisher
from eduvideo.storage.base import CloudUploadResult, VideoStorageProvider
from eduvideo.storage.local import LocalVideoStorage
from eduvideo.storage.session_store import InMemoryUploadSessionStore


class FakeVideoProvider(VideoStorageProvider):
    """In-process provider that records uploads and can fail on demand."""

    def __init__(self, name: str = "cloudflare", failures: int = 0):
        self.name = name
        self.failures = failures
        self.calls = 0
        self.uploads: list[Dict[str, Any]] = []
        self.deleted: list[str] = []

    def upload(self, file_path: str, metadata: Dict[str, Any]) -> CloudUploadResult:
        self.calls += 1
        if self.failures < 0 or self.calls <= self.failures:
            raise UploadError("provider unavailable", provider=self.name)

        content = Path(file_path).read_bytes()
        self.uploads.append({"file_path": file_path, "content": content, "metadata": metadata})
        video_id = f"vid-{self.calls}"
        return CloudUploadResult(
            provider=self.name,
            video_id=video_id,
            streaming_url=f"https://stream.example.com/{video_id}/manifest/video.m3u8",
            thumbnail_url=f"https://stream.example.com/{video_id}/thumbnails/thumbnail.jpg",
            duration=120,
        )

    def delete(self, video_id: str) -> bool:
        self.deleted.append(video_id)
        return True

    def get_status(self, video_id: str) -> Dict[str, Any]:
        return {"uid": video_id, "status": {"state": "ready"}}

    def get_backend_name(self) -> str:
        return self.name


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point uploads and the database at a per-test directory."""
    from eduvideo.core.config import settings

    monkeypatch.setattr(settings, "UPLOAD_ROOT", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "DATABASE_URL", f"sqlite:///{tmp_path / 'eduvideo.db'}")
    monkeypatch.setattr(settings, "CLOUD_UPLOAD_MODE", "sync")
    monkeypatch.setattr(settings, "SESSION_STORE_BACKEND", "memory")
    monkeypatch.setattr(settings, "MAX_CHUNK_MB", 10)
    yield settings


@pytest.fixture
def database(tmp_path):
    configure_database(f"sqlite:///{tmp_path / 'eduvideo.db'}")
    init_db()


@pytest.fixture
def writer(database):
    return ContentRecordWriter()


@pytest.fixture
def local_storage(tmp_path):
    return LocalVideoStorage(root=tmp_path / "uploads")


@pytest.fixture
def session_store():
    return InMemoryUploadSessionStore(ttl_seconds=3600)


@pytest.fixture
def provider():
    return FakeVideoProvider()


@pytest.fixture
def uploader(provider):
    return CloudUploader(provider=provider, max_attempts=3, wait=wait_none())


@pytest.fixture
def publisher(local_storage, writer, uploader):
    return VideoPublisher(local_storage=local_storage, writer=writer, uploader=uploader, mode="sync")


@pytest.fixture
def service(session_store, local_storage, publisher):
    return ChunkedUploadService(store=session_store, local_storage=local_storage, publisher=publisher)


@pytest.fixture
def client(service, publisher):
    """Test client wired to the per-test service objects."""
    from eduvideo.api.v1.dependencies import get_chunked_upload_service, get_publisher
    from eduvideo.main import app

    app.dependency_overrides[get_chunked_upload_service] = lambda: service
    app.dependency_overrides[get_publisher] = lambda: publisher
    yield TestClient(app)
    app.dependency_overrides.clear()
