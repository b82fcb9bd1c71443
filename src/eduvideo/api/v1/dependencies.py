"""Shared route dependencies."""

from functools import lru_cache
from typing import Optional

from fastapi import Header, HTTPException

from eduvideo.content.writer import ContentRecordWriter
from eduvideo.services.chunked_upload import ChunkedUploadService
from eduvideo.services.cloud_uploader import CloudUploader
from eduvideo.services.publisher import VideoPublisher
from eduvideo.storage.local import LocalVideoStorage
from eduvideo.storage.session_store import UploadSessionStore, create_session_store


@lru_cache
def get_session_store() -> UploadSessionStore:
    return create_session_store()


@lru_cache
def get_local_storage() -> LocalVideoStorage:
    return LocalVideoStorage()


@lru_cache
def get_publisher() -> VideoPublisher:
    return VideoPublisher(
        local_storage=get_local_storage(),
        writer=ContentRecordWriter(),
        uploader=CloudUploader(),
    )


@lru_cache
def get_chunked_upload_service() -> ChunkedUploadService:
    return ChunkedUploadService(
        store=get_session_store(),
        local_storage=get_local_storage(),
        publisher=get_publisher(),
    )


def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Caller identity as forwarded by the gateway in ``X-User-Id``."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=400, detail="X-User-Id header is required")
    return x_user_id.strip()
