"""Upload data models."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serialize with camelCase keys, accept camelCase or snake_case input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InitializeUploadRequest(CamelModel):
    """Request model for opening a chunked upload session."""

    file_name: str
    file_size: int
    total_chunks: int
    metadata: Dict[str, Any] = Field(default_factory=dict)


class InitializeUploadResponse(CamelModel):
    success: bool = True
    upload_id: str
    message: str = "Upload session initialized"


class ChunkUploadResponse(CamelModel):
    success: bool = True
    progress: float
    uploaded_chunks: int
    total_chunks: int
    message: str = "Chunk uploaded successfully"


class CompleteUploadRequest(CamelModel):
    """Request model for finalizing a chunked upload."""

    upload_id: str


class UploadProgressResponse(CamelModel):
    success: bool = True
    upload_id: str
    progress: float
    uploaded_chunks: int
    total_chunks: int
    chunk_indices: list[int]
    file_name: str
    file_size: int
    status: str


class RecordedContentResponse(CamelModel):
    """Serialized recorded content row."""

    id: int
    title: str
    description: Optional[str] = None
    course_id: Optional[str] = None
    batch_id: Optional[str] = None
    teacher_id: str
    video_url: str
    thumbnail_url: Optional[str] = None
    duration: Optional[int] = None
    file_size: Optional[int] = None
    format: Optional[str] = None
    status: str
    # Keys inside the blob are stored camelCase already
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class ContentEnvelope(CamelModel):
    """Response carrying a content row and, after a cloud fallback, a warning."""

    success: bool = True
    message: str
    data: RecordedContentResponse
    warning: Optional[str] = None


class SuccessResponse(CamelModel):
    success: bool = True
    message: str
