"""Hand finished videos to cloud storage and record them.

Every finished upload, chunked or direct, ends up here. The merged file goes
to the configured provider; if the provider still fails after retries the
file stays on local disk and the content row points at it instead, flagged
with ``cloudUploadFailed``.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, Optional

from eduvideo.content.models import ContentStatus, RecordedContent
from eduvideo.content.writer import ContentRecordWriter
from eduvideo.core.config import settings
from eduvideo.core.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    UploadError,
)
from eduvideo.services.cloud_uploader import CloudUploader
from eduvideo.storage.base import CloudUploadResult
from eduvideo.storage.factory import get_storage_backend
from eduvideo.storage.local import LocalVideoStorage

logger = logging.getLogger(__name__)

CLOUD_FALLBACK_WARNING = "Cloud storage upload failed, video stored locally"

# Receives the callable and its arguments, e.g. BackgroundTasks.add_task
Scheduler = Callable[..., Any]


@dataclass
class FinalizeResult:
    """Content row produced by a finished upload."""

    content: RecordedContent
    warning: Optional[str] = None
    message: str = "Video uploaded successfully"


def _first(metadata: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if metadata.get(key) not in (None, ""):
            return metadata[key]
    return None


def _as_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


class VideoPublisher:
    """Cloud-or-local publishing of finished video files."""

    def __init__(
        self,
        local_storage: LocalVideoStorage,
        writer: ContentRecordWriter,
        uploader: CloudUploader,
        mode: Optional[str] = None,
    ):
        self.local_storage = local_storage
        self.writer = writer
        self.uploader = uploader
        self.mode = (mode or settings.CLOUD_UPLOAD_MODE).lower()

    def publish(
        self,
        file_path: Path,
        owner_id: str,
        file_name: str,
        file_size: int,
        metadata: Dict[str, Any],
        upload_id: Optional[str] = None,
        schedule: Optional[Scheduler] = None,
    ) -> FinalizeResult:
        """Upload ``file_path`` to the cloud and write its content row.

        With ``schedule`` given and background mode configured, the row is
        written immediately with status ``processing`` and the upload runs
        later through ``schedule``.
        """
        base_fields = self._base_fields(owner_id, file_name, file_size, metadata)
        cloud_metadata = {"title": base_fields["title"], "description": base_fields["description"]}

        if self.mode == "background" and schedule is not None:
            content = self.writer.create(
                {
                    **base_fields,
                    "video_url": self.local_storage.local_url(file_path),
                    "status": ContentStatus.PROCESSING.value,
                    "metadata": {
                        "cloudProvider": self.uploader.provider_label,
                        "uploadId": upload_id,
                        "localPath": str(file_path),
                    },
                }
            )
            schedule(self.finish_cloud_upload, content.id, str(file_path), cloud_metadata)
            return FinalizeResult(content=content, message="Video accepted, cloud upload in progress")

        try:
            result = self.uploader.upload(str(file_path), cloud_metadata)
        except UploadError as e:
            logger.error(
                "Cloud upload failed, keeping video on local disk",
                extra={"upload_id": upload_id, "file_path": str(file_path), "error": str(e)},
            )
            content = self.writer.create(
                {
                    **base_fields,
                    "video_url": self.local_storage.local_url(file_path),
                    "status": ContentStatus.READY.value,
                    "metadata": self._fallback_metadata(file_path, upload_id, e),
                }
            )
            return FinalizeResult(
                content=content,
                warning=CLOUD_FALLBACK_WARNING,
                message="Video uploaded locally (cloud upload failed)",
            )

        content = self.writer.create(
            {
                **base_fields,
                **self._cloud_fields(result),
                "metadata": {**self._cloud_metadata(result), "uploadId": upload_id},
            }
        )
        self._drop_local_copy(file_path)
        return FinalizeResult(content=content)

    def publish_direct_upload(
        self,
        owner_id: str,
        file_name: str,
        content_type: Optional[str],
        file_data: BinaryIO,
        size_bytes: int,
        metadata: Dict[str, Any],
        schedule: Optional[Scheduler] = None,
    ) -> FinalizeResult:
        """Store a single-request upload on disk, then publish it."""
        if not file_name:
            raise InvalidStateError("No video file provided")

        allowed = settings.allowed_video_mime_types
        if allowed and content_type not in allowed:
            raise InvalidStateError("Invalid file type. Only video files are allowed.")

        if size_bytes <= 0:
            raise InvalidStateError("Uploaded video is empty")
        if size_bytes > settings.max_video_bytes:
            raise InvalidStateError(
                f"File size exceeds maximum allowed size of {settings.MAX_VIDEO_MB}MB"
            )

        stored_path = self.local_storage.store_video(file_name, file_data)
        logger.info(
            "Direct upload stored",
            extra={"owner_id": owner_id, "file_path": str(stored_path), "size_bytes": size_bytes},
        )

        return self.publish(
            stored_path,
            owner_id=owner_id,
            file_name=file_name,
            file_size=size_bytes,
            metadata=metadata,
            schedule=schedule,
        )

    def finish_cloud_upload(
        self, content_id: int, file_path: str, cloud_metadata: Dict[str, Any]
    ) -> Optional[RecordedContent]:
        """Background half of ``publish``: upload, then point the row at the result."""
        try:
            result = self.uploader.upload(file_path, cloud_metadata)
        except UploadError as e:
            logger.error(
                "Background cloud upload failed, keeping video on local disk",
                extra={"content_id": content_id, "file_path": file_path, "error": str(e)},
            )
            return self.writer.update(
                content_id,
                status=ContentStatus.READY.value,
                metadata=self._fallback_metadata(Path(file_path), None, e, keep_upload_id=True),
            )
        except Exception as e:
            logger.error(
                "Background cloud upload crashed",
                extra={"content_id": content_id, "file_path": file_path},
                exc_info=True,
            )
            return self.writer.update(
                content_id,
                status=ContentStatus.FAILED.value,
                metadata={"cloudUploadFailed": True, "cloudError": str(e)},
            )

        content = self.writer.update(
            content_id,
            **self._cloud_fields(result),
            metadata={**self._cloud_metadata(result), "cloudUploadFailed": False},
        )
        self._drop_local_copy(Path(file_path))
        logger.info("Background cloud upload finished", extra={"content_id": content_id})
        return content

    def retry_cloud_upload(self, content_id: int, user_id: str) -> RecordedContent:
        """Re-attempt the cloud upload of a degraded content row."""
        content = self._get_owned(content_id, user_id)
        if not content.cloud_upload_failed:
            raise InvalidStateError("Content is not stored locally after a failed cloud upload")

        local_path = self._local_path(content)
        if local_path is None or not local_path.is_file():
            raise InvalidStateError("Local video file is no longer available")

        retry_count = int((content.content_metadata or {}).get("retryCount", 0)) + 1
        try:
            result = self.uploader.upload(
                str(local_path), {"title": content.title, "description": content.description}
            )
        except UploadError:
            self.writer.update(content_id, metadata={"retryCount": retry_count})
            raise

        updated = self.writer.update(
            content_id,
            **self._cloud_fields(result),
            metadata={
                **self._cloud_metadata(result),
                "cloudUploadFailed": False,
                "retryCount": retry_count,
            },
        )
        self._drop_local_copy(local_path)
        logger.info("Degraded content moved to cloud", extra={"content_id": content_id})
        return updated

    def get_content(self, content_id: int) -> RecordedContent:
        content = self.writer.get(content_id)
        if content is None:
            raise NotFoundError("Content not found")
        return content

    def get_cloud_status(self, content_id: int) -> Dict[str, Any]:
        """One provider status lookup for a Cloudflare-hosted row."""
        content = self.get_content(content_id)
        metadata = content.content_metadata or {}
        if metadata.get("cloudUploadFailed") or metadata.get("cloudProvider") != "cloudflare":
            raise InvalidStateError("Processing status is only available for Cloudflare Stream videos")

        video_id = metadata.get("cloudVideoId")
        if not video_id:
            raise InvalidStateError("Content has no Cloudflare video id yet")
        return get_storage_backend("cloudflare").get_status(video_id)

    def delete_content(self, content_id: int, user_id: str) -> None:
        """Remove the stored asset (best effort) and then the row."""
        content = self._get_owned(content_id, user_id)
        metadata = content.content_metadata or {}

        provider_name = metadata.get("cloudProvider")
        video_id = metadata.get("cloudVideoId")
        if video_id and provider_name not in (None, "local") and not metadata.get("cloudUploadFailed"):
            try:
                get_storage_backend(provider_name).delete(video_id)
            except ValueError:
                logger.warning(
                    "Unknown provider on content row, skipping cloud delete",
                    extra={"content_id": content_id, "provider": provider_name},
                )

        local_path = self._local_path(content)
        if local_path is not None:
            self.local_storage.delete_video(local_path)

        self.writer.delete(content_id)

    def _get_owned(self, content_id: int, user_id: str) -> RecordedContent:
        content = self.get_content(content_id)
        if content.teacher_id != user_id:
            raise ForbiddenError("Unauthorized")
        return content

    def _local_path(self, content: RecordedContent) -> Optional[Path]:
        local_path = (content.content_metadata or {}).get("localPath")
        if local_path:
            return Path(local_path)
        return self.local_storage.path_from_url(content.video_url)

    def _drop_local_copy(self, file_path: Path) -> None:
        try:
            self.local_storage.delete_video(file_path)
        except OSError as e:
            logger.warning(
                "Failed to remove local copy after cloud upload",
                extra={"file_path": str(file_path), "error": str(e)},
            )

    @staticmethod
    def _base_fields(
        owner_id: str, file_name: str, file_size: int, metadata: Dict[str, Any]
    ) -> Dict[str, Any]:
        return {
            "title": _first(metadata, "title") or file_name,
            "description": _first(metadata, "description"),
            "course_id": _as_text(_first(metadata, "course_id", "courseId")),
            "batch_id": _as_text(_first(metadata, "batch_id", "batchId")),
            "teacher_id": owner_id,
            "file_size": file_size,
            "format": LocalVideoStorage.extension_of(file_name) or None,
        }

    @staticmethod
    def _cloud_fields(result: CloudUploadResult) -> Dict[str, Any]:
        return {
            "video_url": result.streaming_url,
            "thumbnail_url": result.thumbnail_url,
            "duration": result.duration,
            "status": ContentStatus.READY.value,
        }

    @staticmethod
    def _cloud_metadata(result: CloudUploadResult) -> Dict[str, Any]:
        return {
            "cloudProvider": result.provider,
            "cloudVideoId": result.video_id,
            "localPath": None,
            **result.extra,
        }

    @staticmethod
    def _fallback_metadata(
        file_path: Path, upload_id: Optional[str], error: UploadError, keep_upload_id: bool = False
    ) -> Dict[str, Any]:
        metadata = {
            "cloudProvider": "local",
            "cloudUploadFailed": True,
            "localPath": str(file_path),
            "cloudError": str(error),
        }
        if not keep_upload_id:
            metadata["uploadId"] = upload_id
        return metadata
