"""Google Cloud Storage provider."""

import logging
import mimetypes
import os
from typing import Any, Dict, Optional

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage

from eduvideo.core.config import settings
from eduvideo.core.exceptions import UploadError
from eduvideo.storage.base import CloudUploadResult, VideoStorageProvider

logger = logging.getLogger(__name__)


class GCSVideoProvider(VideoStorageProvider):
    """Store videos as objects in a Google Cloud Storage bucket."""

    def __init__(self):
        self._client: Optional[storage.Client] = None
        self._bucket: Optional[storage.Bucket] = None

    def _get_bucket(self) -> storage.Bucket:
        """Lazy-load and cache GCS bucket."""
        if self._bucket is None:
            if not settings.GCS_BUCKET_NAME:
                raise UploadError("GCS_BUCKET_NAME not configured", provider="gcs")

            try:
                self._client = storage.Client(project=settings.GCP_PROJECT_ID or None)
            except GoogleAuthError as e:
                logger.error("GCS credentials unavailable", extra={"error": str(e)})
                raise UploadError(f"GCS credentials unavailable: {e}", provider="gcs") from e
            self._bucket = self._client.bucket(settings.GCS_BUCKET_NAME)

        return self._bucket

    def upload(self, file_path: str, metadata: Dict[str, Any]) -> CloudUploadResult:
        bucket = self._get_bucket()
        blob_path = f"videos/{os.path.basename(file_path)}"
        blob = bucket.blob(blob_path)
        if metadata.get("title"):
            blob.metadata = {"title": str(metadata["title"])}

        try:
            blob.upload_from_filename(
                file_path,
                content_type=mimetypes.guess_type(file_path)[0] or "video/mp4",
            )
        except (GoogleAPIError, GoogleAuthError, OSError) as e:
            logger.error("GCS upload failed", extra={"blob_path": blob_path, "error": str(e)})
            raise UploadError(f"GCS upload failed: {e}", provider="gcs") from e

        logger.info("Video uploaded to GCS", extra={"blob_path": blob_path})

        return CloudUploadResult(
            provider=self.get_backend_name(),
            video_id=blob_path,
            streaming_url=f"gs://{settings.GCS_BUCKET_NAME}/{blob_path}",
            extra={"bucket": settings.GCS_BUCKET_NAME},
        )

    def delete(self, video_id: str) -> bool:
        try:
            self._get_bucket().blob(video_id).delete()
        except (GoogleAPIError, GoogleAuthError, UploadError) as e:
            logger.warning("Failed to delete from GCS", extra={"blob_path": video_id, "error": str(e)})
            return False

        logger.info("Video deleted from GCS", extra={"blob_path": video_id})
        return True

    def get_backend_name(self) -> str:
        return "gcs"
