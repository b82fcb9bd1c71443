"""AWS S3 provider."""

import logging
import mimetypes
import os
import time
from typing import Any, Dict, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError

from eduvideo.core.config import settings
from eduvideo.core.exceptions import UploadError
from eduvideo.storage.base import CloudUploadResult, VideoStorageProvider

logger = logging.getLogger(__name__)


class S3VideoProvider(VideoStorageProvider):
    """Store videos as private S3 objects served through presigned URLs."""

    def __init__(self):
        self._client = None

    @property
    def s3_client(self):
        """Get or create S3 client."""
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=settings.AWS_REGION,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
            )
        return self._client

    def _bucket(self) -> str:
        if not settings.AWS_S3_BUCKET:
            raise UploadError("AWS S3 bucket not configured", provider="s3")
        return settings.AWS_S3_BUCKET

    def upload(self, file_path: str, metadata: Dict[str, Any]) -> CloudUploadResult:
        bucket = self._bucket()
        file_name = os.path.basename(file_path)
        key = f"videos/{int(time.time() * 1000)}-{file_name}"
        content_type = mimetypes.guess_type(file_name)[0] or "video/mp4"

        try:
            self.s3_client.upload_file(
                file_path,
                bucket,
                key,
                ExtraArgs={"ContentType": content_type, "ACL": "private"},
            )
            signed_url = self.get_signed_url(key)
        except (S3UploadFailedError, BotoCoreError, ClientError, OSError) as e:
            logger.error("S3 upload failed", extra={"key": key, "error": str(e)})
            raise UploadError(f"S3 upload failed: {e}", provider="s3") from e

        logger.info("Video uploaded to S3", extra={"bucket": bucket, "key": key})

        return CloudUploadResult(
            provider=self.get_backend_name(),
            video_id=key,
            streaming_url=signed_url,
            extra={
                "bucket": bucket,
                "url": f"https://{bucket}.s3.amazonaws.com/{key}",
            },
        )

    def get_signed_url(self, key: str, expires_in: Optional[int] = None) -> str:
        """Generate a presigned GET URL for an object."""
        return self.s3_client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self._bucket(), "Key": key},
            ExpiresIn=expires_in or settings.S3_SIGNED_URL_EXPIRY_SECONDS,
        )

    def delete(self, video_id: str) -> bool:
        try:
            self.s3_client.delete_object(Bucket=self._bucket(), Key=video_id)
        except (BotoCoreError, ClientError, UploadError) as e:
            logger.warning("Failed to delete from S3", extra={"key": video_id, "error": str(e)})
            return False

        logger.info("Video deleted from S3", extra={"key": video_id})
        return True

    def get_backend_name(self) -> str:
        return "s3"
