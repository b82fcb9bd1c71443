"""Cloudflare Stream provider."""

import logging
import os
from typing import Any, Dict, Optional

import httpx

from eduvideo.core.config import settings
from eduvideo.core.exceptions import UploadError
from eduvideo.storage.base import CloudUploadResult, VideoStorageProvider

logger = logging.getLogger(__name__)


class CloudflareStreamProvider(VideoStorageProvider):
    """Upload videos to Cloudflare Stream through its REST API."""

    def __init__(self, client: Optional[httpx.Client] = None):
        self._client = client

    def _get_client(self) -> httpx.Client:
        """Lazy-load and cache the HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=settings.CLOUD_UPLOAD_TIMEOUT)
        return self._client

    def _credentials(self) -> tuple[str, str]:
        if not settings.CLOUDFLARE_API_TOKEN or not settings.CLOUDFLARE_ACCOUNT_ID:
            raise UploadError("Cloudflare credentials not configured", provider="cloudflare")
        return settings.CLOUDFLARE_ACCOUNT_ID, settings.CLOUDFLARE_API_TOKEN

    def _stream_url(self, account_id: str, video_id: str = "") -> str:
        base = f"{settings.CLOUDFLARE_API_BASE}/accounts/{account_id}/stream"
        return f"{base}/{video_id}" if video_id else base

    @staticmethod
    def _result(body: Any) -> Dict[str, Any]:
        """Unwrap the ``result`` object of an API envelope.

        Raises:
            ValueError: If the API reported failure or returned no result
        """
        if not isinstance(body, dict) or body.get("success") is False:
            errors = body.get("errors") if isinstance(body, dict) else None
            raise ValueError(f"Cloudflare API reported failure: {errors or body!r}")
        result = body.get("result")
        if not isinstance(result, dict):
            raise ValueError("Cloudflare API response has no result object")
        return result

    @staticmethod
    def _delivery_base(account_id: str, video_id: str) -> str:
        return f"https://customer-{account_id}.cloudflarestream.com/{video_id}"

    def upload(self, file_path: str, metadata: Dict[str, Any]) -> CloudUploadResult:
        """Upload a file with a single multipart POST."""
        account_id, api_token = self._credentials()

        form: Dict[str, str] = {}
        if metadata.get("title"):
            form["meta[name]"] = str(metadata["title"])
        if metadata.get("description"):
            form["meta[description]"] = str(metadata["description"])

        try:
            with open(file_path, "rb") as f:
                response = self._get_client().post(
                    self._stream_url(account_id),
                    headers={"Authorization": f"Bearer {api_token}"},
                    files={"file": (os.path.basename(file_path), f)},
                    data=form,
                )
            response.raise_for_status()
            video_data = self._result(response.json())
            video_id = video_data["uid"]
        except (httpx.HTTPError, OSError, KeyError, ValueError) as e:
            logger.error(
                "Cloudflare Stream upload failed",
                extra={"file_path": file_path, "error": str(e)},
            )
            raise UploadError(f"Cloudflare upload failed: {e}", provider="cloudflare") from e

        delivery = self._delivery_base(account_id, video_id)
        duration = video_data.get("duration")

        logger.info("Video uploaded to Cloudflare Stream", extra={"video_id": video_id})

        return CloudUploadResult(
            provider=self.get_backend_name(),
            video_id=video_id,
            streaming_url=f"{delivery}/manifest/video.m3u8",
            thumbnail_url=f"{delivery}/thumbnails/thumbnail.jpg",
            # Stream reports -1 until the video is processed
            duration=int(duration) if duration and duration > 0 else None,
            extra={
                "embedUrl": f"{delivery}/iframe",
                "processingState": (video_data.get("status") or {}).get("state"),
            },
        )

    def get_status(self, video_id: str) -> Dict[str, Any]:
        """Single status lookup; callers drive any polling."""
        account_id, api_token = self._credentials()
        try:
            response = self._get_client().get(
                self._stream_url(account_id, video_id),
                headers={"Authorization": f"Bearer {api_token}"},
            )
            response.raise_for_status()
            return self._result(response.json())
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error(
                "Failed to get Cloudflare video status",
                extra={"video_id": video_id, "error": str(e)},
            )
            raise UploadError(f"Cloudflare status lookup failed: {e}", provider="cloudflare") from e

    def delete(self, video_id: str) -> bool:
        try:
            account_id, api_token = self._credentials()
            response = self._get_client().delete(
                self._stream_url(account_id, video_id),
                headers={"Authorization": f"Bearer {api_token}"},
            )
            response.raise_for_status()
        except (httpx.HTTPError, UploadError) as e:
            logger.warning(
                "Failed to delete from Cloudflare Stream",
                extra={"video_id": video_id, "error": str(e)},
            )
            return False

        logger.info("Video deleted from Cloudflare Stream", extra={"video_id": video_id})
        return True

    def get_backend_name(self) -> str:
        return "cloudflare"
