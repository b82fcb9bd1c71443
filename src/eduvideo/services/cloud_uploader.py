"""Cloud upload with bounded retries."""

import logging
from typing import Any, Dict, Optional

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from eduvideo.core.config import settings
from eduvideo.core.exceptions import UploadError
from eduvideo.storage.base import CloudUploadResult, VideoStorageProvider
from eduvideo.storage.factory import get_storage_backend

logger = logging.getLogger(__name__)


class CloudUploader:
    """Upload a local file to the configured provider, retrying UploadError.

    Only the configured provider is tried; after the last attempt the
    UploadError propagates so the caller can fall back to local storage.
    """

    def __init__(
        self,
        provider_name: Optional[str] = None,
        max_attempts: Optional[int] = None,
        wait: Optional[wait_base] = None,
        provider: Optional[VideoStorageProvider] = None,
    ):
        self.provider_name = provider_name
        self.max_attempts = max_attempts or settings.CLOUD_UPLOAD_MAX_ATTEMPTS
        self.wait = wait or wait_exponential(multiplier=1, min=2, max=10)
        self._provider = provider

    @property
    def provider(self) -> VideoStorageProvider:
        if self._provider is not None:
            return self._provider
        try:
            return get_storage_backend(self.provider_name)
        except ValueError as e:
            raise UploadError(str(e)) from e

    @property
    def provider_label(self) -> str:
        if self._provider is not None:
            return self._provider.get_backend_name()
        return (self.provider_name or settings.VIDEO_STORAGE_PROVIDER).lower()

    def upload(self, file_path: str, metadata: Dict[str, Any]) -> CloudUploadResult:
        """Upload with exponential backoff between failed attempts.

        Raises:
            UploadError: When every attempt failed
        """
        provider = self.provider

        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait,
            retry=retry_if_exception_type(UploadError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

        try:
            for attempt in retrying:
                with attempt:
                    logger.info(
                        f"Uploading to {provider.get_backend_name()} "
                        f"(attempt {attempt.retry_state.attempt_number}/{self.max_attempts})",
                        extra={"file_path": file_path, "provider": provider.get_backend_name()},
                    )
                    return provider.upload(file_path, metadata)
        except UploadError as e:
            logger.error(
                f"Cloud upload failed after {self.max_attempts} attempts",
                extra={"file_path": file_path, "provider": provider.get_backend_name(), "error": str(e)},
            )
            raise

        # Unreachable: Retrying either returns or re-raises
        raise UploadError("Cloud upload did not run", provider=provider.get_backend_name())
