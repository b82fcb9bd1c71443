"""Abstract cloud video storage provider interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class CloudUploadResult:
    """Outcome of a successful provider upload."""

    provider: str
    video_id: str
    streaming_url: str
    thumbnail_url: Optional[str] = None
    duration: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)


class VideoStorageProvider(ABC):
    """Abstract base class for cloud video storage providers."""

    @abstractmethod
    def upload(self, file_path: str, metadata: Dict[str, Any]) -> CloudUploadResult:
        """Upload a local video file.

        Args:
            file_path: Path of the merged or directly uploaded video
            metadata: Client-supplied fields such as title and description

        Returns:
            Provider identifiers and URLs of the stored asset

        Raises:
            UploadError: If the provider rejects the upload or is unreachable
        """
        pass

    @abstractmethod
    def delete(self, video_id: str) -> bool:
        """Best-effort removal of an uploaded asset.

        Failures are logged and reported as False, never raised.
        """
        pass

    def get_status(self, video_id: str) -> Dict[str, Any]:
        """Fetch the provider-side processing status of an asset."""
        raise NotImplementedError(f"{self.get_backend_name()} does not report processing status")

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return provider identifier."""
        pass
