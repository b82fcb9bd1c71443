"""Cloud provider selection."""

from typing import Optional

from eduvideo.core.config import settings
from eduvideo.storage.base import VideoStorageProvider
from eduvideo.storage.cloudflare import CloudflareStreamProvider
from eduvideo.storage.gcs import GCSVideoProvider
from eduvideo.storage.s3 import S3VideoProvider

# Singleton instances
cloudflare_provider = CloudflareStreamProvider()
s3_provider = S3VideoProvider()
gcs_provider = GCSVideoProvider()


def get_storage_backend(provider: Optional[str] = None) -> VideoStorageProvider:
    """Return the provider named by ``provider`` or VIDEO_STORAGE_PROVIDER.

    Raises:
        ValueError: For an unknown provider name
    """
    name = (provider or settings.VIDEO_STORAGE_PROVIDER).lower()

    if name == "cloudflare":
        return cloudflare_provider
    if name == "s3":
        return s3_provider
    if name == "gcs":
        return gcs_provider
    raise ValueError(f"Unsupported storage provider: {name}")
