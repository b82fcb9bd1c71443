"""Local filesystem storage for chunks, merged videos and degraded uploads."""

import logging
import re
import shutil
import time
from pathlib import Path
from typing import BinaryIO, Optional
from uuid import uuid4

from eduvideo.core.config import settings

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 65536  # 64KB
MAX_FILENAME_LENGTH = 255  # bytes, common filesystem limit
MAX_EXTENSION_LENGTH = 16


class LocalVideoStorage:
    """Local filesystem layout for the upload pipeline.

    ``<root>/chunks/<upload_id>/chunk-<index>`` holds received chunks and
    ``<root>/videos`` holds merged files, simple uploads and local fallbacks.
    """

    def __init__(self, root: Optional[Path] = None, url_prefix: Optional[str] = None):
        self.root = Path(root) if root is not None else Path(settings.UPLOAD_ROOT)
        self.url_prefix = (url_prefix or settings.LOCAL_VIDEO_URL_PREFIX).rstrip("/")

    @property
    def chunks_dir(self) -> Path:
        return self.root / "chunks"

    @property
    def videos_dir(self) -> Path:
        return self.root / "videos"

    def chunk_dir(self, upload_id: str) -> Path:
        return self.chunks_dir / self._sanitize_filename(upload_id)

    def chunk_path(self, upload_id: str, chunk_index: int) -> Path:
        return self.chunk_dir(upload_id) / f"chunk-{chunk_index}"

    def write_chunk(self, upload_id: str, chunk_index: int, data: bytes) -> Path:
        """Write one chunk, replacing any earlier copy of the same index."""
        target = self.chunk_path(upload_id, chunk_index)
        target.parent.mkdir(parents=True, exist_ok=True)

        # Write then rename so a resend never leaves a half-written chunk
        tmp_path = target.with_name(f"{target.name}.{uuid4().hex}.part")
        with open(tmp_path, "wb") as f:
            f.write(data)
        tmp_path.replace(target)

        return target

    def discard_chunk(self, upload_id: str, chunk_index: int) -> None:
        """Remove one chunk file, and its directory once empty."""
        self.chunk_path(upload_id, chunk_index).unlink(missing_ok=True)
        try:
            self.chunk_dir(upload_id).rmdir()
        except OSError:
            # Other chunks still there, or already gone
            pass

    def missing_chunk_files(self, upload_id: str, total_chunks: int) -> list[int]:
        """Indices in ``0..total_chunks-1`` with no chunk file on disk."""
        return [
            i for i in range(total_chunks) if not self.chunk_path(upload_id, i).is_file()
        ]

    def merged_file_name(self, upload_id: str, file_name: str) -> str:
        """``<upload_id>-<safe name>``, shortened to fit MAX_FILENAME_LENGTH.

        The stem is cut first so the extension survives.
        """
        prefix = f"{self._sanitize_filename(upload_id)}-"
        safe = self._sanitize_filename(file_name)
        budget = MAX_FILENAME_LENGTH - len(prefix)
        if len(safe) <= budget:
            return prefix + safe

        suffix = Path(safe).suffix
        if len(suffix) > MAX_EXTENSION_LENGTH:
            suffix = ""
        return prefix + safe[: budget - len(suffix)] + suffix

    def merge_chunks(self, upload_id: str, total_chunks: int, file_name: str) -> Path:
        """Concatenate ``chunk-0 .. chunk-(N-1)`` into one file under videos_dir.

        Returns:
            Path of the merged file
        """
        self.videos_dir.mkdir(parents=True, exist_ok=True)
        target = self.videos_dir / self.merged_file_name(upload_id, file_name)

        with open(target, "wb") as out:
            for index in range(total_chunks):
                with open(self.chunk_path(upload_id, index), "rb") as chunk:
                    shutil.copyfileobj(chunk, out, COPY_BUFFER_SIZE)

        logger.info(
            "Chunks merged",
            extra={
                "upload_id": upload_id,
                "total_chunks": total_chunks,
                "size_bytes": target.stat().st_size,
            },
        )
        return target

    def remove_chunks(self, upload_id: str) -> None:
        """Delete the chunk directory of an upload, if present."""
        chunk_dir = self.chunk_dir(upload_id)
        if chunk_dir.exists():
            shutil.rmtree(chunk_dir)

    def store_video(self, file_name: str, file_data: BinaryIO) -> Path:
        """Stream a directly uploaded video to ``videos_dir/video-<uuid>.<ext>``."""
        self.videos_dir.mkdir(parents=True, exist_ok=True)
        extension = self.extension_of(file_name)[:MAX_EXTENSION_LENGTH]
        target = self.videos_dir / (f"video-{uuid4()}.{extension}" if extension else f"video-{uuid4()}")

        with open(target, "wb") as f:
            while chunk := file_data.read(COPY_BUFFER_SIZE):
                f.write(chunk)

        return target

    def local_url(self, path: Path) -> str:
        """Public URL under which a locally kept video is served."""
        return f"{self.url_prefix}/{Path(path).name}"

    def path_from_url(self, url: str) -> Optional[Path]:
        """Reverse of ``local_url``; None for URLs not under the local prefix."""
        if not url.startswith(self.url_prefix + "/"):
            return None
        return self.videos_dir / self._sanitize_filename(url[len(self.url_prefix) + 1:])

    def delete_video(self, path: Path) -> bool:
        """Remove a local video file. Returns False when it was already gone."""
        try:
            Path(path).unlink()
            return True
        except FileNotFoundError:
            return False

    def stale_chunk_dirs(self, max_age_seconds: int) -> list[str]:
        """Upload ids whose chunk directory was not touched for max_age_seconds."""
        if not self.chunks_dir.exists():
            return []
        cutoff = time.time() - max_age_seconds
        return [
            entry.name
            for entry in self.chunks_dir.iterdir()
            if entry.is_dir() and entry.stat().st_mtime < cutoff
        ]

    @staticmethod
    def extension_of(file_name: str) -> str:
        """Lower-cased extension without the dot, empty when there is none."""
        suffix = Path(file_name).suffix
        return suffix[1:].lower() if suffix else ""

    @staticmethod
    def _sanitize_filename(filename: str) -> str:
        """Remove path traversal and dangerous characters."""
        safe = filename.replace("../", "").replace("..\\", "")
        safe = safe.replace("/", "_").replace("\\", "_")
        safe = re.sub(r"[^a-zA-Z0-9._-]", "_", safe)
        return safe[:255]
