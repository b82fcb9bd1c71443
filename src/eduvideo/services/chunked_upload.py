"""Chunked upload session lifecycle."""

import hashlib
import logging
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

from eduvideo.core.config import settings
from eduvideo.core.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    UnexpectedError,
)
from eduvideo.core.logging import upload_id_context
from eduvideo.services.publisher import FinalizeResult, Scheduler, VideoPublisher
from eduvideo.storage.local import LocalVideoStorage
from eduvideo.storage.session_store import (
    CHUNK_ACCEPTING_STATES,
    UploadSession,
    UploadSessionStore,
    UploadStatus,
)

logger = logging.getLogger(__name__)


class ChunkedUploadService:
    """Initialize, receive, finalize and cancel chunked uploads.

    Chunk indices are tracked as a set, so a resent index overwrites its file
    and never counts twice. ``complete`` and ``cancel`` both claim the session
    atomically; whichever claims first wins and the other is rejected.
    """

    def __init__(
        self,
        store: UploadSessionStore,
        local_storage: LocalVideoStorage,
        publisher: VideoPublisher,
    ):
        self.store = store
        self.local_storage = local_storage
        self.publisher = publisher

    def initialize(
        self,
        user_id: str,
        file_name: str,
        file_size: int,
        total_chunks: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> UploadSession:
        """Open a new upload session with no chunks."""
        if not file_name or not file_name.strip():
            raise InvalidStateError("Missing required parameters: fileName")
        if file_size is None or file_size <= 0:
            raise InvalidStateError("fileSize must be a positive number of bytes")
        if total_chunks is None or total_chunks <= 0:
            raise InvalidStateError("totalChunks must be at least 1")
        if file_size > settings.max_video_bytes:
            raise InvalidStateError(
                f"File size exceeds maximum allowed size of {settings.MAX_VIDEO_MB}MB"
            )

        self.purge_expired()

        upload_id = str(uuid4())
        upload_id_context.set(upload_id)
        session = self.store.new_session(
            upload_id=upload_id,
            user_id=user_id,
            file_name=file_name.strip(),
            file_size=file_size,
            total_chunks=total_chunks,
            metadata=metadata,
        )

        logger.info(
            f"Chunked upload initialized: upload_id={upload_id}, user_id={user_id}, "
            f"file_name={session.file_name}, total_chunks={total_chunks}"
        )
        return session

    def upload_chunk(
        self,
        upload_id: str,
        user_id: str,
        chunk_index: int,
        data: bytes,
        checksum: Optional[str] = None,
    ) -> UploadSession:
        """Store one chunk and record its index."""
        upload_id_context.set(upload_id)
        session = self._get_owned(upload_id, user_id)

        if session.status not in CHUNK_ACCEPTING_STATES:
            raise InvalidStateError(
                f"Upload session is {session.status.value} and no longer accepts chunks",
                conflict=True,
            )
        if not 0 <= chunk_index < session.total_chunks:
            raise InvalidStateError(
                f"chunkIndex must be between 0 and {session.total_chunks - 1}"
            )
        if not data:
            raise InvalidStateError("Chunk is empty")
        if len(data) > settings.max_chunk_bytes:
            raise InvalidStateError(
                f"Chunk exceeds maximum allowed size of {settings.MAX_CHUNK_MB}MB"
            )

        digest = hashlib.sha256(data).hexdigest()
        if checksum and checksum.strip().lower() != digest:
            raise InvalidStateError(f"Checksum mismatch for chunk {chunk_index}")

        self.local_storage.write_chunk(upload_id, chunk_index, data)

        updated = self.store.add_chunk(upload_id, chunk_index, digest)
        if updated is None or updated.status == UploadStatus.CANCELLED:
            # Lost a race with cancel, which may already have swept the directory
            self._discard_chunk(upload_id, chunk_index)
        if updated is None:
            raise NotFoundError("Upload session not found")
        if chunk_index not in updated.uploaded_chunks:
            raise InvalidStateError(
                f"Upload session is {updated.status.value} and no longer accepts chunks",
                conflict=True,
            )

        logger.info(
            f"Chunk {chunk_index} uploaded for session {upload_id} ({updated.progress:.2f}%)"
        )
        return updated

    def get_progress(self, upload_id: str) -> UploadSession:
        session = self.store.get(upload_id)
        if session is None:
            raise NotFoundError("Upload session not found")
        return session

    def complete(
        self, upload_id: str, user_id: str, schedule: Optional[Scheduler] = None
    ) -> FinalizeResult:
        """Merge all chunks and publish the merged file."""
        upload_id_context.set(upload_id)
        session = self._get_owned(upload_id, user_id)

        if not session.is_complete:
            raise InvalidStateError(
                f"Missing chunks. Uploaded: {session.uploaded_count}/{session.total_chunks}"
            )

        if not self.store.claim(upload_id, CHUNK_ACCEPTING_STATES, UploadStatus.MERGING):
            current = self.store.get(upload_id)
            state = current.status.value if current else "gone"
            raise InvalidStateError(f"Upload session is already {state}", conflict=True)

        missing = self.local_storage.missing_chunk_files(upload_id, session.total_chunks)
        if missing:
            # Let the client resend the lost chunks and finalize again
            self.store.remove_chunks(upload_id, missing)
            self.store.set_status(upload_id, UploadStatus.UPLOADING)
            raise InvalidStateError(
                f"Chunk files missing on disk: {missing}. Re-upload them and complete again"
            )

        try:
            merged_path = self.local_storage.merge_chunks(
                upload_id, session.total_chunks, session.file_name
            )
        except OSError as e:
            self.store.set_status(upload_id, UploadStatus.UPLOADING)
            logger.error(f"Failed to merge chunks for {upload_id}: {e}", exc_info=True)
            raise UnexpectedError("Failed to merge chunks") from e

        try:
            self.local_storage.remove_chunks(upload_id)
        except OSError as e:
            logger.warning(f"Failed to clean up chunks for {upload_id}: {e}")

        if merged_path.stat().st_size != session.file_size:
            logger.warning(
                "Merged size differs from declared size",
                extra={
                    "upload_id": upload_id,
                    "declared_size": session.file_size,
                    "merged_size": merged_path.stat().st_size,
                },
            )

        self.store.set_status(upload_id, UploadStatus.UPLOADING_TO_CLOUD)
        try:
            result = self.publisher.publish(
                merged_path,
                owner_id=session.user_id,
                file_name=session.file_name,
                file_size=session.file_size,
                metadata=session.metadata,
                upload_id=upload_id,
                schedule=schedule,
            )
        except Exception as e:
            # Cloud errors are absorbed by publish; anything else leaves no row behind
            logger.error(
                f"Failed to publish merged video for {upload_id}: {e}",
                extra={"file_path": str(merged_path)},
                exc_info=True,
            )
            self._discard_merged(merged_path)
            raise UnexpectedError("Failed to publish video") from e
        finally:
            # Chunks are merged and gone; the session has nothing left to track
            self.store.delete(upload_id)

        logger.info(
            f"Chunked upload completed: upload_id={upload_id}, content_id={result.content.id}, "
            f"degraded={result.warning is not None}"
        )
        return result

    def cancel(self, upload_id: str, user_id: str) -> None:
        """Drop a session and its chunk files."""
        upload_id_context.set(upload_id)
        self._get_owned(upload_id, user_id)

        if not self.store.claim(upload_id, CHUNK_ACCEPTING_STATES, UploadStatus.CANCELLED):
            raise InvalidStateError(
                "Upload is being finalized and can no longer be cancelled", conflict=True
            )

        try:
            self.local_storage.remove_chunks(upload_id)
        except OSError as e:
            logger.warning(f"Failed to clean up chunks for {upload_id}: {e}")

        self.store.delete(upload_id)
        logger.info(f"Upload cancelled: {upload_id}")

    def purge_expired(self) -> int:
        """Drop expired sessions and chunk directories nobody tracks anymore."""
        expired = set(self.store.purge_expired())
        for upload_id in self.local_storage.stale_chunk_dirs(self.store.ttl_seconds):
            if self.store.get(upload_id) is None:
                expired.add(upload_id)

        for upload_id in expired:
            try:
                self.local_storage.remove_chunks(upload_id)
            except OSError as e:
                logger.warning(f"Failed to clean up chunks for {upload_id}: {e}")

        if expired:
            logger.info(f"Purged {len(expired)} expired upload sessions")
        return len(expired)

    def _discard_chunk(self, upload_id: str, chunk_index: int) -> None:
        try:
            self.local_storage.discard_chunk(upload_id, chunk_index)
        except OSError as e:
            logger.warning(f"Failed to discard chunk {chunk_index} of {upload_id}: {e}")

    def _discard_merged(self, merged_path: Path) -> None:
        try:
            self.local_storage.delete_video(merged_path)
        except OSError as e:
            logger.warning(f"Failed to remove merged file {merged_path}: {e}")

    def _get_owned(self, upload_id: str, user_id: str) -> UploadSession:
        session = self.store.get(upload_id)
        if session is None:
            raise NotFoundError("Upload session not found")
        if session.user_id != user_id:
            raise ForbiddenError("Unauthorized")
        return session
