"""Upload session tracking store."""

import copy
import json
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Iterable, Optional

logger = logging.getLogger(__name__)


class UploadStatus(str, Enum):
    """Upload session status enumeration."""

    INITIALIZED = "initialized"  # Session created, no chunk received yet
    UPLOADING = "uploading"  # At least one chunk received
    MERGING = "merging"  # Finalize claimed the session
    UPLOADING_TO_CLOUD = "uploading_to_cloud"  # Merged file handed to a provider
    COMPLETED = "completed"  # Content record written
    CANCELLED = "cancelled"  # Cancel claimed the session


# Statuses in which chunks may still arrive
CHUNK_ACCEPTING_STATES = (UploadStatus.INITIALIZED, UploadStatus.UPLOADING)


@dataclass
class UploadSession:
    """Upload session metadata."""

    upload_id: str
    user_id: str
    file_name: str
    file_size: int
    total_chunks: int
    created_at: datetime
    expires_at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)
    uploaded_chunks: set[int] = field(default_factory=set)
    chunk_checksums: Dict[int, str] = field(default_factory=dict)
    status: UploadStatus = UploadStatus.INITIALIZED
    updated_at: Optional[datetime] = None

    @property
    def uploaded_count(self) -> int:
        return len(self.uploaded_chunks)

    @property
    def progress(self) -> float:
        """Percentage of distinct chunk indices received."""
        if self.total_chunks <= 0:
            return 0.0
        return round(self.uploaded_count / self.total_chunks * 100, 2)

    @property
    def is_complete(self) -> bool:
        return self.uploaded_count == self.total_chunks

    def sorted_chunks(self) -> list[int]:
        return sorted(self.uploaded_chunks)

    def missing_chunks(self) -> list[int]:
        return [i for i in range(self.total_chunks) if i not in self.uploaded_chunks]

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "upload_id": self.upload_id,
            "user_id": self.user_id,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "total_chunks": self.total_chunks,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "metadata": self.metadata,
            "uploaded_chunks": self.sorted_chunks(),
            "chunk_checksums": {str(k): v for k, v in self.chunk_checksums.items()},
            "status": self.status.value,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UploadSession":
        return cls(
            upload_id=data["upload_id"],
            user_id=data["user_id"],
            file_name=data["file_name"],
            file_size=data["file_size"],
            total_chunks=data["total_chunks"],
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            metadata=data.get("metadata") or {},
            uploaded_chunks=set(data.get("uploaded_chunks") or []),
            chunk_checksums={int(k): v for k, v in (data.get("chunk_checksums") or {}).items()},
            status=UploadStatus(data["status"]),
            updated_at=datetime.fromisoformat(data["updated_at"]) if data.get("updated_at") else None,
        )


class UploadSessionStore(ABC):
    """Abstract store for upload sessions.

    Sessions handed out by ``get`` are snapshots; every mutation goes through
    the store so concurrent requests for one upload id are serialized.
    """

    def __init__(self, ttl_seconds: int = 86400):
        self.ttl_seconds = ttl_seconds

    def new_session(
        self,
        upload_id: str,
        user_id: str,
        file_name: str,
        file_size: int,
        total_chunks: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> UploadSession:
        """Build and store a fresh session with an empty chunk set."""
        now = datetime.now(timezone.utc)
        session = UploadSession(
            upload_id=upload_id,
            user_id=user_id,
            file_name=file_name,
            file_size=file_size,
            total_chunks=total_chunks,
            metadata=dict(metadata or {}),
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )
        self.create(session)
        return session

    @abstractmethod
    def create(self, session: UploadSession) -> None:
        """Store a new upload session."""

    @abstractmethod
    def get(self, upload_id: str) -> Optional[UploadSession]:
        """Retrieve a snapshot of an upload session, None if unknown or expired."""

    @abstractmethod
    def delete(self, upload_id: str) -> None:
        """Remove an upload session. Unknown ids are ignored."""

    @abstractmethod
    def add_chunk(
        self, upload_id: str, chunk_index: int, checksum: Optional[str] = None
    ) -> Optional[UploadSession]:
        """Record a received chunk index.

        The index is only added while the session accepts chunks; otherwise
        the session is returned unchanged so the caller can inspect its status.

        Returns:
            Updated session snapshot, or None if the session is unknown
        """

    @abstractmethod
    def remove_chunks(self, upload_id: str, chunk_indices: Iterable[int]) -> Optional[UploadSession]:
        """Forget chunk indices whose files went missing."""

    @abstractmethod
    def claim(
        self,
        upload_id: str,
        from_states: Iterable[UploadStatus],
        to_state: UploadStatus,
    ) -> bool:
        """Atomically move a session to ``to_state`` if it is in ``from_states``."""

    @abstractmethod
    def set_status(self, upload_id: str, status: UploadStatus) -> None:
        """Unconditionally update the session status."""

    @abstractmethod
    def purge_expired(self) -> list[str]:
        """Drop expired sessions and return their upload ids."""


class InMemoryUploadSessionStore(UploadSessionStore):
    """Process-local store guarded by a single lock."""

    def __init__(self, ttl_seconds: int = 86400):
        super().__init__(ttl_seconds)
        self._sessions: Dict[str, UploadSession] = {}
        self._lock = threading.Lock()

    def create(self, session: UploadSession) -> None:
        with self._lock:
            self._sessions[session.upload_id] = copy.deepcopy(session)

    def get(self, upload_id: str) -> Optional[UploadSession]:
        with self._lock:
            session = self._live(upload_id)
            return copy.deepcopy(session) if session else None

    def delete(self, upload_id: str) -> None:
        with self._lock:
            self._sessions.pop(upload_id, None)

    def add_chunk(
        self, upload_id: str, chunk_index: int, checksum: Optional[str] = None
    ) -> Optional[UploadSession]:
        with self._lock:
            session = self._live(upload_id)
            if session is None:
                return None
            if session.status in CHUNK_ACCEPTING_STATES:
                session.uploaded_chunks.add(chunk_index)
                if checksum:
                    session.chunk_checksums[chunk_index] = checksum
                session.status = UploadStatus.UPLOADING
                session.updated_at = datetime.now(timezone.utc)
            return copy.deepcopy(session)

    def remove_chunks(self, upload_id: str, chunk_indices: Iterable[int]) -> Optional[UploadSession]:
        with self._lock:
            session = self._live(upload_id)
            if session is None:
                return None
            for index in chunk_indices:
                session.uploaded_chunks.discard(index)
                session.chunk_checksums.pop(index, None)
            session.updated_at = datetime.now(timezone.utc)
            return copy.deepcopy(session)

    def claim(
        self,
        upload_id: str,
        from_states: Iterable[UploadStatus],
        to_state: UploadStatus,
    ) -> bool:
        with self._lock:
            session = self._live(upload_id)
            if session is None or session.status not in tuple(from_states):
                return False
            session.status = to_state
            session.updated_at = datetime.now(timezone.utc)
            return True

    def set_status(self, upload_id: str, status: UploadStatus) -> None:
        with self._lock:
            session = self._sessions.get(upload_id)
            if session is not None:
                session.status = status
                session.updated_at = datetime.now(timezone.utc)

    def purge_expired(self) -> list[str]:
        now = datetime.now(timezone.utc)
        with self._lock:
            expired = [
                upload_id
                for upload_id, session in self._sessions.items()
                if session.is_expired(now)
                and session.status not in (UploadStatus.MERGING, UploadStatus.UPLOADING_TO_CLOUD)
            ]
            for upload_id in expired:
                del self._sessions[upload_id]
        return expired

    def list_all(self) -> list[UploadSession]:
        """List all upload sessions."""
        with self._lock:
            return [copy.deepcopy(s) for s in self._sessions.values()]

    def _live(self, upload_id: str) -> Optional[UploadSession]:
        session = self._sessions.get(upload_id)
        if session is not None and session.is_expired() and session.status in CHUNK_ACCEPTING_STATES:
            return None
        return session


class RedisUploadSessionStore(UploadSessionStore):
    """Store sessions as JSON documents in Redis so every instance sees them.

    Keys expire with the session TTL; mutations run under a per-session
    Redis lock.
    """

    KEY_PREFIX = "upload-session:"

    def __init__(self, client, ttl_seconds: int = 86400, lock_timeout: int = 10):
        super().__init__(ttl_seconds)
        self._client = client
        self._lock_timeout = lock_timeout

    @classmethod
    def from_url(cls, url: str, ttl_seconds: int = 86400) -> "RedisUploadSessionStore":
        import redis

        return cls(redis.Redis.from_url(url, decode_responses=True), ttl_seconds=ttl_seconds)

    def create(self, session: UploadSession) -> None:
        self._write(session)

    def get(self, upload_id: str) -> Optional[UploadSession]:
        raw = self._client.get(self._key(upload_id))
        if raw is None:
            return None
        return UploadSession.from_dict(json.loads(raw))

    def delete(self, upload_id: str) -> None:
        self._client.delete(self._key(upload_id))

    def add_chunk(
        self, upload_id: str, chunk_index: int, checksum: Optional[str] = None
    ) -> Optional[UploadSession]:
        with self._session_lock(upload_id):
            session = self.get(upload_id)
            if session is None:
                return None
            if session.status in CHUNK_ACCEPTING_STATES:
                session.uploaded_chunks.add(chunk_index)
                if checksum:
                    session.chunk_checksums[chunk_index] = checksum
                session.status = UploadStatus.UPLOADING
                session.updated_at = datetime.now(timezone.utc)
                self._write(session)
            return session

    def remove_chunks(self, upload_id: str, chunk_indices: Iterable[int]) -> Optional[UploadSession]:
        with self._session_lock(upload_id):
            session = self.get(upload_id)
            if session is None:
                return None
            for index in chunk_indices:
                session.uploaded_chunks.discard(index)
                session.chunk_checksums.pop(index, None)
            session.updated_at = datetime.now(timezone.utc)
            self._write(session)
            return session

    def claim(
        self,
        upload_id: str,
        from_states: Iterable[UploadStatus],
        to_state: UploadStatus,
    ) -> bool:
        with self._session_lock(upload_id):
            session = self.get(upload_id)
            if session is None or session.status not in tuple(from_states):
                return False
            session.status = to_state
            session.updated_at = datetime.now(timezone.utc)
            self._write(session)
            return True

    def set_status(self, upload_id: str, status: UploadStatus) -> None:
        with self._session_lock(upload_id):
            session = self.get(upload_id)
            if session is not None:
                session.status = status
                session.updated_at = datetime.now(timezone.utc)
                self._write(session)

    def purge_expired(self) -> list[str]:
        # Redis expires keys on its own
        return []

    def _write(self, session: UploadSession) -> None:
        remaining = int((session.expires_at - datetime.now(timezone.utc)).total_seconds())
        self._client.set(
            self._key(session.upload_id),
            json.dumps(session.to_dict()),
            ex=max(remaining, 1),
        )

    def _session_lock(self, upload_id: str):
        return self._client.lock(
            f"{self._key(upload_id)}:lock",
            timeout=self._lock_timeout,
            blocking_timeout=self._lock_timeout,
        )

    def _key(self, upload_id: str) -> str:
        return f"{self.KEY_PREFIX}{upload_id}"


def create_session_store() -> UploadSessionStore:
    """Build the session store selected by SESSION_STORE_BACKEND."""
    from eduvideo.core.config import settings

    backend = settings.SESSION_STORE_BACKEND.lower()
    if backend == "memory":
        return InMemoryUploadSessionStore(ttl_seconds=settings.UPLOAD_SESSION_TTL_SECONDS)
    if backend == "redis":
        logger.info("Using Redis upload session store")
        return RedisUploadSessionStore.from_url(
            settings.REDIS_URL, ttl_seconds=settings.UPLOAD_SESSION_TTL_SECONDS
        )
    raise ValueError(f"Unsupported session store backend: {settings.SESSION_STORE_BACKEND}")
