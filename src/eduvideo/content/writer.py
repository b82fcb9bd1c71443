"""Persistence of recorded content rows."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session, sessionmaker

from eduvideo.content.database import get_session_factory
from eduvideo.content.models import RecordedContent

logger = logging.getLogger(__name__)


class ContentRecordWriter:
    """Thin write path over the ``recorded_content`` table.

    No validation beyond the table constraints; database errors propagate.
    """

    def __init__(self, session_factory: Optional[sessionmaker[Session]] = None):
        self._session_factory = session_factory

    def _session(self) -> Session:
        factory = self._session_factory or get_session_factory()
        return factory()

    def create(self, fields: Dict[str, Any]) -> RecordedContent:
        """Insert one row and return it."""
        data = dict(fields)
        if "metadata" in data:
            data["content_metadata"] = data.pop("metadata")

        with self._session() as session:
            record = RecordedContent(**data)
            session.add(record)
            session.commit()
            session.refresh(record)

        logger.info(
            "Recorded content created",
            extra={"content_id": record.id, "teacher_id": record.teacher_id, "status": record.status},
        )
        return record

    def get(self, content_id: int) -> Optional[RecordedContent]:
        with self._session() as session:
            return session.get(RecordedContent, content_id)

    def update(self, content_id: int, **fields: Any) -> Optional[RecordedContent]:
        """Overwrite the given columns; ``metadata`` is merged into the stored blob."""
        with self._session() as session:
            record = session.get(RecordedContent, content_id)
            if record is None:
                return None

            metadata_update = fields.pop("metadata", None)
            if metadata_update is not None:
                # Assign a new dict so the JSON column is flagged dirty
                record.content_metadata = {**(record.content_metadata or {}), **metadata_update}
            for name, value in fields.items():
                setattr(record, name, value)

            session.commit()
            session.refresh(record)
            return record

    def delete(self, content_id: int) -> bool:
        with self._session() as session:
            record = session.get(RecordedContent, content_id)
            if record is None:
                return False
            session.delete(record)
            session.commit()

        logger.info("Recorded content deleted", extra={"content_id": content_id})
        return True
