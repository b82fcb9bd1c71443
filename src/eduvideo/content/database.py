"""SQLAlchemy engine and session management."""

import logging
from pathlib import Path
from typing import Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from eduvideo.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker[Session]] = None


def configure_database(database_url: Optional[str] = None) -> Engine:
    """(Re)create the engine and session factory for ``database_url``."""
    global _engine, _session_factory

    url = make_url(database_url or settings.DATABASE_URL)
    connect_args = {}
    if url.get_backend_name() == "sqlite":
        # Handlers run blocking work in a thread pool
        connect_args["check_same_thread"] = False
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    if _engine is not None:
        _engine.dispose()

    _engine = create_engine(url, connect_args=connect_args)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        configure_database()
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    if _session_factory is None:
        configure_database()
    return _session_factory


def init_db() -> None:
    """Create tables that do not exist yet."""
    # Register models on Base.metadata
    from eduvideo.content import models  # noqa: F401

    engine = get_engine()
    Base.metadata.create_all(engine)
    logger.info("Database initialized", extra={"database": engine.url.render_as_string(hide_password=True)})
