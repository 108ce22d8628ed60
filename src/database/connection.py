"""
Database Connection Module

Builds SQLAlchemy engines and session factories from DatabaseSettings.

Usage:
    engine = create_db_engine()
    init_schema(engine)
    session_factory = create_session_factory(engine)

    with session_scope(session_factory) as session:
        session.add(record)
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config.settings import DatabaseSettings, get_settings
from database.models import Base

logger = logging.getLogger(__name__)


def create_db_engine(
    url: Optional[str] = None,
    settings: Optional[DatabaseSettings] = None,
) -> Engine:
    """
    Create a synchronous SQLAlchemy engine.

    Args:
        url: Database URL; overrides settings when given
        settings: Database settings. If None, loads from environment.

    Returns:
        Engine: Synchronous SQLAlchemy engine.
    """
    settings = settings or get_settings().database
    url = make_url(url or settings.url)

    kwargs = {"echo": settings.echo}
    if url.get_backend_name() == "sqlite":
        # Worker threads share the engine
        kwargs["connect_args"] = {"check_same_thread": False}
        if not url.database or url.database == ":memory:":
            kwargs["poolclass"] = StaticPool
        else:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    else:
        kwargs["pool_pre_ping"] = True

    logger.info(f"Creating database engine for {url.get_backend_name()}")
    return create_engine(url, **kwargs)


def init_schema(engine: Engine) -> None:
    """Create missing tables."""
    Base.metadata.create_all(engine)


def create_session_factory(engine: Engine) -> sessionmaker:
    """
    Create a session factory bound to an engine.

    Returns:
        sessionmaker: Factory for creating sync sessions.
    """
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
    )


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Provide a session as a context manager.

    Yields:
        Session: SQLAlchemy session that auto-commits on success, rollbacks on error.
    """
    session = session_factory()

    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
