"""Database engine and session factory for the task persistence layer.

The engine backs the SQLAlchemy Task Service. PostgreSQL gets a pooled
engine, SQLite (file or in-memory) a single-thread-tolerant one.
"""

import logging
import os
from typing import Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Import config to ensure dotenv is loaded
from . import config
from .models.base import Base

logger = logging.getLogger(__name__)

# Module-level engine and session factory - initialized lazily
ENGINE: Engine | None = None
SESSION_FACTORY: sessionmaker | None = None


def get_db_url() -> str:
    """Get database URL from environment variables.

    Returns:
        Database URL string. Defaults to SQLite in-memory if DATABASE_URL is not set.
    """
    return os.getenv("DATABASE_URL", "sqlite:///:memory:")


def create_engine_and_session_factory(db_url: str | None = None) -> Tuple[Engine, sessionmaker]:
    """Create SQLAlchemy engine and session factory.

    Args:
        db_url: Database URL. If None, uses get_db_url().

    Returns:
        Tuple of (engine, sessionmaker)
    """
    if db_url is None:
        db_url = get_db_url()

    try:
        if db_url.startswith("postgresql"):
            engine = create_engine(
                db_url,
                pool_size=10,
                max_overflow=20,
                pool_timeout=30,
                pool_pre_ping=True
            )
        else:
            # Task Service calls run in worker threads
            connect_args = {"check_same_thread": False}
            if db_url == "sqlite:///:memory:":
                # StaticPool keeps the single in-memory connection alive
                engine = create_engine(
                    db_url,
                    connect_args=connect_args,
                    poolclass=StaticPool
                )
            else:
                engine = create_engine(db_url, connect_args=connect_args)

        session_factory = sessionmaker(
            bind=engine,
            autoflush=False,
            expire_on_commit=False
        )

        return engine, session_factory

    except Exception as e:
        logger.error(f"Failed to create database engine: {e}", exc_info=True)
        raise


def get_engine() -> Engine:
    """Return the module-level engine, creating it on first use."""
    global ENGINE, SESSION_FACTORY

    if ENGINE is None:
        ENGINE, SESSION_FACTORY = create_engine_and_session_factory()
    return ENGINE


def get_session_factory() -> sessionmaker:
    """Return the module-level session factory, creating it on first use."""
    get_engine()
    return SESSION_FACTORY


def init_db(engine: Engine | None = None) -> None:
    """Create the tasks table with the current schema if it does not exist.

    Existing tables are left untouched: an older table missing the kanban
    columns stays that way and the Task Service reports the drift.
    """
    if engine is None:
        engine = get_engine()
    logger.info("Creating database tables if missing")
    Base.metadata.create_all(bind=engine)


def _reset_db_state() -> None:
    """Dispose the current engine and force re-initialization on next access.

    Primarily used for testing.
    """
    global ENGINE, SESSION_FACTORY

    if ENGINE is not None:
        try:
            ENGINE.dispose()
        except Exception as e:
            logger.error(f"Error disposing database engine: {e}", exc_info=True)

    ENGINE = None
    SESSION_FACTORY = None
