"""
Database engine and session factory.

The core uses synchronous SQLAlchemy sessions; request handlers call it
from worker threads. SQLite (the CRM's store) and PostgreSQL both work.
"""

import logging
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import Settings, get_settings


logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


def make_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for a database URL.

    In-memory SQLite gets a single shared connection so every session
    sees the same database.

    Args:
        database_url: SQLAlchemy URL
        echo: Log every SQL statement (never in production)
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **kwargs)

    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def create_engine_from_settings(settings: Optional[Settings] = None) -> Engine:
    """Create the engine described by the application settings."""
    settings = settings or get_settings()
    return make_engine(settings.database_url, echo=settings.database_echo)


def session_factory(engine: Engine) -> sessionmaker:
    """Session factory whose objects stay usable after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create the accounts and audit_logs tables if they do not exist."""
    # Register models on Base.metadata
    from . import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables initialized")
