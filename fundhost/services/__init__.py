"""Database connection and session management."""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fundhost.config import settings
from fundhost.lib.serialization import json_dumps
from fundhost.models import Base


def make_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; SQLite uses StaticPool for simplicity in dev/test."""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            json_serializer=json_dumps,
        )
    return create_engine(
        database_url, echo=echo, pool_pre_ping=True, json_serializer=json_dumps
    )


engine = make_engine(settings.database_url, settings.database_echo)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine | None = None) -> None:
    """Create all tables."""
    Base.metadata.create_all(bind=bind or engine)


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


__all__ = ["engine", "SessionLocal", "make_engine", "init_db", "get_db"]
