"""SQLAlchemy engine and session handling for the local registry database."""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from src.config import get_settings

settings = get_settings()


def make_engine(database_url: str) -> Engine:
    """Create an engine; SQLite connections are shared across threads."""
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args, echo=False)


def make_session_factory(engine: Engine) -> sessionmaker:
    """Session factory that keeps attributes readable after commit."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=engine,
        expire_on_commit=False,
    )


engine = make_engine(settings.database_url)
SessionLocal = make_session_factory(engine)


@contextmanager
def get_db(session_factory: Optional[sessionmaker] = None) -> Generator[Session, None, None]:
    """Context manager for database sessions.

    Commits on success, rolls back on error. Pass ``session_factory`` to use a
    different database (tests use an in-memory SQLite engine).

    Usage:
        with get_db() as db:
            db.get(KeyValueEntry, "mesh_access_token")
    """
    db = (session_factory or SessionLocal)()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(bind: Optional[Engine] = None) -> None:
    """Create tables if they do not exist."""
    from .models import Base

    Base.metadata.create_all(bind=bind or engine)
