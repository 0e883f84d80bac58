"""Database module."""

from .database import get_db, init_db, engine, SessionLocal, make_engine, make_session_factory
from .models import Base, KeyValueEntry

__all__ = [
    "get_db",
    "init_db",
    "engine",
    "SessionLocal",
    "make_engine",
    "make_session_factory",
    "Base",
    "KeyValueEntry",
]
