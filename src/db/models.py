"""SQLAlchemy ORM models."""

from datetime import datetime

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Get current UTC timestamp."""
    return datetime.utcnow()


class KeyValueEntry(Base):
    """One entry of the local key/value store backing the account registry.

    Mirrors the browser's localStorage: string keys, string (often JSON) values.
    """

    __tablename__ = "kv_entries"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<KeyValueEntry(key={self.key}, size={len(self.value or '')})>"
