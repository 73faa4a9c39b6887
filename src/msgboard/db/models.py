"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
There is one table: messages. Ids are auto-increment integers so that they
are never reused and follow insertion order.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(Base):
    """A message on the board.

    Learn: parent_id is a plain string column, not a foreign key. A reply
    may point at a message that was deleted or never existed; the value is
    kept exactly as the client sent it.
    """

    __tablename__ = "messages"
    # Without AUTOINCREMENT, SQLite hands out the id of a deleted last row again
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user: Mapped[str] = mapped_column(String(100), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    parent_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    # Python-side default so the value is populated on flush, not just in the DB
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
