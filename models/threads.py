"""Thread model for conversation management."""
from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, String, DateTime, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base
from uuid import uuid4

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Thread(Base):
    """
    SQLAlchemy model for conversation threads.
    
    Each thread is one user's conversation container. A user normally has a
    single active thread, but nothing in the schema enforces that.
    """
    __tablename__ = "threads"
    
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4, index=True)
    user_id = Column(String, nullable=False, index=True)
    title = Column(String(255), nullable=True, default="New Chat")
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    
    __table_args__ = (
        # Active-thread lookup: user_id + is_active, newest first
        Index("ix_threads_user_active_updated", "user_id", "is_active", "updated_at"),
    )
