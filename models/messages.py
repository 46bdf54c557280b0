"""Message model for conversation turns."""
from sqlalchemy import Column, String, DateTime, Text, ForeignKey, JSON
from sqlalchemy.dialects.postgresql import UUID
from uuid import uuid4
from .threads import Base, utcnow

SYSTEM_SENDER = "system"


class Message(Base):
    """
    SQLAlchemy model for chat messages.
    
    One row per turn-half. User messages carry the user id as sender,
    assistant replies carry the literal "system".
    """
    __tablename__ = "messages"
    
    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4, index=True)
    # No ON DELETE cascade: messages and threads are deleted independently
    thread_id = Column(UUID(as_uuid=True), ForeignKey("threads.id"), nullable=False, index=True)
    content = Column(Text, nullable=False)
    sender = Column(String, nullable=False)
    files = Column(JSON, nullable=False, default=list)  # Ordered attachment references
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
