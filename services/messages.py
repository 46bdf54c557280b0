"""Message repository."""
from typing import List, Optional, Sequence, Tuple
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy import desc

from models.messages import Message, SYSTEM_SENDER


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class MessageService:
    """
    Repository for message records.
    
    Stores and loads messages only; ownership rules live with the caller.
    """
    
    def __init__(self, db: Session):
        self.db = db
    
    def append(
        self,
        thread_id: UUID,
        content: str,
        sender: str,
        files: Optional[List[str]] = None
    ) -> Message:
        """Persist a single message."""
        message = Message(
            thread_id=thread_id,
            content=content,
            sender=sender,
            files=list(files or [])
        )
        
        self.db.add(message)
        self.db.commit()
        self.db.refresh(message)
        
        return message
    
    def get(self, message_id: UUID) -> Optional[Message]:
        """Retrieve a message by ID."""
        return self.db.query(Message).filter(Message.id == message_id).first()
    
    def update(self, message_id: UUID, content: str) -> Optional[Message]:
        """Replace a message's content."""
        message = self.get(message_id)
        if not message:
            return None
        
        message.content = content
        self.db.commit()
        self.db.refresh(message)
        
        return message
    
    def delete(self, message_id: UUID) -> bool:
        """Delete a message. The owning thread is left untouched."""
        message = self.get(message_id)
        if not message:
            return False
        
        self.db.delete(message)
        self.db.commit()
        
        return True
    
    def bulk_append(self, thread_id: UUID, items: Sequence[Tuple[str, str]]) -> List[Message]:
        """
        Insert (content, sender) pairs in one transaction, preserving order.
        
        Either every message is stored or none is.
        """
        messages = [
            Message(thread_id=thread_id, content=content, sender=sender, files=[])
            for content, sender in items
        ]
        
        try:
            self.db.add_all(messages)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        
        for message in messages:
            self.db.refresh(message)
        
        return messages
    
    def search_history(
        self,
        thread_id: UUID,
        keyword: str,
        limit: int = 3,
        exclude_id: Optional[UUID] = None
    ) -> List[Message]:
        """Non-assistant messages in a thread containing keyword, newest first."""
        query = self.db.query(Message).filter(
            Message.thread_id == thread_id,
            Message.sender != SYSTEM_SENDER,
            Message.content.ilike(f"%{_escape_like(keyword)}%", escape="\\")
        )
        if exclude_id is not None:
            query = query.filter(Message.id != exclude_id)
        
        return query.order_by(
            desc(Message.created_at)
        ).limit(limit).all()
