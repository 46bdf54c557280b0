"""Thread repository and active-thread resolution."""
from datetime import datetime
from typing import Optional
from uuid import UUID
from sqlalchemy.orm import Session
from sqlalchemy import desc
import logging

from models.threads import Thread, utcnow
from services.exceptions import NotFoundError, UnauthorizedError

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 50


def make_title(content: str) -> str:
    """First 50 characters of the message, with an ellipsis when cut."""
    if len(content) > TITLE_MAX_LENGTH:
        return content[:TITLE_MAX_LENGTH] + "..."
    return content


class ThreadService:
    """Repository for thread records."""
    
    def __init__(self, db: Session):
        self.db = db
    
    def get_thread(self, thread_id: UUID) -> Optional[Thread]:
        """Retrieve a thread by ID."""
        return self.db.query(Thread).filter(Thread.id == thread_id).first()
    
    def get_active_thread(self, user_id: str) -> Optional[Thread]:
        """Most recently updated active thread for a user, if any."""
        return self.db.query(Thread).filter(
            Thread.user_id == user_id,
            Thread.is_active.is_(True)
        ).order_by(
            desc(Thread.updated_at)
        ).first()
    
    def create_thread(self, user_id: str, title: str) -> Thread:
        """Create a new active thread for a user."""
        db_thread = Thread(
            user_id=user_id,
            title=title,
            created_by=user_id,
            is_active=True
        )
        
        self.db.add(db_thread)
        self.db.commit()
        self.db.refresh(db_thread)
        
        return db_thread
    
    def touch_thread(self, thread_id: UUID, when: Optional[datetime] = None) -> Optional[Thread]:
        """Bump a thread's updated_at timestamp."""
        thread = self.get_thread(thread_id)
        if not thread:
            return None
        
        thread.updated_at = when or utcnow()
        self.db.commit()
        self.db.refresh(thread)
        
        return thread
    
    def require_owned_thread(self, thread_id: UUID, user_id: Optional[str], action: str = "access") -> Thread:
        """
        Load a thread and check ownership.
        
        Ownership is only verified when a user_id is supplied; callers that
        pass None deliberately skip the check.
        """
        thread = self.get_thread(thread_id)
        if not thread:
            raise NotFoundError("Thread not found")
        
        if user_id and thread.user_id != user_id:
            raise UnauthorizedError(f"You do not have permission to {action} this thread")
        
        return thread


class ThreadResolver:
    """Finds or creates the conversation thread a turn belongs to."""
    
    def __init__(self, threads: ThreadService):
        self.threads = threads
    
    def resolve(self, user_id: str, thread_id: Optional[UUID], content: str) -> Thread:
        """
        Resolve the thread for an incoming message.
        
        An explicit thread_id must exist (ownership is not checked here).
        Otherwise the user's most recently updated active thread is reused,
        or a new one is created and titled after the message.
        
        The lookup and the create are separate statements, so two concurrent
        first messages from one user can each create a thread.
        """
        if thread_id is not None:
            thread = self.threads.get_thread(thread_id)
            if not thread:
                logger.error(f"Thread not found: {thread_id}")
                raise NotFoundError("Thread not found")
            return thread
        
        thread = self.threads.get_active_thread(user_id)
        if thread:
            logger.info(f"Found existing active thread {thread.id} for user {user_id}")
            return thread
        
        thread = self.threads.create_thread(user_id=user_id, title=make_title(content))
        logger.info(f"Created new thread {thread.id} for user {user_id}")
        return thread
