"""Keyword recall over a thread's own history."""
from typing import List, Optional
from uuid import UUID
import logging
import re

from sqlalchemy.exc import SQLAlchemyError

from services.messages import MessageService

logger = logging.getLogger(__name__)

RECALL_TRIGGERS = ("what did i say", "earlier", "before", "previous", "remind me", "last time")
STOP_WORDS = frozenset({"what", "did", "i", "say", "about", "the", "last", "time", "you"})
RECALL_LIMIT = 3
BULLET = "• "


def should_recall(query: str) -> bool:
    """True when the query asks about something said earlier."""
    query_lower = query.lower()
    return any(trigger in query_lower for trigger in RECALL_TRIGGERS)


def extract_keyword(query: str) -> Optional[str]:
    """Last non-stop-word token of the query."""
    # Word characters only: "iot?" -> "iot"
    keywords = [word for word in re.findall(r"\w+", query.lower()) if word not in STOP_WORDS]
    return keywords[-1] if keywords else None


class MemoryRecall:
    """
    Fallback recall that does not depend on the retrieval service.
    
    Only runs when the query contains a recall trigger such as "earlier" or
    "remind me"; the last meaningful word of the query is then searched for
    in the thread's earlier user messages.
    """
    
    def __init__(self, messages: MessageService, limit: int = RECALL_LIMIT):
        self.messages = messages
        self.limit = limit
    
    def recall(self, thread_id: UUID, query: str, exclude_id: Optional[UUID] = None) -> List[str]:
        """Bulleted earlier messages matching the query, skipping exclude_id."""
        if not should_recall(query):
            return []
        
        keyword = extract_keyword(query)
        if not keyword:
            return []
        
        try:
            past_messages = self.messages.search_history(
                thread_id, keyword, limit=self.limit, exclude_id=exclude_id
            )
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving memory: {e}")
            self.messages.db.rollback()
            return []
        
        logger.info(f"Memory recall for '{keyword}' found {len(past_messages)} messages")
        
        return [f"{BULLET}{message.content}" for message in past_messages]
