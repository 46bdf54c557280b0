"""Background indexing of message text."""
import logging
from functools import lru_cache
from typing import Optional

from celery_app import celery
from config import settings
from services.embeddings import EmbeddingIndexer, EmbeddingResult, INDEXER_DISABLED_ERROR

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def worker_indexer() -> EmbeddingIndexer:
    """One indexer, and so one HTTP connection pool, per worker process."""
    return EmbeddingIndexer.from_settings()


@celery.task(name="services.indexing.index_message_embedding")
def index_message_embedding(
    user_id: str,
    content: str,
    thread_id: Optional[str] = None,
    message_id: Optional[str] = None
) -> EmbeddingResult:
    """Celery task: submit one message to the embedding index."""
    result = worker_indexer().submit(user_id, content, thread_id, message_id)
    if result.get("status") == "error":
        logger.warning(f"Background embedding failed for message {message_id or 'unknown'}: {result.get('error')}")
    return result


class QueuedEmbeddingIndexer:
    """
    Indexer that hands submissions to a Celery worker.
    
    Same contract as EmbeddingIndexer: enqueue failures come back as an
    error-shaped result instead of raising.
    """
    
    def __init__(self, enabled: bool = True):
        self.enabled = enabled
    
    def is_enabled(self) -> bool:
        return self.enabled
    
    def submit(
        self,
        user_id: str,
        content: str,
        thread_id: Optional[str] = None,
        message_id: Optional[str] = None
    ) -> EmbeddingResult:
        if not self.enabled:
            return {"status": "error", "error": INDEXER_DISABLED_ERROR}
        
        try:
            task = index_message_embedding.delay(user_id, content, thread_id, message_id)
        except Exception as e:
            logger.error(f"Failed to queue embedding for message {message_id or 'unknown'}: {e}")
            return {"status": "error", "error": f"Failed to queue embedding: {e}"}
        
        return {"status": "ok", "task_id": task.id}


def build_indexer(dispatch: Optional[str] = None):
    """Indexer for the configured dispatch mode ("inline" or "celery")."""
    if (dispatch or settings.embedding_dispatch) == "celery":
        return QueuedEmbeddingIndexer(enabled=bool(settings.embedding_api_url))
    return EmbeddingIndexer.from_settings()
