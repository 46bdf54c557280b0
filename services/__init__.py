from .exceptions import ServiceError, ValidationError, NotFoundError, UnauthorizedError
from .threads import ThreadService, ThreadResolver
from .messages import MessageService
from .enhancer import ResponseEnhancer
from .memory import MemoryRecall
from .embeddings import RetrievalClient, EmbeddingIndexer
from .orchestrator import ConversationOrchestrator

__all__ = ["ServiceError", "ValidationError", "NotFoundError", "UnauthorizedError",
           "ThreadService", "ThreadResolver", "MessageService", "ResponseEnhancer",
           "MemoryRecall", "RetrievalClient", "EmbeddingIndexer", "ConversationOrchestrator"]
