"""Per-turn conversation orchestration."""
from typing import Any, Dict, List, Optional, TypedDict
from uuid import UUID
from sqlalchemy.orm import Session
from langgraph.graph.state import CompiledStateGraph
import logging

from graph import build_generation_graph
from models.messages import Message, SYSTEM_SENDER
from models.threads import Thread
from services.embeddings import RetrievalClient, EmbeddingIndexer
from services.enhancer import ResponseEnhancer
from services.exceptions import ValidationError, NotFoundError, UnauthorizedError
from services.indexing import build_indexer
from services.memory import MemoryRecall
from services.messages import MessageService
from services.threads import ThreadService, ThreadResolver

logger = logging.getLogger(__name__)

NO_CONTEXT_AVAILABLE = "RAG context not available"


class GenerationResult(TypedDict):
    answer: str
    context: str
    response_id: str


class TurnResult(GenerationResult):
    thread_id: UUID
    message_id: UUID


def parse_id(value: Any, label: str) -> UUID:
    """Parse an identifier, raising ValidationError on a malformed one."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label} ID format")


def _preview(text: str, length: int = 100) -> str:
    return text[:length] + ("..." if len(text) > length else "")


class ConversationOrchestrator:
    """
    Runs conversational turns against the thread/message store.

    A turn is: resolve thread, persist the user message, index it, retrieve,
    compose the answer, persist the assistant message, index it, touch the
    thread. Only the persistence stages can fail a turn. Indexing failures are
    logged and ignored, and retrieval never raises.

    Writes are committed stage by stage: if the assistant message cannot be
    saved, the thread and the user message stay committed.
    """

    def __init__(
        self,
        db: Session,
        retrieval: Optional[RetrievalClient] = None,
        indexer: Optional[EmbeddingIndexer] = None,
        enhancer: Optional[ResponseEnhancer] = None,
        memory_recall: Optional[MemoryRecall] = None,
        generation: Optional[CompiledStateGraph] = None
    ):
        self.threads = ThreadService(db)
        self.messages = MessageService(db)
        self.resolver = ThreadResolver(self.threads)
        self.retrieval = retrieval or RetrievalClient.from_settings()
        self.indexer = indexer or build_indexer()
        self.enhancer = enhancer or ResponseEnhancer()
        self.memory_recall = memory_recall or MemoryRecall(self.messages)
        # The app passes one graph compiled at startup
        if generation is None:
            generation = build_generation_graph(self.retrieval, self.enhancer)
        self.generation = generation

    def _index(self, user_id: str, message: Message, label: str) -> None:
        """Best-effort indexing; never raises."""
        if not self.indexer.is_enabled():
            logger.info(f"Embedding service is disabled, skipping {label} embedding")
            return

        try:
            result = self.indexer.submit(
                user_id,
                message.content,
                str(message.thread_id),
                str(message.id)
            )
        except Exception as e:
            logger.error(f"Failed to create {label} embedding: {e}")
            return

        if result.get("error"):
            logger.warning(f"Embedding creation warning for {label}: {result['error']}")
        else:
            logger.info(f"{label.capitalize()} embedding created: {result.get('status')}")

    def _generate(
        self,
        thread: Thread,
        user_id: str,
        query: str,
        query_message: Message,
        provided_context: Optional[str],
        scope_retrieval_to_thread: bool
    ) -> Dict[str, Any]:
        state = self.generation.invoke({
            "user_id": user_id,
            "thread_id": thread.id,
            "query": query,
            "query_message_id": query_message.id,
            "rag_thread_id": str(thread.id) if scope_retrieval_to_thread else None,
            "provided_context": provided_context,
        }, config={"configurable": {"memory_recall": self.memory_recall}})
        logger.info(f"Assistant answer: {_preview(state['answer'])}")
        return state

    def _require_message(self, message_id: Any, user_id: Optional[str], action: str) -> Message:
        message = self.messages.get(parse_id(message_id, "message"))
        if not message:
            raise NotFoundError("Message not found")

        # Ownership is only checked when the caller names a user
        if user_id:
            thread = self.threads.get_thread(message.thread_id)
            if not thread:
                raise NotFoundError("Thread not found")
            if thread.user_id != user_id:
                raise UnauthorizedError(f"You do not have permission to {action} this message")

        return message

    def create_turn(
        self,
        content: str,
        user_id: str,
        thread_id: Optional[Any] = None,
        context: Optional[str] = None,
        files: Optional[List[str]] = None
    ) -> TurnResult:
        """
        Process one user message and produce the assistant reply.

        Args:
            content: The user's message
            user_id: Sender of the message
            thread_id: Target thread; the user's active thread (or a new one)
                is used when omitted
            context: Caller-supplied context, used instead of memory recall
            files: Attachment references stored on the user message

        Returns:
            answer, context, response_id, thread_id and the user message id
        """
        if not content:
            raise ValidationError("content is required")
        if not user_id:
            raise ValidationError("userId is required")
        target_thread_id = parse_id(thread_id, "thread") if thread_id else None

        logger.info(
            f"Turn for user {user_id} in thread {target_thread_id or 'auto'}: {_preview(content)}"
        )

        thread = self.resolver.resolve(user_id, target_thread_id, content)

        user_message = self.messages.append(thread.id, content, user_id, files)
        logger.info(f"User message saved: {user_message.id}")
        self._index(user_id, user_message, "user message")

        # Retrieval is not scoped to the thread for regular turns
        state = self._generate(
            thread, user_id, content, user_message, context, scope_retrieval_to_thread=False
        )

        assistant_message = self.messages.append(thread.id, state["answer"], SYSTEM_SENDER)
        logger.info(f"Assistant message saved: {assistant_message.id}")
        self._index(user_id, assistant_message, "assistant response")

        if not self.threads.touch_thread(thread.id):
            raise NotFoundError("Thread not found")

        return {
            "answer": state["answer"],
            "context": state.get("context") or "",
            "response_id": state.get("response_id") or "",
            "thread_id": thread.id,
            "message_id": user_message.id,
        }

    def generate_only(
        self,
        thread_id: Any,
        user_message: str,
        context: Optional[str] = None
    ) -> GenerationResult:
        """
        Same pipeline as create_turn for an existing thread, narrower result.

        The user message is stored with the thread owner as sender and
        retrieval is scoped to the thread.
        """
        if not thread_id or not user_message:
            raise ValidationError("threadId and userMessage are required fields")
        target_thread_id = parse_id(thread_id, "thread")

        thread = self.threads.get_thread(target_thread_id)
        if not thread:
            raise NotFoundError("Thread not found")

        owner = thread.user_id or "user"
        stored = self.messages.append(thread.id, user_message, owner)
        self._index(owner, stored, "user message")

        state = self._generate(
            thread, owner, user_message, stored, context, scope_retrieval_to_thread=True
        )

        reply = self.messages.append(thread.id, state["answer"], SYSTEM_SENDER)
        self._index(owner, reply, "assistant response")

        return {
            "answer": state["answer"],
            "context": state.get("context") or NO_CONTEXT_AVAILABLE,
            "response_id": state.get("response_id") or "",
        }

    def get_message(self, message_id: Any, user_id: Optional[str] = None) -> Message:
        return self._require_message(message_id, user_id, "access")

    def update_message(self, message_id: Any, content: str, user_id: Optional[str] = None) -> Message:
        if not content:
            raise ValidationError("content is required")

        message = self._require_message(message_id, user_id, "update")
        return self.messages.update(message.id, content)

    def delete_message(self, message_id: Any, user_id: Optional[str] = None) -> Dict[str, Any]:
        message = self._require_message(message_id, user_id, "delete")
        thread_id = message.thread_id
        message_uuid = message.id

        self.messages.delete(message_uuid)

        return {"id": message_uuid, "thread_id": thread_id, "deleted": True}

    def batch_create_messages(
        self,
        thread_id: Any,
        messages: List[Dict[str, Any]],
        user_id: Optional[str] = None
    ) -> List[Message]:
        """
        Raw import of messages into an existing thread.

        No indexing, retrieval or enhancement. Each sender defaults to the
        caller's user id, then to "system".
        """
        if not thread_id or not isinstance(messages, list) or not messages:
            raise ValidationError("threadId and non-empty messages array are required")
        target_thread_id = parse_id(thread_id, "thread")

        for item in messages:
            if not item.get("content"):
                raise ValidationError("every message needs content")

        thread = self.threads.require_owned_thread(target_thread_id, user_id, action="add messages to")

        items = [
            (item["content"], item.get("sender") or user_id or SYSTEM_SENDER)
            for item in messages
        ]
        created = self.messages.bulk_append(thread.id, items)
        logger.info(f"Imported {len(created)} messages into thread {thread.id}")

        return created
