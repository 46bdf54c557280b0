"""Client for the external embedding / RAG service."""
import logging
import re
from typing import Any, Dict, List, Optional, TypedDict

import httpx

from config import settings

logger = logging.getLogger(__name__)

DEGRADED_ANSWER = (
    "I'm currently having trouble accessing my extended knowledge base, but I'd be happy to help you with "
    "general questions or discuss topics based on my core knowledge. What would you like to know? I can assist "
    "with various subjects including technology, programming, general knowledge, and more. Just let me know "
    "what you're interested in, and I'll provide the best possible response with the information available to me."
)
DISABLED_CONTEXT = "Embedding Service disabled: No API URL available"
ERROR_CONTEXT = "Error retrieving context"
INDEXER_DISABLED_ERROR = "Embedding Service is disabled: No API URL available"

QUESTION_INDICATORS = (
    "?", "what", "how", "why", "when", "where", "who", "which", "can you", "could you",
    "tell me", "explain", "describe", "find", "search", "help me with"
)
TRIVIAL_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^hi+$", r"^hello+$", r"^hey+$", r"^yo+$", r"^sup+$", r"^how are you\??$",
        r"^what's up\??$", r"^ok+$", r"^okay+$", r"^test+$", r"^ping$"
    )
]


class RAGMatch(TypedDict):
    content: str
    score: float


class RAGResult(TypedDict, total=False):
    answer: str
    context: str
    responseId: str
    matches: List[RAGMatch]
    degraded: bool


class EmbeddingResult(TypedDict, total=False):
    status: str
    vector: List[float]
    error: str
    task_id: str


def _truncate(text: str, length: int = 100) -> str:
    return text[:length] + ("..." if len(text) > length else "")


def _describe_http_error(exc: httpx.HTTPError) -> str:
    status = "unknown"
    if isinstance(exc, httpx.HTTPStatusError):
        status = str(exc.response.status_code)
    return f"API error: {status} - {exc}"


def is_trivial_message(content: str) -> bool:
    """Greetings, acks and pings that carry nothing to search for."""
    trimmed = content.strip().lower()
    return any(pattern.match(trimmed) for pattern in TRIVIAL_PATTERNS)


def should_use_semantic_search(content: str) -> bool:
    """Whether a message looks like a question worth a retrieval round-trip."""
    if len(content.strip()) < 10:
        return False

    if is_trivial_message(content):
        return False

    content_lower = content.lower()
    return any(indicator in content_lower for indicator in QUESTION_INDICATORS)


class _EmbeddingAPI:
    """Shared plumbing for calls to the embedding service."""

    def __init__(
        self,
        api_url: Optional[str],
        timeout: float,
        client: Optional[httpx.Client] = None
    ):
        self.api_url = api_url.rstrip("/") if api_url else None
        self.timeout = httpx.Timeout(timeout)
        # One pooled client per component, reused across calls
        self.client = client or httpx.Client(timeout=self.timeout)

    def is_enabled(self) -> bool:
        return self.api_url is not None

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        # Optional ids are left out rather than sent as null
        body = {key: value for key, value in payload.items() if value is not None}
        response = self.client.post(f"{self.api_url}{path}", json=body, timeout=self.timeout)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(f"Unexpected response body from {path}")
        return data

    def close(self) -> None:
        self.client.close()


class RetrievalClient(_EmbeddingAPI):
    """
    Retrieval-augmented answers from the external service.

    Fails open: when the service is not configured, or the call fails for any
    reason, a fixed degraded answer is returned instead of raising. Callers
    cannot tell the two degraded cases apart by the answer, only by context.
    """

    def __init__(
        self,
        api_url: Optional[str],
        timeout: float = 8.0,
        client: Optional[httpx.Client] = None
    ):
        super().__init__(api_url, timeout, client)
        if self.is_enabled():
            logger.info(f"Retrieval client initialized with API URL: {self.api_url}")
        else:
            logger.warning("Retrieval client disabled: no EMBEDDING_API_URL configured")

    @classmethod
    def from_settings(cls, client: Optional[httpx.Client] = None) -> "RetrievalClient":
        return cls(settings.embedding_api_url, settings.rag_timeout_seconds, client)

    def query(self, user_id: str, query: str, thread_id: Optional[str] = None) -> RAGResult:
        """
        Ask the service for an answer and supporting context.

        Args:
            user_id: User the answer is for
            query: The question text
            thread_id: Optional thread to scope retrieval to

        Returns:
            answer, context and responseId from the service, or the degraded
            answer with a context describing why
        """
        if not self.is_enabled():
            return {"answer": DEGRADED_ANSWER, "context": DISABLED_CONTEXT, "degraded": True}

        payload = {"userId": user_id, "threadId": thread_id, "query": query}
        try:
            logger.info(f"Calling /rag-generate for query: {_truncate(query, 50)}")
            data = self._post("/rag-generate", payload)
        except Exception as e:
            logger.error(f"Error calling /rag-generate API: {e}")
            return {"answer": DEGRADED_ANSWER, "context": ERROR_CONTEXT, "degraded": True}

        result: RAGResult = {
            "answer": data.get("answer") or "",
            "context": data.get("context") or "",
            "responseId": data.get("responseId") or "",
            "degraded": False,
        }
        if data.get("matches"):
            result["matches"] = data["matches"]

        logger.info(
            f"RAG response received: answer={len(result['answer'])} chars, "
            f"context={len(result['context'])} chars, responseId={result['responseId'] or '-'}"
        )
        return result

    def enhance_prompt_with_rag(self, user_id: str, query: str, thread_id: Optional[str] = None) -> str:
        """Prefix a query with retrieved context, or return it unchanged."""
        if not self.is_enabled() or not should_use_semantic_search(query):
            return query

        result = self.query(user_id, query, thread_id)
        if result.get("degraded"):
            return query

        return "\n".join([
            "### Relevant Previous Information:",
            result.get("context", ""),
            "\n### Current User Query:",
            query
        ])


class EmbeddingIndexer(_EmbeddingAPI):
    """
    Best-effort submission of message text to the embedding index.

    Never raises: disabled state and every transport failure come back as
    an error-shaped result.
    """

    def __init__(
        self,
        api_url: Optional[str],
        timeout: float = 3.0,
        client: Optional[httpx.Client] = None
    ):
        super().__init__(api_url, timeout, client)
        if not self.is_enabled():
            logger.warning("Embedding indexer disabled: no EMBEDDING_API_URL configured")

    @classmethod
    def from_settings(cls, client: Optional[httpx.Client] = None) -> "EmbeddingIndexer":
        return cls(settings.embedding_api_url, settings.embedding_timeout_seconds, client)

    def submit(
        self,
        user_id: str,
        content: str,
        thread_id: Optional[str] = None,
        message_id: Optional[str] = None
    ) -> EmbeddingResult:
        if not self.is_enabled():
            return {"status": "error", "error": INDEXER_DISABLED_ERROR}

        payload = {
            "userId": user_id,
            "threadId": thread_id,
            "content": content,
            "messageId": message_id
        }
        try:
            data = self._post("/embed", payload)
        except httpx.HTTPError as e:
            logger.error(f"Error calling /embed API for message {message_id or 'unknown'}: {e}")
            return {"status": "error", "error": _describe_http_error(e)}
        except Exception as e:
            logger.error(f"Invalid /embed response for message {message_id or 'unknown'}: {e}")
            return {"status": "error", "error": "Failed to create embedding"}

        logger.info(f"Embedding created for message {message_id or 'unknown'}: {data.get('status')}")
        data.setdefault("status", "ok")
        return data
