from typing import TypedDict, Optional, List
from uuid import UUID
from langchain_core.runnables import RunnableConfig
from langgraph.graph import StateGraph, START, END
import logging

from services.embeddings import RetrievalClient
from services.enhancer import ResponseEnhancer, NO_RESPONSE_FALLBACK

logger = logging.getLogger(__name__)

PROVIDED_CONTEXT_HEADER = "Here is important context about the user:"
RECALLED_CONTEXT_HEADER = "Here are some things the user said previously:"


class State(TypedDict, total=False):
    user_id: str
    thread_id: UUID
    query: str
    query_message_id: Optional[UUID]
    rag_thread_id: Optional[str]
    provided_context: Optional[str]
    answer: str
    context: str
    response_id: str
    degraded: bool
    memory: List[str]


def build_generation_graph(retrieval: RetrievalClient, enhancer: ResponseEnhancer):
    """
    Compile the assistant-generation pipeline: retrieve -> [recall] -> compose.

    Recall only runs when retrieval came back degraded, so the thread's own
    history (or caller-supplied context) stands in for the missing context.
    The recall helper is bound to a database session, so it is passed per
    invocation as config["configurable"]["memory_recall"].
    """

    def retrieve(state: State):
        """Fetch an answer and context from the retrieval service (fails open)."""
        result = retrieval.query(
            state["user_id"],
            state["query"],
            state.get("rag_thread_id")
        )
        return {
            "answer": result.get("answer") or "",
            "context": result.get("context") or "",
            "response_id": result.get("responseId") or "",
            "degraded": bool(result.get("degraded")),
        }

    def route_after_retrieve(state: State) -> str:
        return "recall" if state.get("degraded") else "compose"

    def recall(state: State, config: RunnableConfig):
        """Fall back to caller context or keyword recall over the thread."""
        provided = state.get("provided_context")
        if provided:
            logger.info("Using explicitly provided context")
            return {"context": f"{PROVIDED_CONTEXT_HEADER}\n{provided}", "memory": []}

        memory_recall = config.get("configurable", {}).get("memory_recall")
        if memory_recall is None:
            logger.warning("No memory recall configured, keeping degraded context")
            return {"memory": []}

        lines = memory_recall.recall(
            state["thread_id"],
            state["query"],
            exclude_id=state.get("query_message_id")
        )
        if not lines:
            return {"memory": []}

        logger.info(f"Recalled {len(lines)} earlier messages")
        return {
            "context": RECALLED_CONTEXT_HEADER + "\n" + "\n".join(lines),
            "memory": lines,
        }

    def compose(state: State):
        """Guarantee a minimum-quality answer."""
        candidate = state.get("answer") or NO_RESPONSE_FALLBACK
        return {"answer": enhancer.enhance(candidate, state["query"])}

    graph = (
        StateGraph(State)
        .add_node("retrieve", retrieve)
        .add_node("recall", recall)
        .add_node("compose", compose)
        .add_edge(START, "retrieve")
        .add_conditional_edges("retrieve", route_after_retrieve, {"recall": "recall", "compose": "compose"})
        .add_edge("recall", "compose")
        .add_edge("compose", END)
    )
    return graph.compile()
