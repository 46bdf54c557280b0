from uuid import uuid4

import pytest

from graph import build_generation_graph
from models import Message, Thread, SYSTEM_SENDER
from services.embeddings import DEGRADED_ANSWER, DISABLED_CONTEXT, EmbeddingIndexer, RetrievalClient
from services.enhancer import BOILERPLATE_SUBSTITUTES, NO_RESPONSE_FALLBACK, QUERY_CATEGORIES, ResponseEnhancer
from services.exceptions import NotFoundError, UnauthorizedError, ValidationError
from services.messages import MessageService
from services.orchestrator import ConversationOrchestrator, NO_CONTEXT_AVAILABLE
from services.threads import ThreadService


@pytest.fixture
def orchestrator(db, fake_retrieval, fake_indexer):
    return ConversationOrchestrator(db, retrieval=fake_retrieval, indexer=fake_indexer)


@pytest.fixture
def offline_orchestrator(db):
    """Orchestrator with retrieval and indexing both unconfigured."""
    return ConversationOrchestrator(db, retrieval=RetrievalClient(None), indexer=EmbeddingIndexer(None))


def _thread_messages(db, thread_id):
    return db.query(Message).filter(Message.thread_id == thread_id).order_by(Message.created_at).all()


def test_first_turn_with_retrieval_disabled(db, offline_orchestrator):
    result = offline_orchestrator.create_turn(content="Hello", user_id="u1")

    assert result["answer"] == DEGRADED_ANSWER
    assert result["context"] == DISABLED_CONTEXT
    thread = db.query(Thread).filter(Thread.id == result["thread_id"]).one()
    assert thread.user_id == "u1"
    assert thread.title == "Hello"

    stored = _thread_messages(db, thread.id)
    assert [m.sender for m in stored] == ["u1", SYSTEM_SENDER]
    assert stored[0].id == result["message_id"]
    assert stored[1].content == DEGRADED_ANSWER


def test_turn_runs_stages_against_collaborators(db, orchestrator, fake_retrieval, fake_indexer):
    result = orchestrator.create_turn(content="What is IoT?", user_id="u1", files=["f-1"])

    assert result["answer"] == "A" * 250
    assert result["context"] == "retrieved context"
    assert result["response_id"] == "resp-1"

    # Regular turns query retrieval without a thread scope
    assert fake_retrieval.calls == [{"user_id": "u1", "query": "What is IoT?", "thread_id": None}]

    user_message, assistant_message = _thread_messages(db, result["thread_id"])
    assert user_message.files == ["f-1"]
    assert [call["message_id"] for call in fake_indexer.calls] == [str(user_message.id), str(assistant_message.id)]
    assert [call["content"] for call in fake_indexer.calls] == ["What is IoT?", "A" * 250]
    assert all(call["user_id"] == "u1" for call in fake_indexer.calls)


def test_turn_reuses_active_thread_and_touches_it(db, orchestrator):
    first = orchestrator.create_turn(content="one", user_id="u1")
    thread = ThreadService(db).get_thread(first["thread_id"])
    touched_at = thread.updated_at

    second = orchestrator.create_turn(content="two", user_id="u1")

    assert second["thread_id"] == first["thread_id"]
    assert db.query(Thread).count() == 1
    db.refresh(thread)
    assert thread.updated_at > touched_at
    assert len(_thread_messages(db, thread.id)) == 4


def test_short_answers_are_enhanced(orchestrator, fake_retrieval):
    fake_retrieval.result = {"answer": "Hi.", "context": "", "responseId": "", "degraded": False}
    greeting = {name: text for name, _, text in QUERY_CATEGORIES}["greeting"]

    result = orchestrator.create_turn(content="hello there", user_id="u1")

    assert result["answer"] == greeting


def test_empty_answer_falls_back_to_boilerplate_substitute(orchestrator, fake_retrieval):
    fake_retrieval.result = {"answer": "", "context": "", "responseId": "", "degraded": False}

    result = orchestrator.create_turn(content="tell me something", user_id="u1")

    assert result["answer"] == BOILERPLATE_SUBSTITUTES[NO_RESPONSE_FALLBACK]


def test_indexing_failures_do_not_affect_turn(db, orchestrator, fake_indexer):
    fake_indexer.error = RuntimeError("index down")

    result = orchestrator.create_turn(content="Hello", user_id="u1")

    assert result["answer"] == "A" * 250
    assert len(fake_indexer.calls) == 2
    assert len(_thread_messages(db, result["thread_id"])) == 2


def test_error_shaped_index_result_is_tolerated(orchestrator, fake_indexer):
    fake_indexer.result = {"status": "error", "error": "API error: 503 - unavailable"}

    orchestrator.create_turn(content="Hello", user_id="u1")

    assert len(fake_indexer.calls) == 2


def test_disabled_indexer_is_skipped(orchestrator, fake_indexer):
    fake_indexer.enabled = False

    orchestrator.create_turn(content="Hello", user_id="u1")

    assert fake_indexer.calls == []


def test_assistant_persist_failure_fails_turn_without_rollback(db, orchestrator, monkeypatch):
    original_append = orchestrator.messages.append

    def failing_append(thread_id, content, sender, files=None):
        if sender == SYSTEM_SENDER:
            raise RuntimeError("disk full")
        return original_append(thread_id, content, sender, files)

    monkeypatch.setattr(orchestrator.messages, "append", failing_append)

    with pytest.raises(RuntimeError):
        orchestrator.create_turn(content="Hello", user_id="u1")

    thread = db.query(Thread).one()
    assert [m.sender for m in _thread_messages(db, thread.id)] == ["u1"]


def test_user_persist_failure_aborts_before_retrieval(orchestrator, fake_retrieval, fake_indexer, monkeypatch):
    def failing_append(*args, **kwargs):
        raise RuntimeError("db down")

    monkeypatch.setattr(orchestrator.messages, "append", failing_append)

    with pytest.raises(RuntimeError):
        orchestrator.create_turn(content="Hello", user_id="u1")

    assert fake_retrieval.calls == []
    assert fake_indexer.calls == []


def test_turn_validates_input_before_persisting(db, orchestrator):
    with pytest.raises(ValidationError):
        orchestrator.create_turn(content="", user_id="u1")
    with pytest.raises(ValidationError):
        orchestrator.create_turn(content="hi", user_id="")
    with pytest.raises(ValidationError):
        orchestrator.create_turn(content="hi", user_id="u1", thread_id="not-a-uuid")

    assert db.query(Thread).count() == 0
    assert db.query(Message).count() == 0


def test_turn_with_unknown_thread_raises_not_found(db, orchestrator):
    with pytest.raises(NotFoundError):
        orchestrator.create_turn(content="hi", user_id="u1", thread_id=str(uuid4()))

    assert db.query(Message).count() == 0


def test_degraded_turn_recalls_thread_history(db, offline_orchestrator):
    first = offline_orchestrator.create_turn(content="I built an IoT dashboard", user_id="u1")

    result = offline_orchestrator.create_turn(content="what did i say about iot", user_id="u1")

    assert result["thread_id"] == first["thread_id"]
    assert result["context"] == "Here are some things the user said previously:\n• I built an IoT dashboard"


def test_degraded_first_turn_keeps_degraded_context(db, offline_orchestrator):
    result = offline_orchestrator.create_turn(content="what did i say before about kubernetes", user_id="u1")

    assert result["context"] == DISABLED_CONTEXT


def test_recall_matches_question_with_trailing_punctuation(offline_orchestrator):
    offline_orchestrator.create_turn(content="I built an IoT dashboard", user_id="u1")

    result = offline_orchestrator.create_turn(content="What did I say about IoT?", user_id="u1")

    assert result["context"] == "Here are some things the user said previously:\n• I built an IoT dashboard"


def test_orchestrators_share_one_compiled_graph(db, fake_indexer):
    retrieval = RetrievalClient(None)
    generation = build_generation_graph(retrieval, ResponseEnhancer())
    first = ConversationOrchestrator(db, retrieval=retrieval, indexer=fake_indexer, generation=generation)
    second = ConversationOrchestrator(db, retrieval=retrieval, indexer=fake_indexer, generation=generation)

    first.create_turn(content="I built an IoT dashboard", user_id="u1")
    result = second.create_turn(content="remind me about iot", user_id="u1")

    assert second.generation is first.generation
    assert result["context"].endswith("• I built an IoT dashboard")


def test_provided_context_replaces_recall_when_degraded(offline_orchestrator):
    result = offline_orchestrator.create_turn(
        content="remind me about iot", user_id="u1", context="Works on sustainability dashboards"
    )

    assert result["context"] == "Here is important context about the user:\nWorks on sustainability dashboards"


def test_recall_is_skipped_when_retrieval_succeeds(db, orchestrator):
    orchestrator.create_turn(content="I built an IoT dashboard", user_id="u1")

    result = orchestrator.create_turn(content="what did i say about iot", user_id="u1")

    assert result["context"] == "retrieved context"


def test_generate_only_scopes_retrieval_to_thread(db, orchestrator, fake_retrieval):
    thread = ThreadService(db).create_thread("owner", "t")
    fake_retrieval.result = {"answer": "B" * 300, "context": "", "responseId": "r-9", "degraded": False}

    result = orchestrator.generate_only(str(thread.id), "What changed?")

    assert result == {"answer": "B" * 300, "context": NO_CONTEXT_AVAILABLE, "response_id": "r-9"}
    assert fake_retrieval.calls[0]["thread_id"] == str(thread.id)
    assert fake_retrieval.calls[0]["user_id"] == "owner"
    assert [m.sender for m in _thread_messages(db, thread.id)] == ["owner", SYSTEM_SENDER]


def test_generate_only_requires_existing_thread(orchestrator):
    with pytest.raises(ValidationError):
        orchestrator.generate_only("", "hello")
    with pytest.raises(ValidationError):
        orchestrator.generate_only("bad-id", "hello")
    with pytest.raises(NotFoundError):
        orchestrator.generate_only(str(uuid4()), "hello")


@pytest.fixture
def owned_message(db):
    thread = ThreadService(db).create_thread("owner", "t")
    return MessageService(db).append(thread.id, "original", "owner")


def test_get_message_checks_ownership_only_when_user_given(orchestrator, owned_message):
    assert orchestrator.get_message(str(owned_message.id)).content == "original"
    assert orchestrator.get_message(str(owned_message.id), user_id="owner").id == owned_message.id
    with pytest.raises(UnauthorizedError):
        orchestrator.get_message(str(owned_message.id), user_id="intruder")


def test_message_lookup_errors(orchestrator):
    with pytest.raises(ValidationError):
        orchestrator.get_message("nope")
    with pytest.raises(NotFoundError):
        orchestrator.get_message(str(uuid4()))


def test_update_message(orchestrator, owned_message):
    with pytest.raises(UnauthorizedError):
        orchestrator.update_message(str(owned_message.id), "hijacked", user_id="intruder")
    with pytest.raises(ValidationError):
        orchestrator.update_message(str(owned_message.id), "")

    updated = orchestrator.update_message(str(owned_message.id), "edited", user_id="owner")

    assert updated.content == "edited"


def test_delete_message(db, orchestrator, owned_message):
    message_id, thread_id = owned_message.id, owned_message.thread_id
    with pytest.raises(UnauthorizedError):
        orchestrator.delete_message(str(message_id), user_id="intruder")

    result = orchestrator.delete_message(str(message_id))

    assert result == {"id": message_id, "thread_id": thread_id, "deleted": True}
    assert db.query(Message).count() == 0
    assert db.query(Thread).count() == 1


def test_batch_import_without_user_skips_ownership(db, orchestrator, fake_retrieval, fake_indexer):
    thread = ThreadService(db).create_thread("owner", "t")
    payload = [
        {"content": "m1", "sender": "owner"},
        {"content": "m2"},
        {"content": "m3", "sender": "someone"},
    ]

    created = orchestrator.batch_create_messages(str(thread.id), payload)

    assert [m.content for m in created] == ["m1", "m2", "m3"]
    assert [m.sender for m in created] == ["owner", SYSTEM_SENDER, "someone"]
    assert fake_retrieval.calls == []
    assert fake_indexer.calls == []


def test_batch_import_defaults_sender_to_user(db, orchestrator):
    thread = ThreadService(db).create_thread("owner", "t")

    created = orchestrator.batch_create_messages(str(thread.id), [{"content": "m1"}], user_id="owner")

    assert created[0].sender == "owner"


def test_batch_import_errors(db, orchestrator):
    thread = ThreadService(db).create_thread("owner", "t")

    with pytest.raises(ValidationError):
        orchestrator.batch_create_messages(str(thread.id), [])
    with pytest.raises(ValidationError):
        orchestrator.batch_create_messages("bad-id", [{"content": "m"}])
    with pytest.raises(ValidationError):
        orchestrator.batch_create_messages(str(thread.id), [{"content": ""}])
    with pytest.raises(NotFoundError):
        orchestrator.batch_create_messages(str(uuid4()), [{"content": "m"}])
    with pytest.raises(UnauthorizedError):
        orchestrator.batch_create_messages(str(thread.id), [{"content": "m"}], user_id="intruder")

    assert db.query(Message).count() == 0
