import os

# Settings are read at import time, so pin them before any app module loads.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("EMBEDDING_API_URL", None)
os.environ["EMBEDDING_DISPATCH"] = "inline"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from models import Base


class FakeRetrieval:
    """Retrieval stand-in returning a canned result and recording calls."""

    def __init__(self, result=None):
        self.result = result or {
            "answer": "A" * 250,
            "context": "retrieved context",
            "responseId": "resp-1",
            "degraded": False,
        }
        self.calls = []

    def is_enabled(self):
        return True

    def query(self, user_id, query, thread_id=None):
        self.calls.append({"user_id": user_id, "query": query, "thread_id": thread_id})
        return dict(self.result)


class FakeIndexer:
    """Indexer stand-in; can be told to fail or raise."""

    def __init__(self, enabled=True, result=None, error=None):
        self.enabled = enabled
        self.result = result or {"status": "ok"}
        self.error = error
        self.calls = []

    def is_enabled(self):
        return self.enabled

    def submit(self, user_id, content, thread_id=None, message_id=None):
        self.calls.append({
            "user_id": user_id,
            "content": content,
            "thread_id": thread_id,
            "message_id": message_id,
        })
        if self.error:
            raise self.error
        return dict(self.result)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fake_retrieval():
    return FakeRetrieval()


@pytest.fixture
def fake_indexer():
    return FakeIndexer()
