import os
import re
import threading

os.environ.setdefault("DB_BACKEND", "sqlite")
os.environ.setdefault("VECTOR_BACKEND", "json")
os.environ.setdefault("EMBEDDING_PROVIDER", "ollama")

import pytest

from c2.context import AppContext
from c2.db import create_db_engine, create_session_factory
from c2.models import Base, Embedding
from c2.services.contact_service import ContactService
from c2.services.embeddings import EmbeddingResult

# Each group is one axis of the fake embedding space
KEYWORD_AXES = (
    {"software", "developer", "engineer", "programmer", "python"},
    {"chef", "cooking", "kitchen", "restaurant"},
    {"music", "guitar", "band", "singer"},
    {"bank", "finance", "investment", "accountant"},
)


class FakeEmbedder:
    """Deterministic keyword-axis embeddings; texts without keywords get a zero vector."""

    provider = "fake"
    model = "fake-embed"
    enabled = True

    def __init__(self):
        self.fail = False
        self.fail_on: set[str] = set()
        self.calls: list[str] = []
        self._lock = threading.Lock()

    @staticmethod
    def vector_for(text: str) -> list[float]:
        words = set(re.findall(r"\w+", text.lower()))
        return [1.0 if words & axis else 0.0 for axis in KEYWORD_AXES]

    def embed(self, text: str) -> EmbeddingResult:
        with self._lock:
            self.calls.append(text)
        if self.fail or text in self.fail_on:
            return EmbeddingResult.failure("provider unavailable")
        return EmbeddingResult.success(self.vector_for(text))

    def close(self) -> None:
        pass


@pytest.fixture
def server_db(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'c2-test.sqlite'}")
    Base.metadata.create_all(engine)
    try:
        yield create_session_factory(engine)
    finally:
        engine.dispose()


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def app_context(server_db, embedder):
    return AppContext(
        session_factory=server_db,
        embedder=embedder,
        embeddings_enabled=True,
        vector_backend="json",
    )


@pytest.fixture
def service(app_context):
    return ContactService(app_context)


@pytest.fixture
def lexical_service(server_db):
    context = AppContext(
        session_factory=server_db,
        embedder=None,
        embeddings_enabled=False,
        vector_backend="json",
    )
    return ContactService(context)


@pytest.fixture
def embedding_rows(server_db):
    def _rows(contact_id=None):
        db = server_db()
        try:
            query = db.query(Embedding)
            if contact_id is not None:
                query = query.filter(Embedding.contact_id == contact_id)
            return query.all()
        finally:
            db.close()
    return _rows
