"""Shared pytest fixtures.

Notes, embeddings and embedders are deterministic so retrieval results can
be asserted exactly. The log sink is redirected before cortex is imported.
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Dict, List

os.environ.setdefault("CORTEX_LOG_FILE", os.path.join(tempfile.gettempdir(), "cortex-tests.log"))

import pytest

from cortex.core.config import Settings
from cortex.core.exceptions import EmbeddingUnavailableError
from cortex.embeddings.types import EmbeddingVector
from cortex.models.note import NoteRecord
from cortex.rag.retrieval.ranking import LexicalRanker
from cortex.rag.retrieval.semantic_search import SemanticSearch
from cortex.store.memory import InMemoryNoteStore

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

# Dimensions of the toy embedding space
VOCABULARY = ["python", "javascript", "garden", "programming"]


def keyword_vector(text: str) -> List[float]:
    """Bag-of-words vector over VOCABULARY."""
    words = text.lower().split()
    return [float(words.count(term)) for term in VOCABULARY]


class KeywordEmbedder:
    """Embeds text by counting vocabulary words."""

    def __init__(self) -> None:
        self.calls: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        return keyword_vector(text)


class FailingEmbedder:
    """Embedding provider that is always down."""

    def __init__(self) -> None:
        self.calls = 0

    async def embed(self, text: str) -> List[float]:
        self.calls += 1
        raise EmbeddingUnavailableError("Embedding service unreachable")


class BrokenStore(InMemoryNoteStore):
    """Store whose every read fails."""

    async def fetch_all(self):
        raise RuntimeError("disk on fire")

    async def fetch_by_id(self, note_id):
        raise RuntimeError("disk on fire")

    async def fetch_all_embeddings(self):
        raise RuntimeError("disk on fire")


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep user config files and env vars out of every test."""
    for key in (
        "CORTEX_CONFIG",
        "CORTEX_LOG_LEVEL",
        "CORTEX_CACHE_TTL",
        "CORTEX_EMBEDDING_URL",
        "CORTEX_EMBEDDING_MODEL",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def sample_notes() -> List[NoteRecord]:
    return [
        NoteRecord(
            id="note-1",
            title="Python Programming Basics",
            content=(
                "Python is a programming language with a clean syntax. "
                "Use list comprehensions and small functions."
            ),
            path="dev/python-basics.md",
            tags=["python", "programming"],
            created_at=NOW - timedelta(days=10),
            updated_at=NOW - timedelta(days=2),
            metadata={"status": "published", "priority": 1},
        ),
        NoteRecord(
            id="note-2",
            title="JavaScript Async Patterns",
            content="Asynchronous programming in JavaScript relies on promises and await.",
            path="dev/javascript-async.md",
            tags=["javascript", "programming"],
            created_at=NOW - timedelta(days=40),
            updated_at=NOW - timedelta(days=30),
            metadata={"status": "draft"},
        ),
        NoteRecord(
            id="note-3",
            title="Gardening Notes",
            content="Tomatoes need full sun and regular watering.",
            path="home/garden.md",
            tags=["garden"],
            created_at=NOW - timedelta(days=200),
            updated_at=NOW - timedelta(days=200),
            metadata={},
        ),
    ]


@pytest.fixture
def sample_embeddings() -> List[EmbeddingVector]:
    vectors: Dict[str, List[float]] = {
        "note-1": [1.0, 0.0, 0.0, 1.0],
        "note-2": [0.0, 1.0, 0.0, 1.0],
        "note-3": [0.0, 0.0, 1.0, 0.0],
    }
    return [
        EmbeddingVector(note_id=note_id, vector=vector, created_at=NOW, id=index)
        for index, (note_id, vector) in enumerate(vectors.items(), start=1)
    ]


@pytest.fixture
def store(sample_notes, sample_embeddings) -> InMemoryNoteStore:
    return InMemoryNoteStore(sample_notes, sample_embeddings)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ranker() -> LexicalRanker:
    return LexicalRanker(now=lambda: NOW)


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def search(store, embedder, ranker, settings, clock) -> SemanticSearch:
    return SemanticSearch(store, embedder, ranker=ranker, settings=settings, clock=clock)
