"""
Shared fixtures: a temporary SQLite database per test and deterministic embedding providers.
"""

import hashlib

import numpy as np
import pytest

from socialmatch.core import config
from socialmatch.core.config import MatchSettings
from socialmatch.core.db import init_db
from socialmatch.core.errors import EmptyInput
from socialmatch.vector import store as store_module
from socialmatch.vector.embeddings import IEmbeddingProvider, preprocess_text
from socialmatch.vector.store import EmbeddingStore

DIM = 64


class WordBucketEmbedding(IEmbeddingProvider):
    """Bag-of-words provider: texts sharing words get positive cosine similarity."""

    def __init__(self, dimension: int = DIM):
        self.dimension = dimension
        self.calls = []

    def embed_text(self, text: str) -> list[float]:
        self.calls.append(text)
        tokens = preprocess_text(text).split()
        if not tokens:
            raise EmptyInput("No content to embed after preprocessing")
        vector = np.zeros(self.dimension)
        for token in tokens:
            bucket = int(hashlib.md5(token.encode()).hexdigest(), 16) % self.dimension
            vector[bucket] += 1.0
        return (vector / np.linalg.norm(vector)).tolist()

    def get_dimension(self) -> int:
        return self.dimension


class FailingEmbedding(IEmbeddingProvider):
    """Provider that is always down."""

    def embed_text(self, text: str) -> list[float]:
        raise RuntimeError("model server unreachable")

    def get_dimension(self) -> int:
        return DIM


@pytest.fixture
def test_db(tmp_path, monkeypatch):
    """Point the application at a fresh temporary database."""
    db_path = tmp_path / "test_socialmatch.db"
    monkeypatch.setenv("DB_PATH", str(db_path))
    init_db()
    yield db_path


@pytest.fixture
def provider():
    return WordBucketEmbedding()


@pytest.fixture
def store(test_db, provider):
    return EmbeddingStore(provider=provider, dimension=DIM, timeout=0)


@pytest.fixture
def failing_store(test_db):
    return EmbeddingStore(provider=FailingEmbedding(), dimension=DIM, timeout=0)


@pytest.fixture
def settings():
    return MatchSettings()


@pytest.fixture
def hash_provider_env(monkeypatch):
    """Use the offline hash provider for the process-wide singletons."""
    monkeypatch.setenv("EMBED_PROVIDER", "hash")
    config.reset_embedding_provider()
    store_module.reset_embedding_store()
    yield
    config.reset_embedding_provider()
    store_module.reset_embedding_store()
