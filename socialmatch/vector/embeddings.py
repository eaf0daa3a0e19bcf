"""
Embedding providers. The ranking core treats these as opaque text -> vector functions.
"""

from abc import ABC, abstractmethod
import hashlib
import re

import numpy as np
from sentence_transformers import SentenceTransformer

from ..core.errors import EmptyInput


def preprocess_text(text: str) -> str:
    """Normalise free text before embedding: lower-case, alphanumerics only, single spaces."""
    text = text.lower()
    text = re.sub(r"\n+", " ", text)
    text = re.sub(r"[^a-z0-9\s]", " ", text)
    return re.sub(r"\s+", " ", text).strip()


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding providers."""

    @abstractmethod
    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector for given text."""
        pass

    @abstractmethod
    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        pass


class DeterministicHashEmbedding(IEmbeddingProvider):
    """Deterministic hash-based embedding provider for offline use and tests.

    Identical (preprocessed) text always yields the identical unit vector, so
    duplicate content scores 1.0. Different text yields unrelated vectors; there
    is no semantic signal beyond exact equality.
    """

    def __init__(self, dimension: int = 384):
        self.dimension = dimension

    def embed_text(self, text: str) -> list[float]:
        """Generate deterministic embedding vector using a hash chain."""
        cleaned = preprocess_text(text)
        if not cleaned:
            raise EmptyInput("Cannot generate embedding for empty text")

        values = []
        counter = 0
        while len(values) < self.dimension:
            digest = hashlib.sha256(f"{counter}:{cleaned}".encode()).digest()
            for i in range(0, len(digest), 4):
                value = int.from_bytes(digest[i:i + 4], "big")
                # Map to [-1, 1]
                values.append((value / 2**32) * 2 - 1)
            counter += 1

        vector = np.array(values[:self.dimension])
        norm = np.linalg.norm(vector)
        if norm > 0:
            vector = vector / norm
        return vector.tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        return self.dimension


class SentenceTransformerEmbedding(IEmbeddingProvider):
    """Sentence transformers embedding provider using pre-trained models.

    Defaults to all-MiniLM-L6-v2 (384 dimensions) with normalised output.
    The model is loaded on first use and kept for the life of the process.
    """

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        self.model_name = model_name
        self._model = None
        self._dimension = None

    @property
    def model(self):
        if self._model is None:
            self._model = SentenceTransformer(self.model_name)
        return self._model

    def embed_text(self, text: str) -> list[float]:
        """Generate embedding vector using sentence transformers."""
        cleaned = preprocess_text(text)
        if not cleaned:
            raise EmptyInput("Cannot generate embedding for empty text")
        embedding = self.model.encode(cleaned, convert_to_tensor=False, normalize_embeddings=True)
        return embedding.tolist()

    def get_dimension(self) -> int:
        """Get the dimension of the embedding vectors."""
        if self._dimension is None:
            self._dimension = self.model.get_sentence_embedding_dimension()
        return self._dimension
