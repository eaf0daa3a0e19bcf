"""
Vector layer: math primitives, embedding providers and the embedding store.
"""

from .similarity import cosine_similarity, dot_product, magnitude, clamp_score
from .embeddings import IEmbeddingProvider, DeterministicHashEmbedding, SentenceTransformerEmbedding, preprocess_text
from .store import EmbeddingStore, get_embedding_store

__all__ = [
    'cosine_similarity',
    'dot_product',
    'magnitude',
    'clamp_score',
    'IEmbeddingProvider',
    'DeterministicHashEmbedding',
    'SentenceTransformerEmbedding',
    'preprocess_text',
    'EmbeddingStore',
    'get_embedding_store'
]
