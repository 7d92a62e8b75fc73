"""
Embeddings for Cortex: the vector type, cosine similarity and providers.
"""

from cortex.embeddings.types import (
    EmbeddingVector,
    EmbeddingProvider,
    cosine_similarity,
    as_vector,
)
from cortex.embeddings.ollama import OllamaEmbeddingProvider

__all__ = [
    "EmbeddingVector",
    "EmbeddingProvider",
    "cosine_similarity",
    "as_vector",
    "OllamaEmbeddingProvider",
]
