"""
Cortex - hybrid retrieval and context assembly for personal notes.

Semantic search over note embeddings with a fuzzy fallback, hybrid ranking,
and token-bounded context selection for grounded chat answers.
"""

from cortex._version import __version__, __version_info__

__author__ = "Bextia"
__license__ = "BSL"

# Core components
from cortex.core import (
    logger,
    Settings,
    generate_id,
    CortexError,
    ValidationError,
    ConfigurationError,
    ExternalServiceError,
    DualRetrievalFailure,
)

# Models
from cortex.models import (
    NoteRecord,
    SearchFilters,
    SearchOptions,
    SearchResult,
    HybridRankingConfig,
    RetrievalMode,
    RetrievalOutcome,
    RAGQuery,
    RAGContext,
    RAGRetrievalConfig,
    RAGRetrievalResult,
    Citation,
)

# Stores and embeddings
from cortex.store import NoteStore, InMemoryNoteStore, SQLiteNoteStore
from cortex.embeddings import EmbeddingVector, EmbeddingProvider, OllamaEmbeddingProvider

# Retrieval and context
from cortex.rag import SemanticSearch, FuzzyMatcher, LexicalRanker, TextChunker, ContextAssembler

__all__ = [
    "__version__",
    "__version_info__",
    "__author__",
    "__license__",
    "logger",
    "Settings",
    "generate_id",
    "CortexError",
    "ValidationError",
    "ConfigurationError",
    "ExternalServiceError",
    "DualRetrievalFailure",
    "NoteRecord",
    "SearchFilters",
    "SearchOptions",
    "SearchResult",
    "HybridRankingConfig",
    "RetrievalMode",
    "RetrievalOutcome",
    "RAGQuery",
    "RAGContext",
    "RAGRetrievalConfig",
    "RAGRetrievalResult",
    "Citation",
    "NoteStore",
    "InMemoryNoteStore",
    "SQLiteNoteStore",
    "EmbeddingVector",
    "EmbeddingProvider",
    "OllamaEmbeddingProvider",
    "SemanticSearch",
    "FuzzyMatcher",
    "LexicalRanker",
    "TextChunker",
    "ContextAssembler",
]
