"""
Cortex data models.
"""

from cortex.models.base import CortexBaseModel
from cortex.models.note import NoteRecord
from cortex.models.search import (
    ContentLengthRange,
    SearchFilters,
    BM25Params,
    TfIdfParams,
    HybridRankingConfig,
    SearchOptions,
    SearchResult,
    RetrievalMode,
    RetrievalOutcome,
    SearchStatus,
)
from cortex.models.rag import (
    ChunkingStrategy,
    RAGRetrievalConfig,
    TimeRange,
    RAGQuery,
    ContextSource,
    RAGContext,
    RetrievalStats,
    RAGRetrievalResult,
    Citation,
)

__all__ = [
    "CortexBaseModel",
    "NoteRecord",
    "ContentLengthRange",
    "SearchFilters",
    "BM25Params",
    "TfIdfParams",
    "HybridRankingConfig",
    "SearchOptions",
    "SearchResult",
    "RetrievalMode",
    "RetrievalOutcome",
    "SearchStatus",
    "ChunkingStrategy",
    "RAGRetrievalConfig",
    "TimeRange",
    "RAGQuery",
    "ContextSource",
    "RAGContext",
    "RetrievalStats",
    "RAGRetrievalResult",
    "Citation",
]
