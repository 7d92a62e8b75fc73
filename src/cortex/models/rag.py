"""
RAG context models.
Defines how retrieved notes become bounded context for the chat layer.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Self

from pydantic import Field, model_validator

from cortex.models.base import CortexBaseModel
from cortex.models.search import RetrievalMode, SearchResult


class ChunkingStrategy(CortexBaseModel):
    """How note content is split before selection."""

    max_tokens: int = Field(500, gt=0, description="Upper bound per chunk")
    overlap_tokens: int = Field(50, ge=0, description="Tail carried into the next chunk")
    preserve_structure: bool = Field(True, description="Split on paragraphs first")
    semantic_boundaries: bool = Field(True, description="Split long paragraphs at sentences")

    @model_validator(mode="after")
    def validate_overlap(self) -> Self:
        if self.overlap_tokens >= self.max_tokens:
            raise ValueError(
                f"overlap_tokens ({self.overlap_tokens}) must be smaller than "
                f"max_tokens ({self.max_tokens})"
            )
        return self


class RAGRetrievalConfig(CortexBaseModel):
    """Budgets and thresholds for context assembly."""

    max_contexts: int = Field(8, ge=1)
    max_tokens: int = Field(4000, ge=1, description="Total token budget")
    min_relevance_score: float = Field(0.3, ge=0, le=1)
    diversity_weight: float = Field(0.2, ge=0, le=1)
    deduplication_threshold: float = Field(0.85, ge=0, le=1)
    chunking_strategy: ChunkingStrategy = Field(default_factory=ChunkingStrategy)

    @classmethod
    def from_settings(cls, settings: Any) -> "RAGRetrievalConfig":
        """Build from the ``rag`` section of Settings."""
        rag = settings.section("rag")
        chunking = rag.pop("chunking", {})
        return cls(**rag, chunking_strategy=ChunkingStrategy(**chunking))


class TimeRange(CortexBaseModel):
    """Inclusive created_at window."""

    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


class RAGQuery(CortexBaseModel):
    """A context request from the chat layer."""

    query: str = Field(..., description="User question")
    context_hints: List[str] = Field(default_factory=list, description="Extra terms to search")
    required_tags: List[str] = Field(default_factory=list)
    exclude_tags: List[str] = Field(default_factory=list)
    time_range: Optional[TimeRange] = None
    max_results: Optional[int] = Field(None, ge=1, description="Overrides max_contexts")


class ContextSource(CortexBaseModel):
    """Where a context chunk came from."""

    note_id: str
    title: str = ""
    path: str = ""
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    snippet: str = ""


class RAGContext(CortexBaseModel):
    """One chunk of note content admitted into the context window."""

    id: str = Field(..., description="'<note_id>-chunk-<index>'")
    content: str
    source: ContextSource
    relevance_score: float = Field(..., ge=0, le=1)
    token_count: int = Field(..., ge=0)
    chunk_index: int = Field(..., ge=0)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class RetrievalStats(CortexBaseModel):
    """Counters describing one retrieve_contexts call."""

    total_candidates: int = 0
    filtered_candidates: int = 0
    chunks_generated: int = 0
    duplicates_removed: int = 0
    final_contexts: int = 0
    retrieval_mode: RetrievalMode = RetrievalMode.SEMANTIC


class RAGRetrievalResult(CortexBaseModel):
    """Contexts plus the search results they were cut from."""

    contexts: List[RAGContext] = Field(default_factory=list)
    total_tokens: int = 0
    search_results: List[SearchResult] = Field(default_factory=list)
    query: str
    retrieval_stats: RetrievalStats = Field(default_factory=RetrievalStats)


class Citation(CortexBaseModel):
    """Reference to a source note for an answer."""

    id: str
    title: str
    path: str
    snippet: str
    relevance_score: float
