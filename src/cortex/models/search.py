"""
Search models: filters, options, ranking configuration and results.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, field_validator

from cortex.core.utils.datetime_utils import ensure_utc
from cortex.models.base import CortexBaseModel


def clamp_unit(value: Any) -> float:
    """Clamp a score into [0, 1]; NaN becomes 0."""
    score = float(value)
    if math.isnan(score):
        return 0.0
    return min(1.0, max(0.0, score))


class ContentLengthRange(CortexBaseModel):
    """Inclusive bounds on note content length (characters)."""

    min: Optional[int] = Field(None, ge=0)
    max: Optional[int] = Field(None, ge=0)


class SearchFilters(CortexBaseModel):
    """
    Note filter predicate.

    Every field is None when absent. A present value is always honored,
    including 0 and empty strings. A present empty tag list requires nothing.
    """

    tags: Optional[List[str]] = Field(None, description="Note must carry at least one of these")
    exclude_tags: Optional[List[str]] = Field(None, description="Note must carry none of these")
    date_from: Optional[datetime] = Field(None, description="created_at lower bound (inclusive)")
    date_to: Optional[datetime] = Field(None, description="created_at upper bound (inclusive)")
    content_length: Optional[ContentLengthRange] = None
    metadata: Optional[Dict[str, Any]] = Field(None, description="Frontmatter equality constraints")

    @field_validator("date_from", "date_to")
    @classmethod
    def to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None


class BM25Params(CortexBaseModel):
    """BM25 tuning."""

    k1: float = Field(1.2, gt=0)
    b: float = Field(0.75, ge=0, le=1)
    normalization_max: float = Field(10.0, gt=0, description="Raw score mapped to 1.0")


class TfIdfParams(CortexBaseModel):
    """TF-IDF tuning."""

    sublinear_scaling: bool = True
    l2_norm: bool = True


class HybridRankingConfig(CortexBaseModel):
    """
    Weights for the hybrid relevance score.

    score = semantic·similarity + keyword·lexical + recency·decay
            + tag·tag_overlap + metadata·metadata_overlap − length_penalty·length
    """

    semantic_weight: float = Field(0.4, ge=0)
    keyword_weight: float = Field(0.3, ge=0)
    recency_weight: float = Field(0.15, ge=0)
    tag_weight: float = Field(0.1, ge=0)
    metadata_weight: float = Field(0.03, ge=0)
    length_penalty: float = Field(0.02, ge=0)
    recency_decay_days: float = Field(365, gt=0)
    keyword_method: Literal["bm25", "tfidf"] = "bm25"
    bm25: BM25Params = Field(default_factory=BM25Params)
    tfidf: TfIdfParams = Field(default_factory=TfIdfParams)

    @classmethod
    def from_settings(cls, settings: Any) -> "HybridRankingConfig":
        """Build from the ``ranking`` section of Settings."""
        return cls(**settings.section("ranking"))


class SearchOptions(CortexBaseModel):
    """Options for a single search call."""

    limit: int = Field(10, ge=1, description="Page size")
    offset: int = Field(0, ge=0, description="Results to skip after ranking")
    min_similarity: float = Field(0.3, ge=0, le=1)
    include_content: bool = False
    filters: Optional[SearchFilters] = None
    ranking_weights: Optional[HybridRankingConfig] = None

    @classmethod
    def from_settings(cls, settings: Any) -> "SearchOptions":
        """Defaults for calls that pass no options, from the ``search`` section."""
        search = settings.section("search")
        return cls(
            limit=search.get("limit", 10),
            offset=search.get("offset", 0),
            min_similarity=search.get("min_similarity", 0.3),
        )

    def cache_payload(self) -> Dict[str, Any]:
        """Options that change the ranked list; pagination is excluded."""
        return self.model_dump(mode="json", exclude={"limit", "offset"})


class SearchResult(CortexBaseModel):
    """A ranked note hit."""

    id: str
    title: str = ""
    content: str = ""
    path: str = ""
    similarity: float = Field(0.0, description="Raw match score in [0, 1]")
    relevance_score: float = Field(0.0, description="Final ranked score in [0, 1]")
    tags: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)
    snippet: str = ""
    highlights: List[str] = Field(default_factory=list, description="'field:start-end' markers")

    @field_validator("similarity", "relevance_score", mode="before")
    @classmethod
    def clamp_scores(cls, v: Any) -> float:
        return clamp_unit(v)


class RetrievalMode(str, Enum):
    """Which path produced a result list."""

    SEMANTIC = "semantic"
    FALLBACK = "fallback"
    FAILED = "failed"


@dataclass
class RetrievalOutcome:
    """
    Tagged result of one retrieval call.

    SEMANTIC carries ``from_cache``; FALLBACK carries the semantic error that
    triggered it; FAILED carries both errors and no results.
    """

    mode: RetrievalMode
    results: List[SearchResult] = field(default_factory=list)
    from_cache: bool = False
    semantic_error: Optional[Exception] = None
    fallback_error: Optional[Exception] = None

    @property
    def fallback_reason(self) -> Optional[str]:
        if self.mode == RetrievalMode.SEMANTIC or self.semantic_error is None:
            return None
        return str(self.semantic_error)

    @property
    def ok(self) -> bool:
        return self.mode != RetrievalMode.FAILED


class SearchStatus(CortexBaseModel):
    """Availability report for both retrieval paths."""

    semantic_available: bool
    fallback_available: bool
    fallback_index: Dict[str, Any] = Field(default_factory=dict)
    cache: Dict[str, Any] = Field(default_factory=dict)
