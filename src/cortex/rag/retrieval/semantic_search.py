"""
Semantic search with fuzzy fallback.

Two retrieval paths behind one call:

1. Semantic: embed the query, cosine against every stored vector, filter,
   hybrid-rank, cache the full ranked list, return one page.
2. Fallback: fuzzy matching over note fields when anything in the semantic
   path fails or nothing has been embedded yet.

search() returns a RetrievalOutcome saying which path answered;
search_semantic() unwraps it and raises DualRetrievalFailure when both fail.
"""

import time
from typing import Any, Callable, Dict, List, Optional, Tuple, cast

from cortex.core.exceptions import (
    DimensionMismatchError,
    DualRetrievalFailure,
    EmbeddingUnavailableError,
    StoreUnavailableError,
)
from cortex.core.logging import logger
from cortex.core.tracing import LocalTracer, MetricsCollector
from cortex.embeddings.types import EmbeddingProvider, EmbeddingVector, as_vector, cosine_similarity
from cortex.models.note import NoteRecord
from cortex.models.search import (
    HybridRankingConfig,
    RetrievalMode,
    RetrievalOutcome,
    SearchOptions,
    SearchResult,
    SearchStatus,
)
from cortex.rag.retrieval.cache import ResultCache
from cortex.rag.retrieval.filters import FilterEvaluator
from cortex.rag.retrieval.fuzzy_matcher import FuzzyConfig, FuzzyMatcher
from cortex.rag.retrieval.ranking import LexicalRanker
from cortex.rag.retrieval.snippets import truncate_snippet
from cortex.store.base import NoteStore


class SemanticSearch:
    """
    Retrieval orchestrator.

    Owns the result cache and the fallback matcher. Ranking weights can be
    overridden per call through SearchOptions.ranking_weights.
    """

    def __init__(
        self,
        store: NoteStore,
        embedder: EmbeddingProvider,
        ranker: Optional[LexicalRanker] = None,
        fallback: Optional[FuzzyMatcher] = None,
        cache: Optional[ResultCache] = None,
        settings: Optional[Any] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            store: Note store
            embedder: Query embedding provider
            ranker: Hybrid ranker (default from ``ranking`` settings)
            fallback: Fuzzy matcher (default from ``fallback`` settings)
            cache: Result cache (default from ``cache`` settings)
            settings: Settings used to build missing collaborators
            clock: Monotonic seconds source shared by cache and fallback index
        """
        if settings is None and (ranker is None or fallback is None or cache is None):
            from cortex.core.config import Settings

            settings = Settings()

        clock = clock or time.monotonic
        self.store = store
        self.embedder = embedder
        self.ranker = ranker or LexicalRanker(HybridRankingConfig.from_settings(settings))
        self.snippet_length = int(settings.get("search.snippet_length", 150)) if settings else 150
        self.default_options = SearchOptions.from_settings(settings) if settings else SearchOptions()
        self.fallback = fallback or FuzzyMatcher(
            store, FuzzyConfig.from_settings(settings), clock=clock, snippet_length=self.snippet_length
        )
        self.cache = cache or ResultCache(
            ttl=settings.get("cache.ttl_seconds", 300),
            max_size=settings.get("cache.max_size", 1000),
            clock=clock,
        )
        self.filters = FilterEvaluator()
        self.metrics = MetricsCollector()
        self.tracer = LocalTracer("retrieval")

    async def search_semantic(
        self, query: str, options: Optional[SearchOptions] = None
    ) -> List[SearchResult]:
        """
        Ranked, paginated results for ``query``.

        Returns:
            One page of results, most relevant first

        Raises:
            DualRetrievalFailure: Both the semantic path and the fallback failed
        """
        outcome = await self.search(query, options)
        if outcome.mode == RetrievalMode.FAILED:
            raise DualRetrievalFailure(
                cast(Exception, outcome.semantic_error), cast(Exception, outcome.fallback_error)
            )
        return outcome.results

    async def search(self, query: str, options: Optional[SearchOptions] = None) -> RetrievalOutcome:
        """
        Run the semantic path, falling back to fuzzy search on failure.

        Never raises: failures are reported in the returned outcome.
        """
        options = options or self.default_options.model_copy()
        self.metrics.increment("retrieval.searches")

        key = self.cache.make_key(query, options)
        cached = self.cache.get(key)
        if cached is not None:
            self.metrics.increment("retrieval.cache_hits")
            return RetrievalOutcome(
                mode=RetrievalMode.SEMANTIC, results=self._paginate(cached, options), from_cache=True
            )

        semantic_error: Optional[Exception] = None
        try:
            with self.tracer.span("semantic_search", {"limit": options.limit, "offset": options.offset}):
                ranked = await self._semantic_ranked(query, options)
        except Exception as e:
            semantic_error = e
            ranked = None

        if ranked is not None:
            self.cache.set(key, ranked, query, options)
            return RetrievalOutcome(mode=RetrievalMode.SEMANTIC, results=self._paginate(ranked, options))

        self.metrics.increment("retrieval.fallback.activations")
        logger.info(
            "Semantic search unavailable, using fallback",
            reason=str(semantic_error) if semantic_error else "no embeddings stored",
            error_type=type(semantic_error).__name__ if semantic_error else None,
        )

        try:
            with self.tracer.span("fallback_search", {"limit": options.limit}):
                results = await self.fallback.search_fallback(query, options)
        except Exception as fallback_error:
            self.metrics.increment("retrieval.dual_failures")
            if semantic_error is None:
                semantic_error = StoreUnavailableError("No embeddings stored")
            logger.error(
                "Both semantic and fallback search failed",
                semantic_error=str(semantic_error),
                fallback_error=str(fallback_error),
            )
            return RetrievalOutcome(
                mode=RetrievalMode.FAILED,
                semantic_error=semantic_error,
                fallback_error=fallback_error,
            )

        return RetrievalOutcome(
            mode=RetrievalMode.FALLBACK, results=results, semantic_error=semantic_error
        )

    async def _semantic_ranked(self, query: str, options: SearchOptions) -> Optional[List[SearchResult]]:
        """
        Full ranked list from the semantic path.

        Returns:
            Ranked results, or None when the store holds no embeddings

        Raises:
            EmbeddingUnavailableError: Query could not be embedded
            StoreUnavailableError: Store could not be read
            DimensionMismatchError: No stored vector matches the query dimension
        """
        try:
            query_vector = as_vector(await self.embedder.embed(query))
        except EmbeddingUnavailableError:
            raise
        except Exception as e:
            raise EmbeddingUnavailableError(f"Query embedding failed: {e}", cause=e) from e

        try:
            embeddings = await self.store.fetch_all_embeddings()
        except StoreUnavailableError:
            raise
        except Exception as e:
            raise StoreUnavailableError(f"Failed to read embeddings: {e}", cause=e) from e

        if not embeddings:
            logger.info("No embeddings found in store")
            return None

        scored = self._score_embeddings(query_vector, embeddings, options.min_similarity)
        results = await self._build_results(scored, options)

        ranked = self.ranker.rank_results(results, query, options.ranking_weights)
        if not options.include_content:
            ranked = [r.model_copy(update={"content": ""}) for r in ranked]

        logger.debug("Semantic search ranked", candidates=len(scored), results=len(ranked))
        return ranked

    def _score_embeddings(
        self, query_vector: Any, embeddings: List[EmbeddingVector], min_similarity: float
    ) -> List[Tuple[str, float]]:
        """
        Best similarity per note, filtered by ``min_similarity``, best first.
        """
        best: Dict[str, float] = {}
        skipped = 0

        for embedding in embeddings:
            try:
                similarity = cosine_similarity(query_vector, embedding.vector)
            except DimensionMismatchError as e:
                skipped += 1
                logger.warning(
                    "Skipping embedding with wrong dimensions",
                    note_id=embedding.note_id,
                    embedding_id=embedding.id,
                    expected=e.left,
                    found=e.right,
                )
                continue

            if similarity >= min_similarity and similarity > best.get(embedding.note_id, float("-inf")):
                best[embedding.note_id] = similarity

        if skipped and skipped == len(embeddings):
            raise DimensionMismatchError(
                len(query_vector), embeddings[0].dimensions, note_id=embeddings[0].note_id
            )

        return sorted(best.items(), key=lambda item: item[1], reverse=True)

    async def _build_results(
        self, scored: List[Tuple[str, float]], options: SearchOptions
    ) -> List[SearchResult]:
        results: List[SearchResult] = []
        for note_id, similarity in scored:
            try:
                note = await self.store.fetch_by_id(note_id)
            except StoreUnavailableError:
                raise
            except Exception as e:
                raise StoreUnavailableError(f"Failed to read note {note_id}: {e}", cause=e) from e

            if note is None:
                logger.warning("Embedding refers to missing note", note_id=note_id)
                continue
            if not self.filters.matches(note, options.filters):
                continue

            results.append(self._to_result(note, similarity))
        return results

    def _to_result(self, note: NoteRecord, similarity: float) -> SearchResult:
        return SearchResult(
            id=note.id,
            title=note.title,
            content=note.content,
            path=note.path,
            similarity=similarity,
            relevance_score=similarity,
            tags=list(note.tags),
            created_at=note.created_at,
            updated_at=note.updated_at,
            metadata=dict(note.metadata),
            snippet=truncate_snippet(note.content, self.snippet_length),
            highlights=[],
        )

    @staticmethod
    def _paginate(results: List[SearchResult], options: SearchOptions) -> List[SearchResult]:
        return list(results[options.offset : options.offset + options.limit])

    async def is_semantic_available(self) -> bool:
        """Probe the embedding provider with a tiny request."""
        try:
            await self.embedder.embed("test")
            return True
        except Exception as e:
            logger.debug("Semantic search unavailable", error=str(e))
            return False

    def is_fallback_available(self) -> bool:
        return self.fallback.is_available()

    async def get_search_status(self) -> SearchStatus:
        """Availability of both paths plus index and cache stats."""
        return SearchStatus(
            semantic_available=await self.is_semantic_available(),
            fallback_available=self.is_fallback_available(),
            fallback_index=self.fallback.get_index_stats(),
            cache=self.get_cache_stats(),
        )

    async def rebuild_fallback_index(self) -> None:
        await self.fallback.rebuild_index()

    def clear_cache(self) -> None:
        self.cache.clear()

    def cleanup_cache(self) -> int:
        """Drop expired cache entries; returns how many were removed."""
        return self.cache.cleanup_expired()

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()
