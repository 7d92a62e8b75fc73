"""
Context assembly for grounded chat answers.

Turns a RAGQuery into a bounded set of note chunks:
search, relevance cut, chunking, deduplication, budgeted selection.
"""

from typing import Any, List, Optional, cast

from cortex.core.exceptions import ConfigurationError, DualRetrievalFailure
from cortex.core.logging import PerformanceLogger, logger
from cortex.models.rag import (
    Citation,
    ContextSource,
    RAGContext,
    RAGQuery,
    RAGRetrievalConfig,
    RAGRetrievalResult,
    RetrievalStats,
)
from cortex.models.search import RetrievalMode, SearchFilters, SearchOptions, SearchResult
from cortex.rag.chunking.text_chunker import TextChunker
from cortex.rag.context.selection import deduplicate_contexts, select_contexts
from cortex.rag.retrieval.semantic_search import SemanticSearch

NO_CONTEXT_PROMPT = "No relevant context found."
PROMPT_HEADER = "Based on the following context from your notes:\n\n"
PROMPT_FOOTER = (
    "Please provide a helpful response based on this context. "
    "Include citations by referencing the note titles when appropriate."
)

# Candidate pool: max_contexts × 3, never fewer than 20 notes
CANDIDATE_MULTIPLIER = 3
MIN_CANDIDATES = 20
# Initial search threshold relative to min_relevance_score
SIMILARITY_RELAXATION = 0.8


class ContextAssembler:
    """
    Builds RAG context from notes.

    Holds a default RAGRetrievalConfig; retrieve_contexts() accepts a
    per-call override.
    """

    def __init__(
        self,
        search: SemanticSearch,
        config: Optional[RAGRetrievalConfig] = None,
        chunker: Optional[TextChunker] = None,
        settings: Optional[Any] = None,
    ):
        """
        Args:
            search: Retrieval orchestrator
            config: Default config (None reads the ``rag`` settings section)
            chunker: Text chunker
            settings: Settings used when ``config`` is None
        """
        if config is None:
            if settings is None:
                from cortex.core.config import Settings

                settings = Settings()
            config = RAGRetrievalConfig.from_settings(settings)

        self.search = search
        self.config = config
        self.chunker = chunker or TextChunker(config.chunking_strategy)
        self.perf = PerformanceLogger()

    async def retrieve_contexts(
        self, query: RAGQuery, config: Optional[RAGRetrievalConfig] = None
    ) -> RAGRetrievalResult:
        """
        Select context chunks for ``query``.

        Args:
            query: Question plus hints and tag/time constraints
            config: Per-call config (None uses the assembler default)

        Returns:
            Selected contexts with stage-by-stage statistics

        Raises:
            DualRetrievalFailure: Neither retrieval path could run
        """
        config = config or self.config
        max_contexts = query.max_results if query.max_results is not None else config.max_contexts

        with self.perf.measure("retrieve_contexts", query_length=len(query.query)):
            expanded = self.expand_query(query)
            options = self.build_search_options(query, config, max_contexts)
            outcome = await self.search.search(expanded, options)
            if outcome.mode == RetrievalMode.FAILED:
                raise DualRetrievalFailure(
                    cast(Exception, outcome.semantic_error), cast(Exception, outcome.fallback_error)
                )

            search_results = outcome.results
            stats = RetrievalStats(
                total_candidates=len(search_results), retrieval_mode=outcome.mode
            )

            relevant = [r for r in search_results if r.relevance_score >= config.min_relevance_score]
            stats.filtered_candidates = len(relevant)

            chunked = self.chunk_results(relevant, config)
            stats.chunks_generated = len(chunked)

            unique = deduplicate_contexts(chunked, config.deduplication_threshold)
            stats.duplicates_removed = len(chunked) - len(unique)

            selected = select_contexts(
                unique, max_contexts, config.max_tokens, config.diversity_weight
            )
            stats.final_contexts = len(selected)

        total_tokens = sum(context.token_count for context in selected)
        logger.info(
            "Contexts retrieved",
            mode=stats.retrieval_mode,
            candidates=stats.total_candidates,
            selected=stats.final_contexts,
            total_tokens=total_tokens,
        )
        return RAGRetrievalResult(
            contexts=selected,
            total_tokens=total_tokens,
            search_results=search_results,
            query=query.query,
            retrieval_stats=stats,
        )

    @staticmethod
    def expand_query(query: RAGQuery) -> str:
        """Query text followed by any context hints."""
        hints = [hint for hint in query.context_hints if hint.strip()]
        if not hints:
            return query.query
        return " ".join([query.query, *hints])

    @staticmethod
    def build_search_options(
        query: RAGQuery, config: RAGRetrievalConfig, max_contexts: int
    ) -> SearchOptions:
        """Enlarged, relaxed search for candidate gathering."""
        filters = SearchFilters(
            tags=list(query.required_tags) or None,
            exclude_tags=list(query.exclude_tags) or None,
            date_from=query.time_range.date_from if query.time_range else None,
            date_to=query.time_range.date_to if query.time_range else None,
        )
        return SearchOptions(
            limit=max(max_contexts * CANDIDATE_MULTIPLIER, MIN_CANDIDATES),
            offset=0,
            min_similarity=config.min_relevance_score * SIMILARITY_RELAXATION,
            include_content=True,
            filters=filters,
        )

    def chunk_results(
        self, results: List[SearchResult], config: RAGRetrievalConfig
    ) -> List[RAGContext]:
        """Chunk each result's content into RAGContext candidates."""
        contexts: List[RAGContext] = []
        for result in results:
            chunks = self.chunker.chunk(result.content, config.chunking_strategy)
            source = ContextSource(
                note_id=result.id,
                title=result.title,
                path=result.path,
                tags=list(result.tags),
                created_at=result.created_at,
                snippet=result.snippet,
            )
            for index, chunk in enumerate(chunks):
                contexts.append(
                    RAGContext(
                        id=f"{result.id}-chunk-{index}",
                        content=chunk.text,
                        source=source,
                        relevance_score=result.relevance_score,
                        token_count=chunk.token_count,
                        chunk_index=index,
                        metadata={
                            **result.metadata,
                            "original_length": len(result.content),
                            "total_chunks": len(chunks),
                        },
                    )
                )
        return contexts

    @staticmethod
    def generate_context_prompt(contexts: List[RAGContext]) -> str:
        """Prompt block listing each context with its source title."""
        if not contexts:
            return NO_CONTEXT_PROMPT

        parts = [PROMPT_HEADER]
        for number, context in enumerate(contexts, start=1):
            parts.append(f'**Context {number}** (from "{context.source.title}"):\n')
            parts.append(f"{context.content}\n\n")
        parts.append(PROMPT_FOOTER)
        return "".join(parts)

    @staticmethod
    def generate_citations(contexts: List[RAGContext]) -> List[Citation]:
        """One citation per context, in context order."""
        return [
            Citation(
                id=context.source.note_id,
                title=context.source.title,
                path=context.source.path,
                snippet=context.source.snippet,
                relevance_score=context.relevance_score,
            )
            for context in contexts
        ]

    def update_config(self, **changes: Any) -> RAGRetrievalConfig:
        """
        Replace fields of the default config.

        Raises:
            ConfigurationError: If the resulting config is invalid
        """
        merged = {**self.config.model_dump(), **changes}
        try:
            self.config = RAGRetrievalConfig.model_validate(merged)
        except ValueError as e:
            raise ConfigurationError(f"Invalid RAG config update: {e}", cause=e) from e
        self.chunker.strategy = self.config.chunking_strategy
        return self.config

    def get_config(self) -> RAGRetrievalConfig:
        return self.config.model_copy(deep=True)
