"""Tests for the retrieval orchestrator: semantic path, fallback and caching."""

import pytest
import yaml

from cortex.core.config import Settings
from cortex.core.exceptions import (
    DimensionMismatchError,
    DualRetrievalFailure,
    EmbeddingUnavailableError,
    FallbackSearchError,
)
from cortex.embeddings.types import EmbeddingVector
from cortex.models.search import RetrievalMode, SearchFilters, SearchOptions
from cortex.rag.retrieval.semantic_search import SemanticSearch
from cortex.store.memory import InMemoryNoteStore

from conftest import NOW, BrokenStore, FailingEmbedder, KeywordEmbedder


class TestSemanticPath:
    @pytest.mark.asyncio
    async def test_ranks_by_relevance(self, search):
        outcome = await search.search("python programming")

        assert outcome.mode == RetrievalMode.SEMANTIC
        assert outcome.from_cache is False
        assert [r.id for r in outcome.results] == ["note-1", "note-2"]
        assert outcome.results[0].similarity == pytest.approx(1.0)
        assert outcome.results[1].similarity == pytest.approx(0.5)
        assert all(0.0 <= r.relevance_score <= 1.0 for r in outcome.results)

    @pytest.mark.asyncio
    async def test_min_similarity_cuts_candidates(self, search):
        results = await search.search_semantic("python programming", SearchOptions(min_similarity=0.9))

        assert [r.id for r in results] == ["note-1"]

    @pytest.mark.asyncio
    async def test_pagination_returns_disjoint_pages(self, search):
        first = await search.search_semantic("python programming", SearchOptions(limit=1, offset=0))
        second = await search.search_semantic("python programming", SearchOptions(limit=1, offset=1))

        assert len(first) == 1 and len(second) == 1
        assert first[0].id != second[0].id

    @pytest.mark.asyncio
    async def test_content_is_stripped_unless_requested(self, search):
        without = await search.search_semantic("python programming")
        with_content = await search.search_semantic(
            "python programming", SearchOptions(include_content=True)
        )

        assert all(r.content == "" for r in without)
        assert with_content[0].content.startswith("Python is")
        assert without[0].snippet.startswith("Python is")

    @pytest.mark.asyncio
    async def test_filters_apply_before_ranking(self, search):
        results = await search.search_semantic(
            "python programming",
            SearchOptions(min_similarity=0.0, filters=SearchFilters(tags=["javascript"])),
        )

        assert [r.id for r in results] == ["note-2"]

    @pytest.mark.asyncio
    async def test_keeps_best_vector_per_note(self, store, embedder, ranker, settings):
        store.add_embedding(EmbeddingVector(note_id="note-2", vector=[1.0, 0.0, 0.0, 1.0]))
        search = SemanticSearch(store, embedder, ranker=ranker, settings=settings)

        results = await search.search_semantic("python programming")

        assert [r.id for r in results].count("note-2") == 1
        assert next(r for r in results if r.id == "note-2").similarity == pytest.approx(1.0)


class TestCaching:
    @pytest.mark.asyncio
    async def test_identical_calls_embed_once(self, search, embedder):
        await search.search_semantic("python programming")
        outcome = await search.search("python programming")

        assert len(embedder.calls) == 1
        assert outcome.from_cache is True
        assert [r.id for r in outcome.results] == ["note-1", "note-2"]

    @pytest.mark.asyncio
    async def test_pages_share_one_cache_entry(self, search, embedder):
        await search.search_semantic("python programming", SearchOptions(limit=1, offset=0))
        page = await search.search_semantic("python programming", SearchOptions(limit=1, offset=1))

        assert len(embedder.calls) == 1
        assert [r.id for r in page] == ["note-2"]

    @pytest.mark.asyncio
    async def test_cache_expires(self, search, embedder, clock):
        await search.search_semantic("python programming")
        clock.advance(301)
        await search.search_semantic("python programming")

        assert len(embedder.calls) == 2

    @pytest.mark.asyncio
    async def test_clear_and_cleanup(self, search, embedder, clock):
        await search.search_semantic("python programming")
        search.clear_cache()
        await search.search_semantic("python programming")
        assert len(embedder.calls) == 2

        clock.advance(301)
        assert search.cleanup_cache() == 1
        assert search.get_cache_stats()["size"] == 0

    @pytest.mark.asyncio
    async def test_fallback_results_are_not_cached(self, store, ranker, settings):
        embedder = FailingEmbedder()
        search = SemanticSearch(store, embedder, ranker=ranker, settings=settings)

        await search.search("programming")
        await search.search("programming")

        assert embedder.calls == 2


class TestFallback:
    @pytest.mark.asyncio
    async def test_failing_embedder_still_returns_results(self, store, ranker, settings):
        search = SemanticSearch(store, FailingEmbedder(), ranker=ranker, settings=settings)

        outcome = await search.search("programming")

        assert outcome.mode == RetrievalMode.FALLBACK
        assert isinstance(outcome.semantic_error, EmbeddingUnavailableError)
        assert outcome.fallback_reason == "Embedding service unreachable"
        assert outcome.results
        assert "note-3" not in [r.id for r in outcome.results]

    @pytest.mark.asyncio
    async def test_empty_store_returns_empty_list(self, ranker, settings):
        search = SemanticSearch(InMemoryNoteStore(), FailingEmbedder(), ranker=ranker, settings=settings)

        assert await search.search_semantic("anything") == []

    @pytest.mark.asyncio
    async def test_no_embeddings_uses_fallback(self, sample_notes, embedder, ranker, settings):
        search = SemanticSearch(InMemoryNoteStore(sample_notes), embedder, ranker=ranker, settings=settings)

        outcome = await search.search("programming")

        assert outcome.mode == RetrievalMode.FALLBACK
        assert outcome.semantic_error is None
        assert outcome.results

    @pytest.mark.asyncio
    async def test_dual_failure(self, ranker, settings):
        search = SemanticSearch(BrokenStore(), FailingEmbedder(), ranker=ranker, settings=settings)

        outcome = await search.search("programming")
        assert outcome.mode == RetrievalMode.FAILED
        assert outcome.ok is False

        with pytest.raises(DualRetrievalFailure) as exc_info:
            await search.search_semantic("programming")

        error = exc_info.value
        assert isinstance(error.semantic_error, EmbeddingUnavailableError)
        assert isinstance(error.fallback_error, FallbackSearchError)
        assert error.context["semantic_error"]["type"] == "EmbeddingUnavailableError"
        assert "Semantic error: Embedding service unreachable" in error.message

    @pytest.mark.asyncio
    async def test_store_failure_on_semantic_path_falls_back(self, sample_notes, embedder, ranker, settings):
        class EmbeddingsDown(InMemoryNoteStore):
            async def fetch_all_embeddings(self):
                raise RuntimeError("embeddings table locked")

        search = SemanticSearch(EmbeddingsDown(sample_notes), embedder, ranker=ranker, settings=settings)

        outcome = await search.search("programming")

        assert outcome.mode == RetrievalMode.FALLBACK
        assert outcome.results


class TestPerItemFailures:
    @pytest.mark.asyncio
    async def test_wrong_dimension_vector_is_skipped(self, store, embedder, ranker, settings):
        store.add_embedding(EmbeddingVector(note_id="note-3", vector=[1.0, 2.0]))
        search = SemanticSearch(store, embedder, ranker=ranker, settings=settings)

        outcome = await search.search("python programming")

        assert outcome.mode == RetrievalMode.SEMANTIC
        assert [r.id for r in outcome.results] == ["note-1", "note-2"]

    @pytest.mark.asyncio
    async def test_all_vectors_mismatched_falls_back(self, sample_notes, embedder, ranker, settings):
        store = InMemoryNoteStore(
            sample_notes, [EmbeddingVector(note_id="note-1", vector=[1.0, 2.0, 3.0])]
        )
        search = SemanticSearch(store, embedder, ranker=ranker, settings=settings)

        outcome = await search.search("programming")

        assert outcome.mode == RetrievalMode.FALLBACK
        assert isinstance(outcome.semantic_error, DimensionMismatchError)

    @pytest.mark.asyncio
    async def test_embedding_for_missing_note_is_skipped(self, store, embedder, ranker, settings):
        store.add_embedding(EmbeddingVector(note_id="ghost", vector=[1.0, 0.0, 0.0, 1.0]))
        search = SemanticSearch(store, embedder, ranker=ranker, settings=settings)

        results = await search.search_semantic("python programming")

        assert "ghost" not in [r.id for r in results]
        assert results[0].id == "note-1"


class TestStatus:
    @pytest.mark.asyncio
    async def test_status_reports_both_paths(self, search):
        status = await search.get_search_status()

        assert status.semantic_available is True
        assert status.fallback_available is False
        assert status.fallback_index["is_ready"] is False

        await search.rebuild_fallback_index()
        assert search.is_fallback_available() is True

    @pytest.mark.asyncio
    async def test_semantic_unavailable(self, store, settings):
        search = SemanticSearch(store, FailingEmbedder(), settings=settings)

        assert await search.is_semantic_available() is False

    @pytest.mark.asyncio
    async def test_default_collaborators_from_settings(self, store):
        search = SemanticSearch(store, KeywordEmbedder())

        assert search.cache.ttl == 300
        assert search.fallback.config.threshold == 0.4
        assert search.snippet_length == 150


class TestSearchSettings:
    @pytest.mark.asyncio
    async def test_config_file_sets_default_options(self, tmp_path, store, embedder, ranker):
        (tmp_path / ".cortex").write_text(
            yaml.safe_dump({"search": {"min_similarity": 0.9, "limit": 1}}), encoding="utf-8"
        )
        search = SemanticSearch(store, embedder, ranker=ranker, settings=Settings())

        results = await search.search_semantic("python programming")

        assert [r.id for r in results] == ["note-1"]
        assert search.default_options.limit == 1
        assert search.default_options.min_similarity == 0.9

    @pytest.mark.asyncio
    async def test_config_limit_pages_results(self, store, embedder, ranker):
        settings = Settings(overrides={"search": {"limit": 1, "offset": 1}})
        search = SemanticSearch(store, embedder, ranker=ranker, settings=settings)

        results = await search.search_semantic("python programming")

        assert [r.id for r in results] == ["note-2"]

    @pytest.mark.asyncio
    async def test_explicit_options_win_over_config(self, store, embedder, ranker):
        settings = Settings(overrides={"search": {"limit": 1}})
        search = SemanticSearch(store, embedder, ranker=ranker, settings=settings)

        results = await search.search_semantic("python programming", SearchOptions(limit=5))

        assert [r.id for r in results] == ["note-1", "note-2"]
