"""Tests for lexical and hybrid ranking."""

import math
from datetime import timedelta

import pytest

from cortex.models.search import BM25Params, HybridRankingConfig, SearchResult, TfIdfParams
from cortex.rag.retrieval.ranking import LexicalRanker, normalize_score, tokenize

from conftest import NOW


def result(id, content="", title="", similarity=0.5, days_old=0, tags=None, metadata=None):
    created = NOW - timedelta(days=days_old)
    return SearchResult(
        id=id,
        title=title,
        content=content,
        similarity=similarity,
        relevance_score=similarity,
        tags=tags or [],
        metadata=metadata or {},
        created_at=created,
        updated_at=created,
    )


def only(**weights):
    """Config with every weight zeroed except the given ones."""
    base = dict(
        semantic_weight=0.0,
        keyword_weight=0.0,
        recency_weight=0.0,
        tag_weight=0.0,
        metadata_weight=0.0,
        length_penalty=0.0,
    )
    base.update(weights)
    return HybridRankingConfig(**base)


class TestTokenize:
    def test_drops_stop_words_punctuation_and_single_chars(self):
        assert tokenize("The Python, and a C compiler!") == ["python", "compiler"]

    def test_empty(self):
        assert tokenize("") == []


class TestBM25:
    def test_rare_term_scores_higher_than_absent(self, ranker):
        docs = [
            result("a", "python decorators explained"),
            result("b", "gardening in spring"),
            result("c", "cooking pasta at home"),
        ]
        stats = ranker.build_corpus_stats(docs)

        assert ranker.bm25_score("python", docs[0], stats) > 0
        assert ranker.bm25_score("python", docs[1], stats) == 0.0

    def test_common_term_never_goes_negative(self, ranker):
        docs = [result(str(i), "python notes") for i in range(3)]
        stats = ranker.build_corpus_stats(docs)

        assert ranker.bm25_score("python", docs[0], stats) == 0.0

    def test_corpus_stats(self, ranker):
        docs = [result("a", "python code", title="Python"), result("b", "garden")]
        stats = ranker.build_corpus_stats(docs)

        assert stats.total_documents == 2
        assert stats.document_frequencies["python"] == 1
        assert stats.average_document_length == pytest.approx(2.0)


class TestTfIdf:
    def test_l2_normalized_score_is_bounded(self, ranker):
        config = HybridRankingConfig(keyword_method="tfidf", tfidf=TfIdfParams(l2_norm=True))
        docs = [result("a", "python python python"), result("b", "garden")]
        stats = ranker.build_corpus_stats(docs)

        score = ranker.tfidf_score("python", docs[0], stats, config)
        assert 0 < score <= 1.0
        assert ranker.tfidf_score("python", docs[1], stats, config) == 0.0


class TestRankResults:
    def test_empty_input(self, ranker):
        assert ranker.rank_results([], "query") == []

    def test_scores_always_in_unit_interval(self, ranker):
        docs = [
            result("a", "python " * 500, similarity=1.0, tags=["python"], metadata={"lang": "python"}),
            result("b", "", similarity=0.0, days_old=5000),
            result("c", "future note", similarity=1.0, days_old=-30),
        ]
        config = HybridRankingConfig(
            semantic_weight=5, keyword_weight=5, recency_weight=5, tag_weight=5, length_penalty=0
        )

        for ranked in (ranker.rank_results(docs, "python", config), ranker.rank_results(docs, "zzz")):
            assert all(0.0 <= r.relevance_score <= 1.0 for r in ranked)

    def test_input_is_not_mutated(self, ranker):
        docs = [result("a", "python", similarity=0.9)]
        ranker.rank_results(docs, "python")

        assert docs[0].relevance_score == 0.9

    def test_semantic_only_preserves_similarity_order(self, ranker):
        docs = [result("low", similarity=0.2), result("high", similarity=0.8)]

        ranked = ranker.rank_results(docs, "query", only(semantic_weight=1.0))

        assert [r.id for r in ranked] == ["high", "low"]
        assert ranked[0].relevance_score == pytest.approx(0.8)

    def test_ties_keep_input_order(self, ranker):
        docs = [result(str(i), similarity=0.5) for i in range(5)]

        ranked = ranker.rank_results(docs, "query", only(semantic_weight=1.0))

        assert [r.id for r in ranked] == ["0", "1", "2", "3", "4"]

    def test_recency_decay(self, ranker):
        docs = [result("old", days_old=365), result("new", days_old=0)]

        ranked = ranker.rank_results(docs, "query", only(recency_weight=1.0))

        assert ranked[0].id == "new"
        assert ranked[0].relevance_score == pytest.approx(1.0)
        assert ranked[1].relevance_score == pytest.approx(math.exp(-1))

    def test_future_dates_count_as_new(self, ranker):
        ranked = ranker.rank_results([result("f", days_old=-10)], "q", only(recency_weight=1.0))
        assert ranked[0].relevance_score == pytest.approx(1.0)

    def test_tag_overlap_is_capped(self, ranker):
        docs = [result("a", tags=["python", "python tips", "python code"])]

        ranked = ranker.rank_results(docs, "python", only(tag_weight=0.5))

        assert ranked[0].relevance_score == pytest.approx(0.5)

    def test_metadata_overlap(self, ranker):
        docs = [result("a", metadata={"language": "python"}), result("b", metadata={"language": "go"})]

        ranked = ranker.rank_results(docs, "python", only(metadata_weight=1.0))

        assert ranked[0].id == "a"
        assert ranked[0].relevance_score == pytest.approx(0.5)
        assert ranked[1].relevance_score == 0.0

    def test_length_penalty(self, ranker):
        docs = [result("long", "word " * 4000, similarity=0.5), result("short", "word", similarity=0.5)]

        ranked = ranker.rank_results(docs, "q", only(semantic_weight=1.0, length_penalty=0.1))

        assert [r.id for r in ranked] == ["short", "long"]
        assert ranked[1].relevance_score == pytest.approx(0.4)

    def test_keyword_weight_boosts_matching_document(self, ranker):
        docs = [
            result("other", "notes about cooking", similarity=0.5),
            result("match", "notes about python", similarity=0.5),
            result("third", "notes about travel", similarity=0.5),
        ]

        ranked = ranker.rank_results(
            docs, "python", only(semantic_weight=0.5, keyword_weight=0.5, bm25=BM25Params(normalization_max=1.0))
        )

        assert ranked[0].id == "match"


class TestNormalizeScore:
    def test_clamps(self):
        assert normalize_score(15, 0, 10) == 1.0
        assert normalize_score(-1, 0, 10) == 0.0
        assert normalize_score(5, 0, 10) == 0.5

    def test_degenerate_range(self):
        assert normalize_score(5, 1, 1) == 0.0
