"""
Lexical and hybrid ranking for search results.

Combines the vector similarity with BM25 (or TF-IDF) keyword relevance,
recency, tag and metadata overlap, minus a small penalty for long content.
Corpus statistics are computed over the candidate set of each call and
never shared between calls.
"""

import math
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Set

from cortex.core.logging import logger
from cortex.core.utils.datetime_utils import days_between, utc_now
from cortex.models.search import HybridRankingConfig, SearchResult, clamp_unit

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
        "is", "are", "was", "were", "be", "been", "being", "have", "has", "had", "do", "does",
        "did", "will", "would", "could", "should", "may", "might", "must", "can", "shall",
        "this", "that", "these", "those", "i", "you", "he", "she", "it", "we", "they",
        "me", "him", "her", "us", "them", "my", "your", "his", "its", "our", "their",
    }
)

_PUNCTUATION = re.compile(r"[^\w\s]")

# Characters of content at which the length penalty saturates
LENGTH_PENALTY_CAP = 10000


@dataclass
class CorpusStats:
    """Term statistics over one candidate set."""

    total_documents: int = 0
    average_document_length: float = 0.0
    document_frequencies: Dict[str, int] = field(default_factory=dict)
    vocabulary: Set[str] = field(default_factory=set)


def tokenize(text: str) -> List[str]:
    """
    Lowercase, strip punctuation, split on whitespace.

    Stop-words and single characters are dropped.
    """
    cleaned = _PUNCTUATION.sub(" ", text.lower())
    return [term for term in cleaned.split() if len(term) > 1 and term not in STOP_WORDS]


def _document_text(result: SearchResult) -> str:
    return f"{result.content} {result.title}"


class LexicalRanker:
    """
    Hybrid scorer for SearchResult lists.

    Pure: rank_results() returns new objects and leaves its input untouched.
    """

    def __init__(
        self,
        config: Optional[HybridRankingConfig] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        """
        Args:
            config: Default weights (overridable per call)
            now: UTC clock used for recency, injectable for tests
        """
        self.config = config or HybridRankingConfig()
        self.now = now or utc_now

    def build_corpus_stats(self, documents: List[SearchResult]) -> CorpusStats:
        """
        Document frequencies and average length over title + content.
        """
        frequencies: Counter = Counter()
        total_length = 0

        for doc in documents:
            terms = tokenize(_document_text(doc))
            total_length += len(terms)
            frequencies.update(set(terms))

        return CorpusStats(
            total_documents=len(documents),
            average_document_length=total_length / len(documents) if documents else 0.0,
            document_frequencies=dict(frequencies),
            vocabulary=set(frequencies),
        )

    def bm25_score(
        self,
        query: str,
        document: SearchResult,
        stats: CorpusStats,
        config: Optional[HybridRankingConfig] = None,
    ) -> float:
        """
        Okapi BM25 of ``query`` against ``document``.

        idf = ln((N - df + 0.5) / (df + 0.5)) can go negative for terms in most
        documents; the sum is clamped at 0.
        """
        params = (config or self.config).bm25
        doc_terms = tokenize(_document_text(document))
        if not doc_terms or stats.average_document_length <= 0:
            return 0.0

        term_frequency = Counter(doc_terms)
        length_ratio = len(doc_terms) / stats.average_document_length
        score = 0.0

        for term in tokenize(query):
            tf = term_frequency.get(term, 0)
            df = stats.document_frequencies.get(term, 0)
            if tf == 0 or df == 0:
                continue

            idf = math.log((stats.total_documents - df + 0.5) / (df + 0.5))
            numerator = tf * (params.k1 + 1)
            denominator = tf + params.k1 * (1 - params.b + params.b * length_ratio)
            score += idf * (numerator / denominator)

        return max(0.0, score)

    def tfidf_score(
        self,
        query: str,
        document: SearchResult,
        stats: CorpusStats,
        config: Optional[HybridRankingConfig] = None,
    ) -> float:
        """
        TF-IDF of ``query`` against ``document``.

        tf is 1 + ln(tf) with sublinear scaling; the total is divided by the
        document's own TF-IDF vector norm when l2_norm is on.
        """
        params = (config or self.config).tfidf
        term_frequency = Counter(tokenize(_document_text(document)))
        if stats.total_documents == 0:
            return 0.0

        def weight(term: str, tf: int) -> float:
            df = stats.document_frequencies.get(term, 0)
            if df == 0:
                return 0.0
            scaled = 1 + math.log(tf) if params.sublinear_scaling else tf
            return scaled * math.log(stats.total_documents / df)

        score = sum(
            weight(term, term_frequency[term])
            for term in tokenize(query)
            if term_frequency.get(term, 0) > 0
        )

        if params.l2_norm and score > 0:
            norm = math.sqrt(sum(weight(t, tf) ** 2 for t, tf in term_frequency.items()))
            score = score / (norm or 1.0)

        return max(0.0, score)

    def keyword_score(
        self,
        query: str,
        document: SearchResult,
        stats: CorpusStats,
        config: HybridRankingConfig,
    ) -> float:
        """Keyword relevance mapped into [0, 1]."""
        if config.keyword_method == "tfidf":
            raw = self.tfidf_score(query, document, stats, config)
            # L2-normalized TF-IDF is a cosine and already lives in [0, 1]
            upper = 1.0 if config.tfidf.l2_norm else config.bm25.normalization_max
        else:
            raw = self.bm25_score(query, document, stats, config)
            upper = config.bm25.normalization_max
        return normalize_score(raw, 0.0, upper)

    def rank_results(
        self,
        results: List[SearchResult],
        query: str,
        config: Optional[HybridRankingConfig] = None,
    ) -> List[SearchResult]:
        """
        Score and re-sort ``results`` by hybrid relevance.

        Args:
            results: Candidates carrying similarity and full content
            query: User query
            config: Per-call weights (None uses the ranker's default)

        Returns:
            New SearchResult objects, relevance_score in [0, 1], best first.
            Ties keep their input order.
        """
        if not results:
            return []

        cfg = config or self.config
        stats = self.build_corpus_stats(results)
        query_terms = tokenize(query)
        now = self.now()

        ranked: List[SearchResult] = []
        for result in results:
            score = 0.0

            if cfg.semantic_weight > 0:
                score += result.similarity * cfg.semantic_weight

            if cfg.keyword_weight > 0:
                score += self.keyword_score(query, result, stats, cfg) * cfg.keyword_weight

            if cfg.recency_weight > 0:
                # Future-dated notes count as brand new
                age_days = max(0.0, days_between(result.created_at, now))
                score += math.exp(-age_days / cfg.recency_decay_days) * cfg.recency_weight

            if cfg.tag_weight > 0 and result.tags and query_terms:
                score += self._tag_overlap(result.tags, query_terms) * cfg.tag_weight

            if cfg.metadata_weight > 0 and result.metadata and query_terms:
                score += self._metadata_overlap(result.metadata, query_terms) * cfg.metadata_weight

            if cfg.length_penalty > 0:
                score -= min(len(result.content) / LENGTH_PENALTY_CAP, 1.0) * cfg.length_penalty

            ranked.append(result.model_copy(update={"relevance_score": clamp_unit(score)}))

        # sorted() is stable, so equal scores keep candidate order
        ranked = sorted(ranked, key=lambda r: r.relevance_score, reverse=True)
        logger.debug(
            "Ranked results",
            count=len(ranked),
            keyword_method=cfg.keyword_method,
            vocabulary=len(stats.vocabulary),
        )
        return ranked

    @staticmethod
    def _tag_overlap(tags: List[str], query_terms: List[str]) -> float:
        hits = 0
        for tag in tags:
            tag_terms = tokenize(tag)
            hits += sum(1 for term in query_terms if term in tag_terms)
        return min(1.0, hits / len(query_terms))

    @staticmethod
    def _metadata_overlap(metadata: Dict[str, object], query_terms: List[str]) -> float:
        hits = 0.0
        for value in metadata.values():
            if isinstance(value, str):
                value_terms = tokenize(value)
                hits += 0.5 * sum(1 for term in query_terms if term in value_terms)
        return min(1.0, hits / len(query_terms))


def normalize_score(score: float, minimum: float, maximum: float) -> float:
    """Linear map of [minimum, maximum] onto [0, 1], clamped."""
    if maximum <= minimum:
        return 0.0
    return max(0.0, min(1.0, (score - minimum) / (maximum - minimum)))
