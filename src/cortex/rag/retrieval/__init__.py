"""
Retrieval: semantic search, hybrid ranking, fuzzy fallback and caching.
"""

from cortex.rag.retrieval.cache import ResultCache, CacheEntry
from cortex.rag.retrieval.filters import FilterEvaluator
from cortex.rag.retrieval.fuzzy_matcher import FuzzyMatcher, FuzzyConfig, FuzzyIndex
from cortex.rag.retrieval.ranking import LexicalRanker, CorpusStats, tokenize
from cortex.rag.retrieval.semantic_search import SemanticSearch
from cortex.rag.retrieval.snippets import truncate_snippet, query_snippet

__all__ = [
    "ResultCache",
    "CacheEntry",
    "FilterEvaluator",
    "FuzzyMatcher",
    "FuzzyConfig",
    "FuzzyIndex",
    "LexicalRanker",
    "CorpusStats",
    "tokenize",
    "SemanticSearch",
    "truncate_snippet",
    "query_snippet",
]
