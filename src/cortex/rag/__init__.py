"""
Cortex RAG module.

Retrieval (semantic search with fuzzy fallback), chunking and context assembly.
"""

from cortex.rag.retrieval import SemanticSearch, FuzzyMatcher, LexicalRanker, ResultCache
from cortex.rag.chunking import TextChunker
from cortex.rag.context import ContextAssembler

__all__ = [
    "SemanticSearch",
    "FuzzyMatcher",
    "LexicalRanker",
    "ResultCache",
    "TextChunker",
    "ContextAssembler",
]
