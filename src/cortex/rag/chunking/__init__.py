"""
Chunking of note content for context assembly.
"""

from cortex.rag.chunking.text_chunker import TextChunker, TextChunk

__all__ = ["TextChunker", "TextChunk"]
