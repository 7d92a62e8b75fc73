"""
Text chunking for RAG context.

Splits note content into chunks that fit a token budget. Token counts use
the chars/4 estimate from cortex.core.token_counter.
"""

import re
from dataclasses import dataclass
from typing import List, Optional

from cortex.core.logging import logger
from cortex.core.token_counter import estimate_tokens, tokens_to_chars
from cortex.models.rag import ChunkingStrategy

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")

# Paragraphs longer than this are split at sentence boundaries
LONG_PARAGRAPH_CHARS = 1000

SECTION_SEPARATOR = "\n\n"


@dataclass
class TextChunk:
    """A piece of text with its estimated token count."""

    text: str
    token_count: int


class TextChunker:
    """
    Token-bounded chunker.

    Structured mode (preserve_structure and semantic_boundaries):
    paragraphs, then sentences for long paragraphs, accumulated up to
    max_tokens with an overlap tail carried between chunks.

    Otherwise: fixed-stride sliding window over raw characters.
    """

    def __init__(self, strategy: Optional[ChunkingStrategy] = None):
        self.strategy = strategy or ChunkingStrategy()

    def chunk(self, text: str, strategy: Optional[ChunkingStrategy] = None) -> List[TextChunk]:
        """
        Split ``text`` into chunks.

        Args:
            text: Note content
            strategy: Per-call override of the chunker's strategy

        Returns:
            Chunks in document order. Empty or whitespace-only text gives [].
            Text that yields no chunk comes back whole as a single chunk.
        """
        strategy = strategy or self.strategy
        if not text.strip():
            return []

        if strategy.preserve_structure and strategy.semantic_boundaries:
            chunks = self._chunk_structured(text, strategy)
        else:
            chunks = self._sliding_window(text, strategy)

        if not chunks:
            return [TextChunk(text=text, token_count=estimate_tokens(text))]

        logger.debug(
            "Chunked text",
            chars=len(text),
            chunks=len(chunks),
            max_tokens=strategy.max_tokens,
            structured=strategy.preserve_structure and strategy.semantic_boundaries,
        )
        return chunks

    def split_sections(self, text: str) -> List[str]:
        """
        Paragraphs on blank lines; paragraphs over 1000 chars split at . ! ?
        """
        sections: List[str] = []
        for paragraph in _PARAGRAPH_BREAK.split(text):
            paragraph = paragraph.strip()
            if not paragraph:
                continue
            if len(paragraph) > LONG_PARAGRAPH_CHARS:
                sections.extend(s.strip() for s in _SENTENCE_BREAK.split(paragraph) if s.strip())
            else:
                sections.append(paragraph)
        return sections

    def _chunk_structured(self, text: str, strategy: ChunkingStrategy) -> List[TextChunk]:
        max_tokens = strategy.max_tokens
        chunks: List[TextChunk] = []
        current = ""

        def flush() -> None:
            body = current.strip()
            if body:
                chunks.append(TextChunk(text=body, token_count=estimate_tokens(body)))

        for section in self.split_sections(text):
            if estimate_tokens(section) > max_tokens:
                # A single oversized section: close what we have, then window it
                flush()
                current = ""
                chunks.extend(self._sliding_window(section, strategy))
                continue

            candidate = f"{current}{SECTION_SEPARATOR}{section}" if current else section
            if estimate_tokens(candidate) <= max_tokens:
                current = candidate
                continue

            flush()
            current = section
            # Tail shrinks to whatever budget the section leaves
            overlap_budget = min(strategy.overlap_tokens, max_tokens - estimate_tokens(section) - 1)
            if overlap_budget > 0:
                overlap = self.extract_overlap(chunks[-1].text, overlap_budget)
                with_overlap = f"{overlap} {section}" if overlap else section
                if estimate_tokens(with_overlap) <= max_tokens:
                    current = with_overlap

        flush()
        return chunks

    def _sliding_window(self, text: str, strategy: ChunkingStrategy) -> List[TextChunk]:
        window = tokens_to_chars(strategy.max_tokens)
        stride = tokens_to_chars(strategy.max_tokens - strategy.overlap_tokens)

        chunks: List[TextChunk] = []
        for start in range(0, len(text), stride):
            piece = text[start : start + window]
            if piece.strip():
                chunks.append(TextChunk(text=piece, token_count=estimate_tokens(piece)))
            if start + window >= len(text):
                break
        return chunks

    @staticmethod
    def extract_overlap(text: str, overlap_tokens: int) -> str:
        """
        Tail of ``text`` about ``overlap_tokens`` long, starting on a word boundary.

        The first word of the raw tail is dropped since it is probably cut.
        """
        tail = text[-tokens_to_chars(overlap_tokens) :]
        words = tail.split(" ")
        if len(words) > 1 and len(tail) < len(text):
            words = words[1:]
        return " ".join(words).strip()
