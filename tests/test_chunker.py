"""Tests for token-bounded text chunking."""

import string

import pytest

from cortex.core.token_counter import estimate_tokens
from cortex.models.rag import ChunkingStrategy
from cortex.rag.chunking.text_chunker import TextChunker


def paragraph(word: str, words: int = 12) -> str:
    return " ".join([word] * words) + "."


class TestTextChunker:
    def test_empty_text(self):
        assert TextChunker().chunk("") == []
        assert TextChunker().chunk("   \n\n  ") == []

    def test_short_text_is_one_chunk(self):
        chunks = TextChunker().chunk("A short note.")

        assert len(chunks) == 1
        assert chunks[0].text == "A short note."
        assert chunks[0].token_count == estimate_tokens("A short note.")

    def test_paragraphs_are_packed_up_to_budget(self):
        strategy = ChunkingStrategy(max_tokens=30, overlap_tokens=0)
        text = "\n\n".join(paragraph(w) for w in ["alpha", "bravo", "delta", "gamma"])

        chunks = TextChunker(strategy).chunk(text)

        assert len(chunks) == 4
        assert all(c.token_count <= strategy.max_tokens for c in chunks)
        assert chunks[0].text.startswith("alpha")
        assert chunks[-1].text.startswith("gamma")

    def test_small_paragraphs_share_a_chunk(self):
        strategy = ChunkingStrategy(max_tokens=100, overlap_tokens=0)
        text = "First paragraph.\n\nSecond paragraph."

        chunks = TextChunker(strategy).chunk(text)

        assert [c.text for c in chunks] == ["First paragraph.\n\nSecond paragraph."]

    def test_overlap_tail_is_carried(self):
        strategy = ChunkingStrategy(max_tokens=20, overlap_tokens=5)
        text = "\n\n".join(paragraph(w, 8) for w in ["alpha", "bravo", "delta"])

        chunks = TextChunker(strategy).chunk(text)

        assert len(chunks) == 3
        assert chunks[1].text.startswith("alpha")
        assert "bravo" in chunks[1].text
        assert all(c.token_count <= strategy.max_tokens for c in chunks)

    def test_oversized_paragraph_is_windowed(self):
        strategy = ChunkingStrategy(max_tokens=20, overlap_tokens=2)
        text = "intro line\n\n" + "x" * 400

        chunks = TextChunker(strategy).chunk(text)

        assert chunks[0].text == "intro line"
        assert len(chunks) > 2
        assert all(c.token_count <= strategy.max_tokens for c in chunks)

    def test_long_paragraph_splits_at_sentences(self):
        sentence = "This sentence is about forty characters. "
        text = sentence * 30

        sections = TextChunker().split_sections(text)

        assert len(sections) == 30
        assert sections[0] == sentence.strip()

    def test_sliding_window(self):
        strategy = ChunkingStrategy(
            max_tokens=10, overlap_tokens=2, preserve_structure=False, semantic_boundaries=False
        )
        text = (string.ascii_lowercase * 8)[:200]

        chunks = TextChunker(strategy).chunk(text)

        assert len(chunks) == 6
        assert all(len(c.text) <= 40 for c in chunks)
        # stride of 32 characters leaves 8 shared between neighbours
        assert chunks[0].text[32:] == chunks[1].text[:8]
        assert "".join(c.text[:32] for c in chunks[:-1]) + chunks[-1].text == text

    def test_per_call_strategy_override(self):
        chunker = TextChunker(ChunkingStrategy(max_tokens=500))
        text = "x" * 400

        assert len(chunker.chunk(text)) == 1
        assert len(chunker.chunk(text, ChunkingStrategy(max_tokens=20, overlap_tokens=0))) == 5

    def test_extract_overlap_starts_on_word_boundary(self):
        overlap = TextChunker.extract_overlap("one two three four five six", 4)

        assert overlap == "four five six"

    def test_overlap_must_be_smaller_than_chunk(self):
        with pytest.raises(ValueError):
            ChunkingStrategy(max_tokens=10, overlap_tokens=10)

    def test_overlap_shrinks_to_fit_near_full_sections(self):
        strategy = ChunkingStrategy(max_tokens=500, overlap_tokens=50)
        text = paragraph("tail", 380) + "\n\n" + paragraph("next", 380)

        chunks = TextChunker(strategy).chunk(text)

        assert len(chunks) == 2
        assert chunks[1].text.startswith("tail")
        assert chunks[1].text.endswith("next.")
        assert chunks[1].token_count <= strategy.max_tokens
