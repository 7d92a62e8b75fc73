"""Tests for note and search models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from cortex.models.note import NoteRecord
from cortex.models.search import SearchOptions, SearchResult, clamp_unit

from conftest import NOW


class TestNoteRecord:
    def test_from_row_parses_json_columns(self):
        note = NoteRecord.from_row(
            {
                "id": 7,
                "title": "T",
                "content": None,
                "path": "a.md",
                "tags_json": '["a", "b", "a", 3]',
                "frontmatter_json": '{"status": "done"}',
                "created_at": "2024-01-01 10:00:00",
                "updated_at": "2024-01-02T10:00:00Z",
            }
        )

        assert note.id == "7"
        assert note.content == ""
        assert note.tags == ["a", "b"]
        assert note.metadata == {"status": "done"}
        assert note.created_at == datetime(2024, 1, 1, 10, tzinfo=timezone.utc)
        assert note.updated_at.tzinfo is not None

    @pytest.mark.parametrize("raw", ["not json", "{", '{"a": 1}', "42"])
    def test_malformed_tags_become_empty(self, raw):
        note = NoteRecord.from_row({"id": "n", "tags_json": raw, "created_at": NOW, "updated_at": NOW})

        assert note.tags == []

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", "null"])
    def test_malformed_metadata_becomes_empty(self, raw):
        note = NoteRecord.from_row({"id": "n", "frontmatter_json": raw})

        assert note.metadata == {}

    def test_epoch_timestamps(self):
        note = NoteRecord(id="n", created_at=1704067200, updated_at=1704067200000)

        assert note.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert note.updated_at == note.created_at

    def test_id_required(self):
        with pytest.raises(ValidationError):
            NoteRecord(id="")


class TestSearchModels:
    @pytest.mark.parametrize("value, expected", [(1.7, 1.0), (-0.2, 0.0), (float("nan"), 0.0), (0.4, 0.4)])
    def test_clamp_unit(self, value, expected):
        assert clamp_unit(value) == expected

    def test_result_scores_are_clamped(self):
        result = SearchResult(id="r", similarity=1.2, relevance_score=-3, created_at=NOW, updated_at=NOW)

        assert result.similarity == 1.0
        assert result.relevance_score == 0.0

    def test_options_validation(self):
        with pytest.raises(ValidationError):
            SearchOptions(limit=0)
        with pytest.raises(ValidationError):
            SearchOptions(offset=-1)
        with pytest.raises(ValidationError):
            SearchOptions(min_similarity=1.5)

    def test_cache_payload_excludes_pagination(self):
        payload = SearchOptions(limit=3, offset=9).cache_payload()

        assert "limit" not in payload and "offset" not in payload
        assert payload["min_similarity"] == 0.3
