"""
Search filters for retrieval results.

One predicate, shared by the semantic path and the fuzzy fallback, so
both paths agree on which notes qualify.
"""

from typing import Any, Optional

from cortex.core.utils.datetime_utils import ensure_utc
from cortex.models.note import NoteRecord
from cortex.models.search import SearchFilters


class FilterEvaluator:
    """
    Applies SearchFilters to notes.

    Checks run in a fixed order and stop at the first failing one:
    tags, exclude_tags, date_from, date_to, content_length, metadata.
    """

    def matches(self, note: NoteRecord, filters: Optional[SearchFilters]) -> bool:
        """
        Whether ``note`` passes every present filter.

        Args:
            note: Candidate note
            filters: Filters, or None for no filtering

        Returns:
            True if the note qualifies
        """
        if filters is None:
            return True

        if filters.tags is not None and filters.tags:
            if not any(tag in note.tags for tag in filters.tags):
                return False

        if filters.exclude_tags is not None:
            if any(tag in note.tags for tag in filters.exclude_tags):
                return False

        created_at = ensure_utc(note.created_at)
        if filters.date_from is not None and created_at < filters.date_from:
            return False
        if filters.date_to is not None and created_at > filters.date_to:
            return False

        if filters.content_length is not None:
            length = len(note.content)
            if filters.content_length.min is not None and length < filters.content_length.min:
                return False
            if filters.content_length.max is not None and length > filters.content_length.max:
                return False

        if filters.metadata is not None:
            for key, expected in filters.metadata.items():
                if not self._metadata_equals(note.metadata, key, expected):
                    return False

        return True

    @staticmethod
    def _metadata_equals(metadata: dict, key: str, expected: Any) -> bool:
        # Missing keys never match, even when the expected value is None
        if key not in metadata:
            return False
        actual = metadata[key]
        # bool is an int subclass: True must not equal 1 here
        if isinstance(actual, bool) != isinstance(expected, bool):
            return False
        return actual == expected
