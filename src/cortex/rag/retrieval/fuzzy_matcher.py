"""
Fuzzy fallback search over note fields.

Used when the embedding path is unavailable. Each query term is matched
against title, content, path and tags with difflib.SequenceMatcher, and a
match costs more the further into the field it sits:

    term distance  = (1 - ratio) + offset / distance     (exact substring: ratio 1)
    field distance = 1 - sum(1 - d for matched terms) / len(terms)
    note distance  = prod(max(field distance, EPS) ** normalized weight)
    similarity     = 1 - note distance

A term matches a field only when its distance is within ``threshold``.
"""

import re
import time
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import Any, Callable, Dict, List, Optional, Tuple

from cortex.core.exceptions import FallbackSearchError
from cortex.core.logging import logger
from cortex.core.tracing import MetricsCollector
from cortex.models.note import NoteRecord
from cortex.models.search import SearchOptions, SearchResult
from cortex.rag.retrieval.filters import FilterEvaluator
from cortex.rag.retrieval.snippets import DEFAULT_SNIPPET_LENGTH, query_snippet
from cortex.store.base import NoteStore

# Floor for a perfect field match so the product never collapses to 0
EPS = 1e-3

_WORD = re.compile(r"\w+")

DEFAULT_KEYS: Dict[str, float] = {"title": 0.4, "content": 0.3, "path": 0.2, "tags": 0.1}


@dataclass
class FuzzyConfig:
    """Matching parameters."""

    threshold: float = 0.4
    distance: int = 100
    min_match_char_length: int = 2
    ignore_location: bool = False
    index_ttl_seconds: float = 60
    keys: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_KEYS))

    @classmethod
    def from_settings(cls, settings: Any) -> "FuzzyConfig":
        return cls(**settings.section("fallback"))


@dataclass
class FieldText:
    """Lowercased field text with word offsets."""

    text: str
    words: List[Tuple[str, int]]

    @classmethod
    def build(cls, raw: str) -> "FieldText":
        lowered = raw.lower()
        return cls(text=lowered, words=[(m.group(), m.start()) for m in _WORD.finditer(lowered)])


@dataclass
class FuzzyIndex:
    """Snapshot of the note collection prepared for matching."""

    notes: List[NoteRecord]
    fields: List[Dict[str, FieldText]]
    built_at: float

    @classmethod
    def build(cls, notes: List[NoteRecord], keys: Dict[str, float], built_at: float) -> "FuzzyIndex":
        fields = []
        for note in notes:
            values = {
                "title": note.title,
                "content": note.content,
                "path": note.path,
                "tags": " ".join(note.tags),
            }
            fields.append({key: FieldText.build(values.get(key, "")) for key in keys})
        return cls(notes=list(notes), fields=fields, built_at=built_at)


@dataclass
class FuzzyHit:
    """A scored note with its match positions."""

    note: NoteRecord
    similarity: float
    highlights: List[str]


class FuzzyMatcher:
    """
    Fallback search used when semantic retrieval fails.

    The index is rebuilt from the store when older than index_ttl_seconds,
    so notes added in the meantime appear after at most that delay.
    """

    def __init__(
        self,
        store: NoteStore,
        config: Optional[FuzzyConfig] = None,
        clock: Optional[Callable[[], float]] = None,
        snippet_length: int = DEFAULT_SNIPPET_LENGTH,
    ):
        """
        Args:
            store: Note store to index
            config: Matching parameters
            clock: Monotonic seconds source, injectable for tests
            snippet_length: Maximum snippet length before ellipsis
        """
        self.store = store
        self.config = config or FuzzyConfig()
        self.clock = clock or time.monotonic
        self.snippet_length = snippet_length
        self.filters = FilterEvaluator()
        self.metrics = MetricsCollector()
        self._index: Optional[FuzzyIndex] = None

        total_weight = sum(self.config.keys.values())
        if total_weight <= 0:
            raise FallbackSearchError("Fuzzy key weights must sum to a positive value")
        self._weights = {key: w / total_weight for key, w in self.config.keys.items()}

    async def search_fallback(
        self, query: str, options: Optional[SearchOptions] = None
    ) -> List[SearchResult]:
        """
        Fuzzy search over all notes.

        Args:
            query: User query
            options: Same options as the semantic path; min_similarity is not applied

        Returns:
            Results sorted by similarity, offset then limit applied after filtering

        Raises:
            FallbackSearchError: If the store or the matcher fails
        """
        options = options or SearchOptions()
        self.metrics.increment("retrieval.fallback.searches")

        try:
            notes = await self.store.fetch_all()
            if not notes:
                logger.info("Fallback search found no notes in store")
                return []

            index = self._ensure_index(notes)
            hits = self._score_all(index, query)
        except FallbackSearchError:
            raise
        except Exception as e:
            logger.error("Fallback search failed", error=str(e))
            raise FallbackSearchError(f"Fallback search failed: {e}", cause=e) from e

        filtered = [hit for hit in hits if self.filters.matches(hit.note, options.filters)]
        page = filtered[options.offset : options.offset + options.limit]

        logger.info(
            "Fallback search completed",
            matched=len(hits),
            after_filters=len(filtered),
            returned=len(page),
        )
        return [self._to_result(hit, query, options.include_content) for hit in page]

    def _ensure_index(self, notes: List[NoteRecord]) -> FuzzyIndex:
        now = self.clock()
        if self._index is not None and now - self._index.built_at < self.config.index_ttl_seconds:
            return self._index

        self._index = FuzzyIndex.build(notes, self.config.keys, built_at=now)
        self.metrics.increment("retrieval.fallback.index_builds")
        logger.info("Fallback search index updated", notes=len(notes))
        return self._index

    def _query_terms(self, query: str) -> List[str]:
        terms: List[str] = []
        for term in _WORD.findall(query.lower()):
            if len(term) >= self.config.min_match_char_length and term not in terms:
                terms.append(term)
        return terms

    def _score_all(self, index: FuzzyIndex, query: str) -> List[FuzzyHit]:
        terms = self._query_terms(query)
        if not terms:
            return []

        hits: List[FuzzyHit] = []
        for note, fields in zip(index.notes, index.fields):
            hit = self._score_note(note, fields, terms)
            if hit is not None:
                hits.append(hit)

        # Stable: equal scores keep store order
        hits.sort(key=lambda h: h.similarity, reverse=True)
        return hits

    def _score_note(
        self, note: NoteRecord, fields: Dict[str, FieldText], terms: List[str]
    ) -> Optional[FuzzyHit]:
        distance = 1.0
        matched_any = False
        highlights: List[str] = []

        for key, field_text in fields.items():
            matched: List[Tuple[float, int, int]] = []
            for term in terms:
                match = self.match_term(term, field_text)
                if match is not None:
                    matched.append(match)
            if not matched:
                continue

            matched_any = True
            field_distance = 1.0 - sum(1.0 - d for d, _, _ in matched) / len(terms)
            distance *= max(field_distance, EPS) ** self._weights[key]
            highlights.extend(f"{key}:{start}-{end}" for _, start, end in matched)

        if not matched_any:
            return None
        return FuzzyHit(note=note, similarity=max(0.0, 1.0 - distance), highlights=highlights)

    def _location_cost(self, offset: int) -> float:
        if self.config.ignore_location:
            return 0.0
        return offset / self.config.distance

    def match_term(self, term: str, field_text: FieldText) -> Optional[Tuple[float, int, int]]:
        """
        Best match of ``term`` in a field.

        Returns:
            (distance, start, end) with inclusive character offsets, or None
        """
        threshold = self.config.threshold
        best: Optional[Tuple[float, int, int]] = None

        index = field_text.text.find(term)
        if index != -1:
            cost = self._location_cost(index)
            if cost <= threshold:
                best = (cost, index, index + len(term) - 1)
                if cost == 0.0:
                    return best

        matcher = SequenceMatcher(None, autojunk=False)
        matcher.set_seq2(term)
        for word, offset in field_text.words:
            cost = self._location_cost(offset)
            if cost > threshold:
                # Words are in offset order; later ones only cost more
                break
            if best is not None and cost >= best[0]:
                break

            budget = 1.0 - (threshold - cost)
            matcher.set_seq1(word)
            if matcher.real_quick_ratio() < budget or matcher.quick_ratio() < budget:
                continue
            candidate = (1.0 - matcher.ratio()) + cost
            if candidate <= threshold and (best is None or candidate < best[0]):
                best = (candidate, offset, offset + len(word) - 1)

        return best

    def _to_result(self, hit: FuzzyHit, query: str, include_content: bool) -> SearchResult:
        note = hit.note
        return SearchResult(
            id=note.id,
            title=note.title,
            content=note.content if include_content else "",
            path=note.path,
            similarity=hit.similarity,
            relevance_score=hit.similarity,
            tags=list(note.tags),
            created_at=note.created_at,
            updated_at=note.updated_at,
            metadata=dict(note.metadata),
            snippet=query_snippet(note.content, query, self.snippet_length),
            highlights=hit.highlights,
        )

    async def rebuild_index(self) -> None:
        """Force an immediate rebuild from the store."""
        try:
            notes = await self.store.fetch_all()
        except Exception as e:
            raise FallbackSearchError(f"Failed to rebuild fallback index: {e}", cause=e) from e
        self._index = None
        self._ensure_index(notes)

    def get_index_stats(self) -> Dict[str, Any]:
        """
        Index state.

        Returns:
            {"is_ready": bool, "last_update": clock seconds or None, "note_count": int}
        """
        return {
            "is_ready": self._index is not None,
            "last_update": self._index.built_at if self._index else None,
            "note_count": len(self._index.notes) if self._index else 0,
        }

    def is_available(self) -> bool:
        """Whether an index has been built."""
        return self._index is not None
