"""
In-memory note store.

Used by tools that already hold notes in memory, and by the test suite.
"""

from typing import Dict, Iterable, List, Optional

from cortex.embeddings.types import EmbeddingVector
from cortex.models.note import NoteRecord


class InMemoryNoteStore:
    """NoteStore backed by plain dictionaries."""

    def __init__(
        self,
        notes: Optional[Iterable[NoteRecord]] = None,
        embeddings: Optional[Iterable[EmbeddingVector]] = None,
    ) -> None:
        self._notes: Dict[str, NoteRecord] = {}
        self._embeddings: List[EmbeddingVector] = []
        for note in notes or []:
            self.add_note(note)
        for embedding in embeddings or []:
            self.add_embedding(embedding)

    def add_note(self, note: NoteRecord) -> None:
        self._notes[note.id] = note

    def add_embedding(self, embedding: EmbeddingVector) -> None:
        self._embeddings.append(embedding)

    def remove_note(self, note_id: str) -> None:
        """Drop a note; its embeddings stay, like a half-finished reindex."""
        self._notes.pop(note_id, None)

    async def fetch_all(self) -> List[NoteRecord]:
        return list(self._notes.values())

    async def fetch_by_id(self, note_id: str) -> Optional[NoteRecord]:
        return self._notes.get(note_id)

    async def fetch_all_embeddings(self) -> List[EmbeddingVector]:
        return list(self._embeddings)

    async def search_text(self, query: str, limit: int = 50) -> List[NoteRecord]:
        needle = query.lower().strip()
        if not needle:
            return []
        matches = [
            note
            for note in self._notes.values()
            if needle in note.title.lower()
            or needle in note.content.lower()
            or any(needle in tag.lower() for tag in note.tags)
        ]
        return matches[:limit]
