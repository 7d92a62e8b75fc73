"""
Read interface to the note store.

The retrieval core only reads. Writing notes and embeddings belongs to the
indexer, which is outside this package.
"""

from typing import List, Optional, Protocol, runtime_checkable

from cortex.embeddings.types import EmbeddingVector
from cortex.models.note import NoteRecord


@runtime_checkable
class NoteStore(Protocol):
    """
    Async read access to notes and their embeddings.

    Implementations raise StoreUnavailableError when the backing store
    cannot be read.
    """

    async def fetch_all(self) -> List[NoteRecord]:
        """Every note."""
        ...  # pragma: no cover

    async def fetch_by_id(self, note_id: str) -> Optional[NoteRecord]:
        """One note, or None if it does not exist."""
        ...  # pragma: no cover

    async def fetch_all_embeddings(self) -> List[EmbeddingVector]:
        """Every stored embedding (a note may have several)."""
        ...  # pragma: no cover

    async def search_text(self, query: str, limit: int = 50) -> List[NoteRecord]:
        """Full-text match on title, content and tags."""
        ...  # pragma: no cover
