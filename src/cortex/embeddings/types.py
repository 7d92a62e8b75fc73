"""
Standard types for the embeddings module.

EmbeddingVector is the single embedding format inside Cortex. Vectors are
stored as float32 NumPy arrays and compared with cosine similarity.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Protocol, Sequence, Union, runtime_checkable

import numpy as np

from cortex.core.exceptions import DimensionMismatchError
from cortex.core.utils.datetime_utils import utc_now

VectorLike = Union[np.ndarray, Sequence[float]]


def as_vector(data: VectorLike) -> np.ndarray:
    """Coerce to a 1-D float32 array."""
    return np.asarray(data, dtype=np.float32).reshape(-1)


def cosine_similarity(a: VectorLike, b: VectorLike) -> float:
    """
    Cosine similarity between two vectors.

    Args:
        a: First vector
        b: Second vector

    Returns:
        dot(a, b) / (|a|·|b|), or 0.0 when either vector has zero magnitude

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    left = as_vector(a)
    right = as_vector(b)
    if left.shape[0] != right.shape[0]:
        raise DimensionMismatchError(left.shape[0], right.shape[0])

    # float64 accumulation keeps cosine(a, a) at 1.0 within rounding
    left64 = left.astype(np.float64)
    right64 = right.astype(np.float64)
    magnitude = float(np.linalg.norm(left64) * np.linalg.norm(right64))
    if magnitude == 0.0:
        return 0.0
    return float(np.dot(left64, right64) / magnitude)


@dataclass
class EmbeddingVector:
    """A stored note embedding.

    Attributes:
        note_id: Owning note
        vector: float32 NumPy array
        created_at: UTC creation time
        id: Store row id, when known
    """

    note_id: str
    vector: np.ndarray
    created_at: datetime = field(default_factory=utc_now)
    id: Optional[int] = None

    def __post_init__(self) -> None:
        self.vector = as_vector(self.vector)

    @property
    def dimensions(self) -> int:
        return int(self.vector.shape[0])

    @property
    def list(self) -> List[float]:
        """For generic serialization."""
        return self.vector.tolist()

    def cosine_similarity(self, other: Union["EmbeddingVector", VectorLike]) -> float:
        """Cosine similarity against another embedding or raw vector."""
        other_vector = other.vector if isinstance(other, EmbeddingVector) else other
        try:
            return cosine_similarity(self.vector, other_vector)
        except DimensionMismatchError as e:
            e.context["note_id"] = self.note_id
            raise

    @classmethod
    def from_blob(
        cls, note_id: str, blob: bytes, created_at: Optional[datetime] = None, id: Optional[int] = None
    ) -> "EmbeddingVector":
        """Decode a float32 BLOB as written by the indexer."""
        vector = np.frombuffer(blob, dtype=np.float32).copy()
        return cls(note_id=note_id, vector=vector, created_at=created_at or utc_now(), id=id)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that turns text into a vector.

    Implementations raise EmbeddingUnavailableError when they cannot.
    """

    async def embed(self, text: str) -> Sequence[float]: ...
