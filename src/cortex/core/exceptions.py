"""
Unified exception hierarchy for Cortex.

Single source of every error raised by retrieval and context assembly.
"""

from typing import Dict, Any, Optional, List
from datetime import datetime
from cortex.core.id_generator import generate_id
from cortex.core.utils.datetime_utils import utc_now, format_iso


class CortexError(Exception):
    """
    Base error for Cortex.

    Carries:
    1. Structured serialization
    2. Context
    3. Resolution suggestions
    4. Unique ID for tracking
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        self.id: str = generate_id()
        self.timestamp: datetime = utc_now()
        self.message: str = message
        self.code: str = code or self.__class__.__name__
        self.context: Dict[str, Any] = context or {}
        self.cause: Optional[Exception] = cause
        self.suggestions: List[str] = []
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize to a plain dictionary.

        Returns:
            {
                "error_id": "hex32chars",
                "code": "StoreUnavailableError",
                "message": "Failed to read embeddings",
                "timestamp": "2024-01-20T10:30:00Z",
                "context": {...}
            }
        """
        result: Dict[str, Any] = {
            "error_id": self.id,
            "code": self.code,
            "message": self.message,
            "timestamp": format_iso(self.timestamp),
            "context": self.context,
        }

        if self.cause:
            result["cause"] = {"type": type(self.cause).__name__, "message": str(self.cause)}

        if self.suggestions:
            result["suggestions"] = self.suggestions

        return result

    def add_suggestion(self, suggestion: str) -> None:
        """
        Add a resolution hint. Duplicates and empty strings are ignored.

        Example:
            error = EmbeddingUnavailableError("Ollama not reachable")
            error.add_suggestion("Start Ollama with 'ollama serve'")
        """
        if not suggestion or not isinstance(suggestion, str):
            return

        if suggestion not in self.suggestions:
            self.suggestions.append(suggestion)

    def is_retryable(self) -> bool:
        """Whether retrying the same call may succeed."""
        return False


class ConfigurationError(CortexError):
    """Invalid configuration file or values."""

    pass


class ValidationError(CortexError):
    """Invalid input data."""

    pass


class DimensionMismatchError(ValidationError):
    """Two vectors of different length were compared."""

    def __init__(self, left: int, right: int, note_id: Optional[str] = None) -> None:
        context: Dict[str, Any] = {"left_dimensions": left, "right_dimensions": right}
        if note_id is not None:
            context["note_id"] = note_id
        super().__init__(f"Vector dimension mismatch: {left} != {right}", context=context)
        self.left = left
        self.right = right


class MalformedMetadataError(ValidationError):
    """A stored tags/frontmatter JSON field could not be parsed."""

    pass


class ExternalServiceError(CortexError):
    """
    External collaborator failure (embedding provider, note store).

    Generally retryable, but the core never retries on its own.
    """

    def is_retryable(self) -> bool:
        """External services usually recover."""
        return True


class EmbeddingUnavailableError(ExternalServiceError):
    """The embedding provider could not produce a query vector."""

    pass


class StoreUnavailableError(ExternalServiceError):
    """The note store could not be read."""

    pass


class FallbackSearchError(CortexError):
    """The fuzzy fallback search failed."""

    pass


class DualRetrievalFailure(CortexError):
    """
    Both the semantic path and the fuzzy fallback failed.

    Keeps both root causes so callers can tell them apart.
    """

    def __init__(self, semantic_error: Exception, fallback_error: Exception) -> None:
        super().__init__(
            "Both semantic and fallback search failed. "
            f"Semantic error: {semantic_error}. Fallback error: {fallback_error}",
            context={
                "semantic_error": {
                    "type": type(semantic_error).__name__,
                    "message": str(semantic_error),
                },
                "fallback_error": {
                    "type": type(fallback_error).__name__,
                    "message": str(fallback_error),
                },
            },
            cause=fallback_error,
        )
        self.semantic_error = semantic_error
        self.fallback_error = fallback_error
        self.add_suggestion("Check that the embedding provider is running")
        self.add_suggestion("Check that the notes database is readable")
