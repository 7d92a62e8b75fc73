"""
Context assembly: chunk selection, deduplication and prompt building.
"""

from cortex.rag.context.assembler import ContextAssembler
from cortex.rag.context.selection import (
    deduplicate_contexts,
    select_contexts,
    jaccard_similarity,
    per_source_cap,
)

__all__ = [
    "ContextAssembler",
    "deduplicate_contexts",
    "select_contexts",
    "jaccard_similarity",
    "per_source_cap",
]
