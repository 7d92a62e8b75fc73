"""
Deduplication and budgeted selection of RAG contexts.
"""

import math
from typing import Dict, List, Set

from cortex.core.logging import logger
from cortex.models.rag import RAGContext


def word_set(text: str) -> Set[str]:
    return set(text.lower().split())


def jaccard_similarity(text1: str, text2: str) -> float:
    """
    |A ∩ B| / |A ∪ B| over lowercase whitespace-separated words.

    Two empty texts have similarity 0.
    """
    words1 = word_set(text1)
    words2 = word_set(text2)
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


def deduplicate_contexts(contexts: List[RAGContext], threshold: float) -> List[RAGContext]:
    """
    Collapse near-duplicate chunks.

    Each context is compared against the kept ones in order; on the first
    kept context with similarity ≥ ``threshold`` the two collapse into
    whichever has the higher relevance (the earlier one on ties).

    Args:
        contexts: Chunks in candidate order
        threshold: Jaccard similarity at which two chunks count as duplicates

    Returns:
        Kept contexts, in order of first appearance of their slot
    """
    if len(contexts) <= 1:
        return list(contexts)

    unique: List[RAGContext] = []
    unique_words: List[Set[str]] = []

    for context in contexts:
        words = word_set(context.content)
        for position, existing_words in enumerate(unique_words):
            union = words | existing_words
            similarity = len(words & existing_words) / len(union) if union else 0.0
            if similarity >= threshold:
                if context.relevance_score > unique[position].relevance_score:
                    unique[position] = context
                    unique_words[position] = words
                break
        else:
            unique.append(context)
            unique_words.append(words)

    removed = len(contexts) - len(unique)
    if removed:
        logger.debug("Removed duplicate contexts", removed=removed, kept=len(unique))
    return unique


def per_source_cap(max_contexts: int, diversity_weight: float) -> int:
    """Most chunks one note may contribute: max(1, ceil(max_contexts·(1 − diversity_weight)))."""
    return max(1, math.ceil(max_contexts * (1 - diversity_weight)))


def select_contexts(
    contexts: List[RAGContext],
    max_contexts: int,
    max_tokens: int,
    diversity_weight: float,
) -> List[RAGContext]:
    """
    Pick the best contexts within count, token and diversity limits.

    Candidates are taken by relevance (stable on ties). Notes that reached
    their cap are skipped. When the next candidate would overflow the token
    budget, the first later candidate that fits is taken and selection stops.

    Args:
        contexts: Deduplicated candidates
        max_contexts: Maximum number of contexts
        max_tokens: Total token budget
        diversity_weight: 0 = no diversity pressure, 1 = one chunk per note

    Returns:
        Selected contexts, best first. Their token_count sum never exceeds max_tokens.
    """
    if not contexts:
        return []

    ordered = sorted(contexts, key=lambda c: c.relevance_score, reverse=True)
    cap = per_source_cap(max_contexts, diversity_weight)

    selected: List[RAGContext] = []
    per_source: Dict[str, int] = {}
    total_tokens = 0

    def has_room(context: RAGContext) -> bool:
        return per_source.get(context.source.note_id, 0) < cap

    def accept(context: RAGContext) -> None:
        nonlocal total_tokens
        selected.append(context)
        per_source[context.source.note_id] = per_source.get(context.source.note_id, 0) + 1
        total_tokens += context.token_count

    for position, context in enumerate(ordered):
        if len(selected) >= max_contexts:
            break
        if not has_room(context):
            continue

        if total_tokens + context.token_count > max_tokens:
            for candidate in ordered[position + 1 :]:
                if has_room(candidate) and total_tokens + candidate.token_count <= max_tokens:
                    accept(candidate)
                    break
            break

        accept(context)

    logger.debug(
        "Selected contexts",
        candidates=len(contexts),
        selected=len(selected),
        total_tokens=total_tokens,
        per_source_cap=cap,
    )
    return selected
