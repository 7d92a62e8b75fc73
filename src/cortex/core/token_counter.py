"""
Token estimation for Cortex.

Uses the chars/4 heuristic instead of a real tokenizer. Context budgets
only need a consistent, cheap upper-bound estimate.
"""

import math

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    """Estimated token count: ceil(len(text) / 4)."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def tokens_to_chars(tokens: int) -> int:
    """Character span matching ``tokens`` estimated tokens."""
    return max(0, tokens) * CHARS_PER_TOKEN
