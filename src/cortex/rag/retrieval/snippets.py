"""
Snippet helpers for search results.
"""

DEFAULT_SNIPPET_LENGTH = 150
ELLIPSIS = "..."


def truncate_snippet(content: str, max_length: int = DEFAULT_SNIPPET_LENGTH) -> str:
    """
    Leading excerpt of ``content``, cut at a word boundary when one is close.

    The cut moves back to the last space only if that space lies in the
    final 20% of the window; otherwise the text is cut mid-word.
    """
    if len(content) <= max_length:
        return content

    truncated = content[:max_length]
    last_space = truncated.rfind(" ")
    if last_space > max_length * 0.8:
        return truncated[:last_space] + ELLIPSIS
    return truncated + ELLIPSIS


def query_snippet(content: str, query: str, max_length: int = DEFAULT_SNIPPET_LENGTH) -> str:
    """
    Excerpt centred on the first query term (longer than 2 chars) found in ``content``.

    Falls back to truncate_snippet() when no term occurs.
    """
    if len(content) <= max_length:
        return content

    lowered = content.lower()
    for term in query.lower().split():
        if len(term) <= 2:
            continue
        index = lowered.find(term)
        if index == -1:
            continue

        start = max(0, index - max_length // 2)
        end = min(len(content), start + max_length)
        snippet = content[start:end]
        if start > 0:
            snippet = ELLIPSIS + snippet
        if end < len(content):
            snippet = snippet + ELLIPSIS
        return snippet

    return truncate_snippet(content, max_length)
