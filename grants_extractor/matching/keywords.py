"""Keyword extraction for checklist requirements."""

import re

MAX_KEYWORDS = 5
MIN_KEYWORD_LENGTH = 4

STOP_WORDS = frozenset([
    "the", "a", "an", "and", "or", "but",
    "in", "on", "at", "to", "for", "of", "with", "by",
    "is", "are", "was", "were", "be", "been",
    "have", "has", "had", "do", "does", "did",
    "will", "would", "could", "should",
])


def extract_keywords(text: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """
    Reduce requirement text to its first salient words.

    Lowercases, strips punctuation, drops stop words and words of three
    characters or fewer, and keeps the first `limit` remaining tokens in
    their original order. Inner hyphens and apostrophes survive
    ("multi-year", "applicant's"), so every keyword is a literal substring
    of the lowercased source text.

    Args:
        text: Requirement description
        limit: Maximum number of keywords

    Returns:
        Ordered list of lowercase keywords
    """
    if not text:
        return []

    stripped = re.sub(r"[^\w\s'\-]", " ", text.lower())
    words = []
    for token in stripped.split():
        word = token.strip("'-")
        if len(word) >= MIN_KEYWORD_LENGTH and word not in STOP_WORDS:
            words.append(word)
    return words[:limit]
