"""
Character Counter Module

Computes the platform-weighted length of post text. Every URL counts as a
fixed number of characters (the length of a shortened link) no matter how
long it really is, and the remaining text is counted in extended grapheme
clusters, so a multi-codepoint emoji counts as one character.
"""

from typing import Optional

import regex

from config import settings

URL_PATTERN = regex.compile(r"https?://[^\s]+", regex.IGNORECASE)
GRAPHEME_PATTERN = regex.compile(r"\X")


def count(text: str, url_weight: Optional[int] = None) -> int:
    """
    Count the weighted length of ``text``.

    Args:
        text: The post text.
        url_weight: Weight of each URL. Defaults to settings.URL_CHARACTER_WEIGHT.

    Returns:
        int: Weighted character count.
    """
    if url_weight is None:
        url_weight = settings.URL_CHARACTER_WEIGHT

    matches = list(URL_PATTERN.finditer(text))
    working = text
    # Excise from the end so earlier offsets stay valid
    for match in reversed(matches):
        working = working[:match.start()] + working[match.end():]

    return len(GRAPHEME_PATTERN.findall(working)) + len(matches) * url_weight


def remaining(text: str, limit: Optional[int] = None) -> int:
    """Characters left before ``limit``. Negative when over the limit."""
    if limit is None:
        limit = settings.CHARACTER_LIMIT_STANDARD
    return limit - count(text)


def is_within_limit(text: str, limit: Optional[int] = None) -> bool:
    return remaining(text, limit) >= 0


def percentage_used(text: str, limit: Optional[int] = None) -> float:
    """Fraction of ``limit`` used by ``text``; may exceed 1.0."""
    if limit is None:
        limit = settings.CHARACTER_LIMIT_STANDARD
    return count(text) / limit
