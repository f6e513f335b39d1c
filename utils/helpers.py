"""
Helper Utility Module

This module provides various helper functions used throughout the Thread Poster application.
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlparse


def parse_callback_params(url: str) -> Dict[str, str]:
    """
    Extract the query parameters of an OAuth callback URL.

    Only the first value of a repeated parameter is kept.

    Args:
        url: The full redirect URL received after authorization

    Returns:
        Dict[str, str]: Parameter names mapped to their values
    """
    query = urlparse(url).query
    return {name: values[0] for name, values in parse_qs(query, keep_blank_values=True).items()}


def epoch_to_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Convert an epoch-seconds header value to an aware UTC datetime.

    Args:
        value: Header text such as "1718000000", or None

    Returns:
        The datetime, or None if the value is absent or not a number
    """
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(int(float(value)), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def split_indexed_option(value: str) -> Tuple[int, str]:
    """
    Split a command line value of the form ``N=VALUE``.

    Args:
        value: The raw option, e.g. "2=photo.jpg"

    Returns:
        Tuple: (N as a 1-based item number, VALUE)

    Raises:
        ValueError: If the value has no "=" or N is not a positive integer
    """
    index, sep, rest = value.partition("=")
    if not sep:
        raise ValueError(f"expected N=VALUE, got '{value}'")
    number = int(index)
    if number < 1:
        raise ValueError(f"item number must be 1 or more, got {number}")
    return number, rest


def split_thread_text(content: str, separator: str = "---") -> List[str]:
    """
    Split a thread file into item texts.

    Items are separated by lines consisting only of ``separator``.
    Surrounding whitespace of each item is stripped.
    """
    items: List[List[str]] = [[]]
    for line in content.splitlines():
        if line.strip() == separator:
            items.append([])
        else:
            items[-1].append(line)
    return ["\n".join(lines).strip() for lines in items]


def truncate_text(text: str, max_length: int = 100, add_ellipsis: bool = True) -> str:
    """
    Truncate text to a maximum length.

    Args:
        text: The text to truncate
        max_length: Maximum length
        add_ellipsis: Whether to add an ellipsis if text is truncated

    Returns:
        str: Truncated text
    """
    if not text or len(text) <= max_length:
        return text

    truncated = text[:max_length].rstrip()
    if add_ellipsis:
        truncated += "..."

    return truncated


def safe_get(data: Dict[str, Any], *keys, default: Any = None) -> Any:
    """
    Safely get a value from a nested dictionary.

    Args:
        data: The dictionary to search
        *keys: The keys to follow
        default: Default value if key doesn't exist

    Returns:
        The value at the specified keys or the default value
    """
    for key in keys:
        try:
            data = data[key]
        except (KeyError, TypeError, IndexError):
            return default
    return data


def ensure_dir_exists(directory: str) -> None:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        directory: The directory path to check/create
    """
    os.makedirs(directory, exist_ok=True)
