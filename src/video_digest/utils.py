"""
Utility functions shared across video-digest modules.

Provides destination list parsing and small text helpers used by the
pipeline and collaborators.
"""

import re
from typing import List, Optional


DESTINATION_SEPARATORS = re.compile(r"[,;]")


def parse_destinations(raw: Optional[str]) -> List[str]:
    """
    Split a destination list string into individual destinations.

    Accepts comma or semicolon as separator, trims whitespace around each
    token and drops empty tokens. Order is preserved and duplicates are kept.

    Args:
        raw: e.g. "5511999998888, 120363123456789@g.us ;5516991080895"

    Returns:
        List of destination tokens (may be empty)
    """
    if not raw:
        return []
    return [token.strip() for token in DESTINATION_SEPARATORS.split(raw) if token.strip()]


def truncate_text(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate text to maximum length with suffix.

    Args:
        text: Text to truncate
        max_length: Maximum length including suffix
        suffix: Suffix to add if truncated

    Returns:
        Truncated text with suffix if needed
    """
    if len(text) <= max_length:
        return text

    if len(suffix) >= max_length:
        return suffix[:max_length]

    actual_max = max_length - len(suffix)
    return text[:actual_max] + suffix


def collapse_whitespace(text: str) -> str:
    """Replace runs of whitespace with a single space and strip the ends."""
    return re.sub(r"\s+", " ", text or "").strip()


def format_elapsed(seconds: float) -> str:
    """Format a duration as e.g. '4.2s' or '2m05s'."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}m{secs:02d}s"
