"""
Filename sanitization for room directory names.

Room labels come from the homeserver and may contain anything,
including path separators. They are mapped to a single safe path
segment before being used on disk.
"""

from __future__ import annotations

import re

# Characters that are problematic in filenames/paths on common filesystems
UNSAFE_FILENAME_PATTERN = re.compile(r'[<>:"/\\|?*\x00-\x1F#]')

_MULTI_UNDERSCORE_PATTERN = re.compile(r"__+")

_TRIM_CHARS = "_ ."


def sanitize_filename(name: str, placeholder: str = "_") -> str:
    """
    Map an arbitrary label to a safe path segment.

    Replaces unsafe characters with underscores, collapses runs of
    underscores, and trims leading/trailing underscores, spaces and
    dots. Text outside the unsafe set (including Unicode) is kept.

    Args:
        name: Label to sanitize
        placeholder: Value returned when nothing usable is left

    Returns:
        Non-empty path segment; applying it twice gives the same result
    """
    sanitized = UNSAFE_FILENAME_PATTERN.sub("_", name)
    sanitized = _MULTI_UNDERSCORE_PATTERN.sub("_", sanitized)
    sanitized = sanitized.strip(_TRIM_CHARS)
    if not sanitized:
        return placeholder
    return sanitized
