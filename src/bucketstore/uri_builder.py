"""Helpers for building object URIs from free text.

Not every character is usable in a URI or as an object key. Keys assembled
from titles or external identifiers should pass through sanitize() before
they are formatted into ``adapter://bucket/key``.
"""

from __future__ import annotations

import re

DEFAULT_REPLACEMENT = "__"

# Consumers that decode URIs read a raw "%" as the start of an escape
_INVALID_URI_CHARS_PATTERN = re.compile(r"[{}<>%]")


def sanitize(value: str, replacement: str = DEFAULT_REPLACEMENT) -> str:
    """Replace characters that cannot appear in a URI or key.

    Args:
        value: Text to sanitize.
        replacement: Substitute for each invalid character.

    Returns:
        The sanitized text. Spaces and all other characters are kept.
    """
    return _INVALID_URI_CHARS_PATTERN.sub(replacement, value)
