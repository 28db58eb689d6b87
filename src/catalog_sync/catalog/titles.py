"""
Title normalization.

`normalized_key` is the only function used to decide whether two
titles refer to the same catalog entry. Everything that dedupes or
matches titles goes through it.
"""

import re

_PARENTHETICAL_SUFFIX = re.compile(r"\s*\([^()]*\)\s*$")
_WHITESPACE = re.compile(r"\s+")

# Noise removed before asking the pricing provider for a title match
_SEARCH_NOISE = (
    re.compile(r"\(\d{4}\)"),
    re.compile(r"\bremastered\b", re.IGNORECASE),
    re.compile(r"\bgoty\b", re.IGNORECASE),
    re.compile(r"\bedition\b", re.IGNORECASE),
    re.compile(r"\bthe game\b", re.IGNORECASE),
)


def normalized_key(title: str) -> str:
    """
    Build the dedupe key for a title.

    Lower-cases, trims, collapses inner whitespace and strips any
    trailing parenthetical suffixes.

    Example:
        >>> normalized_key("  God of War (2018) ")
        'god of war'
    """
    key = _WHITESPACE.sub(" ", title).strip().lower()
    while True:
        stripped = _PARENTHETICAL_SUFFIX.sub("", key)
        if stripped == key:
            break
        key = stripped.strip()
    return key


def clean_search_title(title: str) -> str:
    """Strip years and edition noise from a title for fuzzy provider lookup."""
    cleaned = title
    for pattern in _SEARCH_NOISE:
        cleaned = pattern.sub("", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip(" :-")
