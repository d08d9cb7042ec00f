"""
Text normalization shared by every classifier and matcher.
"""

import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """
    Lowercases, strips diacritics and trims surrounding whitespace.

    ``normalize("MÉDICO ") == normalize("medico")``. Total for any string.

    Args:
        text: Raw user or assistant text

    Returns:
        Normalized text
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFD", text.lower())
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return stripped.strip()


def collapse_whitespace(text: str) -> str:
    """Collapses runs of whitespace into single spaces."""
    return _WHITESPACE.sub(" ", text).strip()


def contains_any(text: str, phrases) -> bool:
    """True when any of the phrases occurs in the (already normalized) text."""
    return any(phrase in text for phrase in phrases)


def first_match(text: str, table: dict[str, tuple[str, ...]]) -> str | None:
    """
    Returns the first key whose phrases occur in the text.

    Args:
        text: Normalized text
        table: Ordered mapping of key -> trigger phrases

    Returns:
        Matching key or None
    """
    for key, phrases in table.items():
        if contains_any(text, phrases):
            return key
    return None


def title_name(name: str) -> str:
    """Capitalizes each word of a person name captured from lowercase text."""
    return " ".join(word.capitalize() for word in collapse_whitespace(name).split(" "))
