"""
Text utilities for product names.

Used for sorting and searching product names without regard to case or
accents.
"""

import unicodedata
from typing import Optional


def normalize_name(name: Optional[str]) -> str:
    """
    Normalize a product name for comparison and ordering.

    - "Crème Rose" → "creme rose"
    - "  ALOE   Gel " → "aloe gel"
    - None → ""

    Args:
        name: Original product name (may have accents, mixed case)

    Returns:
        Lowercase string without accent marks, single-spaced
    """
    if not name:
        return ""

    # NFD decomposition separates base chars from accents
    normalized = unicodedata.normalize("NFD", name)

    # Remove accent marks (combining characters in Unicode category 'Mn')
    stripped = "".join(
        c for c in normalized
        if unicodedata.category(c) != "Mn"
    )

    return " ".join(stripped.split()).casefold()


def contains_name(name: Optional[str], query: Optional[str]) -> bool:
    """Substring match on normalized names. An empty query matches everything."""
    return normalize_name(query) in normalize_name(name)
