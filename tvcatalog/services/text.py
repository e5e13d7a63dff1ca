"""
Text helpers shared by grouping, parsing and search.
"""
import unicodedata


def collation_key(value: str) -> tuple[str, str]:
    """
    Sort key approximating a locale-aware comparison.

    Accents and case are ignored on the first pass; the raw value breaks ties
    so the ordering stays total and deterministic.
    """
    decomposed = unicodedata.normalize("NFKD", value)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), value
