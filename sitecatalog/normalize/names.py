"""
Name and summary normalization used for comparison.

Keys produced here are never displayed; they only decide whether two
records talk about the same place.
"""

import re
import unicodedata
from functools import lru_cache

from ..constants import (
    GENERIC_SUMMARY_MIN_LENGTH,
    GENERIC_SUMMARY_TEMPLATE,
    NAME_STOPWORDS,
)

_WORD_RX = re.compile(r'\w+', re.UNICODE)

# Auto-numbered or source-prefixed placeholder names
_GENERIC_NAME_RX = re.compile(
    r'^(site\s+\d+|osm-[a-z]*-?\d+|q\d+|unnamed.*|untitled.*)$',
    re.IGNORECASE
)

_BOILERPLATE_RX = re.compile(r'\s-\sa megalithic site\.\s*$', re.IGNORECASE)


def strip_diacritics(text: str) -> str:
    """Decompose and drop combining marks: 'Carnac-Ville' stays, 'Kerlescán' -> 'Kerlescan'."""
    decomposed = unicodedata.normalize('NFKD', text)
    return ''.join(ch for ch in decomposed if not unicodedata.combining(ch))


@lru_cache(maxsize=65536)
def normalize_name(raw: str) -> str:
    """
    Derive the comparison key for a site name.

    Examples:
        >>> normalize_name('The Stonehenge')
        'stonehenge'
        >>> normalize_name('Dolmen de la Roche-aux-Fées')
        'dolmendelarocheauxfees'
        >>> normalize_name('Les Pierres Plates')
        'pierresplates'
    """
    if not raw:
        return ''

    words = [w.replace('_', '') for w in _WORD_RX.findall(strip_diacritics(raw).lower())]
    words = [w for w in words if w]

    # Drop one leading article, but never the only word
    if len(words) > 1 and words[0] in NAME_STOPWORDS:
        words = words[1:]

    return ''.join(words)


def name_similarity(a: str, b: str) -> float:
    """
    Character-overlap similarity between two normalized keys.

    Fraction of a's characters that also occur in b, and the same in the
    other direction; the larger of the two wins.
    """
    if not a or not b:
        return 0.0

    chars_a = set(a)
    chars_b = set(b)
    a_in_b = sum(1 for c in a if c in chars_b) / len(a)
    b_in_a = sum(1 for c in b if c in chars_a) / len(b)
    return max(a_in_b, b_in_a)


def is_generic_name(name: str) -> bool:
    """True for empty, auto-numbered or source-prefixed placeholder names."""
    if not name or not name.strip():
        return True
    return bool(_GENERIC_NAME_RX.match(name.strip()))


def generic_summary(name: str) -> str:
    return GENERIC_SUMMARY_TEMPLATE.format(name=name)


def is_generic_summary(summary: str) -> bool:
    """True for empty summaries and the '<name> - a megalithic site.' boilerplate."""
    if not summary or not summary.strip():
        return True
    return bool(_BOILERPLATE_RX.search(summary))


def is_good_summary(summary: str) -> bool:
    """Long enough and not boilerplate."""
    return (not is_generic_summary(summary)
            and len(summary.strip()) > GENERIC_SUMMARY_MIN_LENGTH)
