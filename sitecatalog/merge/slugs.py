"""
URL-safe canonical identifiers.
"""

import re
from typing import Optional, Set

from ..constants import MAX_SLUG_LENGTH, MAX_SLUG_SUFFIX
from ..errors import SlugCollisionExhausted
from ..normalize.names import strip_diacritics

_APOSTROPHES_RX = re.compile(r"['’ʼ]")
_NON_SLUG_RX = re.compile(r'[^a-z0-9]+')


def slugify(text: str, max_length: int = MAX_SLUG_LENGTH) -> str:
    """
    Examples:
        >>> slugify("Giant's Grave")
        'giants-grave'
        >>> slugify('Dolmen de la Roche-aux-Fées')
        'dolmen-de-la-roche-aux-fees'
    """
    if not text:
        return ''
    slug = strip_diacritics(text).lower()
    slug = _APOSTROPHES_RX.sub('', slug)
    slug = _NON_SLUG_RX.sub('-', slug).strip('-')
    return slug[:max_length].strip('-')


class SlugAssigner:
    """
    Hands out unique slugs for one pipeline run.

    Collisions get numbered suffixes: giants-grave, giants-grave-1, ...
    """

    def __init__(self, max_length: int = MAX_SLUG_LENGTH, max_suffix: int = MAX_SLUG_SUFFIX):
        self.max_length = max_length
        self.max_suffix = max_suffix
        self.taken: Set[str] = set()

    def __contains__(self, slug: str) -> bool:
        return slug in self.taken

    def reserve(self, slug: str) -> None:
        """Claim an existing id (e.g. from a previous catalog)."""
        self.taken.add(slug)

    def assign(self, name: str, fallback: Optional[str] = None) -> str:
        """
        Args:
            name: Display name to derive the slug from
            fallback: Used as 'site-<fallback>' when the name has no usable characters

        Raises:
            SlugCollisionExhausted: every suffix up to max_suffix is taken
        """
        base = slugify(name, self.max_length)
        if not base:
            base = slugify(f"site-{fallback or len(self.taken) + 1}", self.max_length)

        if base not in self.taken:
            self.taken.add(base)
            return base

        for n in range(1, self.max_suffix + 1):
            suffix = f"-{n}"
            stem = base[:self.max_length - len(suffix)].rstrip('-')
            candidate = f"{stem}{suffix}"
            if candidate not in self.taken:
                self.taken.add(candidate)
                return candidate

        raise SlugCollisionExhausted(base, self.max_suffix)
