"""
Quality scoring for source records and canonical sites.

Additive integer score over data completeness, with a bonus for the more
trusted source kinds. Used to decide whose name a canonical site keeps and
reported per site in the catalog.
"""

from typing import Iterable, Optional

from ..constants import (
    SCORE_GOOD_SUMMARY,
    SCORE_IMAGE,
    SCORE_MAX,
    SCORE_PROPER_NAME,
    SCORE_REFERENCE,
    SCORE_SOURCE_BONUS,
    SCORE_STRUCTURED_ID,
)
from ..models import CanonicalSite, SourceRecord
from ..normalize.names import is_generic_name, is_good_summary


def source_bonus(kinds: Iterable[str]) -> int:
    """Best bonus among the given source kinds."""
    return max((SCORE_SOURCE_BONUS.get(getattr(k, 'value', k), 0) for k in kinds), default=0)


def score_fields(
    name: str,
    summary: str,
    image_url: Optional[str],
    reference_url: Optional[str],
    wikidata_id: Optional[str],
    bonus: int,
) -> int:
    score = 0
    if image_url:
        score += SCORE_IMAGE
    if reference_url:
        score += SCORE_REFERENCE
    if wikidata_id:
        score += SCORE_STRUCTURED_ID
    if is_good_summary(summary):
        score += SCORE_GOOD_SUMMARY
    if not is_generic_name(name):
        score += SCORE_PROPER_NAME
    score += bonus
    return max(0, min(SCORE_MAX, score))


def score_record(record: SourceRecord) -> int:
    return score_fields(
        record.raw_name,
        record.raw_summary,
        record.image_url,
        record.reference_url,
        record.wikidata_id,
        source_bonus([record.source_kind]),
    )


def score_site(site: CanonicalSite) -> int:
    return score_fields(
        site.name,
        site.summary,
        site.image_url,
        site.reference_url,
        site.wikidata_id,
        source_bonus(site.source_kinds),
    )
