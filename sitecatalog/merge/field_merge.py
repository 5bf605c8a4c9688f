"""
Field-level merging into canonical sites.

Fill-gaps policy: a later record only ever adds data a site is missing.
The exceptions are boilerplate summaries and the generic site type, which
count as missing, and the name, which goes to the best-scoring contributor
unless that would swap a real name for a placeholder.
Coordinates are never moved once a site exists.
"""

from typing import List

from ..constants import GENERIC_SITE_TYPE
from ..models import CanonicalSite, SourceRecord
from ..normalize.names import is_generic_name, is_generic_summary
from .scoring import score_site

# Filled once, never overwritten
FILL_ONCE_FIELDS = ('image_url', 'reference_url', 'wikidata_id', 'osm_id', 'country')


def _is_generic_type(site_type: str) -> bool:
    return not site_type or site_type == GENERIC_SITE_TYPE


def create_site(record: SourceRecord, canonical_id: str, record_score: int) -> CanonicalSite:
    """Seed a new canonical site from its first record."""
    site = CanonicalSite(
        canonical_id=canonical_id,
        name=record.raw_name,
        summary=record.raw_summary,
        site_type=record.site_type_label or GENERIC_SITE_TYPE,
        coordinates=record.coordinates,
        image_url=record.image_url,
        reference_url=record.reference_url,
        wikidata_id=record.wikidata_id,
        osm_id=record.osm_id,
        country=record.country,
        contributing_sources=[record.source_ref],
        name_score=record_score,
    )
    site.quality_score = score_site(site)
    return site


def _prefers_name(site: CanonicalSite, name: str, name_score: int) -> bool:
    """Real names beat placeholders; otherwise the strictly higher score wins."""
    incoming_generic = is_generic_name(name)
    if incoming_generic != is_generic_name(site.name):
        return not incoming_generic
    return name_score > site.name_score


def _fill(site: CanonicalSite, name: str, summary: str, site_type: str,
          values: dict, name_score: int) -> List[str]:
    changed = []

    if is_generic_summary(site.summary) and not is_generic_summary(summary):
        site.summary = summary
        changed.append('summary')

    for attr in FILL_ONCE_FIELDS:
        if not getattr(site, attr) and values.get(attr):
            setattr(site, attr, values[attr])
            changed.append(attr)

    if _is_generic_type(site.site_type) and not _is_generic_type(site_type):
        site.site_type = site_type
        changed.append('site_type')

    # Ties keep the existing name; a placeholder never displaces a real one
    if name and _prefers_name(site, name, name_score):
        if name != site.name:
            changed.append('name')
        site.name = name
        site.name_score = name_score

    return changed


def _add_sources(site: CanonicalSite, refs) -> bool:
    added = False
    for ref in refs:
        if ref not in site.contributing_sources:
            site.contributing_sources.append(ref)
            added = True
    return added


def merge_into(site: CanonicalSite, record: SourceRecord, record_score: int) -> List[str]:
    """
    Merge one matched record into a site, in place.

    Args:
        site: Canonical site the record was matched to
        record: Matched source record
        record_score: Quality score of the record

    Returns:
        Names of the fields that changed
    """
    values = {attr: getattr(record, attr) for attr in FILL_ONCE_FIELDS}
    changed = _fill(site, record.raw_name, record.raw_summary, record.site_type_label,
                    values, record_score)

    if _add_sources(site, [record.source_ref]):
        changed.append('contributing_sources')

    site.quality_score = score_site(site)
    return changed


def absorb_site(site: CanonicalSite, other: CanonicalSite) -> List[str]:
    """
    Fold a restored site into the site that already owns some of its sources.

    The surviving site keeps its id and coordinates; everything else follows
    the same rules as merge_into.
    """
    values = {attr: getattr(other, attr) for attr in FILL_ONCE_FIELDS}
    changed = _fill(site, other.name, other.summary, other.site_type, values, other.name_score)

    if _add_sources(site, other.contributing_sources):
        changed.append('contributing_sources')

    site.quality_score = score_site(site)
    return changed
