"""
Hand-curated site list normalization.

Curated entries come from seed files and editor uploads. They usually carry
a slug rather than a separate id; the slug is stable across list revisions
so it doubles as the source id.
"""

from typing import Dict

from ..constants import GENERIC_SITE_TYPE
from ..models import SourceKind, SourceRecord
from .base import BaseNormalizer, parse_coordinates


class Normalizer(BaseNormalizer):
    """Manual/seed list normalizer."""

    source_kind = SourceKind.MANUAL

    def normalize_entry(self, entry: Dict) -> SourceRecord:
        source_id = entry.get('source_id') or entry.get('slug') or entry.get('id')
        if source_id is None:
            raise KeyError('source_id')

        return self.create_record(
            source_id=source_id,
            name=entry.get('name') or '',
            coordinates=parse_coordinates(entry.get('coordinates')),
            summary=entry.get('summary') or '',
            site_type=entry.get('site_type') or GENERIC_SITE_TYPE,
            image_url=entry.get('image_url'),
            reference_url=entry.get('reference_url') or entry.get('wikipedia_url'),
            wikidata_id=entry.get('wikidata_id'),
            osm_id=entry.get('osm_id'),
            country=entry.get('country'),
        )
