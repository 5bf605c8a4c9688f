"""
Knowledge-base (Wikidata) record normalization.

Accepts both the cleaned site entries written by the Wikidata fetch step
and raw SPARQL result bindings. Entries without a description get the
'<name> - a megalithic site.' boilerplate, which the scorer and merger treat
as a placeholder.
"""

from typing import Dict

from ..constants import GENERIC_SITE_TYPE
from ..models import SourceKind, SourceRecord
from .base import BaseNormalizer, clean_text, parse_coordinates
from .names import generic_summary


def _binding(entry: Dict, name: str) -> str:
    value = entry.get(name)
    if isinstance(value, dict):
        return value.get('value', '')
    return value or ''


class Normalizer(BaseNormalizer):
    """Wikidata-style knowledge-base normalizer."""

    source_kind = SourceKind.KNOWLEDGE_BASE

    @staticmethod
    def entity_id(uri: str) -> str:
        """'http://www.wikidata.org/entity/Q1234' -> 'Q1234'"""
        return uri.rstrip('/').split('/')[-1]

    def _normalize_binding(self, entry: Dict) -> SourceRecord:
        """Raw SPARQL binding: every field is {'type': ..., 'value': ...}."""
        wikidata_id = self.entity_id(_binding(entry, 'site'))
        name = _binding(entry, 'siteLabel')
        summary = _binding(entry, 'siteDescription') or generic_summary(name)

        return self.create_record(
            source_id=wikidata_id,
            name=name,
            coordinates=parse_coordinates(_binding(entry, 'coord')),
            summary=summary,
            site_type=entry.get('site_type') or GENERIC_SITE_TYPE,
            image_url=_binding(entry, 'image') or None,
            reference_url=_binding(entry, 'wikipedia') or None,
            wikidata_id=wikidata_id,
            country=_binding(entry, 'countryLabel') or None,
        )

    def normalize_entry(self, entry: Dict) -> SourceRecord:
        if isinstance(entry.get('site'), dict):
            return self._normalize_binding(entry)

        if 'source_id' in entry and 'wikidata_id' not in entry:
            return self.normalize_generic(entry)

        wikidata_id = clean_text(entry.get('wikidata_id') or entry.get('source_id'))
        name = clean_text(entry.get('name'))
        summary = clean_text(entry.get('summary')) or generic_summary(name)

        return self.create_record(
            source_id=wikidata_id,
            name=name,
            coordinates=parse_coordinates(entry.get('coordinates')),
            summary=summary,
            site_type=entry.get('site_type') or GENERIC_SITE_TYPE,
            image_url=entry.get('image_url'),
            reference_url=entry.get('wikipedia_url') or entry.get('reference_url'),
            wikidata_id=wikidata_id,
            country=entry.get('country'),
        )
