"""
Crowd-sourced geo (OpenStreetMap) record normalization.

Handles both the site entries saved by the Overpass fetch step and raw
Overpass elements. OSM tagging is inconsistent, so the site type is derived
from several tags in order of specificity, and a summary is generated from
tags when no description exists.
"""

from typing import Dict, Optional
from urllib.parse import quote

from ..constants import GENERIC_SITE_TYPE
from ..models import SourceKind, SourceRecord
from .base import BaseNormalizer, clean_text, parse_coordinates

MEGALITH_TYPE_MAP = {
    'dolmen': 'dolmen',
    'menhir': 'menhir',
    'stone_circle': 'stone circle',
    'cromlech': 'stone circle',
    'stone_row': 'stone alignment',
    'standing_stone': 'standing stone',
    'chamber': 'chambered cairn',
    'passage_grave': 'passage tomb',
    'gallery_grave': 'passage tomb',
    'portal_dolmen': 'portal dolmen',
    'wedge_tomb': 'wedge tomb',
    'court_tomb': 'court tomb',
    'cist': 'cist',
}

HISTORIC_MAP = {
    'stone_circle': 'stone circle',
    'standing_stone': 'standing stone',
    'menhir': 'menhir',
    'dolmen': 'dolmen',
    'cairn': 'cairn',
    'tumulus': 'artificial mound',
    'henge': 'henge',
    'nuraghe': 'nuraghe',
    'ringfort': 'ring fort',
    'passage_grave': 'passage tomb',
}

ARCHAEOLOGICAL_SITE_MAP = {
    'megalith': GENERIC_SITE_TYPE,
    'cairn': 'cairn',
    'passage_grave': 'passage tomb',
    'chambered_tomb': 'chambered cairn',
    'tumulus': 'artificial mound',
}


def determine_site_type(tags: Dict[str, str]) -> str:
    """Map OSM tags to a site type label, most specific tag first."""
    if tags.get('megalith_type') in MEGALITH_TYPE_MAP:
        return MEGALITH_TYPE_MAP[tags['megalith_type']]
    if tags.get('historic') in HISTORIC_MAP:
        return HISTORIC_MAP[tags['historic']]
    if tags.get('archaeological_site') in ARCHAEOLOGICAL_SITE_MAP:
        return ARCHAEOLOGICAL_SITE_MAP[tags['archaeological_site']]
    if tags.get('site_type'):
        return tags['site_type'].replace('_', ' ')
    return GENERIC_SITE_TYPE


def generate_summary(tags: Dict[str, str], site_type: str) -> str:
    """Use the description tag, or build one sentence from what tags exist."""
    if tags.get('description'):
        return tags['description']

    name = tags.get('name') or 'This site'
    parts = [f"{name} is a {site_type}"]

    if tags.get('historic:civilization'):
        parts.append(f"associated with the {tags['historic:civilization']} culture")

    period = tags.get('start_date') or tags.get('archaeological_site:period')
    if period:
        parts.append(f"dating to {period}")

    return ' '.join(parts) + '.'


def wikipedia_url_from_tag(value: Optional[str]) -> Optional[str]:
    """'en:Ring of Brodgar' -> 'https://en.wikipedia.org/wiki/Ring_of_Brodgar'"""
    if not value:
        return None
    if value.startswith('http'):
        return value
    lang, sep, title = value.partition(':')
    if not sep or not title:
        lang, title = 'en', value
    return f"https://{lang}.wikipedia.org/wiki/{quote(title.strip().replace(' ', '_'))}"


class Normalizer(BaseNormalizer):
    """OpenStreetMap-style crowd-geo normalizer."""

    source_kind = SourceKind.CROWD_GEO

    def _normalize_element(self, element: Dict) -> SourceRecord:
        """Raw Overpass element (node/way/relation with tags)."""
        osm_id = f"{element['type']}/{element['id']}"
        tags = element.get('tags') or {}

        if element.get('lat') is not None and element.get('lon') is not None:
            coordinates = parse_coordinates({'lat': element['lat'], 'lon': element['lon']})
        else:
            coordinates = parse_coordinates(element.get('center'))

        name = tags.get('name') or tags.get('name:en') or f"Site {element['id']}"
        site_type = determine_site_type(tags)

        return self.create_record(
            source_id=osm_id,
            name=name,
            coordinates=coordinates,
            summary=generate_summary(tags, site_type),
            site_type=site_type,
            image_url=tags.get('image'),
            reference_url=wikipedia_url_from_tag(tags.get('wikipedia')),
            wikidata_id=tags.get('wikidata'),
            osm_id=osm_id,
        )

    def normalize_entry(self, entry: Dict) -> SourceRecord:
        if entry.get('type') in ('node', 'way', 'relation') and 'id' in entry:
            return self._normalize_element(entry)

        if 'source_id' in entry and 'osm_id' not in entry:
            return self.normalize_generic(entry)

        osm_id = clean_text(entry.get('osm_id') or entry.get('source_id'))
        tags = entry.get('tags') or {}
        site_type = entry.get('site_type') or determine_site_type(tags)
        name = clean_text(entry.get('name')) or f"Site {osm_id.split('/')[-1]}"
        summary = entry.get('summary') or generate_summary(tags, site_type)

        return self.create_record(
            source_id=osm_id,
            name=name,
            coordinates=parse_coordinates(entry.get('coordinates')),
            summary=summary,
            site_type=site_type,
            image_url=entry.get('image_url') or tags.get('image'),
            reference_url=(entry.get('reference_url')
                           or wikipedia_url_from_tag(tags.get('wikipedia'))),
            wikidata_id=entry.get('wikidata_id') or tags.get('wikidata'),
            osm_id=osm_id,
            country=entry.get('country'),
        )
