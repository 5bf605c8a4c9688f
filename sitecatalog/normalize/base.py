"""
Base class for source record normalization.
"""

import math
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..errors import InvalidCoordinates
from ..models import Coordinates, SourceKind, SourceRecord
from .names import normalize_name

_WKT_POINT_RX = re.compile(r'Point\(\s*([-\d.eE+]+)\s+([-\d.eE+]+)\s*\)', re.IGNORECASE)


def _as_float(value: Any) -> float:
    if isinstance(value, bool):
        raise TypeError("boolean is not a coordinate")
    return float(value)


def parse_coordinates(raw: Any) -> Coordinates:
    """
    Parse the coordinate shapes found across source snapshots.

    Accepts {'lat', 'lng'}, {'lat', 'lon'}, [lat, lng] and WKT 'Point(lng lat)'.
    Range checks are the validity filter's job; this only rejects values that
    cannot be read as numbers at all.
    """
    try:
        if isinstance(raw, dict):
            lat = raw.get('lat', raw.get('latitude'))
            lng = raw.get('lng', raw.get('lon', raw.get('longitude')))
            coords = Coordinates(_as_float(lat), _as_float(lng))
        elif isinstance(raw, str):
            match = _WKT_POINT_RX.search(raw)
            if not match:
                raise InvalidCoordinates(f"unparseable coordinates: {raw!r}")
            # WKT order is lng lat
            coords = Coordinates(float(match.group(2)), float(match.group(1)))
        elif isinstance(raw, (list, tuple)) and len(raw) == 2:
            coords = Coordinates(_as_float(raw[0]), _as_float(raw[1]))
        else:
            raise InvalidCoordinates(f"missing or unrecognized coordinates: {raw!r}")
    except (TypeError, ValueError) as e:
        raise InvalidCoordinates(f"non-numeric coordinates: {raw!r}") from e

    if not (math.isfinite(coords.lat) and math.isfinite(coords.lng)):
        raise InvalidCoordinates(f"non-finite coordinates: {raw!r}")

    return coords


def clean_text(value: Any) -> str:
    """Collapse whitespace; None becomes ''."""
    if value is None:
        return ''
    return re.sub(r'\s+', ' ', str(value)).strip()


def optional_text(value: Any) -> Optional[str]:
    text = clean_text(value)
    return text or None


class BaseNormalizer(ABC):
    """Base class for source-specific record normalizers."""

    source_kind: SourceKind

    def create_record(
        self,
        source_id: Any,
        name: str,
        coordinates: Coordinates,
        summary: str = '',
        site_type: str = '',
        image_url: Optional[str] = None,
        reference_url: Optional[str] = None,
        wikidata_id: Optional[str] = None,
        osm_id: Optional[str] = None,
        country: Optional[str] = None,
    ) -> SourceRecord:
        """
        Create a SourceRecord with its comparison key.

        Args:
            source_id: ID unique within the source
            name: Display name as supplied
            coordinates: Parsed coordinates
            summary: Free-text description
            site_type: Declared site type label
            image_url: Primary image
            reference_url: External reference (e.g. Wikipedia article)
            wikidata_id: Structured knowledge-base identifier
            osm_id: Crowd-geo feature identifier
            country: Country label

        Returns:
            Normalized SourceRecord
        """
        source_id = clean_text(source_id)
        if not source_id:
            raise ValueError("source record without an id")

        name = clean_text(name)
        return SourceRecord(
            source_id=source_id,
            source_kind=self.source_kind,
            raw_name=name,
            raw_summary=clean_text(summary),
            site_type_label=clean_text(site_type).lower(),
            coordinates=coordinates,
            image_url=optional_text(image_url),
            reference_url=optional_text(reference_url),
            wikidata_id=optional_text(wikidata_id),
            osm_id=optional_text(osm_id),
            country=optional_text(country),
            key=normalize_name(name),
        )

    def normalize_generic(self, entry: Dict) -> SourceRecord:
        """Entries already in the uniform SourceRecord shape."""
        return self.create_record(
            source_id=entry['source_id'],
            name=entry.get('name') or entry.get('raw_name') or '',
            coordinates=parse_coordinates(entry.get('coordinates')),
            summary=entry.get('summary') or entry.get('raw_summary') or '',
            site_type=entry.get('site_type') or entry.get('site_type_label') or '',
            image_url=entry.get('image_url'),
            reference_url=entry.get('reference_url'),
            wikidata_id=entry.get('wikidata_id'),
            osm_id=entry.get('osm_id'),
            country=entry.get('country'),
        )

    @abstractmethod
    def normalize_entry(self, entry: Dict) -> SourceRecord:
        """
        Normalize one raw snapshot entry.

        Raises:
            InvalidCoordinates: coordinates missing or not numeric
            KeyError, ValueError: entry is malformed
        """
        pass
