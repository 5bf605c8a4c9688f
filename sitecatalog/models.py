"""
Record types flowing through the merge pipeline.

SourceRecord is what a loader produces from one raw snapshot entry,
CanonicalSite is the catalog's unit of truth, MergeDecision is the audit
trail entry written to the merge report.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Tuple

from .normalize.names import normalize_name


class SourceKind(str, Enum):
    """Provenance of a source record."""
    KNOWLEDGE_BASE = "knowledge_base"
    CROWD_GEO = "crowd_geo"
    MANUAL = "manual"


class DecisionReason(str, Enum):
    """Why a record ended up where it did."""
    NEW_SITE = "NewSite"
    NEAR_CERTAIN_DISTANCE = "NearCertainDistance"
    NAME_CORROBORATED = "NameCorroborated"
    NAME_KEY_MATCH = "NameKeyMatch"
    CONFLICTING_MATCH = "ConflictingMatch"
    ALREADY_MERGED = "AlreadyMerged"
    INVALID_COORDINATES = "InvalidCoordinates"
    GARBAGE_CONTENT = "GarbageContent"
    DISALLOWED_REGION = "DisallowedRegion"
    OFF_LAND = "OffLand"
    ENRICHMENT_UNAVAILABLE = "EnrichmentUnavailable"
    SLUG_COLLISION_EXHAUSTED = "SlugCollisionExhausted"
    MALFORMED_RECORD = "MalformedRecord"


SourceRef = Tuple[str, str]


class Coordinates(NamedTuple):
    lat: float
    lng: float

    def to_dict(self) -> Dict:
        return {'lat': self.lat, 'lng': self.lng}


@dataclass(frozen=True)
class SourceRecord:
    """One site entry as received from a single source. Never mutated."""
    source_id: str
    source_kind: SourceKind
    raw_name: str
    raw_summary: str
    site_type_label: str
    coordinates: Coordinates

    image_url: Optional[str] = None
    reference_url: Optional[str] = None
    wikidata_id: Optional[str] = None
    osm_id: Optional[str] = None
    country: Optional[str] = None

    # Comparison key derived from raw_name by the normalizer
    key: str = ''

    @property
    def source_ref(self) -> SourceRef:
        return (self.source_kind.value, self.source_id)

    @property
    def record_id(self) -> str:
        return f"{self.source_kind.value}:{self.source_id}"


@dataclass
class CanonicalSite:
    """
    A de-duplicated site in the output catalog.

    Mutated in place by the field merger whenever a later record matches it.
    canonical_id and coordinates are fixed at creation.
    """
    canonical_id: str
    name: str
    summary: str
    site_type: str
    coordinates: Coordinates

    image_url: Optional[str] = None
    reference_url: Optional[str] = None
    wikidata_id: Optional[str] = None
    osm_id: Optional[str] = None
    country: Optional[str] = None

    contributing_sources: List[SourceRef] = field(default_factory=list)
    quality_score: int = 0
    # Score of the record that supplied the current name
    name_score: int = 0

    @property
    def key(self) -> str:
        return normalize_name(self.name)

    @property
    def source_kinds(self) -> List[str]:
        return [kind for kind, _ in self.contributing_sources]

    def to_dict(self) -> Dict:
        data = {
            'canonical_id': self.canonical_id,
            'name': self.name,
            'summary': self.summary,
            'site_type': self.site_type,
            'coordinates': self.coordinates.to_dict(),
        }
        for attr in ('image_url', 'reference_url', 'wikidata_id', 'osm_id', 'country'):
            value = getattr(self, attr)
            if value:
                data[attr] = value
        data['contributing_sources'] = [
            {'source_kind': kind, 'source_id': source_id}
            for kind, source_id in self.contributing_sources
        ]
        data['quality_score'] = self.quality_score
        data['name_score'] = self.name_score
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'CanonicalSite':
        """Rebuild a site from a previously exported catalog entry."""
        coords = data['coordinates']
        sources = []
        for ref in data.get('contributing_sources', []):
            if isinstance(ref, dict):
                sources.append((str(ref['source_kind']), str(ref['source_id'])))
            else:
                kind, source_id = ref
                sources.append((str(kind), str(source_id)))

        return cls(
            canonical_id=data['canonical_id'],
            name=data.get('name') or '',
            summary=data.get('summary') or '',
            site_type=data.get('site_type') or '',
            coordinates=Coordinates(float(coords['lat']), float(coords['lng'])),
            image_url=data.get('image_url'),
            reference_url=data.get('reference_url'),
            wikidata_id=data.get('wikidata_id'),
            osm_id=data.get('osm_id'),
            country=data.get('country'),
            contributing_sources=sources,
            quality_score=int(data.get('quality_score', 0)),
            name_score=int(data.get('name_score', data.get('quality_score', 0))),
        )


@dataclass
class MergeDecision:
    """Audit record for one candidate evaluation. Report only."""
    source_record_id: str
    matched_canonical_id: Optional[str]
    reason: DecisionReason
    distance_m: Optional[float] = None
    name_similarity: Optional[float] = None
    candidates: List[str] = field(default_factory=list)
    detail: str = ''

    @property
    def is_match(self) -> bool:
        return self.matched_canonical_id is not None

    def to_dict(self) -> Dict:
        data = {
            'source_record_id': self.source_record_id,
            'matched_canonical_id': self.matched_canonical_id,
            'reason': self.reason.value,
            'distance_m': round(self.distance_m, 1) if self.distance_m is not None else None,
            'name_similarity': (round(self.name_similarity, 3)
                                if self.name_similarity is not None else None),
        }
        if self.candidates:
            data['candidates'] = list(self.candidates)
        if self.detail:
            data['detail'] = self.detail
        return data
