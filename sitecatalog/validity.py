"""
Validity filter: reject records that are unlikely to be genuine heritage sites.

Runs before matching so that garbage never seeds a canonical entry or drags
a real site's fields toward it. Checks, in order:
- Coordinates within Earth-surface range
- Unlabeled knowledge-base entities (name is a bare Q-id)
- Lexical garbage: retail, hospitality, religious and other modern buildings,
  plus spam-like text. Overridden by heritage site types and archaeological
  vocabulary.
- Region allow-list for configured source kinds
- Land plausibility (flag or reject, per policy)
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .constants import (
    ARCHAEOLOGICAL_TERMS,
    GENERIC_SITE_TYPE,
    HERITAGE_SITE_TYPES,
    MEGALITHIC_REGIONS,
)
from .errors import (
    DisallowedRegion,
    GarbageContent,
    InvalidCoordinates,
    OffLandCoordinates,
    RecordRejected,
)
from .geo import LandMask
from .models import SourceRecord
from .normalize.names import is_generic_summary, strip_diacritics

logger = logging.getLogger(__name__)

RETAIL_PATTERNS = [
    re.compile(r'\b(supermarket|hypermarket|hypermarche|grocery|shopping|mall|retail|store|subsidiary)\b'),
    re.compile(r'\b(walmart|kroger|trader joe|costco|safeway|publix)\b'),
    re.compile(r'\b(tesco|sainsbury|asda|morrisons|waitrose)\b'),
    re.compile(r'\b(lidl|aldi|rewe|edeka|kaufland|netto|e-center)\b'),
    re.compile(r'\b(carrefour|leclerc|auchan|intermarche|super u|hyper u|monoprix|franprix|castorama)\b'),
    re.compile(r'\b(ikea|decathlon|bricomarche|leroy merlin)\b'),
]

HOSPITALITY_PATTERNS = [
    re.compile(r'\b(cafe|bakery|restaurant|bar|pub|boucherie)\b'),
    re.compile(r'\b(hotel|motel|inn|hostel|guesthouse)\b'),
]

RELIGIOUS_PATTERNS = [
    re.compile(r'\bchurch(?!yard)'),  # churchyards often hold older stones
    re.compile(r'\b(cathedral|mosque|synagogue|chapel)\b'),
]

MODERN_BUILDING_PATTERNS = [
    re.compile(r'\b(factory|warehouse|company|corporation|ltd|inc)\b'),
    re.compile(r'\b(railway|train|bus|petrol|gas|fire|police) station\b'),
    re.compile(r'\b(school|university|college|hospital|clinic)\b'),
    re.compile(r'\b(bank|insurance|apartment|residential|substation|umspannwerk)\b'),
]

SPAM_PATTERNS = [
    re.compile(r'(.)\1{4,}'),  # aaaaa, !!!!!
    re.compile(r'\b(buy now|click here|winner|prize|casino|bitcoin|viagra)\b', re.IGNORECASE),
    re.compile(r'https?://.{0,20}\.(ru|cn|tk|ml|ga|cf)\b', re.IGNORECASE),
]

GARBAGE_PATTERN_GROUPS = (
    ('retail', RETAIL_PATTERNS),
    ('hospitality', HOSPITALITY_PATTERNS),
    ('religious building', RELIGIOUS_PATTERNS),
    ('modern building', MODERN_BUILDING_PATTERNS),
)

ARCHAEOLOGICAL_RX = re.compile('|'.join(ARCHAEOLOGICAL_TERMS), re.IGNORECASE)
UNLABELED_ENTITY_RX = re.compile(r'^Q\d+$')

ALL_CAPS_MIN_LETTERS = 8


@dataclass
class ValidityResult:
    """Outcome of the validity filter for one record."""
    ok: bool
    reason: Optional[str] = None
    detail: str = ''
    on_land: bool = True


def validate_coordinates(lat: float, lng: float) -> None:
    """Raise InvalidCoordinates unless the point is on the Earth's surface grid."""
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidCoordinates(f"non-finite coordinates ({lat}, {lng})")
    if not -90 <= lat <= 90:
        raise InvalidCoordinates(f"latitude {lat} outside [-90, 90]")
    if not -180 <= lng <= 180:
        raise InvalidCoordinates(f"longitude {lng} outside [-180, 180]")


def _is_shouting(text: str) -> bool:
    letters = [c for c in text if c.isalpha()]
    return len(letters) >= ALL_CAPS_MIN_LETTERS and all(c.isupper() for c in letters)


def find_garbage(name: str, summary: str, site_type: str = '') -> Optional[str]:
    """
    Return a description of the first garbage pattern matched, or None.

    Category patterns run on the diacritic-stripped lowercase text of name,
    summary and site type; spam patterns run on name and summary as given.
    """
    combined = strip_diacritics(f"{name} {summary} {site_type}").lower()

    for label, patterns in GARBAGE_PATTERN_GROUPS:
        for pattern in patterns:
            match = pattern.search(combined)
            if match:
                return f"{label} ({match.group(0)})"

    for text in (name, summary):
        if _is_shouting(text):
            return "spam (all caps text)"
        for pattern in SPAM_PATTERNS:
            if pattern.search(text):
                return f"spam ({pattern.pattern})"

    return None


def is_heritage_allowed(name: str, summary: str, site_type: str) -> bool:
    """
    Heritage evidence that always overrides a garbage match.

    Loader fallbacks (the generic site type and boilerplate summary) are not
    evidence.
    """
    site_type = (site_type or '').lower()
    if site_type != GENERIC_SITE_TYPE and any(t in site_type for t in HERITAGE_SITE_TYPES):
        return True
    if not is_generic_summary(summary) and ARCHAEOLOGICAL_RX.search(summary):
        return True
    return 'stone' in (name or '').lower()


def detect_garbage(record: SourceRecord) -> None:
    """Raise GarbageContent if the record looks like a non-heritage place or spam."""
    if UNLABELED_ENTITY_RX.match(record.raw_name or ''):
        raise GarbageContent("unlabeled knowledge-base entity")

    hit = find_garbage(record.raw_name, record.raw_summary, record.site_type_label)
    if hit is None:
        return

    if is_heritage_allowed(record.raw_name, record.raw_summary, record.site_type_label):
        logger.debug(f"{record.record_id}: garbage pattern {hit} overridden by heritage evidence")
        return

    raise GarbageContent(hit)


class ValidityFilter:
    """Plausibility and spam checks applied to every normalized record."""

    OFF_LAND_POLICIES = ('flag', 'reject')

    def __init__(
        self,
        off_land_policy: str = 'flag',
        region_filter_kinds: Iterable[str] = ('knowledge_base',),
        regions: Iterable[str] = MEGALITHIC_REGIONS,
        land_mask: Optional[LandMask] = None,
    ):
        if off_land_policy not in self.OFF_LAND_POLICIES:
            raise ValueError(f"Unknown off-land policy: {off_land_policy}")
        self.off_land_policy = off_land_policy
        self.region_filter_kinds = set(region_filter_kinds)
        self.regions = frozenset(regions)
        self.land_mask = land_mask or LandMask()

    def _check_region(self, record: SourceRecord) -> None:
        if record.source_kind.value not in self.region_filter_kinds:
            return
        if record.country and record.country not in self.regions:
            raise DisallowedRegion(f"country '{record.country}' has no recorded megaliths")

    def validate(self, record: SourceRecord) -> bool:
        """
        Run all checks.

        Returns:
            True if the point lies inside a land box, False if it was only
            flagged as off-land.

        Raises:
            RecordRejected subclass describing the first failed check.
        """
        lat, lng = record.coordinates
        validate_coordinates(lat, lng)
        detect_garbage(record)
        self._check_region(record)

        on_land = self.land_mask.is_on_land(lat, lng)
        if not on_land and self.off_land_policy == 'reject':
            raise OffLandCoordinates(f"({lat}, {lng}) is outside every land box")
        return on_land

    def check(self, record: SourceRecord) -> ValidityResult:
        """Like validate(), but returns a result instead of raising."""
        try:
            on_land = self.validate(record)
        except RecordRejected as e:
            logger.debug(f"Rejected {record.record_id}: {e.reason} {e.detail}")
            return ValidityResult(ok=False, reason=e.reason, detail=e.detail)

        return ValidityResult(ok=True, on_land=on_land)


def partition(records: List[SourceRecord], validity: ValidityFilter) -> Tuple[List, List]:
    """Split records into (accepted, [(record, result), ...] rejected)."""
    accepted, rejected = [], []
    for record in records:
        result = validity.check(record)
        if result.ok:
            accepted.append(record)
        else:
            rejected.append((record, result))
    return accepted, rejected
