"""
Candidate matching: find the canonical site a record duplicates, if any.

Matching rules (any one suffices):
- distance < near-certain threshold (50 m)
- distance < name-corroborated threshold (500 m) and name similarity > 0.5
- equal normalized keys, or one key containing the other, within the name-key
  radius (100 m)

Radii are searched in increasing order and the search stops at the first
radius that yields a qualifying candidate. The nearest qualifying candidate
wins; when more than one qualifies the decision is flagged as a conflict.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..constants import (
    MIN_SUBSTRING_KEY_LENGTH,
    NAME_CORROBORATED_M,
    NAME_KEY_MATCH_M,
    NAME_SIMILARITY_THRESHOLD,
    NEAR_CERTAIN_M,
)
from ..models import CanonicalSite, DecisionReason, SourceRecord
from ..normalize.names import is_generic_name, name_similarity
from .spatial_index import SpatialIndex

logger = logging.getLogger(__name__)


@dataclass
class MatchResult:
    """Outcome of matching one record against the catalog."""
    reason: DecisionReason
    site_id: Optional[str] = None
    distance_m: Optional[float] = None
    similarity: Optional[float] = None
    # Every qualifying site id, nearest first (only filled for conflicts)
    candidates: List[str] = field(default_factory=list)

    @property
    def is_match(self) -> bool:
        return self.site_id is not None


def keys_match(key_a: str, key_b: str, min_length: int = MIN_SUBSTRING_KEY_LENGTH) -> bool:
    """Equal keys, or the shorter (at least min_length long) inside the longer."""
    if not key_a or not key_b:
        return False
    if key_a == key_b:
        return True
    shorter, longer = sorted((key_a, key_b), key=len)
    return len(shorter) >= min_length and shorter in longer


class CandidateMatcher:
    """
    Tiered proximity and name matcher over the orchestrator's sites.

    Args:
        index: Spatial index of canonical site positions
        sites: canonical_id -> CanonicalSite, the same collection the index covers
    """

    def __init__(
        self,
        index: SpatialIndex,
        sites: Dict[str, CanonicalSite],
        near_certain_m: float = NEAR_CERTAIN_M,
        name_corroborated_m: float = NAME_CORROBORATED_M,
        name_key_m: float = NAME_KEY_MATCH_M,
        similarity_threshold: float = NAME_SIMILARITY_THRESHOLD,
        min_substring_key_length: int = MIN_SUBSTRING_KEY_LENGTH,
    ):
        self.index = index
        self.sites = sites
        self.near_certain_m = near_certain_m
        self.name_corroborated_m = name_corroborated_m
        self.name_key_m = name_key_m
        self.similarity_threshold = similarity_threshold
        self.min_substring_key_length = min_substring_key_length

    @property
    def tiers(self) -> Tuple[float, ...]:
        return tuple(sorted({self.near_certain_m, self.name_corroborated_m,
                             self.name_key_m}))

    def qualify(self, record: SourceRecord, site: CanonicalSite,
                distance_m: float) -> Tuple[Optional[DecisionReason], float]:
        """
        Apply the matching rules to one candidate.

        Returns:
            (reason, similarity); reason is None if the candidate does not qualify
        """
        site_key = site.key
        similarity = name_similarity(record.key, site_key)

        if distance_m < self.near_certain_m:
            return DecisionReason.NEAR_CERTAIN_DISTANCE, similarity

        # Placeholder names carry no identity
        if is_generic_name(record.raw_name) or is_generic_name(site.name):
            return None, similarity

        if distance_m < self.name_corroborated_m and similarity > self.similarity_threshold:
            return DecisionReason.NAME_CORROBORATED, similarity

        if (distance_m < self.name_key_m
                and keys_match(record.key, site_key, self.min_substring_key_length)):
            return DecisionReason.NAME_KEY_MATCH, similarity

        return None, similarity

    def match(self, record: SourceRecord) -> MatchResult:
        lat, lng = record.coordinates

        for radius in self.tiers:
            qualifying = []
            for site_id, distance in self.index.query(lat, lng, radius):
                reason, similarity = self.qualify(record, self.sites[site_id], distance)
                if reason is not None:
                    qualifying.append((site_id, distance, similarity, reason))

            if not qualifying:
                continue

            # Query results are already nearest first, ties in creation order
            site_id, distance, similarity, reason = qualifying[0]
            if len(qualifying) > 1:
                candidates = [q[0] for q in qualifying]
                logger.debug(f"{record.record_id}: {len(candidates)} qualifying sites {candidates}")
                return MatchResult(DecisionReason.CONFLICTING_MATCH, site_id, distance,
                                   similarity, candidates)

            return MatchResult(reason, site_id, distance, similarity)

        return MatchResult(DecisionReason.NEW_SITE)
