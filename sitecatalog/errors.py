"""
Error taxonomy for the merge pipeline.

Record-level errors are recovered by the orchestrator: the record is dropped,
counted and listed in the merge report. Only MalformedBatch aborts anything,
and then only the batch it was raised for.
"""

from typing import Optional


class CatalogError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(CatalogError):
    """Invalid merge configuration."""


class RecordRejected(CatalogError):
    """A source record was refused by the validity filter."""

    reason = 'Rejected'

    def __init__(self, detail: str = '', record_id: Optional[str] = None):
        self.detail = detail
        self.record_id = record_id
        message = f"{self.reason}: {detail}" if detail else self.reason
        if record_id:
            message = f"{record_id}: {message}"
        super().__init__(message)


class InvalidCoordinates(RecordRejected):
    reason = 'InvalidCoordinates'


class GarbageContent(RecordRejected):
    reason = 'GarbageContent'


class DisallowedRegion(RecordRejected):
    reason = 'DisallowedRegion'


class OffLandCoordinates(RecordRejected):
    """Only raised when the off-land policy is 'reject'."""
    reason = 'OffLand'


class EnrichmentUnavailable(CatalogError):
    """Optional enrichment could not be fetched. Never fatal."""


class SlugCollisionExhausted(CatalogError):
    """No free suffix left for a slug. Fatal for that record only."""

    def __init__(self, base_slug: str, max_suffix: int):
        self.base_slug = base_slug
        self.max_suffix = max_suffix
        super().__init__(f"No free slug for '{base_slug}' after {max_suffix} suffixes")


class MalformedBatch(CatalogError):
    """Batch structure is unusable (e.g. no 'sites' collection)."""
