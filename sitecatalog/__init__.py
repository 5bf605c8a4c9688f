"""
Megalithic site catalog package.

Merges site snapshots from knowledge-base, crowd-geo and manual sources into
one de-duplicated catalog with stable slugs and a merge report.
"""

from .config import load_config
from .models import CanonicalSite, Coordinates, DecisionReason, MergeDecision, SourceKind, SourceRecord
from .pipeline import Pipeline, PipelineResult

__version__ = "0.1.0"
__all__ = [
    "load_config",
    "CanonicalSite",
    "Coordinates",
    "DecisionReason",
    "MergeDecision",
    "SourceKind",
    "SourceRecord",
    "Pipeline",
    "PipelineResult",
]
