"""
Domain layer for the vibes feature.

Immutable target snapshots, the validated output schema and the closed
lifestyle tag taxonomy.
"""

from .models import CandidateFilters, EnrichmentTarget, GenerationResult, TargetKind, UsageInfo
from .schema import VibesOutput
from .taxonomy import LIFESTYLE_TAGS, LifestyleTag

__all__ = [
    "CandidateFilters",
    "EnrichmentTarget",
    "GenerationResult",
    "TargetKind",
    "UsageInfo",
    "VibesOutput",
    "LIFESTYLE_TAGS",
    "LifestyleTag",
]
