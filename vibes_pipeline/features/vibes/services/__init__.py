"""
Service layer for the vibes feature.

Prompt building, sample selection, JSON and schema repair, tag
normalization, and the generation service that ties them together.
"""

from .generation_service import VibesGenerationService, source_hash

__all__ = ["VibesGenerationService", "source_hash"]
