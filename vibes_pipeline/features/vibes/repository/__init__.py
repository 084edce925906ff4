"""
Persistence for vibes candidates and results.
"""

from .vibes_repository import EntityStore, NeighborhoodVibesRepository, PropertyVibesRepository

__all__ = ["EntityStore", "PropertyVibesRepository", "NeighborhoodVibesRepository"]
