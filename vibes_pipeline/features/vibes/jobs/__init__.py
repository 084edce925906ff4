"""
Job runners for the vibes feature.
"""

from .backfill_job import run_neighborhood_vibes, run_property_vibes
from .coverage_job import run_vibes_coverage

__all__ = ["run_property_vibes", "run_neighborhood_vibes", "run_vibes_coverage"]
