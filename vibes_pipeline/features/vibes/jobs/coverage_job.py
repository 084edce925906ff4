"""
Read-only coverage check: which candidates have current vibes.
"""

import argparse
from enum import Enum
from typing import Any

from vibes_pipeline.config import settings
from vibes_pipeline.db.pool import db_pool
from vibes_pipeline.features.vibes.domain.models import CandidateFilters, TargetKind
from vibes_pipeline.features.vibes.errors import ConfigurationError
from vibes_pipeline.features.vibes.repository.vibes_repository import (
    NeighborhoodVibesRepository,
    PropertyVibesRepository,
)
from vibes_pipeline.features.vibes.services.generation_service import source_hash
from vibes_pipeline.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_COVERAGE_LIMIT = 50


class CoverageStatus(str, Enum):
    OK = "OK"
    STALE = "STALE"
    MISSING = "MISSING"


def classify(current_hash: str, stored_hash: str | None) -> CoverageStatus:
    if stored_hash is None:
        return CoverageStatus.MISSING
    if stored_hash != current_hash:
        return CoverageStatus.STALE
    return CoverageStatus.OK


async def check_coverage(
    store: PropertyVibesRepository | NeighborhoodVibesRepository,
    filters: CandidateFilters,
    offset: int = 0,
    limit: int = DEFAULT_COVERAGE_LIMIT,
) -> dict[str, Any]:
    """Classify one page of candidates and return the counts plus per-row status."""
    rows = await store.coverage(filters, offset, limit)
    counts = {status.value.lower(): 0 for status in CoverageStatus}
    entries = []

    for target, stored_hash in rows:
        status = classify(source_hash(target), stored_hash)
        counts[status.value.lower()] += 1
        entries.append({"targetId": target.id, "label": target.label, "status": status.value})
        logger.info("Coverage", target_id=target.id, label=target.label, status=status.value)

    logger.info("Coverage summary", kind=filters.kind.value, offset=offset, checked=len(rows), **counts)
    return {**counts, "checked": len(rows), "entries": entries}


async def run_vibes_coverage(args: argparse.Namespace) -> int:
    """Coverage for the kind chosen with ``--kind`` (properties by default)."""
    if not (settings.SUPABASE_DB_URL or "").strip():
        raise ConfigurationError("Missing required settings: SUPABASE_DB_URL")

    kind = TargetKind(args.kind)
    if kind is TargetKind.PROPERTY:
        store = PropertyVibesRepository()
        min_price = args.min_price if args.min_price is not None else settings.VIBES_BACKFILL_MIN_PRICE
    else:
        store = NeighborhoodVibesRepository(
            sample_limit=args.sample_limit or settings.NEIGHBORHOOD_VIBES_SAMPLE_LIMIT
        )
        min_price = None

    filters = CandidateFilters(
        kind=kind,
        ids=tuple(args.ids) if args.ids else None,
        states=tuple(args.states) if args.states else None,
        min_price=min_price,
    )

    await db_pool.initialize()
    try:
        await check_coverage(
            store, filters, offset=args.offset or 0, limit=args.limit or DEFAULT_COVERAGE_LIMIT
        )
    finally:
        await db_pool.close()
    return 0
