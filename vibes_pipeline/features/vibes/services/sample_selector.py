"""
Deterministic sample selection.

Listing galleries follow a loose convention (facade first, kitchen and living
shots early, bedrooms and baths mid-gallery, yard shots at the end), so
images are picked by position per room category and the leftover slots are
filled from a shuffle seeded by the target id. The same target always yields
the same subset in the same order.
"""

import hashlib
import random
from collections import defaultdict

from vibes_pipeline.features.vibes.domain.models import (
    EnrichmentTarget,
    NeighborhoodContext,
    PropertyContext,
    SampleListing,
    SampleSelection,
    SelectedSample,
)

DEFAULT_MAX_IMAGES = 18
DEFAULT_MAX_LISTINGS = 12

HOUSE_TYPES = frozenset({"single_family", "house", "townhome"})
YARD_MIN_LOT_SQFT = 3000


def seed_for(target_id: str) -> int:
    """Stable numeric seed derived from the target id."""
    return int.from_bytes(hashlib.sha256(target_id.encode("utf-8")).digest()[:8], "big")


def _strategy(count: int) -> str:
    if count >= 12:
        return "comprehensive"
    if count >= 6:
        return "balanced"
    if count >= 2:
        return "limited"
    return "single"


def select_images(
    target_id: str,
    images: list[str] | tuple[str, ...] | None,
    property_type: str | None = None,
    lot_size_sqft: int | None = None,
    max_images: int = DEFAULT_MAX_IMAGES,
) -> SampleSelection:
    """Pick up to ``max_images`` gallery images, favouring room diversity."""
    images = list(images or [])
    total = len(images)
    if total == 0 or max_images <= 0:
        return SampleSelection(samples=(), strategy="single", total_available=total)

    selected: list[SelectedSample] = []
    used: set[int] = set()

    def add(index: int, category: str) -> bool:
        if 0 <= index < total and index not in used and len(selected) < max_images:
            selected.append(SelectedSample(index=index, category=category, value=images[index]))
            used.add(index)
            return True
        return False

    def add_many(candidates: list[int], category: str, count: int) -> None:
        added = 0
        for index in candidates:
            if added >= count or len(selected) >= max_images:
                break
            if add(index, category):
                added += 1

    add(0, "hero")
    if total == 1:
        return SampleSelection(samples=tuple(selected), strategy="single", total_available=total)

    add_many([3, 4, 5, 2, 6], "kitchen", 2)
    add_many([1, 2, 4, 5], "living", 2)
    if total > 5:
        add_many([6, 7, 8, 9, 10, 11, 5], "bedroom", 3)
    if total > 7:
        add_many([9, 10, 11, 12, 8, 13, 14], "bathroom", 2)

    if property_type in HOUSE_TYPES and lot_size_sqft and lot_size_sqft > YARD_MIN_LOT_SQFT:
        tail = [i for i in (total - 1, total - 2, total - 3, total - 4) if i > 0]
        add_many(tail, "outdoor", 2)

    if total > 10:
        add_many([5, 6, 4, 7], "dining", 1)
    if total > 12:
        add_many([12, 13, 14, 11, 15], "office", 1)
    if total > 15:
        add_many([total - 5, total - 6, total - 4], "garage", 1)

    if len(selected) < min(max_images, total):
        unused = [i for i in range(total) if i not in used]
        random.Random(seed_for(target_id)).shuffle(unused)
        for index in unused:
            if not add(index, "additional"):
                break

    return SampleSelection(
        samples=tuple(selected), strategy=_strategy(len(selected)), total_available=total
    )


def select_listings(
    target_id: str,
    listings: list[SampleListing] | tuple[SampleListing, ...],
    max_listings: int = DEFAULT_MAX_LISTINGS,
) -> SampleSelection:
    """
    Pick up to ``max_listings`` neighborhood listings.

    Listings are grouped by property type and drawn round-robin so a block of
    condos does not crowd out the houses; order inside each group is a seeded
    shuffle.
    """
    listings = list(listings)
    total = len(listings)
    if total == 0 or max_listings <= 0:
        return SampleSelection(samples=(), strategy="single", total_available=total)

    rng = random.Random(seed_for(target_id))
    groups: dict[str, list[int]] = defaultdict(list)
    for index, listing in enumerate(listings):
        groups[listing.property_type or "unknown"].append(index)
    for indices in groups.values():
        rng.shuffle(indices)

    selected: list[SelectedSample] = []
    ordered_groups = sorted(groups.items())
    while len(selected) < min(max_listings, total):
        for category, indices in ordered_groups:
            if indices and len(selected) < max_listings:
                index = indices.pop(0)
                selected.append(SelectedSample(index=index, category=category, value=listings[index]))

    return SampleSelection(
        samples=tuple(selected), strategy=_strategy(len(selected)), total_available=total
    )


def select_samples(
    target: EnrichmentTarget,
    max_images: int = DEFAULT_MAX_IMAGES,
    max_listings: int = DEFAULT_MAX_LISTINGS,
) -> SampleSelection:
    ctx = target.context
    if isinstance(ctx, PropertyContext):
        return select_images(
            target.id, list(target.samples), ctx.property_type, ctx.lot_size_sqft, max_images
        )
    if isinstance(ctx, NeighborhoodContext):
        return select_listings(target.id, list(target.samples), max_listings)
    raise TypeError(f"Unsupported target context: {type(ctx).__name__}")
