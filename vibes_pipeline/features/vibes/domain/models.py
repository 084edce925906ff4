"""
Domain models for the vibes enrichment feature.

These lightweight dataclasses describe what flows between the entity store,
the generation service and the backfill runner. They avoid business logic so
repositories, services and jobs can share them freely.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

from vibes_pipeline.features.vibes.domain.schema import VibesOutput


class TargetKind(str, Enum):
    PROPERTY = "property"
    NEIGHBORHOOD = "neighborhood"


@dataclass(frozen=True, slots=True)
class PropertyContext:
    """Listing attributes shown to the model next to the photos."""

    address: str
    city: str
    state: str
    price: float
    bedrooms: float
    bathrooms: float
    square_feet: int | None = None
    property_type: str | None = None
    year_built: int | None = None
    lot_size_sqft: int | None = None
    amenities: tuple[str, ...] = ()
    description: str | None = None


@dataclass(frozen=True, slots=True)
class SampleListing:
    """A listing inside a neighborhood, used as a text sample."""

    address: str
    price: float | None = None
    bedrooms: float | None = None
    bathrooms: float | None = None
    property_type: str | None = None


@dataclass(frozen=True, slots=True)
class NeighborhoodContext:
    """Neighborhood attributes shown to the model next to sample listings."""

    name: str
    city: str | None = None
    state: str | None = None
    metro_area: str | None = None
    median_price: float | None = None
    walk_score: int | None = None
    transit_score: int | None = None
    listing_stats: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class EnrichmentTarget:
    """
    Immutable snapshot of one entity scheduled for generation.

    ``samples`` holds image URLs for properties and ``SampleListing`` rows for
    neighborhoods.
    """

    id: str
    kind: TargetKind
    context: PropertyContext | NeighborhoodContext
    samples: tuple[Any, ...] = ()

    @property
    def label(self) -> str:
        ctx = self.context
        if isinstance(ctx, PropertyContext):
            parts = [ctx.address, ctx.city, ctx.state]
        else:
            parts = [ctx.name, ctx.city, ctx.state]
        return ", ".join(p for p in parts if p)


@dataclass(frozen=True, slots=True)
class SelectedSample:
    """A sample picked for the prompt, with the slot it was picked for."""

    index: int
    category: str
    value: Any


@dataclass(frozen=True, slots=True)
class SampleSelection:
    samples: tuple[SelectedSample, ...]
    strategy: str  # comprehensive | balanced | limited | single
    total_available: int


@dataclass(frozen=True, slots=True)
class GenerationAttempt:
    """One entry of the ordered attempt list tried by the generation service."""

    temperature: float
    max_tokens: int


@dataclass(frozen=True, slots=True)
class UsageInfo:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0
    estimated_cost_usd: float = 0.0

    def __add__(self, other: "UsageInfo") -> "UsageInfo":
        return UsageInfo(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
            estimated_cost_usd=self.estimated_cost_usd + other.estimated_cost_usd,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class RawResponse:
    """Provider text payload for one completion. Usage travels next to it."""

    content: str | None
    model: str
    finish_reason: str | None = None


@dataclass(frozen=True, slots=True)
class GenerationResult:
    target_id: str
    vibes: VibesOutput
    usage: UsageInfo
    processing_time_ms: int
    raw_output: str
    repair_applied: bool
    model: str
    selection: SampleSelection


@dataclass(slots=True)
class GenerationFailure:
    target_id: str
    error: str
    code: str
    label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {"targetId": self.target_id, "error": self.error, "code": self.code}
        if self.label:
            data["label"] = self.label
        return data


@dataclass(slots=True)
class BatchResult:
    """Aggregate outcome of processing a list of targets."""

    success: list[GenerationResult] = field(default_factory=list)
    failed: list[GenerationFailure] = field(default_factory=list)
    total_cost_usd: float = 0.0
    total_time_ms: int = 0


@dataclass(frozen=True, slots=True)
class CandidateFilters:
    """Selection filters for one backfill run. Part of the cursor fingerprint."""

    kind: TargetKind
    ids: tuple[str, ...] | None = None
    states: tuple[str, ...] | None = None
    min_price: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "ids": sorted(self.ids) if self.ids else None,
            "states": sorted(self.states) if self.states else None,
            "minPrice": self.min_price,
        }
