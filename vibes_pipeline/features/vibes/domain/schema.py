"""
Strict output schema for generated vibes.

The model is asked for camelCase JSON; the pydantic models accept either the
camelCase aliases or the snake_case field names and dump back to camelCase
for storage.
"""

from typing import Annotated, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

LightingQuality = Literal[
    "natural_abundant",
    "natural_moderate",
    "artificial_warm",
    "artificial_cool",
    "mixed",
]
OverallCondition = Literal["pristine", "well_maintained", "dated_but_clean", "needs_work"]
VibeSource = Literal["interior", "exterior", "both"]

LIGHTING_QUALITIES: tuple[str, ...] = get_args(LightingQuality)
OVERALL_CONDITIONS: tuple[str, ...] = get_args(OverallCondition)
VIBE_SOURCES: tuple[str, ...] = get_args(VibeSource)

# Length and cardinality bounds shared with the field repairs
TAGLINE_LEN = (10, 80)
VIBE_STATEMENT_LEN = (20, 200)
PRIMARY_VIBES_COUNT = (2, 4)
LIFESTYLE_FITS_COUNT = (2, 6)
NOTABLE_FEATURES_COUNT = (2, 8)
EMOTIONAL_HOOKS_COUNT = (2, 4)
MAX_SUGGESTED_TAGS = 8
MAX_COLOR_PALETTE = 4

VIBE_NAME_MAX = 50
CATEGORY_MAX = 50
REASON_MAX = 200
FEATURE_MAX = 100
LOCATION_MAX = 50
APPEAL_MAX = 200
COLOR_MAX = 30
STYLE_MAX = 50
HOOK_MAX = 100

ColorTone = Annotated[str, StringConstraints(max_length=COLOR_MAX)]
EmotionalHook = Annotated[str, StringConstraints(max_length=HOOK_MAX)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Vibe(_CamelModel):
    name: str = Field(min_length=1, max_length=VIBE_NAME_MAX)
    intensity: float = Field(ge=0, le=1)
    source: VibeSource


class LifestyleFit(_CamelModel):
    category: str = Field(min_length=1, max_length=CATEGORY_MAX)
    score: float = Field(ge=0, le=1)
    reason: str = Field(min_length=1, max_length=REASON_MAX)


class NotableFeature(_CamelModel):
    feature: str = Field(min_length=1, max_length=FEATURE_MAX)
    location: str | None = Field(default=None, max_length=LOCATION_MAX)
    appeal_factor: str = Field(min_length=1, max_length=APPEAL_MAX)


class Aesthetics(_CamelModel):
    lighting_quality: LightingQuality
    color_palette: list[ColorTone] = Field(default_factory=list, max_length=MAX_COLOR_PALETTE)
    architectural_style: str = Field(max_length=STYLE_MAX)
    overall_condition: OverallCondition


class VibesOutput(_CamelModel):
    """Validated vibes for one property or neighborhood."""

    tagline: str = Field(min_length=TAGLINE_LEN[0], max_length=TAGLINE_LEN[1])
    vibe_statement: str = Field(min_length=VIBE_STATEMENT_LEN[0], max_length=VIBE_STATEMENT_LEN[1])
    primary_vibes: list[Vibe] = Field(
        min_length=PRIMARY_VIBES_COUNT[0], max_length=PRIMARY_VIBES_COUNT[1]
    )
    lifestyle_fits: list[LifestyleFit] = Field(
        min_length=LIFESTYLE_FITS_COUNT[0], max_length=LIFESTYLE_FITS_COUNT[1]
    )
    notable_features: list[NotableFeature] = Field(
        min_length=NOTABLE_FEATURES_COUNT[0], max_length=NOTABLE_FEATURES_COUNT[1]
    )
    aesthetics: Aesthetics | None = None
    emotional_hooks: list[EmotionalHook] = Field(
        min_length=EMOTIONAL_HOOKS_COUNT[0], max_length=EMOTIONAL_HOOKS_COUNT[1]
    )
    suggested_tags: list[str] = Field(default_factory=list, max_length=MAX_SUGGESTED_TAGS)

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
