"""
Schema validation with field-level repair.

Each top-level field of the vibes payload has one repair function. A repair
returns either ``Repaired(value)`` or ``ABSENT`` (drop the key). Repairs only
fix what can be fixed without guessing content: over-long strings are cut,
scores are clamped into [0, 1], unknown enum values fall back to a fixed
default and arrays are cut to their maximum size. A missing required field
stays missing.
"""

import math
from collections.abc import Callable
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError as SchemaValidationError
from pydantic.alias_generators import to_snake

from vibes_pipeline.features.vibes.domain import schema as s
from vibes_pipeline.features.vibes.domain.schema import VibesOutput
from vibes_pipeline.features.vibes.errors import ValidationError

DEFAULT_VIBE_SOURCE = "both"
DEFAULT_LIGHTING = "mixed"
DEFAULT_CONDITION = "well_maintained"


@dataclass(frozen=True, slots=True)
class Repaired:
    value: Any


class _Absent:
    __slots__ = ()

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()

RepairOutcome = Repaired | _Absent


def _cut(value: Any, limit: int) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value[:limit].rstrip() if len(value) > limit else value
    return value


def _clamp(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return value
    if isinstance(value, int | float) and not math.isnan(value):
        return min(1.0, max(0.0, float(value)))
    return value


def _enum(value: Any, allowed: tuple[str, ...], default: str) -> str:
    if isinstance(value, str):
        normalized = value.strip().lower().replace(" ", "_").replace("-", "_")
        if normalized in allowed:
            return normalized
    return default


def _key(item: dict, alias: str) -> str:
    snake = to_snake(alias)
    return snake if snake in item else alias


def _items(value: Any, limit: int, fix: Callable[[dict], dict]) -> RepairOutcome:
    if not isinstance(value, list):
        return Repaired(value)
    return Repaired([fix(dict(item)) for item in value if isinstance(item, dict)][:limit])


def _apply(item: dict, alias: str, fix: Callable[[Any], Any]) -> None:
    key = _key(item, alias)
    if key in item:
        item[key] = fix(item[key])


def _fix_vibe(item: dict) -> dict:
    _apply(item, "name", lambda v: _cut(v, s.VIBE_NAME_MAX))
    _apply(item, "intensity", _clamp)
    item["source"] = _enum(item.get("source"), s.VIBE_SOURCES, DEFAULT_VIBE_SOURCE)
    return item


def _fix_fit(item: dict) -> dict:
    _apply(item, "category", lambda v: _cut(v, s.CATEGORY_MAX))
    _apply(item, "score", _clamp)
    _apply(item, "reason", lambda v: _cut(v, s.REASON_MAX))
    return item


def _fix_feature(item: dict) -> dict:
    _apply(item, "feature", lambda v: _cut(v, s.FEATURE_MAX))
    _apply(item, "appealFactor", lambda v: _cut(v, s.APPEAL_MAX))
    location = item.get("location")
    if location is not None and not isinstance(location, str):
        item.pop("location")
    elif location is not None:
        item["location"] = _cut(location, s.LOCATION_MAX)
    return item


def repair_tagline(value: Any) -> RepairOutcome:
    return Repaired(_cut(value, s.TAGLINE_LEN[1]))


def repair_vibe_statement(value: Any) -> RepairOutcome:
    return Repaired(_cut(value, s.VIBE_STATEMENT_LEN[1]))


def repair_primary_vibes(value: Any) -> RepairOutcome:
    return _items(value, s.PRIMARY_VIBES_COUNT[1], _fix_vibe)


def repair_lifestyle_fits(value: Any) -> RepairOutcome:
    return _items(value, s.LIFESTYLE_FITS_COUNT[1], _fix_fit)


def repair_notable_features(value: Any) -> RepairOutcome:
    return _items(value, s.NOTABLE_FEATURES_COUNT[1], _fix_feature)


def repair_aesthetics(value: Any) -> RepairOutcome:
    if not isinstance(value, dict):
        return ABSENT
    fixed = dict(value)
    lighting_key = _key(fixed, "lightingQuality")
    fixed[lighting_key] = _enum(fixed.get(lighting_key), s.LIGHTING_QUALITIES, DEFAULT_LIGHTING)
    condition_key = _key(fixed, "overallCondition")
    fixed[condition_key] = _enum(fixed.get(condition_key), s.OVERALL_CONDITIONS, DEFAULT_CONDITION)
    palette_key = _key(fixed, "colorPalette")
    palette = fixed.get(palette_key)
    if isinstance(palette, list):
        fixed[palette_key] = [
            _cut(tone, s.COLOR_MAX) for tone in palette if isinstance(tone, str)
        ][: s.MAX_COLOR_PALETTE]
    elif palette is not None:
        fixed.pop(palette_key)
    style_key = _key(fixed, "architecturalStyle")
    style = fixed.get(style_key)
    fixed[style_key] = _cut(style, s.STYLE_MAX) if isinstance(style, str) else ""
    return Repaired(fixed)


def repair_emotional_hooks(value: Any) -> RepairOutcome:
    if not isinstance(value, list):
        return Repaired(value)
    hooks = [_cut(hook, s.HOOK_MAX) for hook in value if isinstance(hook, str) and hook.strip()]
    return Repaired(hooks[: s.EMOTIONAL_HOOKS_COUNT[1]])


def repair_suggested_tags(value: Any) -> RepairOutcome:
    if not isinstance(value, list):
        return ABSENT
    return Repaired([tag for tag in value if isinstance(tag, str)][: s.MAX_SUGGESTED_TAGS])


FIELD_REPAIRS: MappingProxyType[str, Callable[[Any], RepairOutcome]] = MappingProxyType(
    {
        "tagline": repair_tagline,
        "vibeStatement": repair_vibe_statement,
        "primaryVibes": repair_primary_vibes,
        "lifestyleFits": repair_lifestyle_fits,
        "notableFeatures": repair_notable_features,
        "aesthetics": repair_aesthetics,
        "emotionalHooks": repair_emotional_hooks,
        "suggestedTags": repair_suggested_tags,
    }
)


def repair_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Apply every field repair to a copy of ``data``."""
    fixed = dict(data)
    for alias, repair in FIELD_REPAIRS.items():
        for key in (alias, to_snake(alias)):
            if key not in fixed:
                continue
            outcome = repair(fixed[key])
            if outcome is ABSENT:
                del fixed[key]
            else:
                fixed[key] = outcome.value
    return fixed


def _summarize(error: SchemaValidationError, limit: int = 3) -> str:
    parts = []
    for item in error.errors()[:limit]:
        loc = ".".join(str(p) for p in item["loc"]) or "<root>"
        parts.append(f"{loc}: {item['msg']}")
    more = error.error_count() - limit
    if more > 0:
        parts.append(f"(+{more} more)")
    return "; ".join(parts)


def validate_vibes(data: Any) -> tuple[VibesOutput, bool]:
    """
    Validate a parsed payload, repairing fields once if the first pass fails.

    Returns:
        ``(vibes, repaired)``

    Raises:
        ValidationError: payload still violates the schema after repair
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Expected a JSON object, got {type(data).__name__}")

    try:
        return VibesOutput.model_validate(data), False
    except SchemaValidationError:
        pass

    fixed = repair_fields(data)
    try:
        return VibesOutput.model_validate(fixed), True
    except SchemaValidationError as e:
        raise ValidationError(f"Schema validation failed: {_summarize(e)}") from e
