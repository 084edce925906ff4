"""
Normalize model tags onto the closed lifestyle taxonomy.
"""

from vibes_pipeline.features.vibes.domain.schema import VibesOutput
from vibes_pipeline.features.vibes.domain.taxonomy import (
    DEFAULT_FILL,
    INFERENCE_RULES,
    MAX_CANONICAL_TAGS,
    MIN_CANONICAL_TAGS,
    LifestyleTag,
    canonical_tag,
)


def _descriptive_text(vibes: VibesOutput) -> str:
    parts = [vibes.tagline, vibes.vibe_statement]
    for feature in vibes.notable_features:
        parts += [feature.feature, feature.location or "", feature.appeal_factor]
    if vibes.aesthetics:
        parts.append(vibes.aesthetics.architectural_style)
        parts.append(vibes.aesthetics.lighting_quality.replace("_", " "))
        parts += vibes.aesthetics.color_palette
    return " ".join(p for p in parts if p)


def infer_tags(text: str) -> list[LifestyleTag]:
    """Tags whose keyword rule matches ``text``, in rule order."""
    return [tag for pattern, tag in INFERENCE_RULES if pattern.search(text)]


def normalize_tags(vibes: VibesOutput) -> list[str]:
    """
    Build the canonical tag list for validated vibes.

    Priority: mapped suggested tags, then mapped lifestyle-fit categories by
    descending score, then keyword inference while fewer than the minimum,
    then the fixed fill list. Padding only happens when the model produced at
    least one candidate tag or lifestyle fit.
    """
    tags: list[LifestyleTag] = []

    def push(tag: LifestyleTag | None) -> None:
        if tag is not None and tag not in tags:
            tags.append(tag)

    for raw in vibes.suggested_tags:
        push(canonical_tag(raw))

    for fit in sorted(vibes.lifestyle_fits, key=lambda f: f.score, reverse=True):
        push(canonical_tag(fit.category))

    if len(tags) < MIN_CANONICAL_TAGS:
        for tag in infer_tags(_descriptive_text(vibes)):
            if len(tags) >= MIN_CANONICAL_TAGS:
                break
            push(tag)

    had_candidates = bool(vibes.suggested_tags or vibes.lifestyle_fits)
    if had_candidates and len(tags) < MIN_CANONICAL_TAGS:
        for tag in DEFAULT_FILL:
            if len(tags) >= MIN_CANONICAL_TAGS:
                break
            push(tag)

    return [tag.value for tag in tags[:MAX_CANONICAL_TAGS]]


def apply_canonical_tags(vibes: VibesOutput) -> VibesOutput:
    return vibes.model_copy(update={"suggested_tags": normalize_tags(vibes)})
