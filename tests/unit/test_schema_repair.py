import pytest

from vibes_pipeline.features.vibes.errors import ValidationError
from vibes_pipeline.features.vibes.services.schema_repair import (
    ABSENT,
    FIELD_REPAIRS,
    Repaired,
    repair_aesthetics,
    repair_fields,
    repair_suggested_tags,
    validate_vibes,
)


def test_valid_payload_needs_no_repair(vibes_payload):
    vibes, repaired = validate_vibes(vibes_payload)

    assert repaired is False
    assert vibes.tagline == vibes_payload["tagline"]
    assert vibes.to_storage()["vibeStatement"] == vibes_payload["vibeStatement"]


def test_snake_case_keys_are_accepted(vibes_payload):
    vibes_payload["vibe_statement"] = vibes_payload.pop("vibeStatement")

    vibes, repaired = validate_vibes(vibes_payload)

    assert repaired is False
    assert vibes.vibe_statement.startswith("A bright")


def test_overlong_strings_are_cut(vibes_payload):
    vibes_payload["tagline"] = "Sunny " * 30

    vibes, repaired = validate_vibes(vibes_payload)

    assert repaired is True
    assert len(vibes.tagline) <= 80


def test_scores_are_clamped(vibes_payload):
    vibes_payload["primaryVibes"][0]["intensity"] = 1.7
    vibes_payload["lifestyleFits"][1]["score"] = -0.2

    vibes, repaired = validate_vibes(vibes_payload)

    assert repaired is True
    assert vibes.primary_vibes[0].intensity == 1.0
    assert vibes.lifestyle_fits[1].score == 0.0


def test_invalid_enums_fall_back_to_defaults(vibes_payload):
    vibes_payload["primaryVibes"][0]["source"] = "drone shot"
    vibes_payload["aesthetics"]["lightingQuality"] = "moody"
    vibes_payload["aesthetics"]["overallCondition"] = "Needs Work"

    vibes, repaired = validate_vibes(vibes_payload)

    assert repaired is True
    assert vibes.primary_vibes[0].source == "both"
    assert vibes.aesthetics.lighting_quality == "mixed"
    assert vibes.aesthetics.overall_condition == "needs_work"


def test_arrays_are_cut_to_max_cardinality(vibes_payload):
    vibes_payload["emotionalHooks"] = [f"Hook number {i}" for i in range(7)]
    vibes_payload["primaryVibes"] = vibes_payload["primaryVibes"] * 3

    vibes, repaired = validate_vibes(vibes_payload)

    assert repaired is True
    assert len(vibes.emotional_hooks) == 4
    assert len(vibes.primary_vibes) == 4


def test_missing_required_field_raises(vibes_payload):
    del vibes_payload["tagline"]

    with pytest.raises(ValidationError) as exc_info:
        validate_vibes(vibes_payload)

    assert "tagline" in str(exc_info.value)


def test_non_object_payload_raises():
    with pytest.raises(ValidationError):
        validate_vibes(["not", "an", "object"])


def test_aesthetics_is_optional(vibes_payload):
    del vibes_payload["aesthetics"]

    vibes, _ = validate_vibes(vibes_payload)

    assert vibes.aesthetics is None


def test_every_field_has_a_repair():
    assert set(FIELD_REPAIRS) == {
        "tagline",
        "vibeStatement",
        "primaryVibes",
        "lifestyleFits",
        "notableFeatures",
        "aesthetics",
        "emotionalHooks",
        "suggestedTags",
    }


def test_repairs_signal_absence():
    assert repair_aesthetics("sunny") is ABSENT
    assert repair_suggested_tags("Cozy Retreat") is ABSENT
    assert repair_suggested_tags(["Cozy Retreat", 3]) == Repaired(["Cozy Retreat"])


def test_repair_fields_drops_absent_keys(vibes_payload):
    vibes_payload["aesthetics"] = "bright"

    fixed = repair_fields(vibes_payload)

    assert "aesthetics" not in fixed
    assert "aesthetics" in vibes_payload
