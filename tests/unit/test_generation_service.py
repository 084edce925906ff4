import json

import pytest

from vibes_pipeline.features.vibes.domain.taxonomy import LIFESTYLE_TAGS
from vibes_pipeline.features.vibes.errors import (
    ConfigurationError,
    NoSamplesError,
    ParseError,
    ProviderError,
    ValidationError,
)
from vibes_pipeline.features.vibes.services.generation_service import (
    VibesGenerationService,
    source_hash,
)


def _service(client, sleep=None):
    if sleep is None:
        return VibesGenerationService(client, max_images=6, max_listings=4)
    return VibesGenerationService(client, max_images=6, max_listings=4, sleep=sleep)


@pytest.mark.asyncio
async def test_generate_success_on_first_attempt(
    scripted_client, vibes_payload, usage, build_property_target
):
    scripted_client.push((vibes_payload, usage(cost=0.002)))
    target = build_property_target()

    result = await _service(scripted_client).generate(target)

    assert result.target_id == target.id
    assert result.repair_applied is False
    assert result.usage.estimated_cost_usd == pytest.approx(0.002)
    assert set(result.vibes.suggested_tags) <= set(LIFESTYLE_TAGS)
    assert 4 <= len(result.vibes.suggested_tags) <= 8
    assert len(result.selection.samples) == 6
    assert scripted_client.calls[0]["temperature"] == 0.7
    assert scripted_client.calls[0]["max_tokens"] == 2000

    user_message = scripted_client.calls[0]["messages"][1]
    image_parts = [part for part in user_message["content"] if part["type"] == "image_url"]
    assert len(image_parts) == 6


@pytest.mark.asyncio
async def test_malformed_json_is_repaired(scripted_client, vibes_payload, usage, build_property_target):
    raw = json.dumps(vibes_payload)[:-1] + ",}"
    scripted_client.push((raw, usage()))

    result = await _service(scripted_client).generate(build_property_target())

    assert result.repair_applied is True
    assert result.raw_output == raw


@pytest.mark.asyncio
async def test_second_attempt_sums_usage(scripted_client, vibes_payload, usage, build_property_target):
    scripted_client.push(("not json at all", usage(cost=0.001, tokens=50)))
    scripted_client.push((vibes_payload, usage(cost=0.003, tokens=70)))

    result = await _service(scripted_client).generate(build_property_target())

    assert [c["temperature"] for c in scripted_client.calls] == [0.7, 0.2]
    assert result.usage.estimated_cost_usd == pytest.approx(0.004)
    assert result.usage.prompt_tokens == 120
    assert result.raw_output == json.dumps(vibes_payload)


@pytest.mark.asyncio
async def test_all_attempts_invalid_raises_with_usage(
    scripted_client, vibes_payload, usage, build_property_target
):
    del vibes_payload["tagline"]
    scripted_client.push((vibes_payload, usage(cost=0.001)))
    scripted_client.push((vibes_payload, usage(cost=0.001)))

    with pytest.raises(ValidationError) as exc_info:
        await _service(scripted_client).generate(build_property_target())

    assert exc_info.value.usage.estimated_cost_usd == pytest.approx(0.002)
    assert len(scripted_client.calls) == 2


@pytest.mark.asyncio
async def test_empty_content_moves_to_next_attempt(
    scripted_client, vibes_payload, usage, build_property_target
):
    scripted_client.push((None, usage(cost=0.001)))
    scripted_client.push(("", usage(cost=0.001)))

    with pytest.raises(ParseError) as exc_info:
        await _service(scripted_client).generate(build_property_target())

    assert "Empty response" in str(exc_info.value)
    assert exc_info.value.usage.estimated_cost_usd == pytest.approx(0.002)


@pytest.mark.asyncio
async def test_no_samples_never_calls_provider(scripted_client, build_property_target):
    with pytest.raises(NoSamplesError):
        await _service(scripted_client).generate(build_property_target(images=[]))

    assert scripted_client.calls == []


@pytest.mark.asyncio
async def test_provider_error_carries_earlier_usage(scripted_client, usage, build_property_target):
    scripted_client.push(("{broken", usage(cost=0.001)))
    scripted_client.push(ProviderError("OpenRouter API error: 500", status=500, retryable=True))

    with pytest.raises(ProviderError) as exc_info:
        await _service(scripted_client).generate(build_property_target())

    assert exc_info.value.usage.estimated_cost_usd == pytest.approx(0.001)


@pytest.mark.asyncio
async def test_neighborhood_uses_text_prompt_and_its_attempts(
    scripted_client, vibes_payload, usage, build_neighborhood_target
):
    scripted_client.push((vibes_payload, usage()))

    result = await _service(scripted_client).generate(build_neighborhood_target())

    call = scripted_client.calls[0]
    assert call["temperature"] == 0.6
    assert call["max_tokens"] == 1200
    assert isinstance(call["messages"][1]["content"], str)
    assert len(result.selection.samples) == 4


@pytest.mark.asyncio
async def test_batch_records_failures_and_continues(
    scripted_client, vibes_payload, usage, build_property_target, recorded_sleep
):
    targets = [
        build_property_target("a"),
        build_property_target("b", images=[]),
        build_property_target("c"),
    ]
    scripted_client.push((vibes_payload, usage(cost=0.01)))
    scripted_client.push((vibes_payload, usage(cost=0.02)))
    progress = []

    result = await _service(scripted_client, sleep=recorded_sleep).generate_batch(
        targets, delay_ms=750, on_progress=lambda done, total: progress.append((done, total))
    )

    assert [r.target_id for r in result.success] == ["a", "c"]
    assert [(f.target_id, f.code) for f in result.failed] == [("b", "no_samples")]
    assert result.total_cost_usd == pytest.approx(0.03)
    assert recorded_sleep.calls == [0.75, 0.75]
    assert progress == [(1, 3), (2, 3), (3, 3)]
    assert len(scripted_client.calls) == 2


@pytest.mark.asyncio
async def test_batch_charges_failed_attempt_tokens(
    scripted_client, usage, build_property_target, recorded_sleep
):
    scripted_client.push(("nope", usage(cost=0.004)))
    scripted_client.push(("still nope", usage(cost=0.006)))

    result = await _service(scripted_client, sleep=recorded_sleep).generate_batch(
        [build_property_target("a")]
    )

    assert result.failed[0].code == "parse_error"
    assert result.total_cost_usd == pytest.approx(0.01)
    assert recorded_sleep.calls == []


@pytest.mark.asyncio
async def test_batch_unexpected_error_is_recorded(scripted_client, build_property_target, recorded_sleep):
    scripted_client.push(RuntimeError("boom"))

    result = await _service(scripted_client, sleep=recorded_sleep).generate_batch(
        [build_property_target("a")]
    )

    assert result.failed[0].code == "unexpected_error"
    assert result.failed[0].error == "boom"


@pytest.mark.asyncio
async def test_batch_configuration_error_aborts(scripted_client, build_property_target, recorded_sleep):
    scripted_client.push(ConfigurationError("OPENROUTER_API_KEY not configured in settings"))

    with pytest.raises(ConfigurationError):
        await _service(scripted_client, sleep=recorded_sleep).generate_batch(
            [build_property_target("a"), build_property_target("b")]
        )


def test_source_hash_is_stable_and_input_sensitive(build_property_target):
    base = build_property_target()

    assert source_hash(base) == source_hash(build_property_target())
    assert source_hash(base) != source_hash(build_property_target(price=651000.0))


def test_source_hash_only_sees_first_five_images(build_property_target):
    images = [f"https://img.example.com/{i}.jpg" for i in range(8)]
    changed_tail = images[:5] + ["https://img.example.com/other.jpg"] * 3

    assert source_hash(build_property_target(images=images)) == source_hash(
        build_property_target(images=changed_tail)
    )


def test_source_hash_for_neighborhoods(build_neighborhood_target):
    base = build_neighborhood_target()

    assert len(source_hash(base)) == 32
    assert source_hash(base) != source_hash(build_neighborhood_target(walk_score=90))
