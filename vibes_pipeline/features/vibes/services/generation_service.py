"""
Vibes generation service.

Turns one enrichment target into validated, tag-normalized vibes: sample
selection, prompt construction, multi-attempt completion, JSON and schema
repair. Holds no state between calls.
"""

import asyncio
import hashlib
import json
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from vibes_pipeline.config import settings
from vibes_pipeline.features.vibes.domain.models import (
    BatchResult,
    EnrichmentTarget,
    GenerationAttempt,
    GenerationFailure,
    GenerationResult,
    PropertyContext,
    TargetKind,
    UsageInfo,
)
from vibes_pipeline.features.vibes.errors import (
    ConfigurationError,
    NoSamplesError,
    ParseError,
    ProviderError,
    ValidationError,
    VibesPipelineError,
)
from vibes_pipeline.features.vibes.providers.openrouter_client import (
    OpenRouterClient,
    create_vision_message,
)
from vibes_pipeline.features.vibes.services.json_repair import parse_model_json
from vibes_pipeline.features.vibes.services.prompts import build_prompt
from vibes_pipeline.features.vibes.services.sample_selector import select_samples
from vibes_pipeline.features.vibes.services.schema_repair import validate_vibes
from vibes_pipeline.features.vibes.services.tag_normalizer import apply_canonical_tags
from vibes_pipeline.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

ATTEMPTS: dict[TargetKind, tuple[GenerationAttempt, ...]] = {
    TargetKind.PROPERTY: (
        GenerationAttempt(temperature=0.7, max_tokens=2000),
        GenerationAttempt(temperature=0.2, max_tokens=2000),
    ),
    TargetKind.NEIGHBORHOOD: (
        GenerationAttempt(temperature=0.6, max_tokens=1200),
        GenerationAttempt(temperature=0.2, max_tokens=1200),
    ),
}

ProgressCallback = Callable[[int, int], None]


def _plain_number(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def source_hash(target: EnrichmentTarget) -> str:
    """
    md5 over the inputs that drive generation.

    A stored result whose hash matches is up to date; anything else is stale.
    """
    ctx = target.context
    if isinstance(ctx, PropertyContext):
        payload: dict[str, Any] = {
            "address": ctx.address,
            "city": ctx.city,
            "property_type": ctx.property_type,
            "bedrooms": _plain_number(ctx.bedrooms),
            "bathrooms": _plain_number(ctx.bathrooms),
            "square_feet": ctx.square_feet,
            "price": _plain_number(ctx.price),
            "year_built": ctx.year_built,
            "images": list(target.samples[:5]),
        }
    else:
        payload = {
            "name": ctx.name,
            "city": ctx.city,
            "state": ctx.state,
            "metroArea": ctx.metro_area,
            "medianPrice": _plain_number(ctx.median_price),
            "walkScore": ctx.walk_score,
            "transitScore": ctx.transit_score,
            "sampleProperties": [
                {
                    "address": listing.address,
                    "price": _plain_number(listing.price),
                    "bedrooms": _plain_number(listing.bedrooms),
                    "bathrooms": _plain_number(listing.bathrooms),
                    "propertyType": listing.property_type,
                }
                for listing in target.samples[:10]
            ],
        }
    encoded = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return hashlib.md5(encoded.encode("utf-8")).hexdigest()


class VibesGenerationService:
    """Generate vibes for properties and neighborhoods."""

    def __init__(
        self,
        client: OpenRouterClient,
        max_images: int | None = None,
        max_listings: int | None = None,
        attempts: dict[TargetKind, Sequence[GenerationAttempt]] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.max_images = max_images or settings.VIBES_MAX_IMAGES
        self.max_listings = max_listings or settings.NEIGHBORHOOD_VIBES_SAMPLE_LIMIT
        self.attempts = attempts or ATTEMPTS
        self._sleep = sleep

    def _messages(self, target: EnrichmentTarget, selection) -> list[dict[str, Any]]:
        prompt = build_prompt(target, selection)
        if prompt.image_urls:
            user = create_vision_message(prompt.user_prompt, prompt.image_urls, detail="low")
        else:
            user = {"role": "user", "content": prompt.user_prompt}
        return [{"role": "system", "content": prompt.system_prompt}, user]

    async def generate(self, target: EnrichmentTarget) -> GenerationResult:
        """
        Generate vibes for one target.

        Raises:
            NoSamplesError: the target has no images or listings to show
            ParseError / ValidationError: no attempt produced valid output
            ProviderError: the provider failed after its own retries
        """
        started = time.perf_counter()

        selection = select_samples(target, self.max_images, self.max_listings)
        if not selection.samples:
            raise NoSamplesError(f"No samples available for {target.kind.value} {target.id}")

        messages = self._messages(target, selection)
        attempts = self.attempts[target.kind]

        usage = UsageInfo()
        raw_output = ""
        last_error: VibesPipelineError | None = None

        for number, attempt in enumerate(attempts, start=1):
            try:
                raw, call_usage = await self.client.complete(
                    messages,
                    temperature=attempt.temperature,
                    max_tokens=attempt.max_tokens,
                )
            except ProviderError as e:
                e.usage = usage + e.usage if e.usage else usage
                raise

            usage = usage + call_usage

            if not raw.content:
                last_error = ParseError("Empty response from LLM")
                logger.warning(
                    "Empty model response",
                    target_id=target.id,
                    attempt=number,
                    finish_reason=raw.finish_reason,
                )
                continue

            raw_output = raw.content
            try:
                parsed, json_repaired = parse_model_json(raw.content)
                vibes, schema_repaired = validate_vibes(parsed)
            except (ParseError, ValidationError) as e:
                last_error = e
                logger.warning(
                    "Model output rejected",
                    target_id=target.id,
                    attempt=number,
                    temperature=attempt.temperature,
                    code=e.code,
                    error=str(e),
                )
                continue

            vibes = apply_canonical_tags(vibes)
            processing_time_ms = int((time.perf_counter() - started) * 1000)

            logger.debug(
                "Vibes generated",
                target_id=target.id,
                attempt=number,
                repaired=json_repaired or schema_repaired,
                tags=len(vibes.suggested_tags),
                cost_usd=round(usage.estimated_cost_usd, 6),
            )

            return GenerationResult(
                target_id=target.id,
                vibes=vibes,
                usage=usage,
                processing_time_ms=processing_time_ms,
                raw_output=raw_output,
                repair_applied=json_repaired or schema_repaired,
                model=raw.model,
                selection=selection,
            )

        error = last_error or ParseError("No generation attempts configured")
        error.usage = usage
        raise error

    async def generate_batch(
        self,
        targets: Sequence[EnrichmentTarget],
        delay_ms: int = 1000,
        on_progress: ProgressCallback | None = None,
    ) -> BatchResult:
        """
        Generate vibes for targets one after another.

        One failing target never stops the batch; it is recorded and the next
        target runs. Only a configuration error aborts.
        """
        started = time.perf_counter()
        result = BatchResult()
        total = len(targets)

        for index, target in enumerate(targets):
            try:
                generated = await self.generate(target)
            except ConfigurationError:
                raise
            except VibesPipelineError as e:
                result.failed.append(
                    GenerationFailure(target_id=target.id, error=str(e), code=e.code, label=target.label)
                )
                if e.usage:
                    result.total_cost_usd += e.usage.estimated_cost_usd
            except Exception as e:
                logger.exception("Unexpected error generating vibes", target_id=target.id)
                result.failed.append(
                    GenerationFailure(
                        target_id=target.id, error=str(e), code="unexpected_error", label=target.label
                    )
                )
            else:
                result.success.append(generated)
                result.total_cost_usd += generated.usage.estimated_cost_usd

            if on_progress:
                on_progress(index + 1, total)

            if index < total - 1 and delay_ms > 0:
                await self._sleep(delay_ms / 1000)

        result.total_time_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Vibes batch complete",
            success=len(result.success),
            failed=len(result.failed),
            cost_usd=round(result.total_cost_usd, 4),
            total_time_ms=result.total_time_ms,
        )
        return result
