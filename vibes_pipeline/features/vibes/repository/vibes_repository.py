"""
Persistence layer for the vibes feature.

Reads enrichment candidates from ``properties`` / ``neighborhoods`` and
upserts results into ``property_vibes`` / ``neighborhood_vibes`` keyed by the
target id, so replaying a target overwrites rather than duplicates.
Candidates are always ordered by ``(created_at, id)`` ascending; the backfill
cursor offset is only meaningful under that ordering.
"""

from decimal import Decimal
from typing import Any, Protocol

from psycopg.types.json import Jsonb

from vibes_pipeline.db.helpers import DatabaseError, execute_query, fetch_all, with_db_retry
from vibes_pipeline.features.vibes.domain.models import (
    CandidateFilters,
    EnrichmentTarget,
    GenerationResult,
    NeighborhoodContext,
    PropertyContext,
    SampleListing,
    TargetKind,
)
from vibes_pipeline.features.vibes.errors import PersistenceError
from vibes_pipeline.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

PROPERTY_CONFIDENCE = 0.85
NEIGHBORHOOD_CONFIDENCE = 0.82

# Postgres "column reference is ambiguous"; the stats function is broken for the whole run
AMBIGUOUS_COLUMN = "42702"


class EntityStore(Protocol):
    """What the backfill runner needs from storage."""

    kind: TargetKind

    async def list_candidates(
        self, filters: CandidateFilters, offset: int, page_size: int
    ) -> list[EnrichmentTarget]: ...

    async def load_existing_hashes(self, ids: list[str]) -> dict[str, str]: ...

    async def upsert_result(
        self, target: EnrichmentTarget, result: GenerationResult, source_hash: str
    ) -> None: ...


def _float(value: Any) -> float | None:
    return float(value) if value is not None else None


def _int(value: Any) -> int | None:
    return int(value) if value is not None else None


class _BaseVibesRepository:
    kind: TargetKind
    vibes_table: str
    target_column: str

    async def load_existing_hashes(self, ids: list[str]) -> dict[str, str]:
        """Stored source hash per target id, for ids that already have vibes."""
        if not ids:
            return {}
        query = f"""
            SELECT {self.target_column} AS target_id, source_data_hash
            FROM {self.vibes_table}
            WHERE {self.target_column} = ANY(%s::uuid[])
        """
        try:
            rows = await fetch_all(query, (list(ids),))
        except DatabaseError as e:
            raise PersistenceError(f"Failed to read {self.vibes_table}: {e}") from e
        return {str(row["target_id"]): row["source_data_hash"] for row in rows}

    async def coverage(
        self, filters: CandidateFilters, offset: int, limit: int
    ) -> list[tuple[EnrichmentTarget, str | None]]:
        """One page of candidates paired with their stored hash (None when missing)."""
        targets = await self.list_candidates(filters, offset, limit)
        hashes = await self.load_existing_hashes([t.id for t in targets])
        return [(target, hashes.get(target.id)) for target in targets]

    async def list_candidates(
        self, filters: CandidateFilters, offset: int, page_size: int
    ) -> list[EnrichmentTarget]:
        raise NotImplementedError

    async def upsert_result(
        self, target: EnrichmentTarget, result: GenerationResult, source_hash: str
    ) -> None:
        try:
            await self._upsert(target, result, source_hash)
        except DatabaseError as e:
            logger.error(
                "Failed to upsert vibes",
                table=self.vibes_table,
                target_id=target.id,
                error=str(e),
            )
            raise PersistenceError(f"Failed to upsert {self.vibes_table}: {e}") from e

    async def _upsert(
        self, target: EnrichmentTarget, result: GenerationResult, source_hash: str
    ) -> None:
        raise NotImplementedError


class PropertyVibesRepository(_BaseVibesRepository):
    """Property candidates and ``property_vibes`` rows."""

    kind = TargetKind.PROPERTY
    vibes_table = "property_vibes"
    target_column = "property_id"

    CANDIDATE_COLUMNS = """
        id, address, city, state, price, bedrooms, bathrooms, square_feet,
        property_type, year_built, lot_size_sqft, amenities, description, images
    """

    @classmethod
    def _row_to_target(cls, row: dict) -> EnrichmentTarget:
        context = PropertyContext(
            address=row.get("address") or "",
            city=row.get("city") or "",
            state=row.get("state") or "",
            price=_float(row.get("price")) or 0.0,
            bedrooms=_float(row.get("bedrooms")) or 0.0,
            bathrooms=_float(row.get("bathrooms")) or 0.0,
            square_feet=_int(row.get("square_feet")),
            property_type=row.get("property_type"),
            year_built=_int(row.get("year_built")),
            lot_size_sqft=_int(row.get("lot_size_sqft")),
            amenities=tuple(row.get("amenities") or ()),
            description=row.get("description"),
        )
        images = tuple(url for url in (row.get("images") or ()) if isinstance(url, str) and url)
        return EnrichmentTarget(
            id=str(row["id"]), kind=TargetKind.PROPERTY, context=context, samples=images
        )

    async def list_candidates(
        self, filters: CandidateFilters, offset: int, page_size: int
    ) -> list[EnrichmentTarget]:
        conditions = ["price >= %s"]
        params: list[Any] = [filters.min_price or 0]
        if filters.states:
            conditions.append("state = ANY(%s)")
            params.append(list(filters.states))
        if filters.ids:
            conditions.append("id = ANY(%s::uuid[])")
            params.append(list(filters.ids))

        query = f"""
            SELECT {self.CANDIDATE_COLUMNS}
            FROM properties
            WHERE {" AND ".join(conditions)}
            ORDER BY created_at ASC, id ASC
            OFFSET %s LIMIT %s
        """
        params += [offset, page_size]

        try:
            rows = await fetch_all(query, tuple(params))
        except DatabaseError as e:
            raise PersistenceError(f"Failed to read properties: {e}") from e
        return [self._row_to_target(row) for row in rows]

    @with_db_retry(max_retries=2)
    async def _upsert(
        self, target: EnrichmentTarget, result: GenerationResult, source_hash: str
    ) -> None:
        ctx: PropertyContext = target.context
        vibes = result.vibes.to_storage()
        images = [sample.value for sample in result.selection.samples]
        input_data = {
            "property": {
                "address": ctx.address,
                "city": ctx.city,
                "state": ctx.state,
                "price": ctx.price,
                "bedrooms": ctx.bedrooms,
                "bathrooms": ctx.bathrooms,
                "square_feet": ctx.square_feet,
                "property_type": ctx.property_type,
                "year_built": ctx.year_built,
                "lot_size_sqft": ctx.lot_size_sqft,
                "amenities": list(ctx.amenities),
            },
            "images": [
                {"url": sample.value, "category": sample.category}
                for sample in result.selection.samples
            ],
            "modelId": result.model,
        }

        query = """
            INSERT INTO property_vibes (
                property_id, tagline, vibe_statement, feature_highlights,
                lifestyle_fits, suggested_tags, emotional_hooks, primary_vibes,
                aesthetics, input_data, raw_output, model_used, images_analyzed,
                source_data_hash, generation_cost_usd, confidence, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, NOW())
            ON CONFLICT (property_id) DO UPDATE SET
                tagline = EXCLUDED.tagline,
                vibe_statement = EXCLUDED.vibe_statement,
                feature_highlights = EXCLUDED.feature_highlights,
                lifestyle_fits = EXCLUDED.lifestyle_fits,
                suggested_tags = EXCLUDED.suggested_tags,
                emotional_hooks = EXCLUDED.emotional_hooks,
                primary_vibes = EXCLUDED.primary_vibes,
                aesthetics = EXCLUDED.aesthetics,
                input_data = EXCLUDED.input_data,
                raw_output = EXCLUDED.raw_output,
                model_used = EXCLUDED.model_used,
                images_analyzed = EXCLUDED.images_analyzed,
                source_data_hash = EXCLUDED.source_data_hash,
                generation_cost_usd = EXCLUDED.generation_cost_usd,
                confidence = EXCLUDED.confidence,
                updated_at = NOW()
        """
        params = (
            target.id,
            vibes["tagline"],
            vibes["vibeStatement"],
            Jsonb(vibes["notableFeatures"]),
            Jsonb(vibes["lifestyleFits"]),
            vibes["suggestedTags"],
            vibes["emotionalHooks"],
            Jsonb(vibes["primaryVibes"]),
            Jsonb(vibes["aesthetics"]) if vibes.get("aesthetics") else None,
            Jsonb(input_data),
            result.raw_output,
            result.model,
            images,
            source_hash,
            round(result.usage.estimated_cost_usd, 6),
            PROPERTY_CONFIDENCE,
        )
        await execute_query(query, params)
        logger.debug("Property vibes upserted", property_id=target.id)


class NeighborhoodVibesRepository(_BaseVibesRepository):
    """Neighborhood candidates (hydrated with sample listings) and ``neighborhood_vibes`` rows."""

    kind = TargetKind.NEIGHBORHOOD
    vibes_table = "neighborhood_vibes"
    target_column = "neighborhood_id"

    def __init__(self, sample_limit: int = 12, include_stats: bool = True):
        self.sample_limit = sample_limit
        self.include_stats = include_stats
        self._stats_disabled = False

    async def _sample_listings(self, neighborhood_id: str) -> tuple[SampleListing, ...]:
        query = """
            SELECT address, price, bedrooms, bathrooms, property_type
            FROM properties
            WHERE neighborhood_id = %s AND address IS NOT NULL
            ORDER BY created_at ASC, id ASC
            LIMIT %s
        """
        try:
            rows = await fetch_all(query, (neighborhood_id, self.sample_limit))
        except DatabaseError as e:
            logger.warning(
                "Failed to fetch sample listings", neighborhood_id=neighborhood_id, error=str(e)
            )
            return ()
        return tuple(
            SampleListing(
                address=row["address"],
                price=_float(row.get("price")),
                bedrooms=_float(row.get("bedrooms")),
                bathrooms=_float(row.get("bathrooms")),
                property_type=row.get("property_type"),
            )
            for row in rows
        )

    async def _listing_stats(self, neighborhood_id: str) -> dict[str, Any] | None:
        if not self.include_stats or self._stats_disabled:
            return None
        try:
            rows = await fetch_all("SELECT * FROM get_neighborhood_stats(%s)", (neighborhood_id,))
        except DatabaseError as e:
            sqlstate = getattr(e.__cause__, "sqlstate", None)
            if sqlstate == AMBIGUOUS_COLUMN or "is ambiguous" in str(e):
                self._stats_disabled = True
                logger.warning(
                    "Failed to fetch stats; disabling stats for remainder of run",
                    neighborhood_id=neighborhood_id,
                    error=str(e),
                )
            else:
                logger.warning(
                    "Failed to fetch stats", neighborhood_id=neighborhood_id, error=str(e)
                )
            return None
        if not rows:
            return None
        return {key: (float(v) if isinstance(v, Decimal) else v) for key, v in rows[0].items()}

    async def _row_to_target(self, row: dict) -> EnrichmentTarget:
        neighborhood_id = str(row["id"])
        context = NeighborhoodContext(
            name=row.get("name") or "",
            city=row.get("city"),
            state=row.get("state"),
            metro_area=row.get("metro_area"),
            median_price=_float(row.get("median_price")),
            walk_score=_int(row.get("walk_score")),
            transit_score=_int(row.get("transit_score")),
            listing_stats=await self._listing_stats(neighborhood_id),
        )
        return EnrichmentTarget(
            id=neighborhood_id,
            kind=TargetKind.NEIGHBORHOOD,
            context=context,
            samples=await self._sample_listings(neighborhood_id),
        )

    async def list_candidates(
        self, filters: CandidateFilters, offset: int, page_size: int
    ) -> list[EnrichmentTarget]:
        conditions = ["TRUE"]
        params: list[Any] = []
        if filters.states:
            conditions.append("state = ANY(%s)")
            params.append(list(filters.states))
        if filters.ids:
            conditions.append("id = ANY(%s::uuid[])")
            params.append(list(filters.ids))

        query = f"""
            SELECT id, name, city, state, metro_area, median_price, walk_score, transit_score
            FROM neighborhoods
            WHERE {" AND ".join(conditions)}
            ORDER BY created_at ASC, id ASC
            OFFSET %s LIMIT %s
        """
        params += [offset, page_size]

        try:
            rows = await fetch_all(query, tuple(params))
        except DatabaseError as e:
            raise PersistenceError(f"Failed to read neighborhoods: {e}") from e
        return [await self._row_to_target(row) for row in rows]

    @with_db_retry(max_retries=2)
    async def _upsert(
        self, target: EnrichmentTarget, result: GenerationResult, source_hash: str
    ) -> None:
        ctx: NeighborhoodContext = target.context
        vibes = result.vibes.to_storage()
        input_data = {
            "neighborhood": {
                "name": ctx.name,
                "city": ctx.city,
                "state": ctx.state,
                "metroArea": ctx.metro_area,
                "medianPrice": ctx.median_price,
                "walkScore": ctx.walk_score,
                "transitScore": ctx.transit_score,
            },
            "sampleProperties": [
                {
                    "address": s.value.address,
                    "price": s.value.price,
                    "bedrooms": s.value.bedrooms,
                    "bathrooms": s.value.bathrooms,
                    "propertyType": s.value.property_type,
                }
                for s in result.selection.samples
            ],
            "modelId": result.model,
        }

        query = """
            INSERT INTO neighborhood_vibes (
                neighborhood_id, tagline, vibe_statement, neighborhood_themes,
                local_highlights, resident_fits, suggested_tags, emotional_hooks,
                aesthetics, input_data, raw_output, model_used, source_data_hash,
                generation_cost_usd, confidence, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, NOW())
            ON CONFLICT (neighborhood_id) DO UPDATE SET
                tagline = EXCLUDED.tagline,
                vibe_statement = EXCLUDED.vibe_statement,
                neighborhood_themes = EXCLUDED.neighborhood_themes,
                local_highlights = EXCLUDED.local_highlights,
                resident_fits = EXCLUDED.resident_fits,
                suggested_tags = EXCLUDED.suggested_tags,
                emotional_hooks = EXCLUDED.emotional_hooks,
                aesthetics = EXCLUDED.aesthetics,
                input_data = EXCLUDED.input_data,
                raw_output = EXCLUDED.raw_output,
                model_used = EXCLUDED.model_used,
                source_data_hash = EXCLUDED.source_data_hash,
                generation_cost_usd = EXCLUDED.generation_cost_usd,
                confidence = EXCLUDED.confidence,
                updated_at = NOW()
        """
        params = (
            target.id,
            vibes["tagline"],
            vibes["vibeStatement"],
            Jsonb(vibes["primaryVibes"]),
            Jsonb(vibes["notableFeatures"]),
            Jsonb(vibes["lifestyleFits"]),
            vibes["suggestedTags"],
            vibes["emotionalHooks"],
            Jsonb(vibes["aesthetics"]) if vibes.get("aesthetics") else None,
            Jsonb(input_data),
            result.raw_output,
            result.model,
            source_hash,
            round(result.usage.estimated_cost_usd, 6),
            NEIGHBORHOOD_CONFIDENCE,
        )
        await execute_query(query, params)
        logger.debug("Neighborhood vibes upserted", neighborhood_id=target.id)
