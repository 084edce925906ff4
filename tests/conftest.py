import copy
import json

import httpx
import pytest

from vibes_pipeline.features.vibes.domain.models import (
    EnrichmentTarget,
    NeighborhoodContext,
    PropertyContext,
    RawResponse,
    SampleListing,
    TargetKind,
    UsageInfo,
)
from vibes_pipeline.features.vibes.errors import PersistenceError
from vibes_pipeline.features.vibes.providers.openrouter_client import OpenRouterClient

VALID_VIBES = {
    "tagline": "Sun-Drenched Craftsman with a Chef's Kitchen",
    "vibeStatement": "A bright, warm home where weekend brunches spill onto the back deck.",
    "primaryVibes": [
        {"name": "Sunlit Warmth", "intensity": 0.9, "source": "interior"},
        {"name": "Garden Calm", "intensity": 0.6, "source": "exterior"},
    ],
    "lifestyleFits": [
        {"category": "Home Chef", "score": 0.9, "reason": "Six-burner range and a huge island."},
        {"category": "Remote Worker", "score": 0.7, "reason": "Quiet den off the living room."},
    ],
    "notableFeatures": [
        {"feature": "Chef's kitchen with gas range", "location": "kitchen", "appealFactor": "Cooks will love it"},
        {"feature": "Wraparound deck", "location": "backyard", "appealFactor": "Room for summer dinners"},
    ],
    "aesthetics": {
        "lightingQuality": "natural_abundant",
        "colorPalette": ["warm white", "oak"],
        "architecturalStyle": "Craftsman",
        "overallCondition": "well_maintained",
    },
    "emotionalHooks": ["Morning coffee in the sunroom", "Hosting friends on the deck"],
    "suggestedTags": ["Culinary Paradise", "Work from Home Ready"],
}


@pytest.fixture
def vibes_payload():
    """A fresh, schema-valid vibes payload per test."""
    return copy.deepcopy(VALID_VIBES)


def _build_property_target(target_id="00000000-0000-0000-0000-000000000001", images=None, **overrides):
    fields = {
        "address": "12 Elm St",
        "city": "Portland",
        "state": "OR",
        "price": 650000.0,
        "bedrooms": 3.0,
        "bathrooms": 2.0,
        "square_feet": 1800,
        "property_type": "single_family",
        "year_built": 1924,
        "lot_size_sqft": 5000,
    }
    fields.update(overrides)
    if images is None:
        images = [f"https://img.example.com/{target_id}/{i}.jpg" for i in range(8)]
    return EnrichmentTarget(
        id=target_id,
        kind=TargetKind.PROPERTY,
        context=PropertyContext(**fields),
        samples=tuple(images),
    )


def _build_neighborhood_target(target_id="10000000-0000-0000-0000-000000000001", listings=None, **overrides):
    fields = {
        "name": "Sellwood",
        "city": "Portland",
        "state": "OR",
        "metro_area": "Portland Metro",
        "median_price": 720000.0,
        "walk_score": 78,
        "transit_score": 55,
    }
    fields.update(overrides)
    if listings is None:
        listings = [
            SampleListing(address=f"{i} Tacoma St", price=500000.0 + i, bedrooms=2.0, bathrooms=1.0, property_type=kind)
            for i, kind in enumerate(["condo", "single_family", "condo", "townhome"])
        ]
    return EnrichmentTarget(
        id=target_id,
        kind=TargetKind.NEIGHBORHOOD,
        context=NeighborhoodContext(**fields),
        samples=tuple(listings),
    )


@pytest.fixture
def build_property_target():
    return _build_property_target


@pytest.fixture
def build_neighborhood_target():
    return _build_neighborhood_target


class RecordedSleep:
    """Async sleep stand-in that records requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def recorded_sleep():
    return RecordedSleep()


class ScriptedClient:
    """
    Provider stand-in returning queued ``(content, usage)`` pairs or raising
    queued exceptions, in order.
    """

    def __init__(self, script=None, model="qwen/qwen3-vl-8b-instruct"):
        self.script = list(script or [])
        self.model = model
        self.calls: list[dict] = []

    def push(self, item):
        self.script.append(item)

    async def complete(self, messages, *, temperature=0.7, max_tokens=2000, **kwargs):
        self.calls.append({"messages": messages, "temperature": temperature, "max_tokens": max_tokens})
        if not self.script:
            raise AssertionError("ScriptedClient ran out of responses")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        content, usage = item
        if not isinstance(content, str) and content is not None:
            content = json.dumps(content)
        return RawResponse(content=content, model=self.model, finish_reason="stop"), usage

    async def close(self):
        return None


@pytest.fixture
def scripted_client():
    return ScriptedClient()


class FakeEntityStore:
    """In-memory entity store with the same paging contract as the repositories."""

    def __init__(self, targets=None, kind=TargetKind.PROPERTY):
        self.kind = kind
        self.targets = list(targets or [])
        self.hashes: dict[str, str] = {}
        self.upserts: list[tuple[str, str]] = []
        self.fail_upsert_ids: set[str] = set()
        self.list_calls: list[tuple[int, int]] = []

    async def list_candidates(self, filters, offset, page_size):
        self.list_calls.append((offset, page_size))
        targets = self.targets
        if filters.ids:
            targets = [t for t in targets if t.id in filters.ids]
        return targets[offset : offset + page_size]

    async def load_existing_hashes(self, ids):
        return {i: self.hashes[i] for i in ids if i in self.hashes}

    async def upsert_result(self, target, result, source_hash):
        if target.id in self.fail_upsert_ids:
            raise PersistenceError(f"Failed to upsert {target.id}")
        self.hashes[target.id] = source_hash
        self.upserts.append((target.id, source_hash))


@pytest.fixture
def fake_store():
    return FakeEntityStore()


def _completion_body(content, prompt_tokens=1000, completion_tokens=500, model="qwen/qwen3-vl-8b-instruct"):
    return {
        "id": "gen-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {
            "prompt_tokens": prompt_tokens,
            "completion_tokens": completion_tokens,
            "total_tokens": prompt_tokens + completion_tokens,
        },
    }


@pytest.fixture
def completion_body():
    return _completion_body


@pytest.fixture
def make_openrouter_client(recorded_sleep):
    """
    Build a real client whose HTTP goes to a scripted ``httpx.MockTransport``.

    Each script entry is an ``httpx.Response`` or an exception to raise.
    """

    def _make(script, max_retries=3, **kwargs):
        requests: list[httpx.Request] = []
        queue = list(script)

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            item = queue.pop(0)
            if isinstance(item, Exception):
                raise item
            return item

        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = OpenRouterClient(
            api_key="test-key",
            model="qwen/qwen3-vl-8b-instruct",
            base_url="https://openrouter.test/api/v1",
            max_retries=max_retries,
            retry_after_default=5.0,
            http_client=http_client,
            sleep=recorded_sleep,
            **kwargs,
        )
        client.requests = requests
        return client

    return _make


@pytest.fixture
def usage():
    def _usage(cost=0.001, tokens=100):
        return UsageInfo(
            prompt_tokens=tokens, completion_tokens=tokens, total_tokens=2 * tokens, estimated_cost_usd=cost
        )

    return _usage
