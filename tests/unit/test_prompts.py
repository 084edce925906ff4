from vibes_pipeline.features.vibes.domain.taxonomy import LIFESTYLE_TAGS
from vibes_pipeline.features.vibes.services.prompts import (
    NEIGHBORHOOD_SYSTEM_PROMPT,
    PROPERTY_SYSTEM_PROMPT,
    build_prompt,
    format_price,
)
from vibes_pipeline.features.vibes.services.sample_selector import select_samples


def test_format_price():
    assert format_price(1250000) == "$1,250,000"
    assert format_price(None) == "Unknown"


def test_property_prompt_carries_listing_details_and_images(build_property_target):
    target = build_property_target(
        amenities=("Pool", "Fireplace"), description="  Lovingly restored bungalow.  "
    )
    selection = select_samples(target, max_images=4)

    prompt = build_prompt(target, selection)

    assert prompt.system_prompt == PROPERTY_SYSTEM_PROMPT
    assert prompt.image_urls == [s.value for s in selection.samples]
    assert "Analyze the 4 property image(s)" in prompt.user_prompt
    assert "$650,000" in prompt.user_prompt
    assert "Bedrooms: 3 | Bathrooms: 2" in prompt.user_prompt
    assert "Listed Amenities: Pool, Fireplace" in prompt.user_prompt
    assert "Listing Description: Lovingly restored bungalow." in prompt.user_prompt


def test_system_prompt_lists_every_tag():
    for tag in LIFESTYLE_TAGS:
        assert tag in PROPERTY_SYSTEM_PROMPT


def test_neighborhood_prompt_is_text_only(build_neighborhood_target):
    target = build_neighborhood_target(listing_stats={"listing_count": 42, "avg_price": None})
    selection = select_samples(target, max_listings=3)

    prompt = build_prompt(target, selection)

    assert prompt.system_prompt == NEIGHBORHOOD_SYSTEM_PROMPT
    assert prompt.image_urls == []
    assert "Sellwood" in prompt.user_prompt
    assert "Walk Score: 78 | Transit Score: 55" in prompt.user_prompt
    assert "listing_count=42" in prompt.user_prompt
    assert "avg_price" not in prompt.user_prompt
    assert prompt.user_prompt.count("Tacoma St") == 3
