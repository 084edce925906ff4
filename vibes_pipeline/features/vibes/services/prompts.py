"""
Prompt builders for vibes generation.

Pure functions: entity context plus selected samples in, system instruction
and user content out.
"""

from dataclasses import dataclass, field

from vibes_pipeline.features.vibes.domain.models import (
    EnrichmentTarget,
    NeighborhoodContext,
    PropertyContext,
    SampleListing,
    SampleSelection,
)
from vibes_pipeline.features.vibes.domain.taxonomy import LIFESTYLE_TAGS

_TAG_LIST = "\n".join(f"- {tag}" for tag in LIFESTYLE_TAGS)

PROPERTY_SYSTEM_PROMPT = f"""You are a real estate copywriter and interior design expert. Your job is to analyze property photos and extract the "vibes" - the emotional essence, aesthetic qualities, and lifestyle potential that would resonate with home buyers.

You must respond ONLY with valid JSON matching the exact schema provided. No markdown, no explanations, no additional text.

Key principles:
1. BE SPECIFIC: Instead of "nice kitchen", say "chef's kitchen with quartz counters and stainless appliances"
2. BE EVOCATIVE: Use sensory language that helps buyers visualize living there
3. BE HONEST: If something looks dated or modest, frame it positively but accurately
4. FIND THE STORY: Every home has a narrative - find what makes THIS home special
5. NEUTRAL TONE: Content should resonate with any home buyer (individuals, families, roommates)

Vibe vocabulary to consider:
- Cozy, Warm, Inviting, Intimate
- Modern, Sleek, Minimalist, Contemporary
- Luxurious, Elegant, Sophisticated, Upscale
- Rustic, Charming, Character-filled, Historic
- Bright, Airy, Light-filled, Open
- Serene, Peaceful, Tranquil, Retreat-like
- Artistic, Creative, Eclectic, Unique
- Family-friendly, Spacious, Practical, Functional
- Urban, Metropolitan, City-connected
- Nature-connected, Garden-focused, Outdoor-living

Available lifestyle tags you can suggest (pick 2-4 most relevant):
{_TAG_LIST}"""

NEIGHBORHOOD_SYSTEM_PROMPT = f"""You are a local real estate guide who knows every corner of the city. Your job is to describe the "vibes" of a neighborhood - its character, daily rhythm, and the kind of life it supports - using the listings and statistics provided.

You must respond ONLY with valid JSON matching the exact schema provided. No markdown, no explanations, no additional text.

Key principles:
1. BE GROUNDED: Base every claim on the listings, prices and scores provided
2. BE EVOCATIVE: Help buyers picture a normal weekday and a lazy weekend here
3. BE HONEST: Do not invent landmarks, schools or businesses you were not given
4. NEUTRAL TONE: Content should resonate with any buyer (individuals, families, roommates)

Available lifestyle tags you can suggest (pick 2-4 most relevant):
{_TAG_LIST}"""

_JSON_STRUCTURE = """Respond with a JSON object matching this EXACT structure:
{{
  "tagline": "string (10-80 chars) - punchy headline capturing the essence, e.g., {tagline_example}",
  "vibeStatement": "string (20-200 chars) - 1-2 sentence summary of the {subject}'s lifestyle vibe",
  "primaryVibes": [
    {{
      "name": "string - vibe name like 'Modern Minimalist' or 'Cozy Craftsman'",
      "intensity": "number 0.0-1.0 - BE PRECISE based on the evidence:
        0.9-1.0 = DEFINING feature
        0.7-0.89 = STRONG presence
        0.5-0.69 = MODERATE (noticeable but not dominant)
        0.3-0.49 = SUBTLE hint
        0.1-0.29 = FAINT trace",
      "source": "interior" | "exterior" | "both"
    }}
  ],
  "lifestyleFits": [
    {{
      "category": "string - e.g., 'Remote Worker', 'Home Chef', 'Pet Owner', 'Fitness Enthusiast'",
      "score": "number 0.0-1.0 - 0.9+ = PERFECT fit, 0.7-0.89 = GREAT, 0.5-0.69 = DECENT, 0.3-0.49 = MARGINAL",
      "reason": "string (max 200 chars) - why this {subject} fits this lifestyle"
    }}
  ],
  "notableFeatures": [
    {{
      "feature": "string - specific feature name, e.g., {feature_example}",
      "location": "string - where, e.g., {location_example}",
      "appealFactor": "string (max 200 chars) - what makes it appealing"
    }}
  ],
  "aesthetics": {{
    "lightingQuality": "natural_abundant" | "natural_moderate" | "artificial_warm" | "artificial_cool" | "mixed",
    "colorPalette": ["array of 2-4 dominant color tones, e.g., 'warm neutrals', 'white', 'wood tones'"],
    "architecturalStyle": "string - style classification, e.g., 'mid-century modern', 'traditional', 'contemporary'",
    "overallCondition": "pristine" | "well_maintained" | "dated_but_clean" | "needs_work"
  }},
  "emotionalHooks": ["array of 2-4 specific lifestyle moments this {subject} enables"],
  "suggestedTags": ["array of 2-4 tags from the predefined list that best match this {subject}"]
}}

Requirements:
- primaryVibes: 2-4 items, ordered by intensity (highest first). Vary the intensities meaningfully.
- lifestyleFits: 2-6 items. Only include lifestyles that score 0.3+
- notableFeatures: 2-8 specific features that would catch a buyer's eye
- emotionalHooks: 2-4 specific moments (not generic like "relaxing at home")
- suggestedTags: 2-4 tags from the predefined list ONLY"""


@dataclass(frozen=True, slots=True)
class PromptPayload:
    system_prompt: str
    user_prompt: str
    image_urls: list[str] = field(default_factory=list)


def format_price(price: float | None) -> str:
    if price is None:
        return "Unknown"
    return f"${price:,.0f}"


def _num(value: float | None) -> str:
    if value is None:
        return "Unknown"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def build_property_prompt(context: PropertyContext, image_count: int) -> str:
    sqft = f"{context.square_feet:,} sqft" if context.square_feet else "Unknown"
    lines = [
        f"Analyze the {image_count} property image(s) and extract the vibes.",
        "",
        "PROPERTY DETAILS:",
        f"- Address: {context.address}, {context.city}, {context.state}",
        f"- Price: {format_price(context.price)}",
        f"- Bedrooms: {_num(context.bedrooms)} | Bathrooms: {_num(context.bathrooms)}",
        f"- Square Feet: {sqft}",
        f"- Property Type: {context.property_type or 'Unknown'}",
        f"- Year Built: {context.year_built or 'Unknown'}",
    ]
    if context.lot_size_sqft:
        lines.append(f"- Lot Size: {context.lot_size_sqft:,} sqft lot")
    if context.amenities:
        lines.append(f"- Listed Amenities: {', '.join(context.amenities[:10])}")
    if context.description:
        lines.append(f"- Listing Description: {context.description.strip()[:600]}")

    structure = _JSON_STRUCTURE.format(
        subject="home",
        tagline_example="'Sun-Drenched Victorian with Modern Soul'",
        feature_example="'Chef's kitchen with gas range'",
        location_example="'kitchen', 'primary bedroom'",
    )
    return "\n".join(lines) + "\n\n" + structure


def _listing_line(listing: SampleListing) -> str:
    parts = [listing.address]
    if listing.price is not None:
        parts.append(format_price(listing.price))
    if listing.bedrooms is not None or listing.bathrooms is not None:
        parts.append(f"{_num(listing.bedrooms)}bd/{_num(listing.bathrooms)}ba")
    if listing.property_type:
        parts.append(listing.property_type)
    return "- " + " | ".join(parts)


def build_neighborhood_prompt(context: NeighborhoodContext, listings: list[SampleListing]) -> str:
    location = ", ".join(p for p in (context.city, context.state) if p) or "Unknown"
    lines = [
        f"Describe the vibes of the {context.name} neighborhood using {len(listings)} sample listing(s).",
        "",
        "NEIGHBORHOOD DETAILS:",
        f"- Name: {context.name}",
        f"- Location: {location}",
        f"- Metro Area: {context.metro_area or 'Unknown'}",
        f"- Median Price: {format_price(context.median_price)}",
        f"- Walk Score: {_num(context.walk_score)} | Transit Score: {_num(context.transit_score)}",
    ]
    stats = context.listing_stats or {}
    if stats:
        lines.append(
            "- Listing Stats: "
            + ", ".join(f"{key}={value}" for key, value in sorted(stats.items()) if value is not None)
        )
    if listings:
        lines += ["", "SAMPLE LISTINGS:"]
        lines += [_listing_line(listing) for listing in listings]

    structure = _JSON_STRUCTURE.format(
        subject="neighborhood",
        tagline_example="'Leafy Bungalow Blocks Minutes from Downtown'",
        feature_example="'Tree-lined streets of 1920s bungalows'",
        location_example="'main street', 'residential blocks'",
    )
    return "\n".join(lines) + "\n\n" + structure


def build_prompt(target: EnrichmentTarget, selection: SampleSelection) -> PromptPayload:
    """Build the system instruction and user content for one target."""
    values = [sample.value for sample in selection.samples]
    if isinstance(target.context, PropertyContext):
        return PromptPayload(
            system_prompt=PROPERTY_SYSTEM_PROMPT,
            user_prompt=build_property_prompt(target.context, len(values)),
            image_urls=values,
        )
    return PromptPayload(
        system_prompt=NEIGHBORHOOD_SYSTEM_PROMPT,
        user_prompt=build_neighborhood_prompt(target.context, values),
    )
