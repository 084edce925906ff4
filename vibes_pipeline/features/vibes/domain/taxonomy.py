"""
Closed lifestyle-tag taxonomy and the lookup tables that map free text onto it.

Everything here is built once at import time and exposed read-only.
"""

import re
from enum import Enum
from types import MappingProxyType


class LifestyleTag(str, Enum):
    WORK_FROM_HOME_READY = "Work from Home Ready"
    COMMUTER_FRIENDLY = "Commuter Friendly"
    COZY_RETREAT = "Cozy Retreat"
    ENTERTAINMENT_HAVEN = "Entertainment Haven"
    FAMILY_HAVEN = "Family Haven"
    CULINARY_PARADISE = "Culinary Paradise"
    PET_PARADISE = "Pet Paradise"
    WELLNESS_SANCTUARY = "Wellness Sanctuary"
    NATURAL_LIGHT_HAVEN = "Natural Light Haven"
    URBAN_OASIS = "Urban Oasis"
    WEEKEND_RETREAT = "Weekend Retreat"
    OUTDOOR_LIVING = "Outdoor Living"
    CITY_VIEWS = "City Views"
    BEACH_LIFESTYLE = "Beach Lifestyle"
    FUTURE_FAMILY_HOME = "Future Family Home"
    ENTERTAINERS_DREAM = "Entertainer's Dream"
    FIRST_TIME_BUYER_FRIENDLY = "First-Time Buyer Friendly"
    INVESTMENT_READY = "Investment Ready"
    MODERN_MINIMALIST = "Modern Minimalist"
    CLASSIC_CHARM = "Classic Charm"


LIFESTYLE_TAGS: tuple[str, ...] = tuple(tag.value for tag in LifestyleTag)


def tag_key(value: str) -> str:
    """Lookup key: lowercase, punctuation folded to single spaces."""
    return " ".join(re.sub(r"[^a-z0-9]+", " ", value.lower()).split())


_T = LifestyleTag

# Free-text phrases the model tends to produce instead of a canonical tag.
# Keys are already passed through ``tag_key``.
_SYNONYMS: dict[str, LifestyleTag] = {
    # work
    "remote worker": _T.WORK_FROM_HOME_READY,
    "remote work": _T.WORK_FROM_HOME_READY,
    "work from home": _T.WORK_FROM_HOME_READY,
    "wfh": _T.WORK_FROM_HOME_READY,
    "home office": _T.WORK_FROM_HOME_READY,
    "digital nomad": _T.WORK_FROM_HOME_READY,
    "freelancer": _T.WORK_FROM_HOME_READY,
    "commuter": _T.COMMUTER_FRIENDLY,
    "commuters": _T.COMMUTER_FRIENDLY,
    "transit friendly": _T.COMMUTER_FRIENDLY,
    "transit lover": _T.COMMUTER_FRIENDLY,
    "daily commuter": _T.COMMUTER_FRIENDLY,
    # home life
    "cozy": _T.COZY_RETREAT,
    "cozy home": _T.COZY_RETREAT,
    "homebody": _T.COZY_RETREAT,
    "entertainer": _T.ENTERTAINERS_DREAM,
    "entertainers": _T.ENTERTAINERS_DREAM,
    "entertainer s dream": _T.ENTERTAINERS_DREAM,
    "entertainers dream": _T.ENTERTAINERS_DREAM,
    "host": _T.ENTERTAINERS_DREAM,
    "social host": _T.ENTERTAINERS_DREAM,
    "party host": _T.ENTERTAINERS_DREAM,
    "entertainment": _T.ENTERTAINMENT_HAVEN,
    "movie lover": _T.ENTERTAINMENT_HAVEN,
    "media room": _T.ENTERTAINMENT_HAVEN,
    "gamer": _T.ENTERTAINMENT_HAVEN,
    "family": _T.FAMILY_HAVEN,
    "families": _T.FAMILY_HAVEN,
    "growing family": _T.FAMILY_HAVEN,
    "family friendly": _T.FAMILY_HAVEN,
    "families with kids": _T.FAMILY_HAVEN,
    "young family": _T.FUTURE_FAMILY_HOME,
    "starter family": _T.FUTURE_FAMILY_HOME,
    "future family": _T.FUTURE_FAMILY_HOME,
    "home chef": _T.CULINARY_PARADISE,
    "chef": _T.CULINARY_PARADISE,
    "foodie": _T.CULINARY_PARADISE,
    "cook": _T.CULINARY_PARADISE,
    "culinary enthusiast": _T.CULINARY_PARADISE,
    "pet owner": _T.PET_PARADISE,
    "pet owners": _T.PET_PARADISE,
    "dog owner": _T.PET_PARADISE,
    "pet friendly": _T.PET_PARADISE,
    "fitness enthusiast": _T.WELLNESS_SANCTUARY,
    "wellness": _T.WELLNESS_SANCTUARY,
    "yoga": _T.WELLNESS_SANCTUARY,
    "health conscious": _T.WELLNESS_SANCTUARY,
    # setting
    "natural light": _T.NATURAL_LIGHT_HAVEN,
    "light lover": _T.NATURAL_LIGHT_HAVEN,
    "sun lover": _T.NATURAL_LIGHT_HAVEN,
    "urban professional": _T.URBAN_OASIS,
    "urban dweller": _T.URBAN_OASIS,
    "city dweller": _T.URBAN_OASIS,
    "city lover": _T.URBAN_OASIS,
    "weekend getaway": _T.WEEKEND_RETREAT,
    "vacation home": _T.WEEKEND_RETREAT,
    "second home": _T.WEEKEND_RETREAT,
    "gardener": _T.OUTDOOR_LIVING,
    "outdoor enthusiast": _T.OUTDOOR_LIVING,
    "nature lover": _T.OUTDOOR_LIVING,
    "outdoors": _T.OUTDOOR_LIVING,
    "city view": _T.CITY_VIEWS,
    "skyline views": _T.CITY_VIEWS,
    "beach lover": _T.BEACH_LIFESTYLE,
    "beach": _T.BEACH_LIFESTYLE,
    "coastal living": _T.BEACH_LIFESTYLE,
    "surfer": _T.BEACH_LIFESTYLE,
    # buyers
    "first time buyer": _T.FIRST_TIME_BUYER_FRIENDLY,
    "first time buyers": _T.FIRST_TIME_BUYER_FRIENDLY,
    "first time homebuyer": _T.FIRST_TIME_BUYER_FRIENDLY,
    "starter home": _T.FIRST_TIME_BUYER_FRIENDLY,
    "investor": _T.INVESTMENT_READY,
    "investors": _T.INVESTMENT_READY,
    "rental income": _T.INVESTMENT_READY,
    "minimalist": _T.MODERN_MINIMALIST,
    "modern design lover": _T.MODERN_MINIMALIST,
    "design enthusiast": _T.MODERN_MINIMALIST,
    "history buff": _T.CLASSIC_CHARM,
    "vintage lover": _T.CLASSIC_CHARM,
    "character home": _T.CLASSIC_CHARM,
}

# Canonical names map onto themselves so an exact tag always resolves.
for _tag in LifestyleTag:
    _SYNONYMS.setdefault(tag_key(_tag.value), _tag)

SYNONYMS = MappingProxyType(_SYNONYMS)
del _tag


def canonical_tag(value: str) -> LifestyleTag | None:
    """Map one free-text tag onto the taxonomy, or ``None`` when unmappable."""
    if not isinstance(value, str):
        return None
    return SYNONYMS.get(tag_key(value))


# Ordered keyword rules applied to descriptive text when too few tags survive.
INFERENCE_RULES: tuple[tuple[re.Pattern[str], LifestyleTag], ...] = (
    (re.compile(r"\b(home office|office|workspace|study|remote)\b", re.I), _T.WORK_FROM_HOME_READY),
    (re.compile(r"\b(chef|kitchen|culinary|gourmet|island)\b", re.I), _T.CULINARY_PARADISE),
    (re.compile(r"\b(sun[- ]?(lit|drenched|filled)|light[- ]filled|natural light|skylights?|bright|airy)\b", re.I), _T.NATURAL_LIGHT_HAVEN),
    (re.compile(r"\b(patio|deck|garden|yard|backyard|outdoor|pool|terrace)\b", re.I), _T.OUTDOOR_LIVING),
    (re.compile(r"\b(entertain\w*|hosting|gatherings?|dinner part(y|ies))\b", re.I), _T.ENTERTAINERS_DREAM),
    (re.compile(r"\b(family|kids|children|playroom|school)\b", re.I), _T.FAMILY_HAVEN),
    (re.compile(r"\b(cozy|fireplace|snug|warm|intimate)\b", re.I), _T.COZY_RETREAT),
    (re.compile(r"\b(modern|minimalist|sleek|contemporary|clean lines)\b", re.I), _T.MODERN_MINIMALIST),
    (re.compile(r"\b(historic|victorian|craftsman|vintage|classic|charm\w*)\b", re.I), _T.CLASSIC_CHARM),
    (re.compile(r"\b(skyline|city views?|downtown views?)\b", re.I), _T.CITY_VIEWS),
    (re.compile(r"\b(urban|downtown|walkable|metropolitan|city)\b", re.I), _T.URBAN_OASIS),
    (re.compile(r"\b(beach|ocean|coastal|seaside|waterfront)\b", re.I), _T.BEACH_LIFESTYLE),
    (re.compile(r"\b(spa|gym|fitness|yoga|wellness|sauna|serene|tranquil)\b", re.I), _T.WELLNESS_SANCTUARY),
    (re.compile(r"\b(pets?|dogs?|cats?|fenced)\b", re.I), _T.PET_PARADISE),
    (re.compile(r"\b(commute|transit|train|freeway|highway)\b", re.I), _T.COMMUTER_FRIENDLY),
    (re.compile(r"\b(media room|theater|theatre|game room|bar)\b", re.I), _T.ENTERTAINMENT_HAVEN),
    (re.compile(r"\b(getaway|retreat|escape|cabin)\b", re.I), _T.WEEKEND_RETREAT),
    (re.compile(r"\b(starter|affordable|first home|first-time)\b", re.I), _T.FIRST_TIME_BUYER_FRIENDLY),
    (re.compile(r"\b(rental|income|investment|duplex|adu)\b", re.I), _T.INVESTMENT_READY),
    (re.compile(r"\b(nursery|grow into|room to grow|spare bedrooms?)\b", re.I), _T.FUTURE_FAMILY_HOME),
)

# Last-resort padding, in order, when inference still leaves fewer than the minimum
DEFAULT_FILL: tuple[LifestyleTag, ...] = (
    _T.COZY_RETREAT,
    _T.NATURAL_LIGHT_HAVEN,
    _T.FAMILY_HAVEN,
    _T.URBAN_OASIS,
)

MIN_CANONICAL_TAGS = 4
MAX_CANONICAL_TAGS = 8
