"""Normalizers that turn free-text profile fields into comparable forms.

All alias tables are read-only module constants.  Aliases are matched as
whole words or phrases inside a token (``"sf bay area"`` hits ``"bay area"``,
``"germany"`` does not hit ``"ny"``).
"""
from __future__ import annotations

import re
from functools import lru_cache
from types import MappingProxyType
from typing import Iterable

# ---------------------------------------------------------------------------
# Static tables
# ---------------------------------------------------------------------------

STAGE_ORDER: tuple[str, ...] = ("pre-seed", "seed", "series-a", "series-b", "series-c", "growth")

# Checked in order; the first key with a matching alias wins.
STAGE_ALIASES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("pre-seed", ("pre-seed", "pre seed", "preseed", "angel", "friends and family")),
    ("seed", ("seed", "seed-stage", "early-stage", "early stage")),
    ("series-a", ("series a", "series-a", "a")),
    ("series-b", ("series b", "series-b", "b")),
    ("series-c", ("series c", "series-c", "c")),
    ("growth", ("growth", "late stage", "late-stage", "series d", "series e", "expansion", "pre-ipo")),
)

LOCATION_ALIASES = MappingProxyType({
    "san francisco": ("bay area", "sf", "silicon valley", "west coast", "california", "usa", "united states"),
    "los angeles": ("socal", "west coast", "california", "usa", "united states"),
    "new york": ("nyc", "ny", "east coast", "usa", "united states"),
    "boston": ("massachusetts", "east coast", "usa", "united states"),
    "austin": ("texas", "usa", "united states"),
    "toronto": ("canada", "north america"),
    "london": ("uk", "united kingdom", "europe"),
    "berlin": ("germany", "europe"),
    "munich": ("germany", "dach", "europe"),
    "paris": ("france", "europe"),
    "stockholm": ("sweden", "nordics", "europe"),
    "tel aviv": ("israel", "middle east"),
    "dubai": ("uae", "united arab emirates", "middle east"),
    "singapore": ("asia", "southeast asia"),
    "hong kong": ("asia", "china"),
    "india": ("asia", "south asia", "bangalore", "mumbai", "delhi"),
    "global": ("worldwide", "international", "any"),
})

GLOBAL_LOCATIONS = frozenset({"global", "worldwide", "international"})

INDUSTRY_ALIASES = MappingProxyType({
    "fintech": ("financial", "finance", "payments", "banking", "insurtech"),
    "saas": ("software", "enterprise", "b2b", "cloud"),
    "ai": ("artificial intelligence", "machine learning", "ml", "deep learning", "analytics"),
    "healthcare": ("health", "healthtech", "biotech", "medtech", "digital health"),
    "consumer": ("b2c", "retail", "e-commerce", "ecommerce", "marketplace"),
    "crypto": ("blockchain", "web3", "defi", "nft"),
    "entertainment": (
        "film", "movie", "movies", "cinema", "motion picture", "production", "studio",
        "streaming", "content", "media", "tv", "television", "video", "animation",
        "documentary", "theatrical", "distribution", "post-production", "vfx",
        "entertainment finance", "film financing", "slate financing", "gap financing",
        "completion bond", "tax credit", "film fund", "media fund", "content fund",
        "independent film", "indie film", "feature film", "series", "episodic",
        "music", "gaming", "esports", "sports media", "live events",
    ),
    "real estate": (
        "property", "properties", "realty", "real-estate", "commercial real estate",
        "residential", "multifamily", "industrial", "retail real estate", "office",
        "hospitality", "hotel", "mixed-use", "development", "construction",
        "construction loan", "bridge loan", "mezzanine", "mortgage", "reit",
        "land", "affordable housing", "senior housing", "student housing",
        "self-storage", "data center", "logistics", "warehouse", "flex space",
        "ground-up", "value-add", "core", "core-plus", "opportunistic",
        "private equity real estate", "real estate debt", "infrastructure",
        "proptech", "property technology", "contech", "construction tech",
    ),
    "climate": ("cleantech", "sustainability", "renewable", "energy", "green", "carbon", "esg"),
    "food": ("foodtech", "agtech", "agriculture", "beverage", "cpg", "restaurant"),
    "mobility": ("transportation", "automotive", "ev", "electric vehicle", "logistics", "supply chain"),
    "edtech": ("education", "learning", "training", "ed-tech", "online learning"),
    "proptech": ("property technology", "real estate tech", "retech", "contech"),
    "cybersecurity": ("security", "infosec", "privacy", "identity"),
    "hr tech": ("hr", "recruiting", "talent", "workforce", "future of work"),
})

AGNOSTIC_SECTORS = frozenset({"agnostic", "generalist"})

_LOCATION_SPLIT_RE = re.compile(r"[,;/]")
_INDUSTRY_SPLIT_RE = re.compile(r"[,;&/]")
_AMOUNT_RE = re.compile(
    r"(?<![\d.])(\d+(?:\.\d+)?)(?:\s*(billion|million|thousand|bn|mm|b|m|k)(?![a-z]))?"
)
_SUFFIX_MULTIPLIERS = {
    "k": 1_000, "thousand": 1_000,
    "m": 1_000_000, "mm": 1_000_000, "million": 1_000_000,
    "b": 1_000_000_000, "bn": 1_000_000_000, "billion": 1_000_000_000,
}


# ---------------------------------------------------------------------------
# Phrase matching
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1024)
def _phrase_re(phrase: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![a-z0-9]){re.escape(phrase)}(?![a-z0-9])")


def contains_phrase(text: str, phrase: str) -> bool:
    """True when *phrase* occurs in *text* as a whole word or phrase."""
    return bool(_phrase_re(phrase).search(text))


def _unique(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


# ---------------------------------------------------------------------------
# Normalizers
# ---------------------------------------------------------------------------


def normalize_stage(stage: str | None) -> str:
    """Map a funding-stage label onto a key from ``STAGE_ORDER``.

    Unrecognized labels come back lower-cased and stripped; callers treat
    anything not in ``STAGE_ORDER`` as unknown for ordering purposes.
    """
    if not stage:
        return ""
    lower = stage.lower().strip()
    for key, variants in STAGE_ALIASES:
        if any(contains_phrase(lower, v) for v in variants):
            return key
    return lower


def normalize_location(location: str | None) -> list[str]:
    """Split a location string and expand each part through ``LOCATION_ALIASES``.

    Returns the original tokens plus every expansion, deduplicated in
    first-seen order.
    """
    if not location:
        return []
    tokens = [t.strip() for t in _LOCATION_SPLIT_RE.split(location.lower())]
    tokens = [t for t in tokens if t]

    expanded = list(tokens)
    for token in tokens:
        for key, aliases in LOCATION_ALIASES.items():
            if contains_phrase(token, key) or any(contains_phrase(token, a) for a in aliases):
                expanded.append(key)
                expanded.extend(aliases)
    return _unique(expanded)


def normalize_locations(locations: str | Iterable[str] | None) -> list[str]:
    """``normalize_location`` over one string or a list of strings."""
    if not locations:
        return []
    if isinstance(locations, str):
        return normalize_location(locations)
    return _unique(tok for loc in locations for tok in normalize_location(loc))


def normalize_industry(industries: str | Iterable[str] | None) -> list[str]:
    """Flatten a tag or list of tags into lower-cased tokens."""
    if not industries:
        return []
    items = [industries] if isinstance(industries, str) else list(industries)
    tokens: list[str] = []
    for item in items:
        if not item:
            continue
        tokens.extend(p.strip() for p in _INDUSTRY_SPLIT_RE.split(str(item).lower()))
    return [t for t in tokens if t]


def industry_groups(token: str) -> list[str]:
    """Canonical industry groups whose key or variants occur in *token*."""
    return [
        key for key, aliases in INDUSTRY_ALIASES.items()
        if contains_phrase(token, key) or any(contains_phrase(token, a) for a in aliases)
    ]


def parse_check_size_range(text: str | None) -> dict[str, float] | None:
    """Extract a ``{"min", "max"}`` dollar range from free text like ``"$500K - $2M"``.

    Each number takes its own k/m/b suffix.  A bare lower bound borrows the
    upper bound's suffix when that keeps ``min <= max`` (``"1-2m"`` reads as
    1M-2M).  A single number gives ``max = 10 * min``.  No number gives None.
    """
    if not text:
        return None
    clean = re.sub(r"[,$€£]", "", text).lower()
    found = _AMOUNT_RE.findall(clean)
    if not found:
        return None

    values: list[tuple[float, int | None]] = [
        (float(num), _SUFFIX_MULTIPLIERS.get(suffix)) for num, suffix in found[:2]
    ]
    if len(values) == 1:
        num, mult = values[0]
        low = num * (mult or 1)
        return {"min": low, "max": low * 10}

    (low_num, low_mult), (high_num, high_mult) = values
    high = high_num * (high_mult or 1)
    if low_mult is None and high_mult is not None and low_num * high_mult <= high:
        low_mult = high_mult
    low = low_num * (low_mult or 1)
    if low > high:
        low, high = high, low
    return {"min": low, "max": high}
