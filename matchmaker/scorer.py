"""Scoring engine: five factor scorers with a deterministic weighted composite.

Architecture
------------
A startup is compared against one investor (plus its parent firm, if any) on
five factors:

- **Location**: overlap of expanded location tokens; global investors match
  everything.
- **Industry**: shared canonical industry groups (or identical tags).
- **Stage**: exact funding-stage match, or one step away on ``STAGE_ORDER``.
- **Check size**: target raise against the explicit range, or against a
  range parsed from free-text "typical check" fields.
- **Investor type**: whether the investor type usually backs this stage.

Each factor yields a :class:`FactorResult` with a 0..1 score.  Missing data on
either side gives a neutral ``0.5`` that is never marked as matched.

The factor scores are rounded onto a 0-100 :class:`ScoreBreakdown`, and the
composite ``score`` is ``round(sum(breakdown[f] * weight[f]))`` (half-up), so a
stored breakdown always reproduces the stored score for the weights used.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Iterable

from matchmaker.models import InvestmentFirm, Investor, Startup
from matchmaker.normalizers import (
    AGNOSTIC_SECTORS,
    GLOBAL_LOCATIONS,
    STAGE_ORDER,
    contains_phrase,
    industry_groups,
    normalize_industry,
    normalize_locations,
    normalize_stage,
    parse_check_size_range,
)
from matchmaker.utils import json_list, round_half_up

log = logging.getLogger(__name__)

FACTORS: tuple[str, ...] = ("location", "industry", "stage", "investor_type", "check_size")

# Persisted breakdowns from older records use camelCase keys.
_CAMEL_KEYS = {"investor_type": "investorType", "check_size": "checkSize"}

NEUTRAL_BREAKDOWN_VALUE = 50
INCLUDE_THRESHOLD = 20

# Reverse-direction recommendations only use three factors.
RECOMMENDATION_WEIGHTS = {"location": 0.2, "industry": 0.4, "stage": 0.4}
RECOMMENDATION_THRESHOLD = 50

# Investor-type keyword -> stages that type usually backs.
INVESTOR_TYPE_STAGES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("angel", ("pre-seed", "seed")),
    ("accelerator", ("pre-seed", "seed")),
    ("venture capital", ("seed", "series-a", "series-b")),
    ("vc", ("seed", "series-a", "series-b")),
    ("private equity", ("series-c", "growth")),
    ("pe", ("series-c", "growth")),
    ("corporate vc", ("series-a", "series-b", "series-c")),
    ("cvc", ("series-a", "series-b", "series-c")),
    ("family office", ("seed", "series-a", "series-b", "series-c")),
)


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FactorResult:
    score: float
    matched: bool
    detail: str


@dataclass(frozen=True)
class MatchWeights:
    """Linear coefficients for the five factors (meant to sum to 1.0, not enforced)."""
    location: float
    industry: float
    stage: float
    investor_type: float
    check_size: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MatchWeights:
        """Build weights from snake_case or camelCase keys; missing keys take the default."""
        values = {}
        for f in FACTORS:
            raw = data.get(f, data.get(_CAMEL_KEYS.get(f, f)))
            values[f] = float(raw) if raw is not None else getattr(DEFAULT_WEIGHTS, f)
        return cls(**values)


DEFAULT_WEIGHTS = MatchWeights(
    location=0.20,
    industry=0.30,
    stage=0.25,
    investor_type=0.10,
    check_size=0.15,
)


@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-factor scores on a 0-100 scale, as stored on ``Match.metadata_json``."""
    location: int
    industry: int
    stage: int
    investor_type: int
    check_size: int

    def as_dict(self) -> dict[str, int]:
        return asdict(self)

    def weighted_score(self, weights: MatchWeights) -> int:
        return round_half_up(sum(getattr(self, f) * getattr(weights, f) for f in FACTORS))

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ScoreBreakdown:
        """Read a stored breakdown; missing or non-numeric fields become 50."""
        data = data or {}
        values = {}
        for f in FACTORS:
            raw = data.get(f, data.get(_CAMEL_KEYS.get(f, f)))
            try:
                values[f] = int(raw) if raw is not None else NEUTRAL_BREAKDOWN_VALUE
            except (TypeError, ValueError):
                log.warning("Ignoring non-numeric breakdown value %r for %s", raw, f)
                values[f] = NEUTRAL_BREAKDOWN_VALUE
        return cls(**values)


@dataclass
class MatchResult:
    investor_id: int | None
    firm_id: int | None
    score: int
    reasons: list[str] = field(default_factory=list)
    breakdown: ScoreBreakdown | None = None

    @property
    def match_key(self) -> str:
        return match_key(self.investor_id, self.firm_id)

    def as_dict(self) -> dict[str, Any]:
        return {
            "investor_id": self.investor_id,
            "firm_id": self.firm_id,
            "score": self.score,
            "reasons": list(self.reasons),
            "breakdown": self.breakdown.as_dict() if self.breakdown else None,
        }


def match_key(investor_id: int | None, firm_id: int | None) -> str:
    """Identity of a candidate within one startup's matches."""
    return f"{investor_id or ''}-{firm_id or ''}"


# ---------------------------------------------------------------------------
# Factor scorers
# ---------------------------------------------------------------------------


def calculate_location_score(
    startup_location: str | None,
    investor_locations: str | Iterable[str] | None,
) -> FactorResult:
    startup_locs = normalize_locations(startup_location)
    investor_locs = normalize_locations(investor_locations)

    if not startup_locs or not investor_locs:
        return FactorResult(0.5, False, "Location data incomplete")

    if any(loc in GLOBAL_LOCATIONS for loc in investor_locs):
        return FactorResult(1.0, True, "Global investor coverage")

    investor_set = set(investor_locs)
    overlap = [loc for loc in startup_locs if loc in investor_set]
    if overlap:
        quality = min(1.0, 0.6 + len(overlap) * 0.1)
        return FactorResult(quality, True, f"Location match: {', '.join(overlap[:3])}")

    return FactorResult(0.2, False, "Location mismatch")


def calculate_industry_score(
    startup_industries: str | Iterable[str] | None,
    investor_sectors: str | Iterable[str] | None,
    investor_focus: str | None = None,
) -> FactorResult:
    """Score shared industry groups; identical tags outside any group also count."""
    startup_tags = normalize_industry(startup_industries)
    interests = normalize_industry(investor_sectors) + normalize_industry(investor_focus)

    if not startup_tags or not interests:
        return FactorResult(0.5, False, "Industry data incomplete")

    if any(contains_phrase(i, word) for i in interests for word in AGNOSTIC_SECTORS):
        return FactorResult(0.85, True, "Sector-agnostic investor")

    startup_groups = {t: industry_groups(t) for t in startup_tags}
    interest_groups = {i: set(industry_groups(i)) for i in interests}

    matched: list[str] = []
    for tag in startup_tags:
        for interest in interests:
            shared = [g for g in startup_groups[tag] if g in interest_groups[interest]]
            if shared:
                matched.extend(shared)
            elif tag == interest:
                matched.append(tag)
    matched = list(dict.fromkeys(matched))

    if matched:
        quality = min(1.0, 0.6 + len(matched) * 0.15)
        return FactorResult(quality, True, f"Industry match: {', '.join(matched[:3])}")

    return FactorResult(0.1, False, "Industry mismatch")


def calculate_stage_score(
    startup_stage: str | None,
    investor_stages: Iterable[str] | None,
    funding_stage: str | None = None,
) -> FactorResult:
    startup_key = normalize_stage(startup_stage)

    investor_keys = [normalize_stage(s) for s in (investor_stages or [])]
    if funding_stage:
        investor_keys.append(normalize_stage(funding_stage))
    investor_keys = [k for k in dict.fromkeys(investor_keys) if k]

    if not startup_key or not investor_keys:
        return FactorResult(0.5, False, "Stage data incomplete")

    if startup_key in investor_keys:
        return FactorResult(1.0, True, f"Stage match: {startup_stage}")

    if startup_key in STAGE_ORDER:
        startup_index = STAGE_ORDER.index(startup_key)
        for key in investor_keys:
            if key in STAGE_ORDER and abs(startup_index - STAGE_ORDER.index(key)) == 1:
                return FactorResult(0.6, True, "Adjacent stage (may stretch)")

    return FactorResult(0.1, False, "Stage mismatch")


def calculate_check_size_score(
    target_amount: float | None,
    check_size_min: float | None,
    check_size_max: float | None,
    typical_check_size: str | None = None,
) -> FactorResult:
    if not target_amount:
        return FactorResult(0.5, False, "Funding target not specified")

    if check_size_min and check_size_max:
        if check_size_min <= target_amount <= check_size_max * 2:
            return FactorResult(1.0, True, "Check size in range")
        if check_size_min * 0.5 <= target_amount <= check_size_max * 3:
            return FactorResult(0.6, True, "Check size partially matches")
        return FactorResult(0.2, False, "Check size out of range")

    parsed = parse_check_size_range(typical_check_size)
    if parsed and parsed["min"] <= target_amount <= parsed["max"] * 2:
        return FactorResult(0.9, True, "Typical check size aligns")

    return FactorResult(0.5, False, "Check size data incomplete")


def calculate_investor_type_score(
    startup_stage: str | None,
    investor_type: str | None,
) -> FactorResult:
    if not investor_type:
        return FactorResult(0.5, False, "Investor type unknown")

    type_lower = investor_type.lower()
    stage_key = normalize_stage(startup_stage)
    for keyword, stages in INVESTOR_TYPE_STAGES:
        if contains_phrase(type_lower, keyword) and stage_key in stages:
            return FactorResult(1.0, True, f"{investor_type} typically invests at {startup_stage}")

    return FactorResult(0.5, False, "Neutral investor type fit")


# ---------------------------------------------------------------------------
# Composite
# ---------------------------------------------------------------------------


def _investor_locations(investor: Investor, firm: InvestmentFirm | None) -> list[str]:
    return [loc for loc in (investor.location, firm.location if firm else None) if loc]


def _check_range(investor: Investor, firm: InvestmentFirm | None) -> tuple[float | None, float | None]:
    if investor.check_size_min and investor.check_size_max:
        return investor.check_size_min, investor.check_size_max
    if firm is not None:
        return firm.check_size_min, firm.check_size_max
    return None, None


def score_candidate(
    startup: Startup,
    investor: Investor,
    firm: InvestmentFirm | None = None,
    weights: MatchWeights = DEFAULT_WEIGHTS,
    industries: list[str] | None = None,
) -> MatchResult:
    """Score one investor (and its firm) against a startup.

    Args:
        startup: The startup being matched.
        investor: Candidate investor.
        firm: The investor's parent firm; its locations, sectors and stages
            are appended to the investor's before normalization.
        weights: Factor coefficients.
        industries: Overrides the startup's stored industry tags (the
            generator passes tags enriched from data-room documents).
    """
    firm_sectors = json_list(firm.sectors_json) if firm else []
    firm_stages = json_list(firm.stages_json) if firm else []
    check_min, check_max = _check_range(investor, firm)

    location = calculate_location_score(startup.location, _investor_locations(investor, firm))
    industry = calculate_industry_score(
        industries if industries is not None else json_list(startup.industries_json),
        json_list(investor.sectors_json) + firm_sectors,
        investor.investment_focus or (firm.investment_focus if firm else None),
    )
    stage = calculate_stage_score(
        startup.stage,
        json_list(investor.stages_json) + firm_stages,
        investor.funding_stage,
    )
    check_size = calculate_check_size_score(
        startup.target_amount, check_min, check_max,
        investor.typical_investment or (firm.typical_check_size if firm else None),
    )
    investor_type = calculate_investor_type_score(
        startup.stage, investor.investor_type or (firm.firm_type if firm else None),
    )

    breakdown = ScoreBreakdown(
        location=round_half_up(location.score * 100),
        industry=round_half_up(industry.score * 100),
        stage=round_half_up(stage.score * 100),
        investor_type=round_half_up(investor_type.score * 100),
        check_size=round_half_up(check_size.score * 100),
    )
    # Reason order is fixed: industry, stage, location, check size, investor type.
    reasons = [r.detail for r in (industry, stage, location, check_size, investor_type) if r.matched]

    return MatchResult(
        investor_id=investor.id,
        firm_id=firm.id if firm else None,
        score=breakdown.weighted_score(weights),
        reasons=reasons,
        breakdown=breakdown,
    )


def is_included(result: MatchResult) -> bool:
    """Keep a candidate that clears the threshold or has at least one explicit match."""
    return result.score >= INCLUDE_THRESHOLD or len(result.reasons) >= 1


def score_startup_for_investor(
    startup: Startup,
    investor: Investor,
    firm: InvestmentFirm | None = None,
) -> tuple[int, list[str]]:
    """Investor-side view: location, industry and stage only, fixed weights."""
    location = calculate_location_score(startup.location, _investor_locations(investor, firm))
    industry = calculate_industry_score(
        json_list(startup.industries_json),
        json_list(investor.sectors_json) + (json_list(firm.sectors_json) if firm else []),
        investor.investment_focus,
    )
    stage = calculate_stage_score(
        startup.stage,
        json_list(investor.stages_json) + (json_list(firm.stages_json) if firm else []),
        investor.funding_stage,
    )
    total = sum(
        round_half_up(result.score * 100) * RECOMMENDATION_WEIGHTS[name]
        for name, result in (("location", location), ("industry", industry), ("stage", stage))
    )
    reasons = [r.detail for r in (industry, stage, location) if r.matched]
    return round_half_up(total), reasons
