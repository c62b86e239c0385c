"""Matchmaking operations over the relational store.

Functions here take an open ``Session`` and never commit; callers (HTTP
handlers, MCP tools, scripts) own the transaction.
"""
from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from matchmaker.enricher import document_keywords_for_startup
from matchmaker.models import MATCH_STATUSES, Deal, InvestmentFirm, Investor, Match, Startup
from matchmaker.scorer import (
    DEFAULT_WEIGHTS,
    FACTORS,
    RECOMMENDATION_THRESHOLD,
    MatchResult,
    MatchWeights,
    ScoreBreakdown,
    is_included,
    match_key,
    score_candidate,
    score_startup_for_investor,
)
from matchmaker.utils import json_list, json_parse

log = logging.getLogger(__name__)

DEFAULT_MATCH_LIMIT = 50
DEFAULT_RECOMMENDATION_LIMIT = 20

# Feedback learning
POSITIVE_STATUSES = frozenset({"saved", "contacted", "converted"})
NEGATIVE_STATUSES = frozenset({"passed"})
WON_DEAL_SIGNAL = 3.0
POSITIVE_SIGNAL = 1.0
LOST_DEAL_SIGNAL = -1.0
NEGATIVE_SIGNAL = -0.5
MIN_SIGNALS = 3
LEARNED_BLEND = 0.7

CLOSED_DEAL_STATUSES = frozenset({"won", "lost"})


class NotFoundError(LookupError):
    """A record the operation depends on does not exist."""
    def __init__(self, label: str, entity_id: Any):
        super().__init__(f"{label} {entity_id} not found")
        self.label = label
        self.entity_id = entity_id


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------


def match_breakdown(match: Match) -> dict[str, Any] | None:
    """Raw stored breakdown dict, or None when the match has none."""
    metadata = json_parse(match.metadata_json, {})
    breakdown = metadata.get("breakdown") if isinstance(metadata, dict) else None
    return breakdown if isinstance(breakdown, dict) else None


def match_feedback(match: Match) -> dict[str, Any]:
    feedback = json_parse(match.user_feedback_json, {})
    return feedback if isinstance(feedback, dict) else {}


def match_summary(match: Match) -> dict:
    return {
        "id": match.id, "startup_id": match.startup_id,
        "investor_id": match.investor_id, "firm_id": match.firm_id,
        "match_score": match.match_score,
        "match_reasons": json_list(match.match_reasons_json),
        "status": match.status,
        "breakdown": match_breakdown(match),
        "user_feedback": match_feedback(match) or None,
        "created_at": match.created_at.isoformat() if match.created_at else None,
        "updated_at": match.updated_at.isoformat() if match.updated_at else None,
    }


def startup_summary(startup: Startup) -> dict:
    return {
        "id": startup.id, "name": startup.name, "location": startup.location,
        "industries": json_list(startup.industries_json), "stage": startup.stage,
        "target_amount": startup.target_amount,
    }


def _user_startup_ids(session: Session, user_id: str) -> list[int]:
    return list(session.execute(
        select(Startup.id).where(Startup.founder_id == user_id)
    ).scalars().all())


# ---------------------------------------------------------------------------
# Match generation
# ---------------------------------------------------------------------------


def generate_matches_for_startup(
    session: Session,
    startup_id: int,
    weights: MatchWeights = DEFAULT_WEIGHTS,
    limit: int = DEFAULT_MATCH_LIMIT,
) -> list[MatchResult]:
    """Rank every active investor against a startup; nothing is persisted.

    Investors whose ``investor-firm`` pair already has a Match for this
    startup are skipped.  Results are sorted by score descending, ties broken
    by investor id ascending, and truncated to *limit*.
    """
    startup = session.get(Startup, startup_id)
    if startup is None:
        raise NotFoundError("Startup", startup_id)

    industries = list(dict.fromkeys(
        json_list(startup.industries_json) + document_keywords_for_startup(session, startup_id)
    ))

    investors = session.execute(
        select(Investor).where(Investor.is_active.is_(True)).order_by(Investor.id)
    ).scalars().all()
    firms = {f.id: f for f in session.execute(select(InvestmentFirm)).scalars().all()}

    existing = session.execute(
        select(Match.investor_id, Match.firm_id).where(Match.startup_id == startup_id)
    ).all()
    existing_keys = {match_key(inv_id, firm_id) for inv_id, firm_id in existing}

    results: list[MatchResult] = []
    for investor in investors:
        firm = firms.get(investor.firm_id) if investor.firm_id else None
        key = match_key(investor.id, firm.id if firm else None)
        if key in existing_keys:
            continue
        existing_keys.add(key)
        result = score_candidate(startup, investor, firm, weights, industries=industries)
        if is_included(result):
            results.append(result)

    results.sort(key=lambda r: (-r.score, r.investor_id or 0))
    log.info(
        "Generated %d candidate matches for startup %s (%d investors scanned)",
        len(results), startup_id, len(investors),
    )
    return results[:limit]


def save_match_results(session: Session, startup_id: int, results: list[MatchResult]) -> list[Match]:
    """Insert one ``suggested`` Match per result (caller must commit)."""
    if not results:
        return []
    now = datetime.now(UTC)
    rows = [
        Match(
            startup_id=startup_id,
            investor_id=r.investor_id,
            firm_id=r.firm_id,
            match_score=r.score,
            match_reasons_json=json.dumps(r.reasons),
            status="suggested",
            metadata_json=json.dumps({"breakdown": r.breakdown.as_dict() if r.breakdown else None}),
            user_feedback_json=None,
            created_at=now,
            updated_at=now,
        )
        for r in results
    ]
    session.add_all(rows)
    session.flush()
    return rows


# ---------------------------------------------------------------------------
# Match queries and updates
# ---------------------------------------------------------------------------


def get_matches_for_user(session: Session, user_id: str) -> list[Match]:
    startup_ids = _user_startup_ids(session, user_id)
    if not startup_ids:
        return []
    return list(session.execute(
        select(Match).where(Match.startup_id.in_(startup_ids))
        .order_by(Match.match_score.desc(), Match.id)
    ).scalars().all())


def verify_match_ownership(session: Session, match_id: int, user_id: str) -> bool:
    match = session.get(Match, match_id)
    if match is None:
        return False
    startup = session.get(Startup, match.startup_id)
    return startup is not None and startup.founder_id == user_id


def update_match_status(
    session: Session,
    match_id: int,
    status: str,
    feedback: dict[str, Any] | None = None,
) -> Match | None:
    """Set a match's status and optionally replace its feedback (caller must commit)."""
    if status not in MATCH_STATUSES:
        raise ValueError(f"Invalid match status: {status!r}")
    match = session.get(Match, match_id)
    if match is None:
        return None
    match.status = status
    match.updated_at = datetime.now(UTC)
    if feedback:
        match.user_feedback_json = json.dumps({
            "rating": feedback.get("rating"),
            "reason": feedback.get("reason"),
            "timestamp": datetime.now(UTC).isoformat(),
        })
    session.flush()
    return match


def get_top_startups_for_investor(
    session: Session,
    investor_id: int,
    limit: int = DEFAULT_RECOMMENDATION_LIMIT,
) -> list[dict[str, Any]]:
    """Rank public startups for an investor on location, industry and stage."""
    investor = session.get(Investor, investor_id)
    if investor is None:
        raise NotFoundError("Investor", investor_id)
    firm = session.get(InvestmentFirm, investor.firm_id) if investor.firm_id else None

    startups = session.execute(
        select(Startup).where(Startup.is_public.is_(True)).order_by(Startup.id)
    ).scalars().all()

    results: list[dict[str, Any]] = []
    for startup in startups:
        score, reasons = score_startup_for_investor(startup, investor, firm)
        if score >= RECOMMENDATION_THRESHOLD or len(reasons) >= 2:
            results.append({"startup": startup, "score": score, "reasons": reasons})

    results.sort(key=lambda r: (-r["score"], r["startup"].id))
    return results[:limit]


# ---------------------------------------------------------------------------
# Feedback-driven weights
# ---------------------------------------------------------------------------


def _linked_to(match: Match, investor_ids: set[int], firm_ids: set[int]) -> bool:
    return bool(
        (match.investor_id and match.investor_id in investor_ids)
        or (match.firm_id and match.firm_id in firm_ids)
    )


def collect_feedback_signals(matches: list[Match], deals: list[Deal]) -> list[tuple[Match, float]]:
    """Pair each match with every signal weight that applies to it.

    A match can contribute several signals (e.g. ``converted`` and linked to
    a won deal).
    """
    won = [d for d in deals if d.status == "won"]
    lost = [d for d in deals if d.status == "lost"]
    won_investors = {d.investor_id for d in won if d.investor_id}
    won_firms = {d.firm_id for d in won if d.firm_id}
    lost_investors = {d.investor_id for d in lost if d.investor_id}
    lost_firms = {d.firm_id for d in lost if d.firm_id}

    signals: list[tuple[Match, float]] = []
    signals += [(m, WON_DEAL_SIGNAL) for m in matches if _linked_to(m, won_investors, won_firms)]
    signals += [
        (m, POSITIVE_SIGNAL) for m in matches
        if m.status in POSITIVE_STATUSES or match_feedback(m).get("rating") == "positive"
    ]
    signals += [(m, LOST_DEAL_SIGNAL) for m in matches if _linked_to(m, lost_investors, lost_firms)]
    signals += [
        (m, NEGATIVE_SIGNAL) for m in matches
        if m.status in NEGATIVE_STATUSES or match_feedback(m).get("rating") == "negative"
    ]
    return signals


def learn_weights(signals: list[tuple[Match, float]]) -> MatchWeights:
    """Blend the signal-weighted average breakdown with ``DEFAULT_WEIGHTS``.

    Fewer than ``MIN_SIGNALS`` signals returns the defaults.  Only positive
    signals feed the average; negative ones count toward the minimum only.
    """
    if len(signals) < MIN_SIGNALS:
        return DEFAULT_WEIGHTS

    totals = dict.fromkeys(FACTORS, 0.0)
    total_weight = 0.0
    for match, weight in signals:
        raw = match_breakdown(match)
        if raw is None or weight <= 0:
            continue
        breakdown = ScoreBreakdown.from_dict(raw)
        for f in FACTORS:
            totals[f] += getattr(breakdown, f) * weight
        total_weight += weight

    if total_weight == 0:
        return DEFAULT_WEIGHTS

    averages = {f: totals[f] / total_weight for f in FACTORS}
    grand_total = sum(averages.values())
    if grand_total == 0:
        return DEFAULT_WEIGHTS

    return MatchWeights(**{
        f: (averages[f] / grand_total) * LEARNED_BLEND + getattr(DEFAULT_WEIGHTS, f) * (1 - LEARNED_BLEND)
        for f in FACTORS
    })


def adjust_weights_from_feedback(session: Session, user_id: str) -> MatchWeights:
    """Derive per-user weights from the outcomes of the user's past matches.

    Looks at non-``suggested`` matches across all of the user's startups and
    those startups' won/lost deals.  The result is never stored.
    """
    startup_ids = _user_startup_ids(session, user_id)
    if not startup_ids:
        return DEFAULT_WEIGHTS

    matches = list(session.execute(
        select(Match).where(Match.startup_id.in_(startup_ids), Match.status != "suggested")
    ).scalars().all())
    deals = list(session.execute(
        select(Deal).where(Deal.startup_id.in_(startup_ids), Deal.status.in_(CLOSED_DEAL_STATUSES))
    ).scalars().all())

    signals = collect_feedback_signals(matches, deals)
    weights = learn_weights(signals)
    log.debug("User %s: %d feedback signals -> %s", user_id, len(signals), weights)
    return weights


# ---------------------------------------------------------------------------
# Deal outcomes
# ---------------------------------------------------------------------------


def process_deal_outcome_feedback(session: Session, deal: Deal) -> list[Match]:
    """Stamp matches related to a won/lost deal with outcome feedback (caller must commit).

    Won deals move related matches to ``converted``; lost deals only add
    feedback and leave the founder-set status alone.  Returns the updated
    matches (empty when the deal is still open or cannot be correlated).
    """
    if deal.status not in CLOSED_DEAL_STATUSES:
        return []
    if not deal.startup_id:
        log.info("Deal %s has no startup, skipping feedback processing", deal.id)
        return []

    party_conditions = []
    if deal.investor_id:
        party_conditions.append(Match.investor_id == deal.investor_id)
    if deal.firm_id:
        party_conditions.append(Match.firm_id == deal.firm_id)
    if not party_conditions:
        log.info("Deal %s has no investor or firm, skipping feedback processing", deal.id)
        return []

    party = party_conditions[0] if len(party_conditions) == 1 else or_(*party_conditions)
    related = list(session.execute(
        select(Match).where(and_(Match.startup_id == deal.startup_id, party))
    ).scalars().all())
    if not related:
        log.info("No related matches found for deal %s", deal.id)
        return []

    won = deal.status == "won"
    now = datetime.now(UTC)
    for match in related:
        feedback = {
            **match_feedback(match),
            "rating": "positive" if won else "negative",
            "reason": f"Deal {deal.title} {'closed successfully' if won else 'was passed'}",
            "timestamp": now.isoformat(),
            "dealId": deal.id,
            "dealOutcome": deal.status,
        }
        match.user_feedback_json = json.dumps(feedback)
        if won:
            match.status = "converted"
        match.updated_at = now

    session.flush()
    log.info("Processed %s deal outcome for %d related matches", deal.status, len(related))
    return related
