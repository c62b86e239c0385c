from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from matchmaker import services
from matchmaker.db import init_db, session_scope
from matchmaker.models import MATCH_STATUSES, Deal
from matchmaker.scorer import DEFAULT_WEIGHTS

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def matchmaker_lifespan(server: FastMCP) -> AsyncIterator[None]:
    init_db()
    yield


mcp = FastMCP(
    "Matchmaker",
    instructions=(
        "Matchmaker ranks investors for a startup. Use generate_matches(startup_id) "
        "to score candidates, list_matches(user_id) to browse saved matches, "
        "learned_weights(user_id) to see how feedback has shifted factor weights, "
        "and record_deal_outcome(deal_id, status) when a deal closes."
    ),
    lifespan=matchmaker_lifespan,
    json_response=True,
)


# ---------------------------------------------------------------------------
# Resource
# ---------------------------------------------------------------------------


@mcp.resource("matchmaker://overview")
def matchmaker_overview() -> str:
    """Overview of the scoring model: factors, default weights, and match statuses."""
    return json.dumps({
        "system": "Matchmaker - investor/startup compatibility scoring",
        "factors": {
            "location": "Overlap of expanded location tokens; global investors always match.",
            "industry": "Shared canonical industry groups between startup tags and investor sectors.",
            "stage": "Exact funding stage match, or one stage away.",
            "check_size": "Target raise against the investor or firm check-size range.",
            "investor_type": "Whether the investor type usually backs the startup's stage.",
        },
        "default_weights": DEFAULT_WEIGHTS.as_dict(),
        "match_statuses": list(MATCH_STATUSES),
        "inclusion": "A candidate is kept when its score is at least 20 or any factor matched.",
    }, indent=2)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool()
def generate_matches(startup_id: int, limit: int = 50, save: bool = False,
                     user_id: str | None = None) -> dict:
    """Score all active investors for a startup.

    Args:
        startup_id: Startup to match.
        limit: Max results (default 50, max 500).
        save: Persist the results as ``suggested`` matches.
        user_id: When given, use weights learned from this founder's feedback.
    """
    with session_scope() as session:
        weights = services.adjust_weights_from_feedback(session, user_id) if user_id else DEFAULT_WEIGHTS
        try:
            results = services.generate_matches_for_startup(
                session, startup_id, weights, max(1, min(limit, 500)),
            )
        except services.NotFoundError as exc:
            return {"error": str(exc)}
        saved = 0
        if save:
            saved = len(services.save_match_results(session, startup_id, results))
            session.commit()
        return {
            "startup_id": startup_id,
            "weights": weights.as_dict(),
            "saved": saved,
            "matches": [r.as_dict() for r in results],
        }


@mcp.tool()
def list_matches(user_id: str) -> list[dict]:
    """List saved matches for all of a founder's startups, best first."""
    with session_scope() as session:
        return [services.match_summary(m) for m in services.get_matches_for_user(session, user_id)]


@mcp.tool()
def update_match(match_id: int, status: str, rating: str | None = None,
                 reason: str | None = None) -> dict:
    """Set a match's status (suggested, saved, contacted, passed, converted) with optional feedback."""
    with session_scope() as session:
        feedback = {"rating": rating, "reason": reason} if (rating or reason) else None
        try:
            match = services.update_match_status(session, match_id, status, feedback)
        except ValueError as exc:
            return {"error": str(exc)}
        if match is None:
            return {"error": f"Match {match_id} not found"}
        session.commit()
        return services.match_summary(match)


@mcp.tool()
def learned_weights(user_id: str) -> dict:
    """Factor weights derived from a founder's match and deal outcomes."""
    with session_scope() as session:
        return services.adjust_weights_from_feedback(session, user_id).as_dict()


@mcp.tool()
def recommend_startups(investor_id: int, limit: int = 20) -> list[dict] | dict:
    """Top public startups for an investor on location, industry, and stage."""
    with session_scope() as session:
        try:
            ranked = services.get_top_startups_for_investor(session, investor_id, limit)
        except services.NotFoundError as exc:
            return {"error": str(exc)}
        return [
            {"startup": services.startup_summary(r["startup"]), "score": r["score"], "reasons": r["reasons"]}
            for r in ranked
        ]


@mcp.tool()
def record_deal_outcome(deal_id: int, status: str) -> dict:
    """Close a deal as won or lost and stamp related matches with the outcome."""
    if status not in ("won", "lost"):
        return {"error": "status must be 'won' or 'lost'"}
    with session_scope() as session:
        deal = session.get(Deal, deal_id)
        if deal is None:
            return {"error": f"Deal {deal_id} not found"}
        previous = deal.status
        deal.status = status
        updated = []
        if status != previous:
            updated = services.process_deal_outcome_feedback(session, deal)
        session.commit()
        return {"deal_id": deal.id, "status": deal.status, "matches_updated": len(updated)}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """Run the Matchmaker MCP server over stdio."""
    mcp.run()


if __name__ == "__main__":
    main()
