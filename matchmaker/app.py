from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import Generator

from fastapi import Depends, FastAPI, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from matchmaker import services
from matchmaker.db import current_db_path, get_session, init_db
from matchmaker.models import Deal, Startup
from matchmaker.schemas import (
    DealOut,
    DealStatusUpdate,
    GenerateMatchesRequest,
    GenerateMatchesResponse,
    MatchOut,
    MatchUpdate,
    RecommendationOut,
    WeightsOut,
)

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title="Matchmaker",
    version="0.1.0",
    description=(
        "Investor-startup matchmaking API. Scores investors against a startup's "
        "location, industry, stage, raise and investor type, and learns factor "
        "weights from match and deal outcomes. Authentication is handled upstream; "
        "the acting user is passed as ``user_id``."
    ),
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Matches", "description": "Generate, list, and update investor matches."},
        {"name": "Recommendations", "description": "Startups ranked for an investor."},
        {"name": "Weights", "description": "Per-user factor weights learned from feedback."},
        {"name": "Deals", "description": "Deal status transitions that feed back into matches."},
    ],
)


# ---------------------------------------------------------------------------
# Dependencies & Helpers
# ---------------------------------------------------------------------------


def db_session() -> Generator[Session, None, None]:
    session = get_session()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _get_or_404(session: Session, model, entity_id: int, label: str = "Entity"):
    obj = session.execute(select(model).where(model.id == entity_id)).scalars().first()
    if not obj:
        raise HTTPException(404, f"{label} not found")
    return obj


# ---------------------------------------------------------------------------
# Routes: Health
# ---------------------------------------------------------------------------


@app.get("/health")
async def health():
    db_path = current_db_path()
    return {"status": "ok", "database": db_path.name if db_path else None}


# ---------------------------------------------------------------------------
# Routes: Matches (fixed paths before parameterized to avoid route shadowing)
# ---------------------------------------------------------------------------


@app.get("/api/matches", response_model=list[MatchOut],
         tags=["Matches"], summary="List matches across all of a user's startups, best first")
async def list_matches(user_id: str = Query(..., description="Acting founder"),
                       session: Session = Depends(db_session)):
    return [services.match_summary(m) for m in services.get_matches_for_user(session, user_id)]


@app.post("/api/matches/generate", response_model=GenerateMatchesResponse,
          tags=["Matches"], summary="Generate and save new matches using the user's learned weights")
async def generate_matches(body: GenerateMatchesRequest,
                           user_id: str = Query(..., description="Acting founder"),
                           session: Session = Depends(db_session)):
    startup = session.get(Startup, body.startup_id)
    if startup is None or startup.founder_id != user_id:
        raise HTTPException(403, "Not authorized to generate matches for this startup")

    weights = services.adjust_weights_from_feedback(session, user_id)
    results = services.generate_matches_for_startup(session, body.startup_id, weights, body.limit)
    saved = services.save_match_results(session, body.startup_id, results)
    session.commit()
    return {
        "success": True,
        "match_count": len(saved),
        "weights": weights.as_dict(),
        "matches": [services.match_summary(m) for m in saved],
    }


@app.get("/api/matches/recommendations/{investor_id}", response_model=list[RecommendationOut],
         tags=["Recommendations"], summary="Top public startups for an investor")
async def recommendations(investor_id: int,
                          limit: int = Query(services.DEFAULT_RECOMMENDATION_LIMIT, ge=1, le=200),
                          session: Session = Depends(db_session)):
    try:
        ranked = services.get_top_startups_for_investor(session, investor_id, limit)
    except services.NotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc
    return [
        {"startup": services.startup_summary(r["startup"]), "score": r["score"], "reasons": r["reasons"]}
        for r in ranked
    ]


@app.patch("/api/matches/{match_id}", response_model=MatchOut,
           tags=["Matches"], summary="Update a match's status and optional feedback")
async def update_match(match_id: int, body: MatchUpdate,
                       user_id: str = Query(..., description="Acting founder"),
                       session: Session = Depends(db_session)):
    if not services.verify_match_ownership(session, match_id, user_id):
        raise HTTPException(403, "Not authorized to update this match")
    feedback = body.feedback.model_dump() if body.feedback else None
    match = services.update_match_status(session, match_id, body.status, feedback)
    if match is None:
        raise HTTPException(404, "Match not found")
    session.commit()
    return services.match_summary(match)


# ---------------------------------------------------------------------------
# Routes: Weights
# ---------------------------------------------------------------------------


@app.get("/api/weights", response_model=WeightsOut,
         tags=["Weights"], summary="Factor weights learned from the user's match and deal outcomes")
async def learned_weights(user_id: str = Query(..., description="Acting founder"),
                          session: Session = Depends(db_session)):
    return services.adjust_weights_from_feedback(session, user_id).as_dict()


# ---------------------------------------------------------------------------
# Routes: Deals
# ---------------------------------------------------------------------------


@app.put("/api/deals/{deal_id}/status", response_model=DealOut,
         tags=["Deals"], summary="Change a deal's status; won/lost outcomes update related matches")
async def update_deal_status(deal_id: int, body: DealStatusUpdate, session: Session = Depends(db_session)):
    deal = _get_or_404(session, Deal, deal_id, "Deal")
    previous = deal.status
    deal.status = body.status
    updated = []
    if body.status != previous:
        updated = services.process_deal_outcome_feedback(session, deal)
    session.commit()
    return {
        "id": deal.id, "title": deal.title, "startup_id": deal.startup_id,
        "investor_id": deal.investor_id, "firm_id": deal.firm_id,
        "status": deal.status, "matches_updated": len(updated),
    }


# ---------------------------------------------------------------------------
# Startup
# ---------------------------------------------------------------------------


def main():
    import uvicorn
    uvicorn.run(
        "matchmaker.app:app",
        host=os.environ.get("MATCHMAKER_HOST", "127.0.0.1"),
        port=int(os.environ.get("MATCHMAKER_PORT", "8001")),
        reload=True,
    )


if __name__ == "__main__":
    main()
