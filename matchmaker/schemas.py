"""Pydantic request/response schemas for the matchmaker API."""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

from matchmaker.models import DEAL_STATUSES, MATCH_STATUSES


class WeightsOut(BaseModel):
    location: float
    industry: float
    stage: float
    investor_type: float
    check_size: float


class MatchOut(BaseModel):
    id: int
    startup_id: int
    investor_id: int | None = None
    firm_id: int | None = None
    match_score: int
    match_reasons: list[str] = []
    status: str
    breakdown: dict[str, int] | None = None
    user_feedback: dict[str, Any] | None = None
    created_at: str | None = None
    updated_at: str | None = None


class GenerateMatchesRequest(BaseModel):
    startup_id: int
    limit: int = Field(50, ge=1, le=500)


class GenerateMatchesResponse(BaseModel):
    success: bool
    match_count: int
    weights: WeightsOut
    matches: list[MatchOut]


class MatchFeedback(BaseModel):
    rating: Literal["positive", "negative"] | None = None
    reason: str | None = None


class MatchUpdate(BaseModel):
    status: str
    feedback: MatchFeedback | None = None

    @field_validator("status")
    @classmethod
    def status_must_be_known(cls, v: str) -> str:
        if v not in MATCH_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(MATCH_STATUSES)}")
        return v


class StartupOut(BaseModel):
    id: int
    name: str
    location: str | None = None
    industries: list[str] = []
    stage: str | None = None
    target_amount: float | None = None


class RecommendationOut(BaseModel):
    startup: StartupOut
    score: int
    reasons: list[str]


class DealStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def status_must_be_known(cls, v: str) -> str:
        if v not in DEAL_STATUSES:
            raise ValueError(f"status must be one of: {', '.join(DEAL_STATUSES)}")
        return v


class DealOut(BaseModel):
    id: int
    title: str
    startup_id: int | None = None
    investor_id: int | None = None
    firm_id: int | None = None
    status: str
    matches_updated: int = 0
