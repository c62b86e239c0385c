"""Tests for the MCP tool functions, called directly against a file database."""
from __future__ import annotations

import json

import pytest
from sqlalchemy import select

from matchmaker.db import init_db, session_scope
from matchmaker.mcp_server import (
    generate_matches,
    learned_weights,
    list_matches,
    matchmaker_overview,
    recommend_startups,
    record_deal_outcome,
    update_match,
)
from matchmaker.models import Deal, Investor, Match, Startup
from matchmaker.scorer import DEFAULT_WEIGHTS


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def ids(tmp_path) -> dict[str, int]:
    init_db(tmp_path / "t.db")
    with session_scope() as session:
        startup = Startup(
            founder_id="founder-1", name="Ledgerly", location="San Francisco",
            industries_json=json.dumps(["fintech"]), stage="Seed", target_amount=1_000_000,
            is_public=True,
        )
        alice = Investor(
            name="Alice", location="Bay Area", sectors_json=json.dumps(["fintech"]),
            stages_json=json.dumps(["Seed"]), investor_type="VC",
            check_size_min=500_000, check_size_max=2_000_000,
        )
        dan = Investor(
            name="Dan", location="Berlin", sectors_json=json.dumps(["software"]),
            stages_json=json.dumps(["Series A"]),
        )
        session.add_all([startup, alice, dan])
        session.commit()
        return {"startup": startup.id, "alice": alice.id, "dan": dan.id}


def _match_count() -> int:
    with session_scope() as session:
        return len(session.execute(select(Match)).scalars().all())


# ---------------------------------------------------------------------------
# generate_matches / list_matches
# ---------------------------------------------------------------------------


class TestGenerateMatchesTool:
    def test_preview_does_not_persist(self, ids):
        result = generate_matches(ids["startup"])
        assert [m["score"] for m in result["matches"]] == [93, 35]
        assert result["saved"] == 0
        assert result["weights"] == DEFAULT_WEIGHTS.as_dict()
        assert _match_count() == 0

    def test_save(self, ids):
        result = generate_matches(ids["startup"], save=True)
        assert result["saved"] == 2
        listed = list_matches("founder-1")
        assert [m["investor_id"] for m in listed] == [ids["alice"], ids["dan"]]

    def test_learned_weights_for_user(self, ids):
        result = generate_matches(ids["startup"], user_id="founder-1")
        assert result["weights"] == DEFAULT_WEIGHTS.as_dict()

    @pytest.mark.parametrize("limit,expected", [(0, 1), (1, 1), (10_000, 2)])
    def test_limit_clamped(self, ids, limit, expected):
        assert len(generate_matches(ids["startup"], limit=limit)["matches"]) == expected

    def test_unknown_startup(self, ids):
        assert generate_matches(999) == {"error": "Startup 999 not found"}


# ---------------------------------------------------------------------------
# update_match / learned_weights / recommend_startups
# ---------------------------------------------------------------------------


class TestMatchTools:
    def test_update(self, ids):
        generate_matches(ids["startup"], save=True)
        match_id = list_matches("founder-1")[0]["id"]
        result = update_match(match_id, "saved", rating="positive", reason="Strong fit")
        assert result["status"] == "saved"
        assert result["user_feedback"]["rating"] == "positive"

    def test_invalid_status(self, ids):
        generate_matches(ids["startup"], save=True)
        match_id = list_matches("founder-1")[0]["id"]
        result = update_match(match_id, "archived")
        assert "Invalid match status" in result["error"]
        assert list_matches("founder-1")[0]["status"] == "suggested"

    def test_unknown_match(self, ids):
        assert update_match(999, "saved") == {"error": "Match 999 not found"}

    def test_learned_weights(self, ids):
        assert learned_weights("founder-1") == DEFAULT_WEIGHTS.as_dict()

    def test_recommendations(self, ids):
        (top,) = recommend_startups(ids["alice"])
        assert top["startup"]["id"] == ids["startup"]
        assert top["score"] == 90

    def test_recommendations_unknown_investor(self, ids):
        assert recommend_startups(999) == {"error": "Investor 999 not found"}


# ---------------------------------------------------------------------------
# record_deal_outcome
# ---------------------------------------------------------------------------


class TestRecordDealOutcome:
    @pytest.fixture()
    def deal_id(self, ids) -> int:
        generate_matches(ids["startup"], save=True)
        with session_scope() as session:
            deal = Deal(title="Seed round", startup_id=ids["startup"], investor_id=ids["alice"],
                        status="negotiating")
            session.add(deal)
            session.commit()
            return deal.id

    def test_won(self, ids, deal_id):
        result = record_deal_outcome(deal_id, "won")
        assert result == {"deal_id": deal_id, "status": "won", "matches_updated": 1}
        statuses = {m["investor_id"]: m["status"] for m in list_matches("founder-1")}
        assert statuses == {ids["alice"]: "converted", ids["dan"]: "suggested"}

    def test_repeated_outcome_leaves_feedback_alone(self, ids, deal_id):
        record_deal_outcome(deal_id, "won")
        first = list_matches("founder-1")[0]["user_feedback"]
        result = record_deal_outcome(deal_id, "won")
        assert result["matches_updated"] == 0
        assert list_matches("founder-1")[0]["user_feedback"] == first

    @pytest.mark.parametrize("status", ["negotiating", "lead", "closed"])
    def test_only_won_or_lost(self, deal_id, status):
        assert record_deal_outcome(deal_id, status) == {"error": "status must be 'won' or 'lost'"}

    def test_unknown_deal(self, ids):
        assert record_deal_outcome(999, "lost") == {"error": "Deal 999 not found"}


class TestOverviewResource:
    def test_overview(self):
        overview = json.loads(matchmaker_overview())
        assert overview["default_weights"] == DEFAULT_WEIGHTS.as_dict()
        assert set(overview["factors"]) == {"location", "industry", "stage", "check_size", "investor_type"}
