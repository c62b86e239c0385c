"""Tests for industry keyword mining over data-room and startup documents."""
from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from matchmaker.enricher import (
    INDUSTRY_KEYWORDS,
    collect_document_text,
    document_keywords_for_startup,
    extract_industry_keywords,
)
from matchmaker.models import Base, DealRoom, DealRoomDocument, Startup, StartupDocument


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def engine():
    eng = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    Base.metadata.create_all(eng)
    return eng


@pytest.fixture()
def session(engine):
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    sess = factory()
    try:
        yield sess
    finally:
        sess.close()


@pytest.fixture()
def startup(session: Session) -> Startup:
    s = Startup(founder_id="founder-1", name="Reelpay", location="Berlin", stage="Seed")
    session.add(s)
    session.flush()

    room = DealRoom(startup_id=s.id, name="Seed round")
    room.documents = [
        DealRoomDocument(name="Deck", description="Streaming platform for indie film", doc_type="pitch_deck"),
        DealRoomDocument(name="Cap table", description="Angel syndicate and AI fund", doc_type="cap_table"),
    ]
    session.add(room)
    session.add(StartupDocument(
        startup_id=s.id, name="Overview", doc_type="one_pager",
        content="Payments infrastructure for banks",
    ))
    session.commit()
    return s


# ---------------------------------------------------------------------------
# extract_industry_keywords
# ---------------------------------------------------------------------------


class TestExtractIndustryKeywords:
    def test_vocabulary_order(self):
        assert extract_industry_keywords("Film studio building a SaaS marketplace") == [
            "saas", "marketplace", "film",
        ]

    def test_case_insensitive(self):
        assert extract_industry_keywords("CRYPTO") == ["crypto"]

    def test_substring_match(self):
        # "ai" is a substring of "retail"
        assert extract_industry_keywords("retail") == ["ai", "retail"]

    def test_empty(self):
        assert extract_industry_keywords(None) == []
        assert extract_industry_keywords("") == []

    def test_vocabulary_has_no_duplicates(self):
        assert len(INDUSTRY_KEYWORDS) == len(set(INDUSTRY_KEYWORDS))


# ---------------------------------------------------------------------------
# Document collection
# ---------------------------------------------------------------------------


class TestDocumentKeywords:
    def test_collects_room_and_startup_documents(self, session, startup):
        text = collect_document_text(session, startup.id)
        assert "Streaming platform for indie film" in text
        assert "Deck" in text
        assert "Payments infrastructure for banks" in text

    def test_cap_table_skipped(self, session, startup):
        text = collect_document_text(session, startup.id)
        assert "Angel syndicate" not in text

    def test_keywords(self, session, startup):
        assert document_keywords_for_startup(session, startup.id) == [
            "platform", "infrastructure", "payments", "streaming", "film",
        ]

    def test_all_rooms_scanned(self, session, startup):
        session.add(DealRoom(
            startup_id=startup.id, name="Series A",
            documents=[DealRoomDocument(name="Robotics memo", doc_type="memo")],
        ))
        session.commit()
        assert "robotics" in document_keywords_for_startup(session, startup.id)

    def test_other_startups_not_included(self, session, startup):
        other = Startup(founder_id="founder-2", name="Other")
        session.add(other)
        session.commit()
        assert document_keywords_for_startup(session, other.id) == []
