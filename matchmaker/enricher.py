"""Industry-signal enrichment from a startup's uploaded data-room documents.

Names, descriptions and extracted content of deal-room and standalone startup
documents are concatenated and searched (case-insensitive substring) for a
fixed vocabulary of industry keywords.  Hits are unioned into the startup's
industry tags before scoring.
"""
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from matchmaker.models import DealRoom, DealRoomDocument, StartupDocument

log = logging.getLogger(__name__)

INDUSTRY_KEYWORDS: tuple[str, ...] = (
    # verticals
    "fintech", "healthtech", "edtech", "proptech", "insurtech", "regtech",
    "wealthtech", "legaltech", "biotech", "medtech", "cleantech", "greentech",
    "agtech", "foodtech",
    # business models
    "saas", "b2b", "b2c", "marketplace", "platform", "ecommerce", "e-commerce",
    "subscription", "creator economy",
    # technology
    "ai", "ml", "machine learning", "artificial intelligence", "deep learning",
    "computer vision", "nlp", "robotics", "iot", "hardware", "semiconductor",
    "cloud", "devops", "developer tools", "infrastructure", "data", "analytics",
    "cybersecurity", "security", "privacy", "identity",
    "blockchain", "crypto", "defi", "nft", "web3", "metaverse",
    # health and science
    "digital health", "pharma", "genomics", "diagnostics",
    # climate and energy
    "climate", "renewable", "energy", "solar", "battery", "carbon", "agriculture",
    # commerce, transport and industry
    "retail", "consumer", "logistics", "supply chain", "automotive", "mobility",
    "electric vehicle", "drone", "aerospace", "space", "construction", "real estate",
    "travel", "hospitality",
    # finance
    "payments", "lending", "banking", "insurance",
    # media and entertainment
    "gaming", "esports", "entertainment", "media", "music", "streaming", "social",
    "community", "sports", "film", "movies", "production", "studios",
    # work
    "hr", "recruiting", "talent", "workforce", "productivity",
)

# Cap tables list shareholders, not what the company does.
SKIPPED_DOC_TYPES = frozenset({"cap_table"})


def collect_document_text(session: Session, startup_id: int) -> str:
    """Concatenate searchable text from every data-room and startup document."""
    parts: list[str] = []

    room_docs = session.execute(
        select(DealRoomDocument)
        .join(DealRoom, DealRoomDocument.room_id == DealRoom.id)
        .where(DealRoom.startup_id == startup_id)
    ).scalars().all()
    for doc in room_docs:
        if doc.doc_type in SKIPPED_DOC_TYPES:
            continue
        parts.extend(p for p in (doc.description, doc.name) if p)

    startup_docs = session.execute(
        select(StartupDocument).where(StartupDocument.startup_id == startup_id)
    ).scalars().all()
    for doc in startup_docs:
        if doc.doc_type in SKIPPED_DOC_TYPES:
            continue
        parts.extend(p for p in (doc.name, doc.content) if p)

    return " ".join(parts)


def extract_industry_keywords(text: str | None) -> list[str]:
    """Return every ``INDUSTRY_KEYWORDS`` entry found in *text*, in vocabulary order."""
    if not text:
        return []
    lower = text.lower()
    return [kw for kw in INDUSTRY_KEYWORDS if kw in lower]


def document_keywords_for_startup(session: Session, startup_id: int) -> list[str]:
    keywords = extract_industry_keywords(collect_document_text(session, startup_id))
    if keywords:
        log.debug("Startup %s: %d industry keywords from documents", startup_id, len(keywords))
    return keywords
