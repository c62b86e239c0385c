from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

MATCH_STATUSES = ("suggested", "saved", "contacted", "passed", "converted")
DEAL_STATUSES = ("lead", "contacted", "negotiating", "due_diligence", "won", "lost")


class Base(DeclarativeBase):
    pass


class Startup(Base):
    __tablename__ = "startups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    founder_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    location: Mapped[str | None] = mapped_column(String(300), nullable=True)
    industries_json: Mapped[str] = mapped_column(Text, default="[]")
    stage: Mapped[str | None] = mapped_column(String(100), nullable=True)  # "Pre-seed", "Seed", "Series A", ...
    target_amount: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    matches: Mapped[list[Match]] = relationship("Match", back_populates="startup", cascade="all, delete-orphan")
    documents: Mapped[list[StartupDocument]] = relationship("StartupDocument", back_populates="startup", cascade="all, delete-orphan")


class InvestmentFirm(Base):
    __tablename__ = "investment_firms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    location: Mapped[str | None] = mapped_column(String(300), nullable=True)
    sectors_json: Mapped[str] = mapped_column(Text, default="[]")
    stages_json: Mapped[str] = mapped_column(Text, default="[]")
    firm_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    check_size_min: Mapped[float | None] = mapped_column(Float, nullable=True)
    check_size_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    typical_check_size: Mapped[str | None] = mapped_column(String(200), nullable=True)
    investment_focus: Mapped[str | None] = mapped_column(Text, nullable=True)

    investors: Mapped[list[Investor]] = relationship("Investor", back_populates="firm")


class Investor(Base):
    __tablename__ = "investors"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    firm_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("investment_firms.id"), nullable=True)
    location: Mapped[str | None] = mapped_column(String(300), nullable=True)
    sectors_json: Mapped[str] = mapped_column(Text, default="[]")
    stages_json: Mapped[str] = mapped_column(Text, default="[]")
    funding_stage: Mapped[str | None] = mapped_column(String(100), nullable=True)
    investor_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    check_size_min: Mapped[float | None] = mapped_column(Float, nullable=True)
    check_size_max: Mapped[float | None] = mapped_column(Float, nullable=True)
    typical_investment: Mapped[str | None] = mapped_column(String(200), nullable=True)
    investment_focus: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    firm: Mapped[InvestmentFirm | None] = relationship("InvestmentFirm", back_populates="investors")


class Match(Base):
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    startup_id: Mapped[int] = mapped_column(Integer, ForeignKey("startups.id"), nullable=False, index=True)
    investor_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("investors.id"), nullable=True)
    firm_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("investment_firms.id"), nullable=True)
    match_score: Mapped[int] = mapped_column(Integer, default=0)
    match_reasons_json: Mapped[str] = mapped_column(Text, default="[]")
    status: Mapped[str] = mapped_column(String(30), default="suggested")  # suggested | saved | contacted | passed | converted
    metadata_json: Mapped[str] = mapped_column(Text, default="{}")  # {"breakdown": {...}}
    user_feedback_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    startup: Mapped[Startup] = relationship("Startup", back_populates="matches")


# One Match per (startup, investor, firm). NULL ids are coalesced to 0 so
# firm-less investors and investor-less firms are covered too.
Index(
    "uq_match_identity",
    Match.startup_id,
    func.coalesce(Match.investor_id, 0),
    func.coalesce(Match.firm_id, 0),
    unique=True,
)


class Deal(Base):
    __tablename__ = "deals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(300), default="")
    startup_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("startups.id"), nullable=True)
    investor_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("investors.id"), nullable=True)
    firm_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("investment_firms.id"), nullable=True)
    status: Mapped[str] = mapped_column(String(30), default="lead")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class DealRoom(Base):
    __tablename__ = "deal_rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    startup_id: Mapped[int] = mapped_column(Integer, ForeignKey("startups.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(300), default="")

    documents: Mapped[list[DealRoomDocument]] = relationship("DealRoomDocument", back_populates="room", cascade="all, delete-orphan")


class DealRoomDocument(Base):
    __tablename__ = "deal_room_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[int] = mapped_column(Integer, ForeignKey("deal_rooms.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(300), default="")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    doc_type: Mapped[str | None] = mapped_column(String(50), nullable=True)  # "pitch_deck" | "financials" | "cap_table" | ...

    room: Mapped[DealRoom] = relationship("DealRoom", back_populates="documents")


class StartupDocument(Base):
    __tablename__ = "startup_documents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    startup_id: Mapped[int] = mapped_column(Integer, ForeignKey("startups.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(300), default="")
    doc_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)

    startup: Mapped[Startup] = relationship("Startup", back_populates="documents")
