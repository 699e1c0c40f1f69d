"""ORM Models for the Offerten backend — SQLAlchemy 2.0"""
from datetime import datetime
from typing import Any, Optional
from sqlalchemy import (
    JSON, String, Text, Integer, Numeric, DateTime, Index
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
from offerten.db import Base

# JSONB on PostgreSQL, plain JSON elsewhere
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


# ── COST CATEGORIES (Kosten-Kategorien) ───────────────────────────────────────
class CostCategory(Base):
    __tablename__ = "cost_categories"
    # surrogate key keeps insertion order as tie-breaker for equal sort_order
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    unit_time_allowance_hours: Mapped[float] = mapped_column(Numeric(8, 3), default=0)
    basics_factor: Mapped[float] = mapped_column(Numeric(8, 3), default=1)
    scheduling_factor: Mapped[float] = mapped_column(Numeric(8, 3), default=1)
    report_factor: Mapped[float] = mapped_column(Numeric(8, 3), default=1)
    control_factor: Mapped[float] = mapped_column(Numeric(8, 3), default=1)
    closing_factor: Mapped[float] = mapped_column(Numeric(8, 3), default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


# ── BASE RATES (Kosten-Basiswerte, single row id=1) ───────────────────────────
class CostBaseRates(Base):
    __tablename__ = "cost_base_rates"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    hourly_rate_survey: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    basics_per_object: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    scheduling_per_object: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    report_per_object: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    control_per_object: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    delivery_confirmation_per_object: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    data_handover_per_object: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    usb_flat_fee: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    binding_unit_price: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    objects_per_binding_unit: Mapped[int] = mapped_column(Integer, default=1)
    travel_per_km: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    travel_hourly_rate: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    meal_unit_price: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    overnight_unit_price: Mapped[float] = mapped_column(Numeric(10, 2), nullable=False)
    engagement_flat_fee: Mapped[float] = mapped_column(Numeric(10, 2), default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


# ── QUOTE HISTORY (Offerten-Historie) ─────────────────────────────────────────
class QuoteHistory(Base):
    __tablename__ = "quote_history"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quote_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    quote_data: Mapped[dict[str, Any]] = mapped_column(JSONDocument, nullable=False)
    project_location: Mapped[Optional[str]] = mapped_column(String(255))
    project_designation: Mapped[Optional[str]] = mapped_column(String(255))
    recipient_company: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_quote_history_updated_at", "updated_at"),
    )
