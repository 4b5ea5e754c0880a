"""SQLAlchemy ORM models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class PendingAssetRecord(Base):
    """Discovered symbol awaiting approval or rejection."""

    __tablename__ = "pending_assets"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    symbol: Mapped[str] = mapped_column(String(32), nullable=False)
    asset_kind: Mapped[str] = mapped_column(String(16), nullable=False)  # equity, crypto
    meme_score: Mapped[int] = mapped_column(Integer, default=0)
    political_score: Mapped[int] = mapped_column(Integer, default=0)
    earnings_score: Mapped[int] = mapped_column(Integer, default=0)
    summary: Mapped[str] = mapped_column(Text, default="")
    sources: Mapped[list[str]] = mapped_column(JSON, default=list)
    unusual_volume: Mapped[bool] = mapped_column(Boolean, default=False)
    is_political_trade: Mapped[bool] = mapped_column(Boolean, default=False)
    is_earnings_based: Mapped[bool] = mapped_column(Boolean, default=False)
    visibility: Mapped[str] = mapped_column(String(16), default="visible")
    confidence: Mapped[float] = mapped_column(Float, default=0.0)
    discovered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(String(16), default="pending")  # pending, approved, rejected

    __table_args__ = (Index("ix_pending_assets_symbol_status", "symbol", "status"),)


class AssetRecord(Base):
    """Confirmed, actively tracked symbol."""

    __tablename__ = "assets"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    symbol: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    asset_kind: Mapped[str] = mapped_column(String(16), nullable=False)
    meme_score: Mapped[int] = mapped_column(Integer, default=0)
    political_score: Mapped[int] = mapped_column(Integer, default=0)
    earnings_score: Mapped[int] = mapped_column(Integer, default=0)
    summary: Mapped[str] = mapped_column(Text, default="")
    sources: Mapped[list[str]] = mapped_column(JSON, default=list)
    unusual_volume: Mapped[bool] = mapped_column(Boolean, default=False)
    is_political_trade: Mapped[bool] = mapped_column(Boolean, default=False)
    is_earnings_based: Mapped[bool] = mapped_column(Boolean, default=False)
    visibility: Mapped[str] = mapped_column(String(16), default="visible")
    alert_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    live_price: Mapped[float | None] = mapped_column(Float)
    price_change_24h: Mapped[float | None] = mapped_column(Float)
    percent_change_24h: Mapped[float | None] = mapped_column(Float)
    last_price_update: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
