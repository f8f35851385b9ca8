from __future__ import annotations
from typing import Optional
from sqlalchemy import String, Text, Float, Boolean, DateTime, Integer, Index, func
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base


"""
  rollback_events table (append-only audit log)
  - one row per risk-triggered rollback attempt, successful or not
  - rows are never updated or deleted by the application
"""
class RollbackEvent(Base):

    __tablename__ = "rollback_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    timestamp:    Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False)   # when the rollback ran
    shop:         Mapped[str] = mapped_column(String(255), nullable=False, default="unknown")
    content_type: Mapped[str] = mapped_column(String(32), nullable=False, default="unknown")
    title:        Mapped[str] = mapped_column(String(512), nullable=False, default="untitled")
    risk_score:   Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    rollback_triggered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    reason:       Mapped[str] = mapped_column(Text, nullable=False)
    previous_draft_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    logged_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_rollback_events_shop_timestamp", "shop", "timestamp"),
    )
