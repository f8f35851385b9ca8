from __future__ import annotations
from sqlalchemy import Integer, String, DateTime, PrimaryKeyConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base


"""
  shop_usage table
  - one row per shop per calendar month (period = "YYYY-MM", UTC)
  - `used` counts optimizations that produced a draft; it only ever goes up
"""
class ShopUsage(Base):

    __tablename__ = "shop_usage"

    shop:   Mapped[str] = mapped_column(String(255), nullable=False)
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    used:   Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    updated_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        PrimaryKeyConstraint("shop", "period"),
    )

    def __repr__(self) -> str:
        return f"<ShopUsage shop={self.shop!r} period={self.period!r} used={self.used}>"
