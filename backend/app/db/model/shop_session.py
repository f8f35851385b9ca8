from __future__ import annotations
from typing import Optional
from sqlalchemy import String, Text, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base


"""
  shop_sessions table
  - one row per installed shop; holds the offline Admin API token
  - written by the install flow (outside this service), read on every request
"""
class ShopSession(Base):

    __tablename__ = "shop_sessions"

    shop: Mapped[str] = mapped_column(String(255), primary_key=True)   # xxx.myshopify.com

    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    scope:        Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    installed_at: Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at:   Mapped[object] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    def __repr__(self) -> str:
        return f"<ShopSession shop={self.shop!r}>"
