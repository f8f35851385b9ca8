# shop_usage repository: (shop, month) -> optimizations used

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.model.shop_usage import ShopUsage


def period_for(now: Optional[datetime] = None) -> str:
    """Calendar month in UTC, e.g. "2026-03"."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return f"{now.year:04d}-{now.month:02d}"


# ---------- Query ----------
def get_used(db: Session, shop: str, period: str) -> int:
    stmt = select(ShopUsage.used).where(ShopUsage.shop == shop, ShopUsage.period == period)
    return int(db.scalars(stmt).first() or 0)


# ---------- Mutations ----------
def increment(db: Session, shop: str, period: str, by: int = 1) -> int:
    """
    used += by for (shop, period), creating the row on first use.
    The increment runs in SQL so concurrent workers do not lose counts. Returns the new total.
    """
    now = datetime.now(timezone.utc)
    upd = (
        update(ShopUsage)
        .where(ShopUsage.shop == shop, ShopUsage.period == period)
        .values(used=ShopUsage.used + by, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    res = db.execute(upd)
    if not res.rowcount:
        try:
            db.execute(insert(ShopUsage).values(shop=shop, period=period, used=by, updated_at=now))
        except IntegrityError:
            # first optimization of the month raced with another worker
            db.rollback()
            db.execute(upd)
    db.commit()
    return get_used(db, shop, period)
