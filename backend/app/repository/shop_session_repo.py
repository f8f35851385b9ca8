# shop_sessions repository: shop domain -> offline Admin API token

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import delete as sa_delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db.model.shop_session import ShopSession


# ---------- Query ----------
def get(db: Session, shop: str) -> Optional[ShopSession]:
    stmt = select(ShopSession).where(ShopSession.shop == shop)
    return db.scalars(stmt).first()


def get_access_token(db: Session, shop: str) -> Optional[str]:
    stmt = select(ShopSession.access_token).where(ShopSession.shop == shop)
    return db.scalars(stmt).first()


# ---------- Mutations ----------
def upsert(db: Session, shop: str, access_token: str, scope: Optional[str] = None) -> ShopSession:
    """Update if present, insert otherwise."""
    now = datetime.now(timezone.utc)

    upd = (
        update(ShopSession)
        .where(ShopSession.shop == shop)
        .values(access_token=access_token, scope=scope, updated_at=now)
    )
    res = db.execute(upd)
    if res.rowcount:
        db.commit()
        row = get(db, shop)
        assert row is not None
        return row

    try:
        db.execute(
            insert(ShopSession).values(
                shop=shop,
                access_token=access_token,
                scope=scope,
                installed_at=now,
                updated_at=now,
            )
        )
        db.commit()
    except IntegrityError:
        # another request installed the same shop in between
        db.rollback()
        db.execute(upd)
        db.commit()

    row = get(db, shop)
    if row is None:
        raise RuntimeError(f"failed to upsert shop session {shop}")
    return row


def delete(db: Session, shop: str) -> bool:
    res = db.execute(sa_delete(ShopSession).where(ShopSession.shop == shop))
    db.commit()
    return bool(res.rowcount)
