# rollback_events repository (insert-only audit log)

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from sqlalchemy import func, insert, select
from sqlalchemy.orm import Session

from app.db.model.rollback_event import RollbackEvent


@dataclass(slots=True)
class RollbackEventDTO:
    timestamp: datetime
    shop: str = "unknown"
    content_type: str = "unknown"
    title: str = "untitled"
    risk_score: float = 0.0
    rollback_triggered: bool = True
    reason: str = ""
    previous_draft_id: Optional[str] = None


def _aware(dt: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone=True columns
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def event_to_payload(row: RollbackEvent) -> Dict[str, Any]:
    return {
        "timestamp": _aware(row.timestamp).isoformat() if row.timestamp else None,
        "shop": row.shop,
        "contentType": row.content_type,
        "title": row.title,
        "riskScore": row.risk_score,
        "rollbackTriggered": row.rollback_triggered,
        "reason": row.reason,
        "previousDraftId": row.previous_draft_id,
    }


# ---------- Mutations ----------
def append(db: Session, dto: RollbackEventDTO) -> int:
    """Insert one audit row; rows are never updated afterwards."""
    stmt = insert(RollbackEvent).values(
        timestamp=dto.timestamp,
        shop=dto.shop or "unknown",
        content_type=dto.content_type or "unknown",
        title=(dto.title or "untitled")[:512],
        risk_score=float(dto.risk_score or 0.0),
        rollback_triggered=bool(dto.rollback_triggered),
        reason=dto.reason,
        previous_draft_id=dto.previous_draft_id,
    ).returning(RollbackEvent.id)
    new_id = db.execute(stmt).scalar_one()
    db.commit()
    return int(new_id)


# ---------- Query ----------
def list_recent(db: Session, *, shop: Optional[str] = None, limit: int = 50) -> list[RollbackEvent]:
    stmt = select(RollbackEvent)
    if shop:
        stmt = stmt.where(RollbackEvent.shop == shop)
    stmt = stmt.order_by(RollbackEvent.timestamp.desc(), RollbackEvent.id.desc()).limit(max(1, int(limit)))
    return list(db.scalars(stmt))


def stats(db: Session, *, shop: Optional[str] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    {totalRollbacks, recentRollbacks (last 24h), averageRiskScore, lastRollback}
    """
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(hours=24)

    base = select(func.count(RollbackEvent.id), func.avg(RollbackEvent.risk_score))
    recent = select(func.count(RollbackEvent.id)).where(RollbackEvent.timestamp >= since)
    if shop:
        base = base.where(RollbackEvent.shop == shop)
        recent = recent.where(RollbackEvent.shop == shop)

    total, avg_risk = db.execute(base).one()
    recent_count = db.execute(recent).scalar_one()

    latest = list_recent(db, shop=shop, limit=1)
    return {
        "totalRollbacks": int(total or 0),
        "recentRollbacks": int(recent_count or 0),
        "averageRiskScore": round(float(avg_risk), 2) if avg_risk is not None else 0.0,
        "lastRollback": _aware(latest[0].timestamp).isoformat() if latest else None,
    }
