# Rollback engine: risk gate + restoration + append-only audit log

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session, sessionmaker

from app.repository import rollback_event_repo
from app.repository.rollback_event_repo import RollbackEventDTO
from app.utils.clock import now_utc


logger = logging.getLogger(__name__)

REASON_RESTORED = "Hallucination risk exceeded threshold - content restored"
REASON_FAILED = "Rollback attempted but failed - manual review required"

SaveFn = Callable[[str, Mapping[str, Any]], Any]


class RollbackEngine:
    """
    should_rollback(risk)          -> risk strictly above the threshold
    execute_rollback_if_needed(..) -> restore via save_fn, always audit, never raise
    get_rollback_stats()           -> aggregate view over the audit log
    """

    def __init__(self, session_factory: sessionmaker[Session], *, threshold: float = 0.7):
        self.session_factory = session_factory
        self.threshold = float(threshold)


    def should_rollback(self, risk_score: float) -> bool:
        return risk_score > self.threshold


    def rollback_draft(self, draft_id: str, original_content: Mapping[str, Any], save_fn: SaveFn) -> bool:
        """Run save_fn; its failure is logged and reported as False."""
        try:
            save_fn(draft_id, original_content)
        except Exception as e:
            logger.error("rollback.restore_failed draft_id=%s err=%s", draft_id, e)
            return False
        logger.warning("rollback.restored draft_id=%s", draft_id)
        return True


    @staticmethod
    def create_rollback_event(
        *,
        shop: Optional[str],
        content_type: Optional[str],
        title: Optional[str],
        risk_score: Optional[float],
        draft_id: Optional[str],
        reason: str = "Hallucination risk exceeded threshold",
    ) -> RollbackEventDTO:
        return RollbackEventDTO(
            timestamp=now_utc(),
            shop=shop or "unknown",
            content_type=content_type or "unknown",
            title=title or "untitled",
            risk_score=risk_score or 0.0,
            rollback_triggered=True,
            reason=reason,
            previous_draft_id=draft_id or "unknown",
        )


    def log_rollback_event(self, event: RollbackEventDTO) -> None:
        """Audit-log failures are logged, never raised."""
        try:
            with self.session_factory() as db:
                rollback_event_repo.append(db, event)
        except Exception:
            logger.exception("rollback.audit_failed shop=%s draft_id=%s", event.shop, event.previous_draft_id)
            return
        logger.info("rollback.audit_logged shop=%s type=%s title=%s risk=%s",
            event.shop, event.content_type, event.title, event.risk_score)


    def execute_rollback_if_needed(
        self,
        *,
        risk_score: float,
        draft_id: str,
        original_content: Mapping[str, Any],
        save_fn: SaveFn,
        shop: Optional[str] = None,
        content_type: Optional[str] = None,
        title: Optional[str] = None,
    ) -> bool:
        """
        Returns False right away under the threshold. Otherwise restores via save_fn,
        writes one audit entry whatever the outcome, and returns whether the restore succeeded.
        """
        try:
            if not self.should_rollback(risk_score):
                return False

            logger.warning("rollback.triggered shop=%s type=%s draft_id=%s risk=%s threshold=%s",
                shop, content_type, draft_id, risk_score, self.threshold)

            restored = self.rollback_draft(draft_id, original_content, save_fn)
            self.log_rollback_event(self.create_rollback_event(
                shop=shop,
                content_type=content_type,
                title=title,
                risk_score=risk_score,
                draft_id=draft_id,
                reason=REASON_RESTORED if restored else REASON_FAILED,
            ))
            return restored

        except Exception as e:
            logger.exception("rollback.process_failed draft_id=%s", draft_id)
            self.log_rollback_event(self.create_rollback_event(
                shop=shop,
                content_type=content_type,
                title=title,
                risk_score=risk_score,
                draft_id=draft_id,
                reason=f"Rollback process failed: {e}",
            ))
            return False


    def get_recent_events(self, shop: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        with self.session_factory() as db:
            return [rollback_event_repo.event_to_payload(row) for row in rollback_event_repo.list_recent(db, shop=shop, limit=limit)]


    def get_rollback_stats(self, shop: Optional[str] = None) -> Dict[str, Any]:
        try:
            with self.session_factory() as db:
                return rollback_event_repo.stats(db, shop=shop)
        except Exception:
            logger.exception("rollback.stats_failed shop=%s", shop)
            return {"totalRollbacks": 0, "recentRollbacks": 0, "averageRiskScore": 0.0, "lastRollback": None}
