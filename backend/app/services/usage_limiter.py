# Monthly optimization quota per shop, backed by the shop_usage table

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings
from app.repository import shop_usage_repo
from app.services.errors import UsageLimitError


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Plan:
    name: str
    limit: int
    price: Optional[float]     # None -> contact us


PLANS: Dict[str, Plan] = {
    "Free": Plan("Free", 5, 0.0),
    "Basic": Plan("Basic", 100, 9.99),
    "Pro": Plan("Pro", 500, 14.99),
    "Custom": Plan("Custom", 999, None),
}

LIMIT_MESSAGE = "Monthly optimization limit reached. Please upgrade your plan to continue."


class UsageLimiter:
    """
    check(shop)      -> raises UsageLimitError once the month's quota is used up
    record(shop, n)  -> count n optimizations against the current month
    snapshot(shop)   -> {used, limit, remaining, plan, period, canOptimize}
    enabled=False keeps counting but never blocks.
    """

    def __init__(self, session_factory: sessionmaker[Session], *, plan: str = "Pro", enabled: bool = True):
        if plan not in PLANS:
            raise ValueError(f"unknown plan: {plan!r}")
        self.session_factory = session_factory
        self.plan = PLANS[plan]
        self.enabled = enabled

    @classmethod
    def from_settings(cls, session_factory: sessionmaker[Session]) -> "UsageLimiter":
        return cls(session_factory, plan=settings.USAGE_PLAN, enabled=settings.USAGE_LIMIT_ENABLED)


    def snapshot(self, shop: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        period = shop_usage_repo.period_for(now)
        with self.session_factory() as db:
            used = shop_usage_repo.get_used(db, shop, period)
        return {
            "used": used,
            "limit": self.plan.limit,
            "remaining": max(0, self.plan.limit - used),
            "plan": self.plan.name,
            "period": period,
            "canOptimize": (not self.enabled) or used < self.plan.limit,
        }


    def check(self, shop: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        usage = self.snapshot(shop, now)
        if not usage["canOptimize"]:
            logger.warning("usage.limit_reached shop=%s plan=%s used=%s limit=%s",
                shop, usage["plan"], usage["used"], usage["limit"])
            raise UsageLimitError(LIMIT_MESSAGE, usage)
        return usage


    def record(self, shop: str, count: int = 1, now: Optional[datetime] = None) -> int:
        period = shop_usage_repo.period_for(now)
        with self.session_factory() as db:
            used = shop_usage_repo.increment(db, shop, period, by=count)
        logger.info("usage.recorded shop=%s period=%s used=%s limit=%s", shop, period, used, self.plan.limit)
        return used
