# Monthly optimization usage -> dashboard usage bar / upgrade prompt

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from app.api.v1.deps import get_usage_limiter, resolve_shop
from app.services.usage_limiter import PLANS, UsageLimiter


router = APIRouter(tags=["usage"])


@router.get("/usage")
def get_usage(
    shop: str = Depends(resolve_shop),
    limiter: UsageLimiter = Depends(get_usage_limiter),
) -> Dict[str, Any]:
    return limiter.snapshot(shop)


@router.get("/plans")
def list_plans() -> List[Dict[str, Any]]:
    return [{"name": p.name, "limit": p.limit, "price": p.price} for p in PLANS.values()]
