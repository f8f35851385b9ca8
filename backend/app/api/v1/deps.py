# Shared FastAPI dependencies: per-shop Shopify client -> workflow

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import SessionLocal, get_db
from app.infrastructure.locks import build_resource_locker
from app.integrations.shopify.shopify_client import ShopifyClient
from app.repository import shop_session_repo
from app.services.content_optimizer import ContentOptimizer
from app.services.draft_workflow import DraftWorkflow, WorkflowOptions
from app.services.metafield_store import ShopifyMetafieldStore
from app.services.resource_gateway import ShopifyResourceGateway
from app.services.rollback_engine import RollbackEngine
from app.services.usage_limiter import UsageLimiter


def resolve_shop(shop: Optional[str] = Query(None, description="xxx.myshopify.com; defaults to SHOPIFY_SHOP")) -> str:
    value = (shop or settings.SHOPIFY_SHOP or "").strip().lower()
    if not value:
        raise HTTPException(status_code=400, detail="shop is required")
    return value


def get_shopify_client(shop: str = Depends(resolve_shop), db: Session = Depends(get_db)) -> ShopifyClient:
    """
    Stored offline token for the shop first; SHOPIFY_ADMIN_TOKEN only for the configured dev shop.
    """
    token = shop_session_repo.get_access_token(db, shop)
    if not token and shop == (settings.SHOPIFY_SHOP or "").lower():
        token = settings.SHOPIFY_ADMIN_TOKEN
    if not token:
        raise HTTPException(status_code=401, detail=f"No session for shop {shop}")
    return ShopifyClient(shop, token)


@lru_cache(maxsize=1)
def get_optimizer() -> ContentOptimizer:
    return ContentOptimizer.from_settings()


@lru_cache(maxsize=1)
def get_rollback_engine() -> RollbackEngine:
    return RollbackEngine(SessionLocal, threshold=settings.ROLLBACK_RISK_THRESHOLD)


@lru_cache(maxsize=1)
def get_usage_limiter() -> UsageLimiter:
    return UsageLimiter.from_settings(SessionLocal)


def get_workflow(
    shop: str = Depends(resolve_shop),
    client: ShopifyClient = Depends(get_shopify_client),
    optimizer: ContentOptimizer = Depends(get_optimizer),
    rollback_engine: RollbackEngine = Depends(get_rollback_engine),
    usage: UsageLimiter = Depends(get_usage_limiter),
) -> DraftWorkflow:
    options = WorkflowOptions.from_settings()
    return DraftWorkflow(
        ShopifyMetafieldStore(client, options.namespace),
        ShopifyResourceGateway(client),
        optimizer,
        rollback_engine,
        build_resource_locker(),
        shop=shop,
        options=options,
        usage=usage,
    )
