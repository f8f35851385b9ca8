# Draft / publish / rollback endpoints -> called by the dashboard product and blog cards

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from app.api.v1.deps import get_rollback_engine, get_workflow, resolve_shop
from app.services.content_optimizer import OptimizationSettings
from app.services.draft_workflow import DraftWorkflow
from app.services.metafield_store import ResourceRef
from app.services.rollback_engine import RollbackEngine


logger = logging.getLogger(__name__)

router = APIRouter(tags=["drafts"])


# ---------- Pydantic models ----------
class DraftRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    resource_type: str = Field(validation_alias=AliasChoices("resourceType", "type", "resource_type"))
    resource_id: str = Field(validation_alias=AliasChoices("resourceId", "id", "resource_id"))
    content: Optional[Dict[str, Any]] = None      # omitted -> fetched from Shopify
    settings: OptimizationSettings = Field(default_factory=OptimizationSettings)


class RollbackRequest(BaseModel):
    version: str = "original"


def _ref(resource_type: str, resource_id: str) -> ResourceRef:
    try:
        return ResourceRef.of(resource_type, resource_id)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


# ---------- routes ----------
@router.post("/draft")
def save_draft(body: DraftRequest, workflow: DraftWorkflow = Depends(get_workflow)) -> Dict[str, Any]:
    ref = _ref(body.resource_type, body.resource_id)
    outcome = workflow.save_draft(ref, body.content, body.settings)
    return outcome.to_payload()


@router.get("/draft/{resource_type}/{resource_id}")
def get_draft(
    resource_type: str = Path(..., description="product | article"),
    resource_id: str = Path(..., description="numeric id or GID"),
    workflow: DraftWorkflow = Depends(get_workflow),
) -> Dict[str, Any]:
    return workflow.get_status(_ref(resource_type, resource_id))


@router.post("/publish/{resource_type}/{resource_id}")
def publish(
    resource_type: str = Path(...),
    resource_id: str = Path(...),
    workflow: DraftWorkflow = Depends(get_workflow),
) -> Dict[str, Any]:
    return workflow.publish(_ref(resource_type, resource_id))


@router.get("/rollback/stats")
def rollback_stats(
    shop: str = Depends(resolve_shop),
    engine: RollbackEngine = Depends(get_rollback_engine),
) -> Dict[str, Any]:
    return engine.get_rollback_stats(shop)


@router.get("/rollback/events")
def rollback_events(
    shop: str = Depends(resolve_shop),
    limit: int = Query(50, ge=1, le=500),
    engine: RollbackEngine = Depends(get_rollback_engine),
) -> Dict[str, Any]:
    return {"events": engine.get_recent_events(shop, limit)}


@router.post("/rollback/{resource_type}/{resource_id}")
def rollback(
    resource_type: str = Path(...),
    resource_id: str = Path(...),
    body: Optional[RollbackRequest] = Body(None),
    workflow: DraftWorkflow = Depends(get_workflow),
) -> Dict[str, Any]:
    version = body.version if body else "original"
    return workflow.rollback(_ref(resource_type, resource_id), version)


@router.get("/metafields/{resource_type}/{resource_id}")
def list_metafields(
    resource_type: str = Path(...),
    resource_id: str = Path(...),
    workflow: DraftWorkflow = Depends(get_workflow),
) -> Dict[str, Any]:
    return workflow.list_metafields(_ref(resource_type, resource_id))
