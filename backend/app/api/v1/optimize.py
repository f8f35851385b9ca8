# Bulk optimize + preview endpoints -> dashboard "Optimize selected" / live preview

from __future__ import annotations

import logging
from typing import Any, Dict, List, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import AliasChoices, BaseModel, Field

from app.api.v1.deps import get_workflow
from app.integrations.shopify.payload_utils import normalize_resource_type
from app.services.content_optimizer import OptimizationSettings
from app.services.draft_workflow import DraftWorkflow


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/optimize", tags=["optimize"])

_MAX_BULK = 50


class BulkProductsRequest(BaseModel):
    product_ids: List[Union[str, int]] = Field(validation_alias=AliasChoices("productIds", "product_ids", "ids"))
    settings: OptimizationSettings = Field(default_factory=OptimizationSettings)


class BulkArticlesRequest(BaseModel):
    article_ids: List[Union[str, int]] = Field(
        validation_alias=AliasChoices("articleIds", "blogIds", "article_ids", "ids"),
    )
    settings: OptimizationSettings = Field(default_factory=OptimizationSettings)


class PreviewRequest(BaseModel):
    type: str = "product"
    content: Union[Dict[str, Any], str]
    settings: OptimizationSettings = Field(default_factory=OptimizationSettings)


def _check_size(ids: List[Any]) -> None:
    if not ids:
        raise HTTPException(status_code=422, detail="no ids given")
    if len(ids) > _MAX_BULK:
        raise HTTPException(status_code=422, detail=f"at most {_MAX_BULK} ids per request")


@router.post("/products")
def optimize_products(body: BulkProductsRequest, workflow: DraftWorkflow = Depends(get_workflow)) -> Dict[str, Any]:
    _check_size(body.product_ids)
    return workflow.optimize_many("product", body.product_ids, body.settings)


@router.post("/blogs")
def optimize_blogs(body: BulkArticlesRequest, workflow: DraftWorkflow = Depends(get_workflow)) -> Dict[str, Any]:
    _check_size(body.article_ids)
    return workflow.optimize_many("article", body.article_ids, body.settings)


@router.post("/preview")
def preview(body: PreviewRequest, workflow: DraftWorkflow = Depends(get_workflow)) -> Dict[str, Any]:
    try:
        rtype = normalize_resource_type(body.type)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    content = body.content if isinstance(body.content, dict) else {"title": "", "description": body.content}
    return workflow.preview(rtype, content, body.settings)
