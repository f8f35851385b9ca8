from fastapi import APIRouter

from .routes_health import router as health_router
from .drafts import router as drafts_router
from .optimize import router as optimize_router
from .usage import router as usage_router


api_v1 = APIRouter()
api_v1.include_router(health_router)      # /health
api_v1.include_router(drafts_router)      # /draft, /publish, /rollback, /metafields
api_v1.include_router(optimize_router)    # /optimize/*
api_v1.include_router(usage_router)       # /usage, /plans
