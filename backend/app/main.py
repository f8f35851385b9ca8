import logging

from fastapi import FastAPI, Request, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.core.logging import configure_logging
from app.api.v1 import api_v1
from app.db.session import dispose_engine
from app.integrations.shopify.errors import ShopifyError, ShopifyTimeoutError
from app.services.errors import NotFoundError, PartialWriteError, ResourceBusyError, UsageLimitError


configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

# dashboard origins, comma separated, e.g.
# BACKEND_CORS_ORIGINS=http://localhost:5173,https://admin.shopify.com
origins = [o.strip() for o in settings.BACKEND_CORS_ORIGINS.split(",") if o.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    )


# Origin check for mutating methods only; requests without Origin (curl, health checks) pass
TRUSTED = set(origins)

@app.middleware("http")
async def origin_check(request: Request, call_next):
    if request.method in {"POST", "PUT", "PATCH", "DELETE"}:
        origin = request.headers.get("origin")
        if origin and origin not in TRUSTED:
            return JSONResponse(status_code=403, content={"detail": "Bad Origin"})

    return await call_next(request)


# ---------- domain errors -> HTTP ----------
@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"success": False, "detail": str(exc)})


@app.exception_handler(ResourceBusyError)
async def busy_handler(request: Request, exc: ResourceBusyError):
    return JSONResponse(status_code=409, content={"success": False, "detail": str(exc)})


@app.exception_handler(UsageLimitError)
async def usage_limit_handler(request: Request, exc: UsageLimitError):
    return JSONResponse(
        status_code=403,
        content={
            "success": False,
            "detail": str(exc),
            "limitReached": True,
            "upgradeRequired": True,
            "usage": exc.usage,
        },
    )


@app.exception_handler(PartialWriteError)
async def partial_write_handler(request: Request, exc: PartialWriteError):
    logger.error("api.partial_write path=%s failed=%s", request.url.path, sorted(exc.failed_keys))
    return JSONResponse(
        status_code=502,
        content={"success": False, "detail": str(exc), "failedKeys": exc.failed_keys},
    )


@app.exception_handler(ShopifyTimeoutError)
async def shopify_timeout_handler(request: Request, exc: ShopifyTimeoutError):
    logger.error("api.shopify_timeout path=%s err=%s", request.url.path, exc)
    return JSONResponse(status_code=504, content={"success": False, "detail": str(exc)})


@app.exception_handler(ShopifyError)
async def shopify_error_handler(request: Request, exc: ShopifyError):
    logger.error("api.shopify_error path=%s err=%s", request.url.path, exc)
    return JSONResponse(status_code=502, content={"success": False, "detail": str(exc)})


@app.on_event("shutdown")
def _shutdown() -> None:
    dispose_engine()


app.include_router(api_v1, prefix=settings.API_PREFIX)

# root liveness check (tests / Docker health check)
@app.get("/")
def root():
    return {
        "app": settings.PROJECT_NAME,
        "env": settings.ENVIRONMENT,
        "ok": True
    }
