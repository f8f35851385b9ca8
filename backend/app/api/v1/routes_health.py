# Health check (optional DB ping)

from fastapi import APIRouter, Query
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from app.core.config import settings
from app.db.session import engine

router = APIRouter(tags=["health"])

@router.get("/health")
def health(deep: bool = Query(False, description="also ping the database")):
    body = {"status": "ok", "env": settings.ENVIRONMENT}
    if deep:
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            body["db"] = "ok"
        except SQLAlchemyError as e:
            body["status"] = "degraded"
            body["db"] = type(e).__name__
    return body
