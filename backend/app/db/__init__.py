# Export surface for scripts / throwaway table creation

from .session import engine, SessionLocal, get_db, dispose_engine
from app.db.model import *  # make sure every model is loaded into Base.metadata
from .base import Base


"""
    Dev only: create tables on an empty database
        python -c "from app.db import create_all; create_all()"
    Production uses `alembic upgrade head`
"""
def create_all() -> None:
    Base.metadata.create_all(bind=engine)
