# Aggregate every model so Alembic can discover them

from .shop_session import ShopSession
from .shop_usage import ShopUsage
from .rollback_event import RollbackEvent

__all__ = [
    "ShopSession", "ShopUsage", "RollbackEvent",
]
