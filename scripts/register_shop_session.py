import os
import sys

from app.db.session import session_scope
from app.repository.shop_session_repo import upsert


# Store (or refresh) the offline Admin API token for a shop, once per install:
#   SHOP=xxx.myshopify.com SHOP_TOKEN=shpat_... python -m scripts.register_shop_session
# (PYTHONPATH must include backend/ so `app` imports)

def main():
    shop = (os.getenv("SHOP") or "").strip().lower()
    token = (os.getenv("SHOP_TOKEN") or "").strip()
    if not shop or not token:
        print("SHOP and SHOP_TOKEN are required")
        sys.exit(1)

    with session_scope() as db:
        row = upsert(db, shop, token, scope=os.getenv("SHOP_SCOPE"))
        print(f"Session stored for {row.shop}")

if __name__ == "__main__":
    main()
