"""shop_sessions: install / reinstall / uninstall."""

from app.repository import shop_session_repo


SHOP = "demo.myshopify.com"


def test_upsert_inserts_then_updates(db):
    created = shop_session_repo.upsert(db, SHOP, "shpat_one", "read_products")
    assert created.access_token == "shpat_one"
    installed_at = created.installed_at

    updated = shop_session_repo.upsert(db, SHOP, "shpat_two", "read_products,write_products")
    assert updated.access_token == "shpat_two"
    assert updated.scope == "read_products,write_products"
    assert updated.installed_at == installed_at
    assert shop_session_repo.get_access_token(db, SHOP) == "shpat_two"


def test_unknown_shop_has_no_token(db):
    assert shop_session_repo.get(db, "nobody.myshopify.com") is None
    assert shop_session_repo.get_access_token(db, "nobody.myshopify.com") is None


def test_delete(db):
    shop_session_repo.upsert(db, SHOP, "shpat_one")
    assert shop_session_repo.delete(db, SHOP) is True
    assert shop_session_repo.delete(db, SHOP) is False
    assert shop_session_repo.get(db, SHOP) is None
