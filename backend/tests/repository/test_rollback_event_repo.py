"""rollback_events audit log on in-memory SQLite."""

from datetime import datetime, timedelta, timezone

from app.repository import rollback_event_repo
from app.repository.rollback_event_repo import RollbackEventDTO


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _event(shop, risk, hours_ago, title="Widget"):
    return RollbackEventDTO(
        timestamp=NOW - timedelta(hours=hours_ago),
        shop=shop,
        content_type="product",
        title=title,
        risk_score=risk,
        reason="Hallucination risk exceeded threshold - content restored",
        previous_draft_id=f"product:1:{hours_ago}",
    )


def test_append_returns_ids_and_lists_newest_first(db):
    first = rollback_event_repo.append(db, _event("a.myshopify.com", 0.8, 30, "Old"))
    second = rollback_event_repo.append(db, _event("a.myshopify.com", 0.9, 1, "New"))
    assert second > first

    rows = rollback_event_repo.list_recent(db, shop="a.myshopify.com")
    assert [r.title for r in rows] == ["New", "Old"]

    payload = rollback_event_repo.event_to_payload(rows[0])
    assert payload["contentType"] == "product"
    assert payload["rollbackTriggered"] is True
    assert payload["timestamp"].endswith("+00:00")


def test_stats_per_shop_and_24h_window(db):
    rollback_event_repo.append(db, _event("a.myshopify.com", 0.8, 30))
    rollback_event_repo.append(db, _event("a.myshopify.com", 0.9, 2))
    rollback_event_repo.append(db, _event("b.myshopify.com", 0.75, 1))

    a = rollback_event_repo.stats(db, shop="a.myshopify.com", now=NOW)
    assert a["totalRollbacks"] == 2
    assert a["recentRollbacks"] == 1
    assert a["averageRiskScore"] == 0.85
    assert a["lastRollback"] == (NOW - timedelta(hours=2)).isoformat()

    everything = rollback_event_repo.stats(db, now=NOW)
    assert everything["totalRollbacks"] == 3
    assert everything["recentRollbacks"] == 2


def test_stats_empty_log(db):
    assert rollback_event_repo.stats(db, now=NOW) == {
        "totalRollbacks": 0,
        "recentRollbacks": 0,
        "averageRiskScore": 0.0,
        "lastRollback": None,
    }


def test_long_titles_are_truncated(db):
    rollback_event_repo.append(db, _event("a.myshopify.com", 0.8, 1, "x" * 600))
    [row] = rollback_event_repo.list_recent(db)
    assert len(row.title) == 512
