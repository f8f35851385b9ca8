"""Draft -> publish -> rollback lifecycle against the in-memory store."""

import json
import threading

import pytest

from app.integrations.shopify.errors import ShopifyError
from app.repository import rollback_event_repo
from app.services.draft_workflow import (
    BACKUP_KEY,
    CURRENT_VERSION,
    DRAFT_CONTENT,
    DRAFT_KEYS,
    DRAFT_REJECTION,
    DRAFT_STATUS,
    ENABLE_SCHEMA,
    LIVE_CONTENT,
    LIVE_KEYS,
)
from app.services.errors import NotFoundError, PartialWriteError, ResourceBusyError, UsageLimitError
from app.services.metafield_store import ResourceRef
from app.services.usage_limiter import UsageLimiter

from tests.conftest import RISKY_PAYLOAD, FixedOptimizer


def _keys(store, ref):
    return set(store.data.get(ref.gid, {}))


# ---------- save_draft ----------
def test_draft_round_trip(workflow, store, product_ref):
    outcome = workflow.save_draft(product_ref, None, {"keywords": "steel"})
    assert outcome.rejected is False
    assert outcome.failed_keys == {}

    status = workflow.get_status(product_ref)
    assert status["hasDraft"] is True
    assert status["hasLive"] is False
    assert status["optimized"] is False
    draft = status["draft"]["content"]
    assert draft["optimizedTitle"] == "Widget"
    assert "Widget" in draft["summary"]
    assert status["draft"]["status"] == "pending"


def test_saving_twice_overwrites_the_draft(workflow, store, product_ref, resources):
    workflow.save_draft(product_ref)
    resources.contents[product_ref.gid]["title"] = "Widget Mk2"
    workflow.save_draft(product_ref)

    draft = workflow.get_status(product_ref)["draft"]["content"]
    assert draft["optimizedTitle"] == "Widget Mk2"
    assert len([c for c in store.writes() if c[0] == "set_many"]) == 2


def test_explicit_content_skips_the_fetch(workflow, product_ref, resources):
    resources.contents.clear()
    outcome = workflow.save_draft(product_ref, {"title": "Given", "description": "Supplied body."})
    assert outcome.result.optimized_title == "Given"


def test_high_risk_draft_is_rejected_and_audited(make_workflow, store, product_ref, db):
    wf = make_workflow(FixedOptimizer(RISKY_PAYLOAD))
    outcome = wf.save_draft(product_ref)

    assert outcome.assessment.risk_score == 1.0
    assert outcome.rollback_triggered is True
    assert outcome.rejected is True

    status = wf.get_status(product_ref)
    assert status["hasDraft"] is False
    assert store.data[product_ref.gid][DRAFT_STATUS].value == "rejected"
    assert status["rejection"]["riskScore"] == 1.0

    [event] = rollback_event_repo.list_recent(db)
    assert event.content_type == "product"
    assert event.title == "Widget"
    assert event.rollback_triggered is True


def test_new_pending_draft_clears_old_rejection(make_workflow, store, product_ref):
    make_workflow(FixedOptimizer(RISKY_PAYLOAD)).save_draft(product_ref)
    assert DRAFT_REJECTION in _keys(store, product_ref)

    outcome = make_workflow().save_draft(product_ref)
    assert outcome.rejected is False
    assert DRAFT_REJECTION not in _keys(store, product_ref)
    assert store.data[product_ref.gid][DRAFT_STATUS].value == "pending"


def test_status_content_matches_saved_result(workflow, product_ref):
    outcome = workflow.save_draft(product_ref)
    workflow.publish(product_ref)
    status = workflow.get_status(product_ref)

    assert status["draft"]["content"] == outcome.to_payload()["result"]
    assert status["live"]["content"] == outcome.to_payload()["result"]
    assert isinstance(status["draft"]["faq"], list)
    assert status["draft"]["settings"]["source"] == "fallback"


def test_high_risk_draft_kept_when_auto_rollback_disabled(make_workflow, product_ref, db):
    wf = make_workflow(FixedOptimizer(RISKY_PAYLOAD), auto_rollback=False)
    outcome = wf.save_draft(product_ref)
    assert outcome.rejected is False
    assert wf.get_status(product_ref)["hasDraft"] is True
    assert rollback_event_repo.list_recent(db) == []


def test_failed_draft_key_is_retried_then_reported(make_workflow, store, product_ref):
    store.fail_keys[DRAFT_CONTENT] = 5
    outcome = make_workflow(write_retries=1).save_draft(product_ref)
    assert list(outcome.failed_keys) == [DRAFT_CONTENT]
    assert store.fail_keys[DRAFT_CONTENT] == 3   # first attempt + one retry


def test_strict_writes_raise_on_partial_failure(make_workflow, store, product_ref):
    store.fail_keys[DRAFT_CONTENT] = 5
    with pytest.raises(PartialWriteError) as exc:
        make_workflow(write_retries=0, strict_writes=True).save_draft(product_ref)
    assert DRAFT_CONTENT in exc.value.failed_keys


# ---------- publish ----------
def test_publish_without_draft_fails_without_writes(workflow, store, product_ref):
    with pytest.raises(NotFoundError, match="No draft content found to publish"):
        workflow.publish(product_ref)
    assert store.writes() == []


def test_publish_captures_backup_and_goes_live(workflow, store, product_ref, resources):
    workflow.save_draft(product_ref)
    out = workflow.publish(product_ref)

    assert out["success"] is True
    assert out["version"] == "optimized_v1"
    keys = _keys(store, product_ref)
    assert {BACKUP_KEY, LIVE_CONTENT, ENABLE_SCHEMA, CURRENT_VERSION, "optimized_v1"} <= keys

    backup = json.loads(store.data[product_ref.gid][BACKUP_KEY].value)
    assert backup["title"] == "Widget"
    assert backup["description"] == "<p>A sturdy steel widget for workshop use.</p>"

    status = workflow.get_status(product_ref)
    assert status["hasLive"] is True
    assert status["hasDraft"] is True       # draft stays readable after publish
    assert status["optimized"] is True
    assert resources.updates[-1][1] == "Widget"


def test_backup_is_written_once(workflow, store, product_ref, resources):
    workflow.save_draft(product_ref)
    workflow.publish(product_ref)
    first = store.data[product_ref.gid][BACKUP_KEY].value

    resources.contents[product_ref.gid]["title"] = "Changed"
    workflow.save_draft(product_ref)
    out = workflow.publish(product_ref)

    assert out["version"] == "optimized_v2"
    assert store.data[product_ref.gid][BACKUP_KEY].value == first


def test_backup_failure_aborts_publish(make_workflow, store, product_ref):
    wf = make_workflow(write_retries=0)
    wf.save_draft(product_ref)
    store.fail_keys[BACKUP_KEY] = 1

    with pytest.raises(PartialWriteError):
        wf.publish(product_ref)
    assert LIVE_CONTENT not in _keys(store, product_ref)


def test_clear_draft_on_publish(make_workflow, product_ref):
    wf = make_workflow(clear_draft_on_publish=True)
    wf.save_draft(product_ref)
    wf.publish(product_ref)
    status = wf.get_status(product_ref)
    assert status["hasDraft"] is False
    assert status["hasLive"] is True


def test_resource_update_failure_is_reported_not_raised(workflow, product_ref, resources):
    workflow.save_draft(product_ref)
    resources.fail_update = ShopifyError("HTTP 500")
    out = workflow.publish(product_ref)
    assert "resource" in out["failedKeys"]


# ---------- rollback ----------
def test_publish_then_rollback_restores_original(workflow, store, product_ref, resources):
    workflow.save_draft(product_ref)
    workflow.publish(product_ref)
    out = workflow.rollback(product_ref)

    assert out["success"] is True
    assert out["failedKeys"] == {}
    status = workflow.get_status(product_ref)
    assert status["hasDraft"] is False
    assert status["hasLive"] is False
    assert status["optimized"] is False

    keys = _keys(store, product_ref)
    assert BACKUP_KEY in keys
    assert not keys & set(DRAFT_KEYS + LIVE_KEYS)
    assert "optimized_v1" in keys   # version history survives

    assert resources.contents[product_ref.gid]["title"] == "Widget"
    assert resources.contents[product_ref.gid]["body"] == "<p>A sturdy steel widget for workshop use.</p>"


def test_rollback_without_backup_fails(workflow, product_ref):
    with pytest.raises(NotFoundError, match="No original backup found"):
        workflow.rollback(product_ref)


def test_rollback_restores_articles_too(workflow, resources):
    ref = ResourceRef.of("article", "gid://shopify/Article/55")
    resources.add(ref, "Care guide", "<p>Wash cold.</p>")
    workflow.save_draft(ref)
    workflow.publish(ref)
    resources.contents[ref.gid]["title"] = "Edited"

    workflow.rollback(ref)
    assert resources.contents[ref.gid]["title"] == "Care guide"


def test_rollback_delete_failures_are_reported(workflow, store, product_ref):
    workflow.save_draft(product_ref)
    workflow.publish(product_ref)
    store.fail_keys[LIVE_CONTENT] = 5

    out = workflow.rollback(product_ref)
    assert LIVE_CONTENT in out["failedKeys"]


def test_rollback_to_stored_version(workflow, store, product_ref, resources):
    workflow.save_draft(product_ref)
    workflow.publish(product_ref)
    resources.contents[product_ref.gid]["title"] = "Gadget"
    workflow.save_draft(product_ref)
    workflow.publish(product_ref)

    out = workflow.rollback(product_ref, "optimized_v1")
    assert out["version"] == "optimized_v1"
    assert store.data[product_ref.gid][CURRENT_VERSION].value == "optimized_v1"
    assert resources.contents[product_ref.gid]["title"] == "Widget"

    with pytest.raises(NotFoundError):
        workflow.rollback(product_ref, "optimized_v9")
    with pytest.raises(NotFoundError):
        workflow.rollback(product_ref, "latest")


def test_list_metafields_reports_versions(workflow, product_ref):
    workflow.save_draft(product_ref)
    workflow.publish(product_ref)
    listing = workflow.list_metafields(product_ref)
    assert [v["version"] for v in listing["versions"]] == ["optimized_v1"]
    assert listing["currentVersion"] == "optimized_v1"
    assert listing["namespace"] == "asb"


# ---------- bulk / preview / lock ----------
def test_bulk_isolates_failing_items(workflow, resources):
    for rid in ("1", "3"):
        resources.add(ResourceRef.of("product", rid), f"Item {rid}", "Plain body.")

    out = workflow.optimize_many("product", ["1", "2", "3"], {"tone": "plain"})
    assert out["total"] == 3
    assert out["succeeded"] == 2
    assert [r["success"] for r in out["results"]] == [True, False, True]
    assert "not found" in out["results"][1]["error"]


def test_preview_persists_nothing(workflow, store):
    out = workflow.preview("product", {"title": "Widget", "description": "Steel."}, {})
    assert out["result"]["optimizedTitle"] == "Widget"
    assert "riskScore" in out["assessment"]
    assert store.calls == []


def test_lock_blocks_concurrent_writer(workflow, product_ref):
    key = workflow.locker.key_for(workflow.shop, "product", "101")
    entered = threading.Event()
    release = threading.Event()

    def holder():
        with workflow.locker.hold(key):
            entered.set()
            release.wait(2)

    t = threading.Thread(target=holder)
    t.start()
    try:
        assert entered.wait(2)
        with pytest.raises(ResourceBusyError):
            workflow.save_draft(product_ref)
    finally:
        release.set()
        t.join()


# ---------- monthly quota ----------
def test_each_draft_counts_against_the_quota(workflow, product_ref, usage_limiter):
    outcome = workflow.save_draft(product_ref)
    assert outcome.usage == {"used": 1, "limit": 500, "remaining": 499}
    workflow.save_draft(product_ref)
    assert usage_limiter.snapshot(workflow.shop)["used"] == 2


def test_exhausted_quota_blocks_draft_without_writes(make_workflow, session_factory, store, product_ref):
    free = UsageLimiter(session_factory, plan="Free")
    free.record("test-shop.myshopify.com", count=5)
    wf = make_workflow(usage=free)

    with pytest.raises(UsageLimitError):
        wf.save_draft(product_ref)
    assert store.writes() == []


def test_bulk_stops_when_quota_runs_out(make_workflow, session_factory, resources):
    free = UsageLimiter(session_factory, plan="Free")
    free.record("test-shop.myshopify.com", count=4)
    for rid in ("1", "2", "3"):
        resources.add(ResourceRef.of("product", rid), f"Item {rid}", "Plain body.")

    out = make_workflow(usage=free).optimize_many("product", ["1", "2", "3"])
    assert [r["success"] for r in out["results"]] == [True, False, False]
    assert "limit reached" in out["results"][1]["error"]

    with pytest.raises(UsageLimitError):
        make_workflow(usage=free).optimize_many("product", ["1"])
