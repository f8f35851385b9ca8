# Draft / publish / rollback workflow over namespaced metafields
#
# States come from which keys exist on the resource:
#   NoOptimization -> (save_draft) -> Drafted -> (publish) -> Published -> (rollback) -> NoOptimization
# original_backup is written once, before the first publish, and never deleted.

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from app.core.config import settings as app_settings
from app.integrations.shopify.errors import ShopifyError
from app.integrations.shopify.payload_utils import numeric_id
from app.infrastructure.locks import ResourceLocker
from app.services.content_optimizer import ContentOptimizer, OptimizationResult, OptimizationSettings
from app.services.errors import NotFoundError, PartialWriteError
from app.services.metafield_store import Metafield, MetafieldStore, ResourceRef, WriteResult
from app.services.quality_scorer import QualityAssessment, assess_content_quality
from app.services.rollback_engine import RollbackEngine
from app.services.usage_limiter import UsageLimiter
from app.utils.clock import iso_now
from app.utils.serialization import dump_json, load_json


logger = logging.getLogger(__name__)


# ---------- metafield keys ----------
BACKUP_KEY = "original_backup"

DRAFT_CONTENT = "optimized_content_draft"
DRAFT_FAQ = "faq_data_draft"
DRAFT_SETTINGS = "optimization_settings_draft"
DRAFT_TIMESTAMP = "draft_timestamp"
DRAFT_STATUS = "draft_status"
DRAFT_REJECTION = "draft_rejection"
DRAFT_KEYS = (DRAFT_CONTENT, DRAFT_FAQ, DRAFT_SETTINGS, DRAFT_TIMESTAMP, DRAFT_STATUS, DRAFT_REJECTION)

LIVE_CONTENT = "optimized_content"
LIVE_FAQ = "faq_data"
LIVE_SETTINGS = "optimization_settings"
ENABLE_SCHEMA = "enable_schema"
PUBLISHED_TIMESTAMP = "published_timestamp"
CURRENT_VERSION = "current_version"
LIVE_KEYS = (LIVE_CONTENT, LIVE_FAQ, LIVE_SETTINGS, ENABLE_SCHEMA, PUBLISHED_TIMESTAMP, CURRENT_VERSION)

STATUS_PENDING = "pending"
STATUS_REJECTED = "rejected"

_VERSION_RE = re.compile(r"^optimized_v(\d+)$")

TEXT = "single_line_text_field"
JSON = "json"
BOOLEAN = "boolean"


def _json_field(key: str, value: Any) -> Metafield:
    return Metafield(key, value if isinstance(value, str) else dump_json(value), JSON)


def _text_field(key: str, value: str) -> Metafield:
    return Metafield(key, value, TEXT)


def version_numbers(keys: Iterable[str]) -> List[int]:
    out = []
    for key in keys:
        m = _VERSION_RE.match(key)
        if m:
            out.append(int(m.group(1)))
    return sorted(out)


@dataclass(slots=True)
class WorkflowOptions:
    namespace: str = "asb"
    versioning: bool = True
    publish_updates_resource: bool = True
    clear_draft_on_publish: bool = False
    write_retries: int = 1
    strict_writes: bool = False
    auto_rollback: bool = True

    @classmethod
    def from_settings(cls) -> "WorkflowOptions":
        return cls(
            namespace=app_settings.METAFIELD_NAMESPACE,
            versioning=app_settings.VERSIONING_ENABLED,
            publish_updates_resource=app_settings.PUBLISH_UPDATES_RESOURCE,
            clear_draft_on_publish=app_settings.CLEAR_DRAFT_ON_PUBLISH,
            write_retries=app_settings.METAFIELD_WRITE_RETRIES,
            strict_writes=app_settings.STRICT_WRITES,
            auto_rollback=app_settings.AUTO_ROLLBACK_ENABLED,
        )


@dataclass(slots=True)
class DraftOutcome:
    result: OptimizationResult
    assessment: QualityAssessment
    draft_timestamp: str
    rollback_triggered: bool = False
    rejected: bool = False
    failed_keys: Dict[str, str] = field(default_factory=dict)
    usage: Optional[Dict[str, Any]] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "success": True,
            "result": self.result.to_payload(),
            "assessment": self.assessment.to_payload(),
            "draftTimestamp": self.draft_timestamp,
            "status": STATUS_REJECTED if self.rejected else STATUS_PENDING,
            "rollbackTriggered": self.rollback_triggered,
            "rejected": self.rejected,
            "failedKeys": dict(self.failed_keys),
            "usage": self.usage,
        }


class DraftWorkflow:
    """
    One instance per request (bound to one shop).
    Every mutating call holds the per-resource lock for its whole read-modify-write sequence.
    """

    def __init__(
        self,
        store: MetafieldStore,
        resources: Any,                   # get_content(ref) / update_content(ref, title=, body=)
        optimizer: ContentOptimizer,
        rollback_engine: RollbackEngine,
        locker: ResourceLocker,
        *,
        shop: str,
        options: Optional[WorkflowOptions] = None,
        usage: Optional[UsageLimiter] = None,
    ):
        self.store = store
        self.resources = resources
        self.optimizer = optimizer
        self.rollback_engine = rollback_engine
        self.locker = locker
        self.shop = shop
        self.options = options or WorkflowOptions.from_settings()
        self.usage = usage


    def _lock(self, ref: ResourceRef):
        return self.locker.hold(self.locker.key_for(self.shop, ref.resource_type, numeric_id(ref.resource_id)))


    # ---------- writes with retry ----------
    def _with_retries(self, ref: ResourceRef, op: str, attempt: Callable[[List[str]], WriteResult], keys: List[str]) -> WriteResult:
        result = attempt(keys)
        tries = 0
        while result.failed and tries < self.options.write_retries:
            tries += 1
            retry_keys = [k for k in keys if k in result.failed]
            logger.info("workflow.%s.retry ref=%s attempt=%s keys=%s", op, ref, tries, retry_keys)
            result.merge(attempt(retry_keys))

        if result.failed:
            logger.warning("workflow.%s.partial ref=%s failed=%s", op, ref, sorted(result.failed))
            if self.options.strict_writes:
                raise PartialWriteError(f"{op} failed for keys: {', '.join(sorted(result.failed))}", result.failed)
        return result


    def _write(self, ref: ResourceRef, metafields: Sequence[Metafield]) -> WriteResult:
        by_key = {m.key: m for m in metafields}
        return self._with_retries(
            ref, "write",
            lambda keys: self.store.set_many(ref, [by_key[k] for k in keys]),
            list(by_key),
        )


    def _delete(self, ref: ResourceRef, keys: Iterable[str]) -> WriteResult:
        return self._with_retries(
            ref, "delete",
            lambda ks: self.store.delete_many(ref, ks),
            list(dict.fromkeys(keys)),
        )


    # ---------- draft ----------
    def save_draft(
        self,
        ref: ResourceRef,
        content: Optional[Mapping[str, Any]] = None,
        settings: Optional[OptimizationSettings | Mapping[str, Any]] = None,
    ) -> DraftOutcome:
        """
        optimize -> score -> write draft keys (overwrites any previous draft).
        A draft scoring above the rollback threshold is discarded again and marked rejected.
        Each optimization counts against the shop's monthly quota; an exhausted quota raises UsageLimitError.
        """
        start = time.perf_counter()
        opts = settings if isinstance(settings, OptimizationSettings) else OptimizationSettings.model_validate(settings or {})
        if self.usage is not None:
            self.usage.check(self.shop)

        with self._lock(ref):
            raw = dict(content) if content else self.resources.get_content(ref)
            result = self.optimizer.optimize(raw, ref.resource_type, opts)
            assessment = assess_content_quality(result, raw, opts.keywords, threshold=self.rollback_engine.threshold)

            ts = iso_now()
            payload = result.to_payload()
            written = self._write(ref, [
                _json_field(DRAFT_CONTENT, payload),
                _json_field(DRAFT_FAQ, payload["faqs"]),
                _json_field(DRAFT_SETTINGS, {
                    **opts.model_dump(by_alias=True),
                    "source": result.source,
                    "assessment": assessment.to_payload(),
                }),
                _text_field(DRAFT_TIMESTAMP, ts),
                _text_field(DRAFT_STATUS, STATUS_PENDING),
            ])

            # a pending draft replaces any earlier rejection record
            written.failed.update(self._delete(ref, [DRAFT_REJECTION]).failed)

            outcome = DraftOutcome(result, assessment, ts, failed_keys=dict(written.failed))

            if self.options.auto_rollback and self.rollback_engine.should_rollback(assessment.risk_score):
                outcome.rollback_triggered = True
                outcome.rejected = self.rollback_engine.execute_rollback_if_needed(
                    risk_score=assessment.risk_score,
                    draft_id=f"{ref.resource_type}:{numeric_id(ref.resource_id)}:{ts}",
                    original_content=raw,
                    save_fn=lambda draft_id, _original: self._reject_draft(ref, draft_id, assessment),
                    shop=self.shop,
                    content_type=ref.resource_type,
                    title=raw.get("title"),
                )

        if self.usage is not None:
            used = self.usage.record(self.shop)
            limit = self.usage.plan.limit
            outcome.usage = {"used": used, "limit": limit, "remaining": max(0, limit - used)}

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            "workflow.draft.saved shop=%s type=%s id=%s title=%s source=%s risk=%s visibility=%s rollback=%s elapsed_ms=%s",
            self.shop, ref.resource_type, ref.resource_id, (raw.get("title") or "")[:80], result.source,
            assessment.risk_score, assessment.visibility_score, outcome.rejected, elapsed_ms,
        )
        return outcome


    def _reject_draft(self, ref: ResourceRef, draft_id: str, assessment: QualityAssessment) -> None:
        """save_fn for the rollback engine: drop the draft content, keep a rejection record."""
        deleted = self.store.delete_many(ref, [DRAFT_CONTENT, DRAFT_FAQ, DRAFT_SETTINGS])
        if not deleted.ok:
            raise PartialWriteError("failed to discard high-risk draft", deleted.failed)

        marked = self.store.set_many(ref, [
            _text_field(DRAFT_STATUS, STATUS_REJECTED),
            _json_field(DRAFT_REJECTION, {
                "draftId": draft_id,
                "riskScore": assessment.risk_score,
                "visibilityScore": assessment.visibility_score,
                "reason": "Hallucination risk exceeded threshold",
                "recommendations": assessment.recommendations,
                "rejectedAt": iso_now(),
            }),
        ])
        if not marked.ok:
            raise PartialWriteError("failed to mark draft as rejected", marked.failed)


    # ---------- publish ----------
    def publish(self, ref: ResourceRef) -> Dict[str, Any]:
        with self._lock(ref):
            current = self.store.get(ref)
            draft_raw = current.get(DRAFT_CONTENT)
            if not draft_raw:
                raise NotFoundError("No draft content found to publish")

            if not current.get(BACKUP_KEY):
                self._capture_backup(ref)

            draft = load_json(draft_raw, {}) or {}
            ts = iso_now()
            live = [
                _json_field(LIVE_CONTENT, draft_raw),
                _json_field(LIVE_FAQ, current.get(DRAFT_FAQ) or dump_json(draft.get("faqs") or [])),
                _json_field(LIVE_SETTINGS, current.get(DRAFT_SETTINGS) or "{}"),
                Metafield(ENABLE_SCHEMA, "true", BOOLEAN),
                _text_field(PUBLISHED_TIMESTAMP, ts),
            ]

            version: Optional[str] = None
            if self.options.versioning:
                n = (version_numbers(current)[-1:] or [0])[0] + 1
                version = f"optimized_v{n}"
                live += [
                    _json_field(version, draft_raw),
                    _text_field(f"{version}_timestamp", ts),
                    _text_field(CURRENT_VERSION, version),
                ]

            result = self._write(ref, live)

            if self.options.publish_updates_resource:
                self._push_content(ref, draft, result)

            if self.options.clear_draft_on_publish:
                result.failed.update(self._delete(ref, DRAFT_KEYS).failed)

        logger.info("workflow.publish.ok shop=%s ref=%s version=%s failed=%s",
            self.shop, ref, version, sorted(result.failed))
        return {
            "success": True,
            "message": "Content published successfully",
            "publishedAt": ts,
            "version": version,
            "failedKeys": dict(result.failed),
        }


    def _capture_backup(self, ref: ResourceRef) -> None:
        raw = self.resources.get_content(ref)
        backup = {
            "title": raw.get("title") or "",
            "description": raw.get("body") or raw.get("description") or "",
            "backup_timestamp": iso_now(),
        }
        result = self.store.set_many(ref, [_json_field(BACKUP_KEY, backup)])
        tries = 0
        while not result.ok and tries < self.options.write_retries:
            tries += 1
            result = self.store.set_many(ref, [_json_field(BACKUP_KEY, backup)])
        if not result.ok:
            logger.error("workflow.publish.backup_failed shop=%s ref=%s err=%s", self.shop, ref, result.failed)
            raise PartialWriteError("Failed to capture original backup; nothing was published", result.failed)
        logger.info("workflow.publish.backup_captured shop=%s ref=%s", self.shop, ref)


    def _push_content(self, ref: ResourceRef, payload: Mapping[str, Any], result: WriteResult) -> None:
        title = payload.get("optimizedTitle") or None
        body = payload.get("content") or payload.get("optimizedDescription") or None
        if title is None and body is None:
            return
        try:
            self.resources.update_content(ref, title=title, body=body)
        except ShopifyError as e:
            if self.options.strict_writes:
                raise
            logger.warning("workflow.publish.resource_update_failed ref=%s err=%s", ref, e)
            result.failed["resource"] = str(e)


    # ---------- rollback ----------
    def rollback(self, ref: ResourceRef, version: Optional[str] = "original") -> Dict[str, Any]:
        version = (version or "original").strip()
        if version != "original":
            return self._restore_version(ref, version)

        with self._lock(ref):
            current = self.store.get(ref)
            backup = load_json(current.get(BACKUP_KEY))
            if not backup:
                raise NotFoundError("No original backup found")

            # resource first: if this fails the keys still describe the live state
            self.resources.update_content(
                ref, title=backup.get("title"), body=backup.get("description"),
            )
            result = self._delete(ref, DRAFT_KEYS + LIVE_KEYS)

        logger.info("workflow.rollback.original shop=%s ref=%s failed=%s", self.shop, ref, sorted(result.failed))
        return {
            "success": True,
            "message": "Content restored to original",
            "version": "original",
            "restored": {"title": backup.get("title"), "description": backup.get("description")},
            "failedKeys": dict(result.failed),
        }


    def _restore_version(self, ref: ResourceRef, version: str) -> Dict[str, Any]:
        if not _VERSION_RE.match(version):
            raise NotFoundError(f"Unknown version: {version}")

        with self._lock(ref):
            current = self.store.get(ref)
            stored = current.get(version)
            if not stored:
                raise NotFoundError(f"Version {version} not found")

            payload = load_json(stored, {}) or {}
            ts = iso_now()
            result = self._write(ref, [
                _json_field(LIVE_CONTENT, stored),
                _json_field(LIVE_FAQ, payload.get("faqs") or []),
                Metafield(ENABLE_SCHEMA, "true", BOOLEAN),
                _text_field(PUBLISHED_TIMESTAMP, ts),
                _text_field(CURRENT_VERSION, version),
            ])
            self._push_content(ref, payload, result)

        logger.info("workflow.rollback.version shop=%s ref=%s version=%s failed=%s",
            self.shop, ref, version, sorted(result.failed))
        return {
            "success": True,
            "message": f"Content restored to {version}",
            "version": version,
            "restored": {"title": payload.get("optimizedTitle"), "publishedAt": ts},
            "failedKeys": dict(result.failed),
        }


    # ---------- reads ----------
    def get_status(self, ref: ResourceRef) -> Dict[str, Any]:
        current = self.store.get(ref)

        draft_content = current.get(DRAFT_CONTENT)
        live_content = current.get(LIVE_CONTENT)
        status = current.get(DRAFT_STATUS)
        current_version = current.get(CURRENT_VERSION)

        return {
            "hasDraft": bool(draft_content),
            "draft": {
                "content": load_json(draft_content),
                "faq": load_json(current.get(DRAFT_FAQ)),
                "settings": load_json(current.get(DRAFT_SETTINGS)),
                "timestamp": current.get(DRAFT_TIMESTAMP),
                "status": status or STATUS_PENDING,
            } if draft_content else None,
            "hasLive": bool(live_content),
            "live": {
                "content": load_json(live_content),
                "faq": load_json(current.get(LIVE_FAQ)),
                "settings": load_json(current.get(LIVE_SETTINGS)),
                "publishedAt": current.get(PUBLISHED_TIMESTAMP),
                "schemaEnabled": current.get(ENABLE_SCHEMA) == "true",
            } if live_content else None,
            "optimized": bool(current_version and current_version != "original") or current.get(ENABLE_SCHEMA) == "true",
            "currentVersion": current_version,
            "hasBackup": bool(current.get(BACKUP_KEY)),
            "rejection": load_json(current.get(DRAFT_REJECTION)) if status == STATUS_REJECTED else None,
        }


    def list_metafields(self, ref: ResourceRef) -> Dict[str, Any]:
        current = self.store.get(ref)
        versions = [
            {"version": f"optimized_v{n}", "timestamp": current.get(f"optimized_v{n}_timestamp")}
            for n in version_numbers(current)
        ]
        return {
            "namespace": self.options.namespace,
            "metafields": current,
            "versions": versions,
            "currentVersion": current.get(CURRENT_VERSION),
        }


    # ---------- bulk / preview ----------
    def optimize_many(
        self,
        resource_type: str,
        resource_ids: Sequence[str | int],
        settings: Optional[OptimizationSettings | Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Serial; each id is isolated so one failure never stops the batch.
        An exhausted quota rejects the whole request up front; running out midway fails the remaining items.
        """
        if self.usage is not None:
            self.usage.check(self.shop)

        results: List[Dict[str, Any]] = []
        for rid in resource_ids:
            try:
                ref = ResourceRef.of(resource_type, rid)
                outcome = self.save_draft(ref, None, settings)
                results.append({
                    "id": str(rid),
                    "success": True,
                    "riskScore": outcome.assessment.risk_score,
                    "visibilityScore": outcome.assessment.visibility_score,
                    "rejected": outcome.rejected,
                    "failedKeys": outcome.failed_keys,
                })
            except Exception as e:
                logger.warning("workflow.bulk.item_failed shop=%s type=%s id=%s err=%s: %s",
                    self.shop, resource_type, rid, type(e).__name__, e)
                results.append({"id": str(rid), "success": False, "error": str(e)})

        succeeded = sum(1 for r in results if r["success"])
        logger.info("workflow.bulk.done shop=%s type=%s total=%s succeeded=%s",
            self.shop, resource_type, len(results), succeeded)
        return {"total": len(results), "succeeded": succeeded, "failed": len(results) - succeeded, "results": results}


    def preview(
        self,
        resource_type: str,
        content: Mapping[str, Any],
        settings: Optional[OptimizationSettings | Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Optimize + assess only; nothing is persisted."""
        opts = settings if isinstance(settings, OptimizationSettings) else OptimizationSettings.model_validate(settings or {})
        result = self.optimizer.optimize(content, resource_type, opts)
        assessment = assess_content_quality(result, content, opts.keywords, threshold=self.rollback_engine.threshold)
        return {
            "success": True,
            "result": result.to_payload(),
            "assessment": assessment.to_payload(),
            "source": result.source,
        }
