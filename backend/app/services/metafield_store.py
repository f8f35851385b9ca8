# Metafield store: namespaced key/value persistence on a product or article

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from app.integrations.shopify.errors import ShopifyError, ShopifyUserError
from app.integrations.shopify.payload_utils import normalize_resource_type, to_gid
from app.integrations.shopify.shopify_client import ShopifyClient


logger = logging.getLogger(__name__)

# metafieldsSet accepts at most 25 inputs per call
_SHOPIFY_WRITE_CHUNK = 25


@dataclass(frozen=True, slots=True)
class ResourceRef:
    resource_type: str      # product | article
    resource_id: str        # numeric id or GID

    @classmethod
    def of(cls, resource_type: str, resource_id: str | int) -> "ResourceRef":
        return cls(normalize_resource_type(resource_type), str(resource_id).strip())

    @property
    def gid(self) -> str:
        return to_gid(self.resource_type, self.resource_id)

    def __str__(self) -> str:
        return f"{self.resource_type}:{self.resource_id}"


@dataclass(frozen=True, slots=True)
class Metafield:
    key: str
    value: str
    type: str = "single_line_text_field"


@dataclass(slots=True)
class WriteResult:
    """Per-key outcome of a batch write / delete."""
    written: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)    # key -> reason

    @property
    def ok(self) -> bool:
        return not self.failed

    def merge(self, other: "WriteResult") -> "WriteResult":
        for key in other.written:
            self.failed.pop(key, None)
            if key not in self.written:
                self.written.append(key)
        for key, reason in other.failed.items():
            if key not in self.written:
                self.failed[key] = reason
        return self


class MetafieldStore:
    """
    Interface used by the workflow. Implementations:
      - ShopifyMetafieldStore (live Admin API)
      - the in-memory store in tests
    set_many / delete_many never raise for per-key failures; they report them in WriteResult.
    """

    def __init__(self, namespace: str):
        self.namespace = namespace

    def get(self, ref: ResourceRef, namespace: Optional[str] = None) -> Dict[str, str]:
        raise NotImplementedError

    def set_many(self, ref: ResourceRef, metafields: Sequence[Metafield], namespace: Optional[str] = None) -> WriteResult:
        raise NotImplementedError

    def delete_many(self, ref: ResourceRef, keys: Iterable[str], namespace: Optional[str] = None) -> WriteResult:
        raise NotImplementedError

    # single-key forms raise, batch forms report
    def set(self, ref: ResourceRef, metafield: Metafield, namespace: Optional[str] = None) -> None:
        result = self.set_many(ref, [metafield], namespace)
        if not result.ok:
            raise ShopifyUserError("metafieldsSet", [{"field": [metafield.key], "message": result.failed[metafield.key]}])

    def delete(self, ref: ResourceRef, key: str, namespace: Optional[str] = None) -> None:
        result = self.delete_many(ref, [key], namespace)
        if not result.ok:
            raise ShopifyUserError("metafieldsDelete", [{"field": [key], "message": result.failed[key]}])


class ShopifyMetafieldStore(MetafieldStore):
    """Every call is a live Admin API round trip; nothing is cached."""

    def __init__(self, client: ShopifyClient, namespace: str):
        super().__init__(namespace)
        self.client = client


    def get(self, ref: ResourceRef, namespace: Optional[str] = None) -> Dict[str, str]:
        ns = namespace or self.namespace
        rows = self.client.list_metafields(ref.resource_type, ref.resource_id, ns)
        return {row["key"]: row.get("value") for row in rows if row.get("namespace", ns) == ns}


    def set_many(self, ref: ResourceRef, metafields: Sequence[Metafield], namespace: Optional[str] = None) -> WriteResult:
        ns = namespace or self.namespace
        owner = ref.gid
        out = WriteResult()

        items = list(metafields)
        for start in range(0, len(items), _SHOPIFY_WRITE_CHUNK):
            chunk = items[start:start + _SHOPIFY_WRITE_CHUNK]
            metas = [
                {"ownerId": owner, "namespace": ns, "key": m.key, "type": m.type, "value": m.value}
                for m in chunk
            ]
            keys = [m.key for m in chunk]
            try:
                data = self.client.metafields_set_batch(metas)
            except ShopifyError as e:
                logger.warning("metafields.set.chunk_failed ref=%s keys=%s err=%s", ref, keys, e)
                out.failed.update({k: str(e) for k in keys})
                continue

            payload = (data.get("data") or {}).get("metafieldsSet") or {}
            user_errors = payload.get("userErrors") or []
            if user_errors:
                # a metafieldsSet call is atomic: any userError means nothing in this chunk was written
                reasons = _reasons_by_key(user_errors, keys)
                logger.warning("metafields.set.user_errors ref=%s keys=%s errors=%s", ref, keys, user_errors)
                out.failed.update({k: reasons.get(k, "rejected with batch") for k in keys})
                continue
            out.written.extend(keys)

        return out


    def delete_many(self, ref: ResourceRef, keys: Iterable[str], namespace: Optional[str] = None) -> WriteResult:
        ns = namespace or self.namespace
        owner = ref.gid
        out = WriteResult()

        key_list = list(dict.fromkeys(keys))
        for start in range(0, len(key_list), _SHOPIFY_WRITE_CHUNK):
            chunk = key_list[start:start + _SHOPIFY_WRITE_CHUNK]
            identifiers = [{"ownerId": owner, "namespace": ns, "key": k} for k in chunk]
            try:
                data = self.client.metafields_delete_batch(identifiers)
            except ShopifyError as e:
                logger.warning("metafields.delete.chunk_failed ref=%s keys=%s err=%s", ref, chunk, e)
                out.failed.update({k: str(e) for k in chunk})
                continue

            payload = (data.get("data") or {}).get("metafieldsDelete") or {}
            user_errors = payload.get("userErrors") or []
            reasons = _reasons_by_key(user_errors, chunk)
            if user_errors and not reasons:
                reasons = {k: user_errors[0].get("message") or "delete rejected" for k in chunk}
            for k in chunk:
                if k in reasons:
                    out.failed[k] = reasons[k]
                else:
                    out.written.append(k)   # absent keys count as deleted

            if user_errors:
                logger.warning("metafields.delete.user_errors ref=%s errors=%s", ref, user_errors)

        return out


def _reasons_by_key(user_errors: list, keys: List[str]) -> Dict[str, str]:
    """
    userErrors.field looks like ["metafields", "3", "value"]; map the index back onto our key.
    """
    reasons: Dict[str, str] = {}
    for err in user_errors:
        path = err.get("field") or []
        if len(path) >= 2 and str(path[0]) == "metafields":
            try:
                idx = int(path[1])
            except (TypeError, ValueError):
                continue
            if 0 <= idx < len(keys):
                reasons[keys[idx]] = err.get("message") or "invalid"
    return reasons
