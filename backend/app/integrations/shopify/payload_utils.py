from __future__ import annotations

import html
import re
from typing import Any, Dict, List, Literal


ResourceType = Literal["product", "article"]

_GID_TYPES: Dict[str, str] = {"product": "Product", "article": "Article"}
_TYPE_ALIASES: Dict[str, str] = {
    "product": "product",
    "products": "product",
    "article": "article",
    "articles": "article",
    "blog": "article",
    "blogs": "article",
}

_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


def normalize_resource_type(value: str) -> ResourceType:
    """
    Map the path/body spelling ("products", "blog", ...) onto product | article.
    Anything else is a ValueError; the API layer turns it into a 422.
    """
    key = str(value or "").strip().lower()
    if key not in _TYPE_ALIASES:
        raise ValueError(f"unsupported resource type: {value!r}")
    return _TYPE_ALIASES[key]  # type: ignore[return-value]


def to_gid(resource_type: str, resource_id: str | int) -> str:
    """
    Numeric id -> gid://shopify/Product/<id>; an existing GID is returned untouched.
    """
    raw = str(resource_id or "").strip()
    if not raw:
        raise ValueError("resource id is empty")
    if raw.startswith("gid://"):
        return raw
    rtype = normalize_resource_type(resource_type)
    return f"gid://shopify/{_GID_TYPES[rtype]}/{raw}"


def numeric_id(gid_or_id: str | int) -> str:
    """gid://shopify/Product/123 -> "123"."""
    raw = str(gid_or_id or "").strip()
    return raw.rsplit("/", 1)[-1] if raw.startswith("gid://") else raw


def normalize_tags(value: Any) -> List[str]:
    """
    Normalize Shopify tags (usually list[str]) into a clean string list.
    A comma-separated string is accepted as well.
    """
    if value is None:
        return []
    if isinstance(value, list):
        return [str(v).strip() for v in value if isinstance(v, str) and str(v).strip()]
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return []


def strip_html(value: Any) -> str:
    """Drop tags and collapse whitespace; used for the plain-text description fallback."""
    if not value:
        return ""
    text = _TAG_RE.sub(" ", str(value))
    return _WS_RE.sub(" ", html.unescape(text)).strip()


def normalize_resource_node(node: Dict[str, Any]) -> Dict[str, Any]:
    """
    Flatten a Product / Article node into the raw content dict used by the optimizer:
      {id, type, title, body, description, tags, handle, vendor, productType}
    """
    typename = node.get("__typename")
    if typename == "Product":
        body = node.get("descriptionHtml") or ""
        return {
            "id": node.get("id"),
            "type": "product",
            "title": node.get("title") or "",
            "body": body,
            "description": node.get("description") or strip_html(body),
            "tags": normalize_tags(node.get("tags")),
            "handle": node.get("handle") or "",
            "vendor": node.get("vendor") or "",
            "productType": node.get("productType") or "",
        }
    if typename == "Article":
        body = node.get("body") or ""
        return {
            "id": node.get("id"),
            "type": "article",
            "title": node.get("title") or "",
            "body": body,
            "description": node.get("summary") or strip_html(body),
            "tags": normalize_tags(node.get("tags")),
            "handle": node.get("handle") or "",
            "vendor": "",
            "productType": "",
        }
    raise ValueError(f"unexpected node type: {typename!r}")
