"""Thin Admin GraphQL client: only the calls the draft / publish / rollback workflow needs"""
from __future__ import annotations

import time, logging, requests
from typing import Any, Dict, List, Optional
from requests import HTTPError, Timeout, RequestException

from app.core.config import settings
from app.integrations.shopify.errors import ShopifyError, ShopifyTimeoutError, ShopifyUserError
from app.integrations.shopify.graphql_queries import (
    RESOURCE_CONTENT_BY_ID,
    METAFIELDS_BY_OWNER,
    PRODUCT_UPDATE,
    ARTICLE_UPDATE,
    METAFIELDS_SET,
    METAFIELDS_DELETE,
    SHOP_PING,
)
from app.integrations.shopify.payload_utils import (
    normalize_resource_node,
    normalize_resource_type,
    to_gid,
)


logger = logging.getLogger(__name__)


# ---------------- endpoint & auth ----------------

def _graphql_endpoint(shop: str) -> str:
    # myshopify domain + API version -> Admin GraphQL endpoint
    return f"https://{shop}/admin/api/{settings.SHOPIFY_API_VERSION}/graphql.json"


def _auth_headers(token: Any) -> dict:
    # accepts SecretStr or str
    if hasattr(token, "get_secret_value"):
        token = token.get_secret_value()

    return {
        "Content-Type": "application/json",
        "X-Shopify-Access-Token": token or "",
        "User-Agent": "AISearchBooster/ShopifyClient (+python)",
    }



class ShopifyClient:
    """
    One client per shop. `shop` / `token` default to SHOPIFY_SHOP / SHOPIFY_ADMIN_TOKEN
    so scripts can build it without arguments; the API layer passes the per-shop session.
    """

    def __init__(self, shop: Optional[str] = None, token: Any = None):
        self.shop = shop or settings.SHOPIFY_SHOP
        self.token = token if token is not None else settings.SHOPIFY_ADMIN_TOKEN
        if not self.shop:
            raise ShopifyError("Shopify shop domain is not configured")


    '''
    Shared GraphQL POST (logging + retry) used by every method below
        - json= payload, shared headers and timeout; returns the full `data` envelope
        Failure handling:
           1) 5xx / network errors: exponential backoff retry
           2) 4xx: no retry, ShopifyError
           3) 429: honour Retry-After, otherwise backoff
           4) top-level GraphQL errors: ShopifyError, no retry
           5) timeouts still failing after the last attempt: ShopifyTimeoutError
    '''
    def _post_graphql(
        self,
        query: str,
        variables: Optional[dict] = None,
        *,
        timeout: Optional[int] = None,
        op_name: str = "",   # log label, e.g. "productUpdate" / "metafieldsSet"
    ) -> dict:

        timeout = timeout or getattr(settings, "SHOPIFY_HTTP_TIMEOUT", 30)
        max_retries = max(0, int(getattr(settings, "SHOPIFY_HTTP_RETRIES", 3)))
        backoff_ms = max(50, int(getattr(settings, "SHOPIFY_HTTP_BACKOFF_MS", 200)))

        payload = {"query": query, "variables": variables or {}}
        # never log the query body or values; variable names only
        safe_vars_keys = list(payload["variables"].keys())

        for attempt in range(max_retries + 1):
            start = time.perf_counter()
            try:
                resp = requests.post(
                    _graphql_endpoint(self.shop),
                    headers=_auth_headers(self.token),
                    json=payload,
                    timeout=timeout,
                )
                latency_ms = int((time.perf_counter() - start) * 1000)

                try:
                    resp.raise_for_status()
                except HTTPError as e:
                    status = resp.status_code

                    if status == 429 and attempt < max_retries:
                        retry_after = resp.headers.get("Retry-After")
                        try:
                            sleep_s = max(0.1, float(retry_after))
                        except (TypeError, ValueError):
                            sleep_s = (backoff_ms / 1000.0) * (2 ** attempt)
                        logger.warning(
                            "shopify.graphql.429_throttled op=%s latency_ms=%s attempt=%s/%s retry_after=%s",
                            op_name, latency_ms, attempt, max_retries, retry_after)
                        time.sleep(sleep_s)
                        continue

                    logger.warning(
                        "shopify.graphql.http_error op=%s status=%s latency_ms=%s attempt=%s/%s",
                        op_name, status, latency_ms, attempt, max_retries)

                    if 500 <= status < 600 and attempt < max_retries:
                        time.sleep((backoff_ms / 1000.0) * (2 ** attempt))
                        continue
                    raise ShopifyError(f"{op_name or 'graphql'} failed: HTTP {status}") from e

                try:
                    data = resp.json()
                except ValueError:
                    if attempt < max_retries:
                        logger.warning("shopify.graphql.non_json op=%s attempt=%s/%s", op_name, attempt, max_retries)
                        time.sleep((backoff_ms / 1000.0) * (2 ** attempt))
                        continue
                    raise ShopifyError(f"GraphQL response is not JSON: status={resp.status_code}")

                # top-level errors are syntax / scope problems; retrying does not help
                if data.get("errors"):
                    logger.error(
                        "shopify.graphql.gql_errors op=%s latency_ms=%s attempt=%s/%s errors=%s",
                        op_name, latency_ms, attempt, max_retries, data["errors"])
                    raise ShopifyError(f"GraphQL top-level errors: {data['errors']}")

                logger.info("shopify.graphql.ok op=%s latency_ms=%s attempt=%s vars=%s",
                    op_name, latency_ms, attempt, safe_vars_keys)
                return data

            except Timeout as e:
                latency_ms = int((time.perf_counter() - start) * 1000)
                logger.warning("shopify.graphql.timeout op=%s latency_ms=%s attempt=%s/%s",
                    op_name, latency_ms, attempt, max_retries)
                if attempt == max_retries:
                    raise ShopifyTimeoutError(f"{op_name or 'graphql'} timed out after {timeout}s") from e
                time.sleep((backoff_ms / 1000.0) * (2 ** attempt))

            except RequestException as e:
                latency_ms = int((time.perf_counter() - start) * 1000)
                logger.warning("shopify.graphql.request_exception op=%s latency_ms=%s attempt=%s/%s err=%s",
                    op_name, latency_ms, attempt, max_retries, type(e).__name__)
                if attempt == max_retries:
                    raise ShopifyError(f"{op_name or 'graphql'} request failed: {type(e).__name__}") from e
                time.sleep((backoff_ms / 1000.0) * (2 ** attempt))

        raise ShopifyError(f"{op_name or 'graphql'} failed after retries")


    # connectivity check (token / domain / API version)
    def ping(self) -> dict:
        return self._post_graphql(SHOP_PING, op_name="shop.ping")


    # ---------- resource content ----------
    def get_resource(self, resource_type: str, resource_id: str | int) -> Optional[Dict[str, Any]]:
        """
        Read title / body / description / tags of a product or article.
        Returns None when the id does not resolve to the expected type.
        """
        rtype = normalize_resource_type(resource_type)
        gid = to_gid(rtype, resource_id)
        data = self._post_graphql(RESOURCE_CONTENT_BY_ID, {"id": gid}, op_name=f"{rtype}.get")

        node = (data.get("data") or {}).get("node")
        if not node or node.get("__typename") != rtype.capitalize():
            return None
        return normalize_resource_node(node)


    def update_resource(
        self,
        resource_type: str,
        resource_id: str | int,
        *,
        title: Optional[str] = None,
        body: Optional[str] = None,
    ) -> dict:
        """
        Overwrite the visible title / body. Only the fields given are sent.
          - product: productUpdate(product: {id, title, descriptionHtml})
          - article: articleUpdate(id, article: {title, body})
        """
        rtype = normalize_resource_type(resource_type)
        gid = to_gid(rtype, resource_id)

        if rtype == "product":
            product: Dict[str, Any] = {"id": gid}
            if title is not None:
                product["title"] = title
            if body is not None:
                product["descriptionHtml"] = body
            data = self._post_graphql(PRODUCT_UPDATE, {"product": product}, op_name="productUpdate")
            payload = (data.get("data") or {}).get("productUpdate") or {}
            node_key, op = "product", "productUpdate"
        else:
            article: Dict[str, Any] = {}
            if title is not None:
                article["title"] = title
            if body is not None:
                article["body"] = body
            data = self._post_graphql(ARTICLE_UPDATE, {"id": gid, "article": article}, op_name="articleUpdate")
            payload = (data.get("data") or {}).get("articleUpdate") or {}
            node_key, op = "article", "articleUpdate"

        user_errors = payload.get("userErrors") or []
        if user_errors:
            logger.warning("shopify.resource.update_user_errors op=%s id=%s errors=%s", op, gid, user_errors)
            raise ShopifyUserError(op, user_errors)
        return payload.get(node_key) or {}


    # ---------- metafields ----------
    def list_metafields(self, resource_type: str, resource_id: str | int, namespace: str) -> List[Dict[str, Any]]:
        """
        Every metafield under `namespace` on the owner, following pageInfo cursors.
        Returns [{id, namespace, key, type, value, updatedAt}, ...]
        """
        gid = to_gid(resource_type, resource_id)
        page_size = max(1, int(getattr(settings, "SHOPIFY_METAFIELDS_PAGE", 100)))

        out: List[Dict[str, Any]] = []
        after: Optional[str] = None
        while True:
            data = self._post_graphql(
                METAFIELDS_BY_OWNER,
                {"id": gid, "namespace": namespace, "first": page_size, "after": after},
                op_name="metafields.list",
            )
            node = (data.get("data") or {}).get("node") or {}
            conn = node.get("metafields") or {}
            for edge in conn.get("edges") or []:
                mf = edge.get("node") or {}
                if mf.get("key"):
                    out.append(mf)

            page = conn.get("pageInfo") or {}
            if not page.get("hasNextPage"):
                break
            after = page.get("endCursor")
        return out


    '''
    Batch write: metafieldsSet
      metas: [{"ownerId": gid, "namespace": "asb", "key": "...", "type": "json", "value": "..."}]
      - a single call is atomic on Shopify's side; callers chunk at 25
      - failures come back in data.metafieldsSet.userErrors, not as exceptions
    '''
    def metafields_set_batch(self, metas: list[dict]) -> dict:
        return self._post_graphql(
            METAFIELDS_SET,
            {"metafields": metas},
            timeout=int(getattr(settings, "SHOPIFY_HTTP_TIMEOUT", 30)),
            op_name="metafieldsSet",
        )


    '''
    Batch delete: metafieldsDelete
      identifiers: [{"ownerId": gid, "namespace": "asb", "key": "..."}]
      - deleting a key that does not exist is not an error; it is just absent from deletedMetafields
    '''
    def metafields_delete_batch(self, identifiers: list[dict]) -> dict:
        return self._post_graphql(
            METAFIELDS_DELETE,
            {"metafields": identifiers},
            timeout=int(getattr(settings, "SHOPIFY_HTTP_TIMEOUT", 30)),
            op_name="metafieldsDelete",
        )
