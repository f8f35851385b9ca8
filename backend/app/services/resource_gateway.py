# Read / overwrite the visible content (title + body) of a product or article

from __future__ import annotations

from typing import Any, Dict, Optional

from app.integrations.shopify.shopify_client import ShopifyClient
from app.services.errors import NotFoundError
from app.services.metafield_store import ResourceRef


class ShopifyResourceGateway:

    def __init__(self, client: ShopifyClient):
        self.client = client

    def get_content(self, ref: ResourceRef) -> Dict[str, Any]:
        content: Optional[Dict[str, Any]] = self.client.get_resource(ref.resource_type, ref.resource_id)
        if content is None:
            raise NotFoundError(f"{ref.resource_type} {ref.resource_id} not found")
        return content

    def update_content(self, ref: ResourceRef, *, title: Optional[str] = None, body: Optional[str] = None) -> None:
        self.client.update_resource(ref.resource_type, ref.resource_id, title=title, body=body)
