"""
   Errors raised by the Shopify Admin integration.
   Keeps HTTP / GraphQL failures apart from the workflow layer so the API can map them.
"""

class ShopifyError(Exception):
    """Base for all Shopify Admin API errors (HTTP 4xx/5xx, top-level GraphQL errors)."""

class ShopifyTimeoutError(ShopifyError):
    """Request still timing out after every retry."""

class ShopifyUserError(ShopifyError):
    """Mutation returned userErrors."""

    def __init__(self, op: str, user_errors: list):
        self.op = op
        self.user_errors = user_errors or []
        super().__init__(f"{op} userErrors: {self.user_errors}")
