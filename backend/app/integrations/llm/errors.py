"""
   Errors raised by the LLM provider layer.
   The optimizer absorbs both and falls back to deterministic content.
"""

class ProviderError(Exception):
    """Provider call failed: network, auth, rate limit or unusable response."""

class ProviderTimeoutError(ProviderError):
    """Provider did not answer within LLM_TIMEOUT_SEC."""
