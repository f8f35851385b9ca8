"""One statically selected chat provider (OpenAI or Anthropic) behind a single `complete` call"""
from __future__ import annotations

import json
import logging
import re
import time
from typing import Any, Dict, Optional

import anthropic
import openai

from app.core.config import settings
from app.integrations.llm.errors import ProviderError, ProviderTimeoutError


logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def _secret(value: Any) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "get_secret_value"):
        value = value.get_secret_value()
    return str(value) or None


def parse_json_object(text: str) -> Dict[str, Any]:
    """
    Pull the JSON object out of a model reply.
    Tolerates ```json fences and leading / trailing prose around the braces.
    """
    raw = _FENCE_RE.sub("", (text or "").strip())
    try:
        value = json.loads(raw)
    except ValueError:
        start, end = raw.find("{"), raw.rfind("}")
        if start < 0 or end <= start:
            raise ProviderError("response contains no JSON object")
        try:
            value = json.loads(raw[start:end + 1])
        except ValueError as e:
            raise ProviderError(f"response JSON is malformed: {e}") from e
    if not isinstance(value, dict):
        raise ProviderError("response JSON is not an object")
    return value


class LLMClient:
    """
    Sync wrapper over the provider SDKs.
      - provider: "openai" | "anthropic"
      - every call carries an explicit timeout; SDK retries are off, the optimizer falls back instead
      - SDK timeouts -> ProviderTimeoutError, every other SDK failure -> ProviderError
    """

    def __init__(
        self,
        provider: str,
        api_key: str,
        model: str,
        *,
        timeout: float = 45.0,
        max_tokens: int = 1500,
        temperature: float = 0.4,
    ):
        if provider not in ("openai", "anthropic"):
            raise ValueError(f"unsupported LLM provider: {provider!r}")
        if not api_key:
            raise ValueError(f"{provider} API key is empty")

        self.provider = provider
        self.model = model
        self.timeout = float(timeout)
        self.max_tokens = int(max_tokens)
        self.temperature = float(temperature)

        if provider == "openai":
            self._client = openai.OpenAI(api_key=api_key, timeout=self.timeout, max_retries=0)
        else:
            self._client = anthropic.Anthropic(api_key=api_key, timeout=self.timeout, max_retries=0)


    @classmethod
    def from_settings(cls) -> Optional["LLMClient"]:
        """
        Build the configured client, or None when the optimizer should use its fallback:
          - LLM_MOCK_MODE is on
          - no key for the selected provider
        LLM_PROVIDER=auto prefers OpenAI when its key is set, otherwise Anthropic.
        """
        if settings.LLM_MOCK_MODE:
            logger.info("llm.client.mock_mode provider=none")
            return None

        openai_key = _secret(settings.OPENAI_API_KEY)
        anthropic_key = _secret(settings.ANTHROPIC_API_KEY)

        provider = settings.LLM_PROVIDER
        if provider == "auto":
            provider = "openai" if openai_key else ("anthropic" if anthropic_key else "")

        if provider == "openai" and openai_key:
            key, model = openai_key, settings.OPENAI_MODEL
        elif provider == "anthropic" and anthropic_key:
            key, model = anthropic_key, settings.ANTHROPIC_MODEL
        else:
            logger.warning("llm.client.no_api_key provider=%s", settings.LLM_PROVIDER)
            return None

        return cls(
            provider,
            key,
            model,
            timeout=settings.LLM_TIMEOUT_SEC,
            max_tokens=settings.LLM_MAX_TOKENS,
            temperature=settings.LLM_TEMPERATURE,
        )


    @property
    def name(self) -> str:
        return f"{self.provider}:{self.model}"


    def complete(self, prompt: str, *, system: Optional[str] = None) -> str:
        """Single-turn completion; returns the reply text."""
        start = time.perf_counter()
        try:
            if self.provider == "openai":
                text = self._complete_openai(prompt, system)
            else:
                text = self._complete_anthropic(prompt, system)
        except (openai.APITimeoutError, anthropic.APITimeoutError) as e:
            raise ProviderTimeoutError(f"{self.name} timed out after {self.timeout}s") from e
        except (openai.OpenAIError, anthropic.AnthropicError) as e:
            raise ProviderError(f"{self.name} call failed: {type(e).__name__}: {e}") from e
        except (IndexError, KeyError, AttributeError, TypeError) as e:
            # empty choices, missing message or content blocks of an unknown shape
            raise ProviderError(f"{self.name} returned an unexpected response: {type(e).__name__}: {e}") from e

        latency_ms = int((time.perf_counter() - start) * 1000)
        logger.info("llm.complete.ok provider=%s model=%s latency_ms=%s chars=%s",
            self.provider, self.model, latency_ms, len(text))
        if not text.strip():
            raise ProviderError(f"{self.name} returned an empty reply")
        return text


    def complete_json(self, prompt: str, *, system: Optional[str] = None) -> Dict[str, Any]:
        return parse_json_object(self.complete(prompt, system=system))


    # ---------- provider calls ----------
    def _complete_openai(self, prompt: str, system: Optional[str]) -> str:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        response = self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content or ""


    def _complete_anthropic(self, prompt: str, system: Optional[str]) -> str:
        response = self._client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=system or "",
            messages=[{"role": "user", "content": prompt}],
        )
        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
