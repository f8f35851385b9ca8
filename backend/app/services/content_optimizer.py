# Content optimizer: raw product / article content -> OptimizationResult (LLM or deterministic fallback)

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from app.integrations.llm.errors import ProviderError, ProviderTimeoutError
from app.integrations.llm.llm_client import LLMClient
from app.integrations.shopify.payload_utils import strip_html


logger = logging.getLogger(__name__)


# ---------- models ----------
class FAQItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: str = Field(validation_alias=AliasChoices("question", "q"))
    answer: str = Field(validation_alias=AliasChoices("answer", "a"))


class OptimizationSettings(BaseModel):
    """Dashboard settings: {targetLLM, keywords: "a, b" | [..], tone}"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    target_llm: str = Field(
        "general",
        validation_alias=AliasChoices("targetLLM", "targetLlm", "target_llm"),
        serialization_alias="targetLLM",
    )
    keywords: List[str] = Field(default_factory=list)
    tone: str = "professional"

    @field_validator("keywords", mode="before")
    @classmethod
    def _split_keywords(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        return [str(k).strip() for k in v if str(k).strip()]


class OptimizationResult(BaseModel):
    """
    Provider / fallback output. Serialized with camelCase keys (optimizedTitle, jsonLd, ...).
    `content` is the rewritten body pushed to the resource on publish; defaults to optimizedDescription.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    optimized_title: str
    optimized_description: str
    summary: str
    faqs: List[FAQItem] = Field(default_factory=list)
    json_ld: Union[Dict[str, Any], str, None] = None
    llm_description: str = ""
    content: Optional[str] = None

    source: str = Field("fallback", exclude=True)   # provider:<name> | fallback

    @model_validator(mode="after")
    def _default_content(self) -> "OptimizationResult":
        if not self.content:
            self.content = self.optimized_description
        return self

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# ---------- raw content helpers ----------
def _plain_description(content: Mapping[str, Any]) -> str:
    text = content.get("description") or ""
    if not text:
        text = strip_html(content.get("body") or content.get("body_html") or content.get("descriptionHtml") or "")
    return str(text).strip()


def _first_sentence(text: str, limit: int = 160) -> str:
    text = (text or "").strip()
    for stop in (". ", "! ", "? "):
        idx = text.find(stop)
        if 0 < idx < limit:
            return text[: idx + 1]
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


SYSTEM_PROMPT = (
    "You optimize Shopify store content so AI assistants (ChatGPT, Claude, Perplexity, Gemini) "
    "can quote it accurately. Stay factual: only use details present in the source content. "
    "Avoid marketing superlatives and unverifiable claims. Return valid JSON only."
)


class ContentOptimizer:
    """
    optimize(content, resource_type, settings) never raises for provider problems:
    timeouts, SDK errors and malformed JSON all land on the deterministic fallback.
    """

    def __init__(self, llm_client: Optional[LLMClient] = None, *, mock_mode: bool = False):
        self.llm_client = llm_client
        self.mock_mode = mock_mode

    @classmethod
    def from_settings(cls) -> "ContentOptimizer":
        client = LLMClient.from_settings()
        return cls(client, mock_mode=client is None)


    def optimize(
        self,
        content: Mapping[str, Any],
        resource_type: str,
        settings: Optional[OptimizationSettings | Mapping[str, Any]] = None,
    ) -> OptimizationResult:
        opts = settings if isinstance(settings, OptimizationSettings) else OptimizationSettings.model_validate(settings or {})

        if self.mock_mode or self.llm_client is None:
            return self.fallback(content, resource_type)

        prompt = self.build_prompt(content, resource_type, opts)
        try:
            data = self.llm_client.complete_json(prompt, system=SYSTEM_PROMPT)
            result = OptimizationResult.model_validate(data)
        except ProviderTimeoutError as e:
            logger.warning("optimizer.provider.timeout provider=%s type=%s err=%s",
                self.llm_client.name, resource_type, e)
            return self.fallback(content, resource_type)
        except ProviderError as e:
            logger.warning("optimizer.provider.error provider=%s type=%s err=%s",
                self.llm_client.name, resource_type, e)
            return self.fallback(content, resource_type)
        except ValidationError as e:
            logger.warning("optimizer.provider.bad_shape provider=%s type=%s errors=%s",
                self.llm_client.name, resource_type, e.error_count())
            return self.fallback(content, resource_type)
        except Exception:
            logger.exception("optimizer.provider.unexpected provider=%s type=%s",
                self.llm_client.name, resource_type)
            return self.fallback(content, resource_type)

        result.source = f"provider:{self.llm_client.name}"
        return result


    def build_prompt(self, content: Mapping[str, Any], resource_type: str, opts: OptimizationSettings) -> str:
        kind = "blog article" if resource_type == "article" else "product"
        keywords = ", ".join(opts.keywords) if opts.keywords else "(none)"
        tags = content.get("tags") or []
        tags_text = ", ".join(tags) if isinstance(tags, list) else str(tags)

        return f"""Rewrite this Shopify {kind} so it is easy for {opts.target_llm} to cite in AI answers.
Tone: {opts.tone}
Keywords to ground (only where accurate): {keywords}

Title: {content.get("title") or ""}
Description: {_plain_description(content)}
Tags: {tags_text}
Vendor: {content.get("vendor") or ""}
Type: {content.get("productType") or ""}

Return one JSON object with exactly these keys:
{{
  "optimizedTitle": string,
  "optimizedDescription": string,
  "summary": string (under 160 characters),
  "content": string (HTML body for the {kind} page),
  "faqs": [{{"question": string, "answer": string}}] (4 to 6 items, practical questions),
  "jsonLd": object (schema.org {"Article" if resource_type == "article" else "Product"}),
  "llmDescription": string (2-3 factual sentences for AI assistants)
}}"""


    def fallback(self, content: Mapping[str, Any], resource_type: str) -> OptimizationResult:
        """
        Deterministic result built from the raw content only.
        optimizedTitle is the original title and the summary always contains it.
        """
        title = str(content.get("title") or "").strip() or "Untitled"
        description = _plain_description(content)
        lead = _first_sentence(description)
        is_article = resource_type == "article"

        summary = f"{title}: {lead}" if lead else f"Key facts about {title}."
        llm_description = f"{title}. {description[:300]}".strip() if description else summary

        if is_article:
            faqs = [
                FAQItem(question=f"What does {title} cover?", answer=lead or summary),
                FAQItem(question=f"Who should read {title}?", answer=f"Readers looking for details on {title}."),
            ]
            json_ld: Dict[str, Any] = {
                "@context": "https://schema.org",
                "@type": "Article",
                "headline": title,
                "description": summary,
            }
        else:
            faqs = [
                FAQItem(question=f"What is {title}?", answer=lead or summary),
                FAQItem(question=f"What are the main features of {title}?", answer=description[:300] or summary),
            ]
            json_ld = {
                "@context": "https://schema.org/",
                "@type": "Product",
                "name": title,
                "description": summary,
            }
            if content.get("vendor"):
                json_ld["brand"] = {"@type": "Brand", "name": content["vendor"]}

        body = content.get("body") or content.get("body_html") or description
        return OptimizationResult(
            optimized_title=title,
            optimized_description=description or summary,
            summary=summary,
            faqs=faqs,
            json_ld=json_ld,
            llm_description=llm_description,
            content=body or summary,
            source="fallback",
        )
