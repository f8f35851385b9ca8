"""LLMClient without network: reply parsing, provider selection, SDK error mapping."""

from types import SimpleNamespace

import httpx
import openai
import pytest
from pydantic import SecretStr

from app.core.config import settings
from app.integrations.llm.errors import ProviderError, ProviderTimeoutError
from app.integrations.llm.llm_client import LLMClient, parse_json_object


@pytest.mark.parametrize("text", [
    '{"optimizedTitle": "Lamp"}',
    '```json\n{"optimizedTitle": "Lamp"}\n```',
    'Here you go:\n{"optimizedTitle": "Lamp"}\nThanks!',
])
def test_parse_json_object_tolerates_wrapping(text):
    assert parse_json_object(text) == {"optimizedTitle": "Lamp"}


@pytest.mark.parametrize("text", ["no json here", "[1, 2]", '{"a": }'])
def test_parse_json_object_rejects_non_objects(text):
    with pytest.raises(ProviderError):
        parse_json_object(text)


@pytest.fixture
def llm_settings(monkeypatch):
    monkeypatch.setattr(settings, "LLM_MOCK_MODE", False)
    monkeypatch.setattr(settings, "LLM_PROVIDER", "auto")
    monkeypatch.setattr(settings, "OPENAI_API_KEY", None)
    monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", None)
    return monkeypatch


def test_from_settings_mock_mode_is_none(llm_settings):
    llm_settings.setattr(settings, "LLM_MOCK_MODE", True)
    llm_settings.setattr(settings, "OPENAI_API_KEY", SecretStr("sk-test"))
    assert LLMClient.from_settings() is None


def test_from_settings_without_keys_is_none(llm_settings):
    assert LLMClient.from_settings() is None


def test_from_settings_auto_prefers_openai(llm_settings):
    llm_settings.setattr(settings, "OPENAI_API_KEY", SecretStr("sk-test"))
    llm_settings.setattr(settings, "ANTHROPIC_API_KEY", SecretStr("ak-test"))
    client = LLMClient.from_settings()
    assert client.provider == "openai"
    assert client.name == f"openai:{settings.OPENAI_MODEL}"


def test_from_settings_anthropic_when_only_its_key(llm_settings):
    llm_settings.setattr(settings, "ANTHROPIC_API_KEY", SecretStr("ak-test"))
    assert LLMClient.from_settings().provider == "anthropic"


def test_explicit_provider_without_its_key_is_none(llm_settings):
    llm_settings.setattr(settings, "LLM_PROVIDER", "anthropic")
    llm_settings.setattr(settings, "OPENAI_API_KEY", SecretStr("sk-test"))
    assert LLMClient.from_settings() is None


def _openai_client(create):
    client = LLMClient("openai", "sk-test", "gpt-test", timeout=5)
    client._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    return client


def test_complete_json_openai_reply():
    seen = {}

    def create(**kwargs):
        seen.update(kwargs)
        msg = SimpleNamespace(content='{"summary": "ok"}')
        return SimpleNamespace(choices=[SimpleNamespace(message=msg)])

    assert _openai_client(create).complete_json("prompt", system="sys") == {"summary": "ok"}
    assert seen["model"] == "gpt-test"
    assert seen["messages"][0] == {"role": "system", "content": "sys"}
    assert seen["response_format"] == {"type": "json_object"}


def test_anthropic_reply_joins_text_blocks():
    client = LLMClient("anthropic", "ak-test", "claude-test")
    blocks = [SimpleNamespace(type="text", text='{"a": '), SimpleNamespace(type="text", text="1}")]
    client._client = SimpleNamespace(messages=SimpleNamespace(create=lambda **kw: SimpleNamespace(content=blocks)))
    assert client.complete_json("prompt") == {"a": 1}


def test_sdk_timeout_maps_to_provider_timeout():
    def create(**kwargs):
        raise openai.APITimeoutError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))

    with pytest.raises(ProviderTimeoutError):
        _openai_client(create).complete("prompt")


def test_sdk_error_and_empty_reply_map_to_provider_error():
    def boom(**kwargs):
        raise openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))

    with pytest.raises(ProviderError):
        _openai_client(boom).complete("prompt")

    empty = lambda **kw: SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="  "))])
    with pytest.raises(ProviderError, match="empty"):
        _openai_client(empty).complete("prompt")


def test_unknown_provider_is_rejected():
    with pytest.raises(ValueError):
        LLMClient("cohere", "k", "m")


def test_empty_choices_map_to_provider_error():
    empty = lambda **kw: SimpleNamespace(choices=[])
    with pytest.raises(ProviderError, match="unexpected response"):
        _openai_client(empty).complete("prompt")


def test_anthropic_missing_content_maps_to_provider_error():
    client = LLMClient("anthropic", "ak-test", "claude-test")
    client._client = SimpleNamespace(messages=SimpleNamespace(create=lambda **kw: SimpleNamespace(content=None)))
    with pytest.raises(ProviderError):
        client.complete("prompt")
