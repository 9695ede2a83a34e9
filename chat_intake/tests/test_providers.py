import pytest

from chat_intake.providers import create_provider
from chat_intake.providers.gemini_client import GeminiClient
from chat_intake.providers.openai_compat_client import OpenAICompatClient
from chat_intake.providers.registry import get_model_config, get_provider_config
from chat_intake.providers.sse import iter_sse_payloads, raise_for_status
from chat_intake.domain.exceptions import ApiError, ProviderRateLimitError


def test_create_provider_default(monkeypatch):
    class DummySettings:
        default_provider = "gemini"
        gemini_api_key = "g" * 16
        http_timeout = 1.0
        gemini_base_url = "https://generativelanguage.googleapis.com/v1beta"
        openai_api_key = None

    monkeypatch.setattr("chat_intake.providers.settings", DummySettings())
    provider = create_provider()
    assert isinstance(provider, GeminiClient)
    assert provider.name == "gemini"


def test_create_provider_explicit(monkeypatch):
    class DummySettings:
        default_provider = "gemini"
        openai_api_key = "o" * 16
        http_timeout = 1.0
        openai_base_url = "https://api.openai.com/v1"
        gemini_api_key = None

    monkeypatch.setattr("chat_intake.providers.settings", DummySettings())
    provider = create_provider("OpenAI")
    assert isinstance(provider, OpenAICompatClient)


def test_registry_maps_logical_model():
    assert get_model_config("Gemini", "storefront-chat").provider_model == "gemini-1.5-flash"
    assert get_model_config("openai", "storefront-chat").max_tokens == 500
    with pytest.raises(KeyError):
        get_provider_config("kimi")
    with pytest.raises(KeyError):
        get_model_config("gemini", "ide-chat")


def test_iter_sse_payloads_skips_noise():
    lines = ["", ": keep-alive", 'data: {"a": 1}', "data: [DONE]", "data: {broken", '{"b": 2}', "data: [1, 2]"]
    assert list(iter_sse_payloads(lines)) == [{"a": 1}, {"b": 2}]


def test_raise_for_status_maps_codes():
    raise_for_status("gemini", 200, "")
    with pytest.raises(ProviderRateLimitError):
        raise_for_status("gemini", 429, "slow down")
    with pytest.raises(ApiError) as exc:
        raise_for_status("openai", 503, "unavailable")
    assert exc.value.http_status == 503
    assert exc.value.extra["provider"] == "openai"
