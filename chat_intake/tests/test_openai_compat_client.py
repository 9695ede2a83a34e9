import httpx
import pytest

from chat_intake.domain.exceptions import BackendTimeoutError
from chat_intake.domain.models import ChatMessage, ChatRequest
from chat_intake.providers.openai_compat_client import OpenAICompatClient


class SettingsStub:
    openai_api_key = "o" * 16
    http_timeout = 1.0
    openai_base_url = "https://api.openai.com/v1"


def _request():
    return ChatRequest(
        provider="openai",
        model="storefront-chat",
        messages=[ChatMessage(role="system", content="sys"), ChatMessage(role="user", content="hi")],
        temperature=0.3,
    )


def test_openai_client_parse_basic(monkeypatch):
    captured = {}

    class Resp:
        status_code = 200

        def json(self):
            return {
                "choices": [{"message": {"role": "assistant", "content": "ok"}, "finish_reason": "stop"}],
                "usage": {"prompt_tokens": 1, "completion_tokens": 1, "total_tokens": 2},
            }

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None, **_):
            captured.update(url=url, payload=json, headers=headers)
            return Resp()

    monkeypatch.setattr("httpx.Client", Client)
    res = OpenAICompatClient(SettingsStub()).chat(_request())
    assert res.text == "ok"
    assert res.usage.total_tokens == 2
    assert captured["url"] == "https://api.openai.com/v1/chat/completions"
    assert captured["headers"]["Authorization"] == f"Bearer {SettingsStub.openai_api_key}"
    assert captured["payload"]["model"] == "gpt-4o-mini"
    assert captured["payload"]["temperature"] == 0.3
    assert captured["payload"]["stream"] is False
    assert [m["role"] for m in captured["payload"]["messages"]] == ["system", "user"]


def test_openai_client_chat_stream(monkeypatch):
    stream_lines = [
        'data: {"choices": [{"index": 0, "delta": {"content": "hel"}}]}',
        'data: {"choices": [{"index": 0, "delta": {"content": "lo"}, "finish_reason": "stop"}], "usage": {"prompt_tokens": 1, "completion_tokens": 2, "total_tokens": 3}}',
        "data: [DONE]",
    ]

    class FakeResponse:
        status_code = 200

        def iter_lines(self):
            yield from stream_lines

    class StreamContext:
        def __enter__(self):
            return FakeResponse()

        def __exit__(self, *args):
            return False

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, *a, **kw):
            # 未在流式测试中使用
            raise AssertionError("post should not be called in stream test")

        def stream(self, *a, **kw):
            return StreamContext()

    monkeypatch.setattr("httpx.Client", Client)
    chunks = list(OpenAICompatClient(SettingsStub()).chat_stream(_request()))
    assert [c.text for c in chunks] == ["hel", "lo"]
    assert chunks[1].usage.total_tokens == 3


def test_openai_client_timeout(monkeypatch):
    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, *a, **kw):
            raise httpx.ReadTimeout("timed out")

    monkeypatch.setattr("httpx.Client", Client)
    with pytest.raises(BackendTimeoutError):
        OpenAICompatClient(SettingsStub()).chat(_request())


def test_openai_client_temperature_zero_is_kept(monkeypatch):
    captured = []

    class Resp:
        status_code = 200

        def json(self):
            return {"choices": []}

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, **_):
            captured.append(json)
            return Resp()

    monkeypatch.setattr("httpx.Client", Client)
    client = OpenAICompatClient(SettingsStub())
    messages = [ChatMessage(role="user", content="hi")]
    client.chat(ChatRequest(provider="openai", model="storefront-chat", messages=messages, temperature=0.0))
    client.chat(ChatRequest(provider="openai", model="storefront-chat", messages=messages))
    assert captured[0]["temperature"] == 0.0
    assert captured[1]["temperature"] == 0.7
