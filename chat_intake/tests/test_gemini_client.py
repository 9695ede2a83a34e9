import httpx
import pytest

from chat_intake.domain.exceptions import ApiError, MissingApiKeyError, NetworkError, ProviderRateLimitError
from chat_intake.domain.models import ChatMessage, ChatRequest
from chat_intake.providers.gemini_client import GeminiClient


class SettingsStub:
    gemini_api_key = "g" * 16
    http_timeout = 1.0
    gemini_base_url = "https://generativelanguage.googleapis.com/v1beta"


def _request():
    return ChatRequest(
        provider="gemini",
        model="storefront-chat",
        messages=[
            ChatMessage(role="system", content="Du bist der Assistent."),
            ChatMessage(role="user", content="Hallo"),
            ChatMessage(role="assistant", content="Servus!"),
            ChatMessage(role="user", content="Was gibt es heute?"),
        ],
    )


class Resp:
    def __init__(self, status_code=200, data=None, text=""):
        self.status_code = status_code
        self._data = data or {}
        self.text = text

    def json(self):
        return self._data


def _client_returning(resp, captured=None):
    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None, **_):
            if captured is not None:
                captured.update(url=url, payload=json, headers=headers)
            return resp

    return Client


def test_gemini_client_payload_and_parse(monkeypatch):
    captured = {}
    resp = Resp(
        data={
            "candidates": [
                {"content": {"parts": [{"text": "Heute "}, {"text": "Schnitzel."}]}, "finishReason": "STOP"}
            ],
            "usageMetadata": {"promptTokenCount": 5, "candidatesTokenCount": 3, "totalTokenCount": 8},
        }
    )
    monkeypatch.setattr("httpx.Client", _client_returning(resp, captured))
    res = GeminiClient(SettingsStub()).chat(_request())

    assert res.text == "Heute Schnitzel."
    assert res.choices[0].finish_reason == "STOP"
    assert res.usage.total_tokens == 8
    assert captured["url"].endswith("/models/gemini-1.5-flash:generateContent")
    assert captured["headers"]["x-goog-api-key"] == SettingsStub.gemini_api_key
    payload = captured["payload"]
    assert payload["systemInstruction"] == {"parts": [{"text": "Du bist der Assistent."}]}
    assert [c["role"] for c in payload["contents"]] == ["user", "model", "user"]
    assert payload["generationConfig"]["maxOutputTokens"] == 500


def test_gemini_client_error_statuses(monkeypatch):
    monkeypatch.setattr("httpx.Client", _client_returning(Resp(status_code=429)))
    with pytest.raises(ProviderRateLimitError):
        GeminiClient(SettingsStub()).chat(_request())

    monkeypatch.setattr("httpx.Client", _client_returning(Resp(status_code=500, text="internal")))
    with pytest.raises(ApiError) as exc:
        GeminiClient(SettingsStub()).chat(_request())
    assert exc.value.message == "internal"


def test_gemini_client_network_error(monkeypatch):
    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, *a, **kw):
            raise httpx.ConnectError("connection refused")

    monkeypatch.setattr("httpx.Client", Client)
    with pytest.raises(NetworkError):
        GeminiClient(SettingsStub()).chat(_request())


def test_gemini_client_requires_api_key():
    class NoKey(SettingsStub):
        gemini_api_key = None

    with pytest.raises(MissingApiKeyError):
        GeminiClient(NoKey()).chat(_request())


def test_gemini_client_chat_stream(monkeypatch):
    stream_lines = [
        'data: {"candidates": [{"content": {"parts": [{"text": "Wir "}]}}]}',
        "",
        'data: {"candidates": [{"content": {"parts": [{"text": "grillen."}]}, "finishReason": "STOP"}], "usageMetadata": {"totalTokenCount": 7}}',
    ]
    captured = {}

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

        def stream(self, method, url, params=None, **kw):
            captured.update(url=url, params=params)
            return StreamContext()

    monkeypatch.setattr("httpx.Client", Client)
    chunks = list(GeminiClient(SettingsStub()).chat_stream(_request()))
    assert [c.text for c in chunks] == ["Wir ", "grillen."]
    assert chunks[1].usage.total_tokens == 7
    assert captured["params"] == {"alt": "sse"}
    assert captured["url"].endswith(":streamGenerateContent")


def test_gemini_client_stream_error_reads_body(monkeypatch):
    class FakeResponse:
        status_code = 400
        text = "bad request"

        def read(self):
            return b"bad request"

        def iter_lines(self):
            raise AssertionError("body should not be iterated")

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

        def stream(self, *a, **kw):
            return StreamContext()

    monkeypatch.setattr("httpx.Client", Client)
    with pytest.raises(ApiError) as exc:
        list(GeminiClient(SettingsStub()).chat_stream(_request()))
    assert exc.value.message == "bad request"


def test_gemini_client_temperature_zero_is_kept(monkeypatch):
    captured = {}
    monkeypatch.setattr("httpx.Client", _client_returning(Resp(data={"candidates": []}), captured))
    req = _request()
    req.temperature = 0.0
    GeminiClient(SettingsStub()).chat(req)
    assert captured["payload"]["generationConfig"]["temperature"] == 0.0
