"""OpenAI 兼容接口的 Provider 适配器。

很多厂商都提供 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>

本实现只依赖公共字段：model/messages/temperature/max_tokens/top_p/stream。
"""

from typing import Any, Dict, Iterable

import httpx

from chat_intake.config.settings import settings
from chat_intake.domain.exceptions import BackendTimeoutError, MissingApiKeyError, NetworkError
from chat_intake.domain.models import (
    ChatChoice,
    ChatMessage,
    ChatRequest,
    ChatResult,
    ChatStreamChunk,
    ChatStreamChoice,
    ChatUsage,
)
from chat_intake.providers.registry import OPENAI_CONFIG, ModelConfig
from chat_intake.providers.sse import iter_sse_payloads, raise_for_status, read_error_body


class OpenAICompatClient:
    """OpenAI 兼容 Provider 客户端实现。"""

    name = "openai"

    def __init__(self, cfg=settings):
        self._settings = cfg

    # ---- 非流式 ----

    def chat(self, req: ChatRequest) -> ChatResult:
        model_cfg = self._model_config(req)
        payload = self._build_payload(req, model_cfg, stream=False)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{self._base_url()}/chat/completions",
                    json=payload,
                    headers=self._headers(),
                )
        except httpx.TimeoutException as e:
            raise BackendTimeoutError(code="BACKEND_TIMEOUT", message=str(e))
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        raise_for_status(self.name, resp.status_code, resp.text if resp.status_code >= 400 else "")
        return self._parse_response(resp.json(), req)

    # ---- 流式 ----

    def chat_stream(self, req: ChatRequest) -> Iterable[ChatStreamChunk]:
        model_cfg = self._model_config(req)
        payload = self._build_payload(req, model_cfg, stream=True)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                with client.stream(
                    "POST",
                    f"{self._base_url()}/chat/completions",
                    json=payload,
                    headers=self._headers(),
                ) as resp:
                    if resp.status_code >= 400:
                        raise_for_status(self.name, resp.status_code, read_error_body(resp))
                    for data in iter_sse_payloads(resp.iter_lines()):
                        yield self._parse_stream_chunk(data, req)
        except httpx.TimeoutException as e:
            raise BackendTimeoutError(code="BACKEND_TIMEOUT", message=str(e))
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))

    # ---- 辅助方法 ----

    def _model_config(self, req: ChatRequest) -> ModelConfig:
        if not getattr(self._settings, "openai_api_key", None):
            raise MissingApiKeyError(code="MISSING_API_KEY", message="OPENAI_API_KEY not set")
        return OPENAI_CONFIG.models[req.model]

    def _base_url(self) -> str:
        return getattr(self._settings, "openai_base_url", None) or OPENAI_CONFIG.base_url

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._settings.openai_api_key}",
            "Content-Type": "application/json",
        }

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig, stream: bool) -> dict:
        return {
            "model": model_cfg.provider_model,
            "messages": [{"role": m.role, "content": m.content} for m in req.messages],
            "temperature": model_cfg.default_temperature if req.temperature is None else req.temperature,
            "max_tokens": req.max_tokens or model_cfg.max_tokens,
            "top_p": req.top_p,
            "stream": stream,
        }

    def _parse_response(self, data: dict, req: ChatRequest) -> ChatResult:
        choices: list[ChatChoice] = []
        for i, ch in enumerate(data.get("choices", [])):
            msg = ch.get("message") or {}
            choices.append(
                ChatChoice(
                    index=ch.get("index", i),
                    message=self._build_chat_message(msg),
                    finish_reason=ch.get("finish_reason"),
                )
            )
        return ChatResult(
            provider=self.name,
            model=req.model,
            choices=choices,
            usage=self._parse_usage(data.get("usage")),
            raw=data,
        )

    def _parse_stream_chunk(self, data: dict, req: ChatRequest) -> ChatStreamChunk:
        choices: list[ChatStreamChoice] = []
        for i, ch in enumerate(data.get("choices", [])):
            delta_payload = ch.get("delta") or {}
            choices.append(
                ChatStreamChoice(
                    index=ch.get("index", i),
                    delta=self._build_chat_message(delta_payload),
                    finish_reason=ch.get("finish_reason"),
                )
            )
        return ChatStreamChunk(
            provider=self.name,
            model=req.model,
            choices=choices,
            usage=self._parse_usage(data.get("usage")),
            raw=data,
        )

    @staticmethod
    def _build_chat_message(payload: Dict[str, Any]) -> ChatMessage:
        return ChatMessage(
            role=payload.get("role") or "assistant",
            content=payload.get("content") or "",
        )

    @staticmethod
    def _parse_usage(usage_raw: Any) -> ChatUsage | None:
        if not usage_raw:
            return None
        return ChatUsage(
            prompt_tokens=usage_raw.get("prompt_tokens", 0),
            completion_tokens=usage_raw.get("completion_tokens", 0),
            total_tokens=usage_raw.get("total_tokens", 0),
        )
