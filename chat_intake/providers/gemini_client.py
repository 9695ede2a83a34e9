"""Google Gemini Provider 适配器。

- 非流式：POST {base_url}/models/{model}:generateContent
- 流式：POST {base_url}/models/{model}:streamGenerateContent?alt=sse
- 认证：x-goog-api-key 头

Gemini 没有 system 角色，system 消息合并到 systemInstruction，
assistant 角色映射为 "model"。
"""

from typing import Any, Dict, Iterable, List

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
from chat_intake.providers.registry import GEMINI_CONFIG, ModelConfig
from chat_intake.providers.sse import iter_sse_payloads, raise_for_status, read_error_body


class GeminiClient:
    """Gemini 客户端实现。"""

    name = "gemini"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def chat(self, req: ChatRequest) -> ChatResult:
        model_cfg = self._model_config(req)
        url = f"{self._base_url()}/models/{model_cfg.provider_model}:generateContent"
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(url, json=self._build_payload(req, model_cfg), headers=self._headers())
        except httpx.TimeoutException as e:
            raise BackendTimeoutError(code="BACKEND_TIMEOUT", message=str(e))
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        raise_for_status(self.name, resp.status_code, resp.text if resp.status_code >= 400 else "")
        data = resp.json()
        return ChatResult(
            provider=self.name,
            model=req.model,
            choices=self._parse_candidates(data),
            usage=self._parse_usage(data.get("usageMetadata")),
            raw=data,
        )

    def chat_stream(self, req: ChatRequest) -> Iterable[ChatStreamChunk]:
        model_cfg = self._model_config(req)
        url = f"{self._base_url()}/models/{model_cfg.provider_model}:streamGenerateContent"
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                with client.stream(
                    "POST",
                    url,
                    params={"alt": "sse"},
                    json=self._build_payload(req, model_cfg),
                    headers=self._headers(),
                ) as resp:
                    if resp.status_code >= 400:
                        raise_for_status(self.name, resp.status_code, read_error_body(resp))
                    for data in iter_sse_payloads(resp.iter_lines()):
                        choices = [
                            ChatStreamChoice(index=c.index, delta=c.message, finish_reason=c.finish_reason)
                            for c in self._parse_candidates(data)
                        ]
                        yield ChatStreamChunk(
                            provider=self.name,
                            model=req.model,
                            choices=choices,
                            usage=self._parse_usage(data.get("usageMetadata")),
                            raw=data,
                        )
        except httpx.TimeoutException as e:
            raise BackendTimeoutError(code="BACKEND_TIMEOUT", message=str(e))
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))

    # ---- 辅助方法 ----

    def _model_config(self, req: ChatRequest) -> ModelConfig:
        if not getattr(self._settings, "gemini_api_key", None):
            raise MissingApiKeyError(code="MISSING_API_KEY", message="GEMINI_API_KEY not set")
        return GEMINI_CONFIG.models[req.model]

    def _base_url(self) -> str:
        return getattr(self._settings, "gemini_base_url", None) or GEMINI_CONFIG.base_url

    def _headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self._settings.gemini_api_key,
            "Content-Type": "application/json",
        }

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        system_parts = [{"text": m.content} for m in req.messages if m.role == "system" and m.content]
        contents = [
            {
                "role": "model" if m.role == "assistant" else "user",
                "parts": [{"text": m.content}],
            }
            for m in req.messages
            if m.role != "system"
        ]
        payload: Dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": model_cfg.default_temperature if req.temperature is None else req.temperature,
                "topP": req.top_p,
                "maxOutputTokens": req.max_tokens or model_cfg.max_tokens,
            },
        }
        if system_parts:
            payload["systemInstruction"] = {"parts": system_parts}
        return payload

    @staticmethod
    def _parse_candidates(data: dict) -> List[ChatChoice]:
        choices: List[ChatChoice] = []
        for i, cand in enumerate(data.get("candidates") or []):
            parts = (cand.get("content") or {}).get("parts") or []
            text = "".join(p.get("text") or "" for p in parts)
            choices.append(
                ChatChoice(
                    index=cand.get("index", i),
                    message=ChatMessage(role="assistant", content=text),
                    finish_reason=cand.get("finishReason"),
                )
            )
        return choices

    @staticmethod
    def _parse_usage(usage_raw: Any) -> ChatUsage | None:
        if not usage_raw:
            return None
        return ChatUsage(
            prompt_tokens=usage_raw.get("promptTokenCount", 0),
            completion_tokens=usage_raw.get("candidatesTokenCount", 0),
            total_tokens=usage_raw.get("totalTokenCount", 0),
        )
