"""SSE 行解析与 HTTP 状态码映射，供各 Provider 客户端复用。"""

import json
from typing import Any, Dict, Iterable, Iterator

import httpx

from chat_intake.domain.exceptions import ApiError, ProviderRateLimitError


def iter_sse_payloads(lines: Iterable[str]) -> Iterator[Dict[str, Any]]:
    """把 `data: {...}` 形式的行解析为 JSON 对象，忽略空行、[DONE] 与坏行。"""

    for line in lines:
        if not line:
            continue
        data_str = line
        if data_str.startswith("data:"):
            data_str = data_str[5:].strip()
        else:
            data_str = data_str.strip()
        if not data_str or data_str == "[DONE]":
            continue
        try:
            payload = json.loads(data_str)
        except json.JSONDecodeError:
            continue
        if isinstance(payload, dict):
            yield payload


def raise_for_status(provider: str, status_code: int, body: str) -> None:
    if status_code == 429:
        # 厂商侧限流，和本地会话限流不是一回事
        raise ProviderRateLimitError(code="PROVIDER_RATE_LIMIT", message=f"{provider} rate limit", http_status=429)
    if status_code >= 400:
        raise ApiError(code="API_ERROR", message=body, http_status=status_code, provider=provider)


def read_error_body(resp) -> str:
    """流式响应在读取 body 之前不能访问 .text。"""

    try:
        resp.read()
        return resp.text
    except httpx.HTTPError:
        return f"HTTP {resp.status_code}"
