"""Provider 抽象接口。

编排层不直接依赖具体厂商的 HTTP 协议，而是依赖此协议：

- 每个厂商实现一个 ProviderClient（如 GeminiClient）。
- 负责：将 ChatRequest 转成具体 API 请求，并把响应 JSON 解析为 ChatResult。

错误约定：网络失败抛 NetworkError，非 2xx 抛 ApiError，429 抛
ProviderRateLimitError。成功但没有文本的响应不算错误，由上层判断。
"""

from typing import Protocol, Iterable
from chat_intake.domain.models import ChatRequest, ChatResult, ChatStreamChunk


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志/统计。
    - chat(req): 执行一次非流式调用，返回统一的 ChatResult。
    - chat_stream(req): 执行一次流式调用，按到达顺序产出增量。
    """

    name: str

    def chat(self, req: ChatRequest) -> ChatResult:
        ...

    def chat_stream(self, req: ChatRequest) -> Iterable[ChatStreamChunk]:
        ...
