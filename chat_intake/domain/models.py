"""统一的对话与结果数据模型。

本模块定义了编排层与不同 Provider 之间共享的标准数据结构：

- ChatMessage: 一条对话消息（system/user/assistant）。
- ChatRequest: 发给底层生成后端的完整请求。
- ChatResult: 从 Provider 解析后的统一非流式响应。
- ChatStreamChunk: 流式响应中的一次增量。

所有 Provider 适配器（如 GeminiClient）都只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Any, Dict, List


# LLM 消息角色类型
Role = Literal["system", "user", "assistant"]

# 支持的两种回复语言：de 为主语言，en 为次语言
Locale = Literal["de", "en"]
PRIMARY_LOCALE: Locale = "de"
SECONDARY_LOCALE: Locale = "en"
SUPPORTED_LOCALES = (PRIMARY_LOCALE, SECONDARY_LOCALE)


@dataclass
class ChatMessage:
    """一条对话消息，既可用于请求，也可用于响应。

    - role: 消息角色。
    - content: 纯文本内容。
    - meta: 附加元数据（locale、turn_id 等），不直接发给 Provider。
    """

    role: Role
    content: str
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ChatRequest:
    """一次完整的生成请求。

    编排层把系统提示词、历史轮次和清洗后的用户输入组装成 ChatRequest，
    Provider 适配层再把它转换成各家 API 的 JSON 请求体。
    """

    provider: str  # 逻辑 Provider 名，如 "gemini"
    model: str  # 逻辑模型名，如 "storefront-chat"
    messages: List[ChatMessage]
    temperature: Optional[float] = None  # 为空时使用 registry 中的默认值
    top_p: float = 0.95
    max_tokens: Optional[int] = None


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatChoice:
    """单个候选回答（通常只用 index=0 的一条）。"""

    index: int
    message: ChatMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatResult:
    """一次非流式调用的最终结果。"""

    provider: str
    model: str
    choices: List[ChatChoice]
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None

    @property
    def text(self) -> str:
        if not self.choices:
            return ""
        return self.choices[0].message.content or ""


@dataclass
class ChatStreamChoice:
    """流式返回中的单个候选增量。"""

    index: int
    delta: ChatMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatStreamChunk:
    """流式对话的增量结果，choice.delta 代表本次增量内容。"""

    provider: str
    model: str
    choices: List[ChatStreamChoice]
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None

    @property
    def text(self) -> str:
        if not self.choices:
            return ""
        return self.choices[0].delta.content or ""
