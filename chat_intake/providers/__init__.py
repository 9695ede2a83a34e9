"""生成后端 Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供各厂商的具体实现 (gemini_client、openai_compat_client)。
"""

from typing import Optional

from chat_intake.config.settings import settings
from chat_intake.providers.base import ProviderClient
from chat_intake.providers.gemini_client import GeminiClient
from chat_intake.providers.openai_compat_client import OpenAICompatClient


def create_provider(name: Optional[str] = None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    provider_name = (name or getattr(settings, "default_provider", "gemini")).lower()
    if provider_name == "openai":
        return OpenAICompatClient(settings)
    return GeminiClient(settings)

